from __future__ import annotations

import json
import logging
import re
from typing import Any, Dict, Iterable, Mapping, Optional

from json_repair import repair_json
from pydantic import ValidationError

from contentstudio.errors import PlanParseError

from .model import Character, ContentPlan, Scene

logger = logging.getLogger(__name__)

PARSE_FAILURE_MESSAGE = "The model response could not be parsed as a content plan. Please try again."
SCENE_PARSE_FAILURE_MESSAGE = "The model response could not be parsed as a scene. Please try again."

# camelCase as emitted by the model, snake_case as accepted by populate_by_name.
SCENE_ASSET_FIELDS = (
    "generatedImageUrl",
    "generatedVideoUrl",
    "generatedNarrationUrl",
    "generated_image_url",
    "generated_video_url",
    "generated_narration_url",
)
DIALOGUE_ASSET_FIELDS = ("audioUrl", "audio_url")

_FENCE_OPEN = re.compile(r"^```[\w-]*[ \t]*\n?")
_FENCE_CLOSE = re.compile(r"\n?[ \t]*```\s*$")


def strip_code_fence(text: str) -> str:
    """Drop a leading ```lang marker and a trailing ``` marker, if present."""
    candidate = text.strip()
    candidate = _FENCE_OPEN.sub("", candidate, count=1)
    candidate = _FENCE_CLOSE.sub("", candidate, count=1)
    return candidate.strip()


def extract_json_block(text: str) -> str:
    """Return the outermost JSON object embedded in a model response."""
    candidate = strip_code_fence(text)
    start = candidate.find("{")
    end = candidate.rfind("}")
    if start != -1 and end != -1 and end >= start:
        return candidate[start : end + 1]
    return candidate


def decode_object(raw: str, failure_message: str = PARSE_FAILURE_MESSAGE) -> Dict[str, Any]:
    cleaned = extract_json_block(raw)
    try:
        payload = json.loads(cleaned)
    except json.JSONDecodeError as exc:
        logger.warning("Primary JSON parse failed, attempting repair: %s", exc)
        try:
            payload = json.loads(repair_json(cleaned))
        except Exception as repair_exc:
            logger.error("JSON repair failed: %s", repair_exc)
            raise PlanParseError(failure_message) from exc
    if not isinstance(payload, dict):
        logger.error("Model response decoded to %s, expected an object", type(payload).__name__)
        raise PlanParseError(failure_message)
    return payload


def parse_plan(raw_text: str) -> ContentPlan:
    """Build a fresh :class:`ContentPlan` from raw model output.

    All or nothing: the result is either a fully validated plan or a
    :class:`PlanParseError`. Scenes without an integer ``order`` get their
    1-based position, and every generated-asset field is cleared.
    """
    payload = decode_object(raw_text)
    names = _character_names(payload.get("characters"))
    scenes = payload.get("scenes")
    if isinstance(scenes, list):
        for position, scene in enumerate(scenes, start=1):
            if isinstance(scene, dict):
                _normalize_scene(scene, position, names)
    try:
        return ContentPlan.model_validate(payload)
    except ValidationError as exc:
        logger.error("Invalid content plan payload: %s", exc)
        raise PlanParseError(PARSE_FAILURE_MESSAGE) from exc


def parse_scene(raw_text: str, position: int, characters: Iterable[Character] = ()) -> Scene:
    """Parse a single regenerated scene with the same normalization as a plan."""
    payload = decode_object(raw_text, SCENE_PARSE_FAILURE_MESSAGE)
    _normalize_scene(payload, position, {c.id: c.name for c in characters})
    try:
        return Scene.model_validate(payload)
    except ValidationError as exc:
        logger.error("Invalid scene payload: %s", exc)
        raise PlanParseError(SCENE_PARSE_FAILURE_MESSAGE) from exc


def dump_plan(plan: ContentPlan, indent: Optional[int] = 2) -> str:
    return plan.model_dump_json(by_alias=True, exclude_none=True, indent=indent)


def _character_names(characters: Any) -> Dict[str, str]:
    names: Dict[str, str] = {}
    if not isinstance(characters, list):
        return names
    for character in characters:
        if isinstance(character, Mapping):
            char_id, name = character.get("id"), character.get("name")
            if isinstance(char_id, str) and isinstance(name, str):
                names[char_id] = name
    return names


def _normalize_scene(scene: Dict[str, Any], position: int, names: Mapping[str, str]) -> None:
    order = scene.get("order")
    if isinstance(order, float) and order.is_integer():
        scene["order"] = int(order)
    elif isinstance(order, bool) or not isinstance(order, int):
        scene["order"] = position

    for field in SCENE_ASSET_FIELDS:
        scene.pop(field, None)

    dialogues = scene.get("dialogues")
    if not isinstance(dialogues, list):
        return
    for dialogue in dialogues:
        if not isinstance(dialogue, dict):
            continue
        for field in DIALOGUE_ASSET_FIELDS:
            dialogue.pop(field, None)
        if not dialogue.get("characterName"):
            name = names.get(dialogue.get("characterId") or "")
            if name:
                dialogue["characterName"] = name

from __future__ import annotations

import logging
from typing import Callable, Optional

from contentstudio.errors import GenerationError

from .llm import ChatCompletionClient, TextModel
from .model import ContentPlan, PlanningInput, Scene
from .parser import parse_plan, parse_scene
from .prompts import (
    IMAGE_REWRITE_SYSTEM_PROMPT,
    PLAN_SYSTEM_PROMPT,
    SCENE_REWRITE_SYSTEM_PROMPT,
    TEXT_REWRITE_SYSTEM_PROMPT,
    VIDEO_REWRITE_SYSTEM_PROMPT,
    render_dialogue_rewrite_prompt,
    render_image_rewrite_prompt,
    render_narration_rewrite_prompt,
    render_plan_prompt,
    render_scene_rewrite_prompt,
    render_video_rewrite_prompt,
)

logger = logging.getLogger(__name__)


class PlanEngine:
    """Turns planning input into a parsed plan, and rewrites plan fragments."""

    def __init__(self, llm: ChatCompletionClient | None = None) -> None:
        self.llm = llm or ChatCompletionClient()

    def generate_plan(
        self,
        credential: str,
        model: TextModel | str,
        planning: PlanningInput,
        on_chunk: Optional[Callable[[str], None]] = None,
    ) -> ContentPlan:
        outcome: dict[str, str] = {}

        self.llm.stream_completion(
            credential,
            model,
            PLAN_SYSTEM_PROMPT,
            render_plan_prompt(planning),
            on_chunk=on_chunk or (lambda _chunk: None),
            on_done=lambda text: outcome.__setitem__("text", text),
            on_error=lambda message: outcome.__setitem__("error", message),
        )
        if "error" in outcome:
            raise GenerationError(outcome["error"])
        logger.debug("Plan raw response: %s", outcome["text"])
        plan = parse_plan(outcome["text"])
        logger.info("Parsed plan '%s' with %d scenes", plan.project.title, len(plan.scenes))
        return plan

    def rewrite_image_prompt(self, credential: str, model: TextModel | str, raw_prompt: str, style: str, target_model: str) -> str:
        return self.llm.complete(
            credential, model, IMAGE_REWRITE_SYSTEM_PROMPT, render_image_rewrite_prompt(raw_prompt, style, target_model)
        )

    def rewrite_video_prompt(
        self, credential: str, model: TextModel | str, raw_prompt: str, target_model: str, duration_seconds: float
    ) -> str:
        return self.llm.complete(
            credential,
            model,
            VIDEO_REWRITE_SYSTEM_PROMPT,
            render_video_rewrite_prompt(raw_prompt, target_model, duration_seconds),
        )

    def rewrite_dialogue_line(
        self,
        credential: str,
        model: TextModel | str,
        scene: Scene,
        index: int,
        instruction: str,
        language: str,
    ) -> str:
        dialogue = scene.dialogues[index]
        prompt = render_dialogue_rewrite_prompt(
            scene=scene.description,
            character=dialogue.character_name or dialogue.character_id,
            line=dialogue.line,
            instruction=instruction,
            language=language,
        )
        return self.llm.complete(credential, model, TEXT_REWRITE_SYSTEM_PROMPT, prompt)

    def rewrite_narration(self, credential: str, model: TextModel | str, plan: ContentPlan, scene: Scene, language: str) -> str:
        prompt = render_narration_rewrite_prompt(
            scene.narration, plan.project.tone or scene.mood, scene.duration_seconds, language
        )
        return self.llm.complete(credential, model, TEXT_REWRITE_SYSTEM_PROMPT, prompt)

    def regenerate_scene(
        self, credential: str, model: TextModel | str, plan: ContentPlan, scene: Scene, instruction: str
    ) -> Scene:
        """Ask for a revised scene; the result keeps the original's order."""
        current = scene.model_dump_json(by_alias=True, exclude_none=True, indent=2)
        raw = self.llm.complete(
            credential, model, SCENE_REWRITE_SYSTEM_PROMPT, render_scene_rewrite_prompt(current, instruction)
        )
        revised = parse_scene(raw, scene.order, plan.characters)
        if revised.order != scene.order:
            revised = revised.model_copy(update={"order": scene.order})
        return revised

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, List, Optional, Type, TypeVar

import requests

from contentstudio.config import Credentials, StudioConfig
from contentstudio.errors import (
    GenerationError,
    MissingCredentialError,
    MissingPrerequisiteError,
    UnknownProviderError,
)
from contentstudio.media_pipeline.base import ImageClient, VoiceClient
from contentstudio.media_pipeline.fal_client import FalVideoClient
from contentstudio.media_pipeline.model import (
    ImageModel,
    ImageProvider,
    ImageRequest,
    OpenAITTSModel,
    VideoModel,
    VideoRequest,
    VoiceProvider,
    VoiceRequest,
)
from contentstudio.media_pipeline.registry import build_image_clients, build_video_client, build_voice_clients
from contentstudio.media_pipeline.voice import estimate_tts_cost
from contentstudio.planning.engine import PlanEngine
from contentstudio.planning.llm import ChatCompletionClient, TextModel
from contentstudio.planning.model import Character, ContentPlan, Dialogue, PlanningInput, Scene, TTSVoice
from contentstudio.status import GenerationStatus, StatusTracker, UnitKey, UnitKind

logger = logging.getLogger(__name__)

P = TypeVar("P", ImageProvider, VoiceProvider)


@dataclass(frozen=True)
class UnitResult:
    key: UnitKey
    status: GenerationStatus
    url: Optional[str] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status is GenerationStatus.COMPLETED


@dataclass
class StudioOrchestrator:
    """Drives plan generation and per-unit asset generation.

    The plan and the status tracker belong to the caller. Generated asset
    URLs are written back into the plan by scene id (and dialogue index), and
    every unit goes through ``running`` before its provider is contacted.
    """

    config: StudioConfig
    plan_engine: PlanEngine
    image_clients: Dict[ImageProvider, ImageClient]
    video_client: FalVideoClient
    voice_clients: Dict[VoiceProvider, VoiceClient]

    @classmethod
    def from_file(cls, path: Path) -> "StudioOrchestrator":
        return cls.default(StudioConfig.from_file(path))

    @classmethod
    def default(cls, config: StudioConfig | None = None, session: requests.Session | None = None) -> "StudioOrchestrator":
        config = config or StudioConfig()
        session = session or requests.Session()
        llm = ChatCompletionClient(
            session=session,
            stream_temperature=config.stream_temperature,
            stream_max_tokens=config.stream_max_tokens,
            temperature=config.completion_temperature,
            max_tokens=config.completion_max_tokens,
        )
        return cls(
            config=config,
            plan_engine=PlanEngine(llm=llm),
            image_clients=build_image_clients(
                session, budget=config.image_budget, request_timeout=config.request_timeout
            ),
            video_client=build_video_client(
                session, budget=config.video_budget, request_timeout=config.request_timeout
            ),
            voice_clients=build_voice_clients(config.audio_dir, session, request_timeout=config.request_timeout),
        )

    # ------------------------------------------------------------------
    # Plan
    def generate_plan(
        self,
        credential: str,
        model: TextModel | str,
        planning_input: PlanningInput,
        on_chunk: Optional[Callable[[str], None]] = None,
    ) -> ContentPlan:
        if not credential:
            raise MissingCredentialError("Missing openai API key")
        if not planning_input.concept.strip():
            raise GenerationError("Please describe the project concept")
        return self.plan_engine.generate_plan(credential, model, planning_input, on_chunk=on_chunk)

    # ------------------------------------------------------------------
    # Images
    def generate_scene_image(
        self,
        plan: ContentPlan,
        scene_id: str,
        provider: ImageProvider | str,
        model: ImageModel | str,
        credentials: Credentials,
        tracker: StatusTracker,
        reference_image_url: Optional[str] = None,
    ) -> UnitResult:
        scene = _scene(plan, scene_id)
        key = UnitKey.scene(UnitKind.IMAGE, scene.id)

        def produce() -> str:
            chosen = _provider(ImageProvider, provider)
            request = ImageRequest(
                provider=chosen,
                model=model,
                credential=credentials.for_image(chosen),
                prompt=scene.image_prompt_text,
                negative_prompt=scene.image_prompt.negative or None,
                reference_image_url=reference_image_url,
            )
            return self.image_clients[chosen].generate(request)

        def store(url: str) -> None:
            _scene(plan, scene_id).generated_image_url = url

        return self._run_unit(key, tracker, produce, store)

    def generate_all_images(
        self,
        plan: ContentPlan,
        provider: ImageProvider | str,
        model: ImageModel | str,
        credentials: Credentials,
        tracker: StatusTracker,
        reference_image_url: Optional[str] = None,
    ) -> List[UnitResult]:
        return [
            self.generate_scene_image(plan, scene.id, provider, model, credentials, tracker, reference_image_url)
            for scene in _ordered(plan)
        ]

    # ------------------------------------------------------------------
    # Video
    def generate_scene_video(
        self,
        plan: ContentPlan,
        scene_id: str,
        model: VideoModel | str,
        credentials: Credentials,
        tracker: StatusTracker,
        duration_seconds: Optional[float] = None,
        aspect_ratio: Optional[str] = None,
    ) -> UnitResult:
        scene = _scene(plan, scene_id)
        key = UnitKey.scene(UnitKind.VIDEO, scene.id)

        def produce() -> str:
            credential = credentials.require("fal")
            if not scene.generated_image_url:
                raise MissingPrerequisiteError(f"Generate an image for scene {scene.id} first; it is the start frame")
            request = VideoRequest(
                model=model,
                credential=credential,
                prompt=scene.video_prompt_text,
                image_url=scene.generated_image_url,
                duration_seconds=duration_seconds or self.config.video_duration,
                aspect_ratio=aspect_ratio or self.config.video_aspect_ratio,
            )
            return self.video_client.generate(request)

        def store(url: str) -> None:
            _scene(plan, scene_id).generated_video_url = url

        return self._run_unit(key, tracker, produce, store)

    def generate_all_videos(
        self,
        plan: ContentPlan,
        model: VideoModel | str,
        credentials: Credentials,
        tracker: StatusTracker,
        duration_seconds: Optional[float] = None,
        aspect_ratio: Optional[str] = None,
    ) -> List[UnitResult]:
        return [
            self.generate_scene_video(plan, scene.id, model, credentials, tracker, duration_seconds, aspect_ratio)
            for scene in _ordered(plan)
        ]

    # ------------------------------------------------------------------
    # Voice
    def generate_narration(
        self,
        plan: ContentPlan,
        scene_id: str,
        provider: VoiceProvider | str,
        credentials: Credentials,
        tracker: StatusTracker,
    ) -> UnitResult:
        scene = _scene(plan, scene_id)
        key = UnitKey.scene(UnitKind.NARRATION, scene.id)
        if not scene.narration.strip():
            logger.info("Scene %s has no narration; skipping", scene.id)
            return UnitResult(key, tracker.get_status(key))

        def produce() -> str:
            chosen = _provider(VoiceProvider, provider)
            request = self._voice_request(
                chosen, credentials.for_voice(chosen), scene.narration, plan.narrator(), f"{scene.id}-narration"
            )
            return self.voice_clients[chosen].generate(request)

        def store(url: str) -> None:
            _scene(plan, scene_id).generated_narration_url = url

        return self._run_unit(key, tracker, produce, store)

    def generate_dialogue_voice(
        self,
        plan: ContentPlan,
        scene_id: str,
        index: int,
        provider: VoiceProvider | str,
        credentials: Credentials,
        tracker: StatusTracker,
    ) -> UnitResult:
        scene = _scene(plan, scene_id)
        dialogue = _dialogue(scene, index)
        key = UnitKey.dialogue(scene.id, index)
        if not dialogue.line.strip():
            logger.info("Dialogue %s of scene %s is empty; skipping", index, scene.id)
            return UnitResult(key, tracker.get_status(key))

        def produce() -> str:
            chosen = _provider(VoiceProvider, provider)
            request = self._voice_request(
                chosen,
                credentials.for_voice(chosen),
                dialogue.line,
                plan.character(dialogue.character_id),
                f"{scene.id}-line{index}",
            )
            return self.voice_clients[chosen].generate(request)

        def store(url: str) -> None:
            _dialogue(_scene(plan, scene_id), index).audio_url = url

        return self._run_unit(key, tracker, produce, store)

    def generate_all_voices(
        self,
        plan: ContentPlan,
        provider: VoiceProvider | str,
        credentials: Credentials,
        tracker: StatusTracker,
    ) -> List[UnitResult]:
        results: List[UnitResult] = []
        for scene in _ordered(plan):
            results.append(self.generate_narration(plan, scene.id, provider, credentials, tracker))
            for index in range(len(scene.dialogues)):
                results.append(self.generate_dialogue_voice(plan, scene.id, index, provider, credentials, tracker))
        return results

    def estimate_voice_cost(
        self, plan: ContentPlan, provider: VoiceProvider | str, model: OpenAITTSModel | str | None = None
    ) -> tuple[int, float]:
        texts = [scene.narration for scene in plan.scenes]
        texts.extend(dialogue.line for scene in plan.scenes for dialogue in scene.dialogues)
        return estimate_tts_cost(provider, model or self.config.tts_model, texts)

    # ------------------------------------------------------------------
    def _voice_request(
        self,
        provider: VoiceProvider,
        credential: str,
        text: str,
        speaker: Optional[Character],
        name: str,
    ) -> VoiceRequest:
        voice = speaker.voice.suggested_tts_voice if speaker else TTSVoice.ALLOY
        eleven_labs_voice_id = speaker.voice.eleven_labs_voice_id if speaker else None
        return VoiceRequest(
            provider=provider,
            credential=credential,
            text=text,
            voice=voice,
            model=self.config.tts_model,
            speed=self.config.tts_speed,
            output_format=self.config.tts_format,
            eleven_labs_voice_id=eleven_labs_voice_id,
            name=name,
        )

    def _run_unit(
        self,
        key: UnitKey,
        tracker: StatusTracker,
        produce: Callable[[], str],
        store: Callable[[str], None],
    ) -> UnitResult:
        tracker.begin(key)
        logger.info("Generating %s", key)
        try:
            url = produce()
        except GenerationError as exc:
            message = str(exc)
            logger.error("Generation of %s failed: %s", key, message)
            tracker.fail(key, message)
            return UnitResult(key, GenerationStatus.FAILED, error=message)
        except Exception as exc:
            tracker.fail(key, str(exc) or type(exc).__name__)
            logger.exception("Unexpected error while generating %s", key)
            raise
        store(url)
        tracker.complete(key)
        logger.info("Generated %s", key)
        return UnitResult(key, GenerationStatus.COMPLETED, url=url)


def _scene(plan: ContentPlan, scene_id: str) -> Scene:
    scene = plan.scene(scene_id)
    if scene is None:
        raise KeyError(f"Unknown scene id {scene_id!r}")
    return scene


def _dialogue(scene: Scene, index: int) -> Dialogue:
    if not 0 <= index < len(scene.dialogues):
        raise IndexError(f"Scene {scene.id} has no dialogue line {index}")
    return scene.dialogues[index]


def _ordered(plan: ContentPlan) -> List[Scene]:
    return sorted(plan.scenes, key=lambda scene: scene.order)


def _provider(enum_cls: Type[P], value: P | str) -> P:
    try:
        return enum_cls(value)
    except ValueError as exc:
        known = ", ".join(member.value for member in enum_cls)
        raise UnknownProviderError(f"Unknown provider '{value}' (expected one of: {known})") from exc

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict

import pytest

from fakes import FakeResponse, FakeSession

from contentstudio.config import Credentials, StudioConfig
from contentstudio.errors import GenerationError, MissingCredentialError, ProviderRejection
from contentstudio.media_pipeline.base import ImageClient, VoiceClient
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
from contentstudio.media_pipeline.registry import build_voice_clients
from contentstudio.orchestrator import StudioOrchestrator
from contentstudio.planning.engine import PlanEngine
from contentstudio.planning.model import ContentPlan, PlanningInput, TTSVoice
from contentstudio.status import GenerationStatus, StatusTracker, UnitKey, UnitKind

CREDENTIALS = Credentials(openai="sk", replicate="r8", fal="fal", elevenlabs="xi")


class StubImageClient(ImageClient):
    label = "Stub"

    def __init__(self, provider: ImageProvider, tracker: StatusTracker | None = None, fail_for: str = "") -> None:
        self.provider = provider
        self.tracker = tracker
        self.fail_for = fail_for
        self.requests: list[ImageRequest] = []
        self.observed: list[tuple[GenerationStatus, Any]] = []

    def build_request(self, request: ImageRequest) -> Dict[str, Any]:
        return {"prompt": request.prompt}

    def generate(self, request: ImageRequest) -> str:
        self.requests.append(request)
        if self.tracker is not None:
            key = UnitKey.scene(UnitKind.IMAGE, "scene_1")
            self.observed.append((self.tracker.get_status(key), self.tracker.get_error(key)))
        if self.fail_for and self.fail_for in request.prompt:
            raise ProviderRejection("quota exceeded", provider=self.label, status_code=402)
        return f"https://img/{len(self.requests)}.png"


class StubVideoClient:
    def __init__(self) -> None:
        self.requests: list[VideoRequest] = []

    def generate(self, request: VideoRequest) -> str:
        self.requests.append(request)
        return f"https://clip/{len(self.requests)}.mp4"


class StubVoiceClient(VoiceClient):
    label = "Stub voice"

    def __init__(self, provider: VoiceProvider) -> None:
        self.provider = provider
        self.requests: list[VoiceRequest] = []

    def build_request(self, request: VoiceRequest) -> Dict[str, Any]:
        return {"text": request.text}

    def generate(self, request: VoiceRequest) -> str:
        self.requests.append(request)
        return f"file:///audio/{request.name}.mp3"


class StubLLM:
    def __init__(self, text: str = "", error: str = "") -> None:
        self.text = text
        self.error = error
        self.prompts: list[str] = []

    def stream_completion(self, credential, model, system_prompt, user_prompt, on_chunk, on_done, on_error) -> None:
        self.prompts.append(user_prompt)
        if self.error:
            on_error(self.error)
            return
        for piece in (self.text[: len(self.text) // 2], self.text[len(self.text) // 2 :]):
            on_chunk(piece)
        on_done(self.text)


def _plan() -> ContentPlan:
    return ContentPlan.model_validate(
        {
            "project": {"title": "Lighthouse"},
            "characters": [
                {"id": "char_1", "name": "Mara", "role": "keeper", "voice": {"suggestedTTSVoice": "nova", "elevenLabsVoiceId": "voice-mara"}},
                {"id": "char_2", "name": "Teller", "role": "narrator", "voice": {"suggestedTTSVoice": "onyx"}},
            ],
            "scenes": [
                {
                    "id": "scene_1",
                    "order": 1,
                    "narration": "The storm rolls in.",
                    "imagePrompt": {"main": "storm main", "full": "storm full", "negative": "text, watermark"},
                    "videoPrompt": {"motion": "waves crash"},
                    "dialogues": [
                        {"characterId": "char_1", "characterName": "Mara", "line": "Hold on."},
                        {"characterId": "char_9", "line": "Who is there?"},
                        {"characterId": "char_1", "line": "   "},
                    ],
                },
                {"id": "scene_2", "order": 2, "narration": "", "imagePrompt": {"main": "calm sea"}},
                {"id": "scene_3", "order": 3, "narration": "Dawn breaks.", "imagePrompt": {"main": "sunrise"}},
            ],
        }
    )


def _orchestrator(image_client: StubImageClient | None = None, llm: StubLLM | None = None) -> StudioOrchestrator:
    image_clients = {provider: StubImageClient(provider) for provider in ImageProvider}
    if image_client is not None:
        image_clients[image_client.provider] = image_client
    return StudioOrchestrator(
        config=StudioConfig(tts_model=OpenAITTSModel.TTS_1_HD),
        plan_engine=PlanEngine(llm=llm or StubLLM()),
        image_clients=image_clients,
        video_client=StubVideoClient(),
        voice_clients={provider: StubVoiceClient(provider) for provider in VoiceProvider},
    )


def test_image_is_written_back_and_completed() -> None:
    orchestrator = _orchestrator()
    plan, tracker = _plan(), StatusTracker()

    result = orchestrator.generate_scene_image(
        plan, "scene_1", ImageProvider.FAL, ImageModel.FAL_FLUX_PRO, CREDENTIALS, tracker
    )

    assert result.ok
    assert result.url == "https://img/1.png"
    assert plan.scene("scene_1").generated_image_url == "https://img/1.png"
    assert tracker.get_status(result.key) is GenerationStatus.COMPLETED
    request = orchestrator.image_clients[ImageProvider.FAL].requests[0]
    assert request.credential == "fal"
    assert request.prompt == "storm full"
    assert request.negative_prompt == "text, watermark"


def test_retry_clears_previous_error_before_provider_runs() -> None:
    tracker = StatusTracker()
    key = UnitKey.scene(UnitKind.IMAGE, "scene_1")
    tracker.fail(key, "old failure")
    client = StubImageClient(ImageProvider.REPLICATE, tracker=tracker)
    orchestrator = _orchestrator(client)

    orchestrator.generate_scene_image(
        _plan(), "scene_1", ImageProvider.REPLICATE, ImageModel.FLUX_DEV, CREDENTIALS, tracker
    )

    assert client.observed == [(GenerationStatus.RUNNING, None)]
    assert tracker.get_status(key) is GenerationStatus.COMPLETED


def test_batch_continues_past_a_failed_unit() -> None:
    client = StubImageClient(ImageProvider.REPLICATE, fail_for="calm")
    orchestrator = _orchestrator(client)
    plan, tracker = _plan(), StatusTracker()

    results = orchestrator.generate_all_images(plan, "replicate", "flux-dev", CREDENTIALS, tracker)

    assert [result.status for result in results] == [
        GenerationStatus.COMPLETED,
        GenerationStatus.FAILED,
        GenerationStatus.COMPLETED,
    ]
    assert results[1].error == "quota exceeded"
    assert plan.scene("scene_2").generated_image_url is None
    assert plan.scene("scene_3").generated_image_url == "https://img/3.png"
    assert tracker.get_error(UnitKey.scene(UnitKind.IMAGE, "scene_2")) == "quota exceeded"
    assert tracker.get_error(UnitKey.scene(UnitKind.IMAGE, "scene_1")) is None


def test_batch_follows_scene_order() -> None:
    orchestrator = _orchestrator()
    plan = _plan()
    plan.scenes.reverse()

    results = orchestrator.generate_all_images(plan, "openai", "gpt-image-1", CREDENTIALS, StatusTracker())

    assert [result.key.scene_id for result in results] == ["scene_1", "scene_2", "scene_3"]


def test_missing_credential_fails_the_unit_without_calling_provider() -> None:
    orchestrator = _orchestrator()
    tracker = StatusTracker()

    result = orchestrator.generate_scene_image(
        _plan(), "scene_1", ImageProvider.REPLICATE, ImageModel.FLUX_DEV, Credentials(fal="fal"), tracker
    )

    assert result.status is GenerationStatus.FAILED
    assert result.error == "Missing replicate API key"
    assert orchestrator.image_clients[ImageProvider.REPLICATE].requests == []


def test_video_needs_the_scene_image_first() -> None:
    orchestrator = _orchestrator()
    plan, tracker = _plan(), StatusTracker()

    result = orchestrator.generate_scene_video(plan, "scene_1", VideoModel.LUMA, CREDENTIALS, tracker)

    assert result.status is GenerationStatus.FAILED
    assert "scene_1" in result.error
    assert orchestrator.video_client.requests == []
    assert plan.scene("scene_1").generated_video_url is None


def test_video_uses_scene_image_as_start_frame() -> None:
    orchestrator = _orchestrator()
    plan, tracker = _plan(), StatusTracker()
    plan.scene("scene_1").generated_image_url = "https://img/start.png"

    result = orchestrator.generate_scene_video(
        plan, "scene_1", VideoModel.KLING_16, CREDENTIALS, tracker, duration_seconds=8
    )

    assert result.ok
    assert plan.scene("scene_1").generated_video_url == "https://clip/1.mp4"
    request = orchestrator.video_client.requests[0]
    assert request.image_url == "https://img/start.png"
    assert request.prompt == "waves crash"
    assert request.duration_seconds == 8


def test_narration_uses_the_narrator_casting() -> None:
    orchestrator = _orchestrator()
    plan, tracker = _plan(), StatusTracker()

    result = orchestrator.generate_narration(plan, "scene_1", VoiceProvider.OPENAI, CREDENTIALS, tracker)

    assert result.ok
    assert plan.scene("scene_1").generated_narration_url == result.url
    request = orchestrator.voice_clients[VoiceProvider.OPENAI].requests[0]
    assert request.voice is TTSVoice.ONYX
    assert request.model is OpenAITTSModel.TTS_1_HD
    assert request.text == "The storm rolls in."


def test_narration_without_text_is_skipped() -> None:
    orchestrator = _orchestrator()
    tracker = StatusTracker()

    result = orchestrator.generate_narration(_plan(), "scene_2", VoiceProvider.OPENAI, CREDENTIALS, tracker)

    assert result.status is GenerationStatus.IDLE
    assert result.url is None
    assert orchestrator.voice_clients[VoiceProvider.OPENAI].requests == []


def test_dialogue_voice_follows_character_casting() -> None:
    orchestrator = _orchestrator()
    plan, tracker = _plan(), StatusTracker()

    cast = orchestrator.generate_dialogue_voice(plan, "scene_1", 0, VoiceProvider.ELEVENLABS, CREDENTIALS, tracker)
    uncast = orchestrator.generate_dialogue_voice(plan, "scene_1", 1, VoiceProvider.ELEVENLABS, CREDENTIALS, tracker)

    requests = orchestrator.voice_clients[VoiceProvider.ELEVENLABS].requests
    assert requests[0].eleven_labs_voice_id == "voice-mara"
    assert requests[0].credential == "xi"
    assert requests[1].eleven_labs_voice_id is None
    assert requests[1].voice is TTSVoice.ALLOY
    assert plan.scene("scene_1").dialogues[0].audio_url == cast.url
    assert plan.scene("scene_1").dialogues[1].audio_url == uncast.url
    assert tracker.get_status(UnitKey.dialogue("scene_1", 1)) is GenerationStatus.COMPLETED


def test_generate_all_voices_skips_blank_text() -> None:
    orchestrator = _orchestrator()
    plan = _plan()

    results = orchestrator.generate_all_voices(plan, "openai", CREDENTIALS, StatusTracker())

    generated = [str(result.key) for result in results if result.ok]
    assert generated == [
        "narration:scene_1",
        "dialogue:scene_1_0",
        "dialogue:scene_1_1",
        "narration:scene_3",
    ]


def test_unknown_scene_is_a_caller_error() -> None:
    orchestrator = _orchestrator()

    with pytest.raises(KeyError):
        orchestrator.generate_scene_image(
            _plan(), "scene_404", ImageProvider.FAL, ImageModel.FAL_FLUX_PRO, CREDENTIALS, StatusTracker()
        )


def test_generate_plan_streams_and_parses() -> None:
    raw = '```json\n{"project": {"title": "Streamed"}, "scenes": [{"id": "s1"}, {"id": "s2"}]}\n```'
    llm = StubLLM(text=raw)
    orchestrator = _orchestrator(llm=llm)
    chunks: list[str] = []

    plan = orchestrator.generate_plan("sk", "gpt-4o", PlanningInput(concept="a lighthouse story"), on_chunk=chunks.append)

    assert "".join(chunks) == raw
    assert plan.project.title == "Streamed"
    assert [scene.order for scene in plan.scenes] == [1, 2]
    assert "a lighthouse story" in llm.prompts[0]


def test_generate_plan_surfaces_stream_errors() -> None:
    orchestrator = _orchestrator(llm=StubLLM(error="bad key"))

    with pytest.raises(GenerationError, match="bad key"):
        orchestrator.generate_plan("sk", "gpt-4o", PlanningInput(concept="x"))


def test_generate_plan_requires_credential() -> None:
    orchestrator = _orchestrator()

    with pytest.raises(MissingCredentialError):
        orchestrator.generate_plan("", "gpt-4o", PlanningInput(concept="x"))


def test_estimate_voice_cost_counts_narration_and_dialogue() -> None:
    orchestrator = _orchestrator()
    plan = _plan()
    expected_chars = sum(len(s.narration) for s in plan.scenes) + sum(len(d.line) for s in plan.scenes for d in s.dialogues)

    chars, usd = orchestrator.estimate_voice_cost(plan, VoiceProvider.OPENAI)

    assert chars == expected_chars
    assert usd == pytest.approx(expected_chars * 0.000030)


class UnblockingSession(FakeSession):
    """Clears ``blocker`` once the first request has been answered and handled."""

    def __init__(self, blocker: Path, *responses: Any) -> None:
        super().__init__(*responses)
        self.blocker = blocker

    def request(self, method: str, url: str, **kwargs: Any) -> FakeResponse:
        if self.calls:
            self.blocker.unlink(missing_ok=True)
        return super().request(method, url, **kwargs)


def test_audio_write_failure_fails_the_unit_and_the_batch_goes_on(tmp_path: Path) -> None:
    blocker = tmp_path / "audio"
    blocker.write_text("not a directory")
    session = UnblockingSession(blocker, *[FakeResponse(content=b"ID3") for _ in range(4)])
    orchestrator = _orchestrator()
    orchestrator.voice_clients = build_voice_clients(blocker, session)
    plan, tracker = _plan(), StatusTracker()

    results = orchestrator.generate_all_voices(plan, VoiceProvider.OPENAI, CREDENTIALS, tracker)

    narration = UnitKey.scene(UnitKind.NARRATION, "scene_1")
    assert results[0].status is GenerationStatus.FAILED
    assert "Could not save audio" in results[0].error
    assert tracker.get_status(narration) is GenerationStatus.FAILED
    assert tracker.get_error(narration) == results[0].error
    assert plan.scene("scene_1").generated_narration_url is None
    assert [str(result.key) for result in results[1:] if result.ok] == [
        "dialogue:scene_1_0",
        "dialogue:scene_1_1",
        "narration:scene_3",
    ]
    assert plan.scene("scene_3").generated_narration_url.startswith("file://")


def test_unknown_image_provider_fails_the_unit() -> None:
    orchestrator = _orchestrator()
    plan, tracker = _plan(), StatusTracker()

    result = orchestrator.generate_scene_image(plan, "scene_1", "midjourney", ImageModel.FLUX_DEV, CREDENTIALS, tracker)

    assert result.status is GenerationStatus.FAILED
    assert "midjourney" in result.error
    assert tracker.get_status(result.key) is GenerationStatus.FAILED
    assert plan.scene("scene_1").generated_image_url is None


def test_unknown_voice_provider_fails_every_unit_of_the_batch() -> None:
    orchestrator = _orchestrator()
    tracker = StatusTracker()

    results = orchestrator.generate_all_voices(_plan(), "carrier-pigeon", CREDENTIALS, tracker)

    assert len(results) == 6
    attempted = [result for result in results if result.status is not GenerationStatus.IDLE]
    assert len(attempted) == 4
    assert all(result.status is GenerationStatus.FAILED for result in attempted)
    assert all(tracker.get_status(result.key) is not GenerationStatus.RUNNING for result in results)


class ExplodingImageClient(StubImageClient):
    def generate(self, request: ImageRequest) -> str:
        raise RuntimeError("adapter bug")


def test_unexpected_error_marks_the_unit_failed_and_propagates() -> None:
    orchestrator = _orchestrator(ExplodingImageClient(ImageProvider.OPENAI))
    tracker = StatusTracker()

    with pytest.raises(RuntimeError, match="adapter bug"):
        orchestrator.generate_scene_image(
            _plan(), "scene_1", ImageProvider.OPENAI, ImageModel.GPT_IMAGE_1, CREDENTIALS, tracker
        )

    key = UnitKey.scene(UnitKind.IMAGE, "scene_1")
    assert tracker.get_status(key) is GenerationStatus.FAILED
    assert tracker.get_error(key) == "adapter bug"

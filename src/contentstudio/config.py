from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path

from pydantic import BaseModel

from contentstudio.errors import MissingCredentialError
from contentstudio.jobs.engine import PollingBudget
from contentstudio.media_pipeline.model import ImageModel, ImageProvider, OpenAITTSModel, VideoModel, VoiceProvider
from contentstudio.planning.llm import TextModel


@dataclass(frozen=True)
class Credentials:
    """Opaque API keys per provider; only their presence is ever checked."""

    openai: str = ""
    replicate: str = ""
    fal: str = ""
    elevenlabs: str = ""

    def require(self, name: str) -> str:
        value = getattr(self, name, "")
        if not value:
            raise MissingCredentialError(f"Missing {name} API key")
        return value

    def for_image(self, provider: ImageProvider | str) -> str:
        return self.require(ImageProvider(provider).value)

    def for_voice(self, provider: VoiceProvider | str) -> str:
        return self.require(VoiceProvider(provider).value)


class StudioConfig(BaseModel):
    asset_dir: Path = Path("data/assets")
    request_timeout: float = 90.0
    # Text generation
    text_model: TextModel = TextModel.GPT_4O
    stream_temperature: float = 0.7
    stream_max_tokens: int = 8000
    completion_temperature: float = 0.6
    completion_max_tokens: int = 2000
    # Image generation
    image_provider: ImageProvider = ImageProvider.REPLICATE
    image_model: ImageModel = ImageModel.FLUX_KONTEXT_PRO
    image_poll_attempts: int = 60
    image_poll_interval: float = 2.0
    # Video generation
    video_model: VideoModel = VideoModel.KLING_16
    video_duration: float = 5
    video_aspect_ratio: str | None = None
    video_poll_attempts: int = 150
    video_poll_interval: float = 3.0
    # Voice generation
    voice_provider: VoiceProvider = VoiceProvider.OPENAI
    tts_model: OpenAITTSModel = OpenAITTSModel.TTS_1
    tts_speed: float = 1.0
    tts_format: str = "mp3"
    # Credential environment variables
    openai_api_key_env: str = "OPENAI_API_KEY"
    replicate_api_key_env: str = "REPLICATE_API_TOKEN"
    fal_api_key_env: str = "FAL_KEY"
    elevenlabs_api_key_env: str = "ELEVENLABS_API_KEY"

    @classmethod
    def from_file(cls, path: Path) -> "StudioConfig":
        text = path.read_text(encoding="utf-8")
        try:
            payload = json.loads(text)
        except json.JSONDecodeError:
            import yaml

            payload = yaml.safe_load(text)
        return cls.model_validate(payload or {})

    @property
    def image_budget(self) -> PollingBudget:
        return PollingBudget(self.image_poll_attempts, self.image_poll_interval)

    @property
    def video_budget(self) -> PollingBudget:
        return PollingBudget(self.video_poll_attempts, self.video_poll_interval)

    @property
    def audio_dir(self) -> Path:
        return self.asset_dir / "audio"

    def credentials(self) -> Credentials:
        return Credentials(
            openai=os.getenv(self.openai_api_key_env, ""),
            replicate=os.getenv(self.replicate_api_key_env, ""),
            fal=os.getenv(self.fal_api_key_env, ""),
            elevenlabs=os.getenv(self.elevenlabs_api_key_env, ""),
        )

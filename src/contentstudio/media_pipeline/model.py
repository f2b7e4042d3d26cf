from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional

from contentstudio.planning.model import TTSVoice


class ImageProvider(str, Enum):
    REPLICATE = "replicate"
    FAL = "fal"
    OPENAI = "openai"


class VoiceProvider(str, Enum):
    OPENAI = "openai"
    ELEVENLABS = "elevenlabs"


class ImageModel(str, Enum):
    FLUX_KONTEXT_PRO = "flux-kontext-pro"
    FLUX_11_PRO = "flux-1.1-pro"
    FLUX_DEV = "flux-dev"
    FAL_FLUX_KONTEXT = "fal-flux-kontext"
    FAL_FLUX_PRO = "fal-flux-pro"
    GPT_IMAGE_1 = "gpt-image-1"


class VideoModel(str, Enum):
    KLING_16 = "kling-1.6"
    KLING_16_PRO = "kling-1.6-pro"
    LUMA = "luma"
    WAN_480P = "wan-480p"
    MINIMAX = "minimax"


class OpenAITTSModel(str, Enum):
    TTS_1 = "tts-1"
    TTS_1_HD = "tts-1-hd"


@dataclass(frozen=True)
class VideoModelInfo:
    label: str
    price: str
    endpoint: str
    max_duration: int
    note: Optional[str] = None


VIDEO_MODELS: Dict[VideoModel, VideoModelInfo] = {
    VideoModel.KLING_16: VideoModelInfo(
        "Kling AI 1.6", "~$0.18/5s", "fal-ai/kling-video/v1.6/standard/image-to-video", 10
    ),
    VideoModel.KLING_16_PRO: VideoModelInfo(
        "Kling AI 1.6 Pro", "~$0.36/5s", "fal-ai/kling-video/v1.6/pro/image-to-video", 10, "highest quality"
    ),
    VideoModel.LUMA: VideoModelInfo(
        "Luma Dream Machine", "~$0.30/5s", "fal-ai/luma-dream-machine/image-to-video", 5, "fast"
    ),
    VideoModel.WAN_480P: VideoModelInfo("WAN 2.1 (480p)", "~$0.05/5s", "fal-ai/wan/i2v/480p", 5, "cheapest"),
    VideoModel.MINIMAX: VideoModelInfo("Minimax Hailuo", "~$0.10/5s", "fal-ai/minimax/video-01", 6),
}


@dataclass(frozen=True)
class ImageRequest:
    provider: ImageProvider
    model: ImageModel
    credential: str
    prompt: str
    negative_prompt: Optional[str] = None
    reference_image_url: Optional[str] = None
    width: int = 1024
    height: int = 1024
    output_format: str = "png"


@dataclass(frozen=True)
class VideoRequest:
    model: VideoModel
    credential: str
    prompt: str
    image_url: Optional[str]
    duration_seconds: Optional[float] = None
    aspect_ratio: Optional[str] = None


@dataclass(frozen=True)
class VoiceRequest:
    provider: VoiceProvider
    credential: str
    text: str
    voice: TTSVoice = TTSVoice.ALLOY
    model: OpenAITTSModel = OpenAITTSModel.TTS_1
    speed: float = 1.0
    output_format: str = "mp3"
    eleven_labs_voice_id: Optional[str] = None
    name: Optional[str] = None

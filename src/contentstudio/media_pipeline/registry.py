from __future__ import annotations

from pathlib import Path
from typing import Dict

import requests

from contentstudio.jobs.engine import IMAGE_BUDGET, VIDEO_BUDGET, PollingBudget
from contentstudio.transport import Sleeper, pause

from .base import ImageClient, VoiceClient, ensure_complete
from .elevenlabs_client import ElevenLabsClient
from .fal_client import FalImageClient, FalQueue, FalVideoClient
from .model import ImageProvider, VoiceProvider
from .openai_image_client import OpenAIImageClient
from .openai_speech_client import OpenAISpeechClient
from .replicate_client import ReplicateImageClient
from .voice import AudioStore


def build_image_clients(
    session: requests.Session | None = None,
    *,
    budget: PollingBudget = IMAGE_BUDGET,
    sleep: Sleeper = pause,
    request_timeout: float = 90.0,
) -> Dict[ImageProvider, ImageClient]:
    session = session or requests.Session()
    clients: Dict[ImageProvider, ImageClient] = {
        ImageProvider.REPLICATE: ReplicateImageClient(
            session=session, request_timeout=request_timeout, budget=budget, sleep=sleep
        ),
        ImageProvider.FAL: FalImageClient(
            queue=FalQueue(session=session, request_timeout=request_timeout), budget=budget, sleep=sleep
        ),
        ImageProvider.OPENAI: OpenAIImageClient(session=session),
    }
    ensure_complete(clients, ImageProvider)
    return clients


def build_video_client(
    session: requests.Session | None = None,
    *,
    budget: PollingBudget = VIDEO_BUDGET,
    sleep: Sleeper = pause,
    request_timeout: float = 90.0,
) -> FalVideoClient:
    queue = FalQueue(session=session or requests.Session(), request_timeout=request_timeout)
    return FalVideoClient(queue=queue, budget=budget, sleep=sleep)


def build_voice_clients(
    audio_dir: Path,
    session: requests.Session | None = None,
    *,
    request_timeout: float = 60.0,
) -> Dict[VoiceProvider, VoiceClient]:
    session = session or requests.Session()
    store = AudioStore(audio_dir)
    clients: Dict[VoiceProvider, VoiceClient] = {
        VoiceProvider.OPENAI: OpenAISpeechClient(store=store, session=session, request_timeout=request_timeout),
        VoiceProvider.ELEVENLABS: ElevenLabsClient(store=store, session=session, request_timeout=request_timeout),
    }
    ensure_complete(clients, VoiceProvider)
    return clients

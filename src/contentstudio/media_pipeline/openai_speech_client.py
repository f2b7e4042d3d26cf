from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict

import requests

from contentstudio.planning.model import TTSVoice
from contentstudio.transport import read_bytes, send

from .base import VoiceClient
from .model import OpenAITTSModel, VoiceProvider, VoiceRequest
from .voice import AudioStore

logger = logging.getLogger(__name__)


class OpenAISpeechClient(VoiceClient):
    provider = VoiceProvider.OPENAI
    label = "OpenAI TTS"

    def __init__(
        self,
        store: AudioStore | None = None,
        session: requests.Session | None = None,
        base_url: str = "https://api.openai.com/v1",
        request_timeout: float = 60.0,
    ) -> None:
        self.store = store or AudioStore(Path("data/audio"))
        self.session = session or requests.Session()
        self.base_url = base_url.rstrip("/")
        self.request_timeout = request_timeout

    def build_request(self, request: VoiceRequest) -> Dict[str, Any]:
        return {
            "model": OpenAITTSModel(request.model).value,
            "input": request.text,
            "voice": TTSVoice(request.voice).value,
            "speed": request.speed or 1.0,
            "response_format": request.output_format or "mp3",
        }

    def generate(self, request: VoiceRequest) -> str:
        payload = self.build_request(request)
        logger.info("Synthesizing %d chars with OpenAI voice %s", len(request.text), payload["voice"])
        response = send(
            self.session,
            "POST",
            f"{self.base_url}/audio/speech",
            provider=self.label,
            headers={
                "Authorization": f"Bearer {request.credential}",
                "Content-Type": "application/json",
            },
            json=payload,
            timeout=self.request_timeout,
        )
        audio = read_bytes(response, self.label)
        return self.store.save(audio, payload["response_format"], request.name)

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Optional

import requests

from contentstudio.transport import read_bytes, send

from .base import VoiceClient
from .model import VoiceProvider, VoiceRequest
from .voice import AudioStore

logger = logging.getLogger(__name__)

DEFAULT_VOICE_ID = "21m00Tcm4TlvDq8ikWAM"  # Rachel
DEFAULT_MODEL_ID = "eleven_multilingual_v2"
DEFAULT_VOICE_SETTINGS: Dict[str, Any] = {
    "stability": 0.5,
    "similarity_boost": 0.8,
    "style": 0.3,
    "use_speaker_boost": True,
}


class ElevenLabsClient(VoiceClient):
    """Thin wrapper around the ElevenLabs Text-to-Speech API."""

    provider = VoiceProvider.ELEVENLABS
    label = "ElevenLabs"

    def __init__(
        self,
        store: AudioStore | None = None,
        session: requests.Session | None = None,
        base_url: str = "https://api.elevenlabs.io",
        model_id: str = DEFAULT_MODEL_ID,
        default_voice_id: str = DEFAULT_VOICE_ID,
        voice_settings: Optional[Dict[str, Any]] = None,
        request_timeout: float = 60.0,
    ) -> None:
        self.store = store or AudioStore(Path("data/audio"))
        self.session = session or requests.Session()
        self.base_url = base_url.rstrip("/")
        self.model_id = model_id
        self.default_voice_id = default_voice_id
        self.voice_settings = voice_settings or dict(DEFAULT_VOICE_SETTINGS)
        self.request_timeout = request_timeout

    def voice_id_for(self, request: VoiceRequest) -> str:
        return request.eleven_labs_voice_id or self.default_voice_id

    def build_request(self, request: VoiceRequest) -> Dict[str, Any]:
        return {
            "text": request.text,
            "model_id": self.model_id,
            "voice_settings": self.voice_settings,
        }

    def generate(self, request: VoiceRequest) -> str:
        voice_id = self.voice_id_for(request)
        logger.info("Synthesizing %d chars with ElevenLabs voice %s", len(request.text), voice_id)
        response = send(
            self.session,
            "POST",
            f"{self.base_url}/v1/text-to-speech/{voice_id}",
            provider=self.label,
            headers=self._headers("audio/mpeg", request.credential),
            json=self.build_request(request),
            timeout=self.request_timeout,
        )
        return self.store.save(read_bytes(response, self.label), "mp3", request.name)

    @staticmethod
    def _headers(accept: str, credential: str) -> Dict[str, str]:
        return {
            "xi-api-key": credential,
            "accept": accept,
            "content-type": "application/json",
        }

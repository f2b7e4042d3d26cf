from __future__ import annotations

import logging
import re
import uuid
from pathlib import Path
from typing import Iterable

from contentstudio.errors import AssetWriteError

from .model import OpenAITTSModel, VoiceProvider

logger = logging.getLogger(__name__)

# USD per character.
OPENAI_TTS_PRICE = {OpenAITTSModel.TTS_1: 0.000015, OpenAITTSModel.TTS_1_HD: 0.000030}
ELEVENLABS_PRICE = 0.0003


class AudioStore:
    """Writes synthesized audio to disk and hands back a ``file://`` URL."""

    def __init__(self, base_dir: Path) -> None:
        self.base_dir = Path(base_dir)

    def save(self, audio: bytes, extension: str, name: str | None = None) -> str:
        stem = _safe_stem(name) if name else "audio"
        target = self.base_dir / f"{stem}-{uuid.uuid4().hex[:8]}.{extension.lstrip('.')}"
        try:
            self.base_dir.mkdir(parents=True, exist_ok=True)
            target.write_bytes(audio)
        except OSError as exc:
            logger.error("Could not write audio to %s: %s", target, exc)
            raise AssetWriteError(f"Could not save audio to {self.base_dir}: {exc.strerror or exc}") from exc
        logger.info("Saved %d bytes of audio to %s", len(audio), target)
        return target.resolve().as_uri()


def _safe_stem(name: str) -> str:
    return re.sub(r"[^A-Za-z0-9_.-]+", "_", name).strip("._") or "audio"


def estimate_tts_cost(
    provider: VoiceProvider | str,
    model: OpenAITTSModel | str,
    texts: Iterable[str],
) -> tuple[int, float]:
    """Return ``(characters, usd)`` for synthesizing ``texts``."""
    total_chars = sum(len(text) for text in texts)
    provider = VoiceProvider(provider)
    if provider is VoiceProvider.OPENAI:
        return total_chars, total_chars * OPENAI_TTS_PRICE[OpenAITTSModel(model)]
    return total_chars, total_chars * ELEVENLABS_PRICE

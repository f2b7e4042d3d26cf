from __future__ import annotations

import abc
from enum import Enum
from typing import Any, Dict, Mapping, Type, TypeVar

from contentstudio.errors import UnknownModelError

from .model import ImageProvider, ImageRequest, VoiceProvider, VoiceRequest

E = TypeVar("E", bound=Enum)


class ImageClient(abc.ABC):
    """Adapter between :class:`ImageRequest` and one image provider."""

    provider: ImageProvider
    label: str

    @abc.abstractmethod
    def build_request(self, request: ImageRequest) -> Dict[str, Any]:
        raise NotImplementedError

    @abc.abstractmethod
    def generate(self, request: ImageRequest) -> str:
        """Return a displayable image URL (http(s) or data URL)."""
        raise NotImplementedError


class VoiceClient(abc.ABC):
    """Adapter between :class:`VoiceRequest` and one speech provider."""

    provider: VoiceProvider
    label: str

    @abc.abstractmethod
    def build_request(self, request: VoiceRequest) -> Dict[str, Any]:
        raise NotImplementedError

    @abc.abstractmethod
    def generate(self, request: VoiceRequest) -> str:
        """Return a locally resolvable URL for the synthesized audio."""
        raise NotImplementedError


def catalogue_entry(catalogue: Mapping[E, str], enum_cls: Type[E], value: Any, provider: str) -> tuple[E, str]:
    """Look ``value`` up in a provider's model catalogue."""
    try:
        member = enum_cls(value)
    except ValueError as exc:
        raise UnknownModelError(f"Unknown {provider} model '{value}'") from exc
    if member not in catalogue:
        raise UnknownModelError(f"Model '{member.value}' is not available on {provider}")
    return member, catalogue[member]


def ensure_complete(mapping: Mapping[E, Any], enum_cls: Type[E]) -> None:
    missing = [member.value for member in enum_cls if member not in mapping]
    if missing:
        raise RuntimeError(f"No adapter registered for {enum_cls.__name__}: {', '.join(missing)}")

from __future__ import annotations

from enum import Enum
from typing import Dict, NamedTuple, Optional


class GenerationStatus(str, Enum):
    IDLE = "idle"
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class UnitKind(str, Enum):
    IMAGE = "image"
    VIDEO = "video"
    NARRATION = "narration"
    DIALOGUE = "dialogue"


class UnitKey(NamedTuple):
    """Address of one generation unit: a scene asset or one dialogue line."""

    kind: UnitKind
    scene_id: str
    dialogue_index: Optional[int] = None

    @classmethod
    def scene(cls, kind: UnitKind, scene_id: str) -> "UnitKey":
        return cls(UnitKind(kind), scene_id)

    @classmethod
    def dialogue(cls, scene_id: str, index: int) -> "UnitKey":
        return cls(UnitKind.DIALOGUE, scene_id, index)

    def __str__(self) -> str:
        if self.dialogue_index is None:
            return f"{UnitKind(self.kind).value}:{self.scene_id}"
        return f"{UnitKind(self.kind).value}:{self.scene_id}_{self.dialogue_index}"


class StatusTracker:
    """Process-lifetime map of unit status and last error.

    The tracker only stores; which transitions are legal is decided by the
    orchestrator that drives generation.
    """

    def __init__(self) -> None:
        self._statuses: Dict[UnitKey, GenerationStatus] = {}
        self._errors: Dict[UnitKey, str] = {}

    def set_status(self, key: UnitKey, status: GenerationStatus | str) -> None:
        self._statuses[key] = GenerationStatus(status)

    def get_status(self, key: UnitKey) -> GenerationStatus:
        return self._statuses.get(key, GenerationStatus.IDLE)

    def set_error(self, key: UnitKey, message: str) -> None:
        if message:
            self._errors[key] = message
        else:
            self._errors.pop(key, None)

    def get_error(self, key: UnitKey) -> Optional[str]:
        return self._errors.get(key)

    def begin(self, key: UnitKey) -> None:
        self.set_error(key, "")
        self.set_status(key, GenerationStatus.RUNNING)

    def complete(self, key: UnitKey) -> None:
        self.set_error(key, "")
        self.set_status(key, GenerationStatus.COMPLETED)

    def fail(self, key: UnitKey, message: str) -> None:
        self.set_status(key, GenerationStatus.FAILED)
        self.set_error(key, message)

    def is_running(self, key: UnitKey) -> bool:
        return self.get_status(key) is GenerationStatus.RUNNING

    def snapshot(self) -> Dict[UnitKey, GenerationStatus]:
        return dict(self._statuses)

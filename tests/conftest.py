from __future__ import annotations

import sys
from pathlib import Path

import pytest


def pytest_configure(config) -> None:  # pragma: no cover - pytest hook
    root = Path(__file__).resolve().parents[1]
    src_path = root / "src"
    if src_path.exists() and str(src_path) not in sys.path:
        sys.path.insert(0, str(src_path))


@pytest.fixture
def recording_sleep():
    from fakes import RecordingSleep

    return RecordingSleep()

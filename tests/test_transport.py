from __future__ import annotations

import pytest
import requests

from fakes import FakeResponse, FakeSession

from contentstudio import transport
from contentstudio.errors import MalformedResponseError, ProviderRejection, TransportError
from contentstudio.transport import pause, provider_error_message, read_bytes, read_json, send


@pytest.mark.parametrize(
    "payload, expected",
    [
        ({"error": {"message": "bad key"}}, "bad key"),
        ({"detail": {"message": "nested detail"}}, "nested detail"),
        ({"detail": "Invalid input"}, "Invalid input"),
        ({"message": "plain message"}, "plain message"),
        ({"error": "flat error"}, "flat error"),
        ({"error": {"code": 500}}, "FAL error 503"),
        ({"detail": [{"loc": ["body"], "msg": "field required"}]}, "FAL error 503"),
        (None, "FAL error 503"),
    ],
)
def test_provider_error_message(payload, expected) -> None:
    assert provider_error_message(FakeResponse(status_code=503, payload=payload), "FAL") == expected


def test_send_passes_request_through() -> None:
    response = FakeResponse(payload={"ok": True})
    session = FakeSession(response)

    result = send(session, "POST", "https://example.test/x", provider="Test", headers={"A": "b"}, json={"k": 1})

    assert result is response
    call = session.calls[0]
    assert (call.method, call.url, call.headers, call.json, call.stream) == (
        "POST",
        "https://example.test/x",
        {"A": "b"},
        {"k": 1},
        False,
    )


def test_send_raises_rejection_and_closes_response() -> None:
    response = FakeResponse(status_code=401, payload={"error": {"message": "bad key"}})

    with pytest.raises(ProviderRejection) as excinfo:
        send(FakeSession(response), "GET", "https://example.test", provider="OpenAI")

    assert str(excinfo.value) == "bad key"
    assert excinfo.value.status_code == 401
    assert excinfo.value.provider == "OpenAI"
    assert response.closed


def test_send_wraps_network_failures() -> None:
    session = FakeSession(requests.ConnectionError("Name or service not known"))

    with pytest.raises(TransportError, match="Name or service not known"):
        send(session, "GET", "https://example.test", provider="Replicate")


def test_read_json_rejects_non_json() -> None:
    with pytest.raises(MalformedResponseError, match="not valid JSON"):
        read_json(FakeResponse(payload=None), "FAL")


def test_read_bytes_rejects_empty_body() -> None:
    assert read_bytes(FakeResponse(content=b"x"), "TTS") == b"x"
    with pytest.raises(MalformedResponseError, match="empty body"):
        read_bytes(FakeResponse(content=b""), "TTS")


def test_pause_skips_non_positive_delays(monkeypatch) -> None:
    slept: list[float] = []
    monkeypatch.setattr(transport.time, "sleep", slept.append)

    pause(0)
    pause(-1)
    pause(1.5)

    assert slept == [1.5]

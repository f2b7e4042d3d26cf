from __future__ import annotations

import logging
import time
from typing import Any, Callable, Iterable, Mapping, Optional, Sequence

import requests

from contentstudio.errors import MalformedResponseError, ProviderRejection, TransportError
from contentstudio.jobs.extract import PathSegment, resolve_path

logger = logging.getLogger(__name__)

Sleeper = Callable[[float], None]

DEFAULT_TIMEOUT = 60.0

# Where providers put a human-readable reason in their error bodies.
ERROR_MESSAGE_PATHS: tuple[tuple[PathSegment, ...], ...] = (
    ("error", "message"),
    ("detail", "message"),
    ("detail",),
    ("message",),
    ("error",),
)


def pause(seconds: float) -> None:
    """Block for ``seconds``. Polling loops only ever wait through this."""
    if seconds <= 0:
        return
    time.sleep(seconds)


def send(
    session: requests.Session,
    method: str,
    url: str,
    *,
    provider: str,
    headers: Optional[Mapping[str, str]] = None,
    json: Any = None,
    timeout: float = DEFAULT_TIMEOUT,
    stream: bool = False,
    error_paths: Iterable[Sequence[PathSegment]] = ERROR_MESSAGE_PATHS,
) -> requests.Response:
    """Issue one HTTP call and classify the outcome.

    Returns the response on a success status. A network failure raises
    :class:`TransportError`; a non-success status raises
    :class:`ProviderRejection` carrying the provider's own message when its
    error body has one, else ``"<provider> error <status>"``.
    """
    try:
        response = session.request(
            method,
            url,
            headers=dict(headers or {}),
            json=json,
            timeout=timeout,
            stream=stream,
        )
    except requests.RequestException as exc:
        logger.error("%s request to %s failed: %s", provider, url, exc)
        raise TransportError(str(exc) or f"{provider} request failed") from exc

    if response.status_code >= 400:
        message = provider_error_message(response, provider, error_paths)
        logger.error("%s rejected request (%s): %s", provider, response.status_code, message)
        response.close()
        raise ProviderRejection(message, provider=provider, status_code=response.status_code)
    return response


def provider_error_message(
    response: requests.Response,
    provider: str,
    error_paths: Iterable[Sequence[PathSegment]] = ERROR_MESSAGE_PATHS,
) -> str:
    try:
        payload = response.json()
    except ValueError:
        payload = None
    for path in error_paths:
        message = resolve_path(payload, path)
        if isinstance(message, str) and message.strip():
            return message
    return f"{provider} error {response.status_code}"


def read_json(response: requests.Response, provider: str) -> Any:
    try:
        return response.json()
    except ValueError as exc:
        raise MalformedResponseError(
            f"{provider} returned a response that is not valid JSON", provider=provider
        ) from exc


def read_bytes(response: requests.Response, provider: str) -> bytes:
    content = response.content
    if not content:
        raise MalformedResponseError(f"{provider} returned an empty body", provider=provider)
    return content

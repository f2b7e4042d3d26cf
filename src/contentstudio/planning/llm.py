from __future__ import annotations

import codecs
import json
import logging
from enum import Enum
from typing import Any, Callable, Dict, Generator, Iterator, List, Optional

import requests

from contentstudio.errors import ExtractionError, GenerationError, TransportError, UnknownModelError
from contentstudio.jobs.extract import first_present
from contentstudio.transport import read_json, send

logger = logging.getLogger(__name__)

PROVIDER = "OpenAI"
STREAM_TERMINATOR = "[DONE]"


class TextModel(str, Enum):
    GPT_4O = "gpt-4o"
    GPT_4O_MINI = "gpt-4o-mini"
    GPT_4_TURBO = "gpt-4-turbo"


def resolve_text_model(model: TextModel | str) -> TextModel:
    try:
        return TextModel(model)
    except ValueError as exc:
        raise UnknownModelError(f"Unknown text model '{model}'") from exc


class SSEDecoder:
    """Incremental decoder for server-sent event frames.

    Bytes may split a frame (or a UTF-8 sequence) anywhere, and one read may
    carry several frames, so input is buffered and only complete events,
    delimited by a blank line, are released.
    """

    def __init__(self) -> None:
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""

    def feed(self, chunk: bytes) -> List[str]:
        self._buffer += self._decoder.decode(chunk)
        self._buffer = self._buffer.replace("\r\n", "\n")
        events: List[str] = []
        while True:
            boundary = self._buffer.find("\n\n")
            if boundary == -1:
                return events
            raw, self._buffer = self._buffer[:boundary], self._buffer[boundary + 2 :]
            data = _event_data(raw)
            if data is not None:
                events.append(data)

    def flush(self) -> List[str]:
        remainder = (self._buffer + self._decoder.decode(b"", final=True)).replace("\r\n", "\n")
        self._buffer = ""
        data = _event_data(remainder)
        return [data] if data is not None else []


def _event_data(raw: str) -> Optional[str]:
    lines = []
    for line in raw.split("\n"):
        if not line.startswith("data:"):
            continue
        value = line[5:]
        lines.append(value[1:] if value.startswith(" ") else value)
    if not lines:
        return None
    return "\n".join(lines)


def _delta_text(frame: str) -> Optional[str]:
    try:
        payload = json.loads(frame)
    except json.JSONDecodeError:
        logger.warning("Skipping malformed stream frame: %r", frame[:80])
        return None
    content = first_present(payload, [("choices", 0, "delta", "content")])
    return content if isinstance(content, str) else None


class ChatCompletionClient:
    """OpenAI chat completions, streamed or in one piece.

    Holds no credentials: each call receives the key it should use.
    """

    def __init__(
        self,
        session: requests.Session | None = None,
        base_url: str = "https://api.openai.com/v1",
        request_timeout: float = 120.0,
        stream_temperature: float = 0.7,
        stream_max_tokens: int = 8000,
        temperature: float = 0.6,
        max_tokens: int = 2000,
    ) -> None:
        self.session = session or requests.Session()
        self.base_url = base_url.rstrip("/")
        self.request_timeout = request_timeout
        self.stream_temperature = stream_temperature
        self.stream_max_tokens = stream_max_tokens
        self.temperature = temperature
        self.max_tokens = max_tokens

    @property
    def url(self) -> str:
        return f"{self.base_url}/chat/completions"

    def iter_completion(
        self,
        credential: str,
        model: TextModel | str,
        system_prompt: str,
        user_prompt: str,
    ) -> Generator[str, None, str]:
        """Yield content deltas in arrival order; return the full text."""
        payload = self._payload(
            model,
            system_prompt,
            user_prompt,
            stream=True,
            temperature=self.stream_temperature,
            max_tokens=self.stream_max_tokens,
        )
        response = send(
            self.session,
            "POST",
            self.url,
            provider=PROVIDER,
            headers=self._headers(credential),
            json=payload,
            timeout=self.request_timeout,
            stream=True,
        )
        parts: List[str] = []
        try:
            for frame in _iter_frames(response):
                if frame.strip() == STREAM_TERMINATOR:
                    break
                text = _delta_text(frame)
                if text:
                    parts.append(text)
                    yield text
        except requests.RequestException as exc:
            logger.error("OpenAI stream interrupted after %d deltas: %s", len(parts), exc)
            raise TransportError(str(exc) or "OpenAI stream interrupted") from exc
        finally:
            response.close()
        full_text = "".join(parts)
        logger.info("OpenAI stream finished with %d deltas (%d chars)", len(parts), len(full_text))
        return full_text

    def stream_completion(
        self,
        credential: str,
        model: TextModel | str,
        system_prompt: str,
        user_prompt: str,
        on_chunk: Callable[[str], None],
        on_done: Callable[[str], None],
        on_error: Callable[[str], None],
    ) -> None:
        """Callback form of :meth:`iter_completion`.

        ``on_done`` and ``on_error`` are mutually exclusive and each fires at
        most once.
        """
        stream = self.iter_completion(credential, model, system_prompt, user_prompt)
        try:
            while True:
                on_chunk(next(stream))
        except StopIteration as stop:
            full_text = stop.value or ""
        except GenerationError as exc:
            on_error(str(exc))
            return
        on_done(full_text)

    def complete(
        self,
        credential: str,
        model: TextModel | str,
        system_prompt: str,
        user_prompt: str,
    ) -> str:
        payload = self._payload(
            model,
            system_prompt,
            user_prompt,
            stream=False,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
        )
        response = send(
            self.session,
            "POST",
            self.url,
            provider=PROVIDER,
            headers=self._headers(credential),
            json=payload,
            timeout=self.request_timeout,
        )
        data = read_json(response, PROVIDER)
        content = first_present(data, [("choices", 0, "message", "content")])
        if content is None:
            raise ExtractionError("No completion text in OpenAI response", provider=PROVIDER)
        return str(content).strip()

    # ------------------------------------------------------------------
    def _headers(self, credential: str) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {credential}",
            "Content-Type": "application/json",
        }

    def _payload(
        self,
        model: TextModel | str,
        system_prompt: str,
        user_prompt: str,
        *,
        stream: bool,
        temperature: float,
        max_tokens: int,
    ) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "model": resolve_text_model(model).value,
            "temperature": temperature,
            "max_tokens": max_tokens,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
        }
        if stream:
            payload["stream"] = True
        return payload


def _iter_frames(response: requests.Response) -> Iterator[str]:
    decoder = SSEDecoder()
    for chunk in response.iter_content(chunk_size=None):
        if chunk:
            yield from decoder.feed(chunk)
    yield from decoder.flush()

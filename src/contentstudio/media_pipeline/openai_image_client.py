from __future__ import annotations

import logging
from typing import Any, Dict

import requests

from contentstudio.errors import ExtractionError
from contentstudio.jobs.extract import first_present
from contentstudio.transport import read_json, send

from .base import ImageClient, catalogue_entry
from .model import ImageModel, ImageProvider, ImageRequest

logger = logging.getLogger(__name__)

OPENAI_IMAGE_MODELS: Dict[ImageModel, str] = {ImageModel.GPT_IMAGE_1: "gpt-image-1"}


class OpenAIImageClient(ImageClient):
    """Synchronous OpenAI image generation; no polling involved."""

    provider = ImageProvider.OPENAI
    label = "OpenAI"

    def __init__(
        self,
        session: requests.Session | None = None,
        base_url: str = "https://api.openai.com/v1",
        request_timeout: float = 180.0,
        size: str = "1024x1024",
        quality: str = "high",
    ) -> None:
        self.session = session or requests.Session()
        self.base_url = base_url.rstrip("/")
        self.request_timeout = request_timeout
        self.size = size
        self.quality = quality

    def build_request(self, request: ImageRequest) -> Dict[str, Any]:
        _, model = catalogue_entry(OPENAI_IMAGE_MODELS, ImageModel, request.model, self.label)
        return {
            "model": model,
            "prompt": request.prompt,
            "n": 1,
            "size": self.size,
            "quality": self.quality,
        }

    def generate(self, request: ImageRequest) -> str:
        payload = self.build_request(request)
        logger.info("Requesting OpenAI image from %s", payload["model"])
        response = send(
            self.session,
            "POST",
            f"{self.base_url}/images/generations",
            provider=self.label,
            headers={
                "Authorization": f"Bearer {request.credential}",
                "Content-Type": "application/json",
            },
            json=payload,
            timeout=self.request_timeout,
        )
        return self.interpret_response(read_json(response, self.label))

    def interpret_response(self, data: Any) -> str:
        url = first_present(data, [("data", 0, "url")])
        if isinstance(url, str):
            return url
        encoded = first_present(data, [("data", 0, "b64_json")])
        if isinstance(encoded, str):
            return f"data:image/png;base64,{encoded}"
        raise ExtractionError("No image in OpenAI response", provider=self.label)

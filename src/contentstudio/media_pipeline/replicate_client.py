from __future__ import annotations

import logging
from typing import Any, Dict

import requests

from contentstudio.jobs.engine import IMAGE_BUDGET, PollingBudget, PollOutcome, Submission, run_job
from contentstudio.jobs.extract import extract_asset, first_present
from contentstudio.transport import Sleeper, pause, read_json, send

from .base import ImageClient, catalogue_entry
from .model import ImageModel, ImageProvider, ImageRequest

logger = logging.getLogger(__name__)

REPLICATE_MODELS: Dict[ImageModel, str] = {
    ImageModel.FLUX_KONTEXT_PRO: "black-forest-labs/flux-kontext-pro",
    ImageModel.FLUX_11_PRO: "black-forest-labs/flux-1.1-pro",
    ImageModel.FLUX_DEV: "black-forest-labs/flux-dev",
}

# Only flux-dev exposes a negative prompt input.
NEGATIVE_PROMPT_MODELS = frozenset({ImageModel.FLUX_DEV})

# ``output`` is a single URL for some models and a list of URLs for others.
OUTPUT_PATHS = (("output", 0), ("output",))


def interpret_prediction(prediction: Any) -> PollOutcome:
    status = first_present(prediction, [("status",)])
    if status == "succeeded":
        return PollOutcome.succeeded(prediction)
    if status in ("failed", "canceled"):
        error = first_present(prediction, [("error",)])
        return PollOutcome.failed(str(error) if error else f"Replicate prediction {status}", prediction)
    return PollOutcome.pending(prediction)


class ReplicateImageClient(ImageClient):
    """Flux models through Replicate predictions.

    Submission asks the API to hold the connection until the prediction
    settles (``Prefer: wait``); predictions still running when it answers are
    polled through their ``urls.get`` link.
    """

    provider = ImageProvider.REPLICATE
    label = "Replicate"

    def __init__(
        self,
        session: requests.Session | None = None,
        base_url: str = "https://api.replicate.com/v1",
        request_timeout: float = 90.0,
        budget: PollingBudget = IMAGE_BUDGET,
        sleep: Sleeper = pause,
    ) -> None:
        self.session = session or requests.Session()
        self.base_url = base_url.rstrip("/")
        self.request_timeout = request_timeout
        self.budget = budget
        self.sleep = sleep

    def build_request(self, request: ImageRequest) -> Dict[str, Any]:
        model, _ = catalogue_entry(REPLICATE_MODELS, ImageModel, request.model, self.label)
        payload_input: Dict[str, Any] = {
            "prompt": request.prompt,
            "output_format": request.output_format or "png",
            "width": request.width or 1024,
            "height": request.height or 1024,
        }
        if request.reference_image_url:
            # Kontext models take the reference as an edit source; the others as a style prompt.
            key = "image_url" if "kontext" in model.value else "image_prompt"
            payload_input[key] = request.reference_image_url
        if request.negative_prompt and model in NEGATIVE_PROMPT_MODELS:
            payload_input["negative_prompt"] = request.negative_prompt
        return {"input": payload_input}

    def predictions_url(self, model: ImageModel) -> str:
        return f"{self.base_url}/models/{REPLICATE_MODELS[model]}/predictions"

    def generate(self, request: ImageRequest) -> str:
        model, slug = catalogue_entry(REPLICATE_MODELS, ImageModel, request.model, self.label)
        payload = self.build_request(request)
        credential = request.credential

        def submit() -> Submission:
            logger.info("Submitting Replicate prediction for %s", slug)
            response = send(
                self.session,
                "POST",
                self.predictions_url(model),
                provider=self.label,
                headers={**self._headers(credential), "Content-Type": "application/json", "Prefer": "wait"},
                json=payload,
                timeout=self.request_timeout,
            )
            prediction = read_json(response, self.label)
            handle = first_present(prediction, [("urls", "get")])
            if handle is None:
                prediction_id = first_present(prediction, [("id",)])
                handle = f"{self.base_url}/predictions/{prediction_id}" if prediction_id else None
            return Submission(interpret_prediction(prediction), handle)

        def poll(handle: str) -> PollOutcome:
            response = send(
                self.session,
                "GET",
                handle,
                provider=self.label,
                headers=self._headers(credential),
                timeout=self.request_timeout,
            )
            return interpret_prediction(read_json(response, self.label))

        return run_job(
            submit,
            poll,
            lambda prediction: extract_asset(prediction, OUTPUT_PATHS, self.label, "output URL"),
            budget=self.budget,
            label=f"Replicate {slug}",
            sleep=self.sleep,
        )

    @staticmethod
    def _headers(credential: str) -> Dict[str, str]:
        return {"Authorization": f"Bearer {credential}"}

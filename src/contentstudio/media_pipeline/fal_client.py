from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import requests

from contentstudio.errors import MissingPrerequisiteError, ProviderRejection
from contentstudio.jobs.engine import (
    IMAGE_BUDGET,
    VIDEO_BUDGET,
    PollingBudget,
    PollOutcome,
    Submission,
    run_job,
)
from contentstudio.jobs.extract import extract_asset, first_present
from contentstudio.transport import Sleeper, pause, read_json, send

from .base import ImageClient, catalogue_entry
from .model import VIDEO_MODELS, ImageModel, ImageProvider, ImageRequest, VideoModel, VideoRequest

logger = logging.getLogger(__name__)

PROVIDER = "FAL"

FAL_IMAGE_ENDPOINTS: Dict[ImageModel, str] = {
    ImageModel.FAL_FLUX_KONTEXT: "fal-ai/flux-pro/kontext",
    ImageModel.FAL_FLUX_PRO: "fal-ai/flux-pro/v1.1",
}

IMAGE_PATHS = (("images", 0, "url"), ("image", "url"))
VIDEO_PATHS = (("video", "url"), ("videos", 0, "url"), ("output", "video", "url"), ("url",))

DEFAULT_VIDEO_DURATION = 5


@dataclass(frozen=True)
class FalHandle:
    request_id: str
    status_url: str
    response_url: str

    def __str__(self) -> str:
        return self.request_id


class FalQueue:
    """Submit/status/result calls against the FAL queue.

    Shared by the image and video adapters; they differ only in endpoint,
    payload and where the asset sits in the final result.
    """

    def __init__(
        self,
        session: requests.Session | None = None,
        base_url: str = "https://queue.fal.run",
        request_timeout: float = 60.0,
    ) -> None:
        self.session = session or requests.Session()
        self.base_url = base_url.rstrip("/")
        self.request_timeout = request_timeout

    def submit(self, credential: str, endpoint: str, body: Dict[str, Any]) -> Submission:
        response = send(
            self.session,
            "POST",
            f"{self.base_url}/{endpoint}",
            provider=PROVIDER,
            headers={**self._headers(credential), "Content-Type": "application/json"},
            json=body,
            timeout=self.request_timeout,
        )
        submission = read_json(response, PROVIDER)
        request_id = first_present(submission, [("request_id",)])
        if not request_id:
            logger.info("FAL %s answered synchronously", endpoint)
            return Submission.immediate(submission)
        base = f"{self.base_url}/{endpoint}/requests/{request_id}"
        handle = FalHandle(
            request_id=str(request_id),
            status_url=first_present(submission, [("status_url",)]) or f"{base}/status",
            response_url=first_present(submission, [("response_url",)]) or base,
        )
        logger.info("FAL %s queued request %s", endpoint, request_id)
        return Submission.queued(handle)

    def poll(self, credential: str, handle: FalHandle) -> PollOutcome:
        try:
            response = send(
                self.session,
                "GET",
                handle.status_url,
                provider=PROVIDER,
                headers=self._headers(credential),
                timeout=self.request_timeout,
            )
        except ProviderRejection as exc:
            # The job keeps running when a status check is rejected.
            logger.warning("FAL status check for %s failed (%s); still waiting", handle, exc.status_code)
            return PollOutcome.pending()
        status = read_json(response, PROVIDER)
        state = first_present(status, [("status",)])
        if state == "COMPLETED":
            result = send(
                self.session,
                "GET",
                handle.response_url,
                provider=PROVIDER,
                headers=self._headers(credential),
                timeout=self.request_timeout,
            )
            return PollOutcome.succeeded(read_json(result, PROVIDER))
        if state == "FAILED":
            error = first_present(status, [("error", "message"), ("error",), ("detail",)])
            return PollOutcome.failed(error if isinstance(error, str) else None, status)
        return PollOutcome.pending(status)

    @staticmethod
    def _headers(credential: str) -> Dict[str, str]:
        return {"Authorization": f"Key {credential}"}


class FalImageClient(ImageClient):
    provider = ImageProvider.FAL
    label = PROVIDER

    def __init__(
        self,
        queue: FalQueue | None = None,
        budget: PollingBudget = IMAGE_BUDGET,
        sleep: Sleeper = pause,
    ) -> None:
        self.queue = queue or FalQueue()
        self.budget = budget
        self.sleep = sleep

    def build_request(self, request: ImageRequest) -> Dict[str, Any]:
        _, endpoint = catalogue_entry(FAL_IMAGE_ENDPOINTS, ImageModel, request.model, self.label)
        body: Dict[str, Any] = {
            "prompt": request.prompt,
            "num_images": 1,
            "image_size": "square_hd",
            "output_format": request.output_format or "png",
        }
        if request.reference_image_url and "kontext" in endpoint:
            body["image_url"] = request.reference_image_url
        return body

    def generate(self, request: ImageRequest) -> str:
        _, endpoint = catalogue_entry(FAL_IMAGE_ENDPOINTS, ImageModel, request.model, self.label)
        body = self.build_request(request)
        return run_job(
            lambda: self.queue.submit(request.credential, endpoint, body),
            lambda handle: self.queue.poll(request.credential, handle),
            lambda result: extract_asset(result, IMAGE_PATHS, self.label, "image URL"),
            budget=self.budget,
            label=f"FAL image {endpoint}",
            sleep=self.sleep,
        )


def clamp_duration(model: VideoModel, requested: Optional[float]) -> float:
    """Cap a requested clip length at the model's declared maximum."""
    info = VIDEO_MODELS[model]
    return min(requested or DEFAULT_VIDEO_DURATION, info.max_duration)


class FalVideoClient:
    """Image-to-video models hosted on the FAL queue."""

    label = "FAL video"

    def __init__(
        self,
        queue: FalQueue | None = None,
        budget: PollingBudget = VIDEO_BUDGET,
        sleep: Sleeper = pause,
    ) -> None:
        self.queue = queue or FalQueue()
        self.budget = budget
        self.sleep = sleep

    def build_request(self, request: VideoRequest) -> Dict[str, Any]:
        model, _ = catalogue_entry({m: i.endpoint for m, i in VIDEO_MODELS.items()}, VideoModel, request.model, PROVIDER)
        if not request.image_url:
            raise MissingPrerequisiteError("A start-frame image is required to generate a video")
        body: Dict[str, Any] = {
            "prompt": request.prompt,
            "image_url": request.image_url,
            "duration": f"{clamp_duration(model, request.duration_seconds):g}",
        }
        if request.aspect_ratio:
            body["aspect_ratio"] = request.aspect_ratio
        return body

    def generate(self, request: VideoRequest) -> str:
        body = self.build_request(request)
        info = VIDEO_MODELS[VideoModel(request.model)]
        logger.info("Requesting %s clip of %ss", info.label, body["duration"])
        return run_job(
            lambda: self.queue.submit(request.credential, info.endpoint, body),
            lambda handle: self.queue.poll(request.credential, handle),
            lambda result: extract_asset(result, VIDEO_PATHS, PROVIDER, "video URL"),
            budget=self.budget,
            label=f"FAL video {info.label}",
            sleep=self.sleep,
        )

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional

from contentstudio.errors import JobTimeoutError, MalformedResponseError, ProviderTerminalFailure
from contentstudio.transport import Sleeper, pause

logger = logging.getLogger(__name__)


class JobState(str, Enum):
    SUBMITTED = "submitted"
    POLLING = "polling"
    COMPLETED = "completed"
    FAILED = "failed"
    TIMEOUT = "timeout"


@dataclass(frozen=True)
class PollOutcome:
    """What a provider said about a job at one point in time."""

    state: JobState
    payload: Any = None
    detail: Optional[str] = None

    @classmethod
    def succeeded(cls, payload: Any) -> "PollOutcome":
        return cls(JobState.COMPLETED, payload=payload)

    @classmethod
    def failed(cls, detail: Optional[str] = None, payload: Any = None) -> "PollOutcome":
        return cls(JobState.FAILED, payload=payload, detail=detail)

    @classmethod
    def pending(cls, payload: Any = None) -> "PollOutcome":
        return cls(JobState.POLLING, payload=payload)

    @property
    def terminal(self) -> bool:
        return self.state in (JobState.COMPLETED, JobState.FAILED)


@dataclass(frozen=True)
class Submission:
    """Result of a submit call: a terminal outcome, or a handle to poll."""

    outcome: PollOutcome
    handle: Any = None

    @classmethod
    def immediate(cls, payload: Any) -> "Submission":
        return cls(PollOutcome.succeeded(payload))

    @classmethod
    def queued(cls, handle: Any, outcome: Optional[PollOutcome] = None) -> "Submission":
        return cls(outcome or PollOutcome.pending(), handle)


@dataclass(frozen=True)
class PollingBudget:
    max_attempts: int
    interval: float

    @property
    def total_seconds(self) -> float:
        return self.max_attempts * self.interval

    def describe(self) -> str:
        total = self.total_seconds
        if total >= 60:
            return f"{total / 60:g} minutes"
        return f"{total:g} seconds"


IMAGE_BUDGET = PollingBudget(max_attempts=60, interval=2.0)
VIDEO_BUDGET = PollingBudget(max_attempts=150, interval=3.0)


def run_job(
    submit: Callable[[], Submission],
    poll: Callable[[Any], PollOutcome],
    extract: Callable[[Any], str],
    *,
    budget: PollingBudget,
    label: str,
    sleep: Sleeper = pause,
) -> str:
    """Drive one job from submission to an asset URL.

    ``submit`` either settles the job immediately or hands back a handle; in
    the latter case ``poll`` is called after every ``budget.interval`` wait,
    at most ``budget.max_attempts`` times. ``poll`` is expected to fetch the
    final payload itself when it reports success. Nothing is retried: a
    failed or timed-out job is raised to the caller, who may start over.
    """
    submission = submit()
    outcome = submission.outcome
    logger.info("%s %s", label, JobState.SUBMITTED.value)

    if not outcome.terminal:
        if submission.handle is None:
            raise MalformedResponseError(f"{label} submission returned no job handle")
        logger.info(
            "%s queued as %s; polling every %ss for up to %s",
            label,
            submission.handle,
            budget.interval,
            budget.describe(),
        )
        for attempt in range(1, budget.max_attempts + 1):
            sleep(budget.interval)
            outcome = poll(submission.handle)
            logger.debug("%s poll %d/%d: %s", label, attempt, budget.max_attempts, outcome.state.value)
            if outcome.terminal:
                break
        else:
            logger.warning("%s %s after %d polls", label, JobState.TIMEOUT.value, budget.max_attempts)
            raise JobTimeoutError(
                f"{label} timed out after {budget.describe()} ({budget.max_attempts} polls)"
            )

    if outcome.state is JobState.FAILED:
        raise ProviderTerminalFailure(outcome.detail or f"{label} failed")
    asset = extract(outcome.payload)
    logger.info("%s %s: %s", label, JobState.COMPLETED.value, _abbreviate(asset))
    return asset


def _abbreviate(value: str, limit: int = 120) -> str:
    if len(value) <= limit:
        return value
    return value[:limit] + "..."

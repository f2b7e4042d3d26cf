from __future__ import annotations


class GenerationError(RuntimeError):
    """Base class for every failure surfaced by the generation core.

    The string form of each instance is the single human-readable message
    handed to the caller; provider-native error payloads never travel further.
    """


class TransportError(GenerationError):
    """Raised when a provider could not be reached or no response arrived."""


class ProviderError(GenerationError):
    """Raised when a provider answered but the generation did not succeed."""

    def __init__(self, message: str, provider: str | None = None) -> None:
        super().__init__(message)
        self.provider = provider


class ProviderRejection(ProviderError):
    """Raised for a non-success HTTP status."""

    def __init__(self, message: str, provider: str | None = None, status_code: int | None = None) -> None:
        super().__init__(message, provider)
        self.status_code = status_code


class ProviderTerminalFailure(ProviderError):
    """Raised when a queued job reports a failed or errored state."""


class MalformedResponseError(ProviderError):
    """Raised when a success response body cannot be decoded."""


class ExtractionError(MalformedResponseError):
    """Raised when a successful payload carries no recognizable asset."""


class JobTimeoutError(GenerationError, TimeoutError):
    """Raised when polling exhausts its attempt budget without a terminal state."""


class PlanParseError(GenerationError, ValueError):
    """Raised when model output cannot be decoded into a content plan."""


class MissingCredentialError(GenerationError):
    """Raised when the credential for the selected provider is empty."""


class MissingPrerequisiteError(GenerationError):
    """Raised when a unit depends on an asset that has not been generated yet."""


class UnknownModelError(GenerationError, ValueError):
    """Raised when a model identifier is not part of the provider's catalogue."""


class UnknownProviderError(GenerationError, ValueError):
    """Raised when a provider identifier names no registered adapter."""


class AssetWriteError(GenerationError):
    """Raised when a generated asset cannot be written to local storage."""

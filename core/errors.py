# core/errors.py
"""Exception hierarchy shared by the generation backend and the engine."""

from __future__ import annotations


class GenerationError(Exception):
    """Base class for every failure the coherence engine reports."""

    attempts: int = 0
    failures: tuple[str, ...] = ()

    @property
    def kind(self) -> str:
        return type(self).__name__


class InvalidInputError(GenerationError):
    """Empty or malformed job input. Raised before any backend call."""


class BackendError(GenerationError):
    """A generation backend call failed."""


class BackendTransientError(BackendError):
    """A failure worth retrying (timeouts, throttling, server hiccups)."""


class BackendTimeoutError(BackendTransientError):
    """The backend did not answer within the per-call timeout."""


class RateLimitedError(BackendTransientError):
    """The backend throttled the request."""

    def __init__(self, message: str, retry_after: float | None = None) -> None:
        super().__init__(message)
        self.retry_after = retry_after


class BackendFatalError(BackendError):
    """Non-retryable backend rejection."""


class RetryExhaustedError(GenerationError):
    """A transient failure persisted past the retry ceiling."""

    def __init__(
        self,
        attempts: int,
        last_error: BaseException | None,
        failures: list[str] | None = None,
    ) -> None:
        super().__init__(
            f"Gave up after {attempts} attempt(s). Last error: {last_error}"
        )
        self.attempts = attempts
        self.last_error = last_error
        self.failures = tuple(failures or ())

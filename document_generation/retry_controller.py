# document_generation/retry_controller.py
"""Bounded retries with exponential backoff around single backend calls."""

from __future__ import annotations

import asyncio
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

import structlog
from config import settings
from core.capacity import BackendCapacityPool
from core.errors import (
    BackendFatalError,
    BackendTimeoutError,
    BackendTransientError,
    GenerationError,
    RateLimitedError,
    RetryExhaustedError,
)

logger = structlog.get_logger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """Attempt ceiling, backoff curve and per-call timeout."""

    max_attempts: int = 3
    base_delay: float = 3.0
    max_delay: float = 60.0
    call_timeout: float | None = 180.0

    @classmethod
    def from_settings(cls) -> RetryPolicy:
        return cls(
            max_attempts=settings.LLM_RETRY_ATTEMPTS,
            base_delay=settings.LLM_RETRY_DELAY_SECONDS,
            max_delay=settings.LLM_RETRY_MAX_DELAY_SECONDS,
            call_timeout=settings.LLM_CALL_TIMEOUT,
        )


@dataclass(frozen=True)
class RetryOutcome(Generic[T]):
    value: T
    attempts: int


class RetryController:
    """Run an operation until it succeeds, fails fatally or runs out of attempts.

    Each attempt holds one slot of the shared capacity pool (when given) and
    is bounded by the policy's call timeout. A timeout is an ordinary
    transient failure.
    """

    def __init__(
        self,
        policy: RetryPolicy | None = None,
        capacity: BackendCapacityPool | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        jitter: Callable[[float, float], float] = random.uniform,
    ) -> None:
        self.policy = policy or RetryPolicy.from_settings()
        self.capacity = capacity
        self._sleep = sleep
        self._jitter = jitter

    def backoff_delay(self, attempt_index: int, error: BaseException | None = None) -> float:
        """Delay before the attempt following ``attempt_index`` (0-based)."""
        delay = self.policy.base_delay * (2**attempt_index)
        delay = min(self.policy.max_delay, delay + self._jitter(0, delay / 2))
        if isinstance(error, RateLimitedError) and error.retry_after is not None:
            delay = max(delay, min(error.retry_after, self.policy.max_delay))
        return delay

    async def _attempt(self, operation: Callable[[], Awaitable[T]]) -> T:
        if self.capacity is None:
            return await self._with_timeout(operation)
        async with self.capacity.slot():
            return await self._with_timeout(operation)

    async def _with_timeout(self, operation: Callable[[], Awaitable[T]]) -> T:
        if self.policy.call_timeout is None:
            return await operation()
        try:
            return await asyncio.wait_for(operation(), timeout=self.policy.call_timeout)
        except asyncio.TimeoutError as exc:
            raise BackendTimeoutError(
                f"No response within {self.policy.call_timeout:.1f}s"
            ) from exc

    async def run(
        self, operation: Callable[[], Awaitable[T]], **log_context: Any
    ) -> RetryOutcome[T]:
        """Return the operation's value and the number of attempts it took.

        Raises:
            BackendFatalError: the backend rejected the call outright.
            RetryExhaustedError: transient failures persisted past the ceiling.
        """
        log = logger.bind(**log_context)
        failures: list[str] = []
        last_error: BaseException | None = None
        for attempt_index in range(self.policy.max_attempts):
            attempt = attempt_index + 1
            try:
                value = await self._attempt(operation)
            except BackendTransientError as exc:
                last_error = exc
                failures.append(f"attempt {attempt}: {exc.kind}: {exc}")
                log.warning(
                    "Transient backend failure.",
                    attempt=attempt,
                    max_attempts=self.policy.max_attempts,
                    error_kind=exc.kind,
                    error=str(exc),
                )
            except BackendFatalError as exc:
                failures.append(f"attempt {attempt}: {exc.kind}: {exc}")
                log.error(
                    "Fatal backend failure; not retrying.",
                    attempt=attempt,
                    error=str(exc),
                )
                exc.attempts = attempt
                exc.failures = tuple(failures)
                raise
            except GenerationError:
                raise
            except Exception as exc:
                log.error("Unexpected backend failure.", attempt=attempt, exc_info=True)
                fatal = BackendFatalError(f"Unexpected backend failure: {exc!r}")
                failures.append(f"attempt {attempt}: {fatal.kind}: {fatal}")
                fatal.attempts = attempt
                fatal.failures = tuple(failures)
                raise fatal from exc
            else:
                if attempt > 1:
                    log.info("Backend call succeeded after retry.", attempts=attempt)
                return RetryOutcome(value=value, attempts=attempt)

            if attempt < self.policy.max_attempts:
                delay = self.backoff_delay(attempt_index, last_error)
                log.info(
                    f"Retrying in {delay:.2f} seconds due to: {type(last_error).__name__}."
                )
                await self._sleep(delay)

        log.error(
            f"All {self.policy.max_attempts} attempts failed. Last error: {last_error}"
        )
        raise RetryExhaustedError(self.policy.max_attempts, last_error, failures)

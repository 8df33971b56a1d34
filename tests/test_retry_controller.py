# tests/test_retry_controller.py
import asyncio

import pytest
from core.capacity import BackendCapacityPool
from core.errors import (
    BackendFatalError,
    BackendTimeoutError,
    BackendTransientError,
    InvalidInputError,
    RateLimitedError,
    RetryExhaustedError,
)
from document_generation.retry_controller import RetryController, RetryPolicy


class FlakyOperation:
    def __init__(self, failures: list[BaseException], result: str = "ok") -> None:
        self.failures = list(failures)
        self.result = result
        self.calls = 0

    async def __call__(self) -> str:
        self.calls += 1
        if self.failures:
            raise self.failures.pop(0)
        return self.result


def _controller(sleeps: list[float], **policy_kwargs) -> RetryController:
    async def fake_sleep(delay: float) -> None:
        sleeps.append(delay)

    policy = RetryPolicy(
        **{"max_attempts": 3, "base_delay": 1.0, "max_delay": 8.0, "call_timeout": None, **policy_kwargs}
    )
    return RetryController(policy, sleep=fake_sleep, jitter=lambda low, high: 0.0)


@pytest.mark.asyncio
async def test_succeeds_after_transient_failures():
    sleeps: list[float] = []
    op = FlakyOperation([BackendTimeoutError("slow"), BackendTransientError("503")])
    outcome = await _controller(sleeps).run(op, job_id=1, unit_index=2)
    assert outcome.value == "ok"
    assert outcome.attempts == 3
    assert op.calls == 3
    assert sleeps == [1.0, 2.0]


@pytest.mark.asyncio
async def test_exhaustion_reports_every_attempt():
    sleeps: list[float] = []
    op = FlakyOperation([BackendTransientError(f"boom {i}") for i in range(5)])
    with pytest.raises(RetryExhaustedError) as info:
        await _controller(sleeps).run(op)
    assert op.calls == 3
    assert info.value.attempts == 3
    assert len(info.value.failures) == 3
    assert "boom 2" in str(info.value.last_error)
    assert len(sleeps) == 2


@pytest.mark.asyncio
async def test_fatal_error_is_not_retried():
    sleeps: list[float] = []
    op = FlakyOperation([BackendFatalError("400 bad request")])
    with pytest.raises(BackendFatalError) as info:
        await _controller(sleeps).run(op)
    assert op.calls == 1
    assert info.value.attempts == 1
    assert sleeps == []


@pytest.mark.asyncio
async def test_fatal_after_transient_keeps_history():
    sleeps: list[float] = []
    op = FlakyOperation([BackendTransientError("503"), BackendFatalError("401")])
    with pytest.raises(BackendFatalError) as info:
        await _controller(sleeps).run(op)
    assert info.value.attempts == 2
    assert len(info.value.failures) == 2


@pytest.mark.asyncio
async def test_other_generation_errors_propagate_untouched():
    op = FlakyOperation([InvalidInputError("bad")])
    with pytest.raises(InvalidInputError):
        await _controller([]).run(op)
    assert op.calls == 1


@pytest.mark.asyncio
async def test_unexpected_exception_becomes_fatal():
    op = FlakyOperation([KeyError("choices")])
    with pytest.raises(BackendFatalError) as info:
        await _controller([]).run(op)
    assert isinstance(info.value.__cause__, KeyError)


def test_backoff_is_capped_and_jittered():
    controller = RetryController(
        RetryPolicy(base_delay=2.0, max_delay=10.0),
        jitter=lambda low, high: high,
    )
    assert controller.backoff_delay(0) == 3.0
    assert controller.backoff_delay(1) == 6.0
    assert controller.backoff_delay(2) == 10.0
    assert controller.backoff_delay(5) == 10.0


def test_backoff_honors_retry_after():
    controller = RetryController(
        RetryPolicy(base_delay=1.0, max_delay=30.0), jitter=lambda low, high: 0.0
    )
    assert controller.backoff_delay(0, RateLimitedError("slow down", retry_after=12)) == 12
    assert controller.backoff_delay(0, RateLimitedError("slow down", retry_after=90)) == 30
    assert controller.backoff_delay(0, RateLimitedError("slow down")) == 1.0


@pytest.mark.asyncio
async def test_call_timeout_is_transient():
    attempts = 0

    async def hang() -> str:
        nonlocal attempts
        attempts += 1
        if attempts == 1:
            await asyncio.sleep(1)
        return "late but fine"

    sleeps: list[float] = []
    outcome = await _controller(sleeps, call_timeout=0.01).run(hang)
    assert outcome.value == "late but fine"
    assert outcome.attempts == 2


@pytest.mark.asyncio
async def test_attempts_hold_a_capacity_slot():
    pool = BackendCapacityPool(1)
    seen: list[int] = []

    async def op() -> str:
        seen.append(pool.in_use)
        return "ok"

    controller = RetryController(RetryPolicy(call_timeout=None), capacity=pool)
    await controller.run(op)
    assert seen == [1]
    assert pool.in_use == 0

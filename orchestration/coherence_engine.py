# orchestration/coherence_engine.py
"""Drive one generation job from plan to assembled output as an event stream."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import aclosing
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any

import structlog
from config import settings
from core.capacity import BackendCapacityPool
from core.errors import GenerationError, InvalidInputError, RetryExhaustedError
from core.llm_interface import GenerationBackend
from document_generation import (
    ChunkGenerator,
    RetryController,
    RetryPolicy,
    assemble_output,
    build_plan,
    coherence_tracker,
    rebalance_target_words,
)

from models import (
    ChunkResult,
    CoherenceState,
    CompleteEvent,
    ErrorEvent,
    GenerationEvent,
    GenerationJob,
    GenerationMode,
    JobStatus,
    PlanUnit,
    ProgressEvent,
)
from utils.text_processing import count_words

logger = structlog.get_logger(__name__)

FAILURE_POLICIES = ("abort", "gap")


class EngineState(Enum):
    """Lifecycle of a single job run."""

    IDLE = auto()
    RUNNING = auto()
    COMPLETED = auto()
    FAILED = auto()
    CANCELLED = auto()


@dataclass
class JobRun:
    """Mutable bookkeeping for one job. Discarded when the stream ends."""

    job: GenerationJob
    units: list[PlanUnit] = field(default_factory=list)
    coherence: CoherenceState = field(default_factory=CoherenceState)
    results: list[ChunkResult] = field(default_factory=list)
    state: EngineState = EngineState.IDLE

    def finish(self, state: EngineState, status: JobStatus) -> None:
        self.state = state
        self.job.status = status
        if state is not EngineState.COMPLETED:
            self.coherence = CoherenceState()
            self.results.clear()


class CoherenceEngine:
    """Staged generator for documents longer than one backend call can produce.

    Jobs run independently. The only thing they share is the capacity pool,
    so concurrent jobs queue for backend slots rather than fail.
    """

    def __init__(
        self,
        backend: GenerationBackend,
        capacity: BackendCapacityPool | None = None,
        retry_policy: RetryPolicy | None = None,
        failure_policy: str | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        policy = (failure_policy or settings.CHUNK_FAILURE_POLICY).lower()
        if policy not in FAILURE_POLICIES:
            raise ValueError(
                f"failure_policy must be one of {FAILURE_POLICIES}, got {policy!r}"
            )
        self.backend = backend
        self.failure_policy = policy
        self.capacity = capacity or BackendCapacityPool()
        self.retry = RetryController(retry_policy, self.capacity, sleep=sleep)
        self.chunks = ChunkGenerator(backend, self.retry)
        self._sleep = sleep

    async def process_large_document(
        self,
        job_id: int,
        mode: GenerationMode | str,
        prompt: str,
        input_text: str | None = "",
        cancel_event: asyncio.Event | None = None,
    ) -> AsyncIterator[GenerationEvent]:
        """Yield ``progress`` events in plan order, then one terminal event.

        The terminal event is ``complete`` (with the assembled output) or
        ``error``. Closing the stream early, or setting ``cancel_event``,
        cancels the job before its next unit. ``job_id`` is only echoed in
        the events.
        """
        job = GenerationJob(
            id=job_id, mode=mode, prompt=prompt or "", input_text=input_text or ""
        )
        async with aclosing(self.run_job(job, cancel_event)) as events:
            async for event in events:
                yield event

    async def run_job(
        self, job: GenerationJob, cancel_event: asyncio.Event | None = None
    ) -> AsyncIterator[GenerationEvent]:
        """Event stream for a job the caller already holds. ``job.status`` is
        kept current as the run moves through its states."""
        run = JobRun(job=job)
        job_id = job.id
        mode = job.mode
        log = logger.bind(job_id=job_id, mode=getattr(mode, "value", mode))

        try:
            run.units = build_plan(mode, run.job.prompt, run.job.input_text)
        except InvalidInputError as exc:
            log.warning("Rejected job input.", error=str(exc))
            run.finish(EngineState.FAILED, JobStatus.FAILED)
            yield ErrorEvent(job_id=job_id, message=str(exc), error_kind=exc.kind)
            return

        run.job.mode = GenerationMode(mode)
        run.job.status = JobStatus.RUNNING
        run.state = EngineState.RUNNING
        run.coherence = coherence_tracker.initialize(
            run.job.mode, run.job.prompt, run.job.input_text
        )
        total = len(run.units)
        log.info(f"Starting job with {total} planned unit(s).", units=total)

        try:
            for unit in run.units:
                if unit.index > 0 and settings.CHUNK_PAUSE_SECONDS > 0:
                    await self._sleep(settings.CHUNK_PAUSE_SECONDS)
                if cancel_event is not None and cancel_event.is_set():
                    log.info("Cancellation requested.", next_unit=unit.index)
                    run.finish(EngineState.CANCELLED, JobStatus.CANCELLED)
                    return

                written = sum(count_words(t) for t in run.coherence.accumulated_output)
                target = rebalance_target_words(run.units, unit, written)
                try:
                    result = await self.chunks.generate_chunk(
                        run.job,
                        unit,
                        run.coherence,
                        total,
                        target_words=target if unit.target_words else None,
                    )
                except GenerationError as exc:
                    result = ChunkResult(
                        unit_index=unit.index,
                        text="",
                        succeeded=False,
                        attempts=exc.attempts,
                        error=exc,
                    )
                except Exception as exc:
                    log.error(
                        "Unexpected failure while generating unit.",
                        unit_index=unit.index,
                        exc_info=True,
                    )
                    run.finish(EngineState.FAILED, JobStatus.FAILED)
                    yield ErrorEvent(
                        job_id=job_id,
                        message=f"Unexpected failure: {exc}",
                        unit_index=unit.index,
                        error_kind=type(exc).__name__,
                    )
                    return

                run.results.append(result)
                if result.succeeded:
                    run.coherence = coherence_tracker.update(run.coherence, result.text)
                    yield ProgressEvent(
                        job_id=job_id,
                        unit_index=unit.index,
                        title=unit.title,
                        words=count_words(result.text),
                        attempts=result.attempts,
                    )
                    continue

                error = result.error
                if self.failure_policy == "gap" and isinstance(error, RetryExhaustedError):
                    log.warning(
                        "Unit left as a gap.", unit_index=unit.index, error=str(error)
                    )
                    yield ProgressEvent(
                        job_id=job_id,
                        unit_index=unit.index,
                        title=unit.title,
                        words=0,
                        attempts=result.attempts,
                        gap=True,
                    )
                    continue

                log.error(
                    "Job aborted.",
                    unit_index=unit.index,
                    error_kind=error.kind if error else None,
                )
                run.finish(EngineState.FAILED, JobStatus.FAILED)
                yield ErrorEvent(
                    job_id=job_id,
                    message=f"Unit {unit.index + 1} ({unit.title}) failed: {error}",
                    unit_index=unit.index,
                    error_kind=error.kind if error else "GenerationError",
                    attempts=result.attempts,
                    failures=list(error.failures) if error else [],
                )
                return

            output = assemble_output(run.job.mode, run.units, run.results)
            words = count_words(output)
            run.finish(EngineState.COMPLETED, JobStatus.COMPLETED)
            log.info("Job complete.", units=total, words=words)
            yield CompleteEvent(
                job_id=job_id, output=output, unit_count=total, words=words
            )
        except (GeneratorExit, asyncio.CancelledError):
            if run.state is EngineState.RUNNING:
                log.info("Consumer detached; job cancelled.")
                run.finish(EngineState.CANCELLED, JobStatus.CANCELLED)
            raise

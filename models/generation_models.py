# models/generation_models.py
"""Data structures shared by the plan builder, chunk generator and engine."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

from core.errors import GenerationError


class GenerationMode(str, Enum):
    """Kinds of output the engine can produce."""

    OUTLINE = "outline"
    DOCUMENT = "document"


class JobStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class UnitPosition(str, Enum):
    """Where a plan unit sits in the finished text."""

    FIRST = "first"
    MIDDLE = "middle"
    FINAL = "final"


@dataclass
class GenerationJob:
    """One end-to-end run. Ephemeral; never persisted."""

    id: int
    mode: GenerationMode
    prompt: str
    input_text: str = ""
    status: JobStatus = JobStatus.PENDING


@dataclass(frozen=True)
class PlanUnit:
    """A planned section with its generation instructions."""

    index: int
    title: str
    instructions: str
    position: UnitPosition = UnitPosition.MIDDLE
    target_words: int = 0
    source_excerpt: str = ""


@dataclass(frozen=True)
class ChunkResult:
    """Outcome of generating one plan unit."""

    unit_index: int
    text: str
    succeeded: bool
    attempts: int
    error: GenerationError | None = None


@dataclass(frozen=True)
class CoherenceState:
    """Bounded running memory of what has been generated so far."""

    running_summary: str = ""
    entities: tuple[str, ...] = ()
    accumulated_output: tuple[str, ...] = ()
    digests: tuple[str, ...] = ()
    key_points: tuple[str, ...] = ()


class _EventBase(BaseModel):
    model_config = ConfigDict(frozen=True)

    job_id: int


class ProgressEvent(_EventBase):
    """A plan unit finished."""

    type: Literal["progress"] = "progress"
    unit_index: int
    title: str
    words: int = 0
    attempts: int = 1
    gap: bool = False


class CompleteEvent(_EventBase):
    """Terminal success event carrying the assembled output."""

    type: Literal["complete"] = "complete"
    output: str
    unit_count: int
    words: int = 0


class ErrorEvent(_EventBase):
    """Terminal failure event."""

    type: Literal["error"] = "error"
    message: str
    unit_index: int | None = None
    error_kind: str = "GenerationError"
    attempts: int = 0
    failures: list[str] = Field(default_factory=list)


GenerationEvent = Annotated[
    Union[ProgressEvent, CompleteEvent, ErrorEvent], Field(discriminator="type")
]

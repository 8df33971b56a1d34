"""Central package for coherence engine data models."""

from .generation_models import (
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
    UnitPosition,
)

__all__ = [
    "ChunkResult",
    "CoherenceState",
    "CompleteEvent",
    "ErrorEvent",
    "GenerationEvent",
    "GenerationJob",
    "GenerationMode",
    "JobStatus",
    "PlanUnit",
    "ProgressEvent",
    "UnitPosition",
]

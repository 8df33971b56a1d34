"""Planning, per-unit generation and assembly for large documents."""

from . import coherence_tracker
from .chunk_generator import ChunkGenerator
from .output_assembly import assemble_output, gap_marker
from .plan_builder import build_plan, estimate_target_words, rebalance_target_words
from .retry_controller import RetryController, RetryOutcome, RetryPolicy

__all__ = [
    "ChunkGenerator",
    "RetryController",
    "RetryOutcome",
    "RetryPolicy",
    "assemble_output",
    "build_plan",
    "coherence_tracker",
    "estimate_target_words",
    "gap_marker",
    "rebalance_target_words",
]

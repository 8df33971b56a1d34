# document_generation/chunk_generator.py
"""Generate the text for one plan unit."""

from __future__ import annotations

import structlog
from core.errors import BackendFatalError, BackendTransientError, RetryExhaustedError
from core.llm_interface import GenerationBackend
from prompt_renderer import render_prompt

from models import (
    ChunkResult,
    CoherenceState,
    GenerationJob,
    GenerationMode,
    PlanUnit,
)
from utils.text_processing import clean_model_response

from . import coherence_tracker
from .retry_controller import RetryController

logger = structlog.get_logger(__name__)

_INSTRUCTION_TEMPLATES = {
    GenerationMode.OUTLINE: "outline_unit.j2",
    GenerationMode.DOCUMENT: "document_unit.j2",
}


class ChunkGenerator:
    """Drive the backend once per plan unit, through the retry controller."""

    def __init__(self, backend: GenerationBackend, retry: RetryController) -> None:
        self.backend = backend
        self.retry = retry

    def build_instruction(
        self,
        job: GenerationJob,
        unit: PlanUnit,
        total_units: int,
        target_words: int | None = None,
    ) -> str:
        """Render the instruction text for ``unit``. ``target_words`` overrides
        the plan's target."""
        return render_prompt(
            _INSTRUCTION_TEMPLATES[job.mode],
            {
                "prompt": job.prompt.strip(),
                "title": unit.title,
                "number": unit.index + 1,
                "total": total_units,
                "instructions": unit.instructions,
                "target_words": (
                    unit.target_words if target_words is None else target_words
                ),
                "source_excerpt": unit.source_excerpt,
            },
        )

    async def generate_chunk(
        self,
        job: GenerationJob,
        unit: PlanUnit,
        state: CoherenceState,
        total_units: int | None = None,
        target_words: int | None = None,
    ) -> ChunkResult:
        """Return the outcome for ``unit``. Backend failures are reported in the
        result, never raised."""
        context_text = coherence_tracker.context_for(state, unit)
        instruction_text = self.build_instruction(
            job,
            unit,
            total_units if total_units is not None else unit.index + 1,
            target_words,
        )

        async def _call() -> str:
            raw = await self.backend.generate(context_text, instruction_text)
            text = clean_model_response(raw, title=unit.title)
            if not text:
                raise BackendTransientError("Backend returned an empty completion.")
            return text

        try:
            outcome = await self.retry.run(
                _call, job_id=job.id, unit_index=unit.index, unit_title=unit.title
            )
        except (RetryExhaustedError, BackendFatalError) as exc:
            logger.error(
                "Chunk generation failed.",
                job_id=job.id,
                unit_index=unit.index,
                error_kind=exc.kind,
                attempts=exc.attempts,
            )
            return ChunkResult(
                unit_index=unit.index,
                text="",
                succeeded=False,
                attempts=exc.attempts,
                error=exc,
            )

        logger.info(
            "Chunk generated.",
            job_id=job.id,
            unit_index=unit.index,
            attempts=outcome.attempts,
            chars=len(outcome.value),
        )
        return ChunkResult(
            unit_index=unit.index,
            text=outcome.value,
            succeeded=True,
            attempts=outcome.attempts,
        )

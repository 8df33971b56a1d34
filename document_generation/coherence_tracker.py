# document_generation/coherence_tracker.py
"""Bounded running memory that grounds each new chunk in what came before.

Each backend call receives the running summary, the established terms and
the current unit's instructions instead of the full text written so far, so
per-call input stays under a fixed ceiling however long the document grows.
"""

from __future__ import annotations

import dataclasses

import structlog
from config import settings
from prompt_renderer import render_prompt

from models import CoherenceState, GenerationMode, PlanUnit, UnitPosition
from utils.text_processing import (
    clip_text,
    extract_key_terms,
    merge_terms,
    split_paragraphs,
    split_sentences,
)

logger = structlog.get_logger(__name__)

_OMITTED_LINE = "[...]"


def initialize(
    mode: GenerationMode | str, prompt: str, input_text: str | None = ""
) -> CoherenceState:
    """Return the empty state a job starts from."""
    logger.debug(
        "Initialized coherence state.",
        mode=GenerationMode(mode).value,
        prompt_chars=len(prompt),
        input_chars=len(input_text or ""),
    )
    return CoherenceState()


def _digest(chunk_text: str) -> str:
    """Lead sentence plus closing sentence of a chunk, each capped."""
    limit = settings.DIGEST_SENTENCE_MAX_CHARS
    sentences = split_sentences(chunk_text)
    if not sentences:
        return clip_text(" ".join(chunk_text.split()), limit)
    lead = clip_text(sentences[0], limit)
    if len(sentences) == 1:
        return lead
    return f"{lead} ... {clip_text(sentences[-1], limit)}"


def _compose_summary(digests: tuple[str, ...]) -> str:
    """Number the digests and fit them into the summary budget.

    The first digest is always kept as an anchor; the oldest of the rest are
    dropped first.
    """
    budget = settings.SUMMARY_MAX_CHARS
    lines = [f"[{i + 1}] {d}" for i, d in enumerate(digests)]
    joined = "\n".join(lines)
    if len(joined) <= budget:
        return joined
    anchor, tail = lines[0], lines[1:]
    while tail and len("\n".join([anchor, _OMITTED_LINE, *tail])) > budget:
        tail.pop(0)
    return clip_text("\n".join([anchor, _OMITTED_LINE, *tail]), budget)


def _key_points(chunk_text: str) -> tuple[str, ...]:
    """Quotable statements from the opening chunk: first sentence per paragraph."""
    points: list[str] = []
    for paragraph in split_paragraphs(chunk_text):
        sentences = split_sentences(paragraph)
        if sentences and len(sentences[0].split()) >= 4:
            points.append(clip_text(sentences[0], settings.DIGEST_SENTENCE_MAX_CHARS))
        if len(points) >= settings.MAX_KEY_POINTS:
            break
    return tuple(points)


def update(state: CoherenceState, chunk_text: str) -> CoherenceState:
    """Fold a newly generated chunk into the state. Returns a new state."""
    digests = state.digests + (_digest(chunk_text),)
    entities = merge_terms(
        state.entities,
        extract_key_terms(chunk_text),
        limit=settings.MAX_TRACKED_ENTITIES,
        similarity_threshold=settings.ENTITY_SIMILARITY_THRESHOLD,
    )
    key_points = state.key_points
    if not state.accumulated_output:
        key_points = _key_points(chunk_text)

    new_state = dataclasses.replace(
        state,
        running_summary=_compose_summary(digests),
        entities=tuple(entities),
        accumulated_output=state.accumulated_output + (chunk_text,),
        digests=digests,
        key_points=key_points,
    )
    logger.debug(
        "Coherence state updated.",
        chunks=len(new_state.accumulated_output),
        summary_chars=len(new_state.running_summary),
        entities=len(new_state.entities),
    )
    return new_state


def _format_entities(entities: tuple[str, ...]) -> str:
    budget = settings.CONTEXT_MAX_ENTITY_CHARS
    kept: list[str] = []
    used = 0
    for term in entities:
        cost = len(term) + (2 if kept else 0)
        if used + cost > budget:
            break
        kept.append(term)
        used += cost
    return ", ".join(kept)


def context_for(state: CoherenceState, unit: PlanUnit) -> str:
    """Assemble the grounding context for ``unit``. Pure and bounded by
    ``CONTEXT_MAX_CHARS``."""
    key_points = state.key_points if unit.position is UnitPosition.FINAL else ()
    rendered = render_prompt(
        "grounding_context.j2",
        {
            "running_summary": state.running_summary,
            "entities": _format_entities(state.entities),
            "key_points": list(key_points),
            "title": unit.title,
            "position": unit.position.value,
            "instructions": clip_text(
                unit.instructions, settings.CONTEXT_MAX_INSTRUCTION_CHARS
            ),
        },
    )
    return clip_text(rendered, settings.CONTEXT_MAX_CHARS)


def context_ceiling() -> int:
    """Upper bound on the length of any ``context_for`` result."""
    return settings.CONTEXT_MAX_CHARS

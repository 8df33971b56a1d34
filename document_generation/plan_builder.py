# document_generation/plan_builder.py
"""Turn a job's mode, prompt and source text into an ordered list of plan units.

Planning is a deterministic heuristic rather than a model call, so a job
never pays an extra network round trip before its first chunk.
"""

from __future__ import annotations

import math

import structlog
from config import settings
from core.errors import InvalidInputError

from models import GenerationMode, PlanUnit, UnitPosition
from utils.text_processing import (
    count_words,
    find_headings,
    parse_requested_count,
    parse_target_words,
    split_into_slices,
)

logger = structlog.get_logger(__name__)

OUTLINE_SECTION_TITLES: dict[int, list[str]] = {
    3: ["Background and Context", "Key Developments", "Conclusions"],
    4: [
        "Background and Context",
        "Central Themes",
        "Key Developments",
        "Conclusions",
    ],
    5: [
        "Background and Context",
        "Central Themes",
        "Key Developments",
        "Implications and Significance",
        "Conclusions",
    ],
    6: [
        "Background and Context",
        "Central Themes",
        "Key Developments",
        "Implications and Significance",
        "Competing Interpretations",
        "Conclusions",
    ],
    7: [
        "Background and Context",
        "Central Themes",
        "Key Actors and Perspectives",
        "Key Developments",
        "Implications and Significance",
        "Competing Interpretations",
        "Conclusions",
    ],
}

_OUTLINE_SECTION_FOCUS: dict[str, str] = {
    "Background and Context": "Set out the background and context the rest of the outline builds on.",
    "Central Themes": "Identify the central themes, causes or claims at the heart of the task.",
    "Key Actors and Perspectives": "List the main actors, groups or viewpoints and what each contributes.",
    "Key Developments": "Trace the key developments, events or steps in a logical order.",
    "Implications and Significance": "Explain the consequences and why they matter.",
    "Competing Interpretations": "Summarize competing interpretations or objections and how they differ.",
    "Conclusions": "Draw the threads together into concluding points that follow from the earlier sections.",
}

_DOCUMENT_POSITION_FOCUS: dict[UnitPosition, str] = {
    UnitPosition.FIRST: (
        "Open the document: introduce the subject, establish the key terms and set out "
        "the line of argument that later parts will develop."
    ),
    UnitPosition.MIDDLE: (
        "Develop the argument from where the previous part stopped, adding new material "
        "rather than restating what has been said."
    ),
    UnitPosition.FINAL: (
        "Bring the document to a close: resolve the line of argument and refer back "
        "explicitly to points made at the start."
    ),
}


def _position_for(index: int, total: int) -> UnitPosition:
    if index == total - 1:
        return UnitPosition.FINAL
    if index == 0:
        return UnitPosition.FIRST
    return UnitPosition.MIDDLE


def _clamp(value: int, low: int, high: int) -> int:
    return max(low, min(high, value))


def _validate(mode: GenerationMode | str, prompt: str) -> GenerationMode:
    try:
        resolved = GenerationMode(mode)
    except ValueError as exc:
        raise InvalidInputError(
            f"Unknown mode {mode!r}; expected 'outline' or 'document'."
        ) from exc
    if not isinstance(prompt, str) or not prompt.strip():
        raise InvalidInputError("Prompt must be a non-empty string.")
    return resolved


def _outline_plan(prompt: str, input_text: str) -> list[PlanUnit]:
    low, high = settings.OUTLINE_MIN_UNITS, settings.OUTLINE_MAX_UNITS
    requested = parse_requested_count(prompt)
    headings = find_headings(input_text)

    if requested is not None:
        count = _clamp(requested, low, high)
        titles = None
    elif len(headings) >= low:
        count = min(len(headings), high)
        titles = headings[:count]
    else:
        count = _clamp(settings.OUTLINE_DEFAULT_UNITS, low, high)
        titles = None

    if titles is None:
        table_key = _clamp(count, min(OUTLINE_SECTION_TITLES), max(OUTLINE_SECTION_TITLES))
        titles = list(OUTLINE_SECTION_TITLES[table_key])
        while len(titles) < count:
            titles.insert(-1, f"Further Developments {len(titles) - table_key + 1}")
        titles = titles[:count]
        focus = [_OUTLINE_SECTION_FOCUS.get(t, "Cover this part of the subject.") for t in titles]
    else:
        focus = [
            f"Outline the material the source text covers under '{t}'." for t in titles
        ]

    excerpts = split_into_slices(input_text, count) if input_text.strip() else [""] * count
    units = []
    for i, title in enumerate(titles):
        units.append(
            PlanUnit(
                index=i,
                title=title,
                instructions=focus[i],
                position=_position_for(i, count),
                source_excerpt=excerpts[i],
            )
        )
    return units


def estimate_target_words(prompt: str, input_text: str) -> int:
    """Estimate how long the finished document should be."""
    explicit = parse_target_words(prompt)
    if explicit is not None:
        return explicit
    input_words = count_words(input_text)
    if input_words:
        return input_words
    return settings.DOCUMENT_DEFAULT_TARGET_WORDS


def _document_plan(prompt: str, input_text: str) -> list[PlanUnit]:
    target_words = estimate_target_words(prompt, input_text)
    raw_count = math.ceil(target_words / settings.MAX_WORDS_PER_CHUNK)
    # A count named in the prompt can add parts but never makes a part longer
    # than one call can write.
    requested = parse_requested_count(prompt)
    if requested is not None:
        raw_count = max(raw_count, requested)
    count = _clamp(raw_count, settings.DOCUMENT_MIN_UNITS, settings.DOCUMENT_MAX_UNITS)

    base_words, remainder = divmod(target_words, count)
    excerpts = split_into_slices(input_text, count) if input_text.strip() else [""] * count

    units = []
    for i in range(count):
        position = _position_for(i, count)
        instructions = _DOCUMENT_POSITION_FOCUS[position]
        if excerpts[i]:
            instructions += " Base this part on the source text provided for it."
        units.append(
            PlanUnit(
                index=i,
                title=f"Part {i + 1} of {count}",
                instructions=instructions,
                position=position,
                target_words=base_words + (1 if i < remainder else 0),
                source_excerpt=excerpts[i],
            )
        )
    return units


def rebalance_target_words(
    units: list[PlanUnit], unit: PlanUnit, words_written: int
) -> int:
    """Word target for ``unit`` given what earlier units actually produced.

    The words still owed are spread over the units left, ``unit`` included,
    so a short or long chunk is made up by the ones after it.
    """
    if not unit.target_words:
        return 0
    total = sum(u.target_words for u in units)
    remaining_units = max(1, len(units) - unit.index)
    return max(0, (total - words_written) // remaining_units)


def build_plan(
    mode: GenerationMode | str, prompt: str, input_text: str | None = ""
) -> list[PlanUnit]:
    """Return the ordered, gapless plan for a job.

    Raises:
        InvalidInputError: the prompt is empty or the mode is unknown.
    """
    resolved_mode = _validate(mode, prompt)
    source = input_text or ""
    if resolved_mode is GenerationMode.OUTLINE:
        units = _outline_plan(prompt, source)
    else:
        units = _document_plan(prompt, source)
    logger.debug(
        "Built generation plan.",
        mode=resolved_mode.value,
        units=len(units),
        input_words=count_words(source),
    )
    return units

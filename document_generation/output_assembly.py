# document_generation/output_assembly.py
"""Join chunk texts into the final output. Concatenation only; no rewriting."""

from __future__ import annotations

from collections.abc import Sequence

from config import settings

from models import ChunkResult, GenerationMode, PlanUnit


def gap_marker(unit: PlanUnit) -> str:
    return settings.GAP_MARKER_TEMPLATE.format(title=unit.title, number=unit.index + 1)


def assemble_output(
    mode: GenerationMode | str,
    units: Sequence[PlanUnit],
    results: Sequence[ChunkResult],
) -> str:
    """Join ``results`` in plan order using the mode's joining rule.

    Outline sections get a ``## title`` header each. Document parts are
    joined with paragraph breaks. Failed units contribute a gap marker.
    """
    if len(results) > len(units):
        raise ValueError("More chunk results than plan units.")
    by_index = {unit.index: unit for unit in units}
    resolved = GenerationMode(mode)

    parts: list[str] = []
    for result in results:
        unit = by_index[result.unit_index]
        body = result.text if result.succeeded else gap_marker(unit)
        if resolved is GenerationMode.OUTLINE:
            parts.append(f"## {unit.title}\n\n{body}")
        else:
            parts.append(body)

    separator = (
        settings.OUTLINE_SECTION_SEPARATOR
        if resolved is GenerationMode.OUTLINE
        else settings.DOCUMENT_PARAGRAPH_SEPARATOR
    )
    return separator.join(parts)

# tests/test_output_assembly.py
import config
import pytest
from core.errors import RetryExhaustedError
from document_generation.output_assembly import assemble_output
from models import ChunkResult, GenerationMode, PlanUnit


def _units(n: int) -> list[PlanUnit]:
    return [PlanUnit(index=i, title=f"Section {i + 1}", instructions="x") for i in range(n)]


def _ok(i: int, text: str) -> ChunkResult:
    return ChunkResult(unit_index=i, text=text, succeeded=True, attempts=1)


def test_document_parts_are_joined_verbatim():
    results = [_ok(0, "Alpha."), _ok(1, "Beta.\n\nGamma.")]
    assert assemble_output("document", _units(2), results) == "Alpha.\n\nBeta.\n\nGamma."


def test_outline_sections_get_headers_in_order():
    results = [_ok(0, "- a"), _ok(1, "- b"), _ok(2, "- c")]
    output = assemble_output(GenerationMode.OUTLINE, _units(3), results)
    assert output == "## Section 1\n\n- a\n\n## Section 2\n\n- b\n\n## Section 3\n\n- c"


def test_failed_unit_becomes_gap_marker(monkeypatch):
    monkeypatch.setattr(config.settings, "GAP_MARKER_TEMPLATE", "[missing {number}: {title}]")
    failed = ChunkResult(
        unit_index=1,
        text="",
        succeeded=False,
        attempts=3,
        error=RetryExhaustedError(3, None),
    )
    output = assemble_output("document", _units(3), [_ok(0, "A."), failed, _ok(2, "C.")])
    assert output == "A.\n\n[missing 2: Section 2]\n\nC."


def test_more_results_than_units_rejected():
    with pytest.raises(ValueError):
        assemble_output("document", _units(1), [_ok(0, "a"), _ok(1, "b")])

# tests/test_plan_builder.py
import config
import pytest
from core.errors import InvalidInputError
from document_generation.plan_builder import (
    OUTLINE_SECTION_TITLES,
    build_plan,
    estimate_target_words,
    rebalance_target_words,
)
from models import GenerationMode, UnitPosition


def _assert_well_formed(units):
    assert units
    assert [u.index for u in units] == list(range(len(units)))
    assert units[-1].position is UnitPosition.FINAL
    if len(units) > 1:
        assert units[0].position is UnitPosition.FIRST
    assert all(u.title and u.instructions for u in units)


def test_outline_default_plan_uses_thematic_sections():
    units = build_plan("outline", "Outline the causes of the French Revolution")
    _assert_well_formed(units)
    assert [u.title for u in units] == OUTLINE_SECTION_TITLES[5]


def test_outline_requested_count_is_clamped():
    assert len(build_plan(GenerationMode.OUTLINE, "Outline this in four sections")) == 4
    assert len(build_plan(GenerationMode.OUTLINE, "Outline this in 12 sections")) == 7
    assert len(build_plan(GenerationMode.OUTLINE, "Outline this in two sections")) == 3


def test_outline_follows_input_headings():
    source = "# Finances\nDebt.\n\n# Estates General\nVotes.\n\n# Bastille\nRiot.\n"
    units = build_plan("outline", "Outline this report", source)
    _assert_well_formed(units)
    assert [u.title for u in units] == ["Finances", "Estates General", "Bastille"]
    assert all(u.source_excerpt for u in units)


def test_empty_input_text_is_legal():
    assert build_plan("document", "Write about the Directory", "")
    assert build_plan("document", "Write about the Directory", None)


@pytest.mark.parametrize("prompt", ["", "   ", None])
def test_empty_prompt_is_invalid(prompt):
    with pytest.raises(InvalidInputError):
        build_plan("outline", prompt)


def test_unknown_mode_is_invalid():
    with pytest.raises(InvalidInputError):
        build_plan("poem", "Write a poem")


def test_document_plan_sized_from_input_length():
    source = "\n\n".join(" ".join(["word"] * 700) for _ in range(100))
    units = build_plan("document", "Rewrite this book as an essay", source)
    _assert_well_formed(units)
    assert len(units) == 50
    assert sum(u.target_words for u in units) == 70000
    assert all(u.source_excerpt for u in units)
    assert all(u.target_words <= config.settings.MAX_WORDS_PER_CHUNK for u in units)


def test_document_plan_sized_from_explicit_length():
    units = build_plan("document", "Write a 3000-word essay on the Terror")
    assert len(units) == 3
    assert [u.target_words for u in units] == [1000, 1000, 1000]
    assert [u.title for u in units] == ["Part 1 of 3", "Part 2 of 3", "Part 3 of 3"]


def test_document_requested_count_only_adds_parts():
    units = build_plan(
        "document", "Write a 20,000-word history of the 3 main themes of the Revolution"
    )
    _assert_well_formed(units)
    assert len(units) == 15
    assert all(u.target_words <= config.settings.MAX_WORDS_PER_CHUNK for u in units)
    assert len(build_plan("document", "Write an essay in four parts")) == 4


def test_rebalance_spreads_the_remaining_words():
    units = build_plan("document", "Write a 3000-word essay on the Terror")
    assert rebalance_target_words(units, units[0], 0) == 1000
    assert rebalance_target_words(units, units[1], 1600) == 700
    assert rebalance_target_words(units, units[2], 1000) == 2000
    assert rebalance_target_words(units, units[2], 4000) == 0


def test_rebalance_leaves_outline_units_untargeted():
    units = build_plan("outline", "Outline the causes of the French Revolution")
    assert rebalance_target_words(units, units[1], 500) == 0


def test_document_plan_never_below_minimum(monkeypatch):
    units = build_plan("document", "Write a 200 word note")
    assert len(units) == config.settings.DOCUMENT_MIN_UNITS
    monkeypatch.setattr(config.settings, "DOCUMENT_MAX_UNITS", 4)
    assert len(build_plan("document", "Write a 50,000 word history")) == 4


def test_estimate_target_words_fallbacks():
    assert estimate_target_words("Write 1,200 words", "a b c") == 1200
    assert estimate_target_words("Write it", "a b c") == 3
    assert (
        estimate_target_words("Write it", "")
        == config.settings.DOCUMENT_DEFAULT_TARGET_WORDS
    )

# tests/test_text_processing.py
import pytest
from utils.text_processing import (
    clean_model_response,
    clip_text,
    count_words,
    extract_key_terms,
    find_headings,
    merge_terms,
    parse_requested_count,
    parse_target_words,
    split_into_slices,
    split_sentences,
)


def test_count_words_and_clip():
    assert count_words("") == 0
    assert count_words("one  two\nthree") == 3
    assert clip_text("abc", 10) == "abc"
    clipped = clip_text("abcdefghij", 6)
    assert clipped == "abc..."
    assert len(clipped) <= 6
    assert clip_text("abcdef", 0) == ""


def test_split_sentences():
    text = "The King fled. He was caught at Varennes!  Why?"
    assert split_sentences(text) == [
        "The King fled.",
        "He was caught at Varennes!",
        "Why?",
    ]
    assert split_sentences("   ") == []


def test_find_headings_markdown_and_numbered():
    text = "# Origins\nsome text\n## The Terror\nmore\n1. Aftermath\n"
    assert find_headings(text) == ["Origins", "The Terror", "Aftermath"]


@pytest.mark.parametrize(
    "prompt,expected",
    [
        ("Outline it in four sections", 4),
        ("Write the report in 6 parts", 6),
        ("Give me three key themes", 3),
        ("Outline the causes of the French Revolution", None),
    ],
)
def test_parse_requested_count(prompt, expected):
    assert parse_requested_count(prompt) == expected


@pytest.mark.parametrize(
    "prompt,expected",
    [
        ("Write a 3000 word essay", 3000),
        ("Produce a 2,500-word report", 2500),
        ("About 5k words on the Directory", 5000),
        ("Write an essay", None),
    ],
)
def test_parse_target_words(prompt, expected):
    assert parse_target_words(prompt) == expected


def test_split_into_slices_is_contiguous_and_balanced():
    slices = split_into_slices("one two three four five six", 3)
    assert slices == ["one two", "three four", "five six"]
    assert split_into_slices("", 2) == ["", ""]
    assert split_into_slices("anything", 0) == []


def test_split_into_slices_keeps_every_word_in_order():
    paragraphs = [" ".join(f"w{p}_{i}" for i in range(7)) for p in range(9)]
    text = "\n\n".join(paragraphs)
    slices = split_into_slices(text, 4)
    assert len(slices) == 4
    assert all(s for s in slices)
    assert " ".join(" ".join(slices).split()) == " ".join(text.split())


def test_extract_key_terms_keeps_proper_nouns():
    text = (
        "Maximilien Robespierre led the Committee of Public Safety. "
        "The Jacobins followed Robespierre. The Jacobins met in Paris. "
        "Revolutionaries stormed the prison."
    )
    terms = extract_key_terms(text)
    assert "Maximilien Robespierre" in terms
    assert "Committee of Public Safety" in terms
    assert "Jacobins" in terms
    assert "Paris" in terms
    assert "The Jacobins" not in terms
    assert "Revolutionaries" not in terms
    assert len(terms) == len({t.lower() for t in terms})


def test_extract_key_terms_includes_acronyms():
    terms = extract_key_terms("Delegates debated the treaty. The NATO summit followed.")
    assert "NATO" in terms


def test_merge_terms_dedupes_case_and_near_duplicates():
    merged = merge_terms(
        ["Louis XVI", "Jacobin Club"],
        ["Louis XV", "louis xvi", "Jacobin Club.", "Marie Antoinette"],
    )
    assert merged == ["Louis XVI", "Jacobin Club", "Louis XV", "Marie Antoinette"]


def test_merge_terms_respects_limit():
    assert merge_terms(["Paris"], ["Lyon", "Nantes", "Toulon"], limit=3) == [
        "Paris",
        "Lyon",
        "Nantes",
    ]


def test_clean_model_response_strips_wrapping():
    raw = (
        "<think>reasoning</think>Here is the section:\n## Central Themes\n\n"
        "Taxation drove unrest.\n\n\n\nBread prices rose.\n\n"
        "Let me know if you need anything else."
    )
    assert clean_model_response(raw, title="Central Themes") == (
        "Taxation drove unrest.\n\nBread prices rose."
    )


def test_clean_model_response_unwraps_code_fence():
    assert clean_model_response("```markdown\nBody text.\n```") == "Body text."


def test_clean_model_response_keeps_other_headings():
    raw = "## Another Heading\n\nBody."
    assert clean_model_response(raw, title="Central Themes") == raw


def test_clean_model_response_non_string():
    assert clean_model_response(None) == ""  # type: ignore[arg-type]

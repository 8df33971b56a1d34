"""Text helpers shared by the planner, the coherence tracker and the engine."""

from .text_processing import (
    clean_model_response,
    clip_text,
    count_words,
    extract_key_terms,
    find_headings,
    merge_terms,
    parse_requested_count,
    parse_target_words,
    split_into_slices,
    split_paragraphs,
    split_sentences,
)

__all__ = [
    "clean_model_response",
    "clip_text",
    "count_words",
    "extract_key_terms",
    "find_headings",
    "merge_terms",
    "parse_requested_count",
    "parse_target_words",
    "split_into_slices",
    "split_paragraphs",
    "split_sentences",
]

# utils/text_processing.py
"""Deterministic text helpers: word counts, sentence splitting, key-term
extraction, input slicing and model response cleanup."""

from __future__ import annotations

import re

import structlog
from rapidfuzz import fuzz

logger = structlog.get_logger(__name__)

_WORD_RE = re.compile(r"\S+")
_SENTENCE_SPLIT_RE = re.compile(r"(?<=[.!?])[\"')\]]*\s+(?=[\"'(\[]?[A-Z0-9])")
_HEADING_RE = re.compile(
    r"^\s*(?:#{1,6}\s+(?P<md>.+?)|(?:\d+|[IVXLC]+)[.)]\s+(?P<num>[A-Z].{2,}?))\s*#*\s*$",
    re.MULTILINE,
)
_CAPITALIZED_RUN_RE = re.compile(
    r"\b[A-Z][a-zA-Z'\-]+(?:\s+(?:of|the|de|la|and|for|von|van|du)?\s*[A-Z][a-zA-Z'\-]+)*"
)
_ACRONYM_RE = re.compile(r"\b[A-Z]{2,6}s?\b")

_NUMBER_WORDS = {
    "one": 1,
    "two": 2,
    "three": 3,
    "four": 4,
    "five": 5,
    "six": 6,
    "seven": 7,
    "eight": 8,
    "nine": 9,
    "ten": 10,
    "eleven": 11,
    "twelve": 12,
}
_COUNT_RE = re.compile(
    r"\b(?P<n>\d{1,2}|" + "|".join(_NUMBER_WORDS) + r")[\s-]+"
    r"(?:main\s+|major\s+|key\s+|distinct\s+)?"
    r"(?:sections?|parts?|points?|headings?|chapters?|themes?|topics?)\b",
    re.IGNORECASE,
)
_TARGET_WORDS_RE = re.compile(
    r"\b(?P<n>\d{1,3}(?:,\d{3})+|\d+(?:\.\d+)?\s*[kK]|\d+)\s*[- ]?\s*words?\b",
    re.IGNORECASE,
)

# Capitalized words that are not useful as tracked terms.
_TERM_STOPWORDS = {
    "a", "an", "the", "this", "that", "these", "those", "it", "its", "in", "on",
    "at", "by", "for", "from", "to", "of", "and", "or", "but", "as", "if", "when",
    "while", "where", "which", "who", "what", "why", "how", "however", "therefore",
    "thus", "moreover", "furthermore", "although", "because", "since", "yet",
    "he", "she", "they", "we", "i", "you", "his", "her", "their", "our", "my",
    "part", "section", "chapter", "introduction", "conclusion", "finally",
    "first", "second", "third", "then", "there", "here", "also", "such", "each",
    "many", "some", "all", "both", "after", "before", "during", "with", "without",
    "ok", "yes", "no",
}

_THINK_TAGS = (
    "think",
    "thought",
    "thinking",
    "reasoning",
    "rationale",
    "reflection",
    "analysis",
    "no_think",
)
_BOILERPLATE_PATTERNS = [
    r"^\s*(Okay,\s*)?(Sure,\s*)?(Here's|Here is)\s+(the|your)\s+[\w\s]+?:\s*",
    r"^\s*Certainly! Here is the text:\s*",
    r"^\s*(?:Output|Result|Response|Answer)\s*:\s*",
    r"\s*Let me know if you (need|have) any(thing else| other questions| further revisions| adjustments)\b.*?\.?[^\w\n]*$",
    r"\s*I hope this (meets your expectations|helps|is what you were looking for)\b.*?\.?[^\w\n]*$",
    r"\s*Feel free to ask for (adjustments|anything else)\b.*?\.?[^\w\n]*$",
]


def count_words(text: str) -> int:
    """Count whitespace-delimited words."""
    if not text:
        return 0
    return len(_WORD_RE.findall(text))


def clip_text(text: str, max_chars: int, marker: str = "...") -> str:
    """Clip ``text`` to at most ``max_chars`` characters, marker included."""
    if max_chars <= 0:
        return ""
    if len(text) <= max_chars:
        return text
    if len(marker) >= max_chars:
        return text[:max_chars]
    return text[: max_chars - len(marker)].rstrip() + marker


def split_sentences(text: str) -> list[str]:
    """Split prose into sentences with a punctuation heuristic."""
    flat = re.sub(r"\s+", " ", text or "").strip()
    if not flat:
        return []
    return [s.strip() for s in _SENTENCE_SPLIT_RE.split(flat) if s.strip()]


def split_paragraphs(text: str) -> list[str]:
    return [p.strip() for p in re.split(r"\n\s*\n", text or "") if p.strip()]


def find_headings(text: str) -> list[str]:
    """Return markdown (``# Title``) or numbered (``1. Title``) headings in order."""
    headings: list[str] = []
    for match in _HEADING_RE.finditer(text or ""):
        title = (match.group("md") or match.group("num") or "").strip()
        if title:
            headings.append(title)
    return headings


def parse_requested_count(prompt: str) -> int | None:
    """Find an explicit section count such as "in 4 sections" or "six parts"."""
    match = _COUNT_RE.search(prompt or "")
    if not match:
        return None
    raw = match.group("n").lower()
    if raw.isdigit():
        return int(raw)
    return _NUMBER_WORDS.get(raw)


def parse_target_words(prompt: str) -> int | None:
    """Find an explicit length such as "3000 words", "2,500-word" or "5k words"."""
    match = _TARGET_WORDS_RE.search(prompt or "")
    if not match:
        return None
    raw = match.group("n").replace(",", "").replace(" ", "").lower()
    try:
        if raw.endswith("k"):
            value = int(float(raw[:-1]) * 1000)
        else:
            value = int(float(raw))
    except ValueError:
        return None
    return value if value > 0 else None


def split_into_slices(text: str, count: int) -> list[str]:
    """Split ``text`` into ``count`` contiguous slices of roughly equal word count.

    Paragraph boundaries are preferred. Paragraphs longer than a slice are
    broken on word boundaries so no slice is left empty while text remains.
    """
    if count <= 0:
        return []
    words_total = count_words(text)
    if words_total == 0:
        return [""] * count

    pieces: list[str] = []
    per_slice = max(1, words_total // count)
    for paragraph in split_paragraphs(text):
        words = paragraph.split()
        if len(words) <= per_slice:
            pieces.append(paragraph)
            continue
        for start in range(0, len(words), per_slice):
            pieces.append(" ".join(words[start : start + per_slice]))

    slices: list[list[str]] = [[] for _ in range(count)]
    consumed = 0
    for piece in pieces:
        bucket = min(count - 1, (consumed * count) // words_total)
        slices[bucket].append(piece)
        consumed += count_words(piece)
    return ["\n\n".join(bucket) for bucket in slices]


def _normalize_term(term: str) -> str:
    return term.strip().strip("'\"-").strip()


def extract_key_terms(text: str, limit: int | None = None) -> list[str]:
    """Extract proper nouns, capitalized phrases and acronyms in first-seen order.

    Capitalized single words are kept only when they occur mid-sentence or
    more than once, which filters ordinary sentence-initial words.
    """
    if not text:
        return []
    candidates: list[str] = []
    single_counts: dict[str, int] = {}
    midsentence: set[str] = set()

    for sentence in split_sentences(text):
        for match in _CAPITALIZED_RUN_RE.finditer(sentence):
            words = _normalize_term(match.group(0)).split()
            leading_trimmed = False
            while words and words[0].lower() in _TERM_STOPWORDS:
                words = words[1:]
                leading_trimmed = True
            if not words:
                continue
            term = " ".join(words)
            if len(words) == 1:
                if len(term) < 3:
                    continue
                single_counts[term] = single_counts.get(term, 0) + 1
                if match.start() > 0 or leading_trimmed:
                    midsentence.add(term)
            candidates.append(term)
        for match in _ACRONYM_RE.finditer(sentence):
            acronym = match.group(0)
            if acronym.lower() not in _TERM_STOPWORDS:
                candidates.append(acronym)

    terms: list[str] = []
    for term in candidates:
        if " " not in term and not term.isupper():
            if term not in midsentence and single_counts.get(term, 0) < 2:
                continue
        terms.append(term)
    return merge_terms([], terms, limit=limit)


def merge_terms(
    existing: list[str] | tuple[str, ...],
    new_terms: list[str],
    limit: int | None = None,
    similarity_threshold: float = 95.0,
) -> list[str]:
    """Union ``new_terms`` into ``existing`` keeping first-seen order.

    Terms equal ignoring case, or fuzzily similar above the threshold, are
    treated as duplicates of the earlier entry.
    """
    merged: list[str] = list(existing)
    seen_lower = {t.lower() for t in merged}
    for term in new_terms:
        if limit is not None and len(merged) >= limit:
            break
        lowered = term.lower()
        if lowered in seen_lower:
            continue
        if any(
            fuzz.ratio(lowered, known.lower()) >= similarity_threshold
            for known in merged
        ):
            continue
        merged.append(term)
        seen_lower.add(lowered)
    return merged


def clean_model_response(text: str, title: str | None = None) -> str:
    """Strip reasoning tags, code fences, assistant boilerplate and a leading
    heading that repeats ``title``. Normalizes blank lines."""
    if not isinstance(text, str):
        logger.warning(
            f"clean_model_response received non-string input: {type(text)}. Returning empty string."
        )
        return ""

    original_length = len(text)
    cleaned_text = text
    for tag_name in _THINK_TAGS:
        cleaned_text = re.sub(
            rf"<\s*{tag_name}\s*>.*?<\s*/\s*{tag_name}\s*>",
            "",
            cleaned_text,
            flags=re.DOTALL | re.IGNORECASE,
        )
        cleaned_text = re.sub(
            rf"<\s*/?\s*{tag_name}\s*/?\s*>", "", cleaned_text, flags=re.IGNORECASE
        )

    cleaned_text = re.sub(
        r"```(?:[a-zA-Z0-9_-]+)?\s*(.*?)\s*```",
        r"\1",
        cleaned_text,
        flags=re.DOTALL,
    ).strip()

    for pattern_str in _BOILERPLATE_PATTERNS:
        if pattern_str.startswith("^"):
            while True:
                new_text = re.sub(
                    pattern_str,
                    "",
                    cleaned_text,
                    count=1,
                    flags=re.IGNORECASE | re.MULTILINE,
                ).strip()
                if new_text == cleaned_text:
                    break
                cleaned_text = new_text
        else:
            cleaned_text = re.sub(
                pattern_str,
                "",
                cleaned_text,
                count=1,
                flags=re.IGNORECASE | re.MULTILINE,
            ).strip()

    if title:
        first_line, _, rest = cleaned_text.partition("\n")
        heading = re.sub(r"^\s*#{1,6}\s*|[*_]+", "", first_line).strip().rstrip(":")
        if heading.lower() == title.strip().lower():
            cleaned_text = rest.strip()

    final_text = re.sub(r"\n\s*\n(\s*\n)+", "\n\n", cleaned_text.strip())

    if original_length and len(final_text) < original_length:
        logger.debug(
            f"Cleaning reduced text length from {original_length} to {len(final_text)}."
        )
    return final_text

"""Text helpers for query handling and numeric comparison."""

import html
import re
import string

_TAG_RE = re.compile(r"<[^>]+>")
_WHITESPACE_RE = re.compile(r"\s+")
_NON_NUMERIC_RE = re.compile(r"[^0-9.]")

_MAGNITUDES = {
    "thousand": 1e3,
    "k": 1e3,
    "million": 1e6,
    "m": 1e6,
    "billion": 1e9,
    "b": 1e9,
    "trillion": 1e12,
}
_MAGNITUDE_RE = re.compile(
    r"\d\s*(thousand|million|billion|trillion|k|m|b)\b", re.IGNORECASE
)


def query_terms(query: str) -> list[str]:
    """Split a query into lowercase terms with surrounding punctuation removed."""
    terms = []
    for raw in query.lower().split():
        term = raw.strip(string.punctuation)
        if term:
            terms.append(term)
    return terms


def strip_html(fragment: str) -> str:
    """Remove tags, decode entities and collapse whitespace."""
    text = _TAG_RE.sub(" ", fragment)
    text = html.unescape(text)
    return _WHITESPACE_RE.sub(" ", text).strip()


def strip_numeric(value: object) -> str:
    """Keep only digits and dots, e.g. ``"$4.2 billion"`` -> ``"4.2"``."""
    return _NON_NUMERIC_RE.sub("", str(value))


def numeric_value(value: object) -> float | None:
    """Parse the numeric part of a value, scaled by any magnitude word.

    ``"$4.2 billion"`` and ``"4,200,000,000"`` both give ``4.2e9``.
    Returns None for values without a parseable number.
    """
    digits = strip_numeric(value)
    if not digits:
        return None
    try:
        number = float(digits)
    except ValueError:
        return None
    match = _MAGNITUDE_RE.search(str(value))
    if match:
        number *= _MAGNITUDES[match.group(1).lower()]
    return number


def count_occurrences(text: str, term: str) -> int:
    """Non-overlapping, case-insensitive occurrences of ``term`` in ``text``."""
    if not term:
        return 0
    return text.lower().count(term.lower())

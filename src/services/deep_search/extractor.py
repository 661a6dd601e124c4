"""Data point extraction from page content.

This module handles:
- Caller-supplied regex patterns
- HTML table label/value pairs
- JSON-LD structured data
- Query-relevant contextual numbers (currency, percentages, years, large numbers)

Extraction is pure: the same inputs always produce the same data points in
the same order. Malformed HTML or JSON-LD never raises.
"""

import json
import logging
import re
from collections.abc import Iterable
from typing import Any

from src.core.constants import (
    CONFIDENCE_CONTEXTUAL_NUMBER,
    CONFIDENCE_PATTERN_MATCH,
    CONFIDENCE_STRUCTURED_DATA,
    CONFIDENCE_TABLE,
    CONTEXT_WINDOW_DEFAULT,
    CONTEXT_WINDOW_NUMBERS,
    MAX_DATA_VALUE_LENGTH,
    SOURCE_CONTENT,
    SOURCE_PATTERN_MATCH,
    SOURCE_STRUCTURED_DATA,
    SOURCE_TABLE,
)
from src.utils.text import numeric_value, query_terms, strip_html, strip_numeric

from .models import DataPoint, DataPointType

logger = logging.getLogger(__name__)

_TABLE_RE = re.compile(r"<table[^>]*>([\s\S]*?)</table>", re.IGNORECASE)
_ROW_RE = re.compile(r"<tr[^>]*>([\s\S]*?)</tr>", re.IGNORECASE)
_CELL_RE = re.compile(r"<t[dh][^>]*>([\s\S]*?)</t[dh]>", re.IGNORECASE)
_JSON_LD_RE = re.compile(
    r"<script[^>]*type=[\"']application/ld\+json[\"'][^>]*>([\s\S]*?)</script>",
    re.IGNORECASE,
)

# (pattern, capture group holding the value)
_CONTEXTUAL_PATTERNS: tuple[tuple[re.Pattern[str], int], ...] = (
    (
        re.compile(
            r"\$?\d[\d,]*(?:\.\d+)?\s*(?:billion|million|trillion|thousand|k|m|b)\b",
            re.IGNORECASE,
        ),
        0,
    ),
    (re.compile(r"\d+(?:\.\d+)?\s*%"), 0),
    (re.compile(r"\$\s*\d[\d,]*(?:\.\d+)?"), 0),
    (re.compile(r"(?<!\d)(\d{4})(?!\d)"), 1),
    (re.compile(r"(?<![\d.])\d{1,3}(?:,\d{3})+(?:\.\d+)?"), 0),
)

_DATA_VALUE_RE = re.compile(r"[\d$%]")
_MAGNITUDE_AMOUNT_RE = re.compile(
    r"\d+\.?\d*\s*(?:billion|million|trillion)", re.IGNORECASE
)
_YEAR_TOKEN_RE = re.compile(r"(?<!\d)(\d{4})(?!\d)")
_PLAIN_NUMBER_RE = re.compile(r"^\d+\.?\d*$")


def classify_data_type(value: object) -> DataPointType:
    """Classify a value, checking percentage, currency, date, statistic in order."""
    text = str(value)
    if "%" in text:
        return DataPointType.PERCENTAGE
    if "$" in text or _MAGNITUDE_AMOUNT_RE.search(text):
        return DataPointType.CURRENCY
    year = _YEAR_TOKEN_RE.search(text)
    if year and int(year.group(1)) > 1900:
        return DataPointType.DATE
    if _PLAIN_NUMBER_RE.match(re.sub(r"[,\s]", "", text)):
        return DataPointType.STATISTIC
    return DataPointType.REFERENCE


def is_data_value(text: str) -> bool:
    """A table cell is data if it holds a digit, ``$`` or ``%`` and is short."""
    return bool(_DATA_VALUE_RE.search(text)) and 0 < len(text) < MAX_DATA_VALUE_LENGTH


def extract_context(content: str, index: int, window: int = CONTEXT_WINDOW_DEFAULT) -> str:
    """Return up to ``window`` characters on either side of ``index``."""
    start = max(0, index - window)
    return content[start : index + window].strip()


def normalized_key(point: DataPoint) -> tuple[str, str]:
    """Grouping key for corroboration: type plus normalized numeric value."""
    number = numeric_value(point.value)
    if number is None:
        return point.type.value, strip_numeric(point.value) or str(point.value)
    return point.type.value, repr(number)


def data_points_similar(a: DataPoint, b: DataPoint, tolerance: float) -> bool:
    """Two data points agree if they share a type and their numbers are within tolerance.

    Values without a parseable number must match exactly.
    """
    if a.type != b.type:
        return False
    n1 = numeric_value(a.value)
    n2 = numeric_value(b.value)
    if n1 is None or n2 is None:
        return str(a.value) == str(b.value)
    largest = max(abs(n1), abs(n2))
    if largest == 0:
        return True
    return abs(n1 - n2) / largest <= tolerance


class DataPointExtractor:
    """Extract data points from page content in four ordered passes."""

    def extract(
        self,
        content: str,
        html: str,
        query: str,
        patterns: Iterable[str] | None = None,
    ) -> list[DataPoint]:
        """Run all passes and concatenate their output.

        Args:
            content: Plain text or markdown of the page
            html: Raw HTML of the page (may be empty)
            query: Research query used for contextual relevance
            patterns: Optional caller regexes, matched case-insensitively

        Returns:
            Data points in pass order. Duplicates across passes are resolved
            by the crawler's post-processing, not here.
        """
        points: list[DataPoint] = []
        if patterns:
            points.extend(self.extract_pattern_matches(content, patterns))
        if html:
            points.extend(self.extract_table_data(html))
            points.extend(self.extract_structured_data(html))

        seen_values = {str(p.value) for p in points}
        for point in self.extract_contextual_numbers(content, query):
            if str(point.value) in seen_values:
                continue
            seen_values.add(str(point.value))
            points.append(point)
        return points

    def extract_pattern_matches(
        self, content: str, patterns: Iterable[str]
    ) -> list[DataPoint]:
        points = []
        for pattern in patterns:
            try:
                compiled = re.compile(pattern, re.IGNORECASE)
            except re.error as e:
                logger.debug("Skipping invalid data pattern %r: %s", pattern, e)
                continue
            for match in compiled.finditer(content):
                value = match.group(0).strip()
                if not value:
                    continue
                points.append(
                    DataPoint(
                        value=value,
                        type=classify_data_type(value),
                        context=extract_context(content, match.start()),
                        confidence=CONFIDENCE_PATTERN_MATCH,
                        source=SOURCE_PATTERN_MATCH,
                    )
                )
        return points

    def extract_table_data(self, html: str) -> list[DataPoint]:
        """Pair each cell with the next one in its row as ``label: value``."""
        points = []
        for table in _TABLE_RE.finditer(html):
            for row in _ROW_RE.finditer(table.group(1)):
                cells = [strip_html(c) for c in _CELL_RE.findall(row.group(1))]
                for label, value in zip(cells, cells[1:]):
                    if not is_data_value(value):
                        continue
                    points.append(
                        DataPoint(
                            value=value,
                            type=classify_data_type(value),
                            context=f"{label}: {value}",
                            confidence=CONFIDENCE_TABLE,
                            source=SOURCE_TABLE,
                        )
                    )
        return points

    def extract_structured_data(self, html: str) -> list[DataPoint]:
        """Walk JSON-LD blocks and keep every scalar leaf that looks like data."""
        points: list[DataPoint] = []
        for block in _JSON_LD_RE.finditer(html):
            try:
                data = json.loads(block.group(1))
            except (json.JSONDecodeError, ValueError):
                logger.debug("Ignoring malformed JSON-LD block")
                continue
            self._walk_structured(data, "", points)
        return points

    def _walk_structured(self, node: Any, path: str, points: list[DataPoint]) -> None:
        if isinstance(node, dict):
            items = node.items()
        elif isinstance(node, list):
            items = ((str(i), v) for i, v in enumerate(node))
        else:
            return
        for key, value in items:
            current = f"{path}.{key}" if path else str(key)
            if isinstance(value, bool):
                continue
            if isinstance(value, dict | list):
                self._walk_structured(value, current, points)
            elif isinstance(value, str | int | float) and is_data_value(str(value)):
                points.append(
                    DataPoint(
                        value=value,
                        type=classify_data_type(value),
                        context=current,
                        confidence=CONFIDENCE_STRUCTURED_DATA,
                        source=SOURCE_STRUCTURED_DATA,
                    )
                )

    def extract_contextual_numbers(self, content: str, query: str) -> list[DataPoint]:
        """Numbers whose surrounding text mentions at least one query term.

        A match overlapping a span already taken by an earlier pattern is
        skipped, so "$27.36 trillion" never also yields "$27.36".
        """
        terms = query_terms(query)
        if not terms:
            return []
        points = []
        taken: list[tuple[int, int]] = []
        for pattern, group in _CONTEXTUAL_PATTERNS:
            for match in pattern.finditer(content):
                start, end = match.span()
                if any(start < t_end and t_start < end for t_start, t_end in taken):
                    continue
                context = extract_context(content, match.start(), CONTEXT_WINDOW_NUMBERS)
                lowered = context.lower()
                if not any(term in lowered for term in terms):
                    continue
                taken.append((start, end))
                value = match.group(group).strip()
                points.append(
                    DataPoint(
                        value=value,
                        type=classify_data_type(value),
                        context=context,
                        confidence=CONFIDENCE_CONTEXTUAL_NUMBER,
                        source=SOURCE_CONTENT,
                    )
                )
        return points

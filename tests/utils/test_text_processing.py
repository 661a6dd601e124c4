"""
Unit tests for src/utils/text.py
"""

import pytest

from src.utils.text import (
    count_occurrences,
    numeric_value,
    query_terms,
    strip_html,
    strip_numeric,
)


class TestQueryTerms:
    def test_lowercases_and_strips_punctuation(self):
        assert query_terms("How, is STEEL made?") == ["how", "is", "steel", "made"]

    def test_punctuation_only_tokens_are_dropped(self):
        assert query_terms("gdp - 2024 !!") == ["gdp", "2024"]


class TestStripHtml:
    def test_tags_entities_and_whitespace(self):
        assert strip_html("<td> Revenue &amp;\n  Growth </td>") == "Revenue & Growth"


class TestNumericValue:
    @pytest.mark.parametrize(
        "value,expected",
        [
            ("$4.2 billion", 4.2e9),
            ("4,200,000,000", 4.2e9),
            ("$27.36 trillion", 27.36e12),
            ("5M", 5e6),
            ("12.5%", 12.5),
            (42, 42.0),
        ],
    )
    def test_parses_numbers(self, value, expected):
        assert numeric_value(value) == pytest.approx(expected)

    @pytest.mark.parametrize("value", ["n/a", "", "1.2.3"])
    def test_unparseable(self, value):
        assert numeric_value(value) is None

    def test_strip_numeric(self):
        assert strip_numeric("$4.2 billion") == "4.2"


class TestCountOccurrences:
    def test_case_insensitive(self):
        assert count_occurrences("Steel, steel and STEEL", "steel") == 3

    def test_empty_term(self):
        assert count_occurrences("anything", "") == 0

"""Tests for shared utility functions."""

from datetime import date

from helpdesk.utils import format_date_input, normalize_text


class TestNormalizeText:
    def test_strips_and_lowercases(self):
        assert normalize_text("  YES ") == "yes"

    def test_collapses_inner_whitespace(self):
        assert normalize_text("Back \t to\n Menu") == "back to menu"

    def test_casefold(self):
        assert normalize_text("STRASSE") == normalize_text("straße")

    def test_persian_unchanged(self):
        assert normalize_text(" کمک فوری ") == "کمک فوری"

    def test_empty(self):
        assert normalize_text("   ") == ""


class TestFormatDateInput:
    def test_single_digit_day(self):
        assert format_date_input(date(2000, 1, 5)) == "January 5, 2000"

    def test_double_digit_day(self):
        assert format_date_input(date(1999, 12, 31)) == "December 31, 1999"

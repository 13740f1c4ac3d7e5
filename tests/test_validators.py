"""Tests for field validators."""

from datetime import date

import pytest

from helpdesk.conversation.validators import (
    extract_name_from_email,
    is_valid_email,
    parse_date_of_birth,
    parse_rating,
)


class TestEmail:
    @pytest.mark.parametrize("value", [
        "jane.doe@example.com",
        "a@b.co",
        "  student_1@uni.example.ac  ",
    ])
    def test_valid(self, value):
        assert is_valid_email(value)

    @pytest.mark.parametrize("value", [
        "not-an-email",
        "missing@tld",
        "two@@signs.com",
        "spaces in@example.com",
        "@example.com",
        "",
    ])
    def test_invalid(self, value):
        assert not is_valid_email(value)


class TestExtractName:
    def test_dot_separated(self):
        assert extract_name_from_email("jane.doe@example.com") == "Jane"

    def test_underscore_separated(self):
        assert extract_name_from_email("ali_rezaei@uni.example") == "Ali"

    def test_hyphen_separated(self):
        assert extract_name_from_email("mary-ann@uni.example") == "Mary"

    def test_no_separator(self):
        assert extract_name_from_email("sara@uni.example") == "Sara"

    def test_rest_of_word_keeps_case(self):
        assert extract_name_from_email("mcDonald.x@uni.example") == "McDonald"

    def test_empty_local_part(self):
        assert extract_name_from_email("@uni.example") == ""


class TestDateOfBirth:
    def test_picker_format(self):
        assert parse_date_of_birth("January 5, 2000") == "January 5, 2000"

    def test_iso_format_is_normalized(self):
        assert parse_date_of_birth("2000-01-05") == "January 5, 2000"

    def test_day_month_year(self):
        assert parse_date_of_birth("05/01/2000") == "January 5, 2000"

    def test_future_date_rejected(self):
        assert parse_date_of_birth("2030-01-01", today=date(2026, 1, 1)) is None

    def test_garbage_rejected(self):
        assert parse_date_of_birth("yesterday") is None


class TestRating:
    @pytest.mark.parametrize("value,expected", [("1", 1), ("3", 3), (" 5 ", 5), ("۴", 4)])
    def test_valid(self, value, expected):
        assert parse_rating(value) == expected

    @pytest.mark.parametrize("value", ["0", "6", "7", "-1", "3.5", "great", ""])
    def test_invalid(self, value):
        assert parse_rating(value) is None

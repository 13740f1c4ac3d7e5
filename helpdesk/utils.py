"""Shared utilities used across the helpdesk chatbot."""

from datetime import date


def normalize_text(value: str) -> str:
    """Trim, collapse inner whitespace and case-fold a user utterance.

    Examples:
        >>> normalize_text("  Back   to Menu ")
        'back to menu'
        >>> normalize_text("YES")
        'yes'
    """
    return " ".join(value.split()).casefold()


def format_date_input(value: date) -> str:
    """Render a picked date the way the date picker submits it.

    Examples:
        >>> format_date_input(date(2000, 1, 5))
        'January 5, 2000'
    """
    return f"{value:%B} {value.day}, {value.year}"

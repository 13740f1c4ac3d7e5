"""
Validation helpers for the fields the dialog collects.

Each helper is a pure string function. Invalid values are reported by
returning False / None; the engine decides how to re-prompt.
"""

import logging
import re
from datetime import date, datetime
from typing import Optional

from helpdesk.utils import format_date_input

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
NAME_SEPARATORS = re.compile(r"[._-]")

MIN_RATING = 1
MAX_RATING = 5

# Date picker output first, then typed fallbacks
DOB_FORMATS = ("%B %d, %Y", "%Y-%m-%d", "%d/%m/%Y")


def is_valid_email(value: str) -> bool:
    """Shape check only; nothing is sent to verify the address."""
    return bool(EMAIL_PATTERN.match(value.strip()))


def extract_name_from_email(email: str) -> str:
    """Derive a display name from the local part of an email address.

    Examples:
        >>> extract_name_from_email("jane.doe@example.com")
        'Jane'
        >>> extract_name_from_email("ali_rezaei@uni.example")
        'Ali'
    """
    local = email.strip().split("@")[0]
    if not local:
        return ""
    return local[0].upper() + NAME_SEPARATORS.split(local[1:])[0]


def parse_date_of_birth(value: str, today: Optional[date] = None) -> Optional[str]:
    """Parse a date of birth and normalize it to the date picker format.

    Returns None for unparseable dates and dates in the future.
    """
    today = today or date.today()
    cleaned = value.strip()
    for fmt in DOB_FORMATS:
        try:
            parsed = datetime.strptime(cleaned, fmt).date()
        except ValueError:
            continue
        if parsed > today:
            logger.debug("Rejected future date of birth: %s", cleaned)
            return None
        return format_date_input(parsed)
    return None


def parse_rating(value: str) -> Optional[int]:
    """Parse a satisfaction rating. Only whole numbers 1..5 are accepted."""
    try:
        rating = int(value.strip())
    except ValueError:
        return None
    if MIN_RATING <= rating <= MAX_RATING:
        return rating
    return None

"""
Custom validators for the Book and SwapRequest models.
"""

import re
from django.core.exceptions import ValidationError

MIN_RATING = 1
MAX_RATING = 5

MESSAGE_MAX_LENGTH = 1000
FEEDBACK_MAX_LENGTH = 2000


def is_valid_rating(value):
    """Return True for whole-number ratings from 1 to 5 (booleans excluded)."""
    if isinstance(value, bool) or not isinstance(value, int):
        return False
    return MIN_RATING <= value <= MAX_RATING


def validate_rating(value):
    """
    Validate a swap rating.

    Ratings are whole numbers between 1 and 5 stars.

    Args:
        value: Rating to validate

    Raises:
        ValidationError: If rating is not an integer in range
    """
    if value is None:
        return

    if not is_valid_rating(value):
        raise ValidationError(
            f'Rating must be a whole number between {MIN_RATING} and {MAX_RATING}.',
            code='invalid_rating'
        )


def validate_isbn(value):
    """
    Validate ISBN-10 or ISBN-13 format.

    Hyphens and spaces are ignored. The last character of an ISBN-10 may be X.

    Valid formats:
    - 0-306-40615-2
    - 978-0-306-40615-7
    - 080442957X

    Args:
        value: ISBN string to validate

    Raises:
        ValidationError: If ISBN format is invalid
    """
    if not value:  # Empty string is allowed (optional field)
        return

    normalized = re.sub(r'[\s\-]', '', value).upper()

    if not re.match(r'^(\d{9}[\dX]|\d{13})$', normalized):
        raise ValidationError(
            'ISBN must contain 10 or 13 digits (ISBN-10 may end with X).',
            code='invalid_isbn'
        )


def normalize_optional_text(value):
    """
    Strip free text and convert blank strings to None.

    Args:
        value: Text or None

    Returns:
        str or None: Stripped text, or None when empty
    """
    if value is None:
        return None
    value = str(value).strip()
    return value or None

"""
Registration plate helpers.

UK plates are stored and compared in one normalized form: uppercase with all
whitespace removed ("ab12 cde" -> "AB12CDE").
"""

import re

_WHITESPACE_RE = re.compile(r"\s+")
_PLATE_RE = re.compile(r"^[A-Z0-9]{2,8}$")


def normalize_plate(plate: str | None) -> str:
    """Uppercase a plate and strip every whitespace character."""
    if not plate:
        return ""
    return _WHITESPACE_RE.sub("", plate).upper()


def validate_plate(plate: str | None) -> str | None:
    """Validate a plate string. Returns error message or None if valid."""
    normalized = normalize_plate(plate)
    if not normalized:
        return "Registration must be a non-empty string"
    if not _PLATE_RE.match(normalized):
        return "Registration must be 2-8 letters or digits"
    return None


def plate_allowed_in_test_mode(plate: str) -> bool:
    """The provider sandbox only answers for plates containing the letter A."""
    return "A" in normalize_plate(plate)

"""
Normalization utilities for provider payloads.

The specification and valuation providers return loosely typed values
("2.0L", "£1,234", "PETROL/ELECTRIC HYBRID"); everything passes through
here before reaching the merger.
"""

import re
from typing import Any

_NUMBER_RE = re.compile(r"-?\d+(?:\.\d+)?")
_ENGINE_SIZE_ONLY_RE = re.compile(
    r"^\d+\.?\d*\s*(l|litre|liter)?\s*(petrol|diesel|hybrid|electric)?$",
    re.IGNORECASE,
)
_BRACKET_RE = re.compile(r"\[(.*?)\]")
_WRITE_OFF_RE = re.compile(r"\b(?:CAT(?:EGORY)?)\s*([ABCDSN])\b", re.IGNORECASE)


def extract_number(value: Any) -> int | float | None:
    """
    Extract a number from provider values.
    Handles ints, floats and strings such as "£1,234", "2.0L" or "140 g/km".
    Whole numbers come back as int.
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        match = _NUMBER_RE.search(value.replace(",", ""))
        if not match:
            return None
        number = float(match.group())
    else:
        return None

    if number.is_integer():
        return int(number)
    return number


def normalize_fuel_type(raw: Any) -> str | None:
    """Normalize fuel type strings to standard values."""
    if not raw or not isinstance(raw, str) or not raw.strip():
        return None

    fuel = raw.lower().strip()

    if "plug-in" in fuel and "hybrid" in fuel:
        if "petrol" in fuel:
            return "Petrol Plug-in Hybrid"
        if "diesel" in fuel:
            return "Diesel Plug-in Hybrid"
        return "Plug-in Hybrid"

    if "hybrid" in fuel:
        if "petrol" in fuel or "gasoline" in fuel:
            return "Petrol Hybrid"
        if "diesel" in fuel:
            return "Diesel Hybrid"
        return "Hybrid"

    if "petrol" in fuel or "gasoline" in fuel:
        return "Petrol"
    if "diesel" in fuel:
        return "Diesel"
    if "electric" in fuel or fuel == "ev":
        return "Electric"

    return raw.strip().title()


def normalize_transmission(raw: Any) -> str | None:
    """Normalize transmission strings to Manual / Automatic / Semi-Automatic."""
    if not raw or not isinstance(raw, str) or not raw.strip():
        return None

    transmission = raw.lower().strip()

    if "semi" in transmission or "cvt" in transmission or "dsg" in transmission:
        return "Semi-Automatic"
    if "manual" in transmission:
        return "Manual"
    if "auto" in transmission:
        return "Automatic"

    return raw.strip().title()


def clean_text(value: Any) -> str | None:
    """Strip strings; empty and whitespace-only values become None."""
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def is_engine_size_only(model: Any) -> bool:
    """True for model strings like "2.0", "1.6L" or "3.0L Petrol"."""
    if not isinstance(model, str):
        return False
    return bool(_ENGINE_SIZE_ONLY_RE.match(model.strip()))


def parse_vehicle_description(description: Any) -> tuple[str | None, str | None, str | None]:
    """
    Split a valuation description into (make, model, fuel_type).

    "BMW M6 Gran Coupe Auto M6 Gran Coupe [Petrol / Automatic]"
    -> ("BMW", "M6 Gran Coupe Auto M6", "Petrol")
    """
    if not description or not isinstance(description, str):
        return None, None, None

    fuel_type = None
    bracket = _BRACKET_RE.search(description)
    if bracket:
        fuel_type = normalize_fuel_type(bracket.group(1).split("/")[0])

    words = _BRACKET_RE.sub("", description).split()
    if len(words) < 2:
        return None, None, fuel_type

    make = words[0]
    model = " ".join(words[1:6])
    return make, model, fuel_type


def parse_write_off_category(text: Any) -> str | None:
    """Map "CAT S", "Category N", "s" and similar to a single category letter."""
    if not text or not isinstance(text, str):
        return None

    cleaned = text.strip().upper()
    if cleaned in {"A", "B", "C", "D", "S", "N"}:
        return cleaned

    match = _WRITE_OFF_RE.search(cleaned)
    if match:
        return match.group(1).upper()
    return None


def first_present(*values: Any) -> Any:
    """Return the first value that is not None or an empty string."""
    for value in values:
        if value is None:
            continue
        if isinstance(value, str) and not value.strip():
            continue
        return value
    return None


def as_dict(value: Any) -> dict:
    """Nested provider blocks that are missing or not objects read as empty."""
    return value if isinstance(value, dict) else {}


def as_list(value: Any) -> list:
    return value if isinstance(value, list) else []

"""Utility functions for parsing rates, clock speeds and item specifications."""

import math


def _parse_number(text: str, what: str) -> float:
    """Convert text to a finite float.

    Precondition:
        text is a non-None string
        what names the quantity (used for error messages)

    Postcondition:
        returns float value of the stripped text

    Args:
        text: string representation of a number
        what: quantity name for error messages

    Returns:
        float value of text

    Raises:
        ValueError: if text is not a finite number
    """
    try:
        value = float(text.strip())
    except ValueError as exc:
        raise ValueError(f"Invalid {what} '{text}'. Must be a number.") from exc
    if not math.isfinite(value):
        raise ValueError(f"Invalid {what} '{text}'. Must be a finite number.")
    return value


def parse_rate(text: str) -> float:
    """Parse a per-minute rate.

    Args:
        text: String like "120" or "37.5"

    Returns:
        non-negative rate

    Raises:
        ValueError: if text is not a number or is negative
    """
    rate = _parse_number(text, "rate")
    if rate < 0:
        raise ValueError(f"Invalid rate '{text}'. Must not be negative.")
    return rate


def parse_overclock(text: str) -> float:
    """Parse a clock speed given as a percentage or a factor.

    Precondition:
        text is a non-None string

    Postcondition:
        "150%" and "1.5" both return 1.5

    Args:
        text: String like "250%" or "0.5"

    Returns:
        clock factor greater than 0

    Raises:
        ValueError: if text is not a number or is not positive
    """
    stripped = text.strip()
    if stripped.endswith("%"):
        factor = _parse_number(stripped[:-1], "overclock") / 100
    else:
        factor = _parse_number(stripped, "overclock")
    if factor <= 0:
        raise ValueError(f"Invalid overclock '{text}'. Must be greater than 0.")
    return factor


def parse_buildings_count(text: str) -> int:
    """Parse a number of buildings.

    Raises:
        ValueError: if text is not a positive whole number
    """
    try:
        count = int(text.strip())
    except ValueError as exc:
        raise ValueError(f"Invalid buildings count '{text}'. Must be a whole number.") from exc
    if count < 1:
        raise ValueError(f"Invalid buildings count '{text}'. Must be at least 1.")
    return count


def _validate_has_colon(text: str) -> None:
    if ":" not in text:
        raise ValueError(f"Invalid format: '{text}'. Expected 'item:rate'")


def _split_item_rate_string(text: str) -> tuple[str, str]:
    """Split text on the first colon and trim whitespace from both parts.

    Precondition:
        text contains at least one colon character

    Postcondition:
        returns (item_id, rate_string) where both are stripped of whitespace

    Args:
        text: string in format "item:rate"

    Returns:
        tuple of (item_id, rate_string) with whitespace removed
    """
    item, rate_str = text.split(":", 1)
    return item.strip(), rate_str.strip()


def parse_item_rate(text: str) -> tuple[str, float]:
    """Parse an 'item:rate' string into an (item, rate) tuple.

    Precondition:
        text is a non-None string in format "item:rate"

    Postcondition:
        returns (item_id, rate) where item_id is trimmed and rate is a non-negative float

    Args:
        text: String in format "item:rate" (e.g., "iron-ore:120")

    Returns:
        Tuple of (item_id, rate)

    Raises:
        ValueError: If format is invalid, the item is empty or the rate is not
            a non-negative number
    """
    _validate_has_colon(text)
    item, rate_str = _split_item_rate_string(text)
    if not item:
        raise ValueError(f"Invalid format: '{text}'. Item is empty")
    try:
        rate = parse_rate(rate_str)
    except ValueError as exc:
        raise ValueError(f"Invalid rate '{rate_str}' for {item}. Must be a non-negative number.") from exc
    return item, rate

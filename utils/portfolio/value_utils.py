"""
Utility functions for value checking and normalization.
"""

from typing import Any, Optional


def is_blank(value: Optional[str]) -> bool:
    """
    Check if a value is missing or whitespace only.

    Args:
        value: Value to check

    Returns:
        True if value is None, not a string, or blank after stripping
    """
    return not isinstance(value, str) or not value.strip()


def word_count(text: Optional[str]) -> int:
    """Count whitespace-separated words."""
    if not text:
        return 0
    return len(text.split())


def is_string_list(value: Any) -> bool:
    """True for a list whose items are all strings."""
    return isinstance(value, list) and all(isinstance(item, str) for item in value)

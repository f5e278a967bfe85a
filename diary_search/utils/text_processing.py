"""
Text processing utilities for the diary search service.

This module provides the normalization and substring helpers used by the
search strategies.
"""
import logging
from typing import Iterable, List

from .cache import normalize_query_text

# Setup logging
logger = logging.getLogger(__name__)

# Words this short are treated as noise by the smart strategy
MIN_SIGNIFICANT_WORD_LENGTH = 3


def significant_words(text: str) -> List[str]:
    """
    Split a query into the words worth matching individually.

    Normalizes the text, splits it on whitespace and drops words of two
    characters or fewer.

    Args:
        text: Query text

    Returns:
        List[str]: Significant words in query order
    """
    return [
        word for word in normalize_query_text(text).split()
        if len(word) >= MIN_SIGNIFICANT_WORD_LENGTH
    ]


def contains(haystack: str, needle: str) -> bool:
    """
    Case-insensitive substring test.

    Args:
        haystack: Text to search in
        needle: Already lower-cased text to look for

    Returns:
        bool: True if ``needle`` occurs in ``haystack``
    """
    if not haystack:
        return False
    return needle in haystack.lower()


def any_contains(values: Iterable[str], needle: str) -> bool:
    """
    Check whether any of ``values`` contains ``needle`` case-insensitively.

    Args:
        values: Texts to search in, such as tags
        needle: Already lower-cased text to look for

    Returns:
        bool: True on the first match
    """
    return any(contains(value, needle) for value in values)

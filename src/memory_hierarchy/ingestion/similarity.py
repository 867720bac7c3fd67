# Copyright 2024-2025 Amiable Development
# SPDX-License-Identifier: Apache-2.0

"""Token-overlap text similarity.

Shared by pattern deduplication and keyword search so both agree on
what a token is.
"""

import re

_WHITESPACE = re.compile(r"\s+")
_TOKEN_SPLIT = re.compile(r"[\s,.:;!?()\[\]{}\"']+")

# Tokens this short carry little signal ("a", "to", "of")
MIN_TOKEN_LENGTH = 3


def normalize_text(text: str) -> str:
    """Lowercase and collapse whitespace."""
    return _WHITESPACE.sub(" ", text.lower()).strip()


def tokenize(text: str) -> set[str]:
    """Split text into a set of comparable tokens.

    Args:
        text: Text to tokenize.

    Returns:
        Set of lowercase tokens at least MIN_TOKEN_LENGTH characters long.
    """
    return {
        token
        for token in _TOKEN_SPLIT.split(normalize_text(text))
        if len(token) >= MIN_TOKEN_LENGTH
    }


def jaccard_similarity(set1: set[str], set2: set[str]) -> float:
    """Calculate Jaccard similarity between two token sets.

    Two empty sets are identical (1.0); an empty set against a
    non-empty one shares nothing (0.0).
    """
    if not set1 and not set2:
        return 1.0
    if not set1 or not set2:
        return 0.0
    intersection = len(set1 & set2)
    union = len(set1) + len(set2) - intersection
    return intersection / union


def text_similarity(a: str, b: str) -> float:
    """Token-overlap similarity between two strings, in [0.0, 1.0]."""
    return jaccard_similarity(tokenize(a), tokenize(b))

# Copyright 2024-2025 Amiable Development
# SPDX-License-Identifier: Apache-2.0

"""
Tests for token-overlap text similarity.
"""

import pytest

from memory_hierarchy.ingestion import normalize_text, text_similarity, tokenize


class TestTokenize:
    """Tests for tokenization."""

    def test_normalize_collapses_whitespace(self):
        """Whitespace runs collapse and text is lowercased."""
        assert normalize_text("  Use   PYTEST\tfixtures \n") == "use pytest fixtures"

    def test_splits_on_punctuation(self):
        """Punctuation and brackets separate tokens."""
        assert tokenize("run(tests); then: lint!") == {"run", "tests", "then", "lint"}

    def test_drops_short_tokens(self):
        """Tokens of two characters or fewer are dropped."""
        assert tokenize("go to the db") == {"the"}

    def test_quotes_split(self):
        """Quote characters are separators."""
        assert tokenize('prefers "uv" over \'pip\'') == {"prefers", "over", "pip"}


class TestTextSimilarity:
    """Tests for Jaccard similarity."""

    def test_identical(self):
        """Identical texts are fully similar."""
        assert text_similarity("Prefers pytest fixtures", "prefers  PYTEST fixtures") == 1.0

    def test_partial_overlap(self):
        """Similarity is intersection over union."""
        # {prefers, pytest, fixtures} vs {prefers, pytest, markers}: 2 / 4
        assert text_similarity("prefers pytest fixtures", "prefers pytest markers") == pytest.approx(0.5)

    def test_both_empty(self):
        """Two texts without tokens are identical."""
        assert text_similarity("", "a b") == 1.0

    def test_one_empty(self):
        """A text without tokens shares nothing with one that has tokens."""
        assert text_similarity("", "pytest") == 0.0
        assert text_similarity("pytest", "of") == 0.0

    def test_disjoint(self):
        """Disjoint texts score zero."""
        assert text_similarity("uses black", "prefers tabs") == 0.0

# Copyright 2024-2025 Amiable Development
# SPDX-License-Identifier: Apache-2.0

"""
Tests for selecting and grouping memories for core memory context.
"""

import pytest

from memory_hierarchy.config import ContextSettings
from memory_hierarchy.retrieval import CATEGORY_HEADINGS, ContextSelector
from memory_hierarchy.schemas import ObservationCategory


class TestRelevanceFilter:
    """Tests for the relevance cut-off."""

    def test_weak_memories_dropped(self, make_memory, now):
        """Rare, narrow, old memories fall below the default threshold."""
        strong = make_memory("prefers pytest fixtures", count=10, sessions=["s1", "s2", "s3"])
        weak = make_memory("once used tabs", count=1, days_ago=100)

        kept = ContextSelector().filter_by_relevance([strong, weak], reference_time=now)

        assert [m.id for m in kept] == [strong.id]

    def test_explicit_threshold(self, make_memory, now):
        """A zero threshold keeps everything."""
        memories = [make_memory("first habit"), make_memory("second habit", days_ago=300)]
        assert len(ContextSelector().filter_by_relevance(memories, threshold=0.0, reference_time=now)) == 2

    def test_empty(self):
        """No memories yields nothing."""
        assert ContextSelector().filter_by_relevance([]) == []


class TestSelect:
    """Tests for grouped, ordered sections."""

    def test_canonical_order(self, make_memory, now):
        """Sections follow the fixed category order, not input order."""
        selector = ContextSelector(relevance_threshold=0.0)
        memories = [
            make_memory("uncategorized habit"),
            make_memory("uses make targets", category="workflow"),
            make_memory("prefers pytest fixtures", category="preference"),
        ]

        sections = selector.select(memories, reference_time=now)

        assert [s.category for s in sections] == [
            ObservationCategory.PREFERENCE,
            ObservationCategory.WORKFLOW,
            ObservationCategory.OTHER,
        ]
        assert [s.heading for s in sections] == ["Preferences", "Workflows", "Other Observations"]

    def test_items_ranked_and_capped(self, make_memory, now):
        """Each section is sorted by relevance and capped."""
        selector = ContextSelector(relevance_threshold=0.0, max_items_per_category=2)
        memories = [
            make_memory(f"style rule {count}", category="style", count=count) for count in (1, 5, 3)
        ]

        [section] = selector.select(memories, reference_time=now)

        assert [item.count for item in section.items] == [5, 3]
        scores = [item.relevance_score for item in section.items]
        assert scores == sorted(scores, reverse=True)

    def test_item_fields(self, make_memory, now):
        """Items carry the memory's text, count and id."""
        memory = make_memory("prefers uv over pip", category="tool-choice", count=4)
        [section] = ContextSelector(relevance_threshold=0.0).select([memory], reference_time=now)
        [item] = section.items
        assert item.text == "prefers uv over pip"
        assert item.count == 4
        assert item.source_memory_id == memory.id
        assert item.category == ObservationCategory.TOOL_CHOICE
        assert section.heading == CATEGORY_HEADINGS[ObservationCategory.TOOL_CHOICE]

    def test_section_normalized_within_category(self, make_memory, now):
        """A lone item in its category scores as the top of that category."""
        section = ContextSelector().build_section(
            ObservationCategory.PATTERN, [make_memory("early returns", count=2)], now
        )
        assert section.items[0].relevance_score == pytest.approx(1.0)

    def test_empty_input(self):
        """No memories yields no sections."""
        assert ContextSelector().select([]) == []

    def test_from_settings(self):
        """Selectors can be built from configuration."""
        selector = ContextSelector.from_settings(
            ContextSettings(relevance_threshold=0.5, max_items_per_category=3)
        )
        assert selector.relevance_threshold == 0.5
        assert selector.max_items_per_category == 3

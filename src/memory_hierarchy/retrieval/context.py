# Copyright 2024-2025 Amiable Development
# SPDX-License-Identifier: Apache-2.0

"""Context selection for core memory files.

Picks the long-term memories worth surfacing, groups them by category in
a fixed order and ranks each group. Rendering the sections is left to the
caller.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional, Sequence

from memory_hierarchy.config import ContextSettings
from memory_hierarchy.lifecycle.decay import RelevanceScorer, ScoringContext, ScoringWeights
from memory_hierarchy.schemas import LongTermMemory, ObservationCategory, group_by_category

CATEGORY_ORDER = [
    ObservationCategory.PREFERENCE,
    ObservationCategory.WORKFLOW,
    ObservationCategory.TOOL_CHOICE,
    ObservationCategory.PATTERN,
    ObservationCategory.STYLE,
    ObservationCategory.OTHER,
]

CATEGORY_HEADINGS = {
    ObservationCategory.PREFERENCE: "Preferences",
    ObservationCategory.PATTERN: "Patterns",
    ObservationCategory.WORKFLOW: "Workflows",
    ObservationCategory.TOOL_CHOICE: "Tool Choices",
    ObservationCategory.STYLE: "Style Conventions",
    ObservationCategory.OTHER: "Other Observations",
}


@dataclass
class ContextItem:
    """A single memory selected for context."""

    text: str
    count: int
    category: ObservationCategory
    relevance_score: float
    source_memory_id: str


@dataclass
class ContextSection:
    """Items of one category, most relevant first."""

    heading: str
    category: ObservationCategory
    items: List[ContextItem] = field(default_factory=list)


class ContextSelector:
    """Selects and groups memories for core memory context.

    Scoring weighs frequency, recency and session spread equally with a
    14-day recency half-life by default.

    Example:
        >>> selector = ContextSelector(relevance_threshold=0.3)
        >>> for section in selector.select(memories):
        ...     print(section.heading, len(section.items))
    """

    def __init__(
        self,
        relevance_threshold: float = 0.3,
        max_items_per_category: int = 10,
        half_life_days: float = 14.0,
    ):
        self.relevance_threshold = relevance_threshold
        self.max_items_per_category = max_items_per_category
        self.scorer = RelevanceScorer(weights=ScoringWeights.equal(), half_life_days=half_life_days)

    @classmethod
    def from_settings(cls, settings: ContextSettings) -> "ContextSelector":
        return cls(
            relevance_threshold=settings.relevance_threshold,
            max_items_per_category=settings.max_items_per_category,
            half_life_days=settings.recency_half_life_days,
        )

    def filter_by_relevance(
        self,
        memories: Sequence[LongTermMemory],
        threshold: Optional[float] = None,
        reference_time: Optional[datetime] = None,
    ) -> List[LongTermMemory]:
        """Keep memories scoring at or above the threshold.

        Scores are normalized against ``memories`` as a whole.
        """
        if not memories:
            return []
        threshold = self.relevance_threshold if threshold is None else threshold
        context = ScoringContext.for_batch((m.observation for m in memories), reference_time)
        return [
            m for m in memories
            if self.scorer.score(m.observation, context).total >= threshold
        ]

    def build_section(
        self,
        category: ObservationCategory,
        memories: Sequence[LongTermMemory],
        reference_time: Optional[datetime] = None,
    ) -> ContextSection:
        """Score one category's memories, sort them and cap the count.

        Scores are normalized within the category.
        """
        context = ScoringContext.for_batch((m.observation for m in memories), reference_time)
        items = [
            ContextItem(
                text=m.observation.text,
                count=m.observation.count,
                category=category,
                relevance_score=self.scorer.score(m.observation, context).total,
                source_memory_id=m.id,
            )
            for m in memories
        ]
        items.sort(key=lambda item: item.relevance_score, reverse=True)
        if self.max_items_per_category > 0:
            items = items[: self.max_items_per_category]
        return ContextSection(
            heading=CATEGORY_HEADINGS.get(category, "Other"),
            category=category,
            items=items,
        )

    def select(
        self,
        memories: Sequence[LongTermMemory],
        reference_time: Optional[datetime] = None,
    ) -> List[ContextSection]:
        """Filter, group and rank memories into ordered sections.

        Uncategorized memories go under ``other``. Empty sections are
        dropped.

        Args:
            memories: Long-term memories to consider.
            reference_time: Point in time for recency (default: now).

        Returns:
            Non-empty sections in canonical category order.
        """
        reference_time = reference_time or datetime.now(timezone.utc)
        relevant = self.filter_by_relevance(memories, reference_time=reference_time)
        grouped = group_by_category(
            relevant,
            key=lambda m: m.observation.category or ObservationCategory.OTHER,
        )

        sections = [
            self.build_section(category, group, reference_time)
            for category, group in grouped.items()
        ]
        sections = [s for s in sections if s.items]
        sections.sort(key=lambda s: CATEGORY_ORDER.index(s.category))
        return sections

# Copyright 2024-2025 Amiable Development
# SPDX-License-Identifier: Apache-2.0

"""Pattern aggregation.

Flattens observation batches produced by several analyzers, merges
near-duplicates by text similarity and ranks the result by significance.

Caller-supplied observations are never mutated; every returned
observation is a fresh copy.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterable, List, Optional, Sequence, Tuple

from pydantic import Field

from memory_hierarchy.config import AggregationSettings
from memory_hierarchy.ingestion.similarity import text_similarity
from memory_hierarchy.lifecycle.decay import RelevanceScorer, ScoringContext, ScoringWeights
from memory_hierarchy.schemas import Observation

logger = logging.getLogger(__name__)


class RankedObservation(Observation):
    """An observation annotated with its significance score."""

    significance_score: float = Field(..., ge=0.0, le=1.0, description="Significance (0.0-1.0)")


@dataclass
class AggregationResult:
    """Result of an aggregation run.

    Attributes:
        observations: Deduplicated observations, most significant first.
        total_inputs: Number of observations received across all analyzers.
        duplicates_merged: Number of inputs folded into an earlier observation.
        analyzer_breakdown: Input count per analyzer name.
    """

    observations: List[RankedObservation] = field(default_factory=list)
    total_inputs: int = 0
    duplicates_merged: int = 0
    analyzer_breakdown: dict[str, int] = field(default_factory=dict)


class PatternAggregator:
    """Deduplicates and ranks observations from multiple analyzers.

    Deduplication is a single greedy pass: each observation is compared
    against the representatives accepted so far and merged into the first
    one whose text similarity meets the threshold. Observations whose
    categories are both set and differ are never merged.

    Attributes:
        similarity_threshold: Minimum similarity to merge (0.0-1.0).
        max_results: Cap on returned observations, 0 for unlimited.
        scorer: RelevanceScorer used for ranking.

    Example:
        >>> aggregator = PatternAggregator(similarity_threshold=0.7)
        >>> result = aggregator.aggregate([("tool-usage", observations)])
        >>> print(f"Merged {result.duplicates_merged} duplicates")
    """

    def __init__(
        self,
        similarity_threshold: float = 0.7,
        max_results: int = 0,
        weights: Optional[ScoringWeights] = None,
        half_life_days: float = 7.0,
        reference_time: Optional[datetime] = None,
    ):
        """Initialize the aggregator.

        Args:
            similarity_threshold: Minimum similarity for duplicates (0.0-1.0).
            max_results: Maximum observations returned, 0 for no limit.
            weights: Scoring weights (default 0.5 / 0.3 / 0.2).
            half_life_days: Recency half-life for ranking.
            reference_time: Reference time for recency (default: now at
                each call).
        """
        self.similarity_threshold = similarity_threshold
        self.max_results = max_results
        self.scorer = RelevanceScorer(weights=weights, half_life_days=half_life_days)
        self.reference_time = reference_time

    @classmethod
    def from_settings(
        cls,
        settings: AggregationSettings,
        reference_time: Optional[datetime] = None,
    ) -> "PatternAggregator":
        """Build an aggregator from configuration settings."""
        return cls(
            similarity_threshold=settings.similarity_threshold,
            max_results=settings.max_results,
            half_life_days=settings.recency_half_life_days,
            reference_time=reference_time,
        )

    def aggregate(
        self,
        analyzer_outputs: Iterable[Tuple[str, Sequence[Observation]]],
    ) -> AggregationResult:
        """Aggregate observations from several analyzers.

        Args:
            analyzer_outputs: (analyzer name, observations) pairs. Repeated
                analyzer names accumulate in the breakdown.

        Returns:
            AggregationResult with ranked, deduplicated observations.
        """
        breakdown: dict[str, int] = {}
        flattened: List[Observation] = []

        for analyzer, observations in analyzer_outputs:
            breakdown[analyzer] = breakdown.get(analyzer, 0) + len(observations)
            flattened.extend(observations)

        deduplicated, merged = self.deduplicate(flattened)
        ranked = self.rank(deduplicated)

        if self.max_results > 0:
            ranked = ranked[: self.max_results]

        logger.info(
            f"Aggregated {len(flattened)} observations into {len(deduplicated)} "
            f"({merged} merged)"
        )

        return AggregationResult(
            observations=ranked,
            total_inputs=len(flattened),
            duplicates_merged=merged,
            analyzer_breakdown=breakdown,
        )

    def deduplicate(self, observations: Sequence[Observation]) -> Tuple[List[Observation], int]:
        """Merge similar observations.

        Merging sums counts, unions session ids and tags in first-seen
        order, keeps the later last_seen and merges metadata with the
        incoming observation's keys winning.

        Args:
            observations: Observations in input order.

        Returns:
            Tuple of (representatives, number of merges performed).
        """
        accepted: List[Observation] = []
        merged = 0

        for observation in observations:
            match = self.find_similar(observation, accepted)
            if match is None:
                accepted.append(observation.model_copy(deep=True))
                continue

            self._merge_into(match, observation)
            merged += 1
            logger.debug(f"Merged observation {observation.id} into {match.id}")

        return accepted, merged

    def find_similar(
        self,
        candidate: Observation,
        pool: Sequence[Observation],
    ) -> Optional[Observation]:
        """Return the first pool member similar enough to the candidate.

        Args:
            candidate: Observation to match.
            pool: Accepted representatives, in acceptance order.

        Returns:
            The matching observation, or None.
        """
        for existing in pool:
            if (
                candidate.category is not None
                and existing.category is not None
                and candidate.category != existing.category
            ):
                continue
            if text_similarity(candidate.text, existing.text) >= self.similarity_threshold:
                return existing
        return None

    def rank(self, observations: Sequence[Observation]) -> List[RankedObservation]:
        """Score observations and sort them by significance, highest first.

        Normalization denominators come from ``observations``. Ties keep
        their input order.
        """
        if not observations:
            return []

        context = ScoringContext.for_batch(
            observations,
            self.reference_time or datetime.now(timezone.utc),
        )
        ranked = [
            RankedObservation(
                **observation.model_dump(),
                significance_score=self.scorer.score(observation, context).total,
            )
            for observation in observations
        ]
        ranked.sort(key=lambda r: r.significance_score, reverse=True)
        return ranked

    @staticmethod
    def _merge_into(target: Observation, incoming: Observation) -> None:
        target.count += incoming.count
        target.source_session_ids = list(
            dict.fromkeys(target.source_session_ids + incoming.source_session_ids)
        )
        if incoming.last_seen > target.last_seen:
            target.last_seen = incoming.last_seen
        if incoming.metadata:
            target.metadata = {**(target.metadata or {}), **incoming.metadata}
        if incoming.tags:
            target.tags = list(dict.fromkeys((target.tags or []) + incoming.tags))

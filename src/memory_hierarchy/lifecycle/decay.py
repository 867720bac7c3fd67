# Copyright 2024-2025 Amiable Development
# SPDX-License-Identifier: Apache-2.0

"""Relevance scoring for observations and memories.

Combines three signals into a single score in [0.0, 1.0]:
- frequency: occurrence count relative to the largest count in the set
- recency: exponential decay since the entity was last seen
- session spread: sqrt-scaled unique session count relative to the set

Normalization denominators always come from the set being scored, so a
score is relative to its neighbours rather than absolute.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterable, Optional

from memory_hierarchy.schemas import Observation

# Default half-life in days (recency reaches 0.5 after this many days)
DEFAULT_HALF_LIFE_DAYS: float = 7.0

SECONDS_PER_DAY = 24 * 60 * 60


def days_between(reference_time: datetime, earlier: datetime) -> float:
    """Fractional days from ``earlier`` to ``reference_time``.

    Negative when ``earlier`` lies after the reference time.
    """
    return (reference_time - earlier).total_seconds() / SECONDS_PER_DAY


def whole_days_between(reference_time: datetime, earlier: datetime) -> int:
    """Days from ``earlier`` to ``reference_time``, floored."""
    return math.floor(days_between(reference_time, earlier))


def calculate_recency_score(
    last_seen: datetime,
    reference_time: Optional[datetime] = None,
    half_life_days: float = DEFAULT_HALF_LIFE_DAYS,
) -> float:
    """Calculate exponential recency decay.

    Uses the formula: score = exp(-ln(2) / half_life * days_since_last_seen)

    Args:
        last_seen: When the entity was last seen.
        reference_time: Point in time to measure from (default: now).
        half_life_days: Days until the score decays to 0.5.

    Returns:
        Score between 0.0 and 1.0. A last_seen in the future counts as
        zero days and scores 1.0.

    Example:
        >>> now = datetime.now(timezone.utc)
        >>> calculate_recency_score(now - timedelta(days=7), now)
        0.5
    """
    reference_time = reference_time or datetime.now(timezone.utc)
    days = max(0.0, days_between(reference_time, last_seen))
    decay_rate = math.log(2) / half_life_days
    return max(0.0, min(1.0, math.exp(-decay_rate * days)))


def calculate_frequency_score(count: int, max_count: int) -> float:
    """Count relative to the largest count in the set."""
    return max(0.0, min(1.0, count / max(max_count, 1)))


def calculate_session_spread_score(session_count: int, max_sessions: int) -> float:
    """Sqrt-scaled session count relative to the widest spread in the set.

    The square root dampens the effect of very large session counts.
    """
    return max(0.0, min(1.0, math.sqrt(session_count) / math.sqrt(max(max_sessions, 1))))


@dataclass(frozen=True)
class ScoringWeights:
    """Weights for the three relevance components."""

    frequency: float = 0.5
    recency: float = 0.3
    session_spread: float = 0.2

    @classmethod
    def equal(cls) -> "ScoringWeights":
        """Weights giving each component one third."""
        return cls(frequency=1 / 3, recency=1 / 3, session_spread=1 / 3)


@dataclass(frozen=True)
class ScoringContext:
    """Normalization denominators and reference time for one scoring pass."""

    max_count: int = 1
    max_sessions: int = 1
    reference_time: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def for_batch(
        cls,
        observations: Iterable[Observation],
        reference_time: Optional[datetime] = None,
    ) -> "ScoringContext":
        """Derive denominators from a set of observations.

        Both denominators are at least 1 so an empty or all-zero set
        never divides by zero.
        """
        max_count = 1
        max_sessions = 1
        for observation in observations:
            max_count = max(max_count, observation.count)
            max_sessions = max(max_sessions, observation.session_count)
        return cls(
            max_count=max_count,
            max_sessions=max_sessions,
            reference_time=reference_time or datetime.now(timezone.utc),
        )

    @classmethod
    def for_item(
        cls,
        observation: Observation,
        reference_time: Optional[datetime] = None,
    ) -> "ScoringContext":
        """Denominators for scoring a single observation in isolation."""
        return cls.for_batch([observation], reference_time)


@dataclass(frozen=True)
class RelevanceScore:
    """A relevance score and the weighted contribution of each component."""

    total: float
    frequency: float
    recency: float
    session_spread: float


class RelevanceScorer:
    """Scores observations by frequency, recency and session spread.

    Attributes:
        weights: Component weights.
        half_life_days: Half-life of the recency component.

    Example:
        >>> scorer = RelevanceScorer()
        >>> context = ScoringContext.for_batch(observations)
        >>> ranked = sorted(observations, key=lambda o: scorer.score(o, context).total, reverse=True)
    """

    def __init__(
        self,
        weights: Optional[ScoringWeights] = None,
        half_life_days: float = DEFAULT_HALF_LIFE_DAYS,
    ):
        """Initialize the scorer.

        Args:
            weights: Component weights (default 0.5 / 0.3 / 0.2).
            half_life_days: Days until recency decays to 0.5.
        """
        self.weights = weights or ScoringWeights()
        self.half_life_days = half_life_days

    def score_values(
        self,
        count: int,
        last_seen: datetime,
        session_count: int,
        context: ScoringContext,
    ) -> RelevanceScore:
        """Score raw signal values against a scoring context.

        Args:
            count: Occurrence count.
            last_seen: Most recent occurrence.
            session_count: Number of unique sessions.
            context: Normalization denominators and reference time.

        Returns:
            RelevanceScore with the total clamped to [0.0, 1.0].
        """
        frequency = self.weights.frequency * calculate_frequency_score(count, context.max_count)
        recency = self.weights.recency * calculate_recency_score(
            last_seen, context.reference_time, self.half_life_days
        )
        spread = self.weights.session_spread * calculate_session_spread_score(
            session_count, context.max_sessions
        )
        total = max(0.0, min(1.0, frequency + recency + spread))
        return RelevanceScore(
            total=total,
            frequency=frequency,
            recency=recency,
            session_spread=spread,
        )

    def score(self, observation: Observation, context: ScoringContext) -> RelevanceScore:
        """Score an observation against a scoring context."""
        return self.score_values(
            observation.count,
            observation.last_seen,
            observation.session_count,
            context,
        )

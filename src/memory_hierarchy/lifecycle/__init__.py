# Copyright 2024-2025 Amiable Development
# SPDX-License-Identifier: Apache-2.0

"""Relevance scoring shared by aggregation, query and context selection."""

from memory_hierarchy.lifecycle.decay import (
    DEFAULT_HALF_LIFE_DAYS,
    RelevanceScore,
    RelevanceScorer,
    ScoringContext,
    ScoringWeights,
    calculate_frequency_score,
    calculate_recency_score,
    calculate_session_spread_score,
    days_between,
    whole_days_between,
)

__all__ = [
    # Constants
    "DEFAULT_HALF_LIFE_DAYS",
    # Classes
    "RelevanceScore",
    "RelevanceScorer",
    "ScoringContext",
    "ScoringWeights",
    # Functions
    "calculate_frequency_score",
    "calculate_recency_score",
    "calculate_session_spread_score",
    "days_between",
    "whole_days_between",
]

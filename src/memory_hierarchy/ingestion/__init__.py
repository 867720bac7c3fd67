# Copyright 2024-2025 Amiable Development
# SPDX-License-Identifier: Apache-2.0

"""Pattern ingestion: similarity and aggregation of analyzer output."""

from memory_hierarchy.ingestion.aggregator import (
    AggregationResult,
    PatternAggregator,
    RankedObservation,
)
from memory_hierarchy.ingestion.similarity import (
    jaccard_similarity,
    normalize_text,
    text_similarity,
    tokenize,
)

__all__ = [
    "AggregationResult",
    "PatternAggregator",
    "RankedObservation",
    "jaccard_similarity",
    "normalize_text",
    "text_similarity",
    "tokenize",
]

# Copyright 2024-2025 Amiable Development
# SPDX-License-Identifier: Apache-2.0

"""Scope-aware querying and context selection."""

from memory_hierarchy.retrieval.context import (
    CATEGORY_HEADINGS,
    CATEGORY_ORDER,
    ContextItem,
    ContextSection,
    ContextSelector,
)
from memory_hierarchy.retrieval.scoped import (
    InheritanceConfig,
    QueryEngine,
    QueryFilter,
    QueryResult,
    ScoredMemory,
    matches_keyword,
    resolve_inheritance_chain,
)

__all__ = [
    "CATEGORY_HEADINGS",
    "CATEGORY_ORDER",
    "ContextItem",
    "ContextSection",
    "ContextSelector",
    "InheritanceConfig",
    "QueryEngine",
    "QueryFilter",
    "QueryResult",
    "ScoredMemory",
    "matches_keyword",
    "resolve_inheritance_chain",
]

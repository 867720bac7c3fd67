# Copyright 2024-2025 Amiable Development
# SPDX-License-Identifier: Apache-2.0

"""
Memory hierarchy configuration.

This module provides:
- Dataclass sections holding every tunable threshold with its default
- HierarchyConfig.from_dict() to build a config from a parsed mapping
- load_config() to parse a YAML config file

Values of the wrong type are ignored and numeric thresholds are clamped
into their valid range, so a partially broken file still yields a usable
configuration.
"""

import logging
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Optional, Union

import yaml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(".agent") / "memory.yaml"


@dataclass
class PromotionThresholds:
    """Thresholds that drive promotion up the hierarchy.

    Attributes:
        observation_count_threshold: Minimum occurrence count before an
            approved observation is promoted to long-term memory.
        long_term_days_threshold: Minimum days a memory must stay in
            long-term before it can be promoted to core.
        project_level_session_threshold: Unique sessions that qualify an
            approved observation regardless of its count.
    """

    observation_count_threshold: int = 3
    long_term_days_threshold: int = 7
    project_level_session_threshold: int = 5


@dataclass
class MemoryTargets:
    """Which core memory files receive promoted memories."""

    claude_md: bool = True
    agents_md: bool = True


@dataclass
class AggregationSettings:
    """Pattern aggregation settings.

    Attributes:
        similarity_threshold: Minimum token overlap to merge two observations.
        max_results: Cap on ranked output, 0 for unlimited.
        recency_half_life_days: Half-life for the recency component.
    """

    similarity_threshold: float = 0.7
    max_results: int = 0
    recency_half_life_days: float = 7.0


@dataclass
class PruningSettings:
    """Pruning rules.

    Attributes:
        stale_days: Entities unseen for more than this many days are stale.
        min_retain_count: Memories with a lower count are low-significance.
        prune_denied: Whether denied entities are pruned.
        dry_run: Report without deleting.
    """

    stale_days: int = 90
    min_retain_count: int = 1
    prune_denied: bool = True
    dry_run: bool = False


@dataclass
class QuerySettings:
    """Query engine settings.

    Attributes:
        default_limit: Page size when the caller passes none.
        keyword_search_limit: Result cap for keyword search.
        recency_half_life_days: Half-life for the recency component.
        strict_project_match: When True, memories without a ``projectSlug``
            metadata entry are excluded from project-scoped inheritance
            instead of being treated as matching every project.
    """

    default_limit: int = 50
    keyword_search_limit: int = 20
    recency_half_life_days: float = 7.0
    strict_project_match: bool = False


@dataclass
class ContextSettings:
    """Context selection settings."""

    relevance_threshold: float = 0.3
    max_items_per_category: int = 10
    recency_half_life_days: float = 14.0


@dataclass
class HierarchyConfig:
    """Complete memory hierarchy configuration."""

    promotion: PromotionThresholds = field(default_factory=PromotionThresholds)
    memory_targets: MemoryTargets = field(default_factory=MemoryTargets)
    aggregation: AggregationSettings = field(default_factory=AggregationSettings)
    pruning: PruningSettings = field(default_factory=PruningSettings)
    query: QuerySettings = field(default_factory=QuerySettings)
    context: ContextSettings = field(default_factory=ContextSettings)

    @classmethod
    def from_dict(cls, data: Optional[dict[str, Any]]) -> "HierarchyConfig":
        """Build a configuration from a parsed mapping.

        Unknown sections and keys are ignored. Missing keys keep defaults.

        Args:
            data: Mapping keyed by section name.

        Returns:
            HierarchyConfig with values merged over defaults.
        """
        config = cls()
        if not isinstance(data, dict):
            return config

        for section_field in fields(cls):
            raw = data.get(section_field.name)
            if raw is None:
                continue
            if not isinstance(raw, dict):
                logger.warning(f"Ignoring config section {section_field.name!r}: not a mapping")
                continue
            section = getattr(config, section_field.name)
            _apply_section(section, raw, section_field.name)

        _clamp(config)
        return config


def _apply_section(section: Any, raw: dict[str, Any], name: str) -> None:
    for f in fields(section):
        if f.name not in raw:
            continue
        value = raw[f.name]
        default = getattr(section, f.name)
        if isinstance(default, bool):
            ok = isinstance(value, bool)
        elif isinstance(default, int):
            ok = isinstance(value, int) and not isinstance(value, bool)
        elif isinstance(default, float):
            ok = isinstance(value, (int, float)) and not isinstance(value, bool)
            if ok:
                value = float(value)
        else:
            ok = True
        if ok:
            setattr(section, f.name, value)
        else:
            logger.warning(f"Ignoring {name}.{f.name}={value!r}: expected {type(default).__name__}")


def _clamp(config: HierarchyConfig) -> None:
    promotion = config.promotion
    promotion.observation_count_threshold = max(0, promotion.observation_count_threshold)
    promotion.long_term_days_threshold = max(0, promotion.long_term_days_threshold)
    promotion.project_level_session_threshold = max(1, promotion.project_level_session_threshold)

    aggregation = config.aggregation
    aggregation.similarity_threshold = max(0.0, min(1.0, aggregation.similarity_threshold))
    aggregation.max_results = max(0, aggregation.max_results)
    aggregation.recency_half_life_days = max(1.0, aggregation.recency_half_life_days)

    pruning = config.pruning
    pruning.stale_days = max(0, pruning.stale_days)
    pruning.min_retain_count = max(0, pruning.min_retain_count)

    query = config.query
    query.default_limit = max(1, query.default_limit)
    query.keyword_search_limit = max(1, query.keyword_search_limit)
    query.recency_half_life_days = max(1.0, query.recency_half_life_days)

    context = config.context
    context.relevance_threshold = max(0.0, min(1.0, context.relevance_threshold))
    context.max_items_per_category = max(1, context.max_items_per_category)
    context.recency_half_life_days = max(1.0, context.recency_half_life_days)


def load_config(path: Optional[Union[str, Path]] = None) -> HierarchyConfig:
    """Load memory hierarchy configuration from a YAML file.

    Args:
        path: Path to the YAML file. Defaults to ``.agent/memory.yaml``.

    Returns:
        HierarchyConfig with settings from the file, or defaults when the
        file is missing or unreadable.
    """
    config_path = Path(path) if path is not None else DEFAULT_CONFIG_PATH

    if not config_path.exists():
        return HierarchyConfig()

    try:
        with open(config_path, "r") as f:
            data = yaml.safe_load(f) or {}
    except (yaml.YAMLError, IOError) as e:
        logger.warning(f"Failed to read config {config_path}: {e}")
        return HierarchyConfig()

    return HierarchyConfig.from_dict(data)

# Copyright 2024-2025 Amiable Development
# SPDX-License-Identifier: Apache-2.0

"""Maintenance runner.

Orchestrates one maintenance pass over the hierarchy: promotion at both
levels followed by pruning of observations and memories.
"""

import logging
import time
from typing import Any, Dict, Optional

from memory_hierarchy.config import HierarchyConfig
from memory_hierarchy.janitor.pruning import PruneResult, PruningEngine
from memory_hierarchy.promotion.engine import PromotionEngine
from memory_hierarchy.protocols import MemoryStore, ObservationStore

logger = logging.getLogger(__name__)


class MaintenanceRunner:
    """Runs promotion and pruning tasks in sequence.

    Promotion runs before pruning so that observations promoted in this
    pass are no longer pending when staleness is evaluated.

    Attributes:
        promotion_engine: Promotion task handler.
        pruning_engine: Pruning task handler.

    Example:
        >>> runner = MaintenanceRunner(observations, memories, config)
        >>> result = await runner.run_all()
        >>> print(f"Promoted {result['total_promoted']}, pruned {result['total_pruned']}")
    """

    def __init__(
        self,
        observation_store: ObservationStore,
        memory_store: MemoryStore,
        config: Optional[HierarchyConfig] = None,
        promotion_engine: Optional[PromotionEngine] = None,
        pruning_engine: Optional[PruningEngine] = None,
    ):
        """Initialize the maintenance runner.

        Args:
            observation_store: Observation store.
            memory_store: Long-term memory store.
            config: Hierarchy configuration (defaults if not provided).
            promotion_engine: Custom promotion engine (built from config if not provided).
            pruning_engine: Custom pruning engine (built from config if not provided).
        """
        config = config or HierarchyConfig()
        self.promotion_engine = promotion_engine or PromotionEngine(
            observation_store, memory_store, config
        )
        self.pruning_engine = pruning_engine or PruningEngine.from_settings(
            memory_store, observation_store, config.pruning
        )

    async def run_promotion(self) -> Dict[str, Any]:
        """Run both promotion steps.

        Returns:
            Promotion statistics per step.
        """
        observations = await self.promotion_engine.check_and_promote_observations()
        core = await self.promotion_engine.check_and_promote_to_core()
        return {
            "observation_to_long_term": observations,
            "long_term_to_core": core,
        }

    async def run_pruning(self) -> Dict[str, PruneResult]:
        """Run observation and memory pruning.

        Returns:
            Prune results per entity kind.
        """
        observations = await self.pruning_engine.prune_observations()
        memories = await self.pruning_engine.prune_memories()
        return {
            "observations": observations,
            "memories": memories,
        }

    async def run_all(self) -> Dict[str, Any]:
        """Run every maintenance task.

        Returns:
            Combined statistics from all tasks.
        """
        start_time = time.perf_counter()

        promotion = await self.run_promotion()
        pruning = await self.run_pruning()

        duration_ms = (time.perf_counter() - start_time) * 1000

        total_promoted = sum(r.promoted for r in promotion.values())
        total_failed = sum(r.failed for r in promotion.values())
        total_pruned = sum(len(r.pruned) for r in pruning.values())
        errors = [e for r in pruning.values() for e in r.errors]

        logger.info(
            f"Maintenance pass: {total_promoted} promoted, {total_failed} failed, "
            f"{total_pruned} pruned in {duration_ms:.1f}ms"
        )

        return {
            "promotion": promotion,
            "pruning": pruning,
            "total_promoted": total_promoted,
            "total_failed": total_failed,
            "total_pruned": total_pruned,
            "errors": errors,
            "duration_ms": duration_ms,
        }

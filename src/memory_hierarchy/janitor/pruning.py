# Copyright 2024-2025 Amiable Development
# SPDX-License-Identifier: Apache-2.0

"""Rule-based pruning of memories and observations.

Each entity is checked against the rules in a fixed priority order and
receives at most one reason:
1. denied (when prune_denied is enabled)
2. stale (whole days since last seen exceed stale_days)
3. low-significance (count below min_retain_count, memories only)

Observations are only pruned when denied or when stale while pending;
approved and promoted observations are always kept.

Every bulk operation can run as a dry run that reports exactly what a
real run would delete without deleting anything.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from memory_hierarchy.config import PruningSettings
from memory_hierarchy.lifecycle.decay import whole_days_between
from memory_hierarchy.protocols import MemoryStore, ObservationStore
from memory_hierarchy.schemas import (
    LongTermMemory,
    LongTermStatus,
    Observation,
    ObservationStatus,
)

logger = logging.getLogger(__name__)


class PruneReason(str, Enum):
    """Why an entity was (or would be) pruned."""

    STALE = "stale"
    LOW_SIGNIFICANCE = "low-significance"
    DENIED = "denied"
    MANUAL = "manual"


@dataclass(frozen=True)
class PrunedItem:
    """An entity selected for pruning.

    Attributes:
        id: Long-term memory id or observation id.
        reason: Rule that selected the entity.
        text: Observation text, for reporting.
        count: Observation count at evaluation time.
        days_since_last_seen: Whole days since the observation was last seen.
    """

    id: str
    reason: PruneReason
    text: str
    count: int
    days_since_last_seen: int


@dataclass
class PruneResult:
    """Outcome of a pruning operation.

    Attributes:
        pruned: Items that were (or in a dry run would be) deleted.
        total_evaluated: Number of entities checked.
        is_dry_run: True when nothing was deleted.
        timestamp: When the operation completed.
        errors: Store failures, one entry per item that could not be deleted.
    """

    pruned: List[PrunedItem] = field(default_factory=list)
    total_evaluated: int = 0
    is_dry_run: bool = False
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    errors: List[str] = field(default_factory=list)


def days_since(moment: datetime, now: Optional[datetime] = None) -> int:
    """Whole days elapsed since ``moment``, never negative."""
    now = now or datetime.now(timezone.utc)
    return max(0, whole_days_between(now, moment))


class PruningEngine:
    """Prunes stale, low-significance and denied entities.

    Attributes:
        memory_store: Long-term memory store.
        observation_store: Observation store.
        stale_days: Days unseen before an entity is stale.
        min_retain_count: Memories below this count are low-significance.
        prune_denied: Whether denied entities are pruned.
        dry_run: When True, bulk and manual pruning report without deleting.

    Example:
        >>> engine = PruningEngine(memories, observations, dry_run=True)
        >>> report = await engine.prune_memories()
        >>> for item in report.pruned:
        ...     print(item.id, item.reason.value)
    """

    def __init__(
        self,
        memory_store: MemoryStore,
        observation_store: ObservationStore,
        stale_days: int = 90,
        min_retain_count: int = 1,
        prune_denied: bool = True,
        dry_run: bool = False,
    ):
        self.memory_store = memory_store
        self.observation_store = observation_store
        self.stale_days = stale_days
        self.min_retain_count = min_retain_count
        self.prune_denied = prune_denied
        self.dry_run = dry_run

    @classmethod
    def from_settings(
        cls,
        memory_store: MemoryStore,
        observation_store: ObservationStore,
        settings: PruningSettings,
    ) -> "PruningEngine":
        """Build an engine from configuration settings."""
        return cls(
            memory_store,
            observation_store,
            stale_days=settings.stale_days,
            min_retain_count=settings.min_retain_count,
            prune_denied=settings.prune_denied,
            dry_run=settings.dry_run,
        )

    # ------------------------------------------------------------------
    # Rule evaluation
    # ------------------------------------------------------------------

    def evaluate_memory(self, memory: LongTermMemory, now: datetime) -> Optional[PrunedItem]:
        """Return the first rule a memory triggers, or None to retain it."""
        observation = memory.observation
        days = days_since(observation.last_seen, now)

        if self.prune_denied and memory.status == LongTermStatus.DENIED:
            reason = PruneReason.DENIED
        elif days > self.stale_days:
            reason = PruneReason.STALE
        elif observation.count < self.min_retain_count:
            reason = PruneReason.LOW_SIGNIFICANCE
        else:
            return None

        return PrunedItem(
            id=memory.id,
            reason=reason,
            text=observation.text,
            count=observation.count,
            days_since_last_seen=days,
        )

    def evaluate_observation(self, observation: Observation, now: datetime) -> Optional[PrunedItem]:
        """Return the rule an observation triggers, or None to retain it."""
        days = days_since(observation.last_seen, now)

        if self.prune_denied and observation.status == ObservationStatus.DENIED:
            reason = PruneReason.DENIED
        elif observation.status == ObservationStatus.PENDING and days > self.stale_days:
            reason = PruneReason.STALE
        else:
            return None

        return PrunedItem(
            id=observation.id,
            reason=reason,
            text=observation.text,
            count=observation.count,
            days_since_last_seen=days,
        )

    # ------------------------------------------------------------------
    # Bulk pruning
    # ------------------------------------------------------------------

    async def prune_memories(self) -> PruneResult:
        """Prune long-term memories, honouring the dry_run flag."""
        return await self._prune_memories(self.dry_run)

    async def get_dry_run_report(self) -> PruneResult:
        """Report what prune_memories would delete, regardless of dry_run."""
        return await self._prune_memories(True)

    async def _prune_memories(self, dry_run: bool) -> PruneResult:
        now = datetime.now(timezone.utc)
        memories = await self.memory_store.get_all()
        result = PruneResult(total_evaluated=len(memories), is_dry_run=dry_run)

        for memory in memories:
            item = self.evaluate_memory(memory, now)
            if item is None:
                continue
            if not dry_run:
                try:
                    deleted = await self.memory_store.delete(memory.id)
                except Exception as e:
                    logger.warning(f"Failed to delete memory {memory.id}: {e}")
                    result.errors.append(f"{memory.id}: {e}")
                    continue
                if not deleted:
                    logger.debug(f"Memory {memory.id} was already gone")
                    continue
            result.pruned.append(item)

        result.timestamp = datetime.now(timezone.utc)
        logger.info(
            f"Memory pruning{' (dry run)' if dry_run else ''}: "
            f"{len(result.pruned)} of {result.total_evaluated} selected"
        )
        return result

    async def prune_observations(self) -> PruneResult:
        """Prune denied and stale pending observations, honouring dry_run."""
        now = datetime.now(timezone.utc)
        observations = await self.observation_store.get_all()
        result = PruneResult(total_evaluated=len(observations), is_dry_run=self.dry_run)

        for observation in observations:
            item = self.evaluate_observation(observation, now)
            if item is None:
                continue
            if not self.dry_run:
                try:
                    deleted = await self.observation_store.delete(observation.id)
                except Exception as e:
                    logger.warning(f"Failed to delete observation {observation.id}: {e}")
                    result.errors.append(f"{observation.id}: {e}")
                    continue
                if not deleted:
                    logger.debug(f"Observation {observation.id} was already gone")
                    continue
            result.pruned.append(item)

        result.timestamp = datetime.now(timezone.utc)
        logger.info(
            f"Observation pruning{' (dry run)' if self.dry_run else ''}: "
            f"{len(result.pruned)} of {result.total_evaluated} selected"
        )
        return result

    # ------------------------------------------------------------------
    # Manual pruning
    # ------------------------------------------------------------------

    async def prune_by_id(self, memory_id: str) -> PruneResult:
        """Prune one long-term memory regardless of the rules.

        An unknown id yields an empty result that still counts one
        evaluated entity.
        """
        memory = await self.memory_store.get_by_id(memory_id)
        result = PruneResult(total_evaluated=1, is_dry_run=self.dry_run)
        if memory is None:
            return result

        observation = memory.observation
        item = PrunedItem(
            id=memory.id,
            reason=PruneReason.MANUAL,
            text=observation.text,
            count=observation.count,
            days_since_last_seen=days_since(observation.last_seen),
        )
        if not self.dry_run and not await self.memory_store.delete(memory_id):
            return result
        result.pruned.append(item)
        return result

    # ------------------------------------------------------------------
    # Read-only queries
    # ------------------------------------------------------------------

    async def get_stale_memories(self) -> List[PrunedItem]:
        """Memories unseen for more than stale_days. Never deletes."""
        now = datetime.now(timezone.utc)
        items = []
        for memory in await self.memory_store.get_all():
            days = days_since(memory.observation.last_seen, now)
            if days > self.stale_days:
                items.append(
                    PrunedItem(
                        id=memory.id,
                        reason=PruneReason.STALE,
                        text=memory.observation.text,
                        count=memory.observation.count,
                        days_since_last_seen=days,
                    )
                )
        return items

    async def get_low_significance_memories(self) -> List[PrunedItem]:
        """Memories whose count is below min_retain_count. Never deletes."""
        now = datetime.now(timezone.utc)
        return [
            PrunedItem(
                id=memory.id,
                reason=PruneReason.LOW_SIGNIFICANCE,
                text=memory.observation.text,
                count=memory.observation.count,
                days_since_last_seen=days_since(memory.observation.last_seen, now),
            )
            for memory in await self.memory_store.get_all()
            if memory.observation.count < self.min_retain_count
        ]

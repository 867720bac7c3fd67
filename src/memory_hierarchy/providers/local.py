# Copyright 2024-2025 Amiable Development
# SPDX-License-Identifier: Apache-2.0

"""Local in-memory implementations of the store protocols.

LocalObservationStore and LocalMemoryStore keep entities in dicts and
hand out deep copies, so callers can never mutate stored state except
through the store methods. Data is lost on restart.

These stores are suitable for:
- Development and testing
- Embedding the hierarchy in a process that persists elsewhere
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Iterable, List, Optional

from memory_hierarchy.config import HierarchyConfig
from memory_hierarchy.lifecycle.decay import whole_days_between
from memory_hierarchy.protocols import (
    InvalidTransitionError,
    MemoryQueryOptions,
    NotFoundError,
    Pagination,
    SortOptions,
    StoreError,
)
from memory_hierarchy.schemas import (
    CoreTarget,
    LongTermMemory,
    LongTermStatus,
    Observation,
    ObservationStatus,
    PromotionResult,
    can_transition,
)

logger = logging.getLogger(__name__)

# Fields bulk_update never overwrites
_IMMUTABLE_FIELDS = frozenset({"id", "first_seen"})


class LocalObservationStore:
    """In-memory ObservationStore.

    Example:
        >>> store = LocalObservationStore([observation])
        >>> await store.set_status(observation.id, ObservationStatus.APPROVED)
        >>> promotable = await store.get_promotable()

    Attributes:
        config: Hierarchy configuration supplying the count threshold.
    """

    def __init__(
        self,
        observations: Optional[Iterable[Observation]] = None,
        config: Optional[HierarchyConfig] = None,
    ):
        """Initialize the store.

        Args:
            observations: Initial contents. Each is copied in.
            config: Configuration (defaults if not provided).
        """
        self.config = config or HierarchyConfig()
        self._observations: dict[str, Observation] = {}
        for observation in observations or []:
            self._observations[observation.id] = observation.model_copy(deep=True)

    def _require(self, observation_id: str) -> Observation:
        observation = self._observations.get(observation_id)
        if observation is None:
            raise NotFoundError("Observation", observation_id)
        return observation

    async def create(self, observation: Observation) -> Observation:
        """Store a new observation.

        Raises:
            StoreError: If an observation with the same id exists.
        """
        if observation.id in self._observations:
            raise StoreError(f"Observation already exists: {observation.id}", observation.id)
        stored = observation.model_copy(deep=True)
        self._observations[stored.id] = stored
        return stored.model_copy(deep=True)

    async def bulk_create(self, observations: List[Observation]) -> List[Observation]:
        """Store several observations. Nothing is written if any id clashes."""
        seen: set[str] = set()
        for observation in observations:
            if observation.id in self._observations or observation.id in seen:
                raise StoreError(f"Observation already exists: {observation.id}", observation.id)
            seen.add(observation.id)
        return [await self.create(observation) for observation in observations]

    async def get_all(self) -> List[Observation]:
        return [o.model_copy(deep=True) for o in self._observations.values()]

    async def get_by_id(self, observation_id: str) -> Optional[Observation]:
        observation = self._observations.get(observation_id)
        if observation:
            return observation.model_copy(deep=True)
        return None

    async def get_by_status(self, status: ObservationStatus) -> List[Observation]:
        return [
            o.model_copy(deep=True)
            for o in self._observations.values()
            if o.status == status
        ]

    async def get_promotable(self) -> List[Observation]:
        """Approved observations whose count meets the promotion threshold."""
        threshold = self.config.promotion.observation_count_threshold
        return [
            o.model_copy(deep=True)
            for o in self._observations.values()
            if o.status == ObservationStatus.APPROVED and o.count >= threshold
        ]

    async def increment_count(self, observation_id: str, increment: int = 1) -> Observation:
        """Add to an observation's count and refresh last_seen.

        Raises:
            NotFoundError: If the id is unknown.
            ValueError: If the increment is negative.
        """
        if increment < 0:
            raise ValueError("increment must not be negative")
        observation = self._require(observation_id)
        observation.count += increment
        observation.last_seen = max(observation.last_seen, datetime.now(timezone.utc))
        return observation.model_copy(deep=True)

    async def add_session_ref(self, observation_id: str, session_id: str) -> Observation:
        """Record that the observation was seen in another session."""
        observation = self._require(observation_id)
        if session_id not in observation.source_session_ids:
            observation.source_session_ids.append(session_id)
        return observation.model_copy(deep=True)

    async def set_status(self, observation_id: str, status: ObservationStatus) -> Observation:
        """Change an observation's status.

        Raises:
            NotFoundError: If the id is unknown.
            InvalidTransitionError: If the change violates the status lattice.
        """
        observation = self._require(observation_id)
        if not can_transition(observation.status, status):
            raise InvalidTransitionError(observation_id, observation.status.value, status.value)
        observation.status = status
        return observation.model_copy(deep=True)

    async def update(self, observation_id: str, updates: dict[str, Any]) -> Observation:
        """Apply a partial update, re-validating the result.

        The id and first_seen fields are never changed.
        """
        observation = self._require(observation_id)
        updated = self._apply(observation, updates)
        self._observations[observation_id] = updated
        return updated.model_copy(deep=True)

    async def bulk_update(self, updates: List[tuple[str, dict[str, Any]]]) -> List[Observation]:
        """Apply several partial updates.

        Every id is checked and every result validated before anything is
        written, so either all updates apply or none does.

        Raises:
            NotFoundError: If any id is unknown.
        """
        staged: List[Observation] = []
        for observation_id, partial in updates:
            staged.append(self._apply(self._require(observation_id), partial))

        for observation in staged:
            self._observations[observation.id] = observation
        return [o.model_copy(deep=True) for o in staged]

    @staticmethod
    def _apply(observation: Observation, updates: dict[str, Any]) -> Observation:
        data = observation.model_dump()
        for key, value in updates.items():
            if key in data and key not in _IMMUTABLE_FIELDS:
                data[key] = value
        return Observation(**data)

    async def delete(self, observation_id: str) -> bool:
        """Delete an observation.

        Returns:
            True if the observation was deleted, False if not found.
        """
        if observation_id not in self._observations:
            return False
        del self._observations[observation_id]
        return True

    async def delete_by_status(self, status: ObservationStatus) -> int:
        """Delete every observation with the given status.

        Returns:
            Number of observations deleted.
        """
        doomed = [oid for oid, o in self._observations.items() if o.status == status]
        for observation_id in doomed:
            del self._observations[observation_id]
        return len(doomed)

    def clear(self) -> None:
        """Clear all stored observations (for testing)."""
        self._observations.clear()

    def count(self) -> int:
        """Get the number of stored observations."""
        return len(self._observations)


class LocalMemoryStore:
    """In-memory MemoryStore.

    Promotion to long-term validates the observation through the
    attached observation store; without one, promotion fails with a
    reason instead of guessing.

    Example:
        >>> memories = LocalMemoryStore(observation_store=observations)
        >>> result = await memories.promote_to_long_term(observation.id)
        >>> if result.success:
        ...     memory = await memories.get_by_id(result.id)

    Attributes:
        config: Hierarchy configuration supplying the core thresholds.
        observation_store: Source of observations for promotion.
    """

    def __init__(
        self,
        memories: Optional[Iterable[LongTermMemory]] = None,
        observation_store: Optional[LocalObservationStore] = None,
        config: Optional[HierarchyConfig] = None,
    ):
        self.config = config or HierarchyConfig()
        self.observation_store = observation_store
        self._memories: dict[str, LongTermMemory] = {}
        for memory in memories or []:
            self._memories[memory.id] = memory.model_copy(deep=True)

    def _require(self, memory_id: str) -> LongTermMemory:
        memory = self._memories.get(memory_id)
        if memory is None:
            raise NotFoundError("Long-term memory", memory_id)
        return memory

    async def get_all(self) -> List[LongTermMemory]:
        return [m.model_copy(deep=True) for m in self._memories.values()]

    async def get_by_id(self, memory_id: str) -> Optional[LongTermMemory]:
        memory = self._memories.get(memory_id)
        if memory:
            return memory.model_copy(deep=True)
        return None

    def days_since_long_term_promotion(
        self,
        memory: LongTermMemory,
        reference_time: Optional[datetime] = None,
    ) -> int:
        """Whole days the memory has spent in long-term memory."""
        reference_time = reference_time or datetime.now(timezone.utc)
        return whole_days_between(reference_time, memory.promoted_at)

    def is_eligible_for_core_promotion(
        self,
        memory: LongTermMemory,
        reference_time: Optional[datetime] = None,
    ) -> bool:
        """Check the count and residency thresholds for core promotion."""
        thresholds = self.config.promotion
        if memory.observation.count < thresholds.observation_count_threshold:
            return False
        days = self.days_since_long_term_promotion(memory, reference_time)
        return days >= thresholds.long_term_days_threshold

    async def query(
        self,
        options: MemoryQueryOptions,
        pagination: Optional[Pagination] = None,
        sort: Optional[SortOptions] = None,
    ) -> List[LongTermMemory]:
        """Filter memories. All filters are ANDed.

        Args:
            options: Filters to apply.
            pagination: Optional offset/limit.
            sort: Optional sort on a top-level attribute.

        Returns:
            Matching memories (copies).
        """
        now = datetime.now(timezone.utc)
        statuses = None
        if options.status is not None:
            statuses = options.status if isinstance(options.status, list) else [options.status]

        results: List[LongTermMemory] = []
        for memory in self._memories.values():
            if statuses is not None and memory.status not in statuses:
                continue
            if options.date_range is not None:
                start, end = options.date_range.start, options.date_range.end
                if start is not None and memory.promoted_at < start:
                    continue
                if end is not None and memory.promoted_at > end:
                    continue
            if options.eligible_for_core and not self.is_eligible_for_core_promotion(memory, now):
                continue
            if options.min_count is not None and memory.observation.count < options.min_count:
                continue
            if (
                options.min_days is not None
                and self.days_since_long_term_promotion(memory, now) < options.min_days
            ):
                continue
            results.append(memory)

        if sort is not None:
            results.sort(
                key=lambda m: getattr(m, sort.field),
                reverse=sort.direction == "desc",
            )

        if pagination is not None:
            results = results[pagination.offset : pagination.offset + pagination.limit]

        return [m.model_copy(deep=True) for m in results]

    async def get_promotable_to_core(self) -> List[LongTermMemory]:
        """Approved memories meeting the core promotion thresholds."""
        now = datetime.now(timezone.utc)
        return [
            m.model_copy(deep=True)
            for m in self._memories.values()
            if m.status == LongTermStatus.APPROVED and self.is_eligible_for_core_promotion(m, now)
        ]

    async def promote_to_long_term(self, observation_id: str) -> PromotionResult:
        """Copy an approved observation into a new long-term memory.

        Returns:
            PromotionResult with the new memory id, or a failure reason.
        """
        if self.observation_store is None:
            return PromotionResult(
                success=False,
                reason="Observation store not configured - cannot validate observation",
            )

        observation = await self.observation_store.get_by_id(observation_id)
        if observation is None:
            return PromotionResult(success=False, reason=f"Observation not found: {observation_id}")

        if observation.status != ObservationStatus.APPROVED:
            return PromotionResult(
                success=False,
                reason=(
                    "Observation must be approved before promotion. "
                    f"Current status: {observation.status.value}"
                ),
            )

        memory = LongTermMemory(id=str(uuid.uuid4()), observation=observation)
        self._memories[memory.id] = memory
        logger.debug(f"Promoted observation {observation_id} to long-term memory {memory.id}")
        return PromotionResult(success=True, id=memory.id)

    async def promote_to_core(self, memory_id: str, targets: List[CoreTarget]) -> PromotionResult:
        """Mark a memory as scheduled for the given core targets.

        Writing the core memory files is left to the caller.
        """
        memory = self._memories.get(memory_id)
        if memory is None:
            return PromotionResult(success=False, reason=f"Long-term memory not found: {memory_id}")

        if not targets:
            return PromotionResult(success=False, reason="No core memory targets given")

        if not self.is_eligible_for_core_promotion(memory):
            thresholds = self.config.promotion
            days = self.days_since_long_term_promotion(memory)
            return PromotionResult(
                success=False,
                reason=(
                    "Memory not eligible for core promotion. "
                    f"Days: {days}/{thresholds.long_term_days_threshold}, "
                    f"Count: {memory.observation.count}/{thresholds.observation_count_threshold}"
                ),
            )

        if not can_transition(memory.status, LongTermStatus.SCHEDULED_FOR_CORE):
            return PromotionResult(
                success=False,
                reason=f"Memory cannot be scheduled for core from status {memory.status.value}",
            )

        memory.status = LongTermStatus.SCHEDULED_FOR_CORE
        targets_text = ", ".join(t.value for t in targets)
        logger.debug(f"Scheduled memory {memory_id} for core ({targets_text})")
        return PromotionResult(success=True, id=memory_id)

    async def set_status(self, memory_id: str, status: LongTermStatus) -> LongTermMemory:
        """Change a memory's status.

        Raises:
            NotFoundError: If the id is unknown.
            InvalidTransitionError: If the change violates the status lattice.
        """
        memory = self._require(memory_id)
        if not can_transition(memory.status, status):
            raise InvalidTransitionError(memory_id, memory.status.value, status.value)
        memory.status = status
        return memory.model_copy(deep=True)

    async def delete(self, memory_id: str) -> bool:
        """Delete a memory.

        Returns:
            True if the memory was deleted, False if not found.
        """
        if memory_id not in self._memories:
            return False
        del self._memories[memory_id]
        return True

    async def get_counts(self) -> dict[str, int]:
        """Count memories per hierarchy level.

        ``pending`` is taken from the attached observation store, 0 without one.
        """
        core = sum(
            1 for m in self._memories.values() if m.status == LongTermStatus.SCHEDULED_FOR_CORE
        )
        pending = 0
        if self.observation_store is not None:
            pending = len(await self.observation_store.get_by_status(ObservationStatus.PENDING))
        return {
            "pending": pending,
            "long_term": len(self._memories) - core,
            "core": core,
        }

    def clear(self) -> None:
        """Clear all stored memories (for testing)."""
        self._memories.clear()

    def count(self) -> int:
        """Get the number of stored memories."""
        return len(self._memories)

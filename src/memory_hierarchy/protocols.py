# Copyright 2024-2025 Amiable Development
# SPDX-License-Identifier: Apache-2.0

"""Store protocols for the memory hierarchy.

Defines the ObservationStore and MemoryStore protocols consumed by the
promotion, pruning and query engines, plus the store error types.

Business failures of promotion calls are reported through
PromotionResult. Infrastructure failures raise StoreError.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional, Protocol, List, Union, runtime_checkable

from memory_hierarchy.schemas import (
    CoreTarget,
    LongTermMemory,
    LongTermStatus,
    Observation,
    ObservationStatus,
    PromotionResult,
)


class StoreError(Exception):
    """Raised when a store cannot complete an operation."""

    def __init__(self, message: str, entity_id: Optional[str] = None):
        self.entity_id = entity_id
        super().__init__(message)


class NotFoundError(StoreError):
    """Raised when an operation targets an id the store does not hold."""

    def __init__(self, kind: str, entity_id: str):
        self.kind = kind
        super().__init__(f"{kind} not found: {entity_id}", entity_id)


class InvalidTransitionError(StoreError):
    """Raised when a status change violates the status lattice."""

    def __init__(self, entity_id: str, current: str, target: str):
        self.current = current
        self.target = target
        super().__init__(
            f"Invalid status transition for {entity_id}: {current} -> {target}",
            entity_id,
        )


@dataclass
class DateRange:
    """Inclusive range over promotion timestamps. Open ends are None."""

    start: Optional[datetime] = None
    end: Optional[datetime] = None


@dataclass
class MemoryQueryOptions:
    """Filters for MemoryStore.query. All filters are ANDed.

    Attributes:
        status: Single status or list of accepted statuses.
        date_range: Promotion timestamp range.
        eligible_for_core: Only memories meeting core promotion thresholds.
        min_count: Minimum observation count.
        min_days: Minimum whole days since long-term promotion.
    """

    status: Optional[Union[LongTermStatus, List[LongTermStatus]]] = None
    date_range: Optional[DateRange] = None
    eligible_for_core: bool = False
    min_count: Optional[int] = None
    min_days: Optional[int] = None


@dataclass
class Pagination:
    """Offset/limit pagination."""

    offset: int = 0
    limit: int = 50


@dataclass
class SortOptions:
    """Sort by a top-level entity attribute."""

    field: str
    direction: str = "desc"


@runtime_checkable
class ObservationStore(Protocol):
    """Protocol for observation storage.

    Returned entities are copies; mutate through the store methods.
    """

    async def get_all(self) -> List[Observation]:
        ...

    async def get_by_id(self, observation_id: str) -> Optional[Observation]:
        ...

    async def get_by_status(self, status: ObservationStatus) -> List[Observation]:
        ...

    async def get_promotable(self) -> List[Observation]:
        """Approved observations meeting the count threshold."""
        ...

    async def set_status(self, observation_id: str, status: ObservationStatus) -> Observation:
        """Change status, raising NotFoundError or InvalidTransitionError."""
        ...

    async def delete(self, observation_id: str) -> bool:
        """Delete an observation. Returns False if it did not exist."""
        ...

    async def bulk_create(self, observations: List[Observation]) -> List[Observation]:
        ...

    async def bulk_update(self, updates: List[tuple[str, dict[str, Any]]]) -> List[Observation]:
        """Apply partial updates. Either every update applies or none does."""
        ...

    async def delete_by_status(self, status: ObservationStatus) -> int:
        ...

    async def increment_count(self, observation_id: str, increment: int = 1) -> Observation:
        ...

    async def add_session_ref(self, observation_id: str, session_id: str) -> Observation:
        ...


@runtime_checkable
class MemoryStore(Protocol):
    """Protocol for long-term memory storage."""

    async def get_all(self) -> List[LongTermMemory]:
        ...

    async def get_by_id(self, memory_id: str) -> Optional[LongTermMemory]:
        ...

    async def query(
        self,
        options: MemoryQueryOptions,
        pagination: Optional[Pagination] = None,
        sort: Optional[SortOptions] = None,
    ) -> List[LongTermMemory]:
        ...

    async def get_promotable_to_core(self) -> List[LongTermMemory]:
        ...

    async def promote_to_long_term(self, observation_id: str) -> PromotionResult:
        """Copy an approved observation into long-term memory."""
        ...

    async def promote_to_core(
        self, memory_id: str, targets: List[CoreTarget]
    ) -> PromotionResult:
        """Schedule a memory for the given core targets."""
        ...

    def is_eligible_for_core_promotion(self, memory: LongTermMemory) -> bool:
        ...

    def days_since_long_term_promotion(self, memory: LongTermMemory) -> int:
        ...

    async def set_status(self, memory_id: str, status: LongTermStatus) -> LongTermMemory:
        ...

    async def delete(self, memory_id: str) -> bool:
        ...

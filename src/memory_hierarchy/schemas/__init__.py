# Copyright 2024-2025 Amiable Development
# SPDX-License-Identifier: Apache-2.0

"""Memory hierarchy entity schemas."""

from memory_hierarchy.schemas.memory_types import (
    CoreTarget,
    LongTermMemory,
    LongTermStatus,
    MemoryScope,
    Observation,
    ObservationCategory,
    ObservationStatus,
    PromotionEligibility,
    PromotionResult,
    ScopedMemory,
    can_transition,
    group_by_category,
)

__all__ = [
    "CoreTarget",
    "LongTermMemory",
    "LongTermStatus",
    "MemoryScope",
    "Observation",
    "ObservationCategory",
    "ObservationStatus",
    "PromotionEligibility",
    "PromotionResult",
    "ScopedMemory",
    "can_transition",
    "group_by_category",
]

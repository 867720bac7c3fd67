# Copyright 2024-2025 Amiable Development
# SPDX-License-Identifier: Apache-2.0

"""Promotion through the memory hierarchy with an audit log."""

from memory_hierarchy.promotion.engine import (
    CorePromotionRunResult,
    LongTermCandidate,
    ObservationCandidate,
    ObservationPromotionRunResult,
    PromotionCandidates,
    PromotionEngine,
)
from memory_hierarchy.promotion.events import PromotionEvent, PromotionEventLog, PromotionLevel

__all__ = [
    "CorePromotionRunResult",
    "LongTermCandidate",
    "ObservationCandidate",
    "ObservationPromotionRunResult",
    "PromotionCandidates",
    "PromotionEngine",
    "PromotionEvent",
    "PromotionEventLog",
    "PromotionLevel",
]

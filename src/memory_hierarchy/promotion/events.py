# Copyright 2024-2025 Amiable Development
# SPDX-License-Identifier: Apache-2.0

"""Promotion audit log.

Every promotion attempt, successful or not, is recorded as a
PromotionEvent with a sequence number unique within its log.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional


class PromotionLevel(str, Enum):
    """Which hierarchy step a promotion event belongs to."""

    OBSERVATION_TO_LONG_TERM = "observation-to-long-term"
    LONG_TERM_TO_CORE = "long-term-to-core"


@dataclass(frozen=True)
class PromotionEvent:
    """Record of a single promotion attempt.

    Attributes:
        event_id: Sequence number, starting at 1.
        level: Promotion step.
        source_id: Observation id or long-term memory id being promoted.
        success: Whether the promotion succeeded.
        result_id: Id of the created or promoted entity on success.
        reason: Failure reason (None on success).
        timestamp: When the event was recorded.
    """

    event_id: int
    level: PromotionLevel
    source_id: str
    success: bool
    result_id: Optional[str] = None
    reason: Optional[str] = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class PromotionEventLog:
    """Append-only, in-process promotion event log.

    Example:
        >>> log = PromotionEventLog()
        >>> event = log.record(PromotionLevel.OBSERVATION_TO_LONG_TERM, "obs-1", success=True)
        >>> event.event_id
        1
    """

    def __init__(self) -> None:
        self._events: List[PromotionEvent] = []
        self._counter = 0

    def record(
        self,
        level: PromotionLevel,
        source_id: str,
        success: bool,
        result_id: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> PromotionEvent:
        """Append an event and return it."""
        self._counter += 1
        event = PromotionEvent(
            event_id=self._counter,
            level=level,
            source_id=source_id,
            success=success,
            result_id=result_id,
            reason=reason,
        )
        self._events.append(event)
        return event

    def events(self) -> List[PromotionEvent]:
        """All events, earliest first (a copy)."""
        return list(self._events)

    def by_level(self, level: PromotionLevel) -> List[PromotionEvent]:
        """Events for a single promotion level."""
        return [e for e in self._events if e.level == level]

    def clear(self) -> None:
        """Drop every event and restart numbering at 1."""
        self._events.clear()
        self._counter = 0

    def __len__(self) -> int:
        return len(self._events)

# Copyright 2024-2025 Amiable Development
# SPDX-License-Identifier: Apache-2.0

"""
Memory hierarchy entity schemas.

Defines Pydantic models for the three hierarchy levels:
- Observation: a detected behavioral pattern with count and session provenance
- LongTermMemory: an observation promoted out of the transient pool
- ScopedMemory: a long-term memory tagged with its derived scope

Status transitions are one-way; see ``can_transition``.
"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Hashable, Iterable, Optional, TypeVar

from pydantic import BaseModel, Field, field_validator, model_validator

T = TypeVar("T")


class ObservationCategory(str, Enum):
    """Categories of detected patterns."""

    PREFERENCE = "preference"
    PATTERN = "pattern"
    WORKFLOW = "workflow"
    TOOL_CHOICE = "tool-choice"
    STYLE = "style"
    OTHER = "other"


class ObservationStatus(str, Enum):
    """Lifecycle status of an observation.

    - PENDING: awaiting review
    - APPROVED: accepted, eligible for promotion
    - DENIED: rejected (terminal)
    - PROMOTED_TO_LONG_TERM: copied into long-term memory
    - PROMOTED_TO_CORE: its long-term memory reached core memory
    """

    PENDING = "pending"
    APPROVED = "approved"
    DENIED = "denied"
    PROMOTED_TO_LONG_TERM = "promoted-to-long-term"
    PROMOTED_TO_CORE = "promoted-to-core"


class LongTermStatus(str, Enum):
    """Lifecycle status of a long-term memory."""

    APPROVED = "approved"
    DENIED = "denied"
    SCHEDULED_FOR_CORE = "scheduled-for-core"


class MemoryScope(str, Enum):
    """Derived applicability of a memory.

    - SESSION: seen in a single session
    - PROJECT: spans several sessions of a project
    - GLOBAL: frequent and long-lived enough to apply everywhere
    """

    SESSION = "session"
    PROJECT = "project"
    GLOBAL = "global"


class CoreTarget(str, Enum):
    """Core memory files a long-term memory can be promoted into."""

    CLAUDE_MD = "claude_md"
    AGENTS_MD = "agents_md"


_OBSERVATION_TRANSITIONS: dict[ObservationStatus, frozenset] = {
    ObservationStatus.PENDING: frozenset({ObservationStatus.APPROVED, ObservationStatus.DENIED}),
    ObservationStatus.APPROVED: frozenset({ObservationStatus.PROMOTED_TO_LONG_TERM}),
    ObservationStatus.PROMOTED_TO_LONG_TERM: frozenset({ObservationStatus.PROMOTED_TO_CORE}),
    ObservationStatus.PROMOTED_TO_CORE: frozenset(),
    ObservationStatus.DENIED: frozenset(),
}

_LONG_TERM_TRANSITIONS: dict[LongTermStatus, frozenset] = {
    LongTermStatus.APPROVED: frozenset({LongTermStatus.SCHEDULED_FOR_CORE}),
    LongTermStatus.SCHEDULED_FOR_CORE: frozenset(),
    LongTermStatus.DENIED: frozenset(),
}


def can_transition(current: Enum, target: Enum) -> bool:
    """Check whether a status change is allowed.

    Setting the current status again is always allowed (no-op).

    Args:
        current: Current ObservationStatus or LongTermStatus.
        target: Requested status of the same kind.

    Returns:
        True if the transition is allowed.
    """
    if current == target:
        return True
    if isinstance(current, ObservationStatus):
        return target in _OBSERVATION_TRANSITIONS[current]
    if isinstance(current, LongTermStatus):
        return target in _LONG_TERM_TRANSITIONS[current]
    return False


def _utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class Observation(BaseModel):
    """A detected behavioral pattern.

    Naive datetimes are interpreted as UTC. Source session ids are
    de-duplicated preserving first-seen order.
    """

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), description="Opaque unique id")
    text: str = Field(..., description="Free-form pattern description")
    category: Optional[ObservationCategory] = Field(default=None, description="Pattern category")
    count: int = Field(default=1, ge=0, description="Occurrence count")
    status: ObservationStatus = Field(default=ObservationStatus.PENDING, description="Lifecycle status")
    source_session_ids: list[str] = Field(
        default_factory=list, description="Sessions the pattern was seen in"
    )
    first_seen: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="First occurrence",
    )
    last_seen: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Most recent occurrence",
    )
    tags: Optional[list[str]] = Field(default=None, description="Free-form tags (set semantics)")
    metadata: Optional[dict[str, Any]] = Field(default=None, description="Open key/value map")

    @field_validator("source_session_ids", "tags")
    @classmethod
    def dedupe_ordered(cls, v: Optional[list[str]]) -> Optional[list[str]]:
        """Drop repeated entries, keeping first occurrence order."""
        if v is None:
            return v
        return list(dict.fromkeys(v))

    @field_validator("first_seen", "last_seen")
    @classmethod
    def ensure_aware(cls, v: datetime) -> datetime:
        """Interpret naive datetimes as UTC."""
        return _utc(v)

    @model_validator(mode="after")
    def check_seen_order(self) -> "Observation":
        """Ensure last_seen is not before first_seen."""
        if self.last_seen < self.first_seen:
            raise ValueError("last_seen must not be earlier than first_seen")
        return self

    @property
    def session_count(self) -> int:
        """Number of unique sessions this observation was seen in."""
        return len(self.source_session_ids)

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "text": "Prefers pytest fixtures over setUp methods",
                    "category": "preference",
                    "count": 4,
                    "status": "approved",
                    "source_session_ids": ["session-a", "session-b"],
                }
            ]
        }
    }


class LongTermMemory(BaseModel):
    """An observation promoted into long-term memory.

    The embedded observation is a snapshot owned by this memory.
    """

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), description="Opaque unique id")
    observation: Observation = Field(..., description="Snapshot of the promoted observation")
    promoted_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the observation was promoted",
    )
    status: LongTermStatus = Field(default=LongTermStatus.APPROVED, description="Lifecycle status")

    @field_validator("promoted_at")
    @classmethod
    def ensure_aware(cls, v: datetime) -> datetime:
        """Interpret naive datetimes as UTC."""
        return _utc(v)


class PromotionResult(BaseModel):
    """Outcome of a store promotion call.

    Business failures are reported here rather than raised.
    """

    success: bool
    id: Optional[str] = Field(default=None, description="Id of the created or promoted entity")
    reason: Optional[str] = Field(default=None, description="Failure reason")


class PromotionEligibility(BaseModel):
    """Whether a scoped memory may move up one scope level."""

    eligible: bool
    target_scope: Optional[MemoryScope] = None
    reason: str


class ScopedMemory(BaseModel):
    """A long-term memory tagged with its derived scope.

    Session memories carry the session id, project memories the project
    slug.
    """

    scope: MemoryScope
    memory: LongTermMemory
    session_id: Optional[str] = None
    project_slug: Optional[str] = None

    @property
    def id(self) -> str:
        return self.memory.id

    def check_promotion_eligibility(
        self,
        count_threshold: int,
        session_threshold: int,
    ) -> PromotionEligibility:
        """Check whether this memory can move to the next scope.

        A session memory qualifies for project scope once it has been
        seen in at least two sessions. A project memory qualifies for
        global scope once it meets both the count and session thresholds.

        Args:
            count_threshold: Minimum observation count for global scope.
            session_threshold: Minimum unique sessions for global scope.

        Returns:
            PromotionEligibility describing the decision.
        """
        observation = self.memory.observation
        sessions = observation.session_count

        if self.scope == MemoryScope.GLOBAL:
            return PromotionEligibility(eligible=False, reason="Already at global scope")

        if self.scope == MemoryScope.SESSION:
            if sessions > 1:
                return PromotionEligibility(
                    eligible=True,
                    target_scope=MemoryScope.PROJECT,
                    reason=f"Seen in {sessions} sessions",
                )
            return PromotionEligibility(eligible=False, reason="Seen in a single session")

        if observation.count >= count_threshold and sessions >= session_threshold:
            return PromotionEligibility(
                eligible=True,
                target_scope=MemoryScope.GLOBAL,
                reason=f"Count {observation.count} across {sessions} sessions",
            )
        return PromotionEligibility(
            eligible=False,
            reason=(
                f"Needs count >= {count_threshold} and sessions >= {session_threshold} "
                f"(has {observation.count} and {sessions})"
            ),
        )


def group_by_category(
    items: Iterable[T],
    key: Callable[[T], Hashable],
) -> dict[Hashable, list[T]]:
    """Group items by a key, keeping first-seen key order.

    Args:
        items: Items to group.
        key: Function returning the grouping key for an item.

    Returns:
        Ordered mapping of key to items, in input order within each group.
    """
    groups: dict[Hashable, list[T]] = {}
    for item in items:
        groups.setdefault(key(item), []).append(item)
    return groups

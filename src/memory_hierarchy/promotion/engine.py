# Copyright 2024-2025 Amiable Development
# SPDX-License-Identifier: Apache-2.0

"""Threshold-driven promotion through the memory hierarchy.

Two promotion steps are supported:
- observation -> long-term: approved observations whose count meets the
  threshold, or that span enough sessions to count as a project-level
  pattern regardless of count
- long-term -> core: memories resident long enough whose observation
  count meets the threshold, written to every enabled core target

Every attempt is recorded in the engine's PromotionEventLog. A failure on
one item never aborts the rest of the run.
"""

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional

from memory_hierarchy.config import HierarchyConfig
from memory_hierarchy.promotion.events import PromotionEvent, PromotionEventLog, PromotionLevel
from memory_hierarchy.protocols import MemoryStore, ObservationStore, StoreError
from memory_hierarchy.schemas import (
    CoreTarget,
    LongTermMemory,
    LongTermStatus,
    Observation,
    ObservationStatus,
)

logger = logging.getLogger(__name__)

NO_TARGETS_REASON = "No memory targets configured (both claudeMd and agentsMd are disabled)"
DEFAULT_FAILURE_REASON = "Promotion failed with no reason provided"
DEFAULT_CORE_FAILURE_REASON = "Core promotion failed with no reason provided"


@dataclass
class ObservationCandidate:
    """An observation that would be promoted to long-term memory."""

    observation: Observation
    reason: str
    is_project_level: bool


@dataclass
class LongTermCandidate:
    """A long-term memory that would be promoted to core memory."""

    memory: LongTermMemory
    days_in_long_term: int
    reason: str


@dataclass
class PromotionCandidates:
    """Dry-run preview of both promotion steps."""

    observation_candidates: List[ObservationCandidate] = field(default_factory=list)
    long_term_candidates: List[LongTermCandidate] = field(default_factory=list)
    evaluated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass
class ObservationPromotionRunResult:
    """Summary of one observation -> long-term run."""

    evaluated: int = 0
    promoted: int = 0
    failed: int = 0
    events: List[PromotionEvent] = field(default_factory=list)
    duration_ms: float = 0.0


@dataclass
class CorePromotionRunResult:
    """Summary of one long-term -> core run."""

    evaluated: int = 0
    promoted: int = 0
    failed: int = 0
    events: List[PromotionEvent] = field(default_factory=list)
    duration_ms: float = 0.0


class PromotionEngine:
    """Promotes entities up the memory hierarchy.

    Attributes:
        observation_store: Source of observations.
        memory_store: Long-term memory store.
        config: Hierarchy configuration.
        log: Audit log of every promotion attempt.

    Example:
        >>> engine = PromotionEngine(observations, memories, config)
        >>> preview = await engine.get_promotion_candidates()
        >>> result = await engine.check_and_promote_observations()
        >>> print(f"Promoted {result.promoted}, failed {result.failed}")
    """

    def __init__(
        self,
        observation_store: ObservationStore,
        memory_store: MemoryStore,
        config: Optional[HierarchyConfig] = None,
    ):
        self.observation_store = observation_store
        self.memory_store = memory_store
        self.config = config or HierarchyConfig()
        self.log = PromotionEventLog()

    # ------------------------------------------------------------------
    # Eligibility
    # ------------------------------------------------------------------

    def is_project_level(self, observation: Observation) -> bool:
        """Whether the observation spans enough sessions to bypass the count rule."""
        return observation.session_count >= self.config.promotion.project_level_session_threshold

    def is_observation_eligible(self, observation: Observation) -> bool:
        """Approved and either frequent enough or project-level."""
        if observation.status != ObservationStatus.APPROVED:
            return False
        meets_count = observation.count >= self.config.promotion.observation_count_threshold
        return meets_count or self.is_project_level(observation)

    def core_targets(self) -> List[CoreTarget]:
        """Core targets enabled in configuration."""
        targets = []
        if self.config.memory_targets.claude_md:
            targets.append(CoreTarget.CLAUDE_MD)
        if self.config.memory_targets.agents_md:
            targets.append(CoreTarget.AGENTS_MD)
        return targets

    async def _observation_candidates(self) -> List[Observation]:
        promotable = await self.observation_store.get_promotable()
        approved = await self.observation_store.get_by_status(ObservationStatus.APPROVED)

        seen = {o.id for o in promotable}
        candidates = list(promotable)
        for observation in approved:
            if observation.id not in seen and self.is_project_level(observation):
                candidates.append(observation)
                seen.add(observation.id)
        return candidates

    # ------------------------------------------------------------------
    # Preview
    # ------------------------------------------------------------------

    async def get_promotion_candidates(self) -> PromotionCandidates:
        """Preview both promotion steps without changing any store.

        Returns:
            PromotionCandidates with a reason per candidate.
        """
        thresholds = self.config.promotion
        preview = PromotionCandidates()

        for observation in await self._observation_candidates():
            if not self.is_observation_eligible(observation):
                continue
            project_level = self.is_project_level(observation)
            if project_level:
                reason = (
                    f"Seen across {observation.session_count} sessions "
                    f"(project-level threshold: {thresholds.project_level_session_threshold})"
                )
            else:
                reason = (
                    f"Count {observation.count} meets threshold "
                    f"{thresholds.observation_count_threshold}"
                )
            preview.observation_candidates.append(
                ObservationCandidate(observation=observation, reason=reason, is_project_level=project_level)
            )

        for memory in await self.memory_store.get_promotable_to_core():
            if not self.memory_store.is_eligible_for_core_promotion(memory):
                continue
            days = self.memory_store.days_since_long_term_promotion(memory)
            reason = (
                f"Resident for {days} days (threshold: {thresholds.long_term_days_threshold}) "
                f"and count {memory.observation.count} meets threshold "
                f"{thresholds.observation_count_threshold}"
            )
            preview.long_term_candidates.append(
                LongTermCandidate(memory=memory, days_in_long_term=days, reason=reason)
            )

        return preview

    # ------------------------------------------------------------------
    # Observation -> long-term
    # ------------------------------------------------------------------

    async def check_and_promote_observations(self) -> ObservationPromotionRunResult:
        """Promote every eligible observation to long-term memory.

        On success the observation moves to ``promoted-to-long-term``.
        Store errors are caught per observation and recorded as failures.

        Returns:
            Run summary with counts, events and timing.
        """
        start_time = time.perf_counter()
        result = ObservationPromotionRunResult()
        level = PromotionLevel.OBSERVATION_TO_LONG_TERM

        candidates = await self._observation_candidates()
        result.evaluated = len(candidates)

        for observation in candidates:
            try:
                outcome = await self.memory_store.promote_to_long_term(observation.id)
                if outcome.success:
                    await self.observation_store.set_status(
                        observation.id, ObservationStatus.PROMOTED_TO_LONG_TERM
                    )
                    event = self.log.record(level, observation.id, success=True, result_id=outcome.id)
                    result.promoted += 1
                else:
                    event = self.log.record(
                        level,
                        observation.id,
                        success=False,
                        reason=outcome.reason or DEFAULT_FAILURE_REASON,
                    )
                    result.failed += 1
            except Exception as e:
                logger.warning(f"Failed to promote observation {observation.id}: {e}")
                event = self.log.record(level, observation.id, success=False, reason=str(e) or DEFAULT_FAILURE_REASON)
                result.failed += 1
            result.events.append(event)

        result.duration_ms = (time.perf_counter() - start_time) * 1000
        logger.info(
            f"Observation promotion: {result.promoted} promoted, {result.failed} failed "
            f"of {result.evaluated}"
        )
        return result

    # ------------------------------------------------------------------
    # Long-term -> core
    # ------------------------------------------------------------------

    async def check_and_promote_to_core(self) -> CorePromotionRunResult:
        """Promote every eligible long-term memory to core memory.

        With no core targets enabled, each eligible memory is recorded as a
        failure and left untouched. On success the memory moves to
        ``scheduled-for-core`` and its observation to ``promoted-to-core``.

        Returns:
            Run summary with counts, events and timing.
        """
        start_time = time.perf_counter()
        result = CorePromotionRunResult()
        level = PromotionLevel.LONG_TERM_TO_CORE
        targets = self.core_targets()

        memories = await self.memory_store.get_promotable_to_core()
        result.evaluated = len(memories)

        for memory in memories:
            if not self.memory_store.is_eligible_for_core_promotion(memory):
                continue

            if not targets:
                event = self.log.record(level, memory.id, success=False, reason=NO_TARGETS_REASON)
                result.failed += 1
                result.events.append(event)
                continue

            try:
                outcome = await self.memory_store.promote_to_core(memory.id, targets)
                if outcome.success:
                    await self.memory_store.set_status(memory.id, LongTermStatus.SCHEDULED_FOR_CORE)
                    await self._mark_observation_core(memory)
                    event = self.log.record(level, memory.id, success=True, result_id=outcome.id)
                    result.promoted += 1
                else:
                    event = self.log.record(
                        level,
                        memory.id,
                        success=False,
                        reason=outcome.reason or DEFAULT_CORE_FAILURE_REASON,
                    )
                    result.failed += 1
            except Exception as e:
                logger.warning(f"Failed to promote memory {memory.id} to core: {e}")
                event = self.log.record(level, memory.id, success=False, reason=str(e) or DEFAULT_CORE_FAILURE_REASON)
                result.failed += 1
            result.events.append(event)

        result.duration_ms = (time.perf_counter() - start_time) * 1000
        logger.info(
            f"Core promotion: {result.promoted} promoted, {result.failed} failed "
            f"of {result.evaluated}"
        )
        return result

    async def _mark_observation_core(self, memory: LongTermMemory) -> None:
        try:
            await self.observation_store.set_status(
                memory.observation.id, ObservationStatus.PROMOTED_TO_CORE
            )
        except StoreError as e:
            # Memory is already scheduled; the observation may be pruned or out of step.
            logger.warning(
                f"Could not mark observation {memory.observation.id} for memory {memory.id} "
                f"as promoted to core: {e}"
            )

    # ------------------------------------------------------------------
    # Log access
    # ------------------------------------------------------------------

    def get_promotion_log(self) -> List[PromotionEvent]:
        """All promotion events recorded by this engine, earliest first."""
        return self.log.events()

    def get_promotion_log_by_level(self, level: PromotionLevel) -> List[PromotionEvent]:
        return self.log.by_level(level)

    def clear_promotion_log(self) -> None:
        """Clear the event log. Stores are not touched."""
        self.log.clear()

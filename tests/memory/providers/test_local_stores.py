# Copyright 2024-2025 Amiable Development
# SPDX-License-Identifier: Apache-2.0

"""
Tests for the in-memory observation and memory stores.
"""

import pytest
from datetime import timedelta

from memory_hierarchy.config import HierarchyConfig
from memory_hierarchy.protocols import (
    DateRange,
    InvalidTransitionError,
    MemoryQueryOptions,
    MemoryStore,
    NotFoundError,
    ObservationStore,
    Pagination,
    SortOptions,
    StoreError,
)
from memory_hierarchy.providers import LocalMemoryStore, LocalObservationStore
from memory_hierarchy.schemas import CoreTarget, LongTermStatus, ObservationStatus


class TestProtocolCompliance:
    """Local stores satisfy the store protocols."""

    def test_observation_store(self):
        """LocalObservationStore is an ObservationStore."""
        assert isinstance(LocalObservationStore(), ObservationStore)

    def test_memory_store(self):
        """LocalMemoryStore is a MemoryStore."""
        assert isinstance(LocalMemoryStore(), MemoryStore)


class TestLocalObservationStore:
    """Tests for LocalObservationStore."""

    @pytest.mark.asyncio
    async def test_returns_copies(self, make_observation):
        """Mutating a returned observation does not change the store."""
        obs = make_observation(count=2)
        store = LocalObservationStore([obs])
        fetched = await store.get_by_id(obs.id)
        fetched.count = 99
        fetched.source_session_ids.append("rogue")
        again = await store.get_by_id(obs.id)
        assert again.count == 2
        assert again.source_session_ids == ["session-1"]

    @pytest.mark.asyncio
    async def test_get_missing_returns_none(self):
        """Unknown ids return None."""
        assert await LocalObservationStore().get_by_id("nope") is None

    @pytest.mark.asyncio
    async def test_get_promotable_uses_threshold(self, make_observation):
        """Only approved observations at or above the count threshold are promotable."""
        ready = make_observation(count=3, status="approved")
        low = make_observation(count=2, status="approved")
        pending = make_observation(count=10)
        store = LocalObservationStore([ready, low, pending])
        assert [o.id for o in await store.get_promotable()] == [ready.id]

    @pytest.mark.asyncio
    async def test_get_promotable_custom_threshold(self, make_observation):
        """The threshold comes from configuration."""
        config = HierarchyConfig.from_dict({"promotion": {"observation_count_threshold": 2}})
        low = make_observation(count=2, status="approved")
        store = LocalObservationStore([low], config=config)
        assert len(await store.get_promotable()) == 1

    @pytest.mark.asyncio
    async def test_set_status_follows_lattice(self, make_observation):
        """Valid transitions apply; invalid ones raise."""
        obs = make_observation()
        store = LocalObservationStore([obs])
        updated = await store.set_status(obs.id, ObservationStatus.DENIED)
        assert updated.status == ObservationStatus.DENIED
        with pytest.raises(InvalidTransitionError):
            await store.set_status(obs.id, ObservationStatus.APPROVED)

    @pytest.mark.asyncio
    async def test_set_status_same_is_noop(self, make_observation):
        """Setting the current status again succeeds."""
        obs = make_observation(status="approved")
        store = LocalObservationStore([obs])
        updated = await store.set_status(obs.id, ObservationStatus.APPROVED)
        assert updated.status == ObservationStatus.APPROVED

    @pytest.mark.asyncio
    async def test_set_status_missing_raises(self):
        """Unknown ids raise NotFoundError, a StoreError."""
        store = LocalObservationStore()
        with pytest.raises(NotFoundError) as exc_info:
            await store.set_status("ghost", ObservationStatus.APPROVED)
        assert isinstance(exc_info.value, StoreError)
        assert exc_info.value.entity_id == "ghost"

    @pytest.mark.asyncio
    async def test_increment_and_session_ref(self, make_observation):
        """Counts only grow and session refs union."""
        obs = make_observation(count=1, sessions=["s1"])
        store = LocalObservationStore([obs])
        await store.increment_count(obs.id, 2)
        await store.add_session_ref(obs.id, "s2")
        updated = await store.add_session_ref(obs.id, "s1")
        assert updated.count == 3
        assert updated.source_session_ids == ["s1", "s2"]

    @pytest.mark.asyncio
    async def test_negative_increment_rejected(self, make_observation):
        """Counts cannot be decremented."""
        obs = make_observation()
        store = LocalObservationStore([obs])
        with pytest.raises(ValueError):
            await store.increment_count(obs.id, -1)

    @pytest.mark.asyncio
    async def test_bulk_create_rejects_duplicates(self, make_observation):
        """A clashing id aborts the whole bulk create."""
        existing = make_observation(id="dup")
        store = LocalObservationStore([existing])
        with pytest.raises(StoreError):
            await store.bulk_create([make_observation(id="new"), make_observation(id="dup")])
        assert store.count() == 1

    @pytest.mark.asyncio
    async def test_bulk_update_all_or_nothing(self, make_observation):
        """An unknown id in a bulk update leaves every observation unchanged."""
        obs = make_observation(count=1)
        store = LocalObservationStore([obs])
        with pytest.raises(NotFoundError):
            await store.bulk_update([(obs.id, {"count": 5}), ("ghost", {"count": 2})])
        assert (await store.get_by_id(obs.id)).count == 1

    @pytest.mark.asyncio
    async def test_bulk_update_preserves_identity(self, make_observation):
        """Bulk updates never change id or first_seen."""
        obs = make_observation(count=1)
        store = LocalObservationStore([obs])
        [updated] = await store.bulk_update(
            [(obs.id, {"count": 4, "id": "other", "first_seen": obs.first_seen - timedelta(days=9)})]
        )
        assert updated.id == obs.id
        assert updated.first_seen == obs.first_seen
        assert updated.count == 4

    @pytest.mark.asyncio
    async def test_delete_and_delete_by_status(self, make_observation):
        """Deletes report whether anything was removed."""
        denied = [make_observation(status="denied") for _ in range(2)]
        keep = make_observation()
        store = LocalObservationStore(denied + [keep])
        assert await store.delete_by_status(ObservationStatus.DENIED) == 2
        assert await store.delete(keep.id) is True
        assert await store.delete(keep.id) is False
        assert store.count() == 0


class TestLocalMemoryStore:
    """Tests for LocalMemoryStore."""

    @pytest.mark.asyncio
    async def test_promote_to_long_term(self, make_observation):
        """Approved observations become long-term memories holding a snapshot."""
        obs = make_observation(status="approved", count=3)
        observations = LocalObservationStore([obs])
        memories = LocalMemoryStore(observation_store=observations)

        result = await memories.promote_to_long_term(obs.id)

        assert result.success
        memory = await memories.get_by_id(result.id)
        assert memory.observation.id == obs.id
        assert memory.status == LongTermStatus.APPROVED

        await observations.increment_count(obs.id, 5)
        assert (await memories.get_by_id(result.id)).observation.count == 3

    @pytest.mark.asyncio
    async def test_promote_requires_approval(self, make_observation):
        """Pending observations cannot be promoted."""
        obs = make_observation()
        memories = LocalMemoryStore(observation_store=LocalObservationStore([obs]))
        result = await memories.promote_to_long_term(obs.id)
        assert not result.success
        assert "pending" in result.reason

    @pytest.mark.asyncio
    async def test_promote_missing_observation(self):
        """Unknown observations fail with a reason."""
        memories = LocalMemoryStore(observation_store=LocalObservationStore())
        result = await memories.promote_to_long_term("ghost")
        assert not result.success
        assert "ghost" in result.reason

    @pytest.mark.asyncio
    async def test_promote_without_observation_store(self):
        """Without an observation store promotion fails instead of guessing."""
        result = await LocalMemoryStore().promote_to_long_term("anything")
        assert not result.success

    def test_core_eligibility(self, make_memory):
        """Core eligibility needs both count and residency."""
        store = LocalMemoryStore()
        assert store.is_eligible_for_core_promotion(make_memory(count=3, promoted_days_ago=7))
        assert not store.is_eligible_for_core_promotion(make_memory(count=2, promoted_days_ago=30))
        assert not store.is_eligible_for_core_promotion(make_memory(count=9, promoted_days_ago=6))

    def test_days_since_promotion_floors(self, make_memory, now):
        """Residency is counted in whole days."""
        memory = make_memory(promoted_days_ago=3)
        store = LocalMemoryStore()
        assert store.days_since_long_term_promotion(memory, now + timedelta(hours=20)) == 3

    @pytest.mark.asyncio
    async def test_promote_to_core(self, make_memory):
        """Eligible memories are scheduled for core."""
        memory = make_memory(count=4, promoted_days_ago=10)
        store = LocalMemoryStore([memory])
        result = await store.promote_to_core(memory.id, [CoreTarget.CLAUDE_MD])
        assert result.success
        assert (await store.get_by_id(memory.id)).status == LongTermStatus.SCHEDULED_FOR_CORE

    @pytest.mark.asyncio
    async def test_promote_to_core_ineligible(self, make_memory):
        """Ineligible memories report the missing thresholds."""
        memory = make_memory(count=2, promoted_days_ago=10)
        store = LocalMemoryStore([memory])
        result = await store.promote_to_core(memory.id, [CoreTarget.CLAUDE_MD])
        assert not result.success
        assert "Count: 2/3" in result.reason

    @pytest.mark.asyncio
    async def test_query_filters(self, make_memory, now):
        """Store query filters are ANDed."""
        fresh = make_memory("fresh", count=5, promoted_days_ago=1)
        old = make_memory("old", count=5, promoted_days_ago=20)
        rare = make_memory("rare", count=1, promoted_days_ago=20)
        denied = make_memory("denied", count=5, promoted_days_ago=20, status="denied")
        store = LocalMemoryStore([fresh, old, rare, denied])

        approved = await store.query(MemoryQueryOptions(status=LongTermStatus.APPROVED))
        assert {m.id for m in approved} == {fresh.id, old.id, rare.id}

        frequent_old = await store.query(
            MemoryQueryOptions(status=[LongTermStatus.APPROVED], min_count=3, min_days=7)
        )
        assert [m.id for m in frequent_old] == [old.id]

        recent = await store.query(
            MemoryQueryOptions(date_range=DateRange(start=now - timedelta(days=5)))
        )
        assert [m.id for m in recent] == [fresh.id]

        core_ready = await store.query(MemoryQueryOptions(eligible_for_core=True))
        assert {m.id for m in core_ready} == {old.id, denied.id}

    @pytest.mark.asyncio
    async def test_query_sort_and_paginate(self, make_memory):
        """Sorting and pagination apply after filtering."""
        memories = [make_memory(f"m{i}", promoted_days_ago=i) for i in range(4)]
        store = LocalMemoryStore(memories)
        page = await store.query(
            MemoryQueryOptions(),
            Pagination(offset=1, limit=2),
            SortOptions(field="promoted_at", direction="asc"),
        )
        assert [m.id for m in page] == [memories[2].id, memories[1].id]

    @pytest.mark.asyncio
    async def test_get_promotable_to_core(self, make_memory):
        """Only approved, eligible memories are promotable to core."""
        ready = make_memory(count=3, promoted_days_ago=8)
        scheduled = make_memory(count=3, promoted_days_ago=8, status="scheduled-for-core")
        store = LocalMemoryStore([ready, scheduled])
        assert [m.id for m in await store.get_promotable_to_core()] == [ready.id]

    @pytest.mark.asyncio
    async def test_set_status_and_delete(self, make_memory):
        """Status changes follow the lattice and deletes report existence."""
        memory = make_memory()
        store = LocalMemoryStore([memory])
        await store.set_status(memory.id, LongTermStatus.SCHEDULED_FOR_CORE)
        with pytest.raises(InvalidTransitionError):
            await store.set_status(memory.id, LongTermStatus.APPROVED)
        with pytest.raises(NotFoundError):
            await store.set_status("ghost", LongTermStatus.DENIED)
        assert await store.delete(memory.id) is True
        assert await store.delete(memory.id) is False

    @pytest.mark.asyncio
    async def test_counts(self, make_observation, make_memory):
        """Counts cover pending observations, long-term and core memories."""
        observations = LocalObservationStore([make_observation(), make_observation(status="approved")])
        store = LocalMemoryStore(
            [make_memory(), make_memory(status="scheduled-for-core")],
            observation_store=observations,
        )
        assert await store.get_counts() == {"pending": 1, "long_term": 1, "core": 1}

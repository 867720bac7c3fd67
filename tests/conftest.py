# Copyright 2024-2025 Amiable Development
# SPDX-License-Identifier: Apache-2.0

"""
Root pytest configuration with shared fixtures and markers.

This file is automatically loaded by pytest and provides:
- Custom markers for test categorisation
- Shared factories for observations and long-term memories
"""

import uuid
from datetime import datetime, timedelta, timezone

import pytest


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers",
        "critical: Mark test as critical priority",
    )
    config.addinivalue_line(
        "markers",
        "integration: Mark test as integration test (engines over real stores)",
    )


# ============================================================================
# Shared Fixtures
# ============================================================================


@pytest.fixture
def now():
    """Current UTC time, captured once per test."""
    return datetime.now(timezone.utc)


@pytest.fixture
def make_observation(now):
    """Factory for observations with sensible defaults.

    ``days_ago`` sets last_seen relative to ``now``; first_seen is placed
    one day earlier.
    """
    from memory_hierarchy.schemas import Observation

    def _make(text="Prefers pytest fixtures", days_ago=0, sessions=None, **kwargs):
        last_seen = now - timedelta(days=days_ago)
        kwargs.setdefault("first_seen", last_seen - timedelta(days=1))
        kwargs.setdefault("id", f"obs-{uuid.uuid4().hex[:8]}")
        return Observation(
            text=text,
            last_seen=last_seen,
            source_session_ids=sessions if sessions is not None else ["session-1"],
            **kwargs,
        )

    return _make


@pytest.fixture
def make_memory(now, make_observation):
    """Factory for long-term memories promoted ``promoted_days_ago`` days ago."""
    from memory_hierarchy.schemas import LongTermMemory

    def _make(text="Prefers pytest fixtures", promoted_days_ago=0, status=None, **obs_kwargs):
        obs_kwargs.setdefault("status", "promoted-to-long-term")
        observation = make_observation(text=text, **obs_kwargs)
        kwargs = {"status": status} if status is not None else {}
        return LongTermMemory(
            id=f"mem-{uuid.uuid4().hex[:8]}",
            observation=observation,
            promoted_at=now - timedelta(days=promoted_days_ago),
            **kwargs,
        )

    return _make


@pytest.fixture
def temp_session_id():
    """Generate a temporary session ID."""
    return f"test-session-{uuid.uuid4().hex[:8]}"

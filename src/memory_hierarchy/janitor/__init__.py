# Copyright 2024-2025 Amiable Development
# SPDX-License-Identifier: Apache-2.0

"""Maintenance tasks for the memory hierarchy.

This module provides rule-based pruning and a runner that combines
pruning with promotion into a single maintenance pass.
"""

from memory_hierarchy.janitor.pruning import (
    PrunedItem,
    PruneReason,
    PruneResult,
    PruningEngine,
)
from memory_hierarchy.janitor.runner import MaintenanceRunner

__all__ = [
    "MaintenanceRunner",
    "PrunedItem",
    "PruneReason",
    "PruneResult",
    "PruningEngine",
]

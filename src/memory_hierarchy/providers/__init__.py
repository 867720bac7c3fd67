# Copyright 2024-2025 Amiable Development
# SPDX-License-Identifier: Apache-2.0

"""Store implementations."""

from memory_hierarchy.providers.local import LocalMemoryStore, LocalObservationStore

__all__ = [
    "LocalMemoryStore",
    "LocalObservationStore",
]

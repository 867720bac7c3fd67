"""Memory Hierarchy - observation, long-term and core memory management.

Deduplicates, scores, promotes, prunes and queries behavioral patterns
extracted from coding-assistant sessions.

Usage:
    from memory_hierarchy.config import load_config
    from memory_hierarchy.providers.local import LocalMemoryStore, LocalObservationStore
    from memory_hierarchy.promotion import PromotionEngine
"""

__version__ = "0.1.0"

__all__ = [
    "__version__",
]

# Copyright 2024-2025 Amiable Development
# SPDX-License-Identifier: Apache-2.0

"""Scope-aware memory queries.

Implements hierarchical retrieval: session > project > global.

A memory's scope is derived, never stored: global when it is frequent
and has been resident long enough, project when it spans more than one
session, session otherwise. Querying at a scope also returns memories
from the broader scopes above it, each level toggleable.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterable, List, Optional

from memory_hierarchy.config import HierarchyConfig
from memory_hierarchy.ingestion.similarity import tokenize
from memory_hierarchy.lifecycle.decay import (
    RelevanceScore,
    RelevanceScorer,
    ScoringContext,
    whole_days_between,
)
from memory_hierarchy.protocols import MemoryQueryOptions, MemoryStore, Pagination
from memory_hierarchy.schemas import (
    LongTermMemory,
    MemoryScope,
    ObservationCategory,
    ScopedMemory,
)

logger = logging.getLogger(__name__)

SCOPE_ORDER = [MemoryScope.SESSION, MemoryScope.PROJECT, MemoryScope.GLOBAL]

# Metadata key linking an observation to a project
PROJECT_SLUG_KEY = "projectSlug"


@dataclass
class InheritanceConfig:
    """Which levels of the inheritance chain to include."""

    include_session: bool = True
    include_project: bool = True
    include_global: bool = True


@dataclass
class QueryFilter(MemoryQueryOptions):
    """Store filters plus scope, category, keyword and relevance filters.

    Attributes:
        scope: Restrict to this scope and the scopes it inherits from.
        category: Observation category.
        keyword: Matches when any token overlaps the text or tags.
        relevance_threshold: Minimum total relevance (0.0-1.0).
    """

    scope: Optional[MemoryScope] = None
    category: Optional[ObservationCategory] = None
    keyword: Optional[str] = None
    relevance_threshold: Optional[float] = None


@dataclass
class ScoredMemory:
    """A memory with its relevance breakdown."""

    memory: LongTermMemory
    relevance: RelevanceScore


@dataclass
class QueryResult:
    """One page of scored query results.

    Attributes:
        items: Memories on this page, most relevant first.
        total: Matching memories across all pages.
        offset: Page offset.
        limit: Page size.
    """

    items: List[ScoredMemory] = field(default_factory=list)
    total: int = 0
    offset: int = 0
    limit: int = 50


def resolve_inheritance_chain(
    scope: MemoryScope,
    inheritance: Optional[InheritanceConfig] = None,
) -> List[MemoryScope]:
    """Scopes visible from ``scope``, narrowest first.

    Args:
        scope: Requested scope.
        inheritance: Level toggles (all enabled by default).

    Returns:
        Enabled scopes from ``scope`` up to global.

    Example:
        >>> resolve_inheritance_chain(MemoryScope.SESSION)
        [MemoryScope.SESSION, MemoryScope.PROJECT, MemoryScope.GLOBAL]
    """
    inheritance = inheritance or InheritanceConfig()
    enabled = {
        MemoryScope.SESSION: inheritance.include_session,
        MemoryScope.PROJECT: inheritance.include_project,
        MemoryScope.GLOBAL: inheritance.include_global,
    }
    start = SCOPE_ORDER.index(scope)
    return [level for level in SCOPE_ORDER[start:] if enabled[level]]


def matches_keyword(memory: LongTermMemory, keyword: str) -> bool:
    """Whether any keyword token appears in the memory's text or tags.

    A keyword without usable tokens matches everything.
    """
    query_tokens = tokenize(keyword)
    if not query_tokens:
        return True

    observation = memory.observation
    if query_tokens & tokenize(observation.text):
        return True

    tag_tokens: set[str] = set()
    for tag in observation.tags or []:
        tag_tokens |= tokenize(tag)
    return bool(query_tokens & tag_tokens)


class QueryEngine:
    """Inheritance-aware query engine over a MemoryStore.

    Attributes:
        memory_store: Long-term memory store.
        config: Hierarchy configuration.
        scorer: RelevanceScorer (default weights, configured half-life).

    Example:
        >>> engine = QueryEngine(memory_store, config)
        >>> result = await engine.query(
        ...     QueryFilter(scope=MemoryScope.PROJECT, keyword="pytest"),
        ...     Pagination(offset=0, limit=10),
        ... )
        >>> for item in result.items:
        ...     print(item.memory.observation.text, item.relevance.total)
    """

    def __init__(
        self,
        memory_store: MemoryStore,
        config: Optional[HierarchyConfig] = None,
        scorer: Optional[RelevanceScorer] = None,
    ):
        self.memory_store = memory_store
        self.config = config or HierarchyConfig()
        self.scorer = scorer or RelevanceScorer(
            half_life_days=self.config.query.recency_half_life_days
        )

    # ------------------------------------------------------------------
    # Classification
    # ------------------------------------------------------------------

    def classify_scope(
        self,
        memory: LongTermMemory,
        reference_time: Optional[datetime] = None,
    ) -> MemoryScope:
        """Derive a memory's scope.

        The result depends only on the memory, the configuration and the
        reference time.

        Args:
            memory: Memory to classify.
            reference_time: Point in time for residency (default: now).

        Returns:
            GLOBAL when count and days since promotion both meet their
            thresholds, PROJECT when seen in more than one session,
            SESSION otherwise.
        """
        reference_time = reference_time or datetime.now(timezone.utc)
        thresholds = self.config.promotion
        observation = memory.observation
        days = whole_days_between(reference_time, memory.promoted_at)

        if (
            observation.count >= thresholds.observation_count_threshold
            and days >= thresholds.long_term_days_threshold
        ):
            return MemoryScope.GLOBAL
        if observation.session_count > 1:
            return MemoryScope.PROJECT
        return MemoryScope.SESSION

    def partition_by_scope(
        self,
        memories: Iterable[LongTermMemory],
        project_slug: Optional[str] = None,
        session_id: Optional[str] = None,
        reference_time: Optional[datetime] = None,
    ) -> dict[MemoryScope, List[ScopedMemory]]:
        """Tag memories with their scope and bucket them.

        Args:
            memories: Memories to partition.
            project_slug: Project to record on project memories lacking one.
            session_id: Session to record on session memories.
            reference_time: Point in time for classification.

        Returns:
            Buckets keyed session, project, global (in that order).
        """
        reference_time = reference_time or datetime.now(timezone.utc)
        buckets: dict[MemoryScope, List[ScopedMemory]] = {scope: [] for scope in SCOPE_ORDER}

        for memory in memories:
            scope = self.classify_scope(memory, reference_time)
            observation = memory.observation
            if scope == MemoryScope.SESSION:
                session = session_id or next(iter(observation.source_session_ids), None)
                scoped = ScopedMemory(scope=scope, memory=memory, session_id=session)
            elif scope == MemoryScope.PROJECT:
                slug = (observation.metadata or {}).get(PROJECT_SLUG_KEY) or project_slug
                scoped = ScopedMemory(scope=scope, memory=memory, project_slug=slug)
            else:
                scoped = ScopedMemory(scope=scope, memory=memory)
            buckets[scope].append(scoped)

        return buckets

    # ------------------------------------------------------------------
    # Scoring
    # ------------------------------------------------------------------

    def compute_relevance(
        self,
        memory: LongTermMemory,
        context: Optional[ScoringContext] = None,
    ) -> RelevanceScore:
        """Score a memory.

        Without a context, the memory is normalized against itself.
        """
        context = context or ScoringContext.for_item(memory.observation)
        return self.scorer.score(memory.observation, context)

    def _score_all(
        self,
        memories: List[LongTermMemory],
        reference_time: datetime,
    ) -> List[ScoredMemory]:
        if not memories:
            return []
        context = ScoringContext.for_batch((m.observation for m in memories), reference_time)
        return [ScoredMemory(memory=m, relevance=self.compute_relevance(m, context)) for m in memories]

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def query(
        self,
        query_filter: Optional[QueryFilter] = None,
        pagination: Optional[Pagination] = None,
        inheritance: Optional[InheritanceConfig] = None,
    ) -> QueryResult:
        """Run a filtered, scored, paginated query.

        Steps run in order: store filter, scope inheritance, category,
        keyword, scoring against the filtered set, relevance threshold,
        descending sort, pagination. Memories at inherited levels are
        merged in from the whole store, so store filters narrow only the
        base set.

        Args:
            query_filter: Filters to apply (everything by default).
            pagination: Offset and limit (default limit from config).
            inheritance: Inheritance level toggles for scoped queries.

        Returns:
            QueryResult holding the requested page and the total match count.
        """
        query_filter = query_filter or QueryFilter()
        now = datetime.now(timezone.utc)

        store_options = MemoryQueryOptions(
            status=query_filter.status,
            date_range=query_filter.date_range,
            eligible_for_core=query_filter.eligible_for_core,
            min_count=query_filter.min_count,
            min_days=query_filter.min_days,
        )
        memories = await self.memory_store.query(store_options)

        if query_filter.scope is not None:
            seen = {m.id for m in memories}
            for inherited in await self._fetch_chain(query_filter.scope, inheritance, now):
                if inherited.id not in seen:
                    memories.append(inherited)
                    seen.add(inherited.id)
            allowed = set(resolve_inheritance_chain(query_filter.scope, inheritance))
            memories = [m for m in memories if self.classify_scope(m, now) in allowed]

        if query_filter.category is not None:
            memories = [m for m in memories if m.observation.category == query_filter.category]

        if query_filter.keyword and query_filter.keyword.strip():
            memories = [m for m in memories if matches_keyword(m, query_filter.keyword)]

        scored = self._score_all(memories, now)

        if query_filter.relevance_threshold is not None:
            scored = [s for s in scored if s.relevance.total >= query_filter.relevance_threshold]

        scored.sort(key=lambda s: s.relevance.total, reverse=True)

        offset = pagination.offset if pagination is not None else 0
        limit = pagination.limit if pagination is not None else self.config.query.default_limit
        return QueryResult(
            items=scored[offset : offset + limit],
            total=len(scored),
            offset=offset,
            limit=limit,
        )

    async def get_by_scope(
        self,
        scope: MemoryScope,
        options: Optional[MemoryQueryOptions] = None,
    ) -> List[LongTermMemory]:
        """Memories matching the store options whose derived scope is ``scope``."""
        now = datetime.now(timezone.utc)
        memories = await self.memory_store.query(options or MemoryQueryOptions())
        return [m for m in memories if self.classify_scope(m, now) == scope]

    async def get_inherited_memories(
        self,
        scope: MemoryScope,
        project_slug: Optional[str] = None,
        session_id: Optional[str] = None,
    ) -> List[ScoredMemory]:
        """Memories visible from a scope, scored and sorted.

        Session-level memories are limited to ``session_id`` when given.
        Project-level memories are limited to ``project_slug`` when given;
        memories without a project slug in their metadata are included
        unless ``query.strict_project_match`` is enabled.

        Args:
            scope: Requested scope.
            project_slug: Project to restrict project-level memories to.
            session_id: Session to restrict session-level memories to.

        Returns:
            Scored memories from the whole chain, most relevant first.
        """
        now = datetime.now(timezone.utc)
        all_memories = await self.memory_store.get_all()
        collected: List[LongTermMemory] = []
        seen: set[str] = set()

        for level in resolve_inheritance_chain(scope):
            for memory in self._at_level(all_memories, level, now, project_slug, session_id):
                if memory.id not in seen:
                    collected.append(memory)
                    seen.add(memory.id)

        scored = self._score_all(collected, now)
        scored.sort(key=lambda s: s.relevance.total, reverse=True)
        return scored

    async def search_by_keyword(
        self,
        keyword: str,
        limit: Optional[int] = None,
    ) -> List[ScoredMemory]:
        """Keyword search over the whole store.

        Args:
            keyword: Search text. Blank keywords return nothing.
            limit: Maximum results (default from config).

        Returns:
            Matching memories, most relevant first.
        """
        if not keyword or not keyword.strip():
            return []

        limit = limit if limit is not None else self.config.query.keyword_search_limit
        now = datetime.now(timezone.utc)
        matched = [m for m in await self.memory_store.get_all() if matches_keyword(m, keyword)]

        scored = self._score_all(matched, now)
        scored.sort(key=lambda s: s.relevance.total, reverse=True)
        return scored[:limit]

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _fetch_chain(
        self,
        scope: MemoryScope,
        inheritance: Optional[InheritanceConfig],
        now: datetime,
    ) -> List[LongTermMemory]:
        # Inherited levels draw on the whole store, not the filtered set
        candidates = await self.memory_store.get_all()
        collected: List[LongTermMemory] = []
        seen: set[str] = set()
        for level in resolve_inheritance_chain(scope, inheritance):
            for memory in self._at_level(candidates, level, now):
                if memory.id not in seen:
                    collected.append(memory)
                    seen.add(memory.id)
        return collected

    def _at_level(
        self,
        memories: List[LongTermMemory],
        level: MemoryScope,
        now: datetime,
        project_slug: Optional[str] = None,
        session_id: Optional[str] = None,
    ) -> List[LongTermMemory]:
        result = [m for m in memories if self.classify_scope(m, now) == level]

        if level == MemoryScope.SESSION and session_id:
            result = [m for m in result if session_id in m.observation.source_session_ids]

        if level == MemoryScope.PROJECT and project_slug:
            result = [m for m in result if self._matches_project(m, project_slug)]

        return result

    def _matches_project(self, memory: LongTermMemory, project_slug: str) -> bool:
        slug = (memory.observation.metadata or {}).get(PROJECT_SLUG_KEY)
        if isinstance(slug, str):
            return slug == project_slug
        if self.config.query.strict_project_match:
            return False
        logger.debug(
            f"Memory {memory.id} has no {PROJECT_SLUG_KEY}; including it for project {project_slug}"
        )
        return True

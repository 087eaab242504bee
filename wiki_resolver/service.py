"""
Resolver service: process-wide singletons and the public entry points.

    record = await resolve("Albert Einstein", include_full_content=True)
    suggestions = await search("einst", limit=10)
    featured = await trending(limit=5)

The two caches, the in-flight registry and the enricher live on one
``Resolver`` instance, created lazily on first use.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from wiki_resolver.batch_metadata import BatchMetadataFetcher
from wiki_resolver.config import (
    ENRICHMENT_ENABLED,
    NOT_FOUND_TTL,
    RECORD_CACHE_SIZE,
    RECORD_CACHE_TTL,
    SEARCH_CACHE_SIZE,
    SEARCH_CACHE_TTL,
)
from wiki_resolver.errors import UpstreamError
from wiki_resolver.freshness_cache import BoundedFreshnessCache
from wiki_resolver.pipeline.context import ResolverContext
from wiki_resolver.pipeline.enricher import BackgroundEnricher
from wiki_resolver.pipeline.knowledge_record import KnowledgeRecord
from wiki_resolver.pipeline.pipeline import ResolutionPipeline, record_from_summary
from wiki_resolver.scoring import strip_markup
from wiki_resolver.wiki_client import WikiClient

logger = logging.getLogger(__name__)

MIN_SEARCH_CHARS = 2


class Resolver:
    """Wires client, caches, enricher and pipeline together."""

    def __init__(
        self,
        client: Optional[WikiClient] = None,
        record_cache_size: int = RECORD_CACHE_SIZE,
        record_cache_ttl: float = RECORD_CACHE_TTL,
        search_cache_size: int = SEARCH_CACHE_SIZE,
        search_cache_ttl: float = SEARCH_CACHE_TTL,
        not_found_ttl: float = NOT_FOUND_TTL,
        enrichment_enabled: bool = ENRICHMENT_ENABLED,
    ):
        self.client = client or WikiClient()
        self.ctx = ResolverContext(
            client=self.client,
            metadata_fetcher=BatchMetadataFetcher(self.client),
        )
        self.enricher = BackgroundEnricher(self.ctx) if enrichment_enabled else None
        self.record_cache: BoundedFreshnessCache[str, KnowledgeRecord] = BoundedFreshnessCache(
            max_size=record_cache_size,
            ttl=record_cache_ttl,
            on_evict=self._on_record_evicted,
            name="records",
        )
        self.search_cache: BoundedFreshnessCache[str, list] = BoundedFreshnessCache(
            max_size=search_cache_size,
            ttl=search_cache_ttl,
            name="search",
        )
        self.pipeline = ResolutionPipeline(
            ctx=self.ctx,
            record_cache=self.record_cache,
            search_cache=self.search_cache,
            enricher=self.enricher,
            not_found_ttl=not_found_ttl,
        )

    async def resolve(self, query, include_full_content: bool = False) -> KnowledgeRecord:
        return await self.pipeline.resolve(query, include_full_content=include_full_content)

    async def search(self, query: str, limit: int = 10) -> List[Dict[str, str]]:
        """Autocomplete suggestions. Bypasses the caches and enrichment."""
        if not isinstance(query, str) or len(query.strip()) < MIN_SEARCH_CHARS:
            return []
        try:
            hits = await self.client.search(query.strip(), limit=limit)
        except UpstreamError as e:
            logger.warning(f"Search for {query!r} failed: {e}")
            return []
        return [{"title": hit.title, "description": strip_markup(hit.snippet)} for hit in hits]

    async def trending(self, limit: int = 5) -> List[KnowledgeRecord]:
        """Most-read articles of today's featured feed, as simplified records."""
        today = datetime.now(timezone.utc).date()
        try:
            feed = await self.client.get_featured(today)
        except UpstreamError as e:
            logger.warning(f"Trending articles unavailable: {e}")
            return []
        articles = feed.mostread.articles if feed.mostread else []
        return [record_from_summary(article) for article in articles[:limit]]

    def stats(self) -> Dict[str, Any]:
        return {
            "record_cache_size": len(self.record_cache),
            "search_cache_size": len(self.search_cache),
            "inflight_requests": len(self.client.registry),
            "active_enrichments": len(self.enricher) if self.enricher else 0,
        }

    async def aclose(self):
        if self.enricher is not None:
            await self.enricher.stop()
        await self.client.aclose()

    def _on_record_evicted(self, key: str, record: KnowledgeRecord) -> None:
        if self.enricher is not None:
            self.enricher.cancel(record.record_id, record)


# =============================================================================
# Module-level entry points
# =============================================================================

_resolver: Optional[Resolver] = None


def get_resolver() -> Resolver:
    """Lazy-initialize the process-wide resolver."""
    global _resolver
    if _resolver is None:
        _resolver = Resolver()
        logger.info("Initialized resolver")
    return _resolver


def set_resolver(resolver: Optional[Resolver]) -> None:
    global _resolver
    _resolver = resolver


async def shutdown():
    global _resolver
    if _resolver is not None:
        await _resolver.aclose()
        _resolver = None


async def resolve(query, include_full_content: bool = False) -> KnowledgeRecord:
    return await get_resolver().resolve(query, include_full_content=include_full_content)


async def search(query: str, limit: int = 10) -> List[Dict[str, str]]:
    return await get_resolver().search(query, limit=limit)


async def trending(limit: int = 5) -> List[KnowledgeRecord]:
    return await get_resolver().trending(limit=limit)

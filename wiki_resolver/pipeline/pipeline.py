"""
ResolutionPipeline — direct lookup first, ranked search as fallback.

    MISS -> DIRECT_LOOKUP -> EXACT_FOUND ---------> RESOLVED
                          -> FALLBACK_SEARCH -----> RESOLVED | NOT_FOUND

Any unexpected exception ends in ERROR. ``resolve`` never raises: failures
come back as sentinel records with a human-readable summary.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import List, Optional

from wiki_resolver.config import NOT_FOUND_TTL
from wiki_resolver.errors import InvalidInputError, UpstreamError, UpstreamNotFoundError
from wiki_resolver.freshness_cache import BoundedFreshnessCache
from wiki_resolver.pipeline.context import ResolverContext
from wiki_resolver.pipeline.enricher import BackgroundEnricher
from wiki_resolver.pipeline.knowledge_record import Coordinates, DisambiguationOption, KnowledgeRecord
from wiki_resolver.pipeline.states import ResolutionState
from wiki_resolver.pipeline.step import EnrichmentRequest
from wiki_resolver.sanitizer import sanitize_article
from wiki_resolver.scoring import (
    generate_record_id,
    normalize_query,
    reading_time,
    reading_time_for_html,
    score,
    strip_markup,
)
from wiki_resolver.wiki_client import article_url
from wiki_resolver.wire import SearchHit, SummaryPayload

logger = logging.getLogger(__name__)

DISAMBIGUATION_OPTION_LIMIT = 10


@dataclass
class Candidate:
    hit: SearchHit
    summary: Optional[SummaryPayload]
    score: float

    @property
    def is_disambiguation(self) -> bool:
        return self.summary is not None and self.summary.is_disambiguation


def validate_query(query) -> str:
    if not isinstance(query, str) or not query.strip():
        raise InvalidInputError("Query must be a non-empty string")
    return query.strip()


def record_from_summary(summary: SummaryPayload) -> KnowledgeRecord:
    return KnowledgeRecord(
        title=summary.title,
        summary=summary.extract,
        description=summary.description,
        record_id=str(summary.pageid) if summary.pageid else generate_record_id(summary.title),
        canonical_url=summary.page_url,
        media_url=summary.media_url,
        coordinates=(
            Coordinates(lat=summary.coordinates.lat, lon=summary.coordinates.lon)
            if summary.coordinates
            else None
        ),
        last_modified=summary.timestamp,
        language=summary.lang or "en",
        reading_time=reading_time(summary.extract),
    )


def _transition(text: str, state: ResolutionState) -> None:
    logger.debug(f"{text!r} -> {state}")


def sentinel_record(query: str, outcome: ResolutionState, message: str) -> KnowledgeRecord:
    return KnowledgeRecord(
        title=query if isinstance(query, str) else "",
        summary=message,
        record_id=f"{outcome}-{generate_record_id(query if isinstance(query, str) else repr(query))}",
        outcome=outcome,
    )


class ResolutionPipeline:
    """Resolves free-text queries into cached, progressively enriched records."""

    def __init__(
        self,
        ctx: ResolverContext,
        record_cache: BoundedFreshnessCache,
        search_cache: BoundedFreshnessCache,
        enricher: Optional[BackgroundEnricher] = None,
        not_found_ttl: float = NOT_FOUND_TTL,
    ):
        self.ctx = ctx
        self.record_cache = record_cache
        self.search_cache = search_cache
        self.enricher = enricher
        self.not_found_ttl = not_found_ttl

    async def resolve(self, query, include_full_content: bool = False) -> KnowledgeRecord:
        try:
            text = validate_query(query)
        except InvalidInputError as e:
            logger.debug(f"Rejected query {query!r}: {e}")
            return sentinel_record(query, ResolutionState.INVALID, "Please enter a search term.")

        key = normalize_query(text)
        cached = self.record_cache.get(key)
        if cached is not None:
            logger.debug(f"Cache hit for {text!r}")
            return cached

        logger.info(f"Cache miss for {text!r}, resolving")
        _transition(text, ResolutionState.MISS)
        try:
            return await self._resolve_miss(text, key, include_full_content)
        except Exception as e:
            logger.error(f"Resolution failed for {text!r}: {e}", exc_info=True)
            _transition(text, ResolutionState.ERROR)
            return sentinel_record(
                text,
                ResolutionState.ERROR,
                f'Error fetching data for "{text}". Please try again later.',
            )

    async def _resolve_miss(self, text: str, key: str, include_full_content: bool) -> KnowledgeRecord:
        _transition(text, ResolutionState.DIRECT_LOOKUP)
        summary = await self._direct_lookup(text)

        if summary is not None and summary.is_disambiguation:
            record = await self._build_disambiguation(text, summary)
            self.record_cache.set(key, record)
            return record

        if summary is not None:
            _transition(text, ResolutionState.EXACT_FOUND)
            record = record_from_summary(summary)
            record.is_exact_match = True
        else:
            _transition(text, ResolutionState.FALLBACK_SEARCH)
            best = await self._fallback_search(text, key)
            if best is None:
                record = sentinel_record(
                    text,
                    ResolutionState.NOT_FOUND,
                    f'No article found for "{text}". Please try another search.',
                )
                self.record_cache.set(key, record, ttl=self.not_found_ttl)
                _transition(text, ResolutionState.NOT_FOUND)
                logger.info(f"No article found for {text!r}")
                return record
            record = self._record_from_candidate(best)

        if include_full_content:
            await self._load_content_now(record)

        record.outcome = ResolutionState.RESOLVED
        _transition(text, ResolutionState.RESOLVED)
        self.record_cache.set(key, record)
        logger.info(
            f"Resolved {text!r} -> {record.title!r} "
            f"(exact={record.is_exact_match}, score={record.search_score})"
        )

        if self.enricher is not None:
            self.enricher.launch(record, EnrichmentRequest(include_full_content=include_full_content))
        return record

    async def _direct_lookup(self, text: str) -> Optional[SummaryPayload]:
        try:
            return await self.ctx.client.get_summary(text)
        except UpstreamNotFoundError:
            logger.debug(f"No direct match for {text!r}, falling back to search")
        except UpstreamError as e:
            logger.warning(f"Direct lookup for {text!r} degraded, falling back to search: {e}")
        return None

    async def _search_hits(self, text: str, key: str, limit: int) -> List[SearchHit]:
        cache_key = f"{key}|{limit}"
        hits = self.search_cache.get(cache_key)
        if hits is None:
            hits = await self.ctx.client.search(text, limit=limit)
            self.search_cache.set(cache_key, hits)
        return hits

    async def _fallback_search(self, text: str, key: str) -> Optional[Candidate]:
        hits = await self._search_hits(text, key, self.ctx.search_candidates)
        if not hits:
            return None

        # scatter/gather: all candidate summaries in flight together
        summaries = await asyncio.gather(
            *(self.ctx.client.get_summary(hit.title) for hit in hits),
            return_exceptions=True,
        )

        candidates = []
        for hit, summary in zip(hits, summaries):
            if isinstance(summary, BaseException):
                logger.debug(f"Candidate summary for {hit.title!r} unavailable: {summary}")
                summary = None
            candidates.append(Candidate(hit=hit, summary=summary, score=score(text, hit.title, hit.snippet)))

        candidates.sort(key=lambda c: c.score, reverse=True)
        for candidate in candidates:
            if not candidate.is_disambiguation:
                return candidate
        return candidates[0]

    def _record_from_candidate(self, candidate: Candidate) -> KnowledgeRecord:
        if candidate.summary is not None:
            record = record_from_summary(candidate.summary)
            record.is_disambiguation = candidate.summary.is_disambiguation
        else:
            hit = candidate.hit
            snippet = strip_markup(hit.snippet)
            record = KnowledgeRecord(
                title=hit.title,
                summary=snippet,
                record_id=str(hit.pageid) if hit.pageid else generate_record_id(hit.title),
                canonical_url=article_url(hit.title),
                reading_time=reading_time(snippet),
            )
        record.is_exact_match = False
        record.search_score = candidate.score
        return record

    async def _build_disambiguation(self, text: str, summary: SummaryPayload) -> KnowledgeRecord:
        record = record_from_summary(summary)
        record.is_disambiguation = True
        record.is_exact_match = False
        record.outcome = ResolutionState.RESOLVED
        try:
            hits = await self._search_hits(text, normalize_query(text), DISAMBIGUATION_OPTION_LIMIT)
        except UpstreamError as e:
            logger.warning(f"Disambiguation options for {text!r} unavailable: {e}")
            hits = []
        record.disambiguation_options = [
            DisambiguationOption(
                title=hit.title,
                description=strip_markup(hit.snippet),
                url=article_url(hit.title, summary.page_url, record.language),
            )
            for hit in hits
            if hit.title != summary.title
        ]
        logger.info(f"{text!r} is a disambiguation page ({len(record.disambiguation_options)} options)")
        return record

    async def _load_content_now(self, record: KnowledgeRecord) -> None:
        """Synchronous full-content load; on failure the enricher retries later."""
        try:
            html = await self.ctx.client.get_html(record.title)
        except UpstreamError as e:
            logger.warning(f"Full content for {record.title!r} deferred to enrichment: {e}")
            return
        article = sanitize_article(html, record.media_url)
        record.article_content = article.content
        record.media_caption = article.caption or None
        record.reading_time = reading_time_for_html(article.content)

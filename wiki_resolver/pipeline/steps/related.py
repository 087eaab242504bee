"""Related step: a few linked-article stubs for confident matches."""

from __future__ import annotations

from typing import Optional

from wiki_resolver.config import RELATED_SCORE_THRESHOLD
from wiki_resolver.pipeline.context import ResolverContext
from wiki_resolver.pipeline.knowledge_record import KnowledgeRecord, RecordDelta, RelatedArticle
from wiki_resolver.pipeline.step import EnrichmentRequest
from wiki_resolver.wiki_client import article_url


def is_confident_match(record: KnowledgeRecord, request: EnrichmentRequest) -> bool:
    return record.is_exact_match or (record.search_score or 0.0) > RELATED_SCORE_THRESHOLD


async def fetch_related_stubs(
    ctx: ResolverContext, record: KnowledgeRecord, request: EnrichmentRequest
) -> Optional[RecordDelta]:
    # Titles + URLs only: no per-link summary fetches.
    titles = await ctx.client.get_links(record.title, limit=ctx.related_limit + 1)
    stubs = [
        RelatedArticle(title=t, url=article_url(t, record.canonical_url, record.language), reason="linked")
        for t in titles
        if t != record.title
    ][: ctx.related_limit]
    if not stubs:
        return None
    return RecordDelta(related_articles=stubs)

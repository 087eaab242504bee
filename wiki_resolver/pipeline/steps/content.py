"""Content step: full article markup, sanitized, with caption and reading time."""

from __future__ import annotations

from typing import Optional

from wiki_resolver.pipeline.context import ResolverContext
from wiki_resolver.pipeline.knowledge_record import KnowledgeRecord, RecordDelta
from wiki_resolver.pipeline.step import EnrichmentRequest
from wiki_resolver.sanitizer import sanitize_article


def wants_full_content(record: KnowledgeRecord, request: EnrichmentRequest) -> bool:
    return request.include_full_content and record.article_content is None


async def load_full_content(
    ctx: ResolverContext, record: KnowledgeRecord, request: EnrichmentRequest
) -> Optional[RecordDelta]:
    html = await ctx.client.get_html(record.title)
    article = sanitize_article(html, record.media_url)
    return RecordDelta(article_content=article.content, media_caption=article.caption or None)

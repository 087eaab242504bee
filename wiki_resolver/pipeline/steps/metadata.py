"""Metadata step: categories and coordinates from the batch endpoint."""

from __future__ import annotations

import logging
from typing import Optional

from wiki_resolver.config import MAX_CATEGORIES
from wiki_resolver.pipeline.context import ResolverContext
from wiki_resolver.pipeline.knowledge_record import KnowledgeRecord, RecordDelta
from wiki_resolver.pipeline.step import EnrichmentRequest

logger = logging.getLogger(__name__)


async def fetch_categories_and_coordinates(
    ctx: ResolverContext, record: KnowledgeRecord, request: EnrichmentRequest
) -> Optional[RecordDelta]:
    batch = await ctx.metadata_fetcher.fetch_batch([record.title])
    meta = batch.lookup(record.title)
    if meta is None:
        logger.debug(f"No metadata returned for {record.title!r}")
        return None
    return RecordDelta(
        categories=meta.categories[:MAX_CATEGORIES] or None,
        coordinates=meta.coordinates,
    )

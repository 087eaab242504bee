"""
Batched metadata fetcher.

Retrieves categories and coordinates for many titles with as few upstream
calls as the API's batch limit allows. Chunks are fetched concurrently and
fail independently: a failing chunk contributes nothing to the result.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from wiki_resolver.config import METADATA_BATCH_SIZE
from wiki_resolver.errors import UpstreamError
from wiki_resolver.pipeline.knowledge_record import Coordinates
from wiki_resolver.wire import QueryPage, QueryResult

logger = logging.getLogger(__name__)

CATEGORY_PREFIX = "Category:"


@dataclass
class PageMetadata:
    """Secondary attributes of one page."""
    title: str
    categories: List[str] = field(default_factory=list)
    coordinates: Optional[Coordinates] = None


@dataclass
class MetadataBatch:
    """Merged result of a batch fetch, keyed by canonical title."""
    pages: Dict[str, PageMetadata] = field(default_factory=dict)
    aliases: Dict[str, str] = field(default_factory=dict)  # requested/normalized/redirected -> canonical
    failed_chunks: int = 0

    def lookup(self, subject: str) -> Optional[PageMetadata]:
        """Metadata for a subject by canonical title or any spelling upstream mapped to it."""
        title = subject
        seen = set()
        while title in self.aliases and title not in seen:
            seen.add(title)
            title = self.aliases[title]
        if title in self.pages:
            return self.pages[title]
        lowered = subject.lower()
        for canonical, meta in self.pages.items():
            if canonical.lower() == lowered:
                return meta
        return None

    def __getitem__(self, title: str) -> PageMetadata:
        return self.pages[title]

    def __contains__(self, title: object) -> bool:
        return title in self.pages

    def __len__(self) -> int:
        return len(self.pages)


def chunked(items: List[str], size: int) -> List[List[str]]:
    return [items[i:i + size] for i in range(0, len(items), size)]


def _page_metadata(page: QueryPage) -> PageMetadata:
    categories = []
    for cat in page.categories:
        name = cat.title
        if name.startswith(CATEGORY_PREFIX):
            name = name[len(CATEGORY_PREFIX):]
        categories.append(name)

    coordinates = None
    if page.coordinates:
        primary = next((c for c in page.coordinates if c.primary), page.coordinates[0])
        coordinates = Coordinates(lat=primary.lat, lon=primary.lon, globe=primary.globe)

    return PageMetadata(title=page.title, categories=categories, coordinates=coordinates)


class BatchMetadataFetcher:
    """Chunked, de-duplicated batch retrieval of categories and coordinates."""

    def __init__(self, client, batch_size: int = METADATA_BATCH_SIZE):
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self.client = client
        self.batch_size = batch_size

    async def fetch_batch(self, subjects: Iterable[str]) -> MetadataBatch:
        unique = list(dict.fromkeys(s.strip() for s in subjects if s and s.strip()))
        batch = MetadataBatch()
        if not unique:
            return batch

        chunks = chunked(unique, self.batch_size)
        results = await asyncio.gather(*(self._fetch_chunk(chunk) for chunk in chunks))

        for chunk, result in zip(chunks, results):
            if result is None:
                batch.failed_chunks += 1
                continue
            for mapping in list(result.normalized) + list(result.redirects):
                batch.aliases[mapping.from_] = mapping.to
            for page in result.pages:
                if page.missing:
                    continue
                batch.pages[page.title] = _page_metadata(page)

        logger.debug(
            f"Metadata batch: {len(unique)} subjects, {len(chunks)} chunks, "
            f"{len(batch.pages)} pages, {batch.failed_chunks} failed"
        )
        return batch

    async def _fetch_chunk(self, chunk: List[str]) -> Optional[QueryResult]:
        try:
            return await self.client.query_metadata(chunk)
        except UpstreamError as e:
            logger.warning(f"Metadata chunk of {len(chunk)} titles failed: {e}")
        except Exception as e:
            logger.warning(f"Metadata chunk of {len(chunk)} titles failed unexpectedly: {e}")
        return None

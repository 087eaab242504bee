"""ResolverContext — shared collaborators passed to the pipeline and enrichment steps."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from wiki_resolver.config import RELATED_ARTICLE_LIMIT, SEARCH_CANDIDATES

if TYPE_CHECKING:
    from wiki_resolver.batch_metadata import BatchMetadataFetcher
    from wiki_resolver.wiki_client import WikiClient


@dataclass
class ResolverContext:
    client: WikiClient
    metadata_fetcher: BatchMetadataFetcher
    search_candidates: int = SEARCH_CANDIDATES
    related_limit: int = RELATED_ARTICLE_LIMIT

"""In-memory stand-in for WikiClient used by pipeline, enricher and router tests."""

from __future__ import annotations

from collections import defaultdict
from datetime import date
from typing import Any, Dict, List, Optional, Sequence, Union

from wiki_resolver.errors import UpstreamNotFoundError
from wiki_resolver.inflight import InFlightRequestRegistry
from wiki_resolver.wire import FeaturedFeed, QueryResult, SearchHit, SummaryPayload


def summary_json(
    title: str,
    pageid: Optional[int] = None,
    extract: str = "",
    page_type: str = "standard",
    thumbnail: Optional[str] = None,
    description: str = "",
) -> Dict[str, Any]:
    """Minimal page/summary payload as the REST API returns it."""
    data: Dict[str, Any] = {
        "type": page_type,
        "title": title,
        "extract": extract or f"{title} is a subject.",
        "description": description,
        "lang": "en",
        "timestamp": "2024-05-01T12:00:00Z",
        "content_urls": {
            "desktop": {"page": f"https://en.wikipedia.org/wiki/{title.replace(' ', '_')}"},
        },
    }
    if pageid is not None:
        data["pageid"] = pageid
    if thumbnail:
        data["thumbnail"] = {"source": thumbnail, "width": 320, "height": 400}
    return data


Canned = Union[Dict[str, Any], Exception]


class FakeWikiClient:
    """Serves canned payloads keyed by title/query and records every call.

    A missing summary, html or links entry behaves like a 404. An Exception
    value is raised instead of returned.
    """

    def __init__(self):
        self.summaries: Dict[str, Canned] = {}
        self.search_results: Dict[str, Union[List[Dict[str, Any]], Exception]] = {}
        self.html: Dict[str, Union[str, Exception]] = {}
        self.metadata: Dict[str, Dict[str, Any]] = {}
        self.links: Dict[str, Union[List[str], Exception]] = {}
        self.featured: Union[Dict[str, Any], Exception] = {}
        self.calls: Dict[str, List[Any]] = defaultdict(list)
        self.registry = InFlightRequestRegistry()
        self.closed = False

    async def get_summary(self, title: str) -> SummaryPayload:
        self.calls["summary"].append(title)
        value = self._lookup(self.summaries, title)
        return SummaryPayload.model_validate(value)

    async def get_html(self, title: str) -> str:
        self.calls["html"].append(title)
        return self._lookup(self.html, title)

    async def get_featured(self, day: date) -> FeaturedFeed:
        self.calls["featured"].append(day)
        if isinstance(self.featured, Exception):
            raise self.featured
        return FeaturedFeed.model_validate(self.featured)

    async def search(self, query: str, limit: int = 10) -> List[SearchHit]:
        self.calls["search"].append((query, limit))
        hits = self.search_results.get(query.lower(), [])
        if isinstance(hits, Exception):
            raise hits
        return [SearchHit.model_validate(h) for h in hits][:limit]

    async def query_metadata(self, titles: Sequence[str]) -> QueryResult:
        self.calls["metadata"].append(list(titles))
        pages = []
        for title in titles:
            entry = self.metadata.get(title)
            if entry is None:
                pages.append({"title": title, "missing": True})
            else:
                pages.append({"title": title, **entry})
        return QueryResult.model_validate({"pages": pages})

    async def get_links(self, title: str, limit: int = 10) -> List[str]:
        self.calls["links"].append((title, limit))
        links = self.links.get(title, [])
        if isinstance(links, Exception):
            raise links
        return links[:limit]

    async def aclose(self):
        self.closed = True

    @staticmethod
    def _lookup(table: Dict[str, Any], title: str) -> Any:
        if title not in table:
            raise UpstreamNotFoundError(f"Not found: {title}", status_code=404)
        value = table[title]
        if isinstance(value, Exception):
            raise value
        return value

"""
Content API client.

Thin async wrapper over the Wikipedia REST v1 and Action API endpoints used by
the resolver. Every GET is routed through the in-flight registry so identical
concurrent requests share one network call, and every failure is mapped onto
the UpstreamError taxonomy.

Endpoints:
    GET {rest}/page/summary/{title}          — summary + thumbnail
    GET {rest}/page/html/{title}             — full article markup
    GET {rest}/feed/featured/{yyyy}/{mm}/{dd} — daily featured feed
    GET {action}?list=search                 — ranked free-text search
    GET {action}?prop=categories|coordinates — batched page metadata
    GET {action}?prop=links                  — outgoing article links
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Any, Dict, List, Optional, Sequence
from urllib.parse import quote, urlencode

import httpx
from pydantic import ValidationError

from wiki_resolver.config import (
    REQUEST_TIMEOUT,
    WIKI_ACTION_API,
    WIKI_REST_BASE,
    WIKI_USER_AGENT,
)
from wiki_resolver.errors import (
    UpstreamNotFoundError,
    UpstreamTimeoutError,
    UpstreamUnavailableError,
)
from wiki_resolver.inflight import InFlightRequestRegistry
from wiki_resolver.wire import (
    ActionResponse,
    FeaturedFeed,
    QueryResult,
    SearchHit,
    SummaryPayload,
)

logger = logging.getLogger(__name__)


def title_to_path(title: str) -> str:
    """Encode an article title as a single REST path segment."""
    return quote(title.strip().replace(" ", "_"), safe="()")


def article_url(title: str, reference_url: str = "", language: str = "en") -> str:
    """Desktop article URL for ``title`` on the same wiki as ``reference_url``."""
    if "/wiki/" in reference_url:
        base = reference_url.split("/wiki/", 1)[0]
    else:
        base = f"https://{language}.wikipedia.org"
    return f"{base}/wiki/{title_to_path(title)}"


def request_key(url: str, params: Optional[Dict[str, Any]] = None) -> str:
    """Stable dedup key for a GET: URL plus sorted query string."""
    if not params:
        return url
    return f"{url}?{urlencode(sorted((k, str(v)) for k, v in params.items()))}"


class WikiClient:
    """Async client for the content API with request de-duplication."""

    def __init__(
        self,
        rest_base: str = WIKI_REST_BASE,
        action_api: str = WIKI_ACTION_API,
        user_agent: str = WIKI_USER_AGENT,
        timeout: float = REQUEST_TIMEOUT,
        registry: Optional[InFlightRequestRegistry] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.rest_base = rest_base.rstrip("/")
        self.action_api = action_api
        self.registry = registry or InFlightRequestRegistry(timeout=timeout)
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(
            timeout=timeout,
            headers={"User-Agent": user_agent, "Accept": "application/json"},
            follow_redirects=True,
        )

    async def aclose(self):
        if self._owns_client:
            await self._client.aclose()

    # -------------------------------------------------------------------------
    # REST v1
    # -------------------------------------------------------------------------

    async def get_summary(self, title: str) -> SummaryPayload:
        url = f"{self.rest_base}/page/summary/{title_to_path(title)}"
        data = await self._get(url)
        try:
            return SummaryPayload.model_validate(data)
        except ValidationError as e:
            raise UpstreamUnavailableError(f"Malformed summary for {title!r}: {e}", url=url) from e

    async def get_html(self, title: str) -> str:
        url = f"{self.rest_base}/page/html/{title_to_path(title)}"
        return await self._get(url, as_text=True)

    async def get_featured(self, day: date) -> FeaturedFeed:
        url = f"{self.rest_base}/feed/featured/{day.year}/{day.month:02d}/{day.day:02d}"
        data = await self._get(url)
        try:
            return FeaturedFeed.model_validate(data)
        except ValidationError as e:
            raise UpstreamUnavailableError(f"Malformed featured feed: {e}", url=url) from e

    # -------------------------------------------------------------------------
    # Action API
    # -------------------------------------------------------------------------

    async def search(self, query: str, limit: int = 10) -> List[SearchHit]:
        result = await self._action({
            "action": "query",
            "list": "search",
            "srsearch": query,
            "srlimit": limit,
            "srprop": "snippet",
        })
        return result.search

    async def query_metadata(self, titles: Sequence[str]) -> QueryResult:
        """Categories and coordinates for several titles in one request."""
        return await self._action({
            "action": "query",
            "prop": "categories|coordinates",
            "titles": "|".join(titles),
            "clshow": "!hidden",
            "cllimit": "max",
            "colimit": "max",
            "redirects": 1,
        })

    async def get_links(self, title: str, limit: int = 10) -> List[str]:
        result = await self._action({
            "action": "query",
            "prop": "links",
            "titles": title,
            "plnamespace": 0,
            "pllimit": limit,
            "redirects": 1,
        })
        links: List[str] = []
        for page in result.pages:
            links.extend(link.title for link in page.links)
        return links

    # -------------------------------------------------------------------------
    # Transport
    # -------------------------------------------------------------------------

    async def _action(self, params: Dict[str, Any]) -> QueryResult:
        params = {**params, "format": "json", "formatversion": 2}
        data = await self._get(self.action_api, params)
        try:
            response = ActionResponse.model_validate(data)
        except ValidationError as e:
            raise UpstreamUnavailableError(f"Malformed Action API response: {e}", url=self.action_api) from e
        if response.error:
            code = response.error.get("code", "unknown")
            info = response.error.get("info", "")
            raise UpstreamUnavailableError(f"Action API error {code}: {info}", url=self.action_api)
        return response.query or QueryResult()

    async def _get(self, url: str, params: Optional[Dict[str, Any]] = None, as_text: bool = False) -> Any:
        key = request_key(url, params)
        if as_text:
            key = f"text:{key}"
        return await self.registry.fetch(key, lambda: self._send(url, params, as_text))

    async def _send(self, url: str, params: Optional[Dict[str, Any]], as_text: bool) -> Any:
        try:
            resp = await self._client.get(url, params=params)
        except httpx.TimeoutException as e:
            raise UpstreamTimeoutError(f"Timed out fetching {url}", url=url) from e
        except httpx.HTTPError as e:
            raise UpstreamUnavailableError(f"Request to {url} failed: {e}", url=url) from e

        if resp.status_code == 404:
            raise UpstreamNotFoundError(f"Not found: {url}", url=url, status_code=404)
        if resp.status_code != 200:
            raise UpstreamUnavailableError(
                f"HTTP {resp.status_code} from {url}", url=url, status_code=resp.status_code
            )

        if as_text:
            return resp.text
        try:
            return resp.json()
        except ValueError as e:
            raise UpstreamUnavailableError(f"Invalid JSON from {url}", url=url) from e

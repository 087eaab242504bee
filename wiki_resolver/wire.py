"""
Upstream wire models.

Pydantic models for the content API's JSON payloads. Unknown fields are
ignored and every optional field has a default, so shape drift upstream
degrades to empty values instead of failures.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class _Lenient(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


# =============================================================================
# REST v1: page/summary, feed/featured
# =============================================================================

class Thumbnail(_Lenient):
    source: str
    width: Optional[int] = None
    height: Optional[int] = None


class PageUrls(_Lenient):
    page: str = ""


class ContentUrls(_Lenient):
    desktop: Optional[PageUrls] = None


class SummaryCoordinates(_Lenient):
    lat: float
    lon: float


class SummaryPayload(_Lenient):
    """page/summary/{title} response (also used for feed articles)."""
    type: str = "standard"
    title: str
    pageid: Optional[int] = None
    extract: str = ""
    description: str = ""
    lang: str = "en"
    timestamp: Optional[datetime] = None
    thumbnail: Optional[Thumbnail] = None
    content_urls: Optional[ContentUrls] = None
    coordinates: Optional[SummaryCoordinates] = None

    @property
    def is_disambiguation(self) -> bool:
        return self.type == "disambiguation"

    @property
    def page_url(self) -> str:
        if self.content_urls and self.content_urls.desktop:
            return self.content_urls.desktop.page
        return ""

    @property
    def media_url(self) -> Optional[str]:
        return self.thumbnail.source if self.thumbnail else None


class MostRead(_Lenient):
    articles: List[SummaryPayload] = []


class FeaturedFeed(_Lenient):
    """feed/featured/{yyyy}/{mm}/{dd} response; only the most-read list is used."""
    mostread: Optional[MostRead] = None


# =============================================================================
# Action API: list=search, prop=categories|coordinates|links
# =============================================================================

class SearchHit(_Lenient):
    title: str
    pageid: Optional[int] = None
    snippet: str = ""


class TitleMapping(_Lenient):
    from_: str = Field(alias="from")
    to: str


class CategoryRef(_Lenient):
    title: str


class CoordinateRef(_Lenient):
    lat: float
    lon: float
    globe: str = "earth"
    primary: bool = False


class LinkRef(_Lenient):
    title: str
    ns: int = 0


class QueryPage(_Lenient):
    title: str
    pageid: Optional[int] = None
    missing: bool = False
    categories: List[CategoryRef] = []
    coordinates: List[CoordinateRef] = []
    links: List[LinkRef] = []


class QueryResult(_Lenient):
    normalized: List[TitleMapping] = []
    redirects: List[TitleMapping] = []
    pages: List[QueryPage] = []
    search: List[SearchHit] = []


class ActionResponse(_Lenient):
    """Envelope of a formatversion=2 Action API response."""
    query: Optional[QueryResult] = None
    error: Optional[Dict[str, Any]] = None

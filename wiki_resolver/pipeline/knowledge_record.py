"""KnowledgeRecord — the unit returned to callers and stored in the cache."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from wiki_resolver.config import MAX_CATEGORIES, RELATED_ARTICLE_LIMIT
from wiki_resolver.pipeline.states import ResolutionState
from wiki_resolver.scoring import reading_time_for_html


@dataclass
class Coordinates:
    lat: float
    lon: float
    globe: str = "earth"


@dataclass
class RelatedArticle:
    title: str
    summary: str = ""
    url: str = ""
    thumbnail: Optional[str] = None
    score: Optional[float] = None
    reason: Optional[str] = None


@dataclass
class DisambiguationOption:
    title: str
    description: str = ""
    url: str = ""


@dataclass
class RecordDelta:
    """Fields produced by one enrichment step. ``None`` means 'no news'."""
    categories: Optional[List[str]] = None
    coordinates: Optional[Coordinates] = None
    article_content: Optional[str] = None
    media_caption: Optional[str] = None
    related_articles: Optional[List[RelatedArticle]] = None

    def is_empty(self) -> bool:
        return all(
            value is None
            for value in (
                self.categories,
                self.coordinates,
                self.article_content,
                self.media_caption,
                self.related_articles,
            )
        )


@dataclass
class KnowledgeRecord:
    title: str
    summary: str
    record_id: str
    canonical_url: str = ""
    description: str = ""
    article_content: Optional[str] = None
    media_url: Optional[str] = None
    media_caption: Optional[str] = None
    categories: List[str] = field(default_factory=list)
    coordinates: Optional[Coordinates] = None
    last_modified: Optional[datetime] = None
    language: str = "en"
    related_articles: List[RelatedArticle] = field(default_factory=list)
    reading_time: int = 0
    is_disambiguation: bool = False
    disambiguation_options: List[DisambiguationOption] = field(default_factory=list)
    search_score: Optional[float] = None
    is_exact_match: bool = False
    # Populated by the pipeline / enricher
    outcome: ResolutionState = ResolutionState.RESOLVED
    enriched: bool = False

    @property
    def is_sentinel(self) -> bool:
        return self.outcome in (
            ResolutionState.NOT_FOUND,
            ResolutionState.ERROR,
            ResolutionState.INVALID,
        )

    def apply(self, delta: RecordDelta, related_limit: int = RELATED_ARTICLE_LIMIT) -> RecordDelta:
        """Merge an enrichment delta. The only writer after the pipeline hands the record out.

        Additive: fields already set are kept. Returns the part of ``delta``
        that was actually applied.
        """
        applied = RecordDelta()

        if delta.categories and not self.categories:
            self.categories = list(delta.categories[:MAX_CATEGORIES])
            applied.categories = self.categories

        if delta.coordinates is not None and self.coordinates is None:
            self.coordinates = delta.coordinates
            applied.coordinates = delta.coordinates

        if delta.article_content and self.article_content is None:
            self.article_content = delta.article_content
            # full content changes the word count basis
            self.reading_time = reading_time_for_html(delta.article_content)
            applied.article_content = delta.article_content

        if delta.media_caption and not self.media_caption:
            self.media_caption = delta.media_caption
            applied.media_caption = delta.media_caption

        if delta.related_articles and not self.related_articles:
            self.related_articles = list(delta.related_articles[:related_limit])
            applied.related_articles = self.related_articles

        return applied

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.record_id,
            "title": self.title,
            "summary": self.summary,
            "description": self.description,
            "article_content": self.article_content,
            "url": self.canonical_url,
            "media_url": self.media_url,
            "media_caption": self.media_caption,
            "categories": list(self.categories),
            "coordinates": (
                {
                    "lat": self.coordinates.lat,
                    "lon": self.coordinates.lon,
                    "globe": self.coordinates.globe,
                }
                if self.coordinates
                else None
            ),
            "last_modified": self.last_modified.isoformat() if self.last_modified else None,
            "language": self.language,
            "related_articles": [
                {
                    "title": r.title,
                    "summary": r.summary,
                    "url": r.url,
                    "thumbnail": r.thumbnail,
                    "score": r.score,
                    "reason": r.reason,
                }
                for r in self.related_articles
            ],
            "reading_time": self.reading_time,
            "is_disambiguation": self.is_disambiguation,
            "disambiguation_options": [
                {"title": o.title, "description": o.description, "url": o.url}
                for o in self.disambiguation_options
            ],
            "search_score": self.search_score,
            "is_exact_match": self.is_exact_match,
            "outcome": str(self.outcome),
            "enriched": self.enriched,
        }

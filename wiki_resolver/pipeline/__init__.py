"""Resolution pipeline and background enrichment."""

from wiki_resolver.pipeline.knowledge_record import (
    Coordinates,
    DisambiguationOption,
    KnowledgeRecord,
    RecordDelta,
    RelatedArticle,
)
from wiki_resolver.pipeline.states import ResolutionState

__all__ = [
    "Coordinates",
    "DisambiguationOption",
    "KnowledgeRecord",
    "RecordDelta",
    "RelatedArticle",
    "ResolutionState",
]

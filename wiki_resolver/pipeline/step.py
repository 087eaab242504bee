"""Enrichment step types and registration."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

from wiki_resolver.pipeline.knowledge_record import KnowledgeRecord, RecordDelta


@dataclass(frozen=True)
class EnrichmentRequest:
    """What the original caller asked for."""
    include_full_content: bool = False


@dataclass
class EnrichmentStep:
    name: str
    fn: Callable[[Any, KnowledgeRecord, EnrichmentRequest], Awaitable[Optional[RecordDelta]]]
    when: Optional[Callable[[KnowledgeRecord, EnrichmentRequest], bool]] = None

    def applies(self, record: KnowledgeRecord, request: EnrichmentRequest) -> bool:
        return self.when is None or self.when(record, request)

    def __call__(self, ctx: Any, record: KnowledgeRecord, request: EnrichmentRequest) -> Awaitable[Optional[RecordDelta]]:
        return self.fn(ctx, record, request)

"""Resolve free-text subjects into cached, progressively enriched Wikipedia records."""

from wiki_resolver.service import resolve, search, shutdown, trending

__all__ = ["resolve", "search", "shutdown", "trending"]

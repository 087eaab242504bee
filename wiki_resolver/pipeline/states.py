"""Resolution states for the pipeline state machine."""

from __future__ import annotations

from enum import StrEnum


class ResolutionState(StrEnum):
    MISS = "miss"
    DIRECT_LOOKUP = "direct_lookup"
    EXACT_FOUND = "exact_found"
    FALLBACK_SEARCH = "fallback_search"
    # terminal
    RESOLVED = "resolved"
    NOT_FOUND = "not_found"
    ERROR = "error"
    INVALID = "invalid"


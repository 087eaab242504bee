"""
Resolver configuration.

All knobs are read once from environment variables at import time. Components
take these as constructor defaults so tests can build isolated instances.
"""

from __future__ import annotations

import os


def _bool_env(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return int(raw)


# Upstream content API
WIKI_REST_BASE = os.getenv("WIKI_REST_BASE", "https://en.wikipedia.org/api/rest_v1").rstrip("/")
WIKI_ACTION_API = os.getenv("WIKI_ACTION_API", "https://en.wikipedia.org/w/api.php")
WIKI_CONTENT_DOMAIN = os.getenv("WIKI_CONTENT_DOMAIN", "en.wikipedia.org")
WIKI_USER_AGENT = os.getenv(
    "WIKI_USER_AGENT",
    "wiki-resolver/1.0 (knowledge record resolver; https://github.com/wiki-resolver)",
)
REQUEST_TIMEOUT = float(os.getenv("WIKI_REQUEST_TIMEOUT", "10"))  # seconds

# Caches
RECORD_CACHE_SIZE = _int_env("RECORD_CACHE_SIZE", 100)
RECORD_CACHE_TTL = _int_env("RECORD_CACHE_TTL", 60 * 60 * 24)  # 24 hours
NOT_FOUND_TTL = _int_env("NOT_FOUND_TTL", 60 * 5)              # 5 minutes
SEARCH_CACHE_SIZE = _int_env("SEARCH_CACHE_SIZE", 200)
SEARCH_CACHE_TTL = _int_env("SEARCH_CACHE_TTL", 60 * 60)       # 1 hour

# Resolution
SEARCH_CANDIDATES = min(max(_int_env("SEARCH_CANDIDATES", 5), 3), 5)
METADATA_BATCH_SIZE = _int_env("METADATA_BATCH_SIZE", 20)
MAX_CATEGORIES = 5
RELATED_ARTICLE_LIMIT = _int_env("RELATED_ARTICLE_LIMIT", 3)
RELATED_SCORE_THRESHOLD = 0.8
WORDS_PER_MINUTE = 250

# Local surface
LOCAL_SEARCH_PATH = os.getenv("LOCAL_SEARCH_PATH", "/search")

ENRICHMENT_ENABLED = _bool_env("ENRICHMENT_ENABLED", True)
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
PORT = _int_env("PORT", 8352)

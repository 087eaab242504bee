"""Pure scoring helpers: query normalization, relevance, reading time.

No module-level state. No external API calls.
"""

from __future__ import annotations

import hashlib
import math
import re
from typing import List

from bs4 import BeautifulSoup

from wiki_resolver.config import WORDS_PER_MINUTE

_TAG_RE = re.compile(r"<[^>]+>")
_EDGE_PUNCT = "\"'“”‘’.,;:!?()[]{}<>"


def normalize_query(query: str) -> str:
    """Cache key form of a query: whitespace collapsed, lowercased."""
    return " ".join(query.split()).lower()


def strip_markup(text: str) -> str:
    """Remove tags from a short markup fragment (search snippets)."""
    return " ".join(_TAG_RE.sub(" ", text).split())


def tokenize(text: str) -> List[str]:
    """Lowercased whitespace-split words with edge punctuation trimmed."""
    words = []
    for raw in text.lower().split():
        word = raw.strip(_EDGE_PUNCT)
        if word:
            words.append(word)
    return words


def _word_fraction(query_words: List[str], text: str) -> float:
    if not query_words:
        return 0.0
    present = set(tokenize(text))
    hits = sum(1 for word in query_words if word in present)
    return hits / len(query_words)


def score(query: str, candidate_title: str, snippet: str = "") -> float:
    """Relevance of a search candidate to the query, in [0, 1].

    Title match (exact 1.0 / title contains query 0.8 / query contains
    title 0.7), plus 0.5 x the fraction of query words in the title, plus
    0.3 x the fraction in the snippet. Clamped to 1.0.
    """
    q = " ".join(query.split()).lower()
    title = " ".join(candidate_title.split()).lower()
    if not q or not title:
        return 0.0

    total = 0.0
    if title == q:
        total += 1.0
    elif q in title:
        total += 0.8
    elif title in q:
        total += 0.7

    query_words = tokenize(q)
    total += 0.5 * _word_fraction(query_words, title)
    total += 0.3 * _word_fraction(query_words, strip_markup(snippet))

    return min(total, 1.0)


def reading_time(text: str, words_per_minute: int = WORDS_PER_MINUTE) -> int:
    """Minutes to read ``text``, rounded up. Empty text reads in 0 minutes."""
    if not text or not text.strip():
        return 0
    return math.ceil(len(text.split()) / words_per_minute)


def html_to_text(html: str) -> str:
    if not html:
        return ""
    return BeautifulSoup(html, "html.parser").get_text(separator=" ", strip=True)


def reading_time_for_html(html: str) -> int:
    return reading_time(html_to_text(html))


def generate_record_id(title: str) -> str:
    """Fallback record id when upstream gives no page id: sha256(title)[:16]."""
    return hashlib.sha256(title.strip().encode("utf-8")).hexdigest()[:16]

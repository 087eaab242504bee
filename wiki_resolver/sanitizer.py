"""
Content sanitizer.

Cleans raw article markup for display with an ordered list of regex rewrites.
This is deliberately pattern-based, not a parser: anything a rule does not
match (unbalanced tags, unexpected nesting) passes through unchanged.

Caption extraction does parse, with BeautifulSoup, since it only reads.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import List, Optional
from urllib.parse import unquote, urlparse

from bs4 import BeautifulSoup

from wiki_resolver.config import LOCAL_SEARCH_PATH, WIKI_CONTENT_DOMAIN

logger = logging.getLogger(__name__)

MIN_CAPTION_CHARS = 10


@dataclass(frozen=True)
class Rewrite:
    name: str
    pattern: re.Pattern
    replacement: str


def _class_block(tag: str, hint: str) -> re.Pattern:
    return re.compile(
        rf'<{tag}[^>]*class="[^"]*\b{re.escape(hint)}\b[^"]*"[^>]*>.*?</{tag}>',
        re.DOTALL | re.IGNORECASE,
    )


def build_rewrites(
    content_domain: str = WIKI_CONTENT_DOMAIN,
    search_path: str = LOCAL_SEARCH_PATH,
) -> List[Rewrite]:
    domain = re.escape(content_domain)
    return [
        # 1. info panels and navigation panels
        Rewrite("infobox", _class_block("table", "infobox"), ""),
        Rewrite("navbox", _class_block("table", "navbox"), ""),
        Rewrite("vertical-navbox", _class_block("table", "vertical-navbox"), ""),
        # 2. coordinates
        Rewrite("geo", re.compile(r'<span[^>]*class="[^"]*\bgeo\b[^"]*"[^>]*>.*?</span>', re.IGNORECASE), ""),
        # 3. edit-section affordances
        Rewrite(
            "editsection",
            re.compile(
                r'<(span|a)[^>]*class="[^"]*\bmw-editsection\b[^"]*"[^>]*>.*?</\1>',
                re.DOTALL | re.IGNORECASE,
            ),
            "",
        ),
        # 4. references heading block (up to the next h2) and reference lists
        Rewrite(
            "references",
            re.compile(r'<h2[^>]*id="References"[^>]*>.*?</h2>.*?(<h2|\Z)', re.DOTALL),
            r"\1",
        ),
        Rewrite("reflist", _class_block("div", "reflist"), ""),
        Rewrite("references-list", _class_block("ol", "references"), ""),
        # 5. citation-needed markers
        Rewrite(
            "citation-needed",
            re.compile(r'<sup[^>]*class="[^"]*\b(?:citation-needed|Template-Fact)\b[^"]*"[^>]*>.*?</sup>', re.DOTALL),
            "",
        ),
        # 6. tables
        Rewrite("tables", re.compile(r"<table\b[^>]*>", re.IGNORECASE), '<table class="wikipedia-table">'),
        # 7. images
        Rewrite("images", re.compile(r"<img\b([^>]*?)\s*/?>", re.IGNORECASE), r'<img\1 loading="lazy" class="article-img">'),
        # 8. outbound links open in a new context without opener
        Rewrite(
            "external-links",
            re.compile(rf'<a([^>]*)href="((?:https?:)?//(?!{domain}[/"])[^"]+)"([^>]*)>'),
            r'<a\1href="\2"\3 target="_blank" rel="noopener noreferrer">',
        ),
        # 9. same-domain article links into the local search surface
        Rewrite(
            "internal-links",
            re.compile(
                rf'<a([^>]*)href="(?:(?:https?:)?//{domain})?(?:/wiki/|\./)([^"#?]+)(?:#[^"]*)?"([^>]*)>'
            ),
            rf'<a\1href="{search_path}?query=\2"\3 class="internal-link">',
        ),
        # 10. table of contents and hatnotes
        Rewrite("toc", re.compile(r'<div[^>]*id="toc"[^>]*>.*?</div>', re.DOTALL), ""),
        Rewrite("hatnote", _class_block("div", "hatnote"), ""),
    ]


DEFAULT_REWRITES = build_rewrites()


def sanitize(raw_markup: str, rewrites: Optional[List[Rewrite]] = None) -> str:
    """Apply every rewrite in order. Never raises on odd markup."""
    if not raw_markup:
        return ""
    cleaned = raw_markup
    for rule in rewrites or DEFAULT_REWRITES:
        cleaned, count = rule.pattern.subn(rule.replacement, cleaned)
        if count:
            logger.debug(f"sanitize: {rule.name} matched {count}x")
    return cleaned


# =============================================================================
# Captions
# =============================================================================

def media_identifier(media_url: Optional[str]) -> str:
    """File name stem of a media URL, e.g. '320px-Albert_Einstein_Head.jpg' -> 'Albert_Einstein_Head'."""
    if not media_url:
        return ""
    name = unquote(urlparse(media_url).path.rsplit("/", 1)[-1])
    name = re.sub(r"^\d+px-", "", name)
    return name.rsplit(".", 1)[0] if "." in name else name


def _is_caption_like(tag) -> bool:
    if tag.name == "figcaption":
        return True
    classes = tag.get("class") or []
    return any("caption" in c.lower() for c in classes)


def extract_caption(html: str, media_id: str) -> str:
    """Find a display caption for the record's lead image.

    Caption mentioning the image first, then any caption-like element longer
    than 10 characters, then the alt text of the matching <img>.
    """
    if not html:
        return ""

    soup = BeautifulSoup(html, "html.parser")
    captions = soup.find_all(_is_caption_like)
    needles = _needles(media_id)

    for caption in captions:
        text = caption.get_text(" ", strip=True)
        if needles and any(n in text.lower() for n in needles):
            return text

    for caption in captions:
        text = caption.get_text(" ", strip=True)
        if len(text) > MIN_CAPTION_CHARS:
            return text

    if media_id:
        for img in soup.find_all("img"):
            src = unquote(img.get("src") or "")
            alt = (img.get("alt") or "").strip()
            if alt and media_id in src:
                return alt

    return ""


def _needles(media_id: str) -> List[str]:
    if not media_id:
        return []
    lowered = media_id.lower()
    return list({lowered, lowered.replace("_", " ")})


@dataclass
class SanitizedArticle:
    content: str
    caption: str = ""


def sanitize_article(html: str, media_url: Optional[str] = None) -> SanitizedArticle:
    """Caption from the raw markup, then the sanitized markup."""
    caption = extract_caption(html, media_identifier(media_url)) if media_url else ""
    return SanitizedArticle(content=sanitize(html), caption=caption)

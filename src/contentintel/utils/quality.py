"""Content text helpers: tag stripping, word lists, block splitting."""

from __future__ import annotations

import re

from bs4 import BeautifulSoup

_TAG_RE = re.compile(r"<[^>]+>")
_WS_RE = re.compile(r"\s+")

# Top-level elements that become their own editor block.
_BLOCK_TAGS = {
    "p", "h1", "h2", "h3", "h4", "h5", "h6", "ul", "ol", "table", "blockquote",
    "figure", "pre", "div", "section", "article", "aside", "hr", "dl", "img", "iframe",
}


def strip_tags(html: str) -> str:
    """Cheap tag stripping for short fragments (scoring hot path)."""
    return _WS_RE.sub(" ", _TAG_RE.sub(" ", html or "")).strip()


def visible_length(html: str) -> int:
    return len(_TAG_RE.sub("", html or "").strip())


def significant_words(text: str, min_length: int = 4) -> list[str]:
    """Lowercased words longer than three characters."""
    return [w for w in (text or "").lower().split() if len(w) >= min_length]


def split_into_blocks(html: str) -> list[str]:
    """Split article HTML into top-level blocks, one per paragraph-like element.

    Loose text between elements is wrapped in <p>. Empty blocks are dropped.
    """
    soup = BeautifulSoup(html or "", "html.parser")
    blocks: list[str] = []
    loose: list[str] = []

    def flush_loose() -> None:
        text = " ".join(x for x in loose if x).strip()
        loose.clear()
        if text:
            blocks.append(f"<p>{text}</p>")

    for child in list(soup.children):
        name = getattr(child, "name", None)
        if name is None:
            loose.append(str(child).strip())
            continue
        if name in _BLOCK_TAGS:
            flush_loose()
            rendered = str(child).strip()
            if rendered and (visible_length(rendered) > 0 or name in ("img", "hr", "figure", "iframe", "table")):
                blocks.append(rendered)
        else:
            loose.append(str(child).strip())
    flush_loose()
    return blocks

"""Pattern scan for product mentions in article HTML.

Produces low-confidence `StructuralCandidate`s before any external
verification. Paragraph indexes count HTML blocks as the editor splits them,
so a candidate's index is directly usable as a placement hint.
"""

from __future__ import annotations

import re
from typing import Optional

from bs4 import BeautifulSoup

from ..domain.models import StructuralCandidate
from ..utils.quality import split_into_blocks
from ..utils.validators import extract_asin

SOURCE_MARKETPLACE_LINK = "marketplace_link"
SOURCE_HEADING = "heading"
SOURCE_BOLD = "bold"
SOURCE_LIST_ITEM = "list_item"

_CONFIDENCE = {
    SOURCE_MARKETPLACE_LINK: 0.6,
    SOURCE_HEADING: 0.5,
    SOURCE_BOLD: 0.4,
    SOURCE_LIST_ITEM: 0.3,
}

_MARKETPLACE_HREF_RE = re.compile(r"(amazon\.[a-z.]+/|amzn\.to/)", re.I)

# Capitalized brand followed by a model token that carries a digit
# ("Sony WH-1000XM5", "Dyson V15 Detect", "Instant Pot Duo 7-in-1").
_BRAND_MODEL_RE = re.compile(
    r"\b([A-Z][A-Za-z0-9&'.]+(?:\s+[A-Z][A-Za-z0-9&'.]+){0,2})\s+"
    r"([A-Za-z-]*\d[\w-]*(?:\s+(?:[A-Z][\w-]*|\d[\w-]*)){0,3})"
)
_LEADING_RANK_RE = re.compile(r"^\s*(#?\d+[.):]?|step\s+\d+[.:]?)\s+", re.I)
_TRAILING_NOISE_RE = re.compile(r"(\s+[-–]\s+|\s*[:|(]).*$")

_STOP_BRANDS = {"Top", "Best", "Step", "The", "Our", "Why", "How", "What", "In", "For", "Under", "Over"}
_MAX_NAME_CHARS = 80
_MIN_NAME_CHARS = 4
_MAX_LIST_ITEM_CHARS = 120


def _clean_name(text: str) -> str:
    t = _LEADING_RANK_RE.sub("", " ".join((text or "").split()))
    return t.strip(" .,:;!?\"'")


def match_brand_model(text: str) -> Optional[str]:
    """Return the first "Brand Model" phrase in the text, if any."""
    t = _clean_name(text)
    for m in _BRAND_MODEL_RE.finditer(t):
        words = m.group(1).split()
        while words and words[0] in _STOP_BRANDS:
            words.pop(0)
        if not words:
            continue
        name = f"{' '.join(words)} {m.group(2)}".strip()
        if _MIN_NAME_CHARS <= len(name) <= _MAX_NAME_CHARS:
            return name
    return None


def extract_structural_candidates(html: str) -> list[StructuralCandidate]:
    found: dict[str, StructuralCandidate] = {}
    order: list[str] = []

    def add(c: StructuralCandidate) -> None:
        key = (c.asin or c.name).lower()
        prior = found.get(key)
        if prior is None:
            order.append(key)
            found[key] = c
        elif c.confidence > prior.confidence:
            found[key] = c

    for index, block in enumerate(split_into_blocks(html)):
        soup = BeautifulSoup(block, "html.parser")
        context = soup.get_text(" ", strip=True)[:200]

        for a in soup.find_all("a", href=True):
            href = a["href"]
            if not _MARKETPLACE_HREF_RE.search(href):
                continue
            asin = extract_asin(href)
            name = _clean_name(a.get_text(" ", strip=True) or a.get("title") or "")
            if not asin and not name:
                continue
            add(
                StructuralCandidate(
                    name=name or asin,
                    source_type=SOURCE_MARKETPLACE_LINK,
                    confidence=_CONFIDENCE[SOURCE_MARKETPLACE_LINK],
                    asin=asin,
                    context=context,
                    paragraph_index=index,
                )
            )

        for tag, source in ((("h2", "h3", "h4"), SOURCE_HEADING), (("strong", "b"), SOURCE_BOLD)):
            for el in soup.find_all(list(tag)):
                name = match_brand_model(el.get_text(" ", strip=True))
                if name:
                    add(StructuralCandidate(name, source, _CONFIDENCE[source], context=context, paragraph_index=index))

        for li in soup.find_all("li"):
            text = li.get_text(" ", strip=True)
            if len(text) > _MAX_LIST_ITEM_CHARS:
                continue
            name = match_brand_model(_TRAILING_NOISE_RE.sub("", text))
            if name:
                add(
                    StructuralCandidate(
                        name, SOURCE_LIST_ITEM, _CONFIDENCE[SOURCE_LIST_ITEM], context=context, paragraph_index=index
                    )
                )

    return [found[k] for k in order]

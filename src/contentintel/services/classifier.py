"""Monetization-opportunity classification for content pages.

Weighted keyword signals on the title pick the page type; the content (when
available) decides whether the page already carries affiliate links and how
much commercial intent it shows. With an empty content string this is the
cheap title-only classification used before any fetch.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from ..domain.models import MonetizationStatus, PageType, PriorityTier

# (pattern, {page_type: weight})
_TITLE_SIGNALS: tuple[tuple[re.Pattern, dict[PageType, int]], ...] = (
    (re.compile(r"\b(vs\.?|versus|compared?|comparison)\b", re.I), {PageType.COMPARISON: 6, PageType.REVIEW: 1}),
    (re.compile(r"\b(best|top\s+\d+|\d+\s+best)\b", re.I), {PageType.LISTICLE: 5}),
    (re.compile(r"\breview(s|ed)?\b", re.I), {PageType.REVIEW: 5, PageType.LISTICLE: 1}),
    (re.compile(r"\b(buying guide|buyer'?s guide|worth it)\b", re.I), {PageType.REVIEW: 3, PageType.LISTICLE: 2}),
    (re.compile(r"\b(how to|guide|tips|tutorial|steps?)\b", re.I), {PageType.HOW_TO: 4}),
    (re.compile(r"\b(what is|why|history|meaning|ideas)\b", re.I), {PageType.INFORMATIONAL: 3}),
)

_COMMERCIAL_TYPES = {PageType.LISTICLE, PageType.REVIEW, PageType.COMPARISON}

_AFFILIATE_RE = re.compile(
    r"(amazon\.[a-z.]+/(dp|gp/product)/|amzn\.to/|[?&]tag=[\w-]+-\d{2}|data-asin=|class=\"[^\"]*(aawp|amazon-product|affiliate)[^\"]*\")",
    re.I,
)
_INTENT_RE = re.compile(r"\b(buy|price|deal|recommend(ed)?|budget|brand|model|pros|cons|rating)\b", re.I)

_LONG_CONTENT_CHARS = 1500


@dataclass(frozen=True)
class PageClassification:
    priority: PriorityTier
    monetization_status: MonetizationStatus
    page_type: PageType


def detect_page_type(title: str) -> PageType:
    scores: dict[PageType, int] = {}
    for pattern, weights in _TITLE_SIGNALS:
        if pattern.search(title or ""):
            for page_type, w in weights.items():
                scores[page_type] = scores.get(page_type, 0) + w
    if not scores:
        return PageType.INFORMATIONAL if (title or "").strip() else PageType.UNKNOWN
    # ties resolve by signal table order
    order = [t for _, weights in _TITLE_SIGNALS for t in weights]
    return max(scores, key=lambda t: (scores[t], -order.index(t)))


def classify_page(title: str, content: str) -> PageClassification:
    page_type = detect_page_type(title)
    text = content or ""

    if text and _AFFILIATE_RE.search(text):
        return PageClassification(PriorityTier.LOW, MonetizationStatus.MONETIZED, page_type)

    if page_type in _COMMERCIAL_TYPES:
        return PageClassification(PriorityTier.CRITICAL, MonetizationStatus.OPPORTUNITY, page_type)

    intent_hits = len(_INTENT_RE.findall(text)) if text else 0
    if page_type == PageType.HOW_TO:
        if intent_hits >= 3:
            return PageClassification(PriorityTier.HIGH, MonetizationStatus.OPPORTUNITY, page_type)
        return PageClassification(PriorityTier.MEDIUM, MonetizationStatus.OPPORTUNITY, page_type)

    if intent_hits >= 5:
        return PageClassification(PriorityTier.HIGH, MonetizationStatus.OPPORTUNITY, page_type)
    if len(text) >= _LONG_CONTENT_CHARS:
        return PageClassification(PriorityTier.MEDIUM, MonetizationStatus.NONE, page_type)
    return PageClassification(PriorityTier.LOW, MonetizationStatus.NONE, page_type)

"""Relevance-scored product placement over the editor document.

Positions are node indexes into the document tuple. Paragraph hints count
HTML blocks only (0-based), which is how the structural extractor numbers
them.
"""

from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

from ..config.settings import PipelineSettings
from ..domain.models import (
    ComparisonNode,
    Document,
    DocumentNode,
    HtmlBlock,
    PlacementDecision,
    PlacementPlan,
    ProductCandidate,
    ProductNode,
)
from ..observability.logger import get_logger
from ..utils.quality import significant_words, strip_tags

logger = get_logger(__name__)

_HINT_SCORE = 10000.0
_PROBE_SCORE = 9000.0


@dataclass(frozen=True)
class PlacementSettings:
    min_gap: int = 3
    probe_distance: int = 4
    mention_ratio: float = 0.7
    mention_score: int = 1000
    title_score: int = 100
    brand_score: int = 50
    word_score: int = 10
    short_block_chars: int = 50
    short_block_penalty: int = 10
    tiny_block_chars: int = 30
    tiny_block_penalty: int = 50
    long_block_chars: int = 200
    long_block_bonus: int = 15
    relevance_cache_max: int = 1000

    @classmethod
    def from_settings(cls, s: PipelineSettings) -> "PlacementSettings":
        return cls(
            min_gap=s.placement_min_gap,
            probe_distance=s.placement_probe_distance,
            mention_ratio=s.placement_mention_ratio,
            mention_score=s.placement_mention_score,
            title_score=s.placement_title_score,
            brand_score=s.placement_brand_score,
            word_score=s.placement_word_score,
            short_block_chars=s.placement_short_block_chars,
            short_block_penalty=s.placement_short_block_penalty,
            tiny_block_chars=s.placement_tiny_block_chars,
            tiny_block_penalty=s.placement_tiny_block_penalty,
            long_block_chars=s.placement_long_block_chars,
            long_block_bonus=s.placement_long_block_bonus,
            relevance_cache_max=s.relevance_cache_max,
        )


class RelevanceScorer:
    """Block/product relevance with a bounded memo keyed by (block prefix, product id)."""

    def __init__(self, settings: PlacementSettings | None = None):
        self._s = settings or PlacementSettings()
        self._memo: OrderedDict[tuple[str, str], float] = OrderedDict()

    def __len__(self) -> int:
        return len(self._memo)

    def clear(self) -> None:
        self._memo.clear()

    def score(self, text: str, product: ProductCandidate) -> float:
        key = (text[:100], product.id)
        hit = self._memo.get(key)
        if hit is not None:
            return hit

        s = self._s
        clean = strip_tags(text).lower()
        score = 0.0

        if product.exact_mention:
            words = significant_words(product.exact_mention)
            if words:
                ratio = sum(1 for w in words if w in clean) / len(words)
                if ratio >= s.mention_ratio:
                    score += s.mention_score

        title = (product.title or "").lower()
        if title and title in clean:
            score += s.title_score
        brand = (product.brand or "").lower()
        if brand and brand in clean:
            score += s.brand_score
        for w in significant_words(title):
            if w in clean:
                score += s.word_score

        if len(clean) < s.short_block_chars and score < 50:
            score -= s.short_block_penalty

        self._memo[key] = score
        if len(self._memo) > s.relevance_cache_max:
            for _ in range(len(self._memo) // 2):
                self._memo.popitem(last=False)
        return score


def html_positions(nodes: Sequence[DocumentNode]) -> list[int]:
    return [i for i, n in enumerate(nodes) if isinstance(n, HtmlBlock)]


def placed_product_ids(nodes: Iterable[DocumentNode]) -> set[str]:
    return {n.product_id for n in nodes if isinstance(n, ProductNode)}


def product_node_id(product_id: str, nodes: Sequence[DocumentNode], reserved: Iterable[str] = ()) -> str:
    taken = {n.id for n in nodes} | set(reserved)
    base = f"prod-node-{product_id}"
    if base not in taken:
        return base
    n = 2
    while f"{base}-{n}" in taken:
        n += 1
    return f"{base}-{n}"


class PlacementEngine:
    def __init__(self, settings: PlacementSettings | None = None, scorer: RelevanceScorer | None = None):
        self._s = settings or PlacementSettings()
        self.scorer = scorer or RelevanceScorer(self._s)

    def best_insertion_index(self, product: ProductCandidate, nodes: Sequence[DocumentNode]) -> int:
        """Index at which a single product node should be inserted."""
        if not nodes:
            return 0
        hint = product.paragraph_index
        if hint is not None and hint >= 0:
            positions = html_positions(nodes)
            if hint < len(positions):
                return positions[hint] + 1

        scored = [
            (self.scorer.score(n.content, product), i)
            for i, n in enumerate(nodes)
            if isinstance(n, HtmlBlock) and n.content
        ]
        if not scored:
            return len(nodes)
        # max keeps the earliest block on ties
        _, best_idx = max(scored, key=lambda s: s[0])
        return best_idx + 1

    def rank_for_block(self, block_html: str, products: Sequence[ProductCandidate]) -> list[ProductCandidate]:
        """Products ordered by relevance to one block, best first."""
        return sorted(products, key=lambda p: -self.scorer.score(block_html, p))

    def _occupied(self, nodes: Sequence[DocumentNode]) -> set[int]:
        zone: set[int] = set()
        gap = self._s.min_gap
        last = len(nodes) - 1
        for i, n in enumerate(nodes):
            if isinstance(n, (ProductNode, ComparisonNode)):
                zone.update(range(max(0, i - gap), min(last, i + gap) + 1))
        return zone

    def _hinted_target(self, hint: int, nodes: Sequence[DocumentNode], occupied: set[int]) -> Optional[tuple[int, float]]:
        positions = html_positions(nodes)
        if hint < 0 or hint >= len(positions):
            return None
        i = positions[hint]
        if i not in occupied:
            return i, _HINT_SCORE
        for off in range(1, self._s.probe_distance + 1):
            for j in (i + off, i - off):
                if 0 <= j < len(nodes) and j not in occupied and isinstance(nodes[j], HtmlBlock):
                    return j, _PROBE_SCORE
        return None

    def _scored_target(
        self, product: ProductCandidate, nodes: Sequence[DocumentNode], occupied: set[int]
    ) -> Optional[tuple[int, float]]:
        s = self._s
        best_idx = -1
        best = -1.0
        for i, n in enumerate(nodes):
            if not isinstance(n, HtmlBlock) or not n.content or i in occupied:
                continue
            score = self.scorer.score(n.content, product)
            length = len(strip_tags(n.content))
            if length < s.tiny_block_chars:
                score -= s.tiny_block_penalty
            if length > s.long_block_chars:
                score += s.long_block_bonus
            if score > best:
                best = score
                best_idx = i
        if best_idx < 0:
            return None
        return best_idx, best

    @staticmethod
    def _order(products: Sequence[ProductCandidate]) -> list[ProductCandidate]:
        def key(p: ProductCandidate):
            hinted = p.paragraph_index is not None and p.paragraph_index >= 0
            return (0 if hinted else 1, -(p.paragraph_index or 0) if hinted else 0, -p.confidence, p.id)

        return sorted(products, key=key)

    def plan_auto_populate(self, nodes: Sequence[DocumentNode], products: Sequence[ProductCandidate]) -> PlacementPlan:
        already = placed_product_ids(nodes)
        to_place = [p for p in products if p.id not in already]
        working: list[DocumentNode] = list(nodes)
        decisions: list[PlacementDecision] = []
        unplaced: list[str] = []

        for p in self._order(to_place):
            occupied = self._occupied(working)
            target = None
            hinted = p.paragraph_index is not None and p.paragraph_index >= 0
            if hinted:
                target = self._hinted_target(p.paragraph_index, working, occupied)
            if target is None:
                hinted = False
                target = self._scored_target(p, working, occupied)

            if target is None or target[1] <= 0:
                unplaced.append(p.id)
                continue

            idx, score = target
            node = ProductNode(id=product_node_id(p.id, working), product_id=p.id)
            working.insert(idx + 1, node)
            decisions.append(
                PlacementDecision(product_id=p.id, node_id=node.id, position=idx + 1, score=score, hinted=hinted)
            )

        plan = PlacementPlan(decisions=tuple(decisions), unplaced=tuple(unplaced), total=len(to_place))
        logger.info("placement_planned", placed=plan.placed, total=plan.total, unplaced=len(plan.unplaced))
        return plan

    @staticmethod
    def apply_plan(nodes: Sequence[DocumentNode], plan: PlacementPlan) -> Document:
        """Replay the plan's insertions in order over a copy of the nodes."""
        out = list(nodes)
        for d in plan.decisions:
            out.insert(min(d.position, len(out)), ProductNode(id=d.node_id, product_id=d.product_id))
        return tuple(out)

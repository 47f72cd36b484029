"""Editor state for one page: document history plus the staged products.

The document is only ever changed through `EditHistory.set`/`update`. Async
work (deep scan, copy enhancement) merges into whatever the present state is
when it completes, so edits made in the meantime survive.
"""

from __future__ import annotations

import asyncio
import re
from dataclasses import replace
from typing import Optional

from ..domain.errors import (
    InvalidCredentialError,
    ProductNotFoundError,
    StagingConflictError,
    ValidationError,
)
from ..domain.models import (
    ComparisonNode,
    ComparisonTable,
    ContentPage,
    DeploymentMode,
    DetectionResult,
    Document,
    HtmlBlock,
    PlacementPlan,
    ProductCandidate,
    ProductNode,
)
from ..llm.runtime import LLMRuntime
from ..marketplace.serpapi_client import MarketplaceClient
from ..observability.logger import get_logger
from ..publishing.markup import render_comparison_table, render_product_box
from ..publishing.wordpress import Publisher
from ..storage.result_cache import ResultCache, fingerprint_key
from ..storage.snapshot_repository import SnapshotRepository
from ..utils.quality import split_into_blocks
from ..utils.validators import extract_asin
from .copywriter import EnhancedCopy, enhance_product_copy
from .detection_pipeline import DetectionPipeline, ProgressCallback
from .history import EditHistory
from .placement import PlacementEngine, placed_product_ids, product_node_id
from .verifier import product_from_marketplace

logger = get_logger(__name__)

_IMG_RE = re.compile(r"<img[^>]*>", re.IGNORECASE)
_MIN_SOURCE_CHARS = 10


class EditorSession:
    def __init__(
        self,
        page: ContentPage,
        *,
        pipeline: DetectionPipeline,
        placement: PlacementEngine,
        marketplace: MarketplaceClient,
        cache: ResultCache | None = None,
        publisher: Publisher | None = None,
        snapshots: SnapshotRepository | None = None,
        llm: LLMRuntime | None = None,
        llm_model: str = "",
        amazon_tag: str = "",
        history_max_snapshots: int = 100,
    ):
        self.page = page
        self._pipeline = pipeline
        self._placement = placement
        self._marketplace = marketplace
        self._cache = cache
        self._publisher = publisher
        self._snapshots = snapshots
        self._llm = llm
        self._llm_model = llm_model
        self._amazon_tag = amazon_tag
        self._source_html = ""
        self.products: dict[str, ProductCandidate] = {}
        self.history: EditHistory[Document] = EditHistory((), max_snapshots=history_max_snapshots)

    @property
    def nodes(self) -> Document:
        return self.history.present

    # ---- loading -------------------------------------------------------

    def hydrate(self, html: str, active_products: list[ProductCandidate] | None = None) -> Document:
        """Build the initial document from page HTML and any cached analysis."""
        if len((html or "").strip()) < _MIN_SOURCE_CHARS:
            raise ValidationError("No content received for this page")
        blocks = split_into_blocks(html)
        if not blocks:
            raise ValidationError("Failed to parse content into blocks")
        self._source_html = html

        products = list(active_products or [])
        comparison: Optional[ComparisonTable] = None
        cached = self._cache.get(self._cache_key()) if self._cache is not None else None
        if isinstance(cached, dict):
            if not products:
                products = [ProductCandidate.from_dict(d) for d in cached.get("products") or []]
            if cached.get("comparison"):
                comparison = ComparisonTable.from_dict(cached["comparison"])
        self.products = {p.id: p for p in products}

        nodes: list = [HtmlBlock(id=f"block-{i}", content=b) for i, b in enumerate(blocks)]
        placed = sorted((p for p in products if p.insertion_index > -1), key=lambda p: p.insertion_index)
        for offset, p in enumerate(placed):
            target = min(p.insertion_index + offset, len(nodes))
            nodes.insert(target, ProductNode(id=product_node_id(p.id, nodes), product_id=p.id))
        if comparison is not None:
            nodes.insert(min(1, len(nodes)), ComparisonNode(id="comp-table", comparison=comparison))

        self.history.reset(tuple(nodes))
        logger.info("editor_hydrated", page_id=self.page.id, blocks=len(blocks), products=len(self.products))
        return self.nodes

    async def restore_snapshot(self) -> bool:
        if self._snapshots is None:
            return False
        snap = await self._snapshots.load(self.page.id)
        if snap is None or not snap.nodes:
            return False
        self.products = dict(snap.products)
        self.history.reset(snap.nodes)
        return True

    # ---- detection -----------------------------------------------------

    def content_html(self) -> str:
        return "\n\n".join(n.content for n in self.nodes if isinstance(n, HtmlBlock) and n.content)

    async def deep_scan(self, on_progress: ProgressCallback | None = None) -> DetectionResult:
        result = await self._pipeline.detect(self.page.title, self.content_html(), on_progress)
        for p in result.products:
            self.products[p.id] = p
        if result.comparison is not None:
            self.history.update(lambda nodes: self._with_comparison(nodes, result.comparison))
        self.persist_staging()
        logger.info("deep_scan_completed", page_id=self.page.id, summary=result.summary())
        return result

    @staticmethod
    def _with_comparison(nodes: Document, table: ComparisonTable) -> Document:
        if any(isinstance(n, ComparisonNode) for n in nodes):
            return nodes
        comp = ComparisonNode(id="comp-table", comparison=table)
        return nodes[:1] + (comp,) + nodes[1:]

    async def add_manual_product(self, raw: str) -> ProductCandidate:
        asin = extract_asin(raw)
        if not asin:
            raise ValidationError("Invalid ASIN or Amazon URL.", detail=raw)
        if not self._marketplace.has_credential:
            raise InvalidCredentialError("Marketplace verification key required. Configure it in settings.")
        if any(p.asin == asin for p in self.products.values()):
            raise StagingConflictError("Product already in staging", detail=asin)

        found = await self._marketplace.lookup_by_id(asin)
        if found is None or not found.asin:
            raise ProductNotFoundError("Product not found on Amazon.", detail=asin)
        product = product_from_marketplace(found, fallback_title=asin, confidence=1.0)
        self.products[product.id] = product
        logger.info("manual_product_added", page_id=self.page.id, asin=asin)
        return product

    async def enhance_copy(self, product_id: str) -> EnhancedCopy:
        product = self._require_product(product_id)
        copy = await enhance_product_copy(product, self.content_html(), self._llm, model=self._llm_model)
        current = self.products.get(product_id)
        if current is not None:
            self.products[product_id] = replace(
                current, verdict=copy.verdict, evidence_claims=list(copy.bullet_points), faqs=list(copy.faqs)
            )
        return copy

    # ---- placement -----------------------------------------------------

    def unplaced_products(self) -> list[ProductCandidate]:
        placed = placed_product_ids(self.nodes)
        return [p for p in self.products.values() if p.id not in placed]

    def suggestions_for(self, node_index: int) -> list[ProductCandidate]:
        """Unplaced products ranked by relevance to the block at node_index."""
        unplaced = self.unplaced_products()
        if not 0 <= node_index < len(self.nodes):
            return unplaced
        node = self.nodes[node_index]
        if not isinstance(node, HtmlBlock) or not node.content:
            return unplaced
        return self._placement.rank_for_block(node.content, unplaced)

    def inject_product(self, product_id: str, index: int | None = None) -> Document:
        product = self._require_product(product_id)

        def reducer(nodes: Document) -> Document:
            at = self._placement.best_insertion_index(product, nodes) if index is None else index
            at = max(0, min(at, len(nodes)))
            node = ProductNode(id=product_node_id(product_id, nodes), product_id=product_id)
            return nodes[:at] + (node,) + nodes[at:]

        return self.history.update(reducer)

    def auto_populate(self) -> PlacementPlan:
        plan = self._placement.plan_auto_populate(self.nodes, list(self.products.values()))
        if plan.decisions:
            self.history.update(lambda nodes: self._placement.apply_plan(nodes, plan))
        return plan

    # ---- node operations -----------------------------------------------

    def delete_node(self, node_id: str) -> Document:
        return self.history.update(lambda nodes: tuple(n for n in nodes if n.id != node_id))

    def move_node(self, index: int, direction: int) -> Document:
        def reducer(nodes: Document) -> Document:
            target = index + direction
            if direction not in (-1, 1) or not 0 <= index < len(nodes) or not 0 <= target < len(nodes):
                return nodes
            out = list(nodes)
            out[index], out[target] = out[target], out[index]
            return tuple(out)

        return self.history.update(reducer)

    def update_html(self, node_id: str, content: str) -> Document:
        return self.history.update(
            lambda nodes: tuple(
                replace(n, content=content) if isinstance(n, HtmlBlock) and n.id == node_id else n for n in nodes
            )
        )

    def strip_images(self, node_id: str) -> Document:
        node = next((n for n in self.nodes if n.id == node_id), None)
        if not isinstance(node, HtmlBlock) or not node.content:
            return self.nodes
        return self.update_html(node_id, _IMG_RE.sub("", node.content))

    def update_comparison(self, node_id: str, table: ComparisonTable) -> Document:
        return self.history.update(
            lambda nodes: tuple(
                replace(n, comparison=table) if isinstance(n, ComparisonNode) and n.id == node_id else n
                for n in nodes
            )
        )

    def remove_product(self, product_id: str) -> Document:
        self.products.pop(product_id, None)
        return self.history.update(
            lambda nodes: tuple(n for n in nodes if not (isinstance(n, ProductNode) and n.product_id == product_id))
        )

    def set_deployment_mode(self, product_id: str, mode: DeploymentMode) -> ProductCandidate:
        product = replace(self._require_product(product_id), deployment_mode=mode)
        self.products[product_id] = product
        return product

    def undo(self) -> Document:
        return self.history.undo()

    def redo(self) -> Document:
        return self.history.redo()

    def _require_product(self, product_id: str) -> ProductCandidate:
        product = self.products.get(product_id)
        if product is None:
            raise ValidationError("Unknown product", detail=product_id)
        return product

    # ---- output --------------------------------------------------------

    def compose_html(self) -> str:
        parts: list[str] = []
        for n in self.nodes:
            if isinstance(n, HtmlBlock):
                parts.append(n.content)
            elif isinstance(n, ProductNode):
                product = self.products.get(n.product_id)
                if product is not None:
                    parts.append(render_product_box(product, self._amazon_tag))
            elif isinstance(n, ComparisonNode):
                parts.append(render_comparison_table(n.comparison, self.products, self._amazon_tag))
        return "\n\n".join(p for p in parts if p)

    async def publish(self) -> str:
        if self._publisher is None:
            raise ValidationError("Publishing is not configured")
        link = await self._publisher.publish(self.compose_html(), self.page.id)
        self.persist_staging()
        return link

    def _cache_key(self) -> str:
        return fingerprint_key(self.page.title, self._source_html)

    def persist_staging(self) -> None:
        """Write staged products (with their current positions) to the result cache."""
        if self._cache is None or not self._source_html:
            return
        html_seen = 0
        positions: dict[str, int] = {}
        comparison: Optional[ComparisonTable] = None
        for n in self.nodes:
            if isinstance(n, HtmlBlock):
                html_seen += 1
            elif isinstance(n, ProductNode):
                positions.setdefault(n.product_id, html_seen)
            elif isinstance(n, ComparisonNode) and comparison is None:
                comparison = n.comparison
        products = [replace(p, insertion_index=positions.get(p.id, -1)) for p in self.products.values()]
        self._cache.set(
            self._cache_key(),
            {
                "products": [p.to_dict() for p in products],
                "comparison": comparison.to_dict() if comparison else None,
                "candidate_count": len(products),
            },
        )

    async def save_snapshot(self) -> bool:
        if self._snapshots is None or not self.nodes:
            return False
        return await self._snapshots.save(self.page.id, self.nodes, self.products)

    async def autosave_loop(self, interval_s: float = 30.0) -> None:
        """Persist a snapshot every interval until cancelled."""
        while True:
            await asyncio.sleep(interval_s)
            await self.save_snapshot()

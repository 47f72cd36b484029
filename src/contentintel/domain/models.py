"""Framework-agnostic domain models."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
from enum import Enum
from typing import Any, Optional, Union


class PriorityTier(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class MonetizationStatus(str, Enum):
    OPPORTUNITY = "opportunity"
    MONETIZED = "monetized"
    NONE = "none"


class PageType(str, Enum):
    LISTICLE = "listicle"
    REVIEW = "review"
    COMPARISON = "comparison"
    HOW_TO = "how_to"
    INFORMATIONAL = "informational"
    UNKNOWN = "unknown"


class DeploymentMode(str, Enum):
    ELITE_BENTO = "ELITE_BENTO"
    TACTICAL_LINK = "TACTICAL_LINK"
    COMPACT_CARD = "COMPACT_CARD"


class ScannerStatus(str, Enum):
    IDLE = "idle"
    DISCOVERING = "discovering"
    AUDITING = "auditing"
    ERROR = "error"
    COMPLETE = "complete"


class DetectionStage(str, Enum):
    IDLE = "idle"
    STRUCTURAL_EXTRACTION = "structural_extraction"
    ADVANCED = "advanced_stages"
    LEGACY_FALLBACK = "legacy_fallback"
    VERIFICATION = "verification"
    DONE = "done"


class DetectionPath(str, Enum):
    ADVANCED = "advanced"
    LEGACY = "legacy"
    CACHE = "cache"
    NONE = "none"


class DetectionReason(str, Enum):
    OK = "ok"
    INSUFFICIENT_CONTENT = "insufficient_content"
    NO_CANDIDATES = "no_candidates"
    MISSING_CREDENTIAL = "missing_credential"
    NOTHING_VERIFIED = "nothing_verified"


@dataclass(frozen=True)
class ContentPage:
    id: int
    url: str
    title: str
    content: Optional[str] = None
    priority: PriorityTier = PriorityTier.MEDIUM
    monetization_status: MonetizationStatus = MonetizationStatus.NONE
    page_type: PageType = PageType.UNKNOWN

    def to_dict(self, *, include_content: bool = False) -> dict[str, Any]:
        out = {
            "id": self.id,
            "url": self.url,
            "title": self.title,
            "priority": self.priority.value,
            "monetization_status": self.monetization_status.value,
            "page_type": self.page_type.value,
        }
        if include_content:
            out["content"] = self.content
        return out


@dataclass(frozen=True)
class FAQItem:
    question: str
    answer: str


@dataclass
class ProductCandidate:
    id: str
    title: str
    asin: Optional[str] = None
    brand: str = ""
    price: str = "See Price"
    rating: float = 0.0
    review_count: int = 0
    confidence: float = 0.0
    exact_mention: Optional[str] = None
    paragraph_index: Optional[int] = None
    evidence_claims: list[str] = field(default_factory=list)
    faqs: list[FAQItem] = field(default_factory=list)
    deployment_mode: DeploymentMode = DeploymentMode.ELITE_BENTO
    image_url: str = ""
    verdict: str = ""
    category: str = "General"
    prime: bool = False
    insertion_index: int = -1
    specs: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["deployment_mode"] = self.deployment_mode.value
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ProductCandidate":
        known = {f.name for f in fields(cls)}
        kwargs = {k: v for k, v in data.items() if k in known}
        kwargs["faqs"] = [
            f if isinstance(f, FAQItem) else FAQItem(question=str(f.get("question", "")), answer=str(f.get("answer", "")))
            for f in kwargs.get("faqs") or []
        ]
        if "deployment_mode" in kwargs:
            kwargs["deployment_mode"] = DeploymentMode(kwargs["deployment_mode"])
        return cls(**kwargs)


@dataclass(frozen=True)
class ComparisonTable:
    product_ids: tuple[str, ...]
    specs: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {"product_ids": list(self.product_ids), "specs": list(self.specs)}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ComparisonTable":
        return cls(
            product_ids=tuple(str(x) for x in data.get("product_ids") or ()),
            specs=tuple(str(x) for x in data.get("specs") or ()),
        )


@dataclass(frozen=True)
class HtmlBlock:
    id: str
    content: str


@dataclass(frozen=True)
class ProductNode:
    id: str
    product_id: str


@dataclass(frozen=True)
class ComparisonNode:
    id: str
    comparison: ComparisonTable


DocumentNode = Union[HtmlBlock, ProductNode, ComparisonNode]
Document = tuple[DocumentNode, ...]


def node_to_dict(node: DocumentNode) -> dict[str, Any]:
    if isinstance(node, HtmlBlock):
        return {"id": node.id, "type": "HTML", "content": node.content}
    if isinstance(node, ProductNode):
        return {"id": node.id, "type": "PRODUCT", "product_id": node.product_id}
    if isinstance(node, ComparisonNode):
        return {"id": node.id, "type": "COMPARISON", "comparison": node.comparison.to_dict()}
    raise TypeError(f"unknown document node: {type(node).__name__}")


def node_from_dict(data: dict[str, Any]) -> DocumentNode:
    kind = str(data.get("type") or "").upper()
    node_id = str(data["id"])
    if kind == "HTML":
        return HtmlBlock(id=node_id, content=str(data.get("content") or ""))
    if kind == "PRODUCT":
        if not data.get("product_id"):
            raise ValueError("product node without product_id")
        return ProductNode(id=node_id, product_id=str(data["product_id"]))
    if kind == "COMPARISON":
        return ComparisonNode(id=node_id, comparison=ComparisonTable.from_dict(data.get("comparison") or {}))
    raise ValueError(f"unknown document node type: {kind!r}")


@dataclass(frozen=True)
class AuditProgress:
    completed: int
    total: int

    @property
    def percentage(self) -> int:
        if self.total <= 0:
            return 0
        return int(self.completed * 100 // self.total)


@dataclass(frozen=True)
class StructuralCandidate:
    """Low-confidence product mention found by pattern scan."""

    name: str
    source_type: str
    confidence: float
    asin: Optional[str] = None
    context: str = ""
    paragraph_index: Optional[int] = None


@dataclass(frozen=True)
class DetectionProgress:
    stage: DetectionStage
    current: int
    total: int
    message: str = ""


@dataclass(frozen=True)
class DetectionResult:
    products: tuple[ProductCandidate, ...] = ()
    comparison: Optional[ComparisonTable] = None
    candidate_count: int = 0
    verified_count: int = 0
    path: DetectionPath = DetectionPath.NONE
    fallback_used: bool = False
    reason: DetectionReason = DetectionReason.OK

    @property
    def is_empty(self) -> bool:
        return len(self.products) == 0

    def summary(self) -> str:
        if self.products:
            if self.candidate_count > len(self.products):
                return f"{len(self.products)} products verified (from {self.candidate_count} candidates)"
            return f"{len(self.products)} products found"
        if self.reason == DetectionReason.INSUFFICIENT_CONTENT:
            return "Content too short for product detection."
        if self.reason == DetectionReason.MISSING_CREDENTIAL:
            return "Marketplace verification key required. Configure it in settings."
        return "No marketplace-verifiable products found. Try adding manually by ASIN."


@dataclass(frozen=True)
class PlacementDecision:
    product_id: str
    node_id: str
    position: int
    score: float
    hinted: bool = False


@dataclass(frozen=True)
class PlacementPlan:
    decisions: tuple[PlacementDecision, ...]
    unplaced: tuple[str, ...]
    total: int

    @property
    def placed(self) -> int:
        return len(self.decisions)

    def summary(self) -> str:
        if self.total == 0:
            return "All assets already deployed"
        if self.placed == self.total:
            return f"All {self.placed} products placed"
        missing = self.total - self.placed
        return f"{self.placed}/{self.total} placed ({missing} need manual placement)"

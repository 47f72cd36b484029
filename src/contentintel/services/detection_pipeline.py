"""Product detection with a degrading fallback path.

    idle -> structural_extraction -> {advanced_stages | legacy_fallback} -> verification -> done

The advanced detector runs first when configured. If it is missing, raises,
or verifies nothing, the legacy detector (verify structural candidates
directly) produces the result and `fallback_used` is set. Callers always get a
`DetectionResult`; wholesale failures come back empty with a reason code.
"""

from __future__ import annotations

import asyncio
from typing import Callable, Optional

from ..domain.models import (
    ComparisonTable,
    DetectionPath,
    DetectionProgress,
    DetectionReason,
    DetectionResult,
    DetectionStage,
    ProductCandidate,
    StructuralCandidate,
)
from ..observability.logger import get_logger
from ..storage.result_cache import ResultCache, fingerprint_key
from ..utils.quality import visible_length
from .precision_detector import PrecisionDetector
from .structural_extractor import extract_structural_candidates
from .verifier import ProductVerifier

logger = get_logger(__name__)

ProgressCallback = Callable[[DetectionProgress], None]

_TOTAL_STEPS = 6
_STEP = {
    DetectionStage.STRUCTURAL_EXTRACTION: 1,
    DetectionStage.ADVANCED: 2,
    DetectionStage.LEGACY_FALLBACK: 3,
    DetectionStage.VERIFICATION: 4,
    DetectionStage.DONE: 6,
}
COMPARISON_SPECS = ("Price", "Rating", "Reviews", "Prime")
_MAX_COMPARISON_PRODUCTS = 4


def build_comparison(products: list[ProductCandidate]) -> Optional[ComparisonTable]:
    if len(products) < 2:
        return None
    ids = tuple(p.id for p in products[:_MAX_COMPARISON_PRODUCTS])
    return ComparisonTable(product_ids=ids, specs=COMPARISON_SPECS)


class LegacyDetector:
    """Single-stage detector: verify structural candidates as they are."""

    def __init__(self, verifier: ProductVerifier):
        self._verifier = verifier

    async def detect(
        self,
        structural: list[StructuralCandidate],
        on_candidate: Callable[[int, int], None] | None = None,
    ) -> list[ProductCandidate]:
        return await self._verifier.verify(structural, on_candidate=on_candidate)


class DetectionPipeline:
    def __init__(
        self,
        *,
        verifier: ProductVerifier,
        precision: PrecisionDetector | None = None,
        cache: ResultCache | None = None,
        min_content_chars: int = 50,
        short_content_chars: int = 200,
    ):
        self._verifier = verifier
        self._legacy = LegacyDetector(verifier)
        self._precision = precision
        self._cache = cache
        self._min_content_chars = min_content_chars
        self._short_content_chars = short_content_chars

    async def detect(self, title: str, html: str, on_progress: ProgressCallback | None = None) -> DetectionResult:
        def emit(stage: DetectionStage, message: str, current: int | None = None) -> None:
            if on_progress is not None:
                step = _STEP[stage] if current is None else current
                on_progress(DetectionProgress(stage=stage, current=step, total=_TOTAL_STEPS, message=message))

        if len((html or "").strip()) < self._min_content_chars:
            emit(DetectionStage.DONE, "Insufficient content")
            return DetectionResult(reason=DetectionReason.INSUFFICIENT_CONTENT)

        key = fingerprint_key(title, html)
        cached = self._load_cached(key)
        if cached is not None:
            emit(DetectionStage.DONE, "Loaded from cache")
            return cached

        emit(DetectionStage.STRUCTURAL_EXTRACTION, "Extracting structural candidates")
        structural = extract_structural_candidates(html)

        products: list[ProductCandidate] = []
        candidate_count = len(structural)
        path = DetectionPath.NONE
        fallback_used = False

        if self._precision is not None:
            emit(DetectionStage.ADVANCED, "Running precision detection")
            try:
                out = await self._precision.detect(
                    title, html, structural, on_stage=lambda stage, msg: emit(stage, msg)
                )
                products = out.products
                candidate_count = max(candidate_count, out.candidate_count)
                path = DetectionPath.ADVANCED
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.warning("precision_detection_failed", error=str(e), error_type=type(e).__name__)

        if not products:
            fallback_used = self._precision is not None
            emit(DetectionStage.LEGACY_FALLBACK, "Falling back to legacy scan")
            emit(DetectionStage.VERIFICATION, "Verifying candidates")
            products = await self._legacy.detect(structural)
            path = DetectionPath.LEGACY if products else DetectionPath.NONE

        emit(DetectionStage.DONE, "Detection complete")

        if not products:
            reason = self._empty_reason(html, structural)
            logger.info("detection_empty", reason=reason.value, candidates=candidate_count, fallback_used=fallback_used)
            return DetectionResult(candidate_count=candidate_count, fallback_used=fallback_used, reason=reason)

        result = DetectionResult(
            products=tuple(products),
            comparison=build_comparison(products),
            candidate_count=candidate_count,
            verified_count=len(products),
            path=path,
            fallback_used=fallback_used,
        )
        self._store(key, result)
        logger.info(
            "detection_completed",
            path=path.value,
            verified=len(products),
            candidates=candidate_count,
            fallback_used=fallback_used,
        )
        return result

    def _empty_reason(self, html: str, structural: list[StructuralCandidate]) -> DetectionReason:
        if visible_length(html) < self._short_content_chars:
            return DetectionReason.INSUFFICIENT_CONTENT
        if not self._verifier.has_credential:
            return DetectionReason.MISSING_CREDENTIAL
        if not structural:
            return DetectionReason.NO_CANDIDATES
        return DetectionReason.NOTHING_VERIFIED

    def _load_cached(self, key: str) -> Optional[DetectionResult]:
        if self._cache is None:
            return None
        data = self._cache.get(key)
        if not isinstance(data, dict) or not data.get("products"):
            return None
        try:
            products = tuple(ProductCandidate.from_dict(p) for p in data["products"])
        except (TypeError, ValueError, KeyError):
            self._cache.delete(key)
            return None
        comparison = ComparisonTable.from_dict(data["comparison"]) if data.get("comparison") else None
        return DetectionResult(
            products=products,
            comparison=comparison,
            candidate_count=int(data.get("candidate_count") or len(products)),
            verified_count=len(products),
            path=DetectionPath.CACHE,
        )

    def _store(self, key: str, result: DetectionResult) -> None:
        if self._cache is None:
            return
        self._cache.set(
            key,
            {
                "products": [p.to_dict() for p in result.products],
                "comparison": result.comparison.to_dict() if result.comparison else None,
                "candidate_count": result.candidate_count,
            },
        )

"""Multi-stage product detection.

Stages: structural scan, contextual scoring, AI refinement (optional),
cross-validation, marketplace verification. The AI stage is advisory: when
generation fails or returns nothing parseable the stage is skipped.
"""

from __future__ import annotations

import asyncio
import re
from dataclasses import dataclass, replace
from typing import Callable, Optional, Sequence

from ..domain.errors import PipelineDomainError
from ..domain.models import DetectionStage, ProductCandidate, StructuralCandidate
from ..llm.runtime import LLMRequest, LLMRuntime, extract_json_object
from ..observability.logger import get_logger
from ..utils.quality import strip_tags
from .structural_extractor import SOURCE_MARKETPLACE_LINK
from .verifier import ProductVerifier

logger = get_logger(__name__)

StageCallback = Callable[[DetectionStage, str], None]

_CUE_RE = re.compile(
    r"\b(recommend(ed)?|best|pick|favorite|buy|price|review(ed)?|tested|winner|budget|premium|upgrade)\b",
    re.I,
)
_MIN_SCORE = 0.35
_CROSS_VALIDATE_SCORE = 0.45
_MAX_CANDIDATES_FOR_AI = 25

_REFINE_SYSTEM_PROMPT = "You identify purchasable consumer products in article text. Return only valid JSON."
_REFINE_PROMPT = """Article title: {title}

Candidate product mentions:
{candidates}

Article excerpt:
{excerpt}

For each candidate decide whether it names a specific purchasable product.
Return JSON: {{"products": [{{"name": "...", "is_product": true, "confidence": 0.0}}]}}"""


@dataclass(frozen=True)
class PrecisionOutput:
    products: list[ProductCandidate]
    candidate_count: int


def contextual_score(candidate: StructuralCandidate, text: str) -> float:
    """Structural confidence adjusted by how the surrounding text talks about the mention."""
    score = candidate.confidence
    mentions = text.lower().count(candidate.name.lower()) if candidate.name else 0
    score += 0.1 * min(3, max(0, mentions - 1))
    cues = len(_CUE_RE.findall(candidate.context or ""))
    score += min(0.2, 0.05 * cues)
    if candidate.asin:
        score += 0.1
    return round(min(1.0, score), 3)


class PrecisionDetector:
    def __init__(
        self,
        *,
        verifier: ProductVerifier,
        llm: LLMRuntime | None = None,
        llm_model: str = "",
        llm_temperature: float = 0.1,
        llm_max_tokens: int = 1024,
        llm_timeout_seconds: int = 30,
    ):
        self._verifier = verifier
        self._llm = llm
        self._llm_model = llm_model
        self._llm_temperature = llm_temperature
        self._llm_max_tokens = llm_max_tokens
        self._llm_timeout_seconds = llm_timeout_seconds

    async def detect(
        self,
        title: str,
        html: str,
        structural: Sequence[StructuralCandidate],
        on_stage: StageCallback | None = None,
    ) -> PrecisionOutput:
        def stage(message: str) -> None:
            if on_stage is not None:
                on_stage(DetectionStage.ADVANCED, message)

        text = strip_tags(html)

        stage("Scoring candidates in context")
        scored = [replace(c, confidence=contextual_score(c, text)) for c in structural]
        scored = [c for c in scored if c.confidence >= _MIN_SCORE or c.source_type == SOURCE_MARKETPLACE_LINK]
        scored.sort(key=lambda c: -c.confidence)

        if self._llm is not None and scored:
            stage("Refining candidates with AI")
            scored = await self._refine(title, text, scored)

        stage("Cross-validating candidates")
        validated = [c for c in scored if self._cross_validate(c, text)]

        logger.info(
            "precision_candidates",
            structural=len(structural),
            scored=len(scored),
            validated=len(validated),
        )
        products = await self._verifier.verify(validated)
        return PrecisionOutput(products=products, candidate_count=len(structural))

    @staticmethod
    def _cross_validate(c: StructuralCandidate, text: str) -> bool:
        if c.asin:
            return True
        if c.confidence >= _CROSS_VALIDATE_SCORE:
            return True
        # weak candidates must be repeated in the body
        return text.lower().count(c.name.lower()) >= 2

    async def _refine(self, title: str, text: str, candidates: list[StructuralCandidate]) -> list[StructuralCandidate]:
        head = candidates[:_MAX_CANDIDATES_FOR_AI]
        req = LLMRequest(
            system_prompt=_REFINE_SYSTEM_PROMPT,
            user_prompt=_REFINE_PROMPT.format(
                title=title,
                candidates="\n".join(f"- {c.name}" for c in head),
                excerpt=text[:3000],
            ),
            model=self._llm_model,
            temperature=self._llm_temperature,
            max_tokens=self._llm_max_tokens,
            timeout_seconds=self._llm_timeout_seconds,
        )
        try:
            raw = await self._llm.complete(req)
        except asyncio.CancelledError:
            raise
        except PipelineDomainError as e:
            logger.warning("ai_refinement_skipped", error_code=e.info.code)
            return candidates

        verdicts = self._parse_verdicts(raw)
        if verdicts is None:
            logger.warning("ai_refinement_unparseable")
            return candidates

        out: list[StructuralCandidate] = []
        for c in head:
            v = verdicts.get(c.name.lower())
            if v is None:
                out.append(c)
                continue
            is_product, confidence = v
            if not is_product and not c.asin:
                continue
            if confidence is not None:
                c = replace(c, confidence=round(max(c.confidence, min(1.0, confidence)), 3))
            out.append(c)
        out.extend(candidates[_MAX_CANDIDATES_FOR_AI:])
        out.sort(key=lambda c: -c.confidence)
        return out

    @staticmethod
    def _parse_verdicts(raw: str) -> Optional[dict[str, tuple[bool, Optional[float]]]]:
        obj = extract_json_object(raw)
        if obj is None or not isinstance(obj.get("products"), list):
            return None
        out: dict[str, tuple[bool, Optional[float]]] = {}
        for item in obj["products"]:
            if not isinstance(item, dict) or not item.get("name"):
                continue
            try:
                confidence = float(item["confidence"]) if item.get("confidence") is not None else None
            except (TypeError, ValueError):
                confidence = None
            out[str(item["name"]).strip().lower()] = (item.get("is_product", True) is not False, confidence)
        return out

"""Product copy: template defaults and optional AI enhancement.

Every field of the enhanced copy has a default derived from the product, so a
failed or malformed generation degrades to the template copy instead of an
error.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field

from ..domain.errors import PipelineDomainError
from ..domain.models import FAQItem, ProductCandidate
from ..llm.runtime import LLMRequest, LLMRuntime, extract_json_object
from ..observability.logger import get_logger

logger = get_logger(__name__)

DEFAULT_CALL_TO_ACTION = "Check Price on Amazon"
_MAX_CONTEXT_CHARS = 2000

_SYSTEM_PROMPT = "You are a conversion copywriter. Return only valid JSON."

_PROMPT_TEMPLATE = """Write conversion-focused copy for this product.

PRODUCT DATA:
- Name: {name}
- Brand: {brand}
- Category: {category}
- Price: {price}
- Rating: {rating}/5 ({reviews} reviews)
- Prime: {prime}

CURRENT POST CONTEXT:
{context}

Return ONLY valid JSON:
{{
  "verdict": "2-3 sentences of expert opinion",
  "headline": "10 words max",
  "bulletPoints": ["benefit first", "...", "...", "..."],
  "callToAction": "5 words max",
  "faqs": [{{"question": "...", "answer": "..."}}],
  "urgencyHook": "one believable sentence"
}}"""


def default_verdict(title: str) -> str:
    return (
        f"The {title} earns its place on this list with dependable performance and strong owner feedback. "
        "It is a safe pick if you want something that simply works."
    )


def default_claims() -> list[str]:
    return [
        "Verified marketplace listing",
        "Consistently strong owner ratings",
        "Backed by the marketplace return policy",
    ]


def default_faqs(title: str) -> list[FAQItem]:
    return [
        FAQItem(question=f"Is the {title} worth the price?", answer="For most buyers, yes. Check the current price before you buy."),
        FAQItem(question=f"Who should buy the {title}?", answer="Anyone who wants a proven option without extensive research."),
    ]


@dataclass(frozen=True)
class EnhancedCopy:
    verdict: str
    headline: str
    bullet_points: list[str] = field(default_factory=list)
    call_to_action: str = DEFAULT_CALL_TO_ACTION
    faqs: list[FAQItem] = field(default_factory=list)
    urgency_hook: str = ""


def _fallback_copy(product: ProductCandidate) -> EnhancedCopy:
    return EnhancedCopy(
        verdict=product.verdict or "",
        headline=product.title or "",
        bullet_points=list(product.evidence_claims),
        call_to_action=DEFAULT_CALL_TO_ACTION,
        faqs=list(product.faqs),
        urgency_hook="",
    )


def _parse_faqs(raw: object) -> list[FAQItem] | None:
    if not isinstance(raw, list):
        return None
    out = []
    for item in raw:
        if isinstance(item, dict) and item.get("question"):
            out.append(FAQItem(question=str(item["question"]), answer=str(item.get("answer") or "")))
    return out


async def enhance_product_copy(
    product: ProductCandidate,
    post_context: str,
    llm: LLMRuntime | None,
    *,
    model: str,
    temperature: float = 0.7,
    max_tokens: int = 1024,
    timeout_seconds: int = 30,
) -> EnhancedCopy:
    fallback = _fallback_copy(product)
    if llm is None:
        return fallback

    prompt = _PROMPT_TEMPLATE.format(
        name=product.title or "Unknown Product",
        brand=product.brand or "Unknown",
        category=product.category or "General",
        price=product.price or "$0.00",
        rating=product.rating or 4.5,
        reviews=product.review_count or 1000,
        prime="Yes" if product.prime else "No",
        context=(post_context or "")[:_MAX_CONTEXT_CHARS],
    )
    req = LLMRequest(
        system_prompt=_SYSTEM_PROMPT,
        user_prompt=prompt,
        model=model,
        temperature=temperature,
        max_tokens=max_tokens,
        timeout_seconds=timeout_seconds,
    )
    try:
        text = await llm.complete(req)
    except asyncio.CancelledError:
        raise
    except PipelineDomainError as e:
        logger.warning("copy_enhancement_failed", product_id=product.id, error_code=e.info.code)
        return fallback

    parsed = extract_json_object(text)
    if parsed is None:
        logger.warning("copy_enhancement_unparseable", product_id=product.id)
        return fallback

    bullets = parsed.get("bulletPoints")
    faqs = _parse_faqs(parsed.get("faqs"))
    return EnhancedCopy(
        verdict=str(parsed.get("verdict") or fallback.verdict),
        headline=str(parsed.get("headline") or fallback.headline),
        bullet_points=[str(b) for b in bullets] if isinstance(bullets, list) else fallback.bullet_points,
        call_to_action=str(parsed.get("callToAction") or DEFAULT_CALL_TO_ACTION),
        faqs=faqs if faqs is not None else fallback.faqs,
        urgency_hook=str(parsed.get("urgencyHook") or ""),
    )

"""Marketplace verification of structural candidates.

A candidate becomes a `ProductCandidate` only when the marketplace returns an
id for it. Lookup by id is tried first, then search by name. Every external
call waits on the shared rate limiter. Errors drop the one candidate.
"""

from __future__ import annotations

import asyncio
from typing import Callable, Optional, Sequence

from ..domain.errors import PipelineDomainError
from ..domain.models import ProductCandidate, StructuralCandidate
from ..marketplace.serpapi_client import MarketplaceClient, MarketplaceProduct
from ..observability.logger import get_logger
from ..utils.rate_limiter import IntervalRateLimiter
from .copywriter import default_claims, default_faqs, default_verdict

logger = get_logger(__name__)

RATE_LIMIT_KEY = "marketplace"
_PLACEHOLDER_PRICE = "$XX.XX"

VerifyCallback = Callable[[int, int], None]


def image_url_for(asin: str) -> str:
    return f"https://images-na.ssl-images-amazon.com/images/P/{asin}.01._SCLZZZZZZZ_.jpg"


def product_from_marketplace(
    found: MarketplaceProduct,
    *,
    fallback_title: str,
    confidence: float,
    exact_mention: str | None = None,
    paragraph_index: int | None = None,
) -> ProductCandidate:
    title = found.title or fallback_title
    has_price = bool(found.price) and found.price != _PLACEHOLDER_PRICE
    return ProductCandidate(
        id=f"prod-{found.asin}",
        title=title,
        asin=found.asin,
        brand=found.brand,
        price=found.price if has_price else "See Price",
        rating=found.rating or 4.5,
        review_count=found.review_count,
        confidence=confidence,
        exact_mention=exact_mention,
        paragraph_index=paragraph_index,
        evidence_claims=default_claims(),
        faqs=default_faqs(title),
        image_url=found.image_url or image_url_for(found.asin),
        verdict=default_verdict(title),
        prime=found.prime,
    )


class ProductVerifier:
    def __init__(
        self,
        *,
        marketplace: MarketplaceClient,
        rate_limiter: IntervalRateLimiter,
        max_candidates: int = 10,
    ):
        self._marketplace = marketplace
        self._rate_limiter = rate_limiter
        self._max_candidates = max_candidates

    @property
    def has_credential(self) -> bool:
        return self._marketplace.has_credential

    async def verify(
        self,
        candidates: Sequence[StructuralCandidate],
        *,
        on_candidate: VerifyCallback | None = None,
    ) -> list[ProductCandidate]:
        if not self.has_credential:
            return []
        batch = list(candidates)[: self._max_candidates]
        verified: list[ProductCandidate] = []
        seen: set[str] = set()
        for i, c in enumerate(batch):
            if on_candidate is not None:
                on_candidate(i + 1, len(batch))
            found = await self._verify_one(c)
            if found is None or found.asin in seen:
                continue
            seen.add(found.asin)
            verified.append(
                product_from_marketplace(
                    found,
                    fallback_title=c.name,
                    confidence=c.confidence,
                    exact_mention=c.name,
                    paragraph_index=c.paragraph_index,
                )
            )
        logger.info("candidates_verified", attempted=len(batch), verified=len(verified))
        return verified

    async def _verify_one(self, c: StructuralCandidate) -> Optional[MarketplaceProduct]:
        found: Optional[MarketplaceProduct] = None
        if c.asin:
            try:
                await self._rate_limiter.acquire(RATE_LIMIT_KEY)
                found = await self._marketplace.lookup_by_id(c.asin)
            except asyncio.CancelledError:
                raise
            except PipelineDomainError as e:
                logger.debug("candidate_lookup_failed", name=c.name, asin=c.asin, error_code=e.info.code)
            except Exception as e:
                logger.warning("candidate_lookup_error", name=c.name, asin=c.asin, error=str(e), error_type=type(e).__name__)
        if found is None or not found.asin:
            try:
                await self._rate_limiter.acquire(RATE_LIMIT_KEY)
                found = await self._marketplace.search_by_name(c.name)
            except asyncio.CancelledError:
                raise
            except PipelineDomainError as e:
                logger.debug("candidate_search_failed", name=c.name, error_code=e.info.code)
                return None
            except Exception as e:
                logger.warning("candidate_search_error", name=c.name, error=str(e), error_type=type(e).__name__)
                return None
        if found is None or not found.asin:
            return None
        return found

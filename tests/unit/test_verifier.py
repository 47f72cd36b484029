from __future__ import annotations

from typing import Optional

import pytest

from contentintel.domain.models import StructuralCandidate
from contentintel.marketplace.serpapi_client import MarketplaceProduct
from contentintel.services.verifier import ProductVerifier
from contentintel.utils.rate_limiter import IntervalRateLimiter

SONY = MarketplaceProduct(asin="B09XS7JWHH", title="Sony WH-1000XM5")
BOSE = MarketplaceProduct(asin="B098FKXT8L", title="Bose QuietComfort 45")


class Timeline:
    """Fake clock and sleep that also record marketplace calls in order."""

    def __init__(self) -> None:
        self.now = 0.0
        self.events: list[tuple[str, object]] = []

    def clock(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.events.append(("sleep", round(seconds, 6)))
        self.now += seconds


class RecordingMarketplace:
    def __init__(self, timeline: Timeline, *, broken_lookup: bool = False) -> None:
        self.timeline = timeline
        self.broken_lookup = broken_lookup

    @property
    def has_credential(self) -> bool:
        return True

    async def lookup_by_id(self, asin: str) -> Optional[MarketplaceProduct]:
        self.timeline.events.append(("lookup", asin))
        if self.broken_lookup:
            raise KeyError("product_results")
        return None

    async def search_by_name(self, query: str) -> Optional[MarketplaceProduct]:
        self.timeline.events.append(("search", query))
        return {"Sony WH-1000XM5": SONY, "Bose QuietComfort 45": BOSE}.get(query)


def _candidates() -> list[StructuralCandidate]:
    return [
        StructuralCandidate(name="Sony WH-1000XM5", source_type="link", confidence=0.9, asin="B09XS7JWHH"),
        StructuralCandidate(name="Bose QuietComfort 45", source_type="heading", confidence=0.6),
    ]


@pytest.mark.asyncio
async def test_marketplace_calls_are_spaced_by_the_limiter() -> None:
    t = Timeline()
    limiter = IntervalRateLimiter(0.2, clock=t.clock, sleep=t.sleep)
    verifier = ProductVerifier(marketplace=RecordingMarketplace(t), rate_limiter=limiter)

    products = await verifier.verify(_candidates())

    assert [p.asin for p in products] == ["B09XS7JWHH", "B098FKXT8L"]
    assert t.events == [
        ("lookup", "B09XS7JWHH"),
        ("sleep", 0.2),
        ("search", "Sony WH-1000XM5"),
        ("sleep", 0.2),
        ("search", "Bose QuietComfort 45"),
    ]


@pytest.mark.asyncio
async def test_unexpected_lookup_error_falls_through_to_search() -> None:
    t = Timeline()
    market = RecordingMarketplace(t, broken_lookup=True)
    verifier = ProductVerifier(marketplace=market, rate_limiter=IntervalRateLimiter(0))

    products = await verifier.verify(_candidates()[:1])

    assert [p.asin for p in products] == ["B09XS7JWHH"]
    assert t.events == [("lookup", "B09XS7JWHH"), ("search", "Sony WH-1000XM5")]

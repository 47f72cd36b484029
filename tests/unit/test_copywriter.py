from __future__ import annotations

import pytest

from contentintel.domain.errors import NetworkTimeoutError
from contentintel.domain.models import ProductCandidate
from contentintel.llm.runtime import LLMRequest, LLMRuntime
from contentintel.services.copywriter import (
    DEFAULT_CALL_TO_ACTION,
    default_claims,
    default_faqs,
    default_verdict,
    enhance_product_copy,
)


class ScriptedLLM(LLMRuntime):
    def __init__(self, reply: str | None = None, error: Exception | None = None) -> None:
        self.reply = reply
        self.error = error

    async def complete(self, req: LLMRequest) -> str:
        if self.error is not None:
            raise self.error
        return self.reply or ""


def _product() -> ProductCandidate:
    return ProductCandidate(
        id="prod-B09XS7JWHH",
        title="Sony WH-1000XM5",
        asin="B09XS7JWHH",
        verdict=default_verdict("Sony WH-1000XM5"),
        evidence_claims=default_claims(),
        faqs=default_faqs("Sony WH-1000XM5"),
    )


@pytest.mark.asyncio
async def test_without_llm_copy_is_the_template_copy() -> None:
    product = _product()
    copy = await enhance_product_copy(product, "", None, model="m")

    assert copy.verdict == product.verdict
    assert copy.headline == "Sony WH-1000XM5"
    assert copy.bullet_points == default_claims()
    assert copy.call_to_action == DEFAULT_CALL_TO_ACTION
    assert len(copy.faqs) == 2


@pytest.mark.asyncio
async def test_generation_failure_degrades_to_template() -> None:
    product = _product()
    copy = await enhance_product_copy(product, "ctx", ScriptedLLM(error=NetworkTimeoutError("slow")), model="m")
    assert copy.verdict == product.verdict


@pytest.mark.asyncio
async def test_unparseable_output_degrades_to_template() -> None:
    product = _product()
    copy = await enhance_product_copy(product, "ctx", ScriptedLLM("I cannot help with that."), model="m")
    assert copy.bullet_points == default_claims()


@pytest.mark.asyncio
async def test_partial_output_keeps_defaults_for_missing_fields() -> None:
    product = _product()
    llm = ScriptedLLM('```json\n{"headline": "Quiet wins", "callToAction": "See today\'s deal", "urgencyHook": "Stock is low."}\n```')

    copy = await enhance_product_copy(product, "ctx", llm, model="m")

    assert copy.headline == "Quiet wins"
    assert copy.call_to_action == "See today's deal"
    assert copy.urgency_hook == "Stock is low."
    assert copy.verdict == product.verdict
    assert copy.faqs == product.faqs


def test_default_copy_mentions_the_product() -> None:
    assert "Sony WH-1000XM5" in default_verdict("Sony WH-1000XM5")
    assert all("Kettle" in f.question for f in default_faqs("Kettle"))

"""Amazon marketplace lookups through SerpApi.

`search_by_name` uses the `amazon` engine, `lookup_by_id` the
`amazon_product` engine. Both return None when the marketplace has no match;
credential, throttling and timeout failures raise the matching domain error.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Protocol

import aiohttp

from ..domain.errors import (
    ContentProcessingError,
    InvalidCredentialError,
    NetworkError,
    NetworkTimeoutError,
    RateLimitError,
    ValidationError,
)
from ..observability.logger import get_logger
from ..utils.validators import ASIN_RE

logger = get_logger(__name__)

JsonTransport = Callable[[dict[str, str]], Awaitable[tuple[int, Any]]]


@dataclass(frozen=True)
class MarketplaceProduct:
    asin: str
    title: str
    price: str = ""
    rating: float = 0.0
    review_count: int = 0
    image_url: str = ""
    brand: str = ""
    prime: bool = False


class MarketplaceClient(Protocol):
    @property
    def has_credential(self) -> bool: ...

    async def search_by_name(self, query: str) -> Optional[MarketplaceProduct]: ...

    async def lookup_by_id(self, asin: str) -> Optional[MarketplaceProduct]: ...


def _as_float(v: Any) -> float:
    try:
        return float(v)
    except (TypeError, ValueError):
        return 0.0


def _as_int(v: Any) -> int:
    if isinstance(v, str):
        v = v.replace(",", "").strip()
    try:
        return int(float(v))
    except (TypeError, ValueError):
        return 0


def _price_text(v: Any) -> str:
    if isinstance(v, dict):
        return str(v.get("raw") or v.get("value") or "")
    if isinstance(v, (int, float)):
        return f"${v:.2f}"
    return str(v or "")


def parse_product(item: dict[str, Any], fallback_asin: str = "") -> Optional[MarketplaceProduct]:
    asin = str(item.get("asin") or fallback_asin or "").strip().upper()
    if not ASIN_RE.match(asin):
        return None
    image = item.get("thumbnail") or ""
    if not image and isinstance(item.get("thumbnails"), list) and item["thumbnails"]:
        image = item["thumbnails"][0]
    return MarketplaceProduct(
        asin=asin,
        title=str(item.get("title") or "").strip(),
        price=_price_text(item.get("price") or item.get("extracted_price")),
        rating=_as_float(item.get("rating")),
        review_count=_as_int(item.get("reviews") or item.get("ratings_total")),
        image_url=str(image or ""),
        brand=str(item.get("brand") or "").strip(),
        prime=bool(item.get("prime") or item.get("is_prime")),
    )


class SerpApiMarketplaceClient:
    def __init__(
        self,
        *,
        api_key: str | None,
        base_url: str = "https://serpapi.com/search.json",
        amazon_domain: str = "amazon.com",
        timeout_seconds: int = 25,
        transport: JsonTransport | None = None,
    ):
        self._api_key = (api_key or "").strip()
        self._base_url = base_url
        self._amazon_domain = amazon_domain
        self._timeout_seconds = timeout_seconds
        self._transport = transport or self._aiohttp_get

    @property
    def has_credential(self) -> bool:
        return bool(self._api_key)

    async def search_by_name(self, query: str) -> Optional[MarketplaceProduct]:
        q = (query or "").strip()
        if not q:
            raise ValidationError("Search query is required")
        data = await self._request({"engine": "amazon", "k": q})
        for item in data.get("organic_results") or []:
            if isinstance(item, dict) and not item.get("sponsored"):
                product = parse_product(item)
                if product is not None:
                    return product
        return None

    async def lookup_by_id(self, asin: str) -> Optional[MarketplaceProduct]:
        a = (asin or "").strip().upper()
        if not ASIN_RE.match(a):
            raise ValidationError("Invalid ASIN", detail=asin)
        data = await self._request({"engine": "amazon_product", "asin": a})
        result = data.get("product_results")
        if not isinstance(result, dict):
            return None
        return parse_product(result, fallback_asin=a)

    async def _request(self, params: dict[str, str]) -> dict[str, Any]:
        if not self.has_credential:
            raise InvalidCredentialError("Marketplace API key is not configured")
        query = dict(params, amazon_domain=self._amazon_domain, api_key=self._api_key)
        status, payload = await self._transport(query)
        if status == 401:
            raise InvalidCredentialError("Invalid SerpAPI key")
        if status == 429:
            raise RateLimitError("SerpAPI rate limit exceeded")
        if status == 400:
            raise ValidationError("Invalid request to SerpAPI")
        if status >= 400:
            raise NetworkError(f"SerpAPI returned {status}")
        if not isinstance(payload, dict):
            raise ContentProcessingError("serpapi_response_invalid")
        if payload.get("error") and not payload.get("organic_results") and not payload.get("product_results"):
            # "no results" is reported in the error field with HTTP 200
            logger.debug("serpapi_no_results", engine=params.get("engine"), error=str(payload.get("error")))
            return {}
        return payload

    async def _aiohttp_get(self, params: dict[str, str]) -> tuple[int, Any]:
        timeout = aiohttp.ClientTimeout(total=max(1, int(self._timeout_seconds)))
        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.get(self._base_url, params=params, headers={"Accept": "application/json"}) as resp:
                    if resp.status >= 400:
                        await resp.text()
                        return resp.status, None
                    return resp.status, await resp.json(content_type=None)
        except asyncio.TimeoutError as e:
            raise NetworkTimeoutError("Request timed out - try again", detail=str(e)) from e
        except aiohttp.ClientError as e:
            raise NetworkError("SerpAPI request failed", detail=str(e)) from e
        except ValueError as e:
            # 200 with a non-JSON body, e.g. a proxy error page
            raise ContentProcessingError("serpapi_response_not_json", detail=str(e)) from e

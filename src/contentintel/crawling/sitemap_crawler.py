"""Sitemap-based content inventory discovery.

Resolves a domain or sitemap URL to the ordered list of content pages. Every
sitemap request is tried directly first and then through each configured proxy
prefix; the crawler distinguishes "nothing answered" (`AllSourcesFailedError`)
from "answered, but no sitemap" (`NoSitemapFoundError`).
"""

from __future__ import annotations

import asyncio
import re
import zlib
from dataclasses import dataclass
from typing import Awaitable, Callable, Iterable, Optional
from urllib.parse import quote, urlparse

import aiohttp
from bs4 import BeautifulSoup

from ..domain.errors import AllSourcesFailedError, InvalidURLError, NetworkError, NoSitemapFoundError
from ..domain.models import ContentPage
from ..observability.logger import get_logger
from ..utils.validators import validate_manual_url

logger = get_logger(__name__)

SITEMAP_PATHS = (
    "/sitemap.xml",
    "/sitemap_index.xml",
    "/wp-sitemap.xml",
    "/post-sitemap.xml",
)

_SKIP_PATH_RE = re.compile(
    r"/(tag|tags|category|categories|author|feed|page/\d+|wp-content|wp-json|attachment)(/|$)",
    re.IGNORECASE,
)
_SKIP_EXT_RE = re.compile(r"\.(jpe?g|png|gif|webp|svg|pdf|zip|mp4|mp3|css|js)$", re.IGNORECASE)
_TAXONOMY_SITEMAP_RE = re.compile(r"(category|tag|author|taxonomies|users)[-_]?sitemap|sitemap-(taxonomies|users)", re.IGNORECASE)


@dataclass(frozen=True)
class HttpResponse:
    status: int
    text: str


Transport = Callable[[str], Awaitable[HttpResponse]]


def page_id_for_url(url: str, existing_ids: Iterable[int] = ()) -> int:
    """Stable positive id derived from the URL; probes forward on collision."""
    taken = set(existing_ids)
    candidate = zlib.crc32(url.lower().encode("utf-8")) & 0x7FFFFFFF or 1
    while candidate in taken:
        candidate += 1
    return candidate


def title_from_url(url: str) -> str:
    parsed = urlparse(url)
    segs = [s for s in (parsed.path or "").split("/") if s]
    if not segs:
        return parsed.netloc
    slug = re.sub(r"\.[a-z0-9]+$", "", segs[-1], flags=re.IGNORECASE)
    words = [w for w in re.split(r"[-_]+", slug) if w]
    return " ".join(w.capitalize() for w in words) or parsed.netloc


def is_content_url(url: str) -> bool:
    path = urlparse(url).path or "/"
    if _SKIP_EXT_RE.search(path):
        return False
    return not _SKIP_PATH_RE.search(path)


class SitemapCrawler:
    def __init__(
        self,
        *,
        timeout_ms: int,
        user_agent: str,
        proxy_prefixes: list[str] | None = None,
        max_nested: int = 25,
        max_pages: int = 5000,
        transport: Transport | None = None,
    ):
        self._timeout_ms = timeout_ms
        self._user_agent = user_agent
        self._proxies = [p for p in (proxy_prefixes or []) if p.strip()]
        self._max_nested = max_nested
        self._max_pages = max_pages
        self._transport = transport or self._aiohttp_get

    async def discover(self, domain_or_url: str) -> list[ContentPage]:
        validation = validate_manual_url(domain_or_url)
        if not validation.is_valid:
            raise InvalidURLError(validation.error or "Invalid URL", detail=domain_or_url)
        target = validation.normalized_url
        parsed = urlparse(target)
        origin = f"{parsed.scheme}://{parsed.netloc}"

        if (parsed.path or "").lower().endswith(".xml"):
            candidates = [target]
        else:
            candidates = [origin + p for p in SITEMAP_PATHS]

        answered = False
        for sitemap_url in candidates:
            body = await self._fetch_any(sitemap_url)
            if body is None:
                continue
            answered = True
            if body.status >= 400:
                continue
            urls = await self._collect_urls(body.text, depth=0)
            if urls is None:
                continue
            pages = self._to_pages(urls)
            logger.info("sitemap_discovered", sitemap_url=sitemap_url, pages=len(pages))
            return pages

        if not answered:
            raise AllSourcesFailedError(
                "Every network path failed while looking for a sitemap",
                detail=f"candidates={len(candidates)} proxies={len(self._proxies)}",
            )
        raise NoSitemapFoundError("No sitemap found for this site", detail=origin)

    async def _collect_urls(self, xml: str, *, depth: int) -> Optional[list[str]]:
        """Return page URLs from a urlset or sitemap index; None when the document is not a sitemap."""
        soup = BeautifulSoup(xml, "xml")
        if soup.find("sitemapindex") is not None:
            children = [s.find("loc").get_text(strip=True) for s in soup.find_all("sitemap") if s.find("loc") is not None]
            children = [c for c in children if c and not _TAXONOMY_SITEMAP_RE.search(c)]
            out: list[str] = []
            for child in children[: self._max_nested]:
                if depth >= 2 or len(out) >= self._max_pages:
                    break
                body = await self._fetch_any(child)
                if body is None or body.status >= 400:
                    logger.warning("nested_sitemap_unavailable", sitemap_url=child)
                    continue
                nested = await self._collect_urls(body.text, depth=depth + 1)
                if nested:
                    out.extend(nested)
            return out
        if soup.find("urlset") is not None:
            locs = [u.find("loc") for u in soup.find_all("url")]
            return [loc.get_text(strip=True) for loc in locs if loc is not None and loc.get_text(strip=True)]
        return None

    def _to_pages(self, urls: list[str]) -> list[ContentPage]:
        pages: list[ContentPage] = []
        seen_urls: set[str] = set()
        ids: set[int] = set()
        for u in urls:
            if len(pages) >= self._max_pages:
                break
            key = u.lower()
            if key in seen_urls or not is_content_url(u):
                continue
            seen_urls.add(key)
            pid = page_id_for_url(u, ids)
            ids.add(pid)
            pages.append(ContentPage(id=pid, url=u, title=title_from_url(u)))
        return pages

    async def _fetch_any(self, url: str) -> Optional[HttpResponse]:
        """Try direct, then each proxy. None means no attempt got any HTTP answer."""
        attempts = [url] + [f"{prefix}{quote(url, safe='')}" for prefix in self._proxies]
        refused: Optional[HttpResponse] = None
        for attempt in attempts:
            try:
                resp = await self._transport(attempt)
            except NetworkError as e:
                logger.debug("sitemap_fetch_attempt_failed", url=attempt, error=str(e))
                continue
            if resp.status < 400:
                return resp
            # a proxy may still succeed where the origin refused (bot protection)
            logger.debug("sitemap_fetch_attempt_status", url=attempt, status=resp.status)
            refused = resp
        return refused

    async def _aiohttp_get(self, url: str) -> HttpResponse:
        timeout = aiohttp.ClientTimeout(total=max(1.0, self._timeout_ms / 1000.0))
        headers = {"User-Agent": self._user_agent, "Accept": "application/xml,text/xml,*/*"}
        try:
            async with aiohttp.ClientSession(timeout=timeout, headers=headers) as session:
                async with session.get(url, allow_redirects=True) as resp:
                    return HttpResponse(status=resp.status, text=await resp.text(errors="ignore"))
        except asyncio.TimeoutError as e:
            raise NetworkError(f"Timeout while fetching {url}", detail=str(e)) from e
        except aiohttp.ClientError as e:
            raise NetworkError(f"Network error while fetching {url}", detail=str(e)) from e

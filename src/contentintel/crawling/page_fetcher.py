"""Page-content fetch collaborators.

Two backends return the same `FetchedPage` shape: a plain HTTP fetcher
(aiohttp) and a Playwright browser fetcher for client-rendered sites. Both
return the filtered article body, never the raw document.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Protocol

import aiohttp
from playwright.async_api import TimeoutError as PlaywrightTimeoutError, async_playwright

from ..domain.errors import InvalidURLError, NetworkError, NetworkTimeoutError
from ..utils.rate_limiter import IntervalRateLimiter
from ..utils.validators import is_valid_http_url
from .content_filter import ContentFilter


@dataclass(frozen=True)
class FetchedPage:
    url: str
    content: str
    title: str = ""


class PageFetcher(Protocol):
    async def fetch(self, url: str) -> FetchedPage: ...


class HttpPageFetcher:
    def __init__(
        self,
        *,
        timeout_ms: int,
        user_agent: str,
        content_filter: ContentFilter | None = None,
        rate_limiter: IntervalRateLimiter | None = None,
    ):
        self._timeout_ms = timeout_ms
        self._user_agent = user_agent
        self._filter = content_filter or ContentFilter()
        self._rate_limiter = rate_limiter

    async def fetch(self, url: str) -> FetchedPage:
        if not is_valid_http_url(url):
            raise InvalidURLError(f"Invalid URL: {url}")
        if self._rate_limiter is not None:
            await self._rate_limiter.wait_for_slot(url)

        timeout = aiohttp.ClientTimeout(total=max(1.0, self._timeout_ms / 1000.0))
        headers = {"User-Agent": self._user_agent, "Accept": "text/html,application/xhtml+xml"}
        try:
            async with aiohttp.ClientSession(timeout=timeout, headers=headers) as session:
                async with session.get(url, allow_redirects=True) as resp:
                    if resp.status >= 400:
                        raise NetworkError(f"HTTP {resp.status} while fetching {url}")
                    html = await resp.text(errors="ignore")
        except asyncio.TimeoutError as e:
            raise NetworkTimeoutError(f"Timeout while fetching {url}", detail=str(e)) from e
        except aiohttp.ClientError as e:
            raise NetworkError(f"Network error while fetching {url}", detail=str(e)) from e

        return FetchedPage(url=url, content=self._filter.extract_main_html(html), title=self._filter.extract_title(html))


class BrowserPageFetcher:
    """Playwright-backed fetcher for pages that render their body client-side."""

    def __init__(
        self,
        *,
        timeout_ms: int,
        user_agent: str,
        content_filter: ContentFilter | None = None,
        rate_limiter: IntervalRateLimiter | None = None,
    ):
        self._timeout_ms = timeout_ms
        self._user_agent = user_agent
        self._filter = content_filter or ContentFilter()
        self._rate_limiter = rate_limiter

    async def fetch(self, url: str) -> FetchedPage:
        if not is_valid_http_url(url):
            raise InvalidURLError(f"Invalid URL: {url}")
        if self._rate_limiter is not None:
            await self._rate_limiter.wait_for_slot(url)

        try:
            async with async_playwright() as p:
                browser = await p.chromium.launch(headless=True)
                try:
                    context = await browser.new_context(user_agent=self._user_agent)
                    page = await context.new_page()
                    # "networkidle" is fragile on modern sites; wait for DOM then give scripts a moment.
                    await page.goto(url, wait_until="domcontentloaded", timeout=self._timeout_ms)
                    await page.wait_for_timeout(500)
                    html = await page.content()
                finally:
                    await browser.close()
        except (asyncio.TimeoutError, PlaywrightTimeoutError) as e:
            raise NetworkTimeoutError(f"Timeout while fetching {url}", detail=str(e)) from e

        return FetchedPage(url=url, content=self._filter.extract_main_html(html), title=self._filter.extract_title(html))

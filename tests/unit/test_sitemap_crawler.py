from __future__ import annotations

import pytest

from contentintel.crawling.sitemap_crawler import (
    HttpResponse,
    SitemapCrawler,
    is_content_url,
    page_id_for_url,
    title_from_url,
)
from contentintel.domain.errors import AllSourcesFailedError, InvalidURLError, NetworkError, NoSitemapFoundError

URLSET = """<?xml version="1.0" encoding="UTF-8"?>
<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">
  <url><loc>https://blog.example.com/best-air-fryers/</loc></url>
  <url><loc>https://blog.example.com/how-to-clean-an-air-fryer</loc></url>
  <url><loc>https://blog.example.com/category/kitchen/</loc></url>
  <url><loc>https://blog.example.com/wp-content/uploads/fryer.jpg</loc></url>
  <url><loc>https://blog.example.com/best-air-fryers/</loc></url>
</urlset>"""

INDEX = """<?xml version="1.0" encoding="UTF-8"?>
<sitemapindex xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">
  <sitemap><loc>https://blog.example.com/post-sitemap.xml</loc></sitemap>
  <sitemap><loc>https://blog.example.com/category-sitemap.xml</loc></sitemap>
</sitemapindex>"""


class FakeTransport:
    def __init__(self, routes: dict[str, object]) -> None:
        self.routes = routes
        self.calls: list[str] = []

    async def __call__(self, url: str) -> HttpResponse:
        self.calls.append(url)
        r = self.routes.get(url)
        if r is None:
            raise NetworkError(f"connection refused: {url}")
        if isinstance(r, HttpResponse):
            return r
        return HttpResponse(status=200, text=str(r))


def _crawler(transport: FakeTransport, **kwargs) -> SitemapCrawler:
    return SitemapCrawler(timeout_ms=1000, user_agent="test", transport=transport, **kwargs)


@pytest.mark.asyncio
async def test_discover_reads_urlset_and_skips_non_content_urls() -> None:
    t = FakeTransport({"https://blog.example.com/sitemap.xml": URLSET})
    pages = await _crawler(t).discover("blog.example.com")

    assert [p.url for p in pages] == [
        "https://blog.example.com/best-air-fryers/",
        "https://blog.example.com/how-to-clean-an-air-fryer",
    ]
    assert pages[0].title == "Best Air Fryers"
    assert len({p.id for p in pages}) == 2


@pytest.mark.asyncio
async def test_discover_follows_sitemap_index_and_skips_taxonomies() -> None:
    t = FakeTransport(
        {
            "https://blog.example.com/sitemap_index.xml": INDEX,
            "https://blog.example.com/post-sitemap.xml": URLSET,
            "https://blog.example.com/sitemap.xml": HttpResponse(status=404, text="not found"),
        }
    )
    pages = await _crawler(t).discover("https://blog.example.com")

    assert len(pages) == 2
    assert "https://blog.example.com/category-sitemap.xml" not in t.calls


@pytest.mark.asyncio
async def test_proxy_prefix_is_tried_after_direct_failure() -> None:
    proxied = "https://proxy.test/?url=https%3A%2F%2Fblog.example.com%2Fsitemap.xml"
    t = FakeTransport({proxied: URLSET})
    pages = await _crawler(t, proxy_prefixes=["https://proxy.test/?url="]).discover("blog.example.com")

    assert len(pages) == 2
    assert t.calls[:2] == ["https://blog.example.com/sitemap.xml", proxied]


@pytest.mark.asyncio
async def test_all_sources_failed_when_nothing_answers() -> None:
    with pytest.raises(AllSourcesFailedError):
        await _crawler(FakeTransport({})).discover("blog.example.com")


@pytest.mark.asyncio
async def test_no_sitemap_found_when_sources_answer_without_sitemap() -> None:
    routes = {
        "https://blog.example.com/sitemap.xml": "<html><body>Home</body></html>",
        "https://blog.example.com/sitemap_index.xml": HttpResponse(status=404, text=""),
    }
    with pytest.raises(NoSitemapFoundError) as exc:
        await _crawler(FakeTransport(routes)).discover("blog.example.com")
    assert exc.value.guidance


@pytest.mark.asyncio
async def test_empty_urlset_yields_no_pages() -> None:
    empty = '<?xml version="1.0"?><urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9"></urlset>'
    pages = await _crawler(FakeTransport({"https://blog.example.com/sitemap.xml": empty})).discover("blog.example.com")
    assert pages == []


@pytest.mark.asyncio
async def test_invalid_input_is_rejected() -> None:
    with pytest.raises(InvalidURLError):
        await _crawler(FakeTransport({})).discover("not a domain")


def test_url_helpers() -> None:
    assert title_from_url("https://x.com/2024/01/best-stand-mixers-under-300/") == "Best Stand Mixers Under 300"
    assert title_from_url("https://x.com/") == "x.com"
    assert is_content_url("https://x.com/best-mixers")
    assert not is_content_url("https://x.com/tag/mixers/")
    assert not is_content_url("https://x.com/image.webp")
    first = page_id_for_url("https://x.com/a")
    assert first > 0
    assert page_id_for_url("https://x.com/a", {first}) == first + 1

from __future__ import annotations

import asyncio

import pytest

from contentintel.crawling.page_fetcher import FetchedPage
from contentintel.domain.errors import NetworkError
from contentintel.domain.models import AuditProgress, ContentPage, MonetizationStatus, PageType, PriorityTier
from contentintel.services.auditor import ContentAuditor
from contentintel.storage.result_cache import MemoryCacheBackend, ResultCache
from contentintel.utils.request_dedup import RequestDeduplicator


class FakeFetcher:
    def __init__(self, contents: dict[str, str], *, delays: dict[str, float] | None = None, fail: set[str] | None = None):
        self.contents = contents
        self.delays = delays or {}
        self.fail = fail or set()
        self.calls: list[str] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self.gate: asyncio.Event | None = None

    async def fetch(self, url: str) -> FetchedPage:
        self.calls.append(url)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.gate is not None:
                await self.gate.wait()
            await asyncio.sleep(self.delays.get(url, 0.001))
            if url in self.fail:
                raise NetworkError(f"HTTP 500 while fetching {url}")
            return FetchedPage(url=url, content=self.contents.get(url, ""))
        finally:
            self.in_flight -= 1


def _pages(n: int) -> list[ContentPage]:
    return [ContentPage(id=i + 1, url=f"https://blog.example.com/post-{i + 1}", title=f"Post {i + 1}") for i in range(n)]


def _auditor(fetcher: FakeFetcher, **kwargs) -> ContentAuditor:
    return ContentAuditor(fetcher=fetcher, dedup=RequestDeduplicator(), cache=ResultCache(MemoryCacheBackend()), **kwargs)


@pytest.mark.asyncio
async def test_twelve_pages_with_cap_three_reach_full_progress_once() -> None:
    pages = _pages(12)
    fetcher = FakeFetcher({p.url: "<p>plain text</p>" for p in pages})
    auditor = _auditor(fetcher, concurrency_cap=3)
    progress: list[AuditProgress] = []

    outcome = await auditor.audit(pages, 10, on_progress=progress.append)

    assert outcome.cancelled is False
    assert outcome.total == 12
    assert len(outcome.pages) == 12
    assert [p.id for p in outcome.pages] == [p.id for p in pages]
    assert all(p.content == "<p>plain text</p>" for p in outcome.pages)
    assert fetcher.max_in_flight <= 3
    assert [p.completed for p in progress] == list(range(1, 13))
    assert progress[-1] == AuditProgress(completed=12, total=12)
    assert sum(1 for p in progress if p.completed == 12) == 1


@pytest.mark.asyncio
async def test_final_state_does_not_depend_on_completion_order() -> None:
    pages = _pages(6)
    contents = {p.url: f"<p>{'buy price deal budget rating ' * (i + 1)}</p>" for i, p in enumerate(pages)}

    fast_first = FakeFetcher(contents, delays={p.url: 0.001 * (i + 1) for i, p in enumerate(pages)})
    slow_first = FakeFetcher(contents, delays={p.url: 0.001 * (6 - i) for i, p in enumerate(pages)})

    a = await _auditor(fast_first).audit(pages, 6)
    b = await _auditor(slow_first).audit(pages, 6)

    assert a.pages == b.pages


@pytest.mark.asyncio
async def test_quick_classification_is_visible_before_any_fetch() -> None:
    pages = [ContentPage(id=1, url="https://x.com/best-air-fryers", title="Best Air Fryers 2024")]
    fetcher = FakeFetcher({})
    fetcher.gate = asyncio.Event()
    auditor = _auditor(fetcher)
    partials: list[list[ContentPage]] = []

    task = asyncio.create_task(auditor.audit(pages, on_partial=partials.append))
    await asyncio.sleep(0)
    assert partials, "quick pass must be published before fetches settle"
    first = partials[0][0]
    assert first.page_type == PageType.LISTICLE
    assert first.priority == PriorityTier.CRITICAL
    fetcher.gate.set()
    await task


@pytest.mark.asyncio
async def test_deep_pass_detects_existing_affiliate_links() -> None:
    page = ContentPage(id=7, url="https://x.com/best-blenders", title="Best Blenders")
    html = '<p>Our pick: <a href="https://www.amazon.com/dp/B08XYZ1234?tag=site-20">Vitamix</a></p>'
    outcome = await _auditor(FakeFetcher({page.url: html})).audit([page])

    audited = outcome.pages[0]
    assert audited.monetization_status == MonetizationStatus.MONETIZED
    assert audited.priority == PriorityTier.LOW


@pytest.mark.asyncio
async def test_fetch_failure_keeps_quick_classification() -> None:
    page = ContentPage(id=3, url="https://x.com/sony-vs-bose", title="Sony vs Bose Headphones")
    fetcher = FakeFetcher({}, fail={page.url})
    outcome = await _auditor(fetcher).audit([page])

    audited = outcome.pages[0]
    assert outcome.failed == 1
    assert outcome.completed == 1
    assert audited.content is None
    assert audited.page_type == PageType.COMPARISON
    assert audited.monetization_status == MonetizationStatus.OPPORTUNITY


@pytest.mark.asyncio
async def test_same_url_is_fetched_once_while_in_flight() -> None:
    url = "https://x.com/shared"
    pages = [ContentPage(id=1, url=url, title="A"), ContentPage(id=2, url=url, title="B")]
    fetcher = FakeFetcher({url: "<p>x</p>"}, delays={url: 0.01})

    outcome = await _auditor(fetcher).audit(pages, 2)

    assert fetcher.calls == [url]
    assert [p.content for p in outcome.pages] == ["<p>x</p>", "<p>x</p>"]


@pytest.mark.asyncio
async def test_partial_state_emitted_every_n_and_at_end() -> None:
    pages = _pages(12)
    fetcher = FakeFetcher({p.url: "" for p in pages})
    auditor = _auditor(fetcher, partial_every=5)
    partials: list[list[ContentPage]] = []

    await auditor.audit(pages, on_partial=partials.append)

    # quick pass, after 5, after 10, final
    assert len(partials) == 4
    assert all(len(p) == 12 for p in partials)


@pytest.mark.asyncio
async def test_new_audit_supersedes_running_one() -> None:
    pages = _pages(4)
    fetcher = FakeFetcher({p.url: "<p>old</p>" for p in pages})
    fetcher.gate = asyncio.Event()
    auditor = _auditor(fetcher)
    stale_progress: list[AuditProgress] = []

    first = asyncio.create_task(auditor.audit(pages, on_progress=stale_progress.append))
    await asyncio.sleep(0)

    fetcher.gate = None
    second = await auditor.audit(pages[:2])
    stale = await first

    assert stale.cancelled is True
    assert stale_progress == []
    assert second.cancelled is False
    assert second.total == 2
    assert second.completed == 2


@pytest.mark.asyncio
async def test_cancelling_one_auditor_leaves_shared_fetch_to_the_other() -> None:
    page = _pages(1)
    fetcher = FakeFetcher({page[0].url: '<p>Check price <a href="https://amzn.to/x">here</a></p>'})
    fetcher.gate = asyncio.Event()
    dedup = RequestDeduplicator()
    first = ContentAuditor(fetcher=fetcher, dedup=dedup)
    second = ContentAuditor(fetcher=fetcher, dedup=dedup)
    progress: list[AuditProgress] = []

    a = asyncio.create_task(first.audit(page))
    b = asyncio.create_task(second.audit(page, on_progress=progress.append))
    for _ in range(5):
        await asyncio.sleep(0)
    first.cancel()
    fetcher.gate.set()

    outcome_a, outcome_b = await asyncio.gather(a, b)
    assert outcome_a.cancelled is True
    assert outcome_b.cancelled is False
    assert (outcome_b.completed, outcome_b.total, outcome_b.failed) == (1, 1, 0)
    assert outcome_b.pages[0].monetization_status == MonetizationStatus.MONETIZED
    assert progress == [AuditProgress(completed=1, total=1)]
    assert fetcher.calls == [page[0].url]

"""Concurrency-bounded content audit.

Two tiers: a synchronous title-only classification of every page, then a
network-backed deep classification with at most N fetches in flight. Results
merge into a dict keyed by page id, so the final state does not depend on
completion order. Starting a new audit on the same auditor invalidates the
previous one: its pending work is cancelled and its results are dropped.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, replace
from typing import Callable, Iterable, Optional

from ..domain.models import AuditProgress, ContentPage, MonetizationStatus, PageType, PriorityTier
from ..observability.logger import get_logger
from ..crawling.page_fetcher import PageFetcher
from ..storage.result_cache import ResultCache
from ..utils.request_dedup import RequestDeduplicator
from .classifier import PageClassification, classify_page

logger = get_logger(__name__)

ProgressCallback = Callable[[AuditProgress], None]
PartialCallback = Callable[[list[ContentPage]], None]


@dataclass(frozen=True)
class AuditOutcome:
    pages: tuple[ContentPage, ...]
    completed: int
    total: int
    failed: int = 0
    cancelled: bool = False


def _clamp_int(v: int, lo: int, hi: int) -> int:
    return max(lo, min(hi, int(v)))


class ContentAuditor:
    def __init__(
        self,
        *,
        fetcher: PageFetcher,
        dedup: RequestDeduplicator,
        cache: ResultCache | None = None,
        default_concurrency: int = 10,
        concurrency_cap: int = 25,
        partial_every: int = 10,
    ):
        self._fetcher = fetcher
        self._dedup = dedup
        self._cache = cache
        self._default_concurrency = default_concurrency
        self._cap = concurrency_cap
        self._partial_every = max(1, partial_every)
        self._generation = 0
        self._tasks: list[asyncio.Task] = []

    def cancel(self) -> None:
        """Invalidate the running audit, if any."""
        self._generation += 1
        for t in self._tasks:
            t.cancel()
        self._tasks = []

    @staticmethod
    def quick_classify(pages: Iterable[ContentPage]) -> list[ContentPage]:
        out = []
        for p in pages:
            c = classify_page(p.title, "")
            out.append(replace(p, priority=c.priority, monetization_status=c.monetization_status, page_type=c.page_type))
        return out

    async def audit(
        self,
        pages: list[ContentPage],
        concurrency_limit: int | None = None,
        *,
        on_progress: ProgressCallback | None = None,
        on_partial: PartialCallback | None = None,
    ) -> AuditOutcome:
        self.cancel()
        generation = self._generation
        limit = _clamp_int(concurrency_limit or self._default_concurrency, 1, self._cap)

        order: list[int] = []
        state: dict[int, ContentPage] = {}
        for p in self.quick_classify(pages):
            if p.id in state:
                continue
            order.append(p.id)
            state[p.id] = p
        total = len(order)

        def snapshot() -> list[ContentPage]:
            return [state[i] for i in order]

        if on_partial is not None:
            on_partial(snapshot())
        logger.info("audit_started", total=total, concurrency=limit, generation=generation)

        semaphore = asyncio.Semaphore(limit)
        completed = 0
        failed = 0

        async def work(page: ContentPage) -> None:
            nonlocal completed, failed
            async with semaphore:
                if generation != self._generation:
                    return
                classified = await self._deep_classify(page)
            if generation != self._generation:
                return
            if classified is None:
                failed += 1
            else:
                state[page.id] = classified
            completed += 1
            if on_progress is not None:
                on_progress(AuditProgress(completed=completed, total=total))
            if on_partial is not None and (completed % self._partial_every == 0 or completed == total):
                on_partial(snapshot())

        tasks = [asyncio.create_task(work(state[i])) for i in order]
        self._tasks = tasks
        await asyncio.gather(*tasks, return_exceptions=True)

        cancelled = generation != self._generation
        if not cancelled:
            self._tasks = []
            logger.info("audit_completed", total=total, failed=failed)
        else:
            logger.info("audit_superseded", completed=completed, total=total)
        return AuditOutcome(pages=tuple(snapshot()), completed=completed, total=total, failed=failed, cancelled=cancelled)

    async def _deep_classify(self, page: ContentPage) -> Optional[ContentPage]:
        """Fetch and reclassify one page. None means keep the previous classification."""
        try:
            fetched = await self._dedup.run(f"fetch:{page.url}", lambda: self._fetcher.fetch(page.url))
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.debug("audit_fetch_failed", page_id=page.id, url=page.url, error=str(e))
            return None

        content = fetched.content or ""
        c = self._classify_cached(page, content)
        return replace(
            page,
            content=content,
            priority=c.priority,
            monetization_status=c.monetization_status,
            page_type=c.page_type,
        )

    def _classify_cached(self, page: ContentPage, content: str) -> PageClassification:
        key = f"audit:{page.url}:{page.title}:{len(content)}"
        if self._cache is not None:
            hit = self._cache.get(key)
            if isinstance(hit, dict):
                try:
                    return PageClassification(
                        priority=PriorityTier(hit["priority"]),
                        monetization_status=MonetizationStatus(hit["monetization_status"]),
                        page_type=PageType(hit["page_type"]),
                    )
                except (KeyError, ValueError):
                    self._cache.delete(key)
        c = classify_page(page.title, content)
        if self._cache is not None:
            self._cache.set(
                key,
                {
                    "priority": c.priority.value,
                    "monetization_status": c.monetization_status.value,
                    "page_type": c.page_type.value,
                },
            )
        return c

"""Site scanner: discovery, audit and the page inventory around them.

One scanner instance owns one inventory. Starting a new scan invalidates any
scan still running on the same instance.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from ..crawling.sitemap_crawler import SitemapCrawler, page_id_for_url, title_from_url
from ..domain.errors import AggregateDiscoveryFailure, ValidationError
from ..domain.models import (
    AuditProgress,
    ContentPage,
    MonetizationStatus,
    PriorityTier,
    ScannerStatus,
)
from ..observability.logger import get_logger
from ..utils.time import current_time_ms
from ..utils.validators import validate_manual_url
from .auditor import ContentAuditor

logger = get_logger(__name__)

NO_PAGES_FOUND = "no pages found"


class FilterTab(str, Enum):
    ALL = "all"
    CRITICAL = "critical"
    HIGH = "high"
    MONETIZED = "monetized"
    OPPORTUNITY = "opportunity"


@dataclass(frozen=True)
class ScannerStats:
    total: int
    critical: int
    high: int
    monetized: int
    opportunity: int


@dataclass(frozen=True)
class BulkImportResult:
    added: int
    skipped: int

    @property
    def message(self) -> str:
        if self.added == 0 and self.skipped == 0:
            return "No valid URLs found"
        return f"Added {self.added} URLs, skipped {self.skipped}"


class SitemapScanner:
    def __init__(self, *, crawler: SitemapCrawler, auditor: ContentAuditor, concurrency_limit: int | None = None):
        self._crawler = crawler
        self._auditor = auditor
        self._concurrency_limit = concurrency_limit
        self._generation = 0
        self.status = ScannerStatus.IDLE
        self.reason: Optional[str] = None
        self.pages: list[ContentPage] = []
        self.source_url = ""
        self.last_scanned_ms: Optional[int] = None
        self.progress = AuditProgress(completed=0, total=0)

    def cancel(self) -> None:
        self._generation += 1
        self._auditor.cancel()

    async def scan(
        self,
        domain_or_url: str,
        *,
        on_progress: Callable[[AuditProgress], None] | None = None,
    ) -> list[ContentPage]:
        """Discover the site's pages, then audit them."""
        self.cancel()
        generation = self._generation
        self.status = ScannerStatus.DISCOVERING
        self.reason = None
        self.source_url = domain_or_url
        logger.info("scan_started", source=domain_or_url, generation=generation)

        try:
            pages = await self._crawler.discover(domain_or_url)
        except AggregateDiscoveryFailure as e:
            if generation == self._generation:
                self.status = ScannerStatus.ERROR
                self.reason = f"{e.info.message}. {e.guidance}"
            raise
        except ValidationError as e:
            if generation == self._generation:
                self.status = ScannerStatus.ERROR
                self.reason = e.info.message
            raise

        if generation != self._generation:
            return self.pages
        if not pages:
            self.status = ScannerStatus.ERROR
            self.reason = NO_PAGES_FOUND
            self.pages = []
            logger.warning("scan_empty", source=domain_or_url)
            return []

        self.pages = list(pages)
        await self._audit(generation, on_progress)
        return self.pages

    async def reaudit(self, *, on_progress: Callable[[AuditProgress], None] | None = None) -> list[ContentPage]:
        """Audit the current inventory again (e.g. after manual additions)."""
        self.cancel()
        if not self.pages:
            return []
        await self._audit(self._generation, on_progress)
        return self.pages

    async def _audit(self, generation: int, on_progress: Callable[[AuditProgress], None] | None) -> None:
        self.status = ScannerStatus.AUDITING
        self.progress = AuditProgress(completed=0, total=len(self.pages))

        def progress(p: AuditProgress) -> None:
            if generation != self._generation:
                return
            self.progress = p
            if on_progress is not None:
                on_progress(p)

        def partial(pages: list[ContentPage]) -> None:
            if generation == self._generation:
                self._merge(pages)

        outcome = await self._auditor.audit(
            list(self.pages), self._concurrency_limit, on_progress=progress, on_partial=partial
        )
        if outcome.cancelled or generation != self._generation:
            return
        self._merge(list(outcome.pages))
        self.status = ScannerStatus.COMPLETE
        self.last_scanned_ms = current_time_ms()
        logger.info("scan_completed", pages=len(self.pages), failed=outcome.failed)

    def _merge(self, audited: list[ContentPage]) -> None:
        by_id = {p.id: p for p in audited}
        self.pages = [by_id.get(p.id, p) for p in self.pages]

    # ---- manual inventory ----------------------------------------------

    def _existing_urls(self) -> set[str]:
        return {p.url.lower() for p in self.pages}

    def add_url(self, raw: str) -> ContentPage:
        validation = validate_manual_url(raw)
        if not validation.is_valid:
            raise ValidationError(validation.error or "Invalid URL", detail=raw)
        if validation.normalized_url.lower() in self._existing_urls():
            raise ValidationError("URL already exists in the list", detail=validation.normalized_url)
        page = self._page_for(validation.normalized_url, {p.id for p in self.pages})
        self.pages.append(page)
        return page

    def bulk_import(self, text: str) -> BulkImportResult:
        urls = self._existing_urls()
        ids = {p.id for p in self.pages}
        added = skipped = 0
        for line in (text or "").splitlines():
            line = line.strip()
            if not line:
                continue
            validation = validate_manual_url(line)
            if not validation.is_valid or validation.normalized_url.lower() in urls:
                skipped += 1
                continue
            page = self._page_for(validation.normalized_url, ids)
            self.pages.append(page)
            ids.add(page.id)
            urls.add(page.url.lower())
            added += 1
        result = BulkImportResult(added=added, skipped=skipped)
        logger.info("bulk_import", added=added, skipped=skipped)
        return result

    def remove_page(self, page_id: int) -> bool:
        before = len(self.pages)
        self.pages = [p for p in self.pages if p.id != page_id]
        return len(self.pages) != before

    @staticmethod
    def _page_for(url: str, ids: set[int]) -> ContentPage:
        return ContentPage(id=page_id_for_url(url, ids), url=url, title=title_from_url(url))

    # ---- views ---------------------------------------------------------

    def stats(self) -> ScannerStats:
        return ScannerStats(
            total=len(self.pages),
            critical=sum(1 for p in self.pages if p.priority == PriorityTier.CRITICAL),
            high=sum(1 for p in self.pages if p.priority == PriorityTier.HIGH),
            monetized=sum(1 for p in self.pages if p.monetization_status == MonetizationStatus.MONETIZED),
            opportunity=sum(1 for p in self.pages if p.monetization_status == MonetizationStatus.OPPORTUNITY),
        )

    def filtered(self, tab: FilterTab = FilterTab.ALL, query: str = "") -> list[ContentPage]:
        pages = self.pages
        if tab == FilterTab.CRITICAL:
            pages = [p for p in pages if p.priority == PriorityTier.CRITICAL]
        elif tab == FilterTab.HIGH:
            pages = [p for p in pages if p.priority == PriorityTier.HIGH]
        elif tab == FilterTab.MONETIZED:
            pages = [p for p in pages if p.monetization_status == MonetizationStatus.MONETIZED]
        elif tab == FilterTab.OPPORTUNITY:
            pages = [p for p in pages if p.monetization_status == MonetizationStatus.OPPORTUNITY]
        q = (query or "").strip().lower()
        if q:
            pages = [p for p in pages if q in p.title.lower() or q in p.url.lower()]
        return list(pages)

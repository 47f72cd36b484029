"""Application lifespan management and the service container."""

from __future__ import annotations

from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, Optional

from .config.settings import PipelineSettings, get_settings
from .crawling.content_filter import ContentFilter
from .crawling.page_fetcher import BrowserPageFetcher, HttpPageFetcher, PageFetcher
from .crawling.sitemap_crawler import SitemapCrawler
from .domain.errors import InvalidCredentialError
from .domain.models import ContentPage
from .llm.ollama_adapter import OllamaAdapter
from .llm.openai_adapter import OpenAIAdapter
from .llm.runtime import LLMRuntime
from .marketplace.serpapi_client import MarketplaceClient, SerpApiMarketplaceClient
from .observability.logger import configure_logging, get_logger
from .publishing.wordpress import WordPressPublisher
from .services.auditor import ContentAuditor
from .services.detection_pipeline import DetectionPipeline
from .services.editor_session import EditorSession
from .services.placement import PlacementEngine, PlacementSettings
from .services.precision_detector import PrecisionDetector
from .services.scanner import SitemapScanner
from .services.verifier import ProductVerifier
from .storage.database import close_db, init_db, session_factory
from .storage.result_cache import MemoryCacheBackend, ResultCache
from .storage.snapshot_repository import SnapshotRepository
from .utils.rate_limiter import IntervalRateLimiter
from .utils.request_dedup import RequestDeduplicator

logger = get_logger(__name__)

# Populated by lifespan_manager(); read by the HTTP layer.
app_state: dict[str, Any] = {}


@dataclass
class ServiceContainer:
    settings: PipelineSettings
    cache: ResultCache
    dedup: RequestDeduplicator
    crawler: SitemapCrawler
    fetcher: PageFetcher
    marketplace: MarketplaceClient
    pipeline: DetectionPipeline
    placement: PlacementEngine
    publisher: WordPressPublisher
    llm: Optional[LLMRuntime] = None
    snapshots: Optional[SnapshotRepository] = None

    def new_scanner(self, concurrency_limit: int | None = None) -> SitemapScanner:
        s = self.settings
        auditor = ContentAuditor(
            fetcher=self.fetcher,
            dedup=self.dedup,
            cache=self.cache,
            default_concurrency=s.audit_concurrency_default,
            concurrency_cap=s.audit_concurrency_cap,
            partial_every=s.audit_partial_every,
        )
        return SitemapScanner(crawler=self.crawler, auditor=auditor, concurrency_limit=concurrency_limit)

    def new_editor(self, page: ContentPage) -> EditorSession:
        s = self.settings
        return EditorSession(
            page,
            pipeline=self.pipeline,
            placement=self.placement,
            marketplace=self.marketplace,
            cache=self.cache,
            publisher=self.publisher,
            snapshots=self.snapshots,
            llm=self.llm,
            llm_model=llm_model_for(s),
            amazon_tag=s.amazon_tag,
            history_max_snapshots=s.history_max_snapshots,
        )

    def clear(self) -> None:
        """Reset process-wide state (cache namespace, in-flight keys, relevance memo)."""
        self.cache.clear()
        self.dedup.clear()
        self.placement.scorer.clear()


def build_llm(settings: PipelineSettings) -> Optional[LLMRuntime]:
    if settings.llm_provider == "ollama":
        return OllamaAdapter(host=settings.ollama_host, port=settings.ollama_port, keep_alive=settings.ollama_keep_alive)
    if settings.llm_provider == "openai":
        try:
            return OpenAIAdapter(api_key=settings.openai_api_key, base_url=settings.openai_base_url)
        except InvalidCredentialError as e:
            logger.warning("llm_disabled", provider="openai", reason=e.info.message)
    return None


def llm_model_for(settings: PipelineSettings) -> str:
    if settings.llm_provider == "openai":
        return settings.openai_default_model
    return settings.ollama_default_model


def build_container(settings: PipelineSettings, *, session_factory=None) -> ServiceContainer:
    cache = ResultCache(
        MemoryCacheBackend(),
        namespace=settings.cache_namespace,
        default_ttl_ms=settings.cache_ttl_ms,
    )
    dedup = RequestDeduplicator()
    content_filter = ContentFilter()
    fetch_limiter = IntervalRateLimiter.per_second(5.0)
    fetcher_cls = BrowserPageFetcher if settings.fetch_backend == "browser" else HttpPageFetcher
    fetcher = fetcher_cls(
        timeout_ms=settings.fetch_timeout_ms,
        user_agent=settings.fetch_user_agent,
        content_filter=content_filter,
        rate_limiter=fetch_limiter,
    )
    crawler = SitemapCrawler(
        timeout_ms=settings.fetch_timeout_ms,
        user_agent=settings.fetch_user_agent,
        proxy_prefixes=settings.sitemap_proxy_prefixes,
        max_nested=settings.sitemap_max_nested,
        max_pages=settings.sitemap_max_pages,
    )
    marketplace = SerpApiMarketplaceClient(
        api_key=settings.serpapi_key,
        base_url=settings.serpapi_base_url,
        amazon_domain=settings.serpapi_amazon_domain,
        timeout_seconds=settings.serpapi_timeout_seconds,
    )
    verifier = ProductVerifier(
        marketplace=marketplace,
        rate_limiter=IntervalRateLimiter(settings.verify_interval_ms / 1000.0),
        max_candidates=settings.max_verify_candidates,
    )
    llm = build_llm(settings)
    precision = PrecisionDetector(
        verifier=verifier,
        llm=llm,
        llm_model=llm_model_for(settings),
        llm_temperature=settings.llm_temperature_default,
        llm_max_tokens=min(1024, settings.llm_max_tokens_cap),
        llm_timeout_seconds=settings.llm_timeout_seconds_cap,
    )
    pipeline = DetectionPipeline(verifier=verifier, precision=precision, cache=cache)
    placement = PlacementEngine(PlacementSettings.from_settings(settings))
    publisher = WordPressPublisher(
        base_url=settings.wp_base_url,
        username=settings.wp_username,
        app_password=settings.wp_app_password,
        timeout_seconds=settings.wp_timeout_seconds,
    )
    snapshots = SnapshotRepository(session_factory) if session_factory is not None else None
    return ServiceContainer(
        settings=settings,
        cache=cache,
        dedup=dedup,
        crawler=crawler,
        fetcher=fetcher,
        marketplace=marketplace,
        pipeline=pipeline,
        placement=placement,
        publisher=publisher,
        llm=llm,
        snapshots=snapshots,
    )


@asynccontextmanager
async def lifespan_manager():
    """Manage application lifespan (startup and shutdown)."""
    settings = get_settings()

    configure_logging(settings)
    logger.info("starting_application", service_name=settings.service_name)

    await init_db(settings)
    logger.info("database_initialized")

    container = build_container(settings, session_factory=session_factory)
    app_state["container"] = container
    logger.info(
        "application_started",
        fetch_backend=settings.fetch_backend,
        llm_provider=settings.llm_provider,
        marketplace_configured=container.marketplace.has_credential,
    )
    try:
        yield container
    finally:
        container.clear()
        app_state.pop("container", None)
        await close_db()
        logger.info("application_shutdown_complete")

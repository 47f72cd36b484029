"""Configuration management using Pydantic Settings."""

from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class PipelineSettings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Service
    service_name: str = "content-intel-service"

    # FastAPI
    http_enable: bool = True
    http_host: str = "127.0.0.1"
    http_port: int = 8000
    # SSE discovery streams can stay open for minutes
    http_keep_alive_seconds: int = 75
    http_graceful_shutdown_seconds: int = 10

    # Database (async SQLAlchemy URL); used for editor snapshots only
    database_url: str = "sqlite+aiosqlite:///./contentintel.db"
    database_echo: bool = False

    # Page fetching
    fetch_backend: str = "http"  # "http" | "browser"
    fetch_timeout_ms: int = 20000
    fetch_user_agent: str = "ContentIntelService/0.1.0"

    # Sitemap discovery. Each proxy prefix is tried after the direct request,
    # e.g. "https://proxy.example.com/?url=" (target URL is appended url-encoded).
    sitemap_proxy_prefixes: list[str] = []
    sitemap_max_nested: int = 25
    sitemap_max_pages: int = 5000

    # Audit
    audit_concurrency_default: int = 10
    audit_concurrency_cap: int = 25
    audit_partial_every: int = 10

    # Result cache
    cache_namespace: str = "amzwp_"
    cache_ttl_ms: int = 7 * 24 * 60 * 60 * 1000

    # Marketplace verification (SerpApi)
    serpapi_key: str | None = None
    serpapi_base_url: str = "https://serpapi.com/search.json"
    serpapi_amazon_domain: str = "amazon.com"
    serpapi_timeout_seconds: int = 25
    verify_interval_ms: int = 200
    max_verify_candidates: int = 10

    # Text generation
    llm_provider: str = "none"  # "none" | "ollama" | "openai"
    ollama_host: str = "localhost"
    ollama_port: int = 11434
    ollama_default_model: str = "qwen2.5:3b"
    ollama_keep_alive: str = "5m"
    openai_api_key: str | None = None
    openai_base_url: str | None = None
    openai_default_model: str = "gpt-4o"
    llm_temperature_default: float = 0.1
    llm_max_tokens_cap: int = 2048
    llm_timeout_seconds_cap: int = 60

    # Placement scoring. Defaults are the historical constants.
    placement_min_gap: int = 3
    placement_probe_distance: int = 4
    placement_mention_ratio: float = 0.7
    placement_mention_score: int = 1000
    placement_title_score: int = 100
    placement_brand_score: int = 50
    placement_word_score: int = 10
    placement_short_block_penalty: int = 10
    placement_short_block_chars: int = 50
    placement_tiny_block_chars: int = 30
    placement_tiny_block_penalty: int = 50
    placement_long_block_chars: int = 200
    placement_long_block_bonus: int = 15
    relevance_cache_max: int = 1000

    # Editor
    history_max_snapshots: int = 100
    autosave_interval_seconds: int = 30

    # Publishing (WordPress REST)
    wp_base_url: str | None = None
    wp_username: str | None = None
    wp_app_password: str | None = None
    wp_timeout_seconds: int = 30
    amazon_tag: str = ""

    # Logging
    log_level: str = "INFO"
    log_format: str = "json"  # "json" | "console"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    def validate(self) -> None:
        if self.http_port <= 0:
            raise ValueError("http_port must be > 0")
        if self.http_graceful_shutdown_seconds < 0:
            raise ValueError("http_graceful_shutdown_seconds must be >= 0")
        if self.log_format not in ("json", "console"):
            raise ValueError("log_format must be 'json' or 'console'")
        if self.fetch_backend not in ("http", "browser"):
            raise ValueError("fetch_backend must be 'http' or 'browser'")
        if self.fetch_timeout_ms <= 0:
            raise ValueError("fetch_timeout_ms must be > 0")
        if self.sitemap_max_nested < 0:
            raise ValueError("sitemap_max_nested must be >= 0")
        if self.sitemap_max_pages <= 0:
            raise ValueError("sitemap_max_pages must be > 0")
        if self.audit_concurrency_default <= 0:
            raise ValueError("audit_concurrency_default must be > 0")
        if self.audit_concurrency_cap <= 0:
            raise ValueError("audit_concurrency_cap must be > 0")
        if self.audit_partial_every <= 0:
            raise ValueError("audit_partial_every must be > 0")
        if self.cache_ttl_ms < 0:
            raise ValueError("cache_ttl_ms must be >= 0")
        if self.verify_interval_ms < 0:
            raise ValueError("verify_interval_ms must be >= 0")
        if self.max_verify_candidates <= 0:
            raise ValueError("max_verify_candidates must be > 0")
        if self.llm_provider not in ("none", "ollama", "openai"):
            raise ValueError("llm_provider must be one of none|ollama|openai")
        if self.llm_max_tokens_cap <= 0:
            raise ValueError("llm_max_tokens_cap must be > 0")
        if self.llm_timeout_seconds_cap <= 0:
            raise ValueError("llm_timeout_seconds_cap must be > 0")
        if self.placement_min_gap < 0:
            raise ValueError("placement_min_gap must be >= 0")
        if self.placement_probe_distance < 0:
            raise ValueError("placement_probe_distance must be >= 0")
        if not 0.0 <= self.placement_mention_ratio <= 1.0:
            raise ValueError("placement_mention_ratio must be within [0, 1]")
        if self.relevance_cache_max <= 1:
            raise ValueError("relevance_cache_max must be > 1")
        if self.history_max_snapshots <= 1:
            raise ValueError("history_max_snapshots must be > 1")
        if self.autosave_interval_seconds <= 0:
            raise ValueError("autosave_interval_seconds must be > 0")


_settings: PipelineSettings | None = None


def get_settings() -> PipelineSettings:
    global _settings
    if _settings is None:
        _settings = PipelineSettings()
        _settings.validate()
    return _settings


def reset_settings() -> None:
    global _settings
    _settings = None

"""Domain-specific errors.

These errors are mapped to HTTP status codes in the API layer. Per-item
failures (one page fetch, one candidate verification) are absorbed where they
happen; only discovery exhaustion and publish failure reach the user as
terminal errors.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


class PipelineDomainError(Exception):
    """Base class for all domain errors."""

    code = "INTERNAL_ERROR"

    def __init__(self, message: str, detail: str | None = None):
        super().__init__(message)
        self.info = DomainErrorInfo(code=self.code, message=message, detail=detail)


@dataclass(frozen=True)
class DomainErrorInfo:
    code: str
    message: str
    detail: Optional[str] = None


class ValidationError(PipelineDomainError):
    """Bad URL/id input. User-correctable, never retried automatically."""

    code = "INVALID_INPUT"


class InvalidURLError(ValidationError):
    code = "INVALID_URL"


class NetworkError(PipelineDomainError):
    """Transient network failure. Retried only by explicit user action."""

    code = "NETWORK_ERROR"


class NetworkTimeoutError(NetworkError):
    code = "NETWORK_TIMEOUT"


class RateLimitError(PipelineDomainError):
    """External API throttling (429-equivalent)."""

    code = "RATE_LIMIT_EXCEEDED"


class InvalidCredentialError(PipelineDomainError):
    """External API rejected the credential (401-equivalent)."""

    code = "INVALID_CREDENTIAL"


class CacheWriteFailure(PipelineDomainError):
    """Raised by cache backends; always swallowed by the Result Cache."""

    code = "CACHE_WRITE_FAILURE"


class ContentProcessingError(PipelineDomainError):
    code = "CONTENT_PROCESSING_ERROR"


class StagingConflictError(ValidationError):
    """A product with the same marketplace id is already staged."""

    code = "ALREADY_IN_STAGING"


class AggregateDiscoveryFailure(PipelineDomainError):
    """Sitemap discovery exhausted every source. Terminal."""

    code = "DISCOVERY_FAILED"
    guidance = "Add URLs manually or use bulk import."


class NoSitemapFoundError(AggregateDiscoveryFailure):
    code = "NO_SITEMAP_FOUND"


class AllSourcesFailedError(AggregateDiscoveryFailure):
    code = "ALL_SOURCES_FAILED"


class PublishError(PipelineDomainError):
    """Publishing the composed content failed. Terminal."""

    code = "PUBLISH_FAILED"


class ProductNotFoundError(ValidationError):
    """The marketplace has no product for the given id."""

    code = "PRODUCT_NOT_FOUND"

"""Validation helpers."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlparse

ASIN_RE = re.compile(r"^[A-Z0-9]{10}$")

_ASIN_URL_PATTERNS = (
    re.compile(r"amazon\.[a-z.]+/(?:dp|gp/product|gp/aw/d|exec/obidos/ASIN)/([A-Z0-9]{10})", re.IGNORECASE),
    re.compile(r"/dp/([A-Z0-9]{10})", re.IGNORECASE),
    re.compile(r"/product/([A-Z0-9]{10})", re.IGNORECASE),
    re.compile(r"[?&]ASIN=([A-Z0-9]{10})", re.IGNORECASE),
    re.compile(r"/([A-Z0-9]{10})(?:/|\?|$)", re.IGNORECASE),
)


def is_valid_http_url(url: str) -> bool:
    try:
        parsed = urlparse(url)
        return parsed.scheme in ("http", "https") and bool(parsed.netloc)
    except Exception:
        return False


@dataclass(frozen=True)
class UrlValidation:
    is_valid: bool
    normalized_url: str = ""
    error: Optional[str] = None


def validate_manual_url(raw: str) -> UrlValidation:
    """Validate a user-entered page URL, adding https:// when no scheme is given."""
    s = (raw or "").strip()
    if not s:
        return UrlValidation(is_valid=False, error="URL is required")
    if not re.match(r"^[a-z][a-z0-9+.-]*://", s, re.IGNORECASE):
        s = f"https://{s}"
    parsed = urlparse(s)
    if parsed.scheme not in ("http", "https"):
        return UrlValidation(is_valid=False, error="Only http and https URLs are supported")
    host = (parsed.hostname or "").lower()
    if not host or "." not in host or host.startswith(".") or host.endswith("."):
        return UrlValidation(is_valid=False, error="URL must include a valid domain")
    if " " in s:
        return UrlValidation(is_valid=False, error="URL must not contain spaces")
    normalized = s.split("#", 1)[0]
    path = parsed.path or ""
    if path not in ("", "/") and normalized.endswith("/"):
        normalized = normalized.rstrip("/")
    return UrlValidation(is_valid=True, normalized_url=normalized)


def extract_asin(value: str) -> Optional[str]:
    """Return the marketplace id from a bare ASIN or a product URL."""
    t = (value or "").strip()
    if ASIN_RE.match(t.upper()):
        return t.upper()
    for pattern in _ASIN_URL_PATTERNS:
        m = pattern.search(t)
        if m and ASIN_RE.match(m.group(1).upper()):
            return m.group(1).upper()
    return None

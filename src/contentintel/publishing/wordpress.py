"""WordPress REST publisher (application-password basic auth)."""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Protocol

import aiohttp

from ..domain.errors import PublishError
from ..observability.logger import get_logger

logger = get_logger(__name__)

# (url, json body) -> (status, parsed json or None)
PostTransport = Callable[[str, dict[str, Any]], Awaitable[tuple[int, Any]]]


class Publisher(Protocol):
    async def publish(self, content: str, post_id: int) -> str: ...


class WordPressPublisher:
    def __init__(
        self,
        *,
        base_url: str | None,
        username: str | None,
        app_password: str | None,
        timeout_seconds: int = 30,
        transport: PostTransport | None = None,
    ):
        self._base_url = (base_url or "").rstrip("/")
        self._username = username or ""
        self._app_password = app_password or ""
        self._timeout_seconds = timeout_seconds
        self._transport = transport or self._aiohttp_post

    @property
    def configured(self) -> bool:
        return bool(self._base_url and self._username and self._app_password)

    async def publish(self, content: str, post_id: int) -> str:
        """Update the post body and return its public link."""
        if not self.configured:
            raise PublishError("WordPress credentials are not configured")
        url = f"{self._base_url}/wp-json/wp/v2/posts/{int(post_id)}"
        status, data = await self._transport(url, {"content": content})
        if status == 401 or status == 403:
            raise PublishError("WordPress rejected the credentials", detail=f"status={status}")
        if status == 404:
            raise PublishError("Post not found in WordPress", detail=f"post_id={post_id}")
        if status >= 400:
            message = data.get("message") if isinstance(data, dict) else None
            raise PublishError(f"WordPress returned {status}", detail=str(message or ""))
        link = data.get("link") if isinstance(data, dict) else None
        if not link:
            raise PublishError("WordPress response did not include a link")
        logger.info("content_published", post_id=post_id, link=link)
        return str(link)

    async def _aiohttp_post(self, url: str, body: dict[str, Any]) -> tuple[int, Any]:
        timeout = aiohttp.ClientTimeout(total=max(1, int(self._timeout_seconds)))
        auth = aiohttp.BasicAuth(self._username, self._app_password)
        try:
            async with aiohttp.ClientSession(timeout=timeout, auth=auth) as session:
                async with session.post(url, json=body) as resp:
                    try:
                        data = await resp.json(content_type=None)
                    except ValueError:
                        data = None
                    return resp.status, data
        except asyncio.TimeoutError as e:
            raise PublishError("WordPress request timed out", detail=str(e)) from e
        except aiohttp.ClientError as e:
            raise PublishError("WordPress request failed", detail=str(e)) from e

"""Ollama adapter (POST /api/generate, non-streaming, JSON mode)."""

from __future__ import annotations

import asyncio
from typing import Any

import aiohttp

from ..domain.errors import ContentProcessingError, NetworkError, NetworkTimeoutError
from ..observability.logger import get_logger
from .runtime import LLMRequest, LLMRuntime

logger = get_logger(__name__)


class OllamaAdapter(LLMRuntime):
    def __init__(self, *, host: str, port: int, keep_alive: str | None = None):
        self._base_url = f"http://{host}:{port}"
        self._keep_alive = keep_alive

    @property
    def generate_url(self) -> str:
        return f"{self._base_url}/api/generate"

    def build_payload(self, req: LLMRequest) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "model": req.model,
            "system": req.system_prompt,
            "prompt": req.user_prompt,
            "stream": False,
            # every prompt in this service asks for a JSON object
            "format": "json",
            "options": {"temperature": float(req.temperature), "num_predict": int(req.max_tokens)},
        }
        if self._keep_alive:
            payload["keep_alive"] = self._keep_alive
        return payload

    async def complete(self, req: LLMRequest) -> str:
        timeout = aiohttp.ClientTimeout(total=max(1, int(req.timeout_seconds)))
        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.post(self.generate_url, json=self.build_payload(req)) as resp:
                    if resp.status == 404:
                        raise ContentProcessingError("ollama_model_missing", detail=f"model={req.model}")
                    if resp.status >= 400:
                        body = await resp.text()
                        raise ContentProcessingError(
                            "ollama_request_failed", detail=f"status={resp.status} body={body[:300]}"
                        )
                    data = await resp.json(content_type=None)
        except asyncio.TimeoutError as e:
            logger.warning("ollama_timeout", model=req.model, timeout_seconds=req.timeout_seconds)
            raise NetworkTimeoutError("ollama_timeout", detail=str(e)) from e
        except aiohttp.ClientError as e:
            raise NetworkError("ollama_unreachable", detail=f"{self._base_url}: {e}") from e

        return self.parse_response(data)

    @staticmethod
    def parse_response(data: Any) -> str:
        if not isinstance(data, dict):
            raise ContentProcessingError("ollama_response_invalid", detail=type(data).__name__)
        if data.get("error"):
            raise ContentProcessingError("ollama_error", detail=str(data["error"]))
        text = data.get("response", "")
        if not isinstance(text, str):
            raise ContentProcessingError("ollama_response_invalid", detail="response is not text")
        return text

"""OpenAI (or OpenAI-compatible) chat completions adapter, JSON mode."""

from __future__ import annotations

import asyncio
import os

from openai import APITimeoutError, AsyncOpenAI, AuthenticationError, BadRequestError
from openai import RateLimitError as OpenAIRateLimitError

from ..domain.errors import ContentProcessingError, InvalidCredentialError, NetworkTimeoutError, RateLimitError
from ..observability.logger import get_logger
from .runtime import LLMRequest, LLMRuntime

logger = get_logger(__name__)

DEFAULT_BASE_URL = "https://api.openai.com/v1"


class OpenAIAdapter(LLMRuntime):
    def __init__(self, *, api_key: str | None = None, base_url: str | None = None):
        key = api_key or os.getenv("OPENAI_API_KEY", "")
        if not key:
            raise InvalidCredentialError("openai_api_key_missing", detail="set OPENAI_API_KEY")
        self._client = AsyncOpenAI(api_key=key, base_url=base_url or DEFAULT_BASE_URL)

    async def complete(self, req: LLMRequest) -> str:
        try:
            response = await self._client.chat.completions.create(
                model=req.model,
                messages=[
                    {"role": "system", "content": req.system_prompt},
                    {"role": "user", "content": req.user_prompt},
                ],
                response_format={"type": "json_object"},
                temperature=float(req.temperature),
                max_tokens=int(req.max_tokens),
                timeout=max(1, int(req.timeout_seconds)),
            )
        except (asyncio.TimeoutError, APITimeoutError) as e:
            raise NetworkTimeoutError("openai_timeout", detail=str(e)) from e
        except AuthenticationError as e:
            raise InvalidCredentialError("openai_invalid_api_key", detail=str(e)) from e
        except OpenAIRateLimitError as e:
            raise RateLimitError("openai_rate_limited", detail=str(e)) from e
        except BadRequestError as e:
            raise ContentProcessingError("openai_bad_request", detail=str(e)) from e
        except Exception as e:
            raise ContentProcessingError("openai_request_failed", detail=str(e)) from e

        if not response.choices:
            raise ContentProcessingError("openai_response_empty", detail=f"model={req.model}")
        usage = response.usage
        if usage is not None:
            logger.debug("openai_usage", model=req.model, total_tokens=usage.total_tokens)
        return response.choices[0].message.content or ""

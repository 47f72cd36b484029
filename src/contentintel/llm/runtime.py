"""Text-generation runtime interface.

Services talk to LLMs through this interface so providers stay swappable.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Optional


@dataclass(frozen=True)
class LLMRequest:
    system_prompt: str
    user_prompt: str
    model: str
    temperature: float
    max_tokens: int
    timeout_seconds: int


class LLMRuntime:
    async def complete(self, req: LLMRequest) -> str:  # pragma: no cover - interface
        raise NotImplementedError


def extract_json_object(text: str) -> Optional[dict[str, Any]]:
    """Return the first well-formed JSON object embedded in a chatty response, or None."""
    if not text:
        return None
    decoder = json.JSONDecoder()
    idx = text.find("{")
    while idx != -1:
        try:
            obj, _ = decoder.raw_decode(text, idx)
        except json.JSONDecodeError:
            idx = text.find("{", idx + 1)
            continue
        if isinstance(obj, dict):
            return obj
        idx = text.find("{", idx + 1)
    return None

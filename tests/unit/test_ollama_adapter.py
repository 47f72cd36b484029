from __future__ import annotations

import pytest

from contentintel.domain.errors import ContentProcessingError
from contentintel.llm.ollama_adapter import OllamaAdapter
from contentintel.llm.runtime import LLMRequest

REQ = LLMRequest(
    system_prompt="Return JSON.",
    user_prompt="Which products are recommended?",
    model="qwen2.5:3b",
    temperature=0.2,
    max_tokens=512,
    timeout_seconds=30,
)


def test_payload_requests_json_without_streaming() -> None:
    adapter = OllamaAdapter(host="localhost", port=11434, keep_alive="10m")

    payload = adapter.build_payload(REQ)

    assert adapter.generate_url == "http://localhost:11434/api/generate"
    assert payload["format"] == "json"
    assert payload["stream"] is False
    assert payload["options"] == {"temperature": 0.2, "num_predict": 512}
    assert payload["keep_alive"] == "10m"


def test_payload_omits_keep_alive_when_unset() -> None:
    assert "keep_alive" not in OllamaAdapter(host="h", port=1).build_payload(REQ)


def test_parse_response_returns_text() -> None:
    assert OllamaAdapter.parse_response({"response": '{"products": []}', "done": True}) == '{"products": []}'


@pytest.mark.parametrize(
    "data, code",
    [
        ({"error": "model not loaded"}, "ollama_error"),
        ({"response": 42}, "ollama_response_invalid"),
        (["not", "a", "dict"], "ollama_response_invalid"),
    ],
)
def test_parse_response_rejects_bad_bodies(data, code: str) -> None:
    with pytest.raises(ContentProcessingError) as exc:
        OllamaAdapter.parse_response(data)
    assert exc.value.info.message == code

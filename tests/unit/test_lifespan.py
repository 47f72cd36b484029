from __future__ import annotations

from contentintel.config.settings import PipelineSettings
from contentintel.lifespan import build_container, build_llm, llm_model_for
from contentintel.llm.ollama_adapter import OllamaAdapter


def test_build_llm_per_provider(monkeypatch) -> None:
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)

    assert build_llm(PipelineSettings(_env_file=None, llm_provider="none")) is None
    assert isinstance(build_llm(PipelineSettings(_env_file=None, llm_provider="ollama")), OllamaAdapter)
    # no key: refinement is skipped rather than failing startup
    assert build_llm(PipelineSettings(_env_file=None, llm_provider="openai", openai_api_key=None)) is None


def test_llm_model_follows_provider() -> None:
    settings = PipelineSettings(_env_file=None, llm_provider="openai", openai_default_model="gpt-4o-mini")
    assert llm_model_for(settings) == "gpt-4o-mini"
    assert llm_model_for(PipelineSettings(_env_file=None, llm_provider="ollama")) == "qwen2.5:3b"


def test_container_without_session_factory_has_no_snapshots() -> None:
    container = build_container(PipelineSettings(_env_file=None, serpapi_key=None))

    assert container.snapshots is None
    assert container.llm is None
    assert container.marketplace.has_credential is False
    assert container.new_scanner(3) is not container.new_scanner(3)

from __future__ import annotations

from types import SimpleNamespace

import pytest

from autoapply.config import Settings
from autoapply.llm.providers import LLMProvider, ProviderConfig, ProviderPool


class DummyAPIError(Exception):
    def __init__(self, message: str, *, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class FakeClient:
    def __init__(self, *, responses_fn, chat_fn):
        self.responses = SimpleNamespace(create=responses_fn)
        self.chat = SimpleNamespace(completions=SimpleNamespace(create=chat_fn))


def _chat_payload(content):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


def _provider(fake_client: FakeClient) -> LLMProvider:
    config = ProviderConfig(
        name="local",
        base_url="http://localhost:9999/v1",
        api_key="dummy",
        model="qwen2.5:14b-instruct",
        timeout_sec=5,
    )
    return LLMProvider(config, client=fake_client)


def test_complete_text_uses_responses_when_available() -> None:
    seen: dict = {}

    def responses_fn(**kwargs):
        seen.update(kwargs)
        return SimpleNamespace(output_text="Jane")

    def chat_fn(**kwargs):
        raise AssertionError("chat path should not be used")

    result = _provider(FakeClient(responses_fn=responses_fn, chat_fn=chat_fn)).complete_text(
        "first name?", max_tokens=100
    )

    assert result.content == "Jane"
    assert result.raw == {"api_path": "responses", "provider": "local"}
    assert seen["model"] == "qwen2.5:14b-instruct"
    assert seen["max_output_tokens"] == 100


def test_chat_fallback_sticks_after_first_not_found() -> None:
    responses_calls: list[dict] = []

    def responses_fn(**kwargs):
        responses_calls.append(kwargs)
        raise DummyAPIError("Not found", status_code=404)

    def chat_fn(**kwargs):
        assert kwargs["temperature"] == 0.1
        return _chat_payload("Yes")

    provider = _provider(FakeClient(responses_fn=responses_fn, chat_fn=chat_fn))

    assert provider.complete_text("authorized?").content == "Yes"
    assert provider.complete_text("relocate?").raw["api_path"] == "chat_completions"
    assert len(responses_calls) == 1
    assert provider.chat_only is True


def test_chat_fallback_tolerates_empty_content() -> None:
    def responses_fn(**kwargs):
        raise DummyAPIError("404 page not found")

    def chat_fn(**kwargs):
        return _chat_payload(None)

    assert _provider(FakeClient(responses_fn=responses_fn, chat_fn=chat_fn)).complete_text("ping").content == ""


def test_complete_text_raises_for_other_errors() -> None:
    def responses_fn(**kwargs):
        raise DummyAPIError("rate limited", status_code=429)

    def chat_fn(**kwargs):
        raise AssertionError("chat path should not be used")

    with pytest.raises(DummyAPIError, match="rate limited"):
        _provider(FakeClient(responses_fn=responses_fn, chat_fn=chat_fn)).complete_text("ping")


def test_pool_routes_only_enabled_providers_preferred_first() -> None:
    both = ProviderPool(Settings(openai_api_key="sk-test", local_llm_enabled=True))
    assert [p.config.name for p in both.route("local")] == ["local", "openai"]
    assert [p.config.name for p in both.route("openai")] == ["openai", "local"]

    local_only = ProviderPool(Settings(openai_api_key="", local_llm_enabled=True))
    assert [p.config.name for p in local_only.route("openai")] == ["local"]

    none = ProviderPool(Settings(openai_api_key="", local_llm_enabled=False))
    assert none.route("openai") == []

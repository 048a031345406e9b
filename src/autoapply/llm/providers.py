from __future__ import annotations

import logging
from dataclasses import dataclass

from openai import OpenAI

from autoapply.config import Settings
from autoapply.types import ModelResponse

logger = logging.getLogger(__name__)

PROVIDER_NAMES = ("openai", "local")


@dataclass(frozen=True, slots=True)
class ProviderConfig:
    name: str
    base_url: str
    api_key: str
    model: str
    timeout_sec: int
    enabled: bool = True


class LLMProvider:
    """Short text completions from an OpenAI-compatible endpoint.

    Servers without the Responses API (most local runtimes) answer 404; the
    provider then switches to chat.completions for the rest of its lifetime.
    """

    def __init__(self, config: ProviderConfig, client: OpenAI | None = None):
        self.config = config
        self.client = client or OpenAI(
            base_url=config.base_url,
            api_key=config.api_key,
            timeout=float(config.timeout_sec),
        )
        self.chat_only = False

    def complete_text(self, prompt: str, *, max_tokens: int = 150) -> ModelResponse:
        if not self.chat_only:
            try:
                return self._via_responses(prompt, max_tokens)
            except Exception as exc:
                if not _responses_unsupported(exc):
                    raise
                logger.warning(
                    "Responses API unavailable provider=%s base_url=%s; using chat.completions (%s)",
                    self.config.name,
                    self.config.base_url,
                    exc,
                )
                self.chat_only = True
        return self._via_chat(prompt, max_tokens)

    def _via_responses(self, prompt: str, max_tokens: int) -> ModelResponse:
        response = self.client.responses.create(
            model=self.config.model,
            input=prompt,
            max_output_tokens=max_tokens,
        )
        return ModelResponse(
            content=getattr(response, "output_text", "") or "",
            raw={"api_path": "responses", "provider": self.config.name},
        )

    def _via_chat(self, prompt: str, max_tokens: int) -> ModelResponse:
        response = self.client.chat.completions.create(
            model=self.config.model,
            messages=[{"role": "user", "content": prompt}],
            max_tokens=max_tokens,
            temperature=0.1,
        )
        choices = getattr(response, "choices", None) or []
        message = getattr(choices[0], "message", None) if choices else None
        content = getattr(message, "content", None) or ""
        return ModelResponse(
            content=content if isinstance(content, str) else str(content),
            raw={"api_path": "chat_completions", "provider": self.config.name},
        )


def _responses_unsupported(exc: Exception) -> bool:
    if getattr(exc, "status_code", None) == 404:
        return True
    message = str(exc).lower()
    return "not found" in message or "404" in message


class ProviderPool:
    def __init__(self, settings: Settings):
        self.settings = settings
        self._providers: dict[str, LLMProvider] = {}

    def config_for(self, name: str) -> ProviderConfig:
        if name == "local":
            return ProviderConfig(
                name="local",
                base_url=self.settings.local_llm_base_url,
                api_key=self.settings.local_llm_api_key,
                model=self.settings.local_llm_model,
                timeout_sec=self.settings.local_llm_timeout_sec,
                enabled=self.settings.local_llm_enabled,
            )
        return ProviderConfig(
            name="openai",
            base_url=self.settings.openai_base_url,
            api_key=self.settings.openai_api_key,
            model=self.settings.openai_model_resolver,
            timeout_sec=self.settings.openai_timeout_sec,
            enabled=bool(self.settings.openai_api_key),
        )

    def get(self, name: str) -> LLMProvider:
        provider = self._providers.get(name)
        if provider is None:
            provider = self._providers[name] = LLMProvider(self.config_for(name))
        return provider

    def route(self, preferred: str) -> list[LLMProvider]:
        """Enabled providers, ``preferred`` first."""
        order = [preferred, *(name for name in PROVIDER_NAMES if name != preferred)]
        return [self.get(name) for name in order if name in PROVIDER_NAMES and self.config_for(name).enabled]

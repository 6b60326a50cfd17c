from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional, Protocol

from openai import OpenAI

from rules_qa.settings import settings


class LLMProviderError(RuntimeError):
    """Raised when the language model provider cannot produce a response."""


@dataclass(frozen=True)
class GenerationParams:
    temperature: float = 0.2
    max_output_tokens: int = 2048

    @classmethod
    def from_settings(cls) -> "GenerationParams":
        return cls(
            temperature=settings.generation_temperature,
            max_output_tokens=settings.generation_max_output_tokens,
        )


class GenerationBackend(Protocol):
    def generate_content(self, prompt: str, params: GenerationParams) -> str:
        ...


class LLMProvider:
    def __init__(self, *, api_key: Optional[str] = None, model: Optional[str] = None) -> None:
        self.api_key = api_key or settings.openai_api_key
        self.model = model or settings.openai_model
        self._client: Optional[OpenAI] = None

    def _get_client(self) -> OpenAI:
        if not self.api_key:
            raise LLMProviderError("OpenAI API key is not configured.")
        if self._client is None:
            self._client = OpenAI(
                api_key=self.api_key,
                timeout=settings.generation_timeout_seconds,
                max_retries=max(0, settings.generation_max_retries),
            )
        return self._client

    def generate_content(self, prompt: str, params: GenerationParams) -> str:
        if not prompt.strip():
            raise LLMProviderError("Prompt to model cannot be empty.")

        client = self._get_client()
        try:
            response = client.responses.create(
                model=self.model,
                input=prompt,
                temperature=params.temperature,
                max_output_tokens=params.max_output_tokens,
            )
        except Exception as exc:
            raise LLMProviderError(f"Failed to query OpenAI API: {exc}") from exc

        text = self._extract_text(response)
        if not text or not text.strip():
            raise LLMProviderError("Language model returned no content.")

        return text.strip()

    @staticmethod
    def _extract_text(response: Any) -> Optional[str]:
        if response is None:
            return None

        text = getattr(response, "output_text", None)
        if text:
            return text

        for item in getattr(response, "output", None) or []:
            if getattr(item, "type", None) != "message":
                continue
            for content in getattr(item, "content", None) or []:
                if getattr(content, "type", None) == "output_text":
                    possible = getattr(content, "text", None)
                    if possible:
                        return possible
        return None


_provider: Optional[LLMProvider] = None


def get_generation_backend() -> LLMProvider:
    global _provider
    if _provider is None:
        _provider = LLMProvider()
    return _provider

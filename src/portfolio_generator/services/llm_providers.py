from __future__ import annotations

import os
from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import Any

from dotenv import load_dotenv

from portfolio_generator.models.generation import ChatMessage, GenerationResult

"""LLM provider implementations.

Every vendor adapter exposes the same coroutine,
``generate(messages, options) -> GenerationResult``, so the orchestrator never
branches on vendor names.
"""

# Load environment variables for LLM API keys (OPENAI_API_KEY, GEMINI_API_KEY, etc.)
load_dotenv()

DEFAULT_TEMPERATURE = 0.7
DEFAULT_MAX_TOKENS = 2000


class LLMError(RuntimeError):
    """Raised when LLM service cannot be used or fails."""


class ProviderConfigurationError(LLMError):
    """Raised when a provider is missing its credential or client."""


def estimate_tokens(text: str) -> int:
    """Rough token count for vendors that do not report usage (~4 chars per token)."""
    return len(text) // 4


def split_system_message(
    messages: Sequence[ChatMessage],
) -> tuple[str | None, list[ChatMessage]]:
    """Separate system turns from the conversation.

    Multiple system turns are joined with blank lines.
    """
    system_parts = [m.content for m in messages if m.role == "system"]
    turns = [m for m in messages if m.role != "system"]
    return ("\n\n".join(system_parts) or None), turns


class LLMProvider(ABC):
    """Abstract base class for LLM providers."""

    name: str = "base"

    def __init__(
        self,
        default_model: str,
        default_temperature: float = DEFAULT_TEMPERATURE,
        default_max_tokens: int = DEFAULT_MAX_TOKENS,
    ) -> None:
        self.default_model = default_model
        self.default_temperature = default_temperature
        self.default_max_tokens = default_max_tokens

    def resolve_model(self, options: dict[str, Any]) -> str:
        return options.get("model") or self.default_model

    def generate_llm_config(
        self,
        temperature: float | None,
        max_tokens: int | None,
    ) -> dict:
        """Generate llm configs

        Args:
            temperature: Controls randomness. None = provider default.
            max_tokens: Maximum response length. None = provider default.

        Returns:
            Configuration dictionary with common parameters
        """
        return {
            "temperature": self.default_temperature if temperature is None else temperature,
            "max_tokens": self.default_max_tokens if max_tokens is None else max_tokens,
        }

    @abstractmethod
    async def generate(
        self,
        messages: Sequence[ChatMessage],
        options: dict[str, Any],
    ) -> GenerationResult:
        """Send a conversation to the LLM and return its text and token usage.

        Args:
            messages: Role-tagged conversation turns.
            options: ``model``, ``temperature`` and ``max_tokens`` overrides.

        Returns:
            The normalized vendor response.
        """


class OpenAIProvider(LLMProvider):
    """OpenAI chat completions implementation."""

    name = "openai"
    api_key_env = "OPENAI_API_KEY"
    base_url: str | None = None

    def __init__(
        self,
        api_key: str | None = None,
        default_model: str = "gpt-4o",
        **kwargs: Any,
    ) -> None:
        """Initialize the provider with an API key (falls back to the environment)."""
        super().__init__(default_model, **kwargs)
        import openai

        self.api_key = api_key or os.environ.get(self.api_key_env)
        if not self.api_key:
            raise ProviderConfigurationError(f"Missing {self.api_key_env} environment variable")

        client_kwargs: dict[str, Any] = {"api_key": self.api_key}
        if self.base_url:
            client_kwargs["base_url"] = self.base_url
        headers = self.default_headers()
        if headers:
            client_kwargs["default_headers"] = headers
        self.client = openai.AsyncOpenAI(**client_kwargs)

    def default_headers(self) -> dict[str, str]:
        return {}

    async def generate(
        self,
        messages: Sequence[ChatMessage],
        options: dict[str, Any],
    ) -> GenerationResult:
        model = self.resolve_model(options)
        config = self.generate_llm_config(options.get("temperature"), options.get("max_tokens"))
        try:
            response = await self.client.chat.completions.create(
                model=model,
                messages=[m.as_dict() for m in messages],
                **config,
            )
        except Exception as e:
            raise LLMError(f"{self.name} API call failed: {e}") from e

        if not response.choices:
            raise LLMError(f"{self.name} returned empty choices list")
        content = response.choices[0].message.content
        if content is None:
            raise LLMError(f"{self.name} returned None response")

        usage = getattr(response, "usage", None)
        tokens = getattr(usage, "total_tokens", None) if usage is not None else None
        return GenerationResult(
            content=content.strip(),
            tokens_used=tokens if tokens is not None else estimate_tokens(content),
            model=model,
        )


class DeepSeekProvider(OpenAIProvider):
    """DeepSeek through its OpenAI-compatible endpoint."""

    name = "deepseek"
    api_key_env = "DEEPSEEK_API_KEY"
    base_url = "https://api.deepseek.com/v1"

    def __init__(
        self,
        api_key: str | None = None,
        default_model: str = "deepseek-chat",
        **kwargs: Any,
    ) -> None:
        super().__init__(api_key, default_model, **kwargs)


class OpenRouterProvider(OpenAIProvider):
    """OpenRouter multi-model gateway (OpenAI-compatible)."""

    name = "openrouter"
    api_key_env = "OPENROUTER_API_KEY"
    base_url = "https://openrouter.ai/api/v1"

    def __init__(
        self,
        api_key: str | None = None,
        default_model: str = "openai/gpt-4o-mini",
        **kwargs: Any,
    ) -> None:
        super().__init__(api_key, default_model, **kwargs)

    def default_headers(self) -> dict[str, str]:
        return {
            "HTTP-Referer": os.environ.get("OPENROUTER_REFERER", "http://localhost:8000"),
            "X-Title": "Portfolio Generator",
        }


class GeminiProvider(LLMProvider):
    """Gemini implementation."""

    name = "gemini"

    def __init__(
        self,
        api_key: str | None = None,
        default_model: str = "gemini-2.0-flash",
        **kwargs: Any,
    ) -> None:
        """Initialize Gemini provider with API key from environment."""
        super().__init__(default_model, **kwargs)
        from google import genai

        self.api_key = api_key or os.environ.get("GEMINI_API_KEY")
        if not self.api_key:
            raise ProviderConfigurationError("Missing GEMINI_API_KEY environment variable")

        self.client = genai.Client(api_key=self.api_key)

    def generate_llm_config(
        self,
        temperature: float | None,
        max_tokens: int | None,
    ) -> dict:
        """Generate Gemini-specific configuration dictionary."""
        config = super().generate_llm_config(temperature, max_tokens)

        # Map common 'max_tokens' to Gemini's 'max_output_tokens'
        config["max_output_tokens"] = config.pop("max_tokens")
        return config

    async def generate(
        self,
        messages: Sequence[ChatMessage],
        options: dict[str, Any],
    ) -> GenerationResult:
        model = self.resolve_model(options)
        system, turns = split_system_message(messages)
        config = self.generate_llm_config(options.get("temperature"), options.get("max_tokens"))
        if system:
            config["system_instruction"] = system
        # Gemini calls the assistant role "model".
        contents = [
            {
                "role": "model" if m.role == "assistant" else "user",
                "parts": [{"text": m.content}],
            }
            for m in turns
        ]
        try:
            response = await self.client.aio.models.generate_content(
                model=model, contents=contents, config=config
            )
        except Exception as e:
            raise LLMError(f"Gemini API call failed: {e}") from e

        if response.text is None:
            raise LLMError("Gemini returned None response")

        usage = getattr(response, "usage_metadata", None)
        tokens = getattr(usage, "total_token_count", None) if usage is not None else None
        return GenerationResult(
            content=response.text.strip(),
            tokens_used=tokens if tokens is not None else estimate_tokens(response.text),
            model=model,
        )


class AnthropicProvider(LLMProvider):
    """Anthropic Messages API implementation."""

    name = "anthropic"

    def __init__(
        self,
        api_key: str | None = None,
        default_model: str = "claude-3-5-sonnet-latest",
        **kwargs: Any,
    ) -> None:
        super().__init__(default_model, **kwargs)
        import anthropic

        self.api_key = api_key or os.environ.get("ANTHROPIC_API_KEY")
        if not self.api_key:
            raise ProviderConfigurationError("Missing ANTHROPIC_API_KEY environment variable")

        self.client = anthropic.AsyncAnthropic(api_key=self.api_key)

    async def generate(
        self,
        messages: Sequence[ChatMessage],
        options: dict[str, Any],
    ) -> GenerationResult:
        model = self.resolve_model(options)
        # The Messages API takes the system prompt as a separate argument.
        system, turns = split_system_message(messages)
        config = self.generate_llm_config(options.get("temperature"), options.get("max_tokens"))
        request: dict[str, Any] = {
            "model": model,
            "messages": [m.as_dict() for m in turns],
            **config,
        }
        if system:
            request["system"] = system
        try:
            response = await self.client.messages.create(**request)
        except Exception as e:
            raise LLMError(f"Anthropic API call failed: {e}") from e

        text = "".join(
            block.text for block in response.content if getattr(block, "type", None) == "text"
        )
        usage = getattr(response, "usage", None)
        if usage is not None:
            tokens = (usage.input_tokens or 0) + (usage.output_tokens or 0)
        else:
            tokens = estimate_tokens(text)
        return GenerationResult(content=text.strip(), tokens_used=tokens, model=model)


class OllamaProvider(LLMProvider):
    """Local Ollama server reached over its HTTP chat API."""

    name = "ollama"

    def __init__(
        self,
        host: str | None = None,
        default_model: str = "llama3.1",
        timeout: float = 120.0,
        **kwargs: Any,
    ) -> None:
        super().__init__(default_model, **kwargs)
        self.host = (host or os.environ.get("OLLAMA_HOST") or "").rstrip("/")
        if not self.host:
            raise ProviderConfigurationError("Missing OLLAMA_HOST environment variable")
        self.timeout = timeout

    async def generate(
        self,
        messages: Sequence[ChatMessage],
        options: dict[str, Any],
    ) -> GenerationResult:
        import httpx

        model = self.resolve_model(options)
        config = self.generate_llm_config(options.get("temperature"), options.get("max_tokens"))
        payload = {
            "model": model,
            "messages": [m.as_dict() for m in messages],
            "stream": False,
            "options": {
                "temperature": config["temperature"],
                "num_predict": config["max_tokens"],
            },
        }
        try:
            async with httpx.AsyncClient(base_url=self.host, timeout=self.timeout) as client:
                response = await client.post("/api/chat", json=payload)
                response.raise_for_status()
                result = response.json()
        except Exception as e:
            raise LLMError(f"Ollama API call failed: {e}") from e

        content = (result.get("message") or {}).get("content") or ""
        counted = result.get("prompt_eval_count", 0) + result.get("eval_count", 0)
        return GenerationResult(
            content=content.strip(),
            tokens_used=counted or estimate_tokens(content),
            model=model,
        )

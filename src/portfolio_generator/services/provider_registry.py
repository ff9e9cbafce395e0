"""Static provider capability table and credential-driven registry.

A provider is available exactly when its credential variable was present when
the registry was built. There is no plugin discovery: supporting a new vendor
means adding a ``ProviderId``, a ``ProviderConfig`` row and an adapter class.
"""

from __future__ import annotations

import logging
import os
import threading
from collections import deque
from collections.abc import Mapping
from dataclasses import asdict, dataclass, field
from enum import StrEnum
from typing import Any

from portfolio_generator.services.llm_providers import (
    AnthropicProvider,
    DeepSeekProvider,
    GeminiProvider,
    LLMError,
    LLMProvider,
    OllamaProvider,
    OpenAIProvider,
    OpenRouterProvider,
    ProviderConfigurationError,
)
from portfolio_generator.services.rate_limiter import RateLimit, RateLimiter

logger = logging.getLogger(__name__)

__all__ = [
    "PROVIDER_CONFIGS",
    "Pricing",
    "ProviderConfig",
    "ProviderId",
    "ProviderRegistry",
    "parse_provider_id",
]

_HEALTH_WINDOW = 50


class ProviderId(StrEnum):
    OPENAI = "openai"
    GEMINI = "gemini"
    ANTHROPIC = "anthropic"
    OLLAMA = "ollama"
    DEEPSEEK = "deepseek"
    OPENROUTER = "openrouter"


def parse_provider_id(value: str | None) -> ProviderId | None:
    """Return the matching ``ProviderId`` or None for unknown/empty names."""
    if not value:
        return None
    try:
        return ProviderId(value.strip().lower())
    except ValueError:
        return None


@dataclass(frozen=True)
class Pricing:
    """USD per 1K tokens."""

    input_per_1k: float
    output_per_1k: float


@dataclass(frozen=True)
class ProviderConfig:
    id: ProviderId
    display_name: str
    description: str
    credential_env: str
    default_model: str
    supported_models: tuple[str, ...]
    max_tokens: int
    supports_streaming: bool
    requests_per_minute: int
    tokens_per_minute: int
    pricing: Pricing | None = None
    capabilities: tuple[str, ...] = ()
    latency_ms: int = 3000
    reliability: float = 0.95

    @property
    def rate_limit(self) -> RateLimit:
        return RateLimit(self.requests_per_minute, self.tokens_per_minute)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["id"] = self.id.value
        data["supported_models"] = list(self.supported_models)
        data["capabilities"] = list(self.capabilities)
        return data


# Registration order is the fallback scan order.
PROVIDER_CONFIGS: tuple[ProviderConfig, ...] = (
    ProviderConfig(
        id=ProviderId.OPENAI,
        display_name="OpenAI GPT-4o",
        description="Advanced AI model with excellent creative writing capabilities",
        credential_env="OPENAI_API_KEY",
        default_model="gpt-4o",
        supported_models=("gpt-4o", "gpt-4o-mini", "gpt-4-turbo"),
        max_tokens=4096,
        supports_streaming=True,
        requests_per_minute=500,
        tokens_per_minute=30000,
        pricing=Pricing(input_per_1k=0.005, output_per_1k=0.015),
        capabilities=("chat", "json_mode", "creative_writing"),
        latency_ms=2500,
        reliability=0.98,
    ),
    ProviderConfig(
        id=ProviderId.GEMINI,
        display_name="Google Gemini",
        description="Google's powerful multimodal AI model",
        credential_env="GEMINI_API_KEY",
        default_model="gemini-2.0-flash",
        supported_models=("gemini-2.0-flash", "gemini-1.5-pro", "gemini-1.5-flash"),
        max_tokens=8192,
        supports_streaming=True,
        requests_per_minute=60,
        tokens_per_minute=32000,
        pricing=Pricing(input_per_1k=0.0001, output_per_1k=0.0004),
        capabilities=("chat", "multimodal", "long_context"),
        latency_ms=1800,
        reliability=0.95,
    ),
    ProviderConfig(
        id=ProviderId.ANTHROPIC,
        display_name="Anthropic Claude",
        description="Claude AI with strong reasoning and safety features",
        credential_env="ANTHROPIC_API_KEY",
        default_model="claude-3-5-sonnet-latest",
        supported_models=(
            "claude-3-5-sonnet-latest",
            "claude-3-5-haiku-latest",
            "claude-3-opus-latest",
        ),
        max_tokens=8192,
        supports_streaming=True,
        requests_per_minute=50,
        tokens_per_minute=40000,
        pricing=Pricing(input_per_1k=0.003, output_per_1k=0.015),
        capabilities=("chat", "reasoning", "creative_writing"),
        latency_ms=3000,
        reliability=0.97,
    ),
    ProviderConfig(
        id=ProviderId.OLLAMA,
        display_name="Ollama (Local)",
        description="Local AI model for privacy-focused generation",
        credential_env="OLLAMA_HOST",
        default_model="llama3.1",
        supported_models=("llama3.1", "mistral", "qwen2.5"),
        max_tokens=4096,
        supports_streaming=True,
        requests_per_minute=30,
        tokens_per_minute=100000,
        pricing=None,
        capabilities=("chat", "local", "private"),
        latency_ms=6000,
        reliability=0.9,
    ),
    ProviderConfig(
        id=ProviderId.DEEPSEEK,
        display_name="DeepSeek",
        description="DeepSeek AI model specialized in coding and technical content",
        credential_env="DEEPSEEK_API_KEY",
        default_model="deepseek-chat",
        supported_models=("deepseek-chat", "deepseek-coder"),
        max_tokens=8192,
        supports_streaming=True,
        requests_per_minute=60,
        tokens_per_minute=50000,
        pricing=Pricing(input_per_1k=0.00027, output_per_1k=0.0011),
        capabilities=("chat", "code", "technical_writing"),
        latency_ms=3500,
        reliability=0.93,
    ),
    ProviderConfig(
        id=ProviderId.OPENROUTER,
        display_name="OpenRouter (Multi-Model)",
        description="Access to multiple AI models through OpenRouter API",
        credential_env="OPENROUTER_API_KEY",
        default_model="openai/gpt-4o-mini",
        supported_models=(
            "openai/gpt-4o-mini",
            "anthropic/claude-3.5-sonnet",
            "meta-llama/llama-3.1-70b-instruct",
        ),
        max_tokens=4096,
        supports_streaming=True,
        requests_per_minute=200,
        tokens_per_minute=100000,
        pricing=Pricing(input_per_1k=0.00015, output_per_1k=0.0006),
        capabilities=("chat", "multi_model"),
        latency_ms=3000,
        reliability=0.94,
    ),
)

_ADAPTERS: dict[ProviderId, type[LLMProvider]] = {
    ProviderId.OPENAI: OpenAIProvider,
    ProviderId.GEMINI: GeminiProvider,
    ProviderId.ANTHROPIC: AnthropicProvider,
    ProviderId.OLLAMA: OllamaProvider,
    ProviderId.DEEPSEEK: DeepSeekProvider,
    ProviderId.OPENROUTER: OpenRouterProvider,
}


def _build_adapter(config: ProviderConfig, credential: str, timeout: float) -> LLMProvider:
    adapter_cls = _ADAPTERS[config.id]
    if adapter_cls is OllamaProvider:
        return OllamaProvider(host=credential, default_model=config.default_model, timeout=timeout)
    return adapter_cls(api_key=credential, default_model=config.default_model)


@dataclass
class _HealthStats:
    outcomes: deque[tuple[bool, float]] = field(
        default_factory=lambda: deque(maxlen=_HEALTH_WINDOW)
    )


class ProviderRegistry:
    """Configured providers, their adapters and their rate-limit state."""

    def __init__(
        self,
        adapters: Mapping[ProviderId, LLMProvider],
        rate_limiter: RateLimiter | None = None,
        configs: tuple[ProviderConfig, ...] = PROVIDER_CONFIGS,
    ) -> None:
        self._configs = {config.id: config for config in configs}
        self._order = [config.id for config in configs]
        self._adapters = dict(adapters)
        self.rate_limiter = rate_limiter or RateLimiter()
        for config in configs:
            self.rate_limiter.set_limit(config.id.value, config.rate_limit)
        self._health: dict[ProviderId, _HealthStats] = {pid: _HealthStats() for pid in self._order}
        self._health_lock = threading.Lock()

    @classmethod
    def from_env(
        cls,
        environ: Mapping[str, str] | None = None,
        rate_limiter: RateLimiter | None = None,
        timeout: float = 120.0,
    ) -> ProviderRegistry:
        """Build adapters for every provider whose credential is present."""
        env = os.environ if environ is None else environ
        adapters: dict[ProviderId, LLMProvider] = {}
        for config in PROVIDER_CONFIGS:
            credential = env.get(config.credential_env)
            if not credential:
                continue
            try:
                adapters[config.id] = _build_adapter(config, credential, timeout)
            except LLMError:
                logger.exception("Could not initialize provider %s", config.id.value)
        logger.info(
            "Configured LLM providers: %s",
            ", ".join(pid.value for pid in adapters) or "none",
        )
        return cls(adapters, rate_limiter=rate_limiter)

    @property
    def provider_ids(self) -> list[ProviderId]:
        return list(self._order)

    def get_config(self, provider_id: ProviderId) -> ProviderConfig:
        return self._configs[provider_id]

    def is_available(self, provider_id: ProviderId) -> bool:
        return provider_id in self._adapters

    def available_ids(self) -> list[ProviderId]:
        return [pid for pid in self._order if pid in self._adapters]

    def get_adapter(self, provider_id: ProviderId) -> LLMProvider:
        adapter = self._adapters.get(provider_id)
        if adapter is None:
            config = self._configs.get(provider_id)
            env_name = config.credential_env if config else "credential"
            raise ProviderConfigurationError(
                f"Provider {provider_id.value!r} is not configured (set {env_name})"
            )
        return adapter

    def list_providers(self) -> list[dict[str, Any]]:
        return [
            {
                "id": pid.value,
                "config": self._configs[pid].to_dict(),
                "available": self.is_available(pid),
            }
            for pid in self._order
        ]

    def status(self, provider_id: ProviderId) -> dict[str, Any]:
        return {
            "available": self.is_available(provider_id),
            "rate_limit_status": self.rate_limiter.status(provider_id.value),
        }

    def within_limit(self, provider_id: ProviderId, estimated_tokens: int) -> bool:
        return self.rate_limiter.check_rate_limit(provider_id.value, estimated_tokens)

    def record_outcome(self, provider_id: ProviderId, success: bool, latency_ms: float) -> None:
        with self._health_lock:
            self._health[provider_id].outcomes.append((success, latency_ms))

    def health_status(self) -> dict[str, dict[str, Any]]:
        """Rolling success rate and mean latency over the last calls per provider."""
        report: dict[str, dict[str, Any]] = {}
        with self._health_lock:
            for pid in self._order:
                outcomes = list(self._health[pid].outcomes)
                if outcomes:
                    successes = sum(1 for ok, _ in outcomes if ok)
                    success_rate = round(successes / len(outcomes), 3)
                    mean_latency = round(sum(ms for _, ms in outcomes) / len(outcomes), 1)
                else:
                    success_rate = None
                    mean_latency = None
                report[pid.value] = {
                    "available": self.is_available(pid),
                    "calls": len(outcomes),
                    "success_rate": success_rate,
                    "mean_latency_ms": mean_latency,
                }
        return report

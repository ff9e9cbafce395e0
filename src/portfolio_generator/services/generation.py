"""Portfolio generation orchestrator.

One call walks through cache lookup, provider selection, template loading,
content generation with retries, template compilation, quality analysis and
packaging, then records the result in the history and cache.
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_exponential,
    wait_random,
)

from portfolio_generator.config import GeneratorSettings
from portfolio_generator.models.generation import (
    ChatMessage,
    EnhancedContent,
    GeneratedPortfolio,
    GenerationOptions,
    GenerationResult,
    PortfolioMetadata,
)
from portfolio_generator.models.portfolio import PortfolioData
from portfolio_generator.services.context_store import ContextStore, ConversationContext
from portfolio_generator.services.estimation import (
    CostEstimate,
    estimate_cost,
    estimated_request_tokens,
    recommend_providers,
)
from portfolio_generator.services.generation_cache import (
    CachedGeneration,
    GenerationCache,
    cache_key,
)
from portfolio_generator.services.history import GenerationHistory, GenerationRecord
from portfolio_generator.services.llm_providers import (
    LLMError,
    LLMProvider,
    ProviderConfigurationError,
)
from portfolio_generator.services.progress import (
    STAGES,
    ProgressCallback,
    ProgressEmitter,
    ProgressEvent,
)
from portfolio_generator.services.prompt_builder import build_prompt
from portfolio_generator.services.provider_registry import (
    ProviderId,
    ProviderRegistry,
    parse_provider_id,
)
from portfolio_generator.services.quality import analyze_quality
from portfolio_generator.services.rate_limiter import RateLimiter
from portfolio_generator.services.response_parser import parse_enhanced_content
from portfolio_generator.templates import (
    TemplateLoadError,
    compile_templates,
    load_template_set,
)
from portfolio_generator.utils.packaging import archive_filename, create_zip_archive

logger = logging.getLogger(__name__)

__all__ = [
    "GenerationError",
    "GenerationOutcome",
    "GenerationService",
    "HistoryNotFoundError",
    "NoProviderAvailableError",
    "get_generation_service",
]


class NoProviderAvailableError(LLMError):
    """No configured provider is under its rate limit."""


class GenerationError(RuntimeError):
    """Orchestration failed outside the vendor call."""


class HistoryNotFoundError(GenerationError):
    """The requested history record does not exist (or was evicted)."""


@dataclass(frozen=True)
class GenerationOutcome:
    portfolio: GeneratedPortfolio
    download_filename: str | None
    context_id: str | None
    from_cache: bool = False
    history_id: str | None = None

    @property
    def download_url(self) -> str | None:
        if self.download_filename is None:
            return None
        return f"/api/generate/download/{self.download_filename}"


@dataclass
class _Metrics:
    total: int = 0
    successful: int = 0
    failed: int = 0
    cache_hits: int = 0
    total_duration_ms: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        finished = self.successful + self.failed
        return {
            "total_generations": self.total,
            "successful_generations": self.successful,
            "failed_generations": self.failed,
            "cache_hits": self.cache_hits,
            "average_duration_ms": round(self.total_duration_ms / finished, 1) if finished else 0.0,
        }


SleepFn = Callable[[float], Awaitable[None]]


class GenerationService:
    """Owns the provider registry and all in-memory stores for generation."""

    def __init__(
        self,
        registry: ProviderRegistry,
        settings: GeneratorSettings,
        *,
        cache: GenerationCache | None = None,
        history: GenerationHistory | None = None,
        contexts: ContextStore | None = None,
        emitter: ProgressEmitter | None = None,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        self.registry = registry
        self.settings = settings
        self.cache = cache or GenerationCache(settings.cache_size)
        self.history = history or GenerationHistory(settings.history_size)
        self.contexts = contexts or ContextStore(
            ttl=settings.context_ttl_seconds,
            max_entries=settings.context_max_entries,
        )
        self.emitter = emitter or ProgressEmitter()
        self._sleep = sleep
        self._metrics = _Metrics()

    @classmethod
    def from_settings(cls, settings: GeneratorSettings | None = None) -> GenerationService:
        settings = settings or GeneratorSettings.from_env()
        registry = ProviderRegistry.from_env(
            rate_limiter=RateLimiter(),
            timeout=settings.request_timeout,
        )
        return cls(registry, settings)

    # Progress

    def subscribe(self, observer: ProgressCallback) -> Callable[[], None]:
        return self.emitter.subscribe(observer)

    def unsubscribe(self, observer: ProgressCallback) -> None:
        self.emitter.unsubscribe(observer)

    def _emit(
        self,
        stage: str,
        request_id: str,
        on_progress: ProgressCallback | None,
        **detail: Any,
    ) -> None:
        event = ProgressEvent(stage=stage, progress=STAGES[stage], request_id=request_id, detail=detail)
        self.emitter.emit(event, extra=on_progress)

    # Provider selection

    def select_provider(self, requested: str | None, estimated_tokens: int) -> ProviderId:
        """Pick the requested provider if usable, else the first usable one.

        Raises:
            NoProviderAvailableError: If no configured provider is under its limit.
        """
        requested_id = parse_provider_id(requested)
        if requested_id is not None and self.registry.is_available(requested_id):
            if self.registry.within_limit(requested_id, estimated_tokens):
                return requested_id
            logger.warning("Provider %s is rate limited, looking for a fallback", requested_id.value)
        elif requested:
            logger.info("Requested provider %r is not configured, looking for a fallback", requested)

        for provider_id in self.registry.available_ids():
            if provider_id == requested_id:
                continue
            if self.registry.within_limit(provider_id, estimated_tokens):
                if requested:
                    logger.info("Falling back from %s to %s", requested, provider_id.value)
                return provider_id
        raise NoProviderAvailableError(
            "No LLM provider is available. Configure a provider credential or wait for rate limits to reset."
        )

    # Content generation

    def _log_retry(self, retry_state: RetryCallState) -> None:
        outcome = retry_state.outcome
        error = outcome.exception() if outcome is not None else None
        delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
        logger.warning(
            "Generation attempt %d failed (%s), retrying in %.2fs",
            retry_state.attempt_number,
            error,
            delay,
        )

    def _retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            stop=stop_after_attempt(self.settings.retry_attempts),
            wait=wait_exponential(multiplier=self.settings.retry_base_delay)
            + wait_random(0, self.settings.retry_jitter),
            retry=retry_if_not_exception_type(ProviderConfigurationError),
            sleep=self._sleep,
            before_sleep=self._log_retry,
            reraise=True,
        )

    async def _call_provider(
        self,
        adapter: LLMProvider,
        provider_id: ProviderId,
        data: PortfolioData,
        options: GenerationOptions,
        style: str,
    ) -> tuple[EnhancedContent, GenerationResult, list[ChatMessage], int]:
        request_options = {
            "model": options.model,
            "temperature": options.temperature,
            "max_tokens": options.max_tokens,
        }
        attempts = 0
        async for attempt in self._retrying():
            with attempt:
                attempts = attempt.retry_state.attempt_number
                messages = build_prompt(data, style)
                started = time.perf_counter()
                try:
                    result = await asyncio.wait_for(
                        adapter.generate(messages, request_options),
                        timeout=self.settings.request_timeout,
                    )
                except TimeoutError as e:
                    self.registry.record_outcome(provider_id, False, _elapsed_ms(started))
                    raise LLMError(
                        f"{provider_id.value} did not respond within {self.settings.request_timeout}s"
                    ) from e
                except Exception:
                    self.registry.record_outcome(provider_id, False, _elapsed_ms(started))
                    raise
                self.registry.record_outcome(provider_id, True, _elapsed_ms(started))
                enhanced = parse_enhanced_content(result.content)
        return enhanced, result, messages, attempts

    # Merging

    @staticmethod
    def _template_data(data: PortfolioData, enhanced: EnhancedContent, style: str) -> dict[str, Any]:
        """Portfolio fields + enhanced copy, with per-project enhancements matched by name."""
        base = data.model_dump()
        by_name: dict[str, dict[str, Any]] = {}
        for item in enhanced.enhanced_projects:
            name = str(item.get("name", "")).strip().lower()
            if name:
                by_name[name] = item

        projects = []
        for project in base["projects"]:
            match = by_name.get(project["name"].strip().lower(), {})
            highlights = match.get("highlights")
            projects.append(
                {
                    **project,
                    "description": match.get("description") or project["description"],
                    "highlights": [str(h) for h in highlights] if isinstance(highlights, list) else [],
                }
            )

        return {
            **base,
            **enhanced.model_dump(),
            "projects": projects,
            "social_links": data.social_links.present(),
            "style": style,
            "current_year": datetime.now(UTC).year,
        }

    # Orchestration

    def _resolve_context(self, context_id: str | None) -> ConversationContext:
        if context_id:
            context = self.contexts.get(context_id)
            if context is not None:
                return context
            logger.info("Context %s is unknown or expired, starting a new one", context_id)
        return self.contexts.create()

    def _record_turns(
        self,
        context: ConversationContext,
        turns: list[ChatMessage],
        tokens: int,
    ) -> ConversationContext:
        """Append *turns* to *context*, moving to a new context if it was evicted meanwhile."""
        try:
            return self.contexts.append(context.id, turns, tokens=tokens)
        except KeyError:
            logger.warning("Context %s was evicted during generation, starting a new one", context.id)
            return self.contexts.append(self.contexts.create().id, turns, tokens=tokens)

    async def generate(
        self,
        data: PortfolioData,
        options: GenerationOptions | None = None,
        on_progress: ProgressCallback | None = None,
        context_id: str | None = None,
        use_cache: bool = True,
    ) -> GenerationOutcome:
        """Generate a complete site for *data*.

        Raises:
            NoProviderAvailableError: If no provider can take the request.
            LLMError: If every attempt against the chosen provider failed.
            GenerationError: If templates are missing or cannot be compiled.
        """
        options = options or GenerationOptions()
        request_id = uuid.uuid4().hex
        started = time.perf_counter()
        self._metrics.total += 1
        self._emit("initializing", request_id, on_progress, provider=options.provider, style=options.style)

        key = cache_key(data, options)
        if use_cache:
            cached = self.cache.get(key)
            if cached is not None:
                logger.info("Cache hit for %s", data.owner_name)
                self._metrics.cache_hits += 1
                self._emit("complete", request_id, on_progress, cached=True)
                return GenerationOutcome(
                    portfolio=cached.portfolio,
                    download_filename=cached.archive_filename,
                    context_id=context_id,
                    from_cache=True,
                )

        try:
            outcome = await self._generate_uncached(data, options, request_id, on_progress, context_id)
        except Exception:
            self._metrics.failed += 1
            self._metrics.total_duration_ms += _elapsed_ms(started)
            raise

        self._metrics.successful += 1
        self._metrics.total_duration_ms += _elapsed_ms(started)
        self.cache.put(key, CachedGeneration(outcome.portfolio, outcome.download_filename))
        self._emit(
            "complete",
            request_id,
            on_progress,
            download_url=outcome.download_url,
            history_id=outcome.history_id,
        )
        return outcome

    async def _generate_uncached(
        self,
        data: PortfolioData,
        options: GenerationOptions,
        request_id: str,
        on_progress: ProgressCallback | None,
        context_id: str | None,
    ) -> GenerationOutcome:
        started = time.perf_counter()
        estimated_tokens = estimated_request_tokens(data, options.max_tokens)
        provider_id = self.select_provider(options.provider, estimated_tokens)
        config = self.registry.get_config(provider_id)
        adapter = self.registry.get_adapter(provider_id)

        effective = options
        if options.model and provider_id.value != options.provider and options.model not in config.supported_models:
            # A model name only makes sense for the provider it was requested for.
            effective = GenerationOptions(
                provider=provider_id.value,
                style=options.style,
                temperature=options.temperature,
                max_tokens=options.max_tokens,
            )

        try:
            template_set = load_template_set(options.style)
        except TemplateLoadError as e:
            raise GenerationError(str(e)) from e
        self._emit("templates_loaded", request_id, on_progress, style=template_set.style)

        context = self._resolve_context(context_id)
        enhanced, result, messages, attempts = await self._call_provider(
            adapter, provider_id, data, effective, template_set.style
        )
        self.registry.rate_limiter.record_usage(provider_id.value, result.tokens_used)
        context = self._record_turns(
            context,
            [messages[-1], _assistant_turn(result.content)],
            result.tokens_used,
        )
        self._emit(
            "ai_content_generated",
            request_id,
            on_progress,
            provider=provider_id.value,
            tokens_used=result.tokens_used,
            used_fallback_content=enhanced.is_fallback,
        )

        try:
            compiled = compile_templates(template_set, self._template_data(data, enhanced, template_set.style))
        except TemplateLoadError as e:
            raise GenerationError(str(e)) from e
        self._emit("templates_compiled", request_id, on_progress)

        quality = analyze_quality(compiled.html, compiled.css)
        estimate = estimate_cost(data, config, model=result.model or effective.model, max_tokens=effective.max_tokens)
        duration_ms = int(_elapsed_ms(started))
        portfolio = GeneratedPortfolio(
            html=compiled.html,
            css=compiled.css,
            js=compiled.js,
            metadata=PortfolioMetadata(
                generated_at=datetime.now(UTC).isoformat(),
                provider=provider_id.value,
                style=template_set.style,
                name=data.owner_name,
                model=result.model or effective.model or config.default_model,
                tokens_used=result.tokens_used,
                complexity_score=estimate.complexity_score,
                estimated_cost=estimate.estimated_cost,
                quality=quality,
                duration_ms=duration_ms,
                used_fallback_content=enhanced.is_fallback,
            ),
        )

        filename = archive_filename(data.owner_name)
        try:
            await asyncio.to_thread(
                create_zip_archive,
                self.settings.output_dir / filename,
                compiled.as_files(),
            )
        except OSError:
            logger.exception("Could not write archive %s", filename)
            raise

        record = self.history.record(
            GenerationRecord(
                portfolio_data=data,
                options=options,
                result=portfolio,
                cost=estimate.to_dict(),
                metrics={
                    "duration_ms": duration_ms,
                    "tokens_used": result.tokens_used,
                    "attempts": attempts,
                    "quality": quality,
                },
            )
        )
        logger.info(
            "Generated %s portfolio for %s with %s in %dms",
            template_set.style,
            data.owner_name,
            provider_id.value,
            duration_ms,
        )
        return GenerationOutcome(
            portfolio=portfolio,
            download_filename=filename,
            context_id=context.id,
            from_cache=False,
            history_id=record.id,
        )

    async def regenerate(
        self,
        history_id: str,
        overrides: dict[str, Any] | None = None,
        data_overrides: dict[str, Any] | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> GenerationOutcome:
        """Replay a history record with option/data overrides, skipping the cache.

        Raises:
            HistoryNotFoundError: If *history_id* is not in the history.
        """
        record = self.history.get(history_id)
        if record is None:
            raise HistoryNotFoundError(f"History record {history_id} not found")
        options = record.options.merged(**(overrides or {}))
        data = record.portfolio_data
        if data_overrides:
            data = PortfolioData.model_validate({**data.to_wire(), **data_overrides})
        return await self.generate(data, options, on_progress=on_progress, use_cache=False)

    # Read-only views

    def estimate_cost(
        self,
        data: PortfolioData,
        provider: str | None = None,
        model: str | None = None,
        max_tokens: int | None = None,
    ) -> CostEstimate:
        """Estimate cost with *provider*, or the first configured one.

        Raises:
            ValueError: If *provider* is not a known provider id.
        """
        if provider:
            provider_id = parse_provider_id(provider)
            if provider_id is None:
                raise ValueError(f"Unknown provider: {provider}")
        else:
            available = self.registry.available_ids()
            provider_id = available[0] if available else self.registry.provider_ids[0]
        return estimate_cost(data, self.registry.get_config(provider_id), model=model, max_tokens=max_tokens)

    def recommendations(self, data: PortfolioData, priority: str = "balanced") -> list[dict[str, Any]]:
        if priority not in ("balanced", "cost", "quality", "speed"):
            raise ValueError(f"Unknown priority: {priority}")
        return recommend_providers(data, self.registry, priority=priority)  # type: ignore[arg-type]

    def list_providers(self) -> list[dict[str, Any]]:
        return self.registry.list_providers()

    def provider_status(self, provider: str) -> dict[str, Any]:
        """Raises ValueError for an unknown provider id."""
        provider_id = parse_provider_id(provider)
        if provider_id is None:
            raise ValueError(f"Unknown provider: {provider}")
        return {"provider": provider_id.value, **self.registry.status(provider_id)}

    def provider_health(self) -> dict[str, dict[str, Any]]:
        return self.registry.health_status()

    def cache_stats(self) -> dict[str, Any]:
        return self.cache.stats()

    def clear_cache(self) -> int:
        return self.cache.clear()

    def list_history(self) -> list[GenerationRecord]:
        return self.history.list()

    def get_context(self, context_id: str) -> ConversationContext | None:
        return self.contexts.get(context_id)

    def metrics(self) -> dict[str, Any]:
        return {
            **self._metrics.to_dict(),
            "cache": self.cache.stats(),
            "history_size": len(self.history),
            "active_contexts": len(self.contexts),
        }

    def sweep(self) -> None:
        """Drop stale rate-limit entries and expired contexts."""
        dropped = self.registry.rate_limiter.sweep()
        expired = self.contexts.purge_expired()
        if dropped or expired:
            logger.debug("Swept %d rate-limit entries and %d contexts", dropped, expired)


def _elapsed_ms(started: float) -> float:
    return (time.perf_counter() - started) * 1000


def _assistant_turn(content: str) -> ChatMessage:
    return ChatMessage(role="assistant", content=content)


_service: GenerationService | None = None


def get_generation_service() -> GenerationService:
    """Process-wide service, built lazily from the environment."""
    global _service
    if _service is None:
        _service = GenerationService.from_settings()
    return _service

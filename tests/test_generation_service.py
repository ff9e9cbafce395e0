from __future__ import annotations

import asyncio
from zipfile import ZipFile

import pytest

from portfolio_generator.models.generation import GenerationOptions
from portfolio_generator.services.generation import (
    GenerationService,
    HistoryNotFoundError,
    NoProviderAvailableError,
    get_generation_service,
)
from portfolio_generator.services.llm_providers import LLMError, ProviderConfigurationError
from portfolio_generator.services.progress import ProgressEvent
from portfolio_generator.services.provider_registry import ProviderId
from portfolio_generator.services.rate_limiter import RateLimiter
from portfolio_generator.services.response_parser import FALLBACK_TAGLINE


def _generate(service: GenerationService, data, options: GenerationOptions | None = None, **kwargs):
    return asyncio.run(service.generate(data, options, **kwargs))


class TestGenerate:
    def test_successful_generation_builds_site_and_archive(
        self, make_service, scripted, portfolio, valid_response
    ) -> None:
        adapter = scripted([valid_response])
        service = make_service({ProviderId.OPENAI: adapter})

        outcome = _generate(service, portfolio, GenerationOptions(provider="openai"))

        assert outcome.from_cache is False
        html = outcome.portfolio.html
        assert "Full-Stack Engineer" in html
        assert "reimagined for the web" in html
        assert "Designed the instruction set" in html
        # Projects without an enhancement keep their own description.
        assert "First published algorithm." in html
        assert "--primary: #111111" in outcome.portfolio.css

        metadata = outcome.portfolio.metadata
        assert metadata.provider == "openai"
        assert metadata.style == "minimal"
        assert metadata.name == "Ada Lovelace"
        assert metadata.tokens_used == 500
        assert metadata.complexity_score == 11
        assert metadata.estimated_cost == pytest.approx(0.061)
        assert metadata.used_fallback_content is False
        assert set(metadata.quality) == {"accessibility", "performance", "seo", "overall"}

        archive_path = service.settings.output_dir / outcome.download_filename
        with ZipFile(archive_path) as archive:
            assert sorted(archive.namelist()) == ["index.html", "script.js", "styles.css"]
        assert outcome.download_url == f"/api/generate/download/{outcome.download_filename}"

    def test_generation_records_history_context_and_usage(
        self, make_service, scripted, portfolio, valid_response
    ) -> None:
        service = make_service({ProviderId.OPENAI: scripted([valid_response])})

        outcome = _generate(service, portfolio)

        records = service.list_history()
        assert [r.id for r in records] == [outcome.history_id]
        assert records[0].metrics["attempts"] == 1

        context = service.get_context(outcome.context_id)
        assert context is not None
        assert context.total_tokens == 500
        assert [m.role for m in context.messages] == ["user", "assistant"]

        usage = service.registry.rate_limiter.status("openai")
        assert usage["requests_used"] == 1
        assert usage["tokens_used"] == 500

    def test_progress_stages_in_order(self, make_service, scripted, portfolio, valid_response) -> None:
        service = make_service({ProviderId.OPENAI: scripted([valid_response])})
        broadcast: list[ProgressEvent] = []
        per_request: list[ProgressEvent] = []
        service.subscribe(broadcast.append)

        _generate(service, portfolio, on_progress=per_request.append)

        expected = [
            ("initializing", 10),
            ("templates_loaded", 20),
            ("ai_content_generated", 70),
            ("templates_compiled", 85),
            ("complete", 100),
        ]
        assert [(e.stage, e.progress) for e in broadcast] == expected
        assert [(e.stage, e.progress) for e in per_request] == expected
        assert len({e.request_id for e in broadcast}) == 1

    def test_unknown_style_falls_back_to_minimal(
        self, make_service, scripted, portfolio, valid_response
    ) -> None:
        service = make_service({ProviderId.OPENAI: scripted([valid_response])})

        outcome = _generate(service, portfolio, GenerationOptions(style="vaporwave"))

        assert outcome.portfolio.metadata.style == "minimal"

    def test_unparseable_output_uses_fallback_content(self, make_service, scripted, portfolio) -> None:
        service = make_service({ProviderId.OPENAI: scripted(["I cannot produce JSON today."])})

        outcome = _generate(service, portfolio)

        assert outcome.portfolio.metadata.used_fallback_content is True
        assert FALLBACK_TAGLINE.replace("&", "&amp;") in outcome.portfolio.html
        assert "I cannot produce JSON today." in outcome.portfolio.html

    def test_continuing_a_context_accumulates_turns(
        self, make_service, scripted, portfolio, valid_response
    ) -> None:
        service = make_service({ProviderId.OPENAI: scripted([valid_response])})
        first = _generate(service, portfolio)

        second = _generate(service, portfolio, context_id=first.context_id, use_cache=False)

        assert second.context_id == first.context_id
        context = service.get_context(first.context_id)
        assert len(context.messages) == 4
        assert context.total_tokens == 1000

    def test_unknown_context_starts_a_new_one(
        self, make_service, scripted, portfolio, valid_response
    ) -> None:
        service = make_service({ProviderId.OPENAI: scripted([valid_response])})

        outcome = _generate(service, portfolio, context_id="does-not-exist")

        assert outcome.context_id != "does-not-exist"
        assert service.get_context(outcome.context_id) is not None

    def test_context_evicted_mid_request_does_not_fail_generation(
        self, make_service, scripted, portfolio, valid_response
    ) -> None:
        class YieldingProvider(scripted):
            async def generate(self, messages, options):
                await asyncio.sleep(0)
                return await super().generate(messages, options)

        service = make_service(
            {ProviderId.OPENAI: YieldingProvider([valid_response])},
            context_max_entries=1,
        )

        async def overlapping() -> list:
            return await asyncio.gather(
                service.generate(portfolio, use_cache=False),
                service.generate(portfolio, use_cache=False),
            )

        outcomes = asyncio.run(overlapping())

        assert all(outcome.history_id for outcome in outcomes)
        assert service.metrics()["failed_generations"] == 0
        assert len(service.contexts) == 1
        surviving = [o for o in outcomes if service.get_context(o.context_id) is not None]
        assert len(surviving) == 1
        assert surviving[0].portfolio.metadata.tokens_used == 500


class TestCache:
    def test_identical_requests_hit_cache_without_vendor_calls(
        self, make_service, scripted, portfolio, valid_response
    ) -> None:
        adapter = scripted([valid_response])
        service = make_service({ProviderId.OPENAI: adapter})
        options = GenerationOptions(provider="openai", style="dark")

        first = _generate(service, portfolio, options)
        second = _generate(service, portfolio, GenerationOptions(provider="openai", style="dark"))

        assert len(adapter.calls) == 1
        assert second.from_cache is True
        assert second.portfolio.html == first.portfolio.html
        assert second.portfolio.css == first.portfolio.css
        assert second.portfolio.js == first.portfolio.js
        assert second.download_filename == first.download_filename
        assert service.metrics()["cache_hits"] == 1
        assert service.cache_stats()["hits"] == 1

    def test_cache_hit_emits_initializing_then_complete(
        self, make_service, scripted, portfolio, valid_response
    ) -> None:
        service = make_service({ProviderId.OPENAI: scripted([valid_response])})
        _generate(service, portfolio)
        events: list[ProgressEvent] = []

        _generate(service, portfolio, on_progress=events.append)

        assert [e.stage for e in events] == ["initializing", "complete"]

    def test_different_content_with_same_key_is_served_from_cache(
        self, make_service, scripted, portfolio, valid_response
    ) -> None:
        """Only name, about text, project count and provider/style/model form the key."""
        adapter = scripted([valid_response])
        service = make_service({ProviderId.OPENAI: adapter})
        _generate(service, portfolio)

        changed = portfolio.model_copy(update={"education": [], "achievements": []})
        outcome = _generate(service, changed)

        assert outcome.from_cache is True
        assert len(adapter.calls) == 1

    def test_use_cache_false_and_clear_cache_force_new_calls(
        self, make_service, scripted, portfolio, valid_response
    ) -> None:
        adapter = scripted([valid_response])
        service = make_service({ProviderId.OPENAI: adapter})
        _generate(service, portfolio)

        _generate(service, portfolio, use_cache=False)
        assert len(adapter.calls) == 2

        assert service.clear_cache() == 1
        _generate(service, portfolio)
        assert len(adapter.calls) == 3


class TestRetry:
    def test_two_failures_then_success_takes_three_attempts(
        self, make_service, scripted, portfolio, valid_response, sleeps
    ) -> None:
        adapter = scripted([LLMError("first"), LLMError("second"), valid_response])
        service = make_service({ProviderId.OPENAI: adapter})

        outcome = _generate(service, portfolio)

        assert len(adapter.calls) == 3
        assert sleeps == [1.0, 2.0]
        assert service.list_history()[0].metrics["attempts"] == 3
        assert outcome.portfolio.metadata.used_fallback_content is False

    def test_backoff_scales_with_base_delay(
        self, make_service, scripted, portfolio, valid_response, sleeps
    ) -> None:
        adapter = scripted([LLMError("first"), LLMError("second"), valid_response])
        service = make_service({ProviderId.OPENAI: adapter}, retry_base_delay=0.5)

        _generate(service, portfolio)

        assert sleeps == [0.5, 1.0]

    def test_exhausted_retries_raise_last_error(self, make_service, scripted, portfolio) -> None:
        adapter = scripted([LLMError("vendor down")])
        service = make_service({ProviderId.OPENAI: adapter})

        with pytest.raises(LLMError, match="vendor down"):
            _generate(service, portfolio)

        assert len(adapter.calls) == 3
        metrics = service.metrics()
        assert metrics["failed_generations"] == 1
        assert metrics["successful_generations"] == 0
        assert service.provider_health()["openai"]["success_rate"] == 0.0
        assert len(service.list_history()) == 0

    def test_configuration_errors_are_not_retried(self, make_service, scripted, portfolio, sleeps) -> None:
        adapter = scripted([ProviderConfigurationError("no client")])
        service = make_service({ProviderId.OPENAI: adapter})

        with pytest.raises(ProviderConfigurationError):
            _generate(service, portfolio)

        assert len(adapter.calls) == 1
        assert sleeps == []

    def test_slow_vendor_times_out(self, make_service, scripted, portfolio) -> None:
        class SlowProvider(scripted):
            async def generate(self, messages, options):
                await asyncio.sleep(5)
                return await super().generate(messages, options)

        service = make_service(
            {ProviderId.OPENAI: SlowProvider(["{}"])},
            request_timeout=0.01,
            retry_attempts=1,
        )

        with pytest.raises(LLMError, match="did not respond"):
            _generate(service, portfolio)


class TestProviderSelection:
    def test_unconfigured_provider_falls_back(
        self, make_service, scripted, portfolio, valid_response
    ) -> None:
        service = make_service({ProviderId.OPENAI: scripted([valid_response])})

        outcome = _generate(service, portfolio, GenerationOptions(provider="gemini"))

        assert outcome.portfolio.metadata.provider == "openai"

    def test_model_for_other_provider_is_dropped_on_fallback(
        self, make_service, scripted, portfolio, valid_response
    ) -> None:
        adapter = scripted([valid_response])
        service = make_service({ProviderId.OPENAI: adapter})

        _generate(service, portfolio, GenerationOptions(provider="gemini", model="gemini-1.5-pro"))

        assert adapter.calls[0][1]["model"] is None

    def test_rate_limited_provider_falls_back_in_registration_order(
        self, make_service, scripted, portfolio, valid_response, clock
    ) -> None:
        limiter = RateLimiter(clock=clock)
        service = make_service(
            {
                ProviderId.OPENAI: scripted([valid_response]),
                ProviderId.ANTHROPIC: scripted([valid_response]),
                ProviderId.DEEPSEEK: scripted([valid_response]),
            },
            rate_limiter=limiter,
        )
        limiter.record_usage("openai", 30_000)

        outcome = _generate(service, portfolio, GenerationOptions(provider="openai"))

        assert outcome.portfolio.metadata.provider == "anthropic"

    def test_no_configured_provider_raises(self, make_service, portfolio) -> None:
        service = make_service({})

        with pytest.raises(NoProviderAvailableError):
            _generate(service, portfolio)
        assert service.metrics()["failed_generations"] == 1

    def test_all_providers_rate_limited_raises(self, make_service, scripted, portfolio, clock) -> None:
        limiter = RateLimiter(clock=clock)
        adapter = scripted(["{}"])
        service = make_service({ProviderId.GEMINI: adapter}, rate_limiter=limiter)
        limiter.record_usage("gemini", 32_000)

        with pytest.raises(NoProviderAvailableError):
            _generate(service, portfolio, GenerationOptions(provider="gemini"))
        assert adapter.calls == []


class TestRegenerate:
    def test_regenerate_applies_overrides_and_bypasses_cache(
        self, make_service, scripted, portfolio, valid_response
    ) -> None:
        adapter = scripted([valid_response])
        service = make_service({ProviderId.OPENAI: adapter})
        first = _generate(service, portfolio)

        outcome = asyncio.run(service.regenerate(first.history_id, {"style": "dark"}))

        assert len(adapter.calls) == 2
        assert outcome.from_cache is False
        assert outcome.portfolio.metadata.style == "dark"
        assert outcome.history_id != first.history_id
        assert len(service.list_history()) == 2

    def test_regenerate_without_overrides_still_calls_vendor(
        self, make_service, scripted, portfolio, valid_response
    ) -> None:
        adapter = scripted([valid_response])
        service = make_service({ProviderId.OPENAI: adapter})
        first = _generate(service, portfolio)

        asyncio.run(service.regenerate(first.history_id))

        assert len(adapter.calls) == 2

    def test_regenerate_with_data_overrides(
        self, make_service, scripted, portfolio, valid_response
    ) -> None:
        service = make_service({ProviderId.OPENAI: scripted([valid_response])})
        first = _generate(service, portfolio)

        asyncio.run(service.regenerate(first.history_id, data_overrides={"aboutMe": "New bio"}))

        assert service.list_history()[0].portfolio_data.about_me == "New bio"

    def test_unknown_history_id(self, make_service, scripted, valid_response) -> None:
        service = make_service({ProviderId.OPENAI: scripted([valid_response])})

        with pytest.raises(HistoryNotFoundError):
            asyncio.run(service.regenerate("missing"))


class TestViews:
    def test_estimate_cost_defaults_to_first_available(self, make_service, scripted, portfolio) -> None:
        service = make_service({ProviderId.GEMINI: scripted(["{}"])})

        assert service.estimate_cost(portfolio).provider == "gemini"
        assert service.estimate_cost(portfolio, provider="openai").estimated_cost == pytest.approx(0.061)
        with pytest.raises(ValueError):
            service.estimate_cost(portfolio, provider="nope")

    def test_provider_status_and_recommendations(self, make_service, scripted, portfolio) -> None:
        service = make_service({ProviderId.OPENAI: scripted(["{}"])})

        status = service.provider_status("openai")
        assert status["provider"] == "openai"
        assert status["available"] is True
        with pytest.raises(ValueError):
            service.provider_status("nope")

        assert [r["provider"] for r in service.recommendations(portfolio, "cost")] == ["openai"]
        with pytest.raises(ValueError):
            service.recommendations(portfolio, "vibes")

    def test_metrics_count_generations(self, make_service, scripted, portfolio, valid_response) -> None:
        service = make_service({ProviderId.OPENAI: scripted([valid_response])})
        _generate(service, portfolio)
        _generate(service, portfolio)

        metrics = service.metrics()

        assert metrics["total_generations"] == 2
        assert metrics["successful_generations"] == 1
        assert metrics["cache_hits"] == 1
        assert metrics["history_size"] == 1
        assert metrics["active_contexts"] == 1
        assert metrics["average_duration_ms"] >= 0

    def test_sweep_runs_cleanly(self, make_service) -> None:
        make_service({}).sweep()


def test_service_singleton_reads_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("OLLAMA_HOST", "http://localhost:11434")

    service = get_generation_service()

    assert service is get_generation_service()
    assert service.registry.available_ids() == [ProviderId.OLLAMA]

from __future__ import annotations

import json
from collections.abc import Callable, Iterable, Sequence
from pathlib import Path
from typing import Any

import pytest
from fastapi.testclient import TestClient

import portfolio_generator.services.generation as generation_module
from portfolio_generator.api.main import app
from portfolio_generator.config import GeneratorSettings
from portfolio_generator.models.generation import ChatMessage, GenerationResult
from portfolio_generator.models.portfolio import PortfolioData
from portfolio_generator.services.generation import GenerationService
from portfolio_generator.services.llm_providers import LLMProvider
from portfolio_generator.services.provider_registry import (
    PROVIDER_CONFIGS,
    ProviderId,
    ProviderRegistry,
)
from portfolio_generator.services.rate_limiter import RateLimiter

VALID_RESPONSE = json.dumps(
    {
        "enhancedAbout": "Ada builds reliable web platforms and mentors junior engineers.",
        "tagline": "Full-Stack Engineer",
        "metaDescription": "Portfolio of Ada Lovelace, full-stack engineer.",
        "colorScheme": {"primary": "#111111", "secondary": "#222222", "accent": "#333333"},
        "enhancedProjects": [
            {
                "name": "Analytical Engine",
                "description": "A mechanical general-purpose computer, reimagined for the web.",
                "highlights": ["Designed the instruction set", "Wrote the first program"],
            }
        ],
    }
)


class ScriptedProvider(LLMProvider):
    """Adapter that replays scripted responses; exceptions in the script are raised."""

    name = "scripted"

    def __init__(self, responses: Iterable[str | Exception], default_model: str = "scripted-model") -> None:
        super().__init__(default_model)
        self.responses = list(responses)
        self.calls: list[tuple[list[ChatMessage], dict[str, Any]]] = []

    async def generate(
        self,
        messages: Sequence[ChatMessage],
        options: dict[str, Any],
    ) -> GenerationResult:
        self.calls.append((list(messages), dict(options)))
        # The last scripted item repeats forever.
        item = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(item, Exception):
            raise item
        return GenerationResult(content=item, tokens_used=500, model=self.resolve_model(options))


class FakeClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Point storage at tmp_path, drop provider credentials and reset the service."""
    for config in PROVIDER_CONFIGS:
        monkeypatch.delenv(config.credential_env, raising=False)
    monkeypatch.setenv("PORTFOLIO_DATA_DIR", (tmp_path / "data").as_posix())
    monkeypatch.setenv("PORTFOLIO_OUTPUT_DIR", (tmp_path / "output").as_posix())
    generation_module._service = None
    yield
    generation_module._service = None


@pytest.fixture
def portfolio_payload() -> dict[str, Any]:
    """Wizard payload: 2 projects (3 + 2 tags), 1 education, 2 social links, 120-char bio."""
    return {
        "personalInfo": {
            "name": "Ada Lovelace",
            "age": "36",
            "location": "London",
            "email": "ada@example.com",
            "phone": "",
        },
        "aboutMe": "x" * 120,
        "education": [
            {
                "id": "edu-1",
                "institution": "University of London",
                "degree": "BSc",
                "field": "Mathematics",
                "startYear": "1832",
                "endYear": "1835",
            }
        ],
        "projects": [
            {
                "id": "p-1",
                "name": "Analytical Engine",
                "description": "Mechanical computer.",
                "technologies": ["Python", "FastAPI", "Jinja2"],
                "githubUrl": "https://github.com/ada/engine",
                "liveUrl": "",
            },
            {
                "id": "p-2",
                "name": "Bernoulli Numbers",
                "description": "First published algorithm.",
                "technologies": ["Math", "Notes"],
            },
        ],
        "achievements": [],
        "socialLinks": {
            "github": "https://github.com/ada",
            "linkedin": "https://linkedin.com/in/ada",
            "twitter": "",
        },
        "generatedAt": "2024-01-01T00:00:00+00:00",
    }


@pytest.fixture
def portfolio(portfolio_payload: dict[str, Any]) -> PortfolioData:
    return PortfolioData.model_validate(portfolio_payload)


@pytest.fixture
def sleeps() -> list[float]:
    return []


@pytest.fixture
def make_service(tmp_path: Path, sleeps: list[float]) -> Callable[..., GenerationService]:
    """Build a service over scripted adapters with zero jitter and recorded sleeps."""

    def factory(
        adapters: dict[ProviderId, LLMProvider],
        rate_limiter: RateLimiter | None = None,
        **overrides: Any,
    ) -> GenerationService:
        settings = GeneratorSettings(
            data_dir=tmp_path / "data",
            output_dir=tmp_path / "output",
            **{"retry_jitter": 0.0, **overrides},
        )

        async def record_sleep(seconds: float) -> None:
            sleeps.append(seconds)

        registry = ProviderRegistry(adapters, rate_limiter=rate_limiter)
        return GenerationService(registry, settings, sleep=record_sleep)

    return factory


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Mark tests in API test files so they can be selected with ``-m api``."""
    for item in items:
        test_file_path = Path(str(item.fspath))
        if "api" in test_file_path.stem.lower():
            item.add_marker(pytest.mark.api)


@pytest.fixture
def valid_response() -> str:
    return VALID_RESPONSE


@pytest.fixture
def scripted() -> type[ScriptedProvider]:
    return ScriptedProvider


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def api_service(make_service: Callable[..., GenerationService]) -> GenerationService:
    """Install a scripted OpenAI-backed service as the process-wide service."""
    service = make_service({ProviderId.OPENAI: ScriptedProvider([VALID_RESPONSE])})
    generation_module._service = service
    return service


@pytest.fixture
def client(api_service: GenerationService) -> TestClient:
    """Test client bound to ``api_service``."""
    return TestClient(app)

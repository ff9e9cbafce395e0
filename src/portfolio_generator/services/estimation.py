"""Complexity scoring, cost estimation and provider recommendations.

All functions here are pure: they depend only on the portfolio data and the
static provider table, never on live usage.
"""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass
from typing import TYPE_CHECKING, Any, Literal

from portfolio_generator.models.portfolio import PortfolioData

if TYPE_CHECKING:
    from portfolio_generator.services.provider_registry import ProviderConfig, ProviderRegistry

__all__ = [
    "BASE_INPUT_TOKENS",
    "COST_CONFIDENCE",
    "DEFAULT_MAX_OUTPUT_TOKENS",
    "CostEstimate",
    "complexity_score",
    "estimate_cost",
    "estimated_request_tokens",
    "recommend_providers",
]

BASE_INPUT_TOKENS = 1000
TOKENS_PER_COMPLEXITY_POINT = 200
DEFAULT_MAX_OUTPUT_TOKENS = 3000
COST_CONFIDENCE = 0.8

Priority = Literal["balanced", "cost", "quality", "speed"]


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def complexity_score(data: PortfolioData) -> int:
    """Heuristic size of a portfolio, used as a proxy for prompt/response tokens."""
    projects = len(data.projects)
    tech_tags = sum(len(p.technologies) for p in data.projects)
    education = len(data.education)
    achievements = len(data.achievements)
    social_links = len(data.social_links.present())
    bio_factor = min(len(data.about_me) / 100, 5)

    score = (
        1
        + 2 * projects
        + 0.5 * tech_tags
        + education
        + 1.5 * achievements
        + 0.5 * social_links
        + bio_factor
    )
    return _round_half_up(score)


@dataclass(frozen=True)
class CostEstimate:
    provider: str
    model: str
    complexity_score: int
    input_tokens: int
    output_tokens: int
    estimated_cost: float
    confidence: float = COST_CONFIDENCE
    currency: str = "USD"

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["total_tokens"] = self.total_tokens
        return data


def estimated_request_tokens(data: PortfolioData, max_tokens: int | None = None) -> int:
    """Input plus output token estimate used for rate-limit checks."""
    complexity = complexity_score(data)
    output = min(max_tokens or DEFAULT_MAX_OUTPUT_TOKENS, DEFAULT_MAX_OUTPUT_TOKENS)
    return BASE_INPUT_TOKENS + complexity * TOKENS_PER_COMPLEXITY_POINT + output


def estimate_cost(
    data: PortfolioData,
    config: ProviderConfig,
    model: str | None = None,
    max_tokens: int | None = None,
) -> CostEstimate:
    """Estimate the cost of one generation with *config*'s provider.

    Unpriced (local) providers cost nothing. The figure is never reconciled
    with billed usage.
    """
    complexity = complexity_score(data)
    input_tokens = BASE_INPUT_TOKENS + complexity * TOKENS_PER_COMPLEXITY_POINT
    output_tokens = min(max_tokens or DEFAULT_MAX_OUTPUT_TOKENS, DEFAULT_MAX_OUTPUT_TOKENS)

    cost = 0.0
    if config.pricing is not None:
        cost = (input_tokens / 1000) * config.pricing.input_per_1k + (
            output_tokens / 1000
        ) * config.pricing.output_per_1k

    return CostEstimate(
        provider=config.id.value,
        model=model or config.default_model,
        complexity_score=complexity,
        input_tokens=input_tokens,
        output_tokens=output_tokens,
        estimated_cost=round(cost, 6),
    )


def _reason(config: ProviderConfig, estimate: CostEstimate, priority: Priority) -> str:
    if priority == "cost":
        if config.pricing is None:
            return "Runs locally with no per-token cost"
        return f"Estimated ${estimate.estimated_cost:.4f} for this portfolio"
    if priority == "quality":
        return f"{config.reliability:.0%} reliability with {', '.join(config.capabilities)}"
    if priority == "speed":
        return f"Typical latency around {config.latency_ms / 1000:.1f}s"
    return (
        f"{config.reliability:.0%} reliability, ~{config.latency_ms / 1000:.1f}s latency, "
        f"${estimate.estimated_cost:.4f} estimated"
    )


def recommend_providers(
    data: PortfolioData,
    registry: ProviderRegistry,
    priority: Priority = "balanced",
    max_tokens: int | None = None,
) -> list[dict[str, Any]]:
    """Rank the available providers for *data* by *priority*."""
    candidates = []
    for provider_id in registry.available_ids():
        config = registry.get_config(provider_id)
        estimate = estimate_cost(data, config, max_tokens=max_tokens)
        candidates.append((config, estimate))

    def sort_key(item: tuple[ProviderConfig, CostEstimate]) -> float:
        config, estimate = item
        if priority == "cost":
            return estimate.estimated_cost
        if priority == "quality":
            return -config.reliability
        if priority == "speed":
            return config.latency_ms
        return -(config.reliability * 100 - config.latency_ms / 1000 - estimate.estimated_cost * 100)

    # sorted() is stable, so ties keep registration order.
    ranked = sorted(candidates, key=sort_key)
    return [
        {
            "rank": rank,
            "provider": config.id.value,
            "display_name": config.display_name,
            "model": estimate.model,
            "estimated_cost": estimate.estimated_cost,
            "latency_ms": config.latency_ms,
            "reliability": config.reliability,
            "reason": _reason(config, estimate, priority),
        }
        for rank, (config, estimate) in enumerate(ranked, start=1)
    ]

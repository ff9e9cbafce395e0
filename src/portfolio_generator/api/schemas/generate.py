"""Pydantic schemas for the generation endpoints."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import Field

from portfolio_generator.models.generation import GeneratedPortfolio
from portfolio_generator.models.portfolio import CamelModel, PortfolioData


class GenerateResponse(CamelModel):
    """Result of a successful generation."""

    success: bool = True
    message: str = "Portfolio generated successfully"
    portfolio: GeneratedPortfolio
    download_url: str | None = Field(default=None, description="Relative URL of the ZIP archive")
    context_id: str | None = None
    history_id: str | None = None
    from_cache: bool = False


class EstimateCostRequest(CamelModel):
    portfolio_data: PortfolioData
    provider: str | None = None
    model: str | None = None
    max_tokens: int | None = Field(default=None, gt=0)


class CostEstimateResponse(CamelModel):
    provider: str
    model: str
    complexity_score: int
    input_tokens: int
    output_tokens: int
    total_tokens: int
    estimated_cost: float = Field(description="Estimated USD cost, never reconciled with billing")
    confidence: float
    currency: str


class RecommendationRequest(CamelModel):
    portfolio_data: PortfolioData
    priority: Literal["balanced", "cost", "quality", "speed"] = "balanced"


class Recommendation(CamelModel):
    rank: int
    provider: str
    display_name: str
    model: str
    estimated_cost: float
    latency_ms: int
    reliability: float
    reason: str


class RecommendationsResponse(CamelModel):
    priority: str
    recommendations: list[Recommendation]


class RegenerateRequest(CamelModel):
    """Option overrides (and optional partial data overrides) for a replay."""

    provider: str | None = None
    style: str | None = None
    model: str | None = None
    temperature: float | None = Field(default=None, ge=0, le=2)
    max_tokens: int | None = Field(default=None, gt=0)
    portfolio_data: dict[str, Any] | None = Field(
        default=None,
        description="Top-level camelCase portfolio fields replacing the recorded ones",
    )


class PricingSchema(CamelModel):
    # to_camel would yield "inputPer1K".
    input_per_1k: float = Field(alias="inputPer1k")
    output_per_1k: float = Field(alias="outputPer1k")


class ProviderConfigSchema(CamelModel):
    id: str
    display_name: str
    description: str
    default_model: str
    supported_models: list[str]
    max_tokens: int
    supports_streaming: bool
    requests_per_minute: int
    tokens_per_minute: int
    pricing: PricingSchema | None = Field(default=None, description="USD per 1K tokens; null for local models")
    capabilities: list[str]
    latency_ms: int
    reliability: float


class ProviderInfo(CamelModel):
    id: str
    config: ProviderConfigSchema
    available: bool


class ProvidersResponse(CamelModel):
    providers: list[ProviderInfo]


class RateLimitStatus(CamelModel):
    requests_used: int
    requests_limit: int | None
    requests_remaining: int | None
    tokens_used: int
    tokens_limit: int | None
    tokens_remaining: int | None
    resets_in_seconds: float


class ProviderStatusResponse(CamelModel):
    provider: str
    available: bool
    rate_limit_status: RateLimitStatus


class ProviderHealth(CamelModel):
    available: bool
    calls: int
    success_rate: float | None
    mean_latency_ms: float | None


class HistoryEntry(CamelModel):
    id: str
    timestamp: str
    name: str
    provider: str
    style: str
    model: str | None
    cost: dict[str, Any]
    metrics: dict[str, Any]


class HistoryResponse(CamelModel):
    history: list[HistoryEntry]
    total: int


class CacheStatsResponse(CamelModel):
    size: int
    max_size: int
    hits: int
    misses: int
    hit_rate: float


class CacheClearResponse(CamelModel):
    message: str = "Cache cleared"
    cleared: int


class MetricsResponse(CamelModel):
    total_generations: int
    successful_generations: int
    failed_generations: int
    cache_hits: int
    average_duration_ms: float
    cache: CacheStatsResponse
    history_size: int
    active_contexts: int


class ContextMessage(CamelModel):
    role: str
    content: str


class ContextResponse(CamelModel):
    id: str
    messages: list[ContextMessage]
    total_tokens: int
    created_at: str
    updated_at: str


class StyleInfo(CamelModel):
    name: str
    display_name: str
    description: str


class StylesResponse(CamelModel):
    styles: list[StyleInfo]


class PreviewRequest(CamelModel):
    style: str = "minimal"


class PreviewResponse(CamelModel):
    html: str
    css: str
    style: str


class ArchiveInfo(CamelModel):
    filename: str
    url: str
    created_at: str
    size: int


class ArchiveListResponse(CamelModel):
    portfolios: list[ArchiveInfo]

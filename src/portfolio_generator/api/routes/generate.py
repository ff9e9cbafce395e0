"""Portfolio generation routes for the API."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncIterator
from typing import Annotated, Any

from fastapi import APIRouter, HTTPException, Query, status
from fastapi.responses import FileResponse, StreamingResponse

from portfolio_generator.api.dependencies import ServiceDep
from portfolio_generator.api.schemas.generate import (
    ArchiveInfo,
    ArchiveListResponse,
    CacheClearResponse,
    CacheStatsResponse,
    ContextResponse,
    CostEstimateResponse,
    EstimateCostRequest,
    GenerateResponse,
    HistoryEntry,
    HistoryResponse,
    MetricsResponse,
    PreviewRequest,
    PreviewResponse,
    ProviderHealth,
    ProviderInfo,
    ProvidersResponse,
    ProviderStatusResponse,
    Recommendation,
    RecommendationRequest,
    RecommendationsResponse,
    RegenerateRequest,
    StyleInfo,
    StylesResponse,
)
from portfolio_generator.models.generation import DEFAULT_STYLE, GenerationOptions
from portfolio_generator.models.portfolio import PortfolioData
from portfolio_generator.services.generation import (
    GenerationOutcome,
    GenerationService,
    HistoryNotFoundError,
)
from portfolio_generator.services.progress import ProgressEvent
from portfolio_generator.templates import list_styles, render_preview
from portfolio_generator.utils.packaging import list_archives, resolve_archive_path

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/generate", tags=["generate"])

ProviderQuery = Annotated[str | None, Query(description="Preferred LLM provider id")]
StyleQuery = Annotated[str, Query(description="Template style; unknown styles fall back to minimal")]
ModelQuery = Annotated[str | None, Query(description="Model override for the chosen provider")]
TemperatureQuery = Annotated[float | None, Query(ge=0, le=2)]
MaxTokensQuery = Annotated[int | None, Query(alias="maxTokens", gt=0)]
ContextQuery = Annotated[str | None, Query(alias="contextId", description="Conversation context to continue")]
UseCacheQuery = Annotated[bool, Query(alias="useCache")]


def _generate_response(outcome: GenerationOutcome) -> GenerateResponse:
    return GenerateResponse(
        portfolio=outcome.portfolio,
        download_url=outcome.download_url,
        context_id=outcome.context_id,
        history_id=outcome.history_id,
        from_cache=outcome.from_cache,
    )


def _sse_frame(event_type: str, data: Any) -> str:
    return f"data: {json.dumps({'type': event_type, 'data': data})}\n\n"


def _progress_payload(event: ProgressEvent) -> dict[str, Any]:
    return {
        "stage": event.stage,
        "progress": event.progress,
        "requestId": event.request_id,
        "detail": event.detail,
    }


def _stream_generation(
    service: GenerationService,
    data: PortfolioData,
    options: GenerationOptions,
    context_id: str | None,
    use_cache: bool,
) -> StreamingResponse:
    """Run a generation in the background and relay its progress as SSE frames."""

    async def event_stream() -> AsyncIterator[str]:
        queue: asyncio.Queue[str | None] = asyncio.Queue()

        def on_progress(event: ProgressEvent) -> None:
            queue.put_nowait(_sse_frame("progress", _progress_payload(event)))

        async def run() -> None:
            try:
                outcome = await service.generate(
                    data,
                    options,
                    on_progress=on_progress,
                    context_id=context_id,
                    use_cache=use_cache,
                )
                payload = _generate_response(outcome).model_dump(by_alias=True, mode="json")
                queue.put_nowait(_sse_frame("complete", payload))
            except Exception as e:
                logger.exception("Streaming generation failed")
                queue.put_nowait(_sse_frame("error", {"error": type(e).__name__, "message": str(e)}))
            finally:
                queue.put_nowait(None)

        task = asyncio.create_task(run())
        try:
            while True:
                frame = await queue.get()
                if frame is None:
                    break
                yield frame
        finally:
            if not task.done():
                task.cancel()

    return StreamingResponse(
        event_stream(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


@router.post(
    "",
    response_model=GenerateResponse,
    summary="Generate a portfolio site",
    description=(
        "Generate HTML/CSS/JS for the posted portfolio data and package it as a ZIP. "
        "Pass streaming=true to receive progress as server-sent events instead."
    ),
)
async def generate_portfolio(
    data: PortfolioData,
    service: ServiceDep,
    provider: ProviderQuery = None,
    style: StyleQuery = DEFAULT_STYLE,
    model: ModelQuery = None,
    temperature: TemperatureQuery = None,
    max_tokens: MaxTokensQuery = None,
    context_id: ContextQuery = None,
    use_cache: UseCacheQuery = True,
    streaming: bool = False,
) -> GenerateResponse | StreamingResponse:
    """Generate a portfolio, optionally streaming progress."""
    options = GenerationOptions(
        provider=provider,
        style=style,
        model=model,
        temperature=temperature,
        max_tokens=max_tokens,
    )
    if streaming:
        return _stream_generation(service, data, options, context_id, use_cache)
    outcome = await service.generate(data, options, context_id=context_id, use_cache=use_cache)
    return _generate_response(outcome)


@router.post(
    "/stream",
    summary="Generate a portfolio with streamed progress",
    description='Server-sent events: data: {"type": "progress" | "complete" | "error", "data": ...}',
)
async def generate_portfolio_stream(
    data: PortfolioData,
    service: ServiceDep,
    provider: ProviderQuery = None,
    style: StyleQuery = DEFAULT_STYLE,
    model: ModelQuery = None,
    temperature: TemperatureQuery = None,
    max_tokens: MaxTokensQuery = None,
    context_id: ContextQuery = None,
    use_cache: UseCacheQuery = True,
) -> StreamingResponse:
    options = GenerationOptions(
        provider=provider,
        style=style,
        model=model,
        temperature=temperature,
        max_tokens=max_tokens,
    )
    return _stream_generation(service, data, options, context_id, use_cache)


@router.get("/providers", response_model=ProvidersResponse, summary="List LLM providers")
def list_providers(service: ServiceDep) -> ProvidersResponse:
    """Every known provider with its configuration and availability."""
    return ProvidersResponse(
        providers=[ProviderInfo.model_validate(entry) for entry in service.list_providers()]
    )


@router.get(
    "/providers/health",
    response_model=dict[str, ProviderHealth],
    summary="Provider health",
    description="Rolling success rate and latency of recent calls per provider.",
)
def providers_health(service: ServiceDep) -> dict[str, ProviderHealth]:
    return {
        provider: ProviderHealth.model_validate(stats)
        for provider, stats in service.provider_health().items()
    }


@router.get(
    "/providers/{provider_id}/status",
    response_model=ProviderStatusResponse,
    summary="Provider availability and rate-limit status",
)
def provider_status(provider_id: str, service: ServiceDep) -> ProviderStatusResponse:
    try:
        return ProviderStatusResponse.model_validate(service.provider_status(provider_id))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e


@router.post("/estimate-cost", response_model=CostEstimateResponse, summary="Estimate generation cost")
def estimate_cost(request: EstimateCostRequest, service: ServiceDep) -> CostEstimateResponse:
    try:
        estimate = service.estimate_cost(
            request.portfolio_data,
            provider=request.provider,
            model=request.model,
            max_tokens=request.max_tokens,
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e
    return CostEstimateResponse.model_validate(estimate.to_dict())


@router.post(
    "/recommendations",
    response_model=RecommendationsResponse,
    summary="Recommend providers",
    description="Rank the configured providers by cost, quality, speed or a balance of all three.",
)
def recommendations(request: RecommendationRequest, service: ServiceDep) -> RecommendationsResponse:
    ranked = service.recommendations(request.portfolio_data, request.priority)
    return RecommendationsResponse(
        priority=request.priority,
        recommendations=[Recommendation.model_validate(item) for item in ranked],
    )


@router.get("/history", response_model=HistoryResponse, summary="Recent generations, newest first")
def history(service: ServiceDep) -> HistoryResponse:
    records = service.list_history()
    return HistoryResponse(
        history=[HistoryEntry.model_validate(record.summary()) for record in records],
        total=len(records),
    )


@router.post(
    "/history/{history_id}/regenerate",
    response_model=GenerateResponse,
    summary="Regenerate from history",
    description="Replay a recorded generation with overrides. The cache is bypassed.",
)
async def regenerate(
    history_id: str,
    service: ServiceDep,
    request: RegenerateRequest | None = None,
) -> GenerateResponse:
    request = request or RegenerateRequest()
    overrides = request.model_dump(exclude={"portfolio_data"}, exclude_none=True)
    try:
        outcome = await service.regenerate(history_id, overrides, data_overrides=request.portfolio_data)
    except HistoryNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e
    return _generate_response(outcome)


@router.post("/cache/clear", response_model=CacheClearResponse, summary="Clear the generation cache")
def clear_cache(service: ServiceDep) -> CacheClearResponse:
    return CacheClearResponse(cleared=service.clear_cache())


@router.get("/cache/stats", response_model=CacheStatsResponse, summary="Generation cache statistics")
def cache_stats(service: ServiceDep) -> CacheStatsResponse:
    return CacheStatsResponse.model_validate(service.cache_stats())


@router.get("/metrics", response_model=MetricsResponse, summary="Generation metrics")
def metrics(service: ServiceDep) -> MetricsResponse:
    return MetricsResponse.model_validate(service.metrics())


@router.get("/contexts/{context_id}", response_model=ContextResponse, summary="Conversation context")
def get_context(context_id: str, service: ServiceDep) -> ContextResponse:
    context = service.get_context(context_id)
    if context is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Context {context_id} not found or expired",
        )
    return ContextResponse.model_validate(context.to_dict())


@router.get("/styles", response_model=StylesResponse, summary="Available template styles")
def styles() -> StylesResponse:
    return StylesResponse(styles=[StyleInfo.model_validate(style) for style in list_styles()])


@router.post("/preview", response_model=PreviewResponse, summary="Preview a style with sample data")
def preview(request: PreviewRequest | None = None) -> PreviewResponse:
    request = request or PreviewRequest()
    return PreviewResponse.model_validate(render_preview(request.style))


@router.get("/list", response_model=ArchiveListResponse, summary="Generated archives")
def list_generated(service: ServiceDep) -> ArchiveListResponse:
    return ArchiveListResponse(
        portfolios=[
            ArchiveInfo(url=f"/api/generate/download/{entry['filename']}", **entry)
            for entry in list_archives(service.settings.output_dir)
        ]
    )


@router.get(
    "/download/{filename}",
    response_class=FileResponse,
    summary="Download a generated archive",
)
def download(filename: str, service: ServiceDep) -> FileResponse:
    path = resolve_archive_path(service.settings.output_dir, filename)
    if path is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Portfolio not found")
    return FileResponse(path, media_type="application/zip", filename=path.name)

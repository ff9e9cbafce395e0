"""FastAPI application entry point for the Portfolio Generator API."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import os
import time
from contextlib import asynccontextmanager
from http import HTTPStatus
from typing import TYPE_CHECKING, Any

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from portfolio_generator.api.routes import generate, health, portfolio
from portfolio_generator.config import GeneratorSettings
from portfolio_generator.services.generation import (
    GenerationError,
    GenerationService,
    HistoryNotFoundError,
    NoProviderAvailableError,
    get_generation_service,
)
from portfolio_generator.services.llm_providers import LLMError
from portfolio_generator.services.portfolio_store import InvalidPortfolioError, PortfolioNotFoundError

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Awaitable, Callable

    from starlette.responses import Response

logger = logging.getLogger(__name__)


async def _sweep_periodically(service: GenerationService, interval: float) -> None:
    while True:
        await asyncio.sleep(interval)
        service.sweep()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Prepare storage directories and run the periodic store sweep."""
    service = get_generation_service()
    service.settings.data_dir.mkdir(parents=True, exist_ok=True)
    service.settings.output_dir.mkdir(parents=True, exist_ok=True)
    sweeper = asyncio.create_task(
        _sweep_periodically(service, service.settings.rate_limit_sweep_interval)
    )
    try:
        yield
    finally:
        sweeper.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await sweeper


app = FastAPI(
    title="Portfolio Generator API",
    description="API for generating AI-enhanced portfolio websites from structured profile data",
    version=health.API_VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(
    request: Request,
    call_next: Callable[[Request], Awaitable[Response]],
) -> Response:
    started = time.perf_counter()
    response = await call_next(request)
    logger.info(
        "%s %s %d %.1fms",
        request.method,
        request.url.path,
        response.status_code,
        (time.perf_counter() - started) * 1000,
    )
    return response


def _error_response(status_code: int, error: str, message: str, **extra: Any) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": error, "message": message, **extra})


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    response = _error_response(exc.status_code, HTTPStatus(exc.status_code).phrase, str(exc.detail))
    if exc.headers:
        response.headers.update(exc.headers)
    return response


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    first = errors[0] if errors else {}
    location = ".".join(str(part) for part in first.get("loc", ()))
    message = f"{location}: {first.get('msg', 'invalid value')}" if location else "Invalid request"
    return _error_response(422, "Validation failed", message, details=jsonable_encoder(errors))


@app.exception_handler(NoProviderAvailableError)
async def no_provider_handler(request: Request, exc: NoProviderAvailableError) -> JSONResponse:
    logger.warning("No provider available: %s", exc)
    return _error_response(503, "No provider available", str(exc))


@app.exception_handler(LLMError)
async def llm_error_handler(request: Request, exc: LLMError) -> JSONResponse:
    logger.error("LLM failure on %s: %s", request.url.path, exc)
    return _error_response(500, "Failed to generate portfolio", str(exc))


@app.exception_handler(HistoryNotFoundError)
async def history_not_found_handler(request: Request, exc: HistoryNotFoundError) -> JSONResponse:
    return _error_response(404, "Not Found", str(exc))


@app.exception_handler(GenerationError)
async def generation_error_handler(request: Request, exc: GenerationError) -> JSONResponse:
    logger.error("Generation failure on %s: %s", request.url.path, exc)
    return _error_response(500, "Failed to generate portfolio", str(exc))


@app.exception_handler(PortfolioNotFoundError)
async def portfolio_not_found_handler(request: Request, exc: PortfolioNotFoundError) -> JSONResponse:
    return _error_response(404, "Not Found", f"Portfolio {exc} not found")


@app.exception_handler(InvalidPortfolioError)
async def invalid_portfolio_handler(request: Request, exc: InvalidPortfolioError) -> JSONResponse:
    logger.warning("Invalid stored portfolio on %s: %s", request.url.path, exc)
    return _error_response(422, "Stored portfolio is invalid", str(exc))


@app.exception_handler(OSError)
async def filesystem_error_handler(request: Request, exc: OSError) -> JSONResponse:
    logger.error("Filesystem failure on %s: %s", request.url.path, exc)
    return _error_response(500, "Internal Server Error", "Could not read or write portfolio files")


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s", request.url.path, exc_info=exc)
    return _error_response(500, "Internal Server Error", "An unexpected error occurred")


app.include_router(health.router)
app.include_router(generate.router, prefix="/api")
app.include_router(portfolio.router, prefix="/api")


def main() -> None:
    """Start the development server."""
    import uvicorn

    settings = GeneratorSettings.from_env()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run(
        "portfolio_generator.api.main:app",
        host="0.0.0.0",
        port=int(os.getenv("PORT", "8000")),
        reload=True,
    )


if __name__ == "__main__":
    main()

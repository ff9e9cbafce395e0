"""Health check and service information routes."""

from __future__ import annotations

import os
import time
from datetime import UTC, datetime
from typing import Any

from fastapi import APIRouter

from portfolio_generator.models.generation import STYLES
from portfolio_generator.services.provider_registry import ProviderId

router = APIRouter(tags=["health"])

API_VERSION = "1.0.0"
_STARTED = time.monotonic()


@router.get("/health")
def health_check() -> dict[str, str]:
    """Return the current status of the API."""
    return {"status": "healthy"}


@router.get("/api/health")
def detailed_health() -> dict[str, Any]:
    """Status plus uptime, environment and version."""
    return {
        "status": "healthy",
        "timestamp": datetime.now(UTC).isoformat(),
        "uptime": round(time.monotonic() - _STARTED, 3),
        "environment": os.getenv("APP_ENV", "development"),
        "version": API_VERSION,
    }


@router.get("/api/info")
def api_info() -> dict[str, Any]:
    """Describe the API surface."""
    return {
        "name": "AI-Powered Portfolio Generator API",
        "version": API_VERSION,
        "description": "Backend API for generating AI-powered portfolio websites",
        "endpoints": {
            "portfolio": "/api/portfolio",
            "generate": "/api/generate",
            "health": "/api/health",
        },
        "features": [
            "Portfolio data management",
            "AI-powered content generation",
            "Multiple LLM provider support",
            "Template-based portfolio generation",
            "ZIP file export",
        ],
        "supportedProviders": [provider.value for provider in ProviderId],
        "supportedStyles": list(STYLES),
    }

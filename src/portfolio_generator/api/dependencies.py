"""Shared dependencies for API routes."""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends

from portfolio_generator.services.generation import GenerationService, get_generation_service
from portfolio_generator.services.portfolio_store import PortfolioStore


def get_service() -> GenerationService:
    """Return the process-wide generation service."""
    return get_generation_service()


def get_portfolio_store(
    service: Annotated[GenerationService, Depends(get_service)],
) -> PortfolioStore:
    """Saved portfolios live in the service's configured data directory."""
    return PortfolioStore(service.settings.data_dir)


ServiceDep = Annotated[GenerationService, Depends(get_service)]
StoreDep = Annotated[PortfolioStore, Depends(get_portfolio_store)]

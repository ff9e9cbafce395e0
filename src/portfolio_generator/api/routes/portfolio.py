"""Saved portfolio routes for the API."""

from __future__ import annotations

from datetime import UTC, datetime

from fastapi import APIRouter, HTTPException, status

from portfolio_generator.api.dependencies import StoreDep
from portfolio_generator.api.schemas.portfolio import (
    PortfolioDeletedResponse,
    PortfolioDuplicatedResponse,
    PortfolioListResponse,
    PortfolioSavedResponse,
    PortfolioSearchResponse,
    PortfolioSearchResult,
    PortfolioSummary,
)
from portfolio_generator.models.portfolio import PortfolioData
from portfolio_generator.services.portfolio_store import PortfolioNotFoundError

router = APIRouter(prefix="/portfolio", tags=["portfolio"])


def _not_found(filename: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=f"Portfolio {filename} not found",
    )


@router.post(
    "",
    response_model=PortfolioSavedResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Save portfolio data",
)
def save_portfolio(data: PortfolioData, store: StoreDep) -> PortfolioSavedResponse:
    """Persist the wizard payload as a new JSON file."""
    filename = store.save(data)
    return PortfolioSavedResponse(filename=filename, timestamp=datetime.now(UTC).isoformat())


@router.get("", response_model=PortfolioListResponse, summary="List saved portfolios")
def list_portfolios(store: StoreDep) -> PortfolioListResponse:
    return PortfolioListResponse(
        portfolios=[PortfolioSummary.model_validate(entry) for entry in store.list_saved()]
    )


@router.get(
    "/search/{query}",
    response_model=PortfolioSearchResponse,
    summary="Search saved portfolios",
    description="Matches names, about text, project names and technologies, most relevant first.",
)
def search_portfolios(query: str, store: StoreDep) -> PortfolioSearchResponse:
    return PortfolioSearchResponse(
        portfolios=[PortfolioSearchResult.model_validate(entry) for entry in store.search(query)],
        query=query,
    )


@router.get("/{filename}", response_model=PortfolioData, summary="Fetch a saved portfolio")
def get_portfolio(filename: str, store: StoreDep) -> PortfolioData:
    try:
        return store.load(filename)
    except PortfolioNotFoundError as e:
        raise _not_found(filename) from e


@router.put("/{filename}", response_model=PortfolioSavedResponse, summary="Replace a saved portfolio")
def update_portfolio(filename: str, data: PortfolioData, store: StoreDep) -> PortfolioSavedResponse:
    try:
        store.update(filename, data)
    except PortfolioNotFoundError as e:
        raise _not_found(filename) from e
    return PortfolioSavedResponse(
        message="Portfolio updated successfully",
        filename=filename,
        timestamp=datetime.now(UTC).isoformat(),
    )


@router.delete("/{filename}", response_model=PortfolioDeletedResponse, summary="Delete a saved portfolio")
def delete_portfolio(filename: str, store: StoreDep) -> PortfolioDeletedResponse:
    try:
        store.delete(filename)
    except PortfolioNotFoundError as e:
        raise _not_found(filename) from e
    return PortfolioDeletedResponse(filename=filename)


@router.post(
    "/{filename}/duplicate",
    response_model=PortfolioDuplicatedResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Duplicate a saved portfolio",
)
def duplicate_portfolio(filename: str, store: StoreDep) -> PortfolioDuplicatedResponse:
    try:
        new_filename, timestamp = store.duplicate(filename)
    except PortfolioNotFoundError as e:
        raise _not_found(filename) from e
    return PortfolioDuplicatedResponse(
        original_filename=filename,
        new_filename=new_filename,
        timestamp=timestamp,
    )

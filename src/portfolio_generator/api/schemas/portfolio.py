"""Pydantic schemas for saved portfolio endpoints."""

from __future__ import annotations

from portfolio_generator.models.portfolio import CamelModel


class PortfolioSavedResponse(CamelModel):
    message: str = "Portfolio saved successfully"
    filename: str
    timestamp: str


class PortfolioSummary(CamelModel):
    filename: str
    name: str
    created_at: str
    project_count: int


class PortfolioListResponse(CamelModel):
    portfolios: list[PortfolioSummary]


class PortfolioSearchResult(PortfolioSummary):
    relevance: int


class PortfolioSearchResponse(CamelModel):
    portfolios: list[PortfolioSearchResult]
    query: str


class PortfolioDeletedResponse(CamelModel):
    message: str = "Portfolio deleted successfully"
    filename: str


class PortfolioDuplicatedResponse(CamelModel):
    message: str = "Portfolio duplicated successfully"
    original_filename: str
    new_filename: str
    timestamp: str

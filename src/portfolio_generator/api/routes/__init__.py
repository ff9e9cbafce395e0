"""Route handlers for the API."""

from portfolio_generator.api.routes import generate, health, portfolio

__all__ = [
    "generate",
    "health",
    "portfolio",
]

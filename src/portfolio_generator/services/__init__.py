"""Services"""

from portfolio_generator.services.generation import (
    GenerationError,
    GenerationOutcome,
    GenerationService,
    HistoryNotFoundError,
    NoProviderAvailableError,
    get_generation_service,
)
from portfolio_generator.services.llm_providers import LLMError, ProviderConfigurationError
from portfolio_generator.services.portfolio_store import (
    InvalidPortfolioError,
    PortfolioNotFoundError,
    PortfolioStore,
)

__all__ = [
    "GenerationError",
    "GenerationOutcome",
    "GenerationService",
    "HistoryNotFoundError",
    "InvalidPortfolioError",
    "LLMError",
    "NoProviderAvailableError",
    "PortfolioNotFoundError",
    "PortfolioStore",
    "ProviderConfigurationError",
    "get_generation_service",
]

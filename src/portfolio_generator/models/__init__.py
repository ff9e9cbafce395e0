"""Data models for portfolio payloads and generation artifacts."""

from portfolio_generator.models.generation import (
    ChatMessage,
    EnhancedContent,
    GeneratedPortfolio,
    GenerationOptions,
    GenerationResult,
    PortfolioMetadata,
)
from portfolio_generator.models.portfolio import (
    Achievement,
    Education,
    PersonalInfo,
    PortfolioData,
    Project,
    SocialLinks,
)

__all__ = [
    "Achievement",
    "ChatMessage",
    "Education",
    "EnhancedContent",
    "GeneratedPortfolio",
    "GenerationOptions",
    "GenerationResult",
    "PersonalInfo",
    "PortfolioData",
    "PortfolioMetadata",
    "Project",
    "SocialLinks",
]

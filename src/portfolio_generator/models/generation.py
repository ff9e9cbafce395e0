"""Value types shared by the generation pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

from pydantic import Field

from portfolio_generator.models.portfolio import CamelModel

__all__ = [
    "DEFAULT_COLOR_SCHEME",
    "DEFAULT_STYLE",
    "STYLES",
    "ChatMessage",
    "EnhancedContent",
    "GeneratedPortfolio",
    "GenerationOptions",
    "GenerationResult",
    "PortfolioMetadata",
]

Role = Literal["system", "user", "assistant"]

STYLES: tuple[str, ...] = (
    "minimal",
    "modern",
    "creative",
    "professional",
    "dark",
    "glassmorphism",
)
DEFAULT_STYLE = "minimal"

DEFAULT_COLOR_SCHEME: dict[str, str] = {
    "primary": "#3b82f6",
    "secondary": "#1e40af",
    "accent": "#f59e0b",
}


@dataclass(frozen=True)
class ChatMessage:
    """One role-tagged turn of a conversation."""

    role: Role
    content: str

    def as_dict(self) -> dict[str, str]:
        return {"role": self.role, "content": self.content}


@dataclass
class GenerationOptions:
    """Caller-controlled knobs for a single generation request."""

    provider: str | None = None
    style: str = DEFAULT_STYLE
    model: str | None = None
    temperature: float | None = None
    max_tokens: int | None = None

    def merged(self, **overrides: Any) -> GenerationOptions:
        """Return a copy with every non-None override applied."""
        values = {
            "provider": self.provider,
            "style": self.style,
            "model": self.model,
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return GenerationOptions(**values)


@dataclass
class GenerationResult:
    """Normalized vendor response."""

    content: str
    tokens_used: int
    model: str | None = None
    raw: dict[str, Any] = field(default_factory=dict)


class EnhancedContent(CamelModel):
    """AI-enhanced copy merged into the templates."""

    enhanced_about: str
    tagline: str
    meta_description: str
    color_scheme: dict[str, str] = Field(default_factory=lambda: dict(DEFAULT_COLOR_SCHEME))
    enhanced_projects: list[dict[str, Any]] = Field(default_factory=list)
    is_fallback: bool = Field(default=False, exclude=True)


class PortfolioMetadata(CamelModel):
    generated_at: str
    provider: str
    style: str
    name: str
    model: str | None = None
    tokens_used: int = 0
    complexity_score: int = 0
    estimated_cost: float = 0.0
    quality: dict[str, int] = Field(default_factory=dict)
    duration_ms: int = 0
    used_fallback_content: bool = False


class GeneratedPortfolio(CamelModel):
    """The artifact: compiled site files plus metadata."""

    html: str
    css: str
    js: str
    metadata: PortfolioMetadata

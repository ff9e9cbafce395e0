"""Prompt construction for portfolio content enhancement.

The output is a role-tagged conversation: a system persona, one worked
before/after example, then the user's data with explicit requirements and the
JSON schema the response parser expects.
"""

from __future__ import annotations

import json

from portfolio_generator.models.generation import DEFAULT_STYLE, ChatMessage
from portfolio_generator.models.portfolio import PortfolioData

__all__ = ["STYLE_GUIDANCE", "build_prompt", "style_guidance"]

STYLE_GUIDANCE: dict[str, str] = {
    "minimal": (
        "Minimal: clean typography, generous whitespace and restrained color. "
        "Copy should be short, direct and free of buzzwords."
    ),
    "modern": (
        "Modern: contemporary layout with sidebar navigation and confident accents. "
        "Copy should be energetic and outcome-focused."
    ),
    "creative": (
        "Creative: bold, artistic visuals with unexpected color combinations. "
        "Copy may be playful and show personality while staying professional."
    ),
    "professional": (
        "Professional: corporate-friendly and conservative. Copy should emphasize "
        "reliability, measurable impact and business value."
    ),
    "dark": (
        "Dark: dark theme with high-contrast accents suited to developers. "
        "Copy should be technical and precise."
    ),
    "glassmorphism": (
        "Glassmorphism: translucent layered panels over vivid gradients. "
        "Copy should feel polished, modern and concise."
    ),
}

_EXAMPLE_INPUT = {
    "aboutMe": "i like coding and building websites. looking for a job",
    "projects": [
        {
            "name": "Todo App",
            "description": "a todo app",
            "technologies": ["React", "Firebase"],
        }
    ],
}

_EXAMPLE_OUTPUT = {
    "enhancedAbout": (
        "Front-end developer who turns ideas into fast, accessible web applications. "
        "I enjoy owning features end to end and am looking for a team where I can ship "
        "products people rely on."
    ),
    "tagline": "Front-End Developer Building Accessible Web Apps",
    "metaDescription": (
        "Portfolio of a front-end developer specializing in React and Firebase applications."
    ),
    "colorScheme": {"primary": "#2563eb", "secondary": "#1e3a8a", "accent": "#f59e0b"},
    "enhancedProjects": [
        {
            "name": "Todo App",
            "description": (
                "Real-time task manager built with React and Firebase, syncing state across "
                "devices with offline support."
            ),
            "highlights": ["Real-time sync", "Offline support"],
        }
    ],
}

_REQUIREMENTS = (
    "Rewrite the About Me text into an engaging, professional first-person bio.",
    "Improve every project description to highlight impact and technical skills.",
    "Write a professional tagline/headline of at most 10 words.",
    "Write an SEO-friendly meta description of at most 160 characters.",
    "Suggest a color scheme (primary, secondary, accent hex colors) suited to the style.",
    "Keep every fact truthful: do not invent employers, metrics or technologies.",
    "Return only the JSON object described below, with no surrounding commentary.",
)

_OUTPUT_SCHEMA = """{
  "enhancedAbout": "string",
  "tagline": "string",
  "metaDescription": "string",
  "colorScheme": {"primary": "#hex", "secondary": "#hex", "accent": "#hex"},
  "enhancedProjects": [
    {"name": "string", "description": "string", "highlights": ["string"]}
  ]
}"""


def style_guidance(style: str) -> str:
    """Return the descriptive guidance for *style*, defaulting to minimal."""
    return STYLE_GUIDANCE.get(style, STYLE_GUIDANCE[DEFAULT_STYLE])


def _serialize_portfolio(data: PortfolioData) -> str:
    payload = data.to_wire()
    # Timestamps and client ids carry no meaning for copywriting.
    payload.pop("generatedAt", None)
    for section in ("education", "projects", "achievements"):
        for entry in payload.get(section, []):
            entry.pop("id", None)
    return json.dumps(payload, indent=2, ensure_ascii=False)


def build_prompt(data: PortfolioData, style: str) -> list[ChatMessage]:
    """Build the conversation that asks a model for enhanced portfolio content.

    Deterministic: identical inputs always produce identical messages.
    """
    system_rules = (
        "You are a professional portfolio designer and copywriter who specializes in "
        f"{style if style in STYLE_GUIDANCE else DEFAULT_STYLE} style developer portfolios. "
        f"Style guidance: {style_guidance(style)} "
        "You always answer with a single valid JSON object."
    )

    example_user = (
        "Enhance this portfolio data:\n" + json.dumps(_EXAMPLE_INPUT, indent=2, ensure_ascii=False)
    )
    example_assistant = json.dumps(_EXAMPLE_OUTPUT, indent=2, ensure_ascii=False)

    requirements = "\n".join(f"{i}. {req}" for i, req in enumerate(_REQUIREMENTS, start=1))
    user_content = (
        "Based on the following portfolio data, generate enhanced content for a "
        f"{style} style portfolio website.\n\n"
        f"Portfolio Data:\n{_serialize_portfolio(data)}\n\n"
        f"Requirements:\n{requirements}\n\n"
        f"Return your response in JSON format with exactly these keys:\n{_OUTPUT_SCHEMA}"
    )

    return [
        ChatMessage(role="system", content=system_rules),
        ChatMessage(role="user", content=example_user),
        ChatMessage(role="assistant", content=example_assistant),
        ChatMessage(role="user", content=user_content),
    ]

"""Site template sets, one directory per visual style.

Every style directory holds ``index.html.j2``, ``styles.css.j2`` and
``script.js.j2``. Requests for an unknown style fall back to ``minimal``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from importlib.resources import files
from typing import Any

from jinja2 import Environment, PackageLoader, StrictUndefined, Template, select_autoescape
from jinja2.exceptions import TemplateError

from portfolio_generator.models.generation import DEFAULT_COLOR_SCHEME, DEFAULT_STYLE

logger = logging.getLogger(__name__)

__all__ = [
    "CompiledTemplates",
    "TemplateLoadError",
    "TemplateSet",
    "compile_templates",
    "list_styles",
    "load_template_set",
    "render_preview",
    "resolve_style",
]

_TEMPLATE_FILES = ("index.html.j2", "styles.css.j2", "script.js.j2")

_STYLE_DESCRIPTIONS: dict[str, str] = {
    "minimal": "Clean and simple design focusing on content",
    "modern": "Contemporary design with sidebar navigation",
    "creative": "Bold and artistic with unique visual elements",
    "professional": "Corporate-friendly design for business use",
    "dark": "Dark theme with modern aesthetics",
    "glassmorphism": "Trendy glass-like effects and transparency",
}

_env = Environment(
    loader=PackageLoader("portfolio_generator", "templates"),
    autoescape=select_autoescape(enabled_extensions=("html.j2",), default_for_string=False),
    undefined=StrictUndefined,
    trim_blocks=True,
    lstrip_blocks=True,
    keep_trailing_newline=True,
)


class TemplateLoadError(RuntimeError):
    """Raised when a style's template files are missing or broken."""


@dataclass(frozen=True)
class TemplateSet:
    style: str
    html: Template
    css: Template
    js: Template


@dataclass(frozen=True)
class CompiledTemplates:
    html: str
    css: str
    js: str

    def as_files(self) -> dict[str, str]:
        return {"index.html": self.html, "styles.css": self.css, "script.js": self.js}


def _style_dirs() -> list[str]:
    root = files("portfolio_generator") / "templates"
    return sorted(
        entry.name
        for entry in root.iterdir()
        if entry.is_dir() and not entry.name.startswith("_") and (entry / "index.html.j2").is_file()
    )


def list_styles() -> list[dict[str, str]]:
    """Return every installed style with a display name and description."""
    return [
        {
            "name": name,
            "display_name": name.capitalize(),
            "description": _STYLE_DESCRIPTIONS.get(name, "Custom portfolio style"),
        }
        for name in _style_dirs()
    ]


def resolve_style(style: str | None) -> str:
    """Return *style* if a template directory exists for it, else the default."""
    if style and style in _style_dirs():
        return style
    if style:
        logger.info("Unknown style %r, falling back to %s", style, DEFAULT_STYLE)
    return DEFAULT_STYLE


def load_template_set(style: str | None) -> TemplateSet:
    """Load the three templates for *style* (or the fallback style).

    Raises:
        TemplateLoadError: If a template file is missing or fails to parse.
    """
    resolved = resolve_style(style)
    try:
        html, css, js = (_env.get_template(f"{resolved}/{name}") for name in _TEMPLATE_FILES)
    except TemplateError as e:
        raise TemplateLoadError(f"Could not load templates for style {resolved!r}: {e}") from e
    return TemplateSet(style=resolved, html=html, css=css, js=js)


def compile_templates(template_set: TemplateSet, data: dict[str, Any]) -> CompiledTemplates:
    """Render the template set against merged portfolio + enhanced data."""
    try:
        return CompiledTemplates(
            html=template_set.html.render(data),
            css=template_set.css.render(data),
            js=template_set.js.render(data),
        )
    except TemplateError as e:
        raise TemplateLoadError(f"Template rendering failed for {template_set.style!r}: {e}") from e


_PREVIEW_DATA: dict[str, Any] = {
    "personal_info": {
        "name": "John Doe",
        "email": "john@example.com",
        "location": "San Francisco, CA",
        "phone": "",
        "age": "",
    },
    "enhanced_about": "Passionate developer with experience in modern web technologies.",
    "tagline": "Full-Stack Developer",
    "meta_description": "Portfolio of John Doe, full-stack developer.",
    "color_scheme": dict(DEFAULT_COLOR_SCHEME),
    "projects": [
        {
            "name": "Sample Project",
            "description": "A showcase project demonstrating modern development practices.",
            "technologies": ["React", "TypeScript", "Node.js"],
            "github_url": "https://github.com/example/project",
            "live_url": None,
            "image_url": None,
            "highlights": [],
        }
    ],
    "education": [
        {
            "degree": "Bachelor of Science",
            "field": "Computer Science",
            "institution": "University of Technology",
            "start_year": "2018",
            "end_year": "2022",
            "gpa": None,
        }
    ],
    "achievements": [],
    "social_links": {
        "github": "https://github.com/johndoe",
        "linkedin": "https://linkedin.com/in/johndoe",
    },
}


def render_preview(style: str | None) -> dict[str, str]:
    """Render HTML and CSS for *style* against built-in sample data."""
    template_set = load_template_set(style)
    data = {
        **_PREVIEW_DATA,
        "style": template_set.style,
        "current_year": datetime.now(UTC).year,
    }
    compiled = compile_templates(template_set, data)
    return {"html": compiled.html, "css": compiled.css, "style": template_set.style}

"""Turn free-form model output into ``EnhancedContent``.

Parsing never raises: output that does not contain a usable JSON object is
replaced by synthesized fallback content and the event is logged.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any

from pydantic import ValidationError

from portfolio_generator.models.generation import DEFAULT_COLOR_SCHEME, EnhancedContent

logger = logging.getLogger(__name__)

__all__ = [
    "FALLBACK_META_DESCRIPTION",
    "FALLBACK_TAGLINE",
    "REQUIRED_KEYS",
    "fallback_content",
    "parse_enhanced_content",
]

REQUIRED_KEYS = ("enhancedAbout", "tagline", "metaDescription")
FALLBACK_TAGLINE = "Professional Developer & Designer"
FALLBACK_META_DESCRIPTION = "Professional portfolio showcasing projects and experience"
_MAX_FALLBACK_ABOUT = 500

# Greedy: first "{" through last "}".
_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")


def fallback_content(raw_text: str) -> EnhancedContent:
    """Default content used when the model output cannot be parsed."""
    return EnhancedContent(
        enhanced_about=(raw_text or "").strip()[:_MAX_FALLBACK_ABOUT],
        tagline=FALLBACK_TAGLINE,
        meta_description=FALLBACK_META_DESCRIPTION,
        color_scheme=dict(DEFAULT_COLOR_SCHEME),
        enhanced_projects=[],
        is_fallback=True,
    )


def _extract_object(raw_text: str) -> dict[str, Any] | None:
    match = _JSON_OBJECT.search(raw_text)
    if match is None:
        return None
    try:
        decoded = json.loads(match.group(0))
    except (json.JSONDecodeError, RecursionError):
        return None
    return decoded if isinstance(decoded, dict) else None


def _coerce(decoded: dict[str, Any]) -> EnhancedContent:
    color_scheme = decoded.get("colorScheme")
    if not isinstance(color_scheme, dict):
        color_scheme = {}
    projects = decoded.get("enhancedProjects")
    if not isinstance(projects, list):
        projects = []
    return EnhancedContent(
        enhanced_about=str(decoded["enhancedAbout"]),
        tagline=str(decoded["tagline"]),
        meta_description=str(decoded["metaDescription"]),
        color_scheme={
            **DEFAULT_COLOR_SCHEME,
            **{str(k): str(v) for k, v in color_scheme.items() if v is not None},
        },
        enhanced_projects=[p for p in projects if isinstance(p, dict)],
    )


def parse_enhanced_content(raw_text: str | None) -> EnhancedContent:
    """Parse model output, falling back to default content on any failure."""
    if not isinstance(raw_text, str):
        logger.warning("Model returned non-text output; using fallback content")
        return fallback_content("")

    decoded = _extract_object(raw_text)
    if decoded is None:
        logger.warning("No JSON object found in model output; using fallback content")
        return fallback_content(raw_text)

    missing = [key for key in REQUIRED_KEYS if key not in decoded]
    if missing:
        logger.warning("Model output missing keys %s; using fallback content", missing)
        return fallback_content(raw_text)

    try:
        return _coerce(decoded)
    except (ValidationError, TypeError, ValueError):
        logger.warning("Model output failed validation; using fallback content", exc_info=True)
        return fallback_content(raw_text)

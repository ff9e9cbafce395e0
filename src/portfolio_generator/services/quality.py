"""Heuristic quality scores for generated sites.

Each axis starts at 70 and gains points for markup markers, capped at 100.
"""

from __future__ import annotations

__all__ = ["BASE_SCORE", "MAX_SCORE", "analyze_quality"]

BASE_SCORE = 70
MAX_SCORE = 100

_ACCESSIBILITY_MARKERS: tuple[tuple[str, int], ...] = (
    ("alt=", 10),
    ("aria-", 10),
    ('lang="', 5),
    ("<main", 5),
    ("<nav", 5),
)

_PERFORMANCE_HTML_MARKERS: tuple[tuple[str, int], ...] = (
    ('loading="lazy"', 10),
    ("defer", 10),
    ('rel="preconnect"', 5),
)

_SEO_MARKERS: tuple[tuple[str, int], ...] = (
    ('<meta name="description"', 10),
    ("<title>", 10),
    ("<h1", 5),
    ('property="og:', 5),
    ('name="viewport"', 5),
)

_CSS_SIZE_BUDGET = 50_000


def _score(text: str, markers: tuple[tuple[str, int], ...]) -> int:
    return BASE_SCORE + sum(points for marker, points in markers if marker in text)


def analyze_quality(html: str, css: str) -> dict[str, int]:
    """Score accessibility, performance and SEO of compiled output."""
    accessibility = _score(html, _ACCESSIBILITY_MARKERS)

    performance = _score(html, _PERFORMANCE_HTML_MARKERS)
    if len(css) < _CSS_SIZE_BUDGET:
        performance += 5
    if "@media" in css:
        performance += 5

    seo = _score(html, _SEO_MARKERS)

    scores = {
        "accessibility": min(accessibility, MAX_SCORE),
        "performance": min(performance, MAX_SCORE),
        "seo": min(seo, MAX_SCORE),
    }
    scores["overall"] = round(sum(scores.values()) / len(scores))
    return scores

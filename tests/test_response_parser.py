from __future__ import annotations

import pytest

from portfolio_generator.models.generation import DEFAULT_COLOR_SCHEME
from portfolio_generator.services.response_parser import (
    FALLBACK_META_DESCRIPTION,
    FALLBACK_TAGLINE,
    fallback_content,
    parse_enhanced_content,
)


def test_parses_json_wrapped_in_prose() -> None:
    raw = (
        "Sure! Here is your content:\n"
        '{"enhancedAbout": "Builder of things.", "tagline": "Engineer", '
        '"metaDescription": "Portfolio", "colorScheme": {"primary": "#000000"}}\n'
        "Let me know if you need changes."
    )

    content = parse_enhanced_content(raw)

    assert content.is_fallback is False
    assert content.enhanced_about == "Builder of things."
    assert content.tagline == "Engineer"
    assert content.color_scheme["primary"] == "#000000"
    # Missing palette entries fall back to the defaults.
    assert content.color_scheme["accent"] == DEFAULT_COLOR_SCHEME["accent"]
    assert content.enhanced_projects == []


def test_keeps_enhanced_projects(valid_response: str) -> None:
    content = parse_enhanced_content(valid_response)

    assert content.enhanced_projects[0]["name"] == "Analytical Engine"
    assert content.enhanced_projects[0]["highlights"] == [
        "Designed the instruction set",
        "Wrote the first program",
    ]


@pytest.mark.parametrize(
    "raw",
    [
        "",
        "not json at all",
        "{broken json",
        '{"tagline": "Only a tagline"}',
        "[1, 2, 3]",
        '{"enhancedAbout": "a", "tagline": "b"} trailing } brace',
    ],
)
def test_malformed_output_falls_back_without_raising(raw: str) -> None:
    content = parse_enhanced_content(raw)

    assert content.is_fallback is True
    assert content.tagline == FALLBACK_TAGLINE
    assert content.meta_description == FALLBACK_META_DESCRIPTION
    assert content.color_scheme == DEFAULT_COLOR_SCHEME
    assert content.enhanced_projects == []


def test_non_text_output_falls_back() -> None:
    content = parse_enhanced_content(None)
    assert content.is_fallback is True
    assert content.enhanced_about == ""


def test_fallback_truncates_raw_text_to_500_chars() -> None:
    content = fallback_content("a" * 2_000)
    assert len(content.enhanced_about) == 500


def test_fallback_flag_is_not_serialized() -> None:
    dumped = fallback_content("text").model_dump(by_alias=True)
    assert "isFallback" not in dumped
    assert dumped["enhancedAbout"] == "text"

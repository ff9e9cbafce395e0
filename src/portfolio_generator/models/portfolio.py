"""Pydantic models for the portfolio wizard payload.

Field names are snake_case in Python and camelCase on the wire, matching the
JSON the wizard posts (``personalInfo``, ``aboutMe``, ``githubUrl`` ...).
"""

from __future__ import annotations

from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

__all__ = [
    "Achievement",
    "CamelModel",
    "Education",
    "PersonalInfo",
    "PortfolioData",
    "Project",
    "SocialLinks",
]


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


def _http_url_or_empty(value: str | None) -> str | None:
    """Accept empty strings or absolute http(s) URLs only."""
    if value is None or value == "":
        return value
    if not value.startswith(("http://", "https://")):
        raise ValueError("must be an http(s) URL or empty")
    return value


class CamelModel(BaseModel):
    """Base model that accepts and emits camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class PersonalInfo(CamelModel):
    name: str = Field(..., min_length=1, description="Owner's full name")
    email: str = Field(..., min_length=1, description="Contact email")
    age: str = ""
    location: str = ""
    phone: str = ""


class Education(CamelModel):
    id: str
    institution: str
    degree: str
    field: str = ""
    start_year: str = ""
    end_year: str = ""
    gpa: str | None = None


class Project(CamelModel):
    id: str
    name: str
    description: str = ""
    technologies: list[str] = Field(default_factory=list)
    github_url: str | None = None
    live_url: str | None = None
    image_url: str | None = None

    validate_urls = field_validator("github_url", "live_url", "image_url")(_http_url_or_empty)


class Achievement(CamelModel):
    id: str
    title: str
    description: str = ""
    date: str = ""
    organization: str | None = None


class SocialLinks(CamelModel):
    github: str | None = None
    linkedin: str | None = None
    twitter: str | None = None
    website: str | None = None
    other: str | None = None

    validate_urls = field_validator("github", "linkedin", "twitter", "website", "other")(_http_url_or_empty)

    def present(self) -> dict[str, str]:
        """Return only the links that are set to a non-blank value."""
        return {
            key: value
            for key, value in self.model_dump().items()
            if isinstance(value, str) and value.strip()
        }


class PortfolioData(CamelModel):
    """Everything the wizard collects about one portfolio owner."""

    personal_info: PersonalInfo
    about_me: str = ""
    education: list[Education] = Field(default_factory=list)
    projects: list[Project] = Field(default_factory=list)
    achievements: list[Achievement] = Field(default_factory=list)
    social_links: SocialLinks = Field(default_factory=SocialLinks)
    generated_at: str = Field(default_factory=_now_iso)

    @property
    def owner_name(self) -> str:
        return self.personal_info.name

    def to_wire(self) -> dict:
        """Dump using the camelCase wire format."""
        return self.model_dump(by_alias=True)

"""Saved portfolio documents, one JSON file per save under the data directory."""

from __future__ import annotations

import json
import logging
import re
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from portfolio_generator.models.portfolio import PortfolioData
from portfolio_generator.utils.packaging import sanitize_owner_name

logger = logging.getLogger(__name__)

__all__ = ["InvalidPortfolioError", "PortfolioNotFoundError", "PortfolioStore"]


class PortfolioNotFoundError(FileNotFoundError):
    """No saved portfolio has the requested filename."""


class InvalidPortfolioError(ValueError):
    """A saved portfolio file no longer matches the portfolio schema."""


def _timestamp(now: datetime | None = None) -> str:
    moment = now or datetime.now(UTC)
    return re.sub(r"[:.+]", "-", moment.isoformat())


def _summary(filename: str, raw: dict[str, Any]) -> dict[str, Any]:
    personal = raw.get("personalInfo") or {}
    return {
        "filename": filename,
        "name": personal.get("name") or "Unknown",
        "created_at": raw.get("generatedAt") or "Unknown",
        "project_count": len(raw.get("projects") or []),
    }


class PortfolioStore:
    def __init__(self, data_dir: Path) -> None:
        self.data_dir = data_dir

    def _path(self, filename: str) -> Path:
        """Resolve *filename* inside the data directory.

        Raises:
            PortfolioNotFoundError: If the name is not a plain ``.json`` basename
                or no such file exists.
        """
        safe_name = Path(filename).name
        if safe_name != filename or not safe_name.endswith(".json"):
            raise PortfolioNotFoundError(filename)
        path = self.data_dir / safe_name
        if not path.is_file():
            raise PortfolioNotFoundError(filename)
        return path

    def _write(self, path: Path, data: PortfolioData) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(data.to_wire(), indent=2, ensure_ascii=False), encoding="utf-8")

    def _read_raw(self, path: Path) -> dict[str, Any] | None:
        try:
            decoded = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError):
            logger.warning("Skipping unreadable portfolio file %s", path.name)
            return None
        return decoded if isinstance(decoded, dict) else None

    def save(self, data: PortfolioData) -> str:
        """Persist *data* and return the generated filename."""
        filename = f"{sanitize_owner_name(data.owner_name)}_{_timestamp()}.json"
        self._write(self.data_dir / filename, data)
        logger.info("Saved portfolio %s", filename)
        return filename

    def list_saved(self) -> list[dict[str, Any]]:
        if not self.data_dir.is_dir():
            return []
        entries = []
        for path in sorted(self.data_dir.glob("*.json")):
            raw = self._read_raw(path)
            if raw is None:
                entries.append(
                    {
                        "filename": path.name,
                        "name": "Error reading file",
                        "created_at": "Unknown",
                        "project_count": 0,
                    }
                )
                continue
            entries.append(_summary(path.name, raw))
        return entries

    def load(self, filename: str) -> PortfolioData:
        path = self._path(filename)
        try:
            return PortfolioData.model_validate_json(path.read_text(encoding="utf-8"))
        except ValidationError as e:
            raise InvalidPortfolioError(f"Stored portfolio {filename} is invalid: {e}") from e

    def update(self, filename: str, data: PortfolioData) -> str:
        path = self._path(filename)
        self._write(path, data)
        logger.info("Updated portfolio %s", filename)
        return filename

    def delete(self, filename: str) -> None:
        path = self._path(filename)
        path.unlink()
        logger.info("Deleted portfolio %s", filename)

    def duplicate(self, filename: str) -> tuple[str, str]:
        """Copy a saved portfolio under a new ``_copy_`` name.

        Returns:
            The new filename and the refreshed ``generatedAt`` timestamp.
        """
        original = self.load(filename)
        now = datetime.now(UTC)
        copy = original.model_copy(update={"generated_at": now.isoformat()})
        new_filename = f"{sanitize_owner_name(copy.owner_name)}_copy_{_timestamp(now)}.json"
        self._write(self.data_dir / new_filename, copy)
        logger.info("Duplicated portfolio %s -> %s", filename, new_filename)
        return new_filename, copy.generated_at

    def search(self, query: str) -> list[dict[str, Any]]:
        """Case-insensitive match over name, about text, project names and technologies.

        Results are ordered by how often the query occurs, most first.
        """
        needle = query.lower()
        if not needle or not self.data_dir.is_dir():
            return []
        matches = []
        for path in sorted(self.data_dir.glob("*.json")):
            raw = self._read_raw(path)
            if raw is None:
                continue
            projects = [p for p in raw.get("projects") or [] if isinstance(p, dict)]
            parts = [
                (raw.get("personalInfo") or {}).get("name") or "",
                raw.get("aboutMe") or "",
                *(str(p.get("name") or "") for p in projects),
                *(str(t) for p in projects for t in p.get("technologies") or []),
            ]
            haystack = " ".join(parts).lower()
            relevance = haystack.count(needle)
            if relevance:
                matches.append({**_summary(path.name, raw), "relevance": relevance})
        matches.sort(key=lambda entry: entry["relevance"], reverse=True)
        return matches

"""Helpers for writing and locating generated site archives."""

from __future__ import annotations

import re
from collections.abc import Mapping
from datetime import UTC, datetime
from pathlib import Path
from zipfile import ZIP_DEFLATED, ZipFile

__all__ = [
    "archive_filename",
    "create_zip_archive",
    "list_archives",
    "resolve_archive_path",
    "sanitize_owner_name",
]


def sanitize_owner_name(name: str) -> str:
    """Make an owner's name safe for use in a filename."""
    # Whitespace becomes underscores, anything else outside [\w-] is dropped.
    sanitized = re.sub(r"\s+", "_", name.strip())
    sanitized = re.sub(r"[^\w\-]", "", sanitized)
    return sanitized or "portfolio"


def archive_filename(owner_name: str, now: datetime | None = None) -> str:
    """``{owner}_{timestamp}.zip`` with a filesystem-safe ISO timestamp."""
    moment = now or datetime.now(UTC)
    timestamp = re.sub(r"[:.+]", "-", moment.isoformat())
    return f"{sanitize_owner_name(owner_name)}_{timestamp}.zip"


def create_zip_archive(output_path: Path, files: Mapping[str, str]) -> Path:
    """Write *files* (name -> text) into a ZIP archive at *output_path*."""
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with ZipFile(output_path, "w", ZIP_DEFLATED, compresslevel=9) as archive:
        for name, content in files.items():
            archive.writestr(name, content)
    return output_path


def resolve_archive_path(output_dir: Path, filename: str) -> Path | None:
    """Return the path of an existing archive, refusing anything outside *output_dir*."""
    safe_name = Path(filename).name
    if not safe_name.endswith(".zip") or safe_name != filename:
        return None
    candidate = output_dir / safe_name
    return candidate if candidate.is_file() else None


def list_archives(output_dir: Path) -> list[dict]:
    """Generated archives, newest first."""
    if not output_dir.is_dir():
        return []
    entries = []
    for path in output_dir.glob("*.zip"):
        stat = path.stat()
        entries.append(
            {
                "filename": path.name,
                "created_at": datetime.fromtimestamp(stat.st_mtime, UTC).isoformat(),
                "size": stat.st_size,
            }
        )
    entries.sort(key=lambda entry: entry["created_at"], reverse=True)
    return entries

"""Inbox folder scanning, request-file parsing, and archive logic."""

import shutil
from datetime import datetime
from pathlib import Path

import frontmatter

from design_studio.models import DesignRequest


def ensure_dirs(inbox_dir: Path, archive_dir: Path) -> None:
    """Create inbox and archive directories if they don't exist."""
    inbox_dir.mkdir(parents=True, exist_ok=True)
    archive_dir.mkdir(parents=True, exist_ok=True)


def scan_inbox(inbox_dir: Path) -> list[Path]:
    """Return all .md files in inbox_dir, sorted by mtime ascending (oldest first)."""
    files = list(inbox_dir.glob("*.md"))
    return sorted(files, key=lambda p: p.stat().st_mtime)


def _optional_str(value) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def parse_request_file(file_path: Path) -> tuple[DesignRequest, dict]:
    """Parse a design request markdown file with optional YAML frontmatter.

    Recognized frontmatter keys: mood, time_of_day, feature, constraints
    (list or comma-separated string), quick (bool).

    Returns:
        (request, metadata) where request.prompt is the body text and
        metadata is the raw frontmatter dict ({} when absent).

    Raises:
        ValueError: If the body is empty.
    """
    post = frontmatter.load(str(file_path))
    prompt = post.content.strip()
    if not prompt:
        raise ValueError(f"Request file has no prompt text: {file_path}")
    metadata = dict(post.metadata)

    constraints = metadata.get("constraints", [])
    if isinstance(constraints, str):
        constraints = [c.strip() for c in constraints.split(",") if c.strip()]

    request = DesignRequest(
        prompt=prompt,
        user_mood=_optional_str(metadata.get("mood")),
        time_of_day=_optional_str(metadata.get("time_of_day")),
        feature=_optional_str(metadata.get("feature")),
        constraints=[str(c) for c in constraints],
        source=str(file_path),
    )
    return request, metadata


def archive_file(file_path: Path, archive_dir: Path, *, failed: bool = False) -> Path:
    """Move file to archive_dir with a timestamp prefix.

    Args:
        file_path: Source file to archive.
        archive_dir: Destination directory.
        failed: If True, prefix filename with "FAILED_".

    Returns:
        Path to the archived file.
    """
    timestamp = datetime.now().strftime("%Y-%m-%dT%H%M")
    prefix = "FAILED_" if failed else ""
    dest = archive_dir / f"{prefix}{timestamp}_{file_path.name}"
    shutil.move(str(file_path), str(dest))
    return dest

"""Session cache export and import for the gitssh CLI."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path

from pydantic import ValidationError as SchemaError

from gitssh.cache import SessionCache, repository_exists
from gitssh.fileio import atomic_write_json
from gitssh.identity import Binding
from gitssh.schemas import ExportedRepository, SessionExport

DEFAULT_EXPORT_FILE = "git-session-export.json"


class SessionError(ValueError):
    """Raised when a session export cannot be written or read."""


@dataclass
class ImportResult:
    imported: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)


def build_session_export(cache: SessionCache, *, now: datetime | None = None) -> SessionExport:
    stamp = (now or datetime.now(timezone.utc)).strftime("%Y-%m-%dT%H:%M:%SZ")
    repositories: dict[str, ExportedRepository] = {}
    for entry in cache.entries():
        if not repository_exists(entry.repo_path):
            continue
        repo_name = os.path.basename(entry.repo_path.rstrip("/")) or entry.repo_path
        repositories[repo_name] = ExportedRepository(path=entry.repo_path, user=entry.identity)
    return SessionExport(session_repositories=repositories, export_date=stamp)


def save_session_export(document: SessionExport, output_path: str | Path) -> Path:
    target = Path(output_path)
    try:
        atomic_write_json(target, document.model_dump())
    except OSError as exc:
        raise SessionError(f"failed to write session export: {target}") from exc
    return target


def load_session_export(path: str | Path) -> SessionExport:
    source = Path(path)
    if not source.is_file():
        raise SessionError(f"import file not found: {source}")
    try:
        payload = json.loads(source.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise SessionError(f"invalid import file format: {exc}") from exc
    try:
        return SessionExport.model_validate(payload)
    except SchemaError as exc:
        raise SessionError(f"invalid import file format: {source}") from exc


def import_session(cache: SessionCache, document: SessionExport) -> ImportResult:
    """Load exported entries into the cache; missing repositories are skipped."""
    result = ImportResult()
    for record in document.session_repositories.values():
        try:
            binding = Binding.parse(record.user)
        except ValueError:
            result.skipped.append(record.path)
            continue
        if not repository_exists(record.path):
            result.skipped.append(record.path)
            continue
        cache.put_cached_binding(record.path, binding)
        result.imported.append(record.path)
    return result

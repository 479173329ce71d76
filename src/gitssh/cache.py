"""Session cache: ``repo_path:Name <email>`` lines in a scratch file.

The file outlives a single shell, so "session" means until it is cleared or deleted.
Each write drops earlier lines for the same path before appending, so the file never
holds two bindings for one repository. Entries for deleted repositories stay until
:meth:`SessionCache.prune_missing` is called.
"""

from __future__ import annotations

import getpass
import logging
import re
import tempfile
from dataclasses import dataclass
from pathlib import Path

from gitssh.fileio import atomic_write_text
from gitssh.identity import Binding

logger = logging.getLogger(__name__)

# A leading drive letter is part of the path, not the separator.
_DRIVE_RE = re.compile(r"^[A-Za-z]:[\\/]")


def default_session_file() -> Path:
    try:
        user = getpass.getuser()
    except (KeyError, OSError):
        user = "default"
    return Path(tempfile.gettempdir()) / f"gitssh-session-{user}"


def _split_line(line: str) -> tuple[str, str] | None:
    """Split a cache line on the first colon after the path."""
    start = 2 if _DRIVE_RE.match(line) else 0
    sep = line.find(":", start)
    if sep <= 0 or sep == len(line) - 1:
        return None
    return line[:sep], line[sep + 1 :]


def repository_exists(repo_path: str) -> bool:
    root = Path(repo_path)
    return root.is_dir() and (root / ".git").exists()


@dataclass(frozen=True)
class CacheEntry:
    repo_path: str
    identity: str

    @property
    def binding(self) -> Binding | None:
        try:
            return Binding.parse(self.identity)
        except ValueError:
            return None


@dataclass(frozen=True)
class CacheStats:
    active: int
    invalid: int


class SessionCache:
    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def _read_lines(self) -> list[str]:
        if not self.path.exists():
            return []
        return [line for line in self.path.read_text(encoding="utf-8").splitlines() if line]

    def _write_lines(self, lines: list[str]) -> None:
        atomic_write_text(self.path, "".join(f"{line}\n" for line in lines))

    @staticmethod
    def _owns(line: str, repo_path: str) -> bool:
        return line.startswith(f"{repo_path}:")

    def entries(self) -> list[CacheEntry]:
        parsed: list[CacheEntry] = []
        for line in self._read_lines():
            split = _split_line(line)
            if split is not None:
                parsed.append(CacheEntry(repo_path=split[0], identity=split[1]))
        return parsed

    def get_cached_binding(self, repo_path: str) -> Binding | None:
        prefix_len = len(repo_path) + 1
        for line in self._read_lines():
            if self._owns(line, repo_path):
                try:
                    return Binding.parse(line[prefix_len:])
                except ValueError:
                    logger.debug("ignoring unparseable cache line for %s", repo_path)
                    return None
        return None

    def put_cached_binding(self, repo_path: str, binding: Binding) -> None:
        lines = [line for line in self._read_lines() if not self._owns(line, repo_path)]
        lines.append(f"{repo_path}:{binding}")
        self._write_lines(lines)

    def remove_cached_binding(self, repo_path: str) -> bool:
        lines = self._read_lines()
        kept = [line for line in lines if not self._owns(line, repo_path)]
        if len(kept) == len(lines):
            return False
        self._write_lines(kept)
        return True

    def clear_all_cached_bindings(self) -> None:
        self.path.unlink(missing_ok=True)

    def stats(self) -> CacheStats:
        active = invalid = 0
        for entry in self.entries():
            if repository_exists(entry.repo_path):
                active += 1
            else:
                invalid += 1
        return CacheStats(active=active, invalid=invalid)

    def prune_missing(self) -> tuple[int, int]:
        """Drop entries whose repository is gone. Returns ``(removed, kept)``."""
        entries = self.entries()
        kept = [entry for entry in entries if repository_exists(entry.repo_path)]
        removed = len(entries) - len(kept)
        if removed:
            self._write_lines([f"{entry.repo_path}:{entry.identity}" for entry in kept])
        return removed, len(kept)

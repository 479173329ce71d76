"""Subprocess adapter around the ``git`` binary."""

from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Literal, Sequence

from gitssh.errors import GitCommandError, MissingDependencyError

logger = logging.getLogger(__name__)

ConfigScope = Literal["local", "global"]

GIT_INSTALL_HINT = "install Git from https://git-scm.com/downloads"


@dataclass(frozen=True)
class Remote:
    name: str
    url: str


@dataclass(frozen=True)
class CommitSummary:
    short_hash: str
    subject: str
    relative_date: str


class Git:
    """Runs git in ``cwd``. Read helpers return ``None`` where git reports nothing."""

    def __init__(self, cwd: str | Path | None = None, *, binary: str = "git") -> None:
        self.cwd = Path(cwd) if cwd is not None else None
        self.binary = binary

    def at(self, cwd: str | Path) -> "Git":
        return Git(cwd, binary=self.binary)

    def _exec(self, args: Sequence[str], *, capture: bool = True) -> subprocess.CompletedProcess:
        command = [self.binary, *args]
        logger.debug("running %s (cwd=%s)", " ".join(command), self.cwd)
        try:
            return subprocess.run(
                command,
                cwd=self.cwd,
                capture_output=capture,
                text=True,
                check=False,
            )
        except FileNotFoundError as exc:
            raise MissingDependencyError("git", hint=GIT_INSTALL_HINT) from exc

    def _read(self, args: Sequence[str]) -> str | None:
        result = self._exec(args)
        if result.returncode != 0:
            return None
        value = result.stdout.strip()
        return value or None

    def _write(self, args: Sequence[str]) -> None:
        result = self._exec(args)
        if result.returncode != 0:
            stderr = (result.stderr or "").strip()
            raise GitCommandError(
                f"git {' '.join(args)} failed: {stderr or f'exit {result.returncode}'}",
                args=args,
                returncode=result.returncode,
                stderr=stderr,
            )

    def run(self, args: Sequence[str]) -> int:
        """Run a git command with inherited stdio and return its exit status."""
        return self._exec(args, capture=False).returncode

    def toplevel(self) -> str | None:
        return self._read(["rev-parse", "--show-toplevel"])

    def get_config(self, key: str, scope: ConfigScope | None = None) -> str | None:
        args = ["config"]
        if scope is not None:
            args.append(f"--{scope}")
        return self._read([*args, "--get", key])

    def set_config(self, key: str, value: str, scope: ConfigScope = "local") -> None:
        self._write(["config", f"--{scope}", key, value])

    def unset_config(self, key: str, scope: ConfigScope = "local") -> bool:
        # Exit 5 means the key was not set.
        result = self._exec(["config", f"--{scope}", "--unset", key])
        if result.returncode == 5:
            return False
        if result.returncode != 0:
            stderr = (result.stderr or "").strip()
            raise GitCommandError(
                f"git config --unset {key} failed: {stderr or f'exit {result.returncode}'}",
                args=["config", f"--{scope}", "--unset", key],
                returncode=result.returncode,
                stderr=stderr,
            )
        return True

    def init(self, directory: str | None = None) -> int:
        return self.run(["init", directory] if directory else ["init"])

    def clone(self, url: str, directory: str | None = None, extra: Sequence[str] = ()) -> int:
        args = ["clone", *extra, url]
        if directory:
            args.append(directory)
        return self.run(args)

    def remote_url(self, name: str = "origin") -> str | None:
        return self._read(["remote", "get-url", name])

    def remotes(self) -> list[Remote]:
        output = self._read(["remote", "-v"])
        if output is None:
            return []
        seen: dict[str, Remote] = {}
        for line in output.splitlines():
            parts = line.split()
            if len(parts) < 3 or parts[2] != "(fetch)":
                continue
            seen.setdefault(parts[0], Remote(name=parts[0], url=parts[1]))
        return list(seen.values())

    def remote_exists(self, name: str) -> bool:
        return self.remote_url(name) is not None

    def set_remote_url(self, name: str, url: str) -> None:
        self._write(["remote", "set-url", name, url])

    def add_remote(self, name: str, url: str) -> None:
        self._write(["remote", "add", name, url])

    def current_branch(self) -> str | None:
        return self._read(["branch", "--show-current"])

    def upstream(self, branch: str) -> str | None:
        return self._read(["rev-parse", "--abbrev-ref", f"{branch}@{{upstream}}"])

    def ahead_behind(self, branch: str, upstream: str) -> tuple[int, int] | None:
        output = self._read(["rev-list", "--left-right", "--count", f"{branch}...{upstream}"])
        if output is None:
            return None
        parts = output.split()
        if len(parts) != 2 or not all(part.isdigit() for part in parts):
            return None
        return int(parts[0]), int(parts[1])

    def status_porcelain(self) -> list[str]:
        output = self._read(["status", "--porcelain"])
        return output.splitlines() if output else []

    def last_commit(self) -> CommitSummary | None:
        output = self._read(["log", "-1", "--pretty=format:%h%x00%s%x00%cr"])
        if output is None:
            return None
        short_hash, _, rest = output.partition("\x00")
        subject, _, relative_date = rest.partition("\x00")
        return CommitSummary(short_hash=short_hash, subject=subject, relative_date=relative_date)

    def version(self) -> str | None:
        return self._read(["--version"])

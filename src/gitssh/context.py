"""Explicit context passed to every core operation in place of globals."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Mapping

from gitssh.cache import SessionCache
from gitssh.git import Git
from gitssh.remotes import DEFAULT_SERVICES
from gitssh.ssh import DEFAULT_PROBE_TIMEOUT, DEFAULT_SSH_CONFIG, HostAlias, read_host_aliases
from gitssh.store import ConfigStore


@dataclass(frozen=True)
class Context:
    store: ConfigStore
    cache: SessionCache
    git: Git = field(default_factory=Git)
    ssh_config_file: Path = DEFAULT_SSH_CONFIG
    services: Mapping[str, str] = field(default_factory=lambda: dict(DEFAULT_SERVICES))
    probe_timeout: float = DEFAULT_PROBE_TIMEOUT

    def git_at(self, repo_path: str | Path) -> Git:
        return self.git.at(repo_path)

    def with_git(self, git: Git) -> "Context":
        return replace(self, git=git)

    def host_aliases(self) -> list[HostAlias]:
        return read_host_aliases(self.ssh_config_file)

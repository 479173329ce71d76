from __future__ import annotations

import io
from dataclasses import dataclass, field
from pathlib import Path

import pytest

from gitssh.cache import SessionCache
from gitssh.context import Context
from gitssh.git import CommitSummary, Remote
from gitssh.store import ConfigStore

SSH_CONFIG = """\
Host github.com
    HostName github.com
    User git

Host github-alice
    HostName github.com
    User git
    IdentityFile ~/.ssh/id_ed25519_alice

Host github-bob
    HostName github.com
    User git
    IdentityFile ~/.ssh/id_ed25519_bob

Host build-box
    HostName 10.0.0.5
    User deploy

Host *
    AddKeysToAgent yes
"""


@dataclass
class FakeGitState:
    toplevel: str | None = None
    local: dict[str, str] = field(default_factory=dict)
    global_: dict[str, str] = field(default_factory=dict)
    remotes: dict[str, str] = field(default_factory=dict)
    branch: str | None = "main"
    porcelain: list[str] = field(default_factory=list)
    last_commit: CommitSummary | None = None
    upstream: str | None = None
    ahead_behind: tuple[int, int] | None = None
    run_code: int = 0
    runs: list[tuple[str | None, list[str]]] = field(default_factory=list)
    writes: list[tuple[str | None, str, str, str]] = field(default_factory=list)


class FakeGit:
    """In-memory stand-in for :class:`gitssh.git.Git`; every ``at()`` shares one state."""

    def __init__(self, cwd=None, *, state: FakeGitState | None = None) -> None:
        self.cwd = str(cwd) if cwd is not None else None
        self.state = state if state is not None else FakeGitState()

    def at(self, cwd) -> "FakeGit":
        return FakeGit(cwd, state=self.state)

    def _scope(self, scope) -> dict[str, str]:
        return self.state.global_ if scope == "global" else self.state.local

    def run(self, args) -> int:
        self.state.runs.append((self.cwd, list(args)))
        return self.state.run_code

    def toplevel(self) -> str | None:
        return self.state.toplevel

    def get_config(self, key, scope=None):
        if scope is None:
            return self.state.local.get(key) or self.state.global_.get(key)
        return self._scope(scope).get(key)

    def set_config(self, key, value, scope="local") -> None:
        self.state.writes.append((self.cwd, scope, key, value))
        self._scope(scope)[key] = value

    def unset_config(self, key, scope="local") -> bool:
        return self._scope(scope).pop(key, None) is not None

    def init(self, directory=None) -> int:
        return self.run(["init", directory] if directory else ["init"])

    def clone(self, url, directory=None, extra=()) -> int:
        args = ["clone", *extra, url]
        if directory:
            args.append(directory)
        return self.run(args)

    def remote_url(self, name="origin"):
        return self.state.remotes.get(name)

    def remotes(self) -> list[Remote]:
        return [Remote(name=name, url=url) for name, url in self.state.remotes.items()]

    def remote_exists(self, name) -> bool:
        return name in self.state.remotes

    def set_remote_url(self, name, url) -> None:
        self.state.remotes[name] = url

    def add_remote(self, name, url) -> None:
        self.state.remotes[name] = url

    def current_branch(self):
        return self.state.branch

    def upstream(self, branch):
        return self.state.upstream

    def ahead_behind(self, branch, upstream):
        return self.state.ahead_behind

    def status_porcelain(self) -> list[str]:
        return list(self.state.porcelain)

    def last_commit(self):
        return self.state.last_commit

    def version(self):
        return "git version 2.45.0"


@pytest.fixture
def repo(tmp_path) -> Path:
    path = tmp_path / "work" / "alice-app"
    (path / ".git").mkdir(parents=True)
    return path


@pytest.fixture
def fake_git(repo) -> FakeGit:
    return FakeGit(state=FakeGitState(toplevel=str(repo)))


@pytest.fixture
def ssh_config(tmp_path) -> Path:
    path = tmp_path / "ssh_config"
    path.write_text(SSH_CONFIG, encoding="utf-8")
    return path


@pytest.fixture
def store(tmp_path) -> ConfigStore:
    home = tmp_path / "home"
    return ConfigStore(users_file=home / "users.json", bindings_file=home / "sessions.json")


@pytest.fixture
def cache(tmp_path) -> SessionCache:
    return SessionCache(tmp_path / "session")


@pytest.fixture
def ctx(store, cache, fake_git, ssh_config) -> Context:
    return Context(store=store, cache=cache, git=fake_git, ssh_config_file=ssh_config)


@pytest.fixture
def registered(store) -> ConfigStore:
    store.put_identity("alice", "Alice Liddell", "alice@example.com", "github-alice")
    store.put_identity("bob", "Bob Builder", "bob@example.com", "github-bob")
    return store


@pytest.fixture
def cli_config(tmp_path, monkeypatch, fake_git, ssh_config) -> Path:
    monkeypatch.setenv("GITSSH_HOME", str(tmp_path / "home"))
    monkeypatch.setenv("GITSSH_SESSION_FILE", str(tmp_path / "session"))
    monkeypatch.setattr(
        "gitssh.cli.main.Git", lambda cwd=None: fake_git.at(cwd) if cwd else fake_git
    )
    config_path = tmp_path / "config.toml"
    config_path.write_text(
        f"ssh_config_file = '{ssh_config}'\nprobe_timeout = 1\n", encoding="utf-8"
    )
    return config_path


@pytest.fixture
def run_cli(cli_config):
    from gitssh.cli.main import main

    def _run(*argv: str, stdin: str = "") -> tuple[int, str, str]:
        out = io.StringIO()
        err = io.StringIO()
        rc = main(
            ["--config", str(cli_config), *argv],
            stdin=io.StringIO(stdin),
            stdout=out,
            stderr=err,
        )
        return rc, out.getvalue(), err.getvalue()

    return _run

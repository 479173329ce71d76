from __future__ import annotations

import shutil
import subprocess

import pytest

from gitssh.errors import GitCommandError, MissingDependencyError
from gitssh.git import Git

pytestmark = pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")


@pytest.fixture
def git_repo(tmp_path):
    path = tmp_path / "repo"
    path.mkdir()
    subprocess.run(["git", "init", "-q"], cwd=path, check=True)
    return path


def test_config_and_remotes_round_trip(git_repo) -> None:
    git = Git(git_repo)
    assert git.toplevel() == str(git_repo.resolve())
    assert git.get_config("user.nickname", "local") is None

    git.set_config("user.nickname", "Alice Liddell")
    assert git.get_config("user.nickname", "local") == "Alice Liddell"
    assert git.unset_config("user.nickname") is True
    assert git.unset_config("user.nickname") is False

    assert git.remotes() == []
    git.add_remote("origin", "https://github.com/alice/app.git")
    git.set_remote_url("origin", "git@github-alice:alice/app.git")
    assert git.remote_url("origin") == "git@github-alice:alice/app.git"
    assert [remote.name for remote in git.remotes()] == ["origin"]
    assert git.remote_exists("upstream") is False


def test_empty_repository_has_no_last_commit(git_repo) -> None:
    git = Git(git_repo)
    assert git.last_commit() is None
    assert git.status_porcelain() == []


def test_failed_write_raises_git_command_error(git_repo) -> None:
    git = Git(git_repo)
    git.add_remote("origin", "https://github.com/alice/app.git")
    with pytest.raises(GitCommandError) as excinfo:
        git.add_remote("origin", "https://github.com/alice/app.git")
    assert excinfo.value.command[:2] == ("remote", "add")


def test_outside_repository_toplevel_is_none(tmp_path) -> None:
    assert Git(tmp_path).toplevel() is None


def test_missing_binary_raises_missing_dependency(tmp_path) -> None:
    with pytest.raises(MissingDependencyError):
        Git(tmp_path, binary="gitssh-no-such-git").version()


def test_branch_without_upstream_has_no_tracking(git_repo) -> None:
    git = Git(git_repo)
    assert git.upstream("main") is None
    assert git.ahead_behind("main", "origin/main") is None

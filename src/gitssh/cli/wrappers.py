"""Identity-aware wrappers around everyday git commands."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Sequence

from gitssh.context import Context
from gitssh.errors import NotFoundError, OperationCancelled
from gitssh.git import CommitSummary
from gitssh.identity import Binding
from gitssh.mismatch import Mismatch, MismatchResult, confirm_identity_gate, detect_mismatch
from gitssh.prompts import Prompter
from gitssh.remotes import (
    ARCHIVE_SUFFIX,
    AddressKind,
    ConversionProposal,
    KeyBased,
    PasswordOriented,
    classify,
    decompose,
    key_based_address,
    propose_conversion,
)
from gitssh.resolver import (
    EffectiveIdentity,
    PromptOutcome,
    ensure_identity_configured,
    resolve_effective_identity,
)
from gitssh.ssh import HostAlias, ProbeResult, find_alias, probe_host

logger = logging.getLogger(__name__)


def require_repository(ctx: Context, path: str | Path | None = None) -> str:
    git = ctx.git_at(path) if path is not None else ctx.git
    top = git.toplevel()
    if top is None:
        raise NotFoundError("not in a git repository")
    return top


def probe_remote(ctx: Context, address: str | None) -> ProbeResult | None:
    """Probe the SSH host behind a key-based address; ``None`` for anything else."""
    if not address:
        return None
    parsed = classify(address, ctx.services)
    if not isinstance(parsed, KeyBased):
        return None
    return probe_host(parsed.host, timeout=ctx.probe_timeout, user=parsed.user)


def ensure_session_user(ctx: Context, repo_path: str, prompter: Prompter) -> None:
    if ctx.cache.get_cached_binding(repo_path) is not None:
        return
    prompter.say("Warning: no user set for this repository")
    outcome = ensure_identity_configured(ctx, repo_path, prompter)
    prompter.say()
    if not outcome.ok:
        raise OperationCancelled("no identity selected for this repository")


def _gate(ctx: Context, repo_path: str, prompter: Prompter, action: str) -> None:
    if not confirm_identity_gate(detect_mismatch(ctx, repo_path), prompter):
        raise OperationCancelled(f"{action} cancelled")


def commit(ctx: Context, repo_path: str, prompter: Prompter, git_args: Sequence[str]) -> int:
    ensure_session_user(ctx, repo_path, prompter)
    prompter.say(f"Committing as: {resolve_effective_identity(ctx, repo_path)}")
    _gate(ctx, repo_path, prompter, "commit")
    return ctx.git_at(repo_path).run(["commit", *git_args])


def push(ctx: Context, repo_path: str, prompter: Prompter, git_args: Sequence[str]) -> int:
    ensure_session_user(ctx, repo_path, prompter)
    prompter.say(f"Pushing as: {resolve_effective_identity(ctx, repo_path)}")

    origin = ctx.git_at(repo_path).remote_url("origin")
    if isinstance(classify(origin or "", ctx.services), PasswordOriented):
        prompter.say("Tip: use 'gitssh remote convert' to avoid password prompts")
    probe = probe_remote(ctx, origin)
    if probe is not None and not probe.ok:
        prompter.say("Warning: SSH connection test failed - push may require authentication")

    _gate(ctx, repo_path, prompter, "push")
    return ctx.git_at(repo_path).run(["push", *git_args])


def pull(ctx: Context, repo_path: str, prompter: Prompter, git_args: Sequence[str]) -> int:
    prompter.say(f"Pulling as: {resolve_effective_identity(ctx, repo_path)}")
    probe = probe_remote(ctx, ctx.git_at(repo_path).remote_url("origin"))
    if probe is not None and not probe.ok:
        prompter.say("Warning: SSH connection test failed - pull may require authentication")
    return ctx.git_at(repo_path).run(["pull", *git_args])


def fetch(ctx: Context, repo_path: str, prompter: Prompter, git_args: Sequence[str]) -> int:
    origin = ctx.git_at(repo_path).remote_url("origin")
    parsed = classify(origin or "", ctx.services)
    if isinstance(parsed, KeyBased):
        prompter.say(f"Testing SSH connection to {parsed.host}...")
        probe = probe_remote(ctx, origin)
        if probe is not None and probe.ok:
            prompter.say("SSH connection verified")
        else:
            prompter.say("Warning: SSH connection failed - fetch may require authentication")
    return ctx.git_at(repo_path).run(["fetch", *git_args])


def clone_alternative(ctx: Context, url: str) -> str | None:
    """Key-based address to offer instead of an HTTPS clone URL, if one is known."""
    parsed = classify(url, ctx.services)
    if not isinstance(parsed, PasswordOriented):
        return None
    owner, repo_name = parsed.ref.owner, parsed.ref.repo_name
    aliases = ctx.host_aliases()
    identity = ctx.store.get_identity(owner)
    if identity is not None:
        entry = find_alias(aliases, identity.host_alias) or HostAlias(
            alias=identity.host_alias, hostname=identity.host_alias
        )
        return key_based_address(entry, owner, repo_name)
    proposal = propose_conversion(url, aliases, ctx.services)
    if isinstance(proposal, ConversionProposal) and proposal.recommended_plan is not None:
        return proposal.recommended_plan.new_address
    return None


def _clone_directory(url: str, directory: str | None) -> str:
    if directory:
        return directory
    ref = decompose(url)
    if ref is not None:
        return ref.repo_name
    name = url.rstrip("/").rsplit("/", 1)[-1].rsplit(":", 1)[-1]
    return name[: -len(ARCHIVE_SUFFIX)] if name.endswith(ARCHIVE_SUFFIX) else name


def clone(
    ctx: Context,
    cwd: str | Path,
    prompter: Prompter,
    url: str,
    directory: str | None = None,
    git_args: Sequence[str] = (),
) -> int:
    ref = decompose(url, ctx.services)
    if ref is not None:
        prompter.say(f"Detected: {ref.owner}/{ref.repo_name}")

    alternative = clone_alternative(ctx, url)
    if alternative is not None:
        owner = ref.owner if ref is not None else ""
        prompter.say(f"SSH alternative available for user '{owner}':")
        prompter.say(f"   {alternative}")
        if prompter.confirm("Use SSH URL for passwordless access?", default=True):
            url = alternative
            prompter.say("Switching to SSH URL")

    prompter.say("Cloning repository...")
    code = ctx.git_at(cwd).clone(url, directory, git_args)
    if code != 0:
        return code
    prompter.say("Clone successful!")

    target = Path(cwd) / _clone_directory(url, directory)
    if target.is_dir():
        repo_path = ctx.git_at(target).toplevel() or str(target.resolve())
        prompter.say("Setting up user configuration...")
        ensure_identity_configured(ctx, repo_path, prompter)
    return 0


def init_repo(
    ctx: Context, cwd: str | Path, prompter: Prompter, git_args: Sequence[str] = ()
) -> PromptOutcome | None:
    """Run ``git init`` then the auto-prompt flow. Returns ``None`` if git failed."""
    code = ctx.git_at(cwd).run(["init", *git_args])
    if code != 0:
        return None
    positional = [arg for arg in git_args if not arg.startswith("-")]
    target = Path(cwd) / positional[-1] if positional else Path(cwd)
    repo_path = ctx.git_at(target).toplevel()
    if repo_path is None:
        return None
    prompter.say("Setting up user configuration...")
    return ensure_identity_configured(ctx, repo_path, prompter)


def worktree_add(
    ctx: Context,
    repo_path: str,
    prompter: Prompter,
    path: str,
    branch: str | None = None,
) -> int:
    args = ["worktree", "add", path]
    if branch:
        args.append(branch)
    code = ctx.git_at(repo_path).run(args)
    worktree = Path(path) if os.path.isabs(path) else Path(repo_path) / path
    if code != 0 or not worktree.is_dir():
        return code

    prompter.say("Setting up user configuration for worktree...")
    session = ctx.cache.get_cached_binding(repo_path)
    if session is None:
        prompter.say("No user config found for main repository")
        prompter.say("Set up user config in worktree manually if needed")
        return 0
    git = ctx.git_at(worktree)
    git.set_config("user.name", session.name)
    git.set_config("user.email", session.email)
    prompter.say(f"Applied user config to worktree: {session}")
    return 0


@dataclass(frozen=True)
class BranchInfo:
    branch: str | None
    author: EffectiveIdentity
    upstream: str | None = None
    ahead: int | None = None
    behind: int | None = None

    @property
    def tracking_status(self) -> str | None:
        if self.ahead is None or self.behind is None:
            return None
        if not self.ahead and not self.behind:
            return "Up to date"
        parts = []
        if self.ahead:
            parts.append(f"{self.ahead} commits ahead")
        if self.behind:
            parts.append(f"{self.behind} commits behind")
        return ", ".join(parts)

    def to_dict(self) -> dict[str, object]:
        return {
            "branch": self.branch,
            "author": str(self.author),
            "upstream": self.upstream,
            "ahead": self.ahead,
            "behind": self.behind,
        }


def branch_info(ctx: Context, repo_path: str) -> BranchInfo:
    """Current branch, who commits on it, and how it compares with its upstream."""
    git = ctx.git_at(repo_path)
    branch = git.current_branch()
    author = resolve_effective_identity(ctx, repo_path)
    upstream = git.upstream(branch) if branch else None
    if branch is None or upstream is None:
        return BranchInfo(branch=branch, author=author, upstream=upstream)
    counts = git.ahead_behind(branch, upstream)
    ahead, behind = counts if counts is not None else (None, None)
    return BranchInfo(branch=branch, author=author, upstream=upstream, ahead=ahead, behind=behind)


def log_user(ctx: Context, repo_path: str, prompter: Prompter, git_args: Sequence[str]) -> int:
    effective = resolve_effective_identity(ctx, repo_path)
    if effective.binding is None:
        prompter.say("Warning: no user email configured")
        return ctx.git_at(repo_path).run(["log", "--oneline", *git_args])
    header = f"Commits by current user ({effective.binding.email}):"
    prompter.say(header)
    prompter.say("=" * len(header))
    return ctx.git_at(repo_path).run(
        ["log", f"--author={effective.binding.email}", "--oneline", *git_args]
    )


@dataclass(frozen=True)
class RepositoryReport:
    repo_name: str
    repo_path: str
    branch: str | None
    effective: EffectiveIdentity
    session: Binding | None
    remote: str | None
    remote_kind: AddressKind | None
    owner: str | None
    mismatch: MismatchResult
    changes: int
    last_commit: CommitSummary | None
    probe: ProbeResult | None = None

    def to_dict(self) -> dict[str, object]:
        return {
            "repository": self.repo_name,
            "path": self.repo_path,
            "branch": self.branch,
            "effective_identity": str(self.effective),
            "identity_source": self.effective.source.value,
            "session_identity": str(self.session) if self.session else None,
            "remote": self.remote,
            "remote_kind": self.remote_kind.value if self.remote_kind else None,
            "remote_owner": self.owner,
            "mismatch": isinstance(self.mismatch, Mismatch),
            "uncommitted_changes": self.changes,
            "last_commit": (
                {
                    "hash": self.last_commit.short_hash,
                    "subject": self.last_commit.subject,
                    "date": self.last_commit.relative_date,
                }
                if self.last_commit
                else None
            ),
            "ssh_ok": self.probe.ok if self.probe else None,
        }


def repository_report(ctx: Context, repo_path: str, *, probe: bool = False) -> RepositoryReport:
    git = ctx.git_at(repo_path)
    remote = git.remote_url("origin")
    parsed = classify(remote, ctx.services) if remote else None
    ref = decompose(parsed) if parsed is not None else None
    return RepositoryReport(
        repo_name=os.path.basename(repo_path.rstrip("/")) or repo_path,
        repo_path=repo_path,
        branch=git.current_branch(),
        effective=resolve_effective_identity(ctx, repo_path),
        session=ctx.cache.get_cached_binding(repo_path),
        remote=remote,
        remote_kind=parsed.kind if parsed is not None else None,
        owner=ref.owner if ref is not None else None,
        mismatch=detect_mismatch(ctx, repo_path),
        changes=len(git.status_porcelain()),
        last_commit=git.last_commit(),
        probe=probe_remote(ctx, remote) if probe else None,
    )


@dataclass(frozen=True)
class Issue:
    area: str
    problem: str
    fix: str = ""


@dataclass
class Analysis:
    report: RepositoryReport
    issues: list[Issue] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.issues


def analyze(ctx: Context, repo_path: str) -> Analysis:
    report = repository_report(ctx, repo_path, probe=True)
    analysis = Analysis(report=report)
    if not report.effective.configured:
        analysis.issues.append(
            Issue("user", "incomplete user configuration", "run 'gitssh session set'")
        )
    if report.remote is None:
        analysis.issues.append(Issue("remote", "no origin remote configured"))
    elif report.remote_kind == AddressKind.PASSWORD_ORIENTED:
        analysis.issues.append(
            Issue(
                "remote",
                "using HTTPS (requires password for push)",
                "run 'gitssh remote convert' to convert to SSH",
            )
        )
    if isinstance(report.mismatch, Mismatch):
        analysis.issues.append(
            Issue(
                "user",
                f"user mismatch (git: {report.mismatch.local_name}, "
                f"remote: {report.mismatch.remote_account})",
                "use 'gitssh session set' to select the correct user",
            )
        )
    if report.probe is not None and not report.probe.ok:
        host = classify(report.remote or "", ctx.services)
        host_name = host.host if isinstance(host, KeyBased) else report.remote
        analysis.issues.append(
            Issue("ssh", "SSH connection failed", f"check SSH key configuration for {host_name}")
        )
    return analysis

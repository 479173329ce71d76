"""Compare the effective identity with the account that owns a repository's remote."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Union

from gitssh.context import Context
from gitssh.prompts import Prompter
from gitssh.remotes import DEFAULT_SERVICES, decompose
from gitssh.resolver import resolve_effective_identity


@dataclass(frozen=True)
class Match:
    name: str


@dataclass(frozen=True)
class Mismatch:
    local_name: str
    remote_account: str


@dataclass(frozen=True)
class Indeterminate:
    reason: str


MismatchResult = Union[Match, Mismatch, Indeterminate]


def compare_identity(
    local_name: str | None,
    remote_address: str | None,
    services: Mapping[str, str] = DEFAULT_SERVICES,
) -> MismatchResult:
    if not remote_address:
        return Indeterminate("no remote configured")
    ref = decompose(remote_address, services)
    if ref is None:
        return Indeterminate("remote owner could not be determined")
    if not local_name:
        return Indeterminate("identity not configured")
    # Exact, case-sensitive comparison.
    if local_name == ref.owner:
        return Match(name=local_name)
    return Mismatch(local_name=local_name, remote_account=ref.owner)


def detect_mismatch(ctx: Context, repo_path: str, remote: str = "origin") -> MismatchResult:
    effective = resolve_effective_identity(ctx, repo_path)
    address = ctx.git_at(repo_path).remote_url(remote)
    return compare_identity(effective.display_name, address, ctx.services)


def confirm_identity_gate(result: MismatchResult, prompter: Prompter) -> bool:
    """True when the caller may proceed. Only an explicit yes gets past a mismatch."""
    if not isinstance(result, Mismatch):
        return True
    prompter.say("Warning: git user doesn't match remote repository owner")
    prompter.say(f"  Local user:  {result.local_name}")
    prompter.say(f"  Remote user: {result.remote_account}")
    return prompter.confirm("Continue anyway?", default=False)

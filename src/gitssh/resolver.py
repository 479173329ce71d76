"""Effective identity resolution and the auto-prompt flow run on entering a repository.

Resolution order is session cache, durable binding, git local config, git global
config. A git tier only counts when it has both ``user.name`` and ``user.email``; local
and global values are never mixed.

The auto-prompt flow is a small state machine::

    CACHED ----------------------------------------------> DONE
    PERSISTED --(Use saved config? yes)-------------------> DONE
              \\-(no)--> SELECT
    FRESH -----(Use current user? yes)--------------------> DONE
              \\-(no)--> SELECT
    SELECT ----(registered or custom identity)------------> DONE
              \\-(end of input, invalid custom entry)-----> FAILED
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable

from gitssh.context import Context
from gitssh.errors import NotFoundError
from gitssh.git import ConfigScope, Git
from gitssh.identity import NOT_CONFIGURED, Binding, is_valid_email
from gitssh.prompts import Prompter
from gitssh.remotes import PasswordOriented, classify, decompose

logger = logging.getLogger(__name__)


class IdentitySource(str, Enum):
    CACHE = "cache"
    DURABLE = "durable"
    GIT_LOCAL = "git-local"
    GIT_GLOBAL = "git-global"
    NONE = "none"


@dataclass(frozen=True)
class EffectiveIdentity:
    binding: Binding | None
    source: IdentitySource

    @property
    def configured(self) -> bool:
        return self.binding is not None

    @property
    def display_name(self) -> str | None:
        return self.binding.name if self.binding is not None else None

    def __str__(self) -> str:
        return str(self.binding) if self.binding is not None else NOT_CONFIGURED


def git_identity(git: Git, scope: ConfigScope) -> Binding | None:
    name = git.get_config("user.name", scope)
    email = git.get_config("user.email", scope)
    if name and email:
        return Binding(name=name, email=email)
    return None


def resolve_effective_identity(ctx: Context, repo_path: str) -> EffectiveIdentity:
    cached = ctx.cache.get_cached_binding(repo_path)
    if cached is not None:
        return EffectiveIdentity(cached, IdentitySource.CACHE)

    durable = ctx.store.get_durable_binding(repo_path)
    if durable is not None:
        return EffectiveIdentity(durable, IdentitySource.DURABLE)

    git = ctx.git_at(repo_path)
    for scope, source in (("local", IdentitySource.GIT_LOCAL), ("global", IdentitySource.GIT_GLOBAL)):
        binding = git_identity(git, scope)
        if binding is not None:
            return EffectiveIdentity(binding, source)
    return EffectiveIdentity(None, IdentitySource.NONE)


def apply_binding(ctx: Context, repo_path: str, binding: Binding, *, persist: bool = True) -> None:
    """Write ``binding`` to git local config and the cache, and to the durable store if ``persist``."""
    git = ctx.git_at(repo_path)
    git.set_config("user.name", binding.name)
    git.set_config("user.email", binding.email)
    ctx.cache.put_cached_binding(repo_path, binding)
    if persist:
        ctx.store.put_durable_binding(repo_path, binding)
    logger.debug("applied %s to %s (persist=%s)", binding, repo_path, persist)


def select_identity(ctx: Context, repo_path: str, name: str) -> Binding:
    identity = ctx.store.get_identity(name)
    if identity is None:
        raise NotFoundError(
            f"user '{name}' not found", available=ctx.store.list_identity_names()
        )
    apply_binding(ctx, repo_path, identity.binding)
    return identity.binding


def forget(ctx: Context, repo_path: str) -> tuple[bool, bool]:
    """Drop both binding tiers. Returns ``(durable_removed, cached_removed)``."""
    durable = ctx.store.remove_durable_binding(repo_path)
    cached = ctx.cache.remove_cached_binding(repo_path)
    return durable, cached


class PromptState(str, Enum):
    CACHED = "cached"
    PERSISTED = "persisted"
    FRESH = "fresh"
    SELECT = "select"
    DONE = "done"
    FAILED = "failed"


TERMINAL_STATES = frozenset({PromptState.DONE, PromptState.FAILED})


@dataclass
class PromptOutcome:
    state: PromptState
    binding: Binding | None = None
    visited: list[PromptState] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.state == PromptState.DONE


class AutoPrompt:
    def __init__(self, ctx: Context, repo_path: str, prompter: Prompter) -> None:
        self.ctx = ctx
        self.repo_path = repo_path
        self.prompter = prompter
        self.git = ctx.git_at(repo_path)
        self.repo_name = os.path.basename(repo_path.rstrip("/")) or repo_path
        self.binding: Binding | None = None

    def initial_state(self) -> PromptState:
        if self.ctx.cache.get_cached_binding(self.repo_path) is not None:
            return PromptState.CACHED
        if self.ctx.store.get_durable_binding(self.repo_path) is not None:
            return PromptState.PERSISTED
        if git_identity(self.git, "local") is not None:
            return PromptState.FRESH
        return PromptState.SELECT

    def run(self) -> PromptOutcome:
        state = self.initial_state()
        if state == PromptState.SELECT:
            self._describe_repository()
            self.prompter.say("No git user configured for this repository")
        handlers: dict[PromptState, Callable[[], PromptState]] = {
            PromptState.CACHED: self.cached,
            PromptState.PERSISTED: self.persisted,
            PromptState.FRESH: self.fresh,
            PromptState.SELECT: self.select,
        }
        visited: list[PromptState] = []
        while state not in TERMINAL_STATES:
            visited.append(state)
            state = handlers[state]()
        logger.debug("auto-prompt for %s: %s -> %s", self.repo_path, visited, state.value)
        return PromptOutcome(state=state, binding=self.binding, visited=visited)

    def _origin(self) -> str | None:
        return self.git.remote_url("origin")

    def _describe_repository(self) -> str | None:
        """Print the repository header and return the remote owner, if any."""
        self.prompter.say(f"Git Repository Detected: {self.repo_name}")
        origin = self._origin()
        if origin is None:
            return None
        self.prompter.say(f"Remote: {origin}")
        parsed = classify(origin, self.ctx.services)
        ref = decompose(parsed)
        owner = ref.owner if ref is not None else None
        if owner:
            self.prompter.say(f"Remote user: {owner}")
        if isinstance(parsed, PasswordOriented):
            self.prompter.say("Using HTTPS remote")
            self.prompter.say("Tip: use 'gitssh remote convert' for passwordless access")
        return owner

    def cached(self) -> PromptState:
        self.binding = self.ctx.cache.get_cached_binding(self.repo_path)
        self.prompter.say(f"Session user for {self.repo_name}: {self.binding}")
        return PromptState.DONE

    def persisted(self) -> PromptState:
        saved = self.ctx.store.get_durable_binding(self.repo_path)
        if saved is None:
            return PromptState.SELECT
        self.prompter.say(f"Found saved config for {self.repo_name}: {saved}")
        apply_binding(self.ctx, self.repo_path, saved, persist=False)
        if not self.prompter.confirm("Use saved config?", default=True):
            return PromptState.SELECT
        self.binding = saved
        self.prompter.say("Applied saved configuration")
        return PromptState.DONE

    def fresh(self) -> PromptState:
        owner = self._describe_repository()
        current = git_identity(self.git, "local")
        if current is None:
            return PromptState.SELECT
        self.prompter.say(f"Current user: {current}")
        if owner and owner != current.name:
            self.prompter.say(
                f"Warning: git user ({current.name}) doesn't match remote user ({owner})"
            )
            if self.ctx.store.get_identity(owner) is not None:
                self.prompter.say(
                    f"You have '{owner}' configured - use 'gitssh session set --user {owner}' to switch"
                )
        if not self.prompter.confirm("Use current user for this repository?", default=True):
            return PromptState.SELECT
        self.ctx.cache.put_cached_binding(self.repo_path, current)
        self.ctx.store.put_durable_binding(self.repo_path, current)
        self.binding = current
        self.prompter.say("Saved current user for future sessions")
        return PromptState.DONE

    def select(self) -> PromptState:
        identities = self.ctx.store.list_identities()
        default_user = self.ctx.store.get_default_user()
        default_index = None
        self.prompter.say("Available users:")
        for index, identity in enumerate(identities, start=1):
            marker = ""
            if identity.name == default_user:
                default_index = index
                marker = " (default)"
            self.prompter.say(
                f"  {index}) {identity.name} - {identity.display_name} "
                f"<{identity.contact_address}>{marker}"
            )
        custom_index = len(identities) + 1
        self.prompter.say(f"  {custom_index}) Enter custom name/email")

        choice = self.prompter.choose("Select user", custom_index, default=default_index)
        if choice is None:
            self.prompter.say("Selection cancelled")
            return PromptState.FAILED
        if choice == custom_index:
            return self._custom()

        binding = identities[choice - 1].binding
        apply_binding(self.ctx, self.repo_path, binding)
        self.binding = binding
        self.prompter.say(f"Set user: {binding}")
        return PromptState.DONE

    def _custom(self) -> PromptState:
        name = self.prompter.ask("Enter name: ")
        if not name:
            self.prompter.say("Error: name cannot be empty")
            return PromptState.FAILED
        email = self.prompter.ask("Enter email: ")
        if not email:
            self.prompter.say("Error: email cannot be empty")
            return PromptState.FAILED
        if not is_valid_email(email):
            self.prompter.say(f"Error: invalid email format: {email}")
            return PromptState.FAILED
        binding = Binding(name=name, email=email)
        apply_binding(self.ctx, self.repo_path, binding)
        self.binding = binding
        self.prompter.say(f"Set custom user: {binding}")
        return PromptState.DONE


def ensure_identity_configured(ctx: Context, repo_path: str, prompter: Prompter) -> PromptOutcome:
    return AutoPrompt(ctx, repo_path, prompter).run()

from __future__ import annotations

import io

import pytest

from gitssh.errors import NotFoundError
from gitssh.identity import Binding
from gitssh.prompts import Prompter
from gitssh.resolver import (
    AutoPrompt,
    IdentitySource,
    PromptState,
    apply_binding,
    ensure_identity_configured,
    forget,
    resolve_effective_identity,
    select_identity,
)

ALICE = Binding("Alice Liddell", "alice@example.com")
BOB = Binding("Bob Builder", "bob@example.com")


def _prompter(text: str = "") -> tuple[Prompter, io.StringIO]:
    out = io.StringIO()
    return Prompter(io.StringIO(text), out), out


def test_resolution_prefers_cache_then_durable_then_git(ctx, fake_git, repo) -> None:
    path = str(repo)
    assert resolve_effective_identity(ctx, path).source == IdentitySource.NONE
    assert str(resolve_effective_identity(ctx, path)) == "Not configured"

    fake_git.state.global_.update({"user.name": "Global", "user.email": "g@example.com"})
    assert resolve_effective_identity(ctx, path).source == IdentitySource.GIT_GLOBAL

    fake_git.state.local.update({"user.name": "Local", "user.email": "l@example.com"})
    assert resolve_effective_identity(ctx, path).source == IdentitySource.GIT_LOCAL

    ctx.store.put_durable_binding(path, BOB)
    effective = resolve_effective_identity(ctx, path)
    assert (effective.binding, effective.source) == (BOB, IdentitySource.DURABLE)

    ctx.cache.put_cached_binding(path, ALICE)
    effective = resolve_effective_identity(ctx, path)
    assert (effective.binding, effective.source) == (ALICE, IdentitySource.CACHE)


def test_git_tiers_are_never_mixed(ctx, fake_git, repo) -> None:
    fake_git.state.local["user.name"] = "Local Only"
    fake_git.state.global_.update({"user.name": "Global", "user.email": "g@example.com"})
    effective = resolve_effective_identity(ctx, str(repo))
    assert effective.binding == Binding("Global", "g@example.com")


def test_resolution_reads_durable_tier_without_touching_cache(ctx, repo) -> None:
    ctx.store.put_durable_binding(str(repo), BOB)
    resolve_effective_identity(ctx, str(repo))
    assert ctx.cache.get_cached_binding(str(repo)) is None


def test_apply_binding_writes_every_tier(ctx, fake_git, repo) -> None:
    apply_binding(ctx, str(repo), ALICE)
    assert fake_git.state.local == {"user.name": "Alice Liddell", "user.email": "alice@example.com"}
    assert ctx.cache.get_cached_binding(str(repo)) == ALICE
    assert ctx.store.get_durable_binding(str(repo)) == ALICE


def test_select_identity_unknown_name_lists_registered(ctx, registered, repo) -> None:
    with pytest.raises(NotFoundError) as excinfo:
        select_identity(ctx, str(repo), "mallory")
    assert excinfo.value.available == ("alice", "bob")


def test_forget_reports_each_tier(ctx, repo) -> None:
    ctx.store.put_durable_binding(str(repo), ALICE)
    assert forget(ctx, str(repo)) == (True, False)
    assert forget(ctx, str(repo)) == (False, False)


def test_cached_state_finishes_without_prompting(ctx, repo) -> None:
    ctx.cache.put_cached_binding(str(repo), ALICE)
    prompter, out = _prompter()
    outcome = ensure_identity_configured(ctx, str(repo), prompter)
    assert outcome.ok
    assert outcome.visited == [PromptState.CACHED]
    assert "Session user for alice-app: Alice Liddell <alice@example.com>" in out.getvalue()


def test_persisted_state_accepts_saved_config_by_default(ctx, fake_git, repo) -> None:
    ctx.store.put_durable_binding(str(repo), BOB)
    prompter, out = _prompter("\n")
    outcome = ensure_identity_configured(ctx, str(repo), prompter)
    assert outcome.state == PromptState.DONE
    assert outcome.binding == BOB
    assert ctx.cache.get_cached_binding(str(repo)) == BOB
    assert fake_git.state.local["user.email"] == "bob@example.com"
    assert "Applied saved configuration" in out.getvalue()


def test_persisted_state_declined_falls_through_to_selection(ctx, registered, repo) -> None:
    ctx.store.put_durable_binding(str(repo), BOB)
    prompter, out = _prompter("n\n1\n")
    outcome = ensure_identity_configured(ctx, str(repo), prompter)
    assert outcome.visited == [PromptState.PERSISTED, PromptState.SELECT]
    assert outcome.binding == ALICE
    assert ctx.store.get_durable_binding(str(repo)) == ALICE


def test_fresh_state_saves_current_git_user(ctx, registered, fake_git, repo) -> None:
    fake_git.state.local.update({"user.name": "Alice Liddell", "user.email": "alice@example.com"})
    prompter, out = _prompter("y\n")
    outcome = ensure_identity_configured(ctx, str(repo), prompter)
    assert outcome.visited == [PromptState.FRESH]
    assert ctx.cache.get_cached_binding(str(repo)) == ALICE
    assert ctx.store.get_durable_binding(str(repo)) == ALICE
    assert "Saved current user for future sessions" in out.getvalue()


def test_fresh_state_warns_when_remote_owner_differs(ctx, registered, fake_git, repo) -> None:
    fake_git.state.local.update({"user.name": "alice", "user.email": "alice@example.com"})
    fake_git.state.remotes["origin"] = "https://github.com/bob/tools.git"
    prompter, out = _prompter("y\n")
    ensure_identity_configured(ctx, str(repo), prompter)
    text = out.getvalue()
    assert "Remote user: bob" in text
    assert "Warning: git user (alice) doesn't match remote user (bob)" in text
    assert "You have 'bob' configured - use 'gitssh session set --user bob' to switch" in text
    assert "Tip: use 'gitssh remote convert' for passwordless access" in text


def test_select_state_reprompts_on_invalid_choice(ctx, registered, repo) -> None:
    prompter, out = _prompter("9\nabc\n2\n")
    outcome = ensure_identity_configured(ctx, str(repo), prompter)
    assert outcome.binding == BOB
    text = out.getvalue()
    assert "No git user configured for this repository" in text
    assert text.count("Invalid selection. Please enter a number between 1 and 3.") == 2
    assert "Set user: Bob Builder <bob@example.com>" in text


def test_select_state_uses_default_user_on_empty_input(ctx, registered, repo) -> None:
    registered.set_default_user("bob")
    prompter, out = _prompter("\n")
    outcome = ensure_identity_configured(ctx, str(repo), prompter)
    assert outcome.binding == BOB
    assert "  2) bob - Bob Builder <bob@example.com> (default)" in out.getvalue()
    assert "Select user (1-3) [2]: " in out.getvalue()


def test_select_state_end_of_input_fails(ctx, registered, repo) -> None:
    prompter, out = _prompter("")
    outcome = ensure_identity_configured(ctx, str(repo), prompter)
    assert outcome.state == PromptState.FAILED
    assert not outcome.ok
    assert "Selection cancelled" in out.getvalue()
    assert ctx.cache.get_cached_binding(str(repo)) is None


def test_custom_entry_is_applied(ctx, fake_git, repo) -> None:
    prompter, out = _prompter("1\nCarol Danvers\ncarol@example.com\n")
    outcome = ensure_identity_configured(ctx, str(repo), prompter)
    assert outcome.binding == Binding("Carol Danvers", "carol@example.com")
    assert fake_git.state.local["user.name"] == "Carol Danvers"
    assert "Set custom user: Carol Danvers <carol@example.com>" in out.getvalue()


@pytest.mark.parametrize(
    ("answers", "message"),
    [
        ("1\n\n", "Error: name cannot be empty"),
        ("1\nCarol\n\n", "Error: email cannot be empty"),
        ("1\nCarol\ncarol-at-example\n", "Error: invalid email format: carol-at-example"),
    ],
)
def test_custom_entry_rejects_bad_input(ctx, repo, answers, message) -> None:
    prompter, out = _prompter(answers)
    outcome = ensure_identity_configured(ctx, str(repo), prompter)
    assert outcome.state == PromptState.FAILED
    assert message in out.getvalue()


def test_initial_state_follows_tier_precedence(ctx, fake_git, repo) -> None:
    prompt = AutoPrompt(ctx, str(repo), Prompter(io.StringIO(), io.StringIO()))
    assert prompt.initial_state() == PromptState.SELECT
    fake_git.state.local.update({"user.name": "Local", "user.email": "l@example.com"})
    assert prompt.initial_state() == PromptState.FRESH
    ctx.store.put_durable_binding(str(repo), BOB)
    assert prompt.initial_state() == PromptState.PERSISTED
    ctx.cache.put_cached_binding(str(repo), ALICE)
    assert prompt.initial_state() == PromptState.CACHED

from __future__ import annotations

import io

from gitssh.identity import Binding
from gitssh.mismatch import (
    Indeterminate,
    Match,
    Mismatch,
    compare_identity,
    confirm_identity_gate,
    detect_mismatch,
)
from gitssh.prompts import Prompter


def test_compare_identity_outcomes() -> None:
    assert compare_identity("alice", "git@github-alice:alice/app.git") == Match("alice")
    assert compare_identity("alice", "https://github.com/bob/app.git") == Mismatch("alice", "bob")
    assert compare_identity("alice", None) == Indeterminate("no remote configured")
    assert compare_identity(None, "https://github.com/bob/app.git") == Indeterminate(
        "identity not configured"
    )
    assert compare_identity("alice", "/srv/app.git") == Indeterminate(
        "remote owner could not be determined"
    )


def test_comparison_is_case_sensitive() -> None:
    assert isinstance(compare_identity("Alice", "https://github.com/alice/app.git"), Mismatch)


def test_detect_mismatch_uses_effective_display_name(ctx, fake_git, repo) -> None:
    fake_git.state.remotes["origin"] = "https://github.com/alice/app.git"
    ctx.cache.put_cached_binding(str(repo), Binding("alice", "alice@example.com"))
    assert detect_mismatch(ctx, str(repo)) == Match("alice")

    ctx.cache.put_cached_binding(str(repo), Binding("Alice Liddell", "alice@example.com"))
    assert detect_mismatch(ctx, str(repo)) == Mismatch("Alice Liddell", "alice")


def test_gate_passes_without_prompting_unless_mismatched() -> None:
    out = io.StringIO()
    prompter = Prompter(io.StringIO(), out)
    assert confirm_identity_gate(Match("alice"), prompter) is True
    assert confirm_identity_gate(Indeterminate("no remote configured"), prompter) is True
    assert out.getvalue() == ""


def test_gate_requires_explicit_yes() -> None:
    result = Mismatch("alice", "bob")
    for answer, expected in (("y\n", True), ("yes\n", True), ("\n", False), ("", False)):
        out = io.StringIO()
        assert confirm_identity_gate(result, Prompter(io.StringIO(answer), out)) is expected
        assert "  Local user:  alice" in out.getvalue()
        assert "  Remote user: bob" in out.getvalue()
        assert "Continue anyway? (y/N): " in out.getvalue()


def test_unknown_hosts_stay_indeterminate_until_configured() -> None:
    assert isinstance(compare_identity("alice", "git@work:acme/widget.git"), Indeterminate)
    assert isinstance(compare_identity("alice", "git@gitlab.com:acme/x.git"), Indeterminate)

    services = {"github": "github.com", "gitlab": "gitlab.com"}
    assert compare_identity("alice", "git@gitlab.com:acme/x.git", services) == Mismatch(
        "alice", "acme"
    )
    assert compare_identity("alice", "git@gitlab-alice:alice/x.git", services) == Match("alice")

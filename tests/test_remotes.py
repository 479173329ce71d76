from __future__ import annotations

import pytest

from gitssh.git import Remote
from gitssh.remotes import (
    AlreadyKeyBased,
    ConversionProposal,
    KeyBased,
    NoHostAvailable,
    NotSupported,
    PasswordOriented,
    Unrecognized,
    classify,
    decompose,
    implied_account,
    propose_conversion,
    propose_conversion_all,
    recommend_host,
    relevant_aliases,
    service_aliases,
)
from gitssh.ssh import HostAlias

ALIASES = [
    HostAlias("github.com", "github.com"),
    HostAlias("github-alice", "github.com", identity_file="~/.ssh/id_alice"),
    HostAlias("github-bob", "github.com"),
    HostAlias("work", "github.com"),
    HostAlias("build-box", "10.0.0.5", user="deploy"),
]


@pytest.mark.parametrize(
    "address",
    [
        "https://github.com/alice/app.git",
        "https://github.com/alice/app",
        "https://token@github.com/alice/app.git",
        "https://GitHub.com/alice/app/",
    ],
)
def test_https_addresses_on_known_host_are_password_oriented(address) -> None:
    parsed = classify(address)
    assert isinstance(parsed, PasswordOriented)
    assert parsed.service == "github"
    assert (parsed.ref.owner, parsed.ref.repo_name) == ("alice", "app")


def test_scp_address_on_service_host_is_key_based_without_alias() -> None:
    parsed = classify("git@github.com:alice/app.git")
    assert isinstance(parsed, KeyBased)
    assert not parsed.uses_alias
    assert parsed.user == "git"


def test_scp_address_on_conventional_alias_implies_account() -> None:
    parsed = classify("git@github-alice:bob/tools.git")
    assert isinstance(parsed, KeyBased)
    assert parsed.alias_account == "alice"
    assert parsed.ref.owner == "bob"


@pytest.mark.parametrize(
    "address",
    [
        "https://gitlab.example.com/alice/app.git",
        "https://github.com/alice",
        "git@unknown-host:alice/app.git",
        "ssh://git@github.com/alice/app.git",
        "/srv/git/app.git",
        "",
    ],
)
def test_other_addresses_are_unrecognized(address) -> None:
    assert isinstance(classify(address), Unrecognized)
    assert decompose(address) is None


def test_custom_service_table_extends_known_hosts() -> None:
    services = {"github": "github.com", "gitlab": "gitlab.example.com"}
    parsed = classify("https://gitlab.example.com/team/app.git", services)
    assert isinstance(parsed, PasswordOriented)
    assert parsed.service == "gitlab"
    assert implied_account("gitlab-team", services) == "team"


def test_nested_paths_keep_full_path_for_conversion() -> None:
    ref = decompose("https://github.com/org/group/app.git")
    assert (ref.owner, ref.repo_name, ref.path) == ("org", "app", "org/group/app")


def test_implied_account_requires_non_empty_suffix() -> None:
    assert implied_account("github-alice") == "alice"
    assert implied_account("github-") is None
    assert implied_account("work") is None


def test_relevant_aliases_skip_the_bare_service_host() -> None:
    names = [entry.alias for entry in relevant_aliases(ALIASES, "github")]
    assert names == ["github-alice", "github-bob", "work"]
    assert [entry.alias for entry in service_aliases(ALIASES)] == names


def test_single_matching_alias_is_recommended() -> None:
    result = propose_conversion("https://github.com/alice/app.git", ALIASES)
    assert isinstance(result, ConversionProposal)
    assert result.recommended.alias == "github-alice"
    assert result.recommended_index == 1
    plan = result.recommended_plan
    assert plan.new_address == "git@github-alice:alice/app.git"
    assert plan.original == "https://github.com/alice/app.git"
    assert plan.remote == "origin"


def test_no_recommendation_without_matching_alias() -> None:
    result = propose_conversion("https://github.com/carol/app.git", ALIASES)
    assert isinstance(result, ConversionProposal)
    assert result.recommended is None
    assert result.recommended_plan is None
    assert result.plan_for_choice(3).new_address == "git@work:carol/app.git"


def test_ambiguous_matches_are_not_recommended() -> None:
    aliases = [
        HostAlias("github-alice", "github.com"),
        HostAlias("github-alice", "github.com", user="other"),
    ]
    result = propose_conversion("https://github.com/alice/app.git", aliases)
    assert len(result.candidates) == 2
    assert result.recommended is None


def test_plan_for_choice_rejects_out_of_range() -> None:
    result = propose_conversion("https://github.com/alice/app.git", ALIASES)
    with pytest.raises(ValueError):
        result.plan_for_choice(0)
    with pytest.raises(ValueError):
        result.plan_for_choice(len(result.options) + 1)


def test_alias_based_address_is_already_converted() -> None:
    result = propose_conversion("git@github-alice:alice/app.git", ALIASES)
    assert result == AlreadyKeyBased(address="git@github-alice:alice/app.git", alias="github-alice")


def test_plain_ssh_address_can_move_to_an_alias() -> None:
    result = propose_conversion("git@github.com:bob/tools.git", ALIASES, remote="upstream")
    assert isinstance(result, ConversionProposal)
    assert result.recommended_plan.new_address == "git@github-bob:bob/tools.git"
    assert result.recommended_plan.remote == "upstream"


def test_unrecognized_address_is_not_supported() -> None:
    assert isinstance(propose_conversion("file:///srv/app.git", ALIASES), NotSupported)


def test_no_alias_for_service_reports_no_host() -> None:
    result = propose_conversion("https://github.com/alice/app.git", [ALIASES[-1]])
    assert isinstance(result, NoHostAvailable)
    assert result.ref.owner == "alice"


def test_batch_conversion_plans_each_https_remote_independently() -> None:
    remotes = [
        Remote("origin", "https://github.com/alice/app.git"),
        Remote("fork", "https://github.com/carol/app.git"),
        Remote("mirror", "git@github.com:bob/app.git"),
    ]
    outcomes = propose_conversion_all(remotes, ALIASES)
    assert [outcome.remote for outcome in outcomes] == ["origin", "fork"]
    assert outcomes[0].plan.new_address == "git@github-alice:alice/app.git"
    assert outcomes[1].plan is None
    assert outcomes[1].reason == "no matching SSH host found for user 'carol'"


def test_recommend_host_prefers_alias_then_registry() -> None:
    assert recommend_host("alice", ALIASES, {}).host == "github-alice"
    suggestion = recommend_host("carol", ALIASES, {"carol": "github-carol"})
    assert (suggestion.kind, suggestion.host) == ("suggested", "github-carol")
    assert recommend_host("dave", ALIASES, {}).kind == "none"

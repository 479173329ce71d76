"""Command-line interface for gitssh."""

from __future__ import annotations

import argparse
import json
import logging
import os
import platform
import shutil
import sys
from datetime import datetime
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as pkg_version
from pathlib import Path
from typing import Sequence

from gitssh.cache import SessionCache, repository_exists
from gitssh.cli import wrappers
from gitssh.cli.config import CLIConfig, ConfigError, load_cli_config
from gitssh.cli.sessions import (
    DEFAULT_EXPORT_FILE,
    SessionError,
    build_session_export,
    import_session,
    load_session_export,
    save_session_export,
)
from gitssh.context import Context
from gitssh.errors import (
    ExternalToolError,
    GitSSHError,
    IntegrityError,
    MissingDependencyError,
    NotFoundError,
    OperationCancelled,
    ValidationError,
)
from gitssh.git import Git
from gitssh.identity import default_host_alias, validate_email, validate_name
from gitssh.mismatch import Mismatch
from gitssh.prompts import Prompter
from gitssh.remotes import (
    AlreadyKeyBased,
    ConversionPlan,
    ConversionProposal,
    KeyBased,
    NoHostAvailable,
    NotSupported,
    PasswordOriented,
    classify,
    decompose,
    implied_account,
    key_based_address,
    parse_alias,
    propose_conversion,
    propose_conversion_all,
    recommend_host,
    relevant_aliases,
    service_aliases,
)
from gitssh.resolver import (
    AutoPrompt,
    PromptState,
    ensure_identity_configured,
    forget,
    git_identity,
    resolve_effective_identity,
    select_identity,
)
from gitssh.ssh import (
    HostAlias,
    ProbeResult,
    agent_keys,
    describe_key,
    find_alias,
    probe_host,
    ssh_version,
)
from gitssh.store import ConfigStore

EXIT_SUCCESS = 0
EXIT_VALIDATION_ERROR = 1
EXIT_TOOL_ERROR = 2
EXIT_INTEGRITY_ERROR = 3
EXIT_NOT_FOUND = 4
EXIT_CANCELLED = 5

PASSTHROUGH_COMMANDS = frozenset(
    {"commit", "push", "pull", "fetch", "status", "init-repo", "clone", "log-user"}
)

logger = logging.getLogger(__name__)


def _package_version() -> str:
    try:
        return pkg_version("gitssh")
    except PackageNotFoundError:
        return "0.0.0+local"


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gitssh", description="Manage git identities and SSH remotes per repository"
    )
    parser.add_argument("--version", action="version", version=f"gitssh {_package_version()}")
    parser.add_argument(
        "--config",
        default=None,
        help="Path to CLI config TOML (default: ~/.gitssh/config.toml)",
    )
    parser.add_argument(
        "-C",
        "--repo",
        default=None,
        help="Run as if started in this directory",
    )
    parser.add_argument(
        "-y",
        "--yes",
        action="store_true",
        help="Answer yes to confirmations",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Log debug output to stderr")

    sub = parser.add_subparsers(dest="command", required=True)

    version = sub.add_parser("version", help="Show version details")
    version.add_argument("--json", action="store_true")

    init = sub.add_parser("init", help="Create configuration files")
    init.add_argument(
        "--repair",
        action="store_true",
        help="Back up and recreate malformed configuration files",
    )
    init.add_argument("--json", action="store_true")

    validate = sub.add_parser("validate", help="Check dependencies, configuration and SSH hosts")
    validate.add_argument("--no-probe", action="store_true", help="Skip SSH connection tests")
    validate.add_argument("--json", action="store_true")

    sub.add_parser("status", help="Repository status with identity details")

    # user
    user = sub.add_parser("user", help="Manage registered identities")
    user_sub = user.add_subparsers(dest="user_command", required=True)
    user_add = user_sub.add_parser("add", help="Register or overwrite an identity")
    user_add.add_argument("username", nargs="?", default=None)
    user_add.add_argument("--name", default=None, help="Full display name")
    user_add.add_argument("--email", default=None, help="Email address")
    user_add.add_argument("--ssh-host", default=None, help="SSH host alias")
    user_add.add_argument("--no-probe", action="store_true")
    user_remove = user_sub.add_parser("remove", help="Remove an identity")
    user_remove.add_argument("username", nargs="?", default=None)
    user_list = user_sub.add_parser("list", help="List identities")
    user_list.add_argument("--names", action="store_true", help="Print names only")
    user_list.add_argument("--no-probe", action="store_true")
    user_list.add_argument("--json", action="store_true")
    user_show = user_sub.add_parser("show", help="Show git identity and SSH status")
    user_show.add_argument("--no-probe", action="store_true")
    user_show.add_argument("--json", action="store_true")
    user_switch = user_sub.add_parser("switch", help="Apply an identity to git config")
    user_switch.add_argument("username")
    user_switch.add_argument(
        "-g", "--global", dest="global_scope", action="store_true", help="Switch globally"
    )
    user_switch.add_argument("--no-probe", action="store_true")
    user_default = user_sub.add_parser("default", help="Show or set the default identity")
    user_default.add_argument("username", nargs="?", default=None)
    user_default.add_argument("--clear", action="store_true")

    # session
    session = sub.add_parser("session", help="Manage repository bindings")
    session_sub = session.add_subparsers(dest="session_command", required=True)
    session_set = session_sub.add_parser("set", help="Choose the identity for this repository")
    session_set.add_argument("--user", default=None, help="Registered identity name")
    session_sub.add_parser("auto", help="Run the repository auto-prompt")
    session_show = session_sub.add_parser("show", help="Show bindings")
    session_show.add_argument("--all", action="store_true", help="Show every stored binding")
    session_show.add_argument("--json", action="store_true")
    session_sub.add_parser("clear", help="Clear all session bindings")
    session_sub.add_parser("forget", help="Forget this repository's bindings")
    session_list = session_sub.add_parser("list", help="List repositories in the session")
    session_list.add_argument("--json", action="store_true")
    session_sub.add_parser("cleanup", help="Drop session entries for missing repositories")
    session_export = session_sub.add_parser("export", help="Export session bindings")
    session_export.add_argument("file", nargs="?", default=DEFAULT_EXPORT_FILE)
    session_import = session_sub.add_parser("import", help="Import session bindings")
    session_import.add_argument("file", nargs="?", default=DEFAULT_EXPORT_FILE)

    # remote
    remote = sub.add_parser("remote", help="Inspect and convert remotes")
    remote_sub = remote.add_subparsers(dest="remote_command", required=True)
    remote_convert = remote_sub.add_parser("convert", help="Convert an HTTPS remote to SSH")
    remote_convert.add_argument("--remote", default="origin")
    remote_convert.add_argument("--host", default=None, help="SSH host alias to use")
    remote_convert.add_argument("--all", action="store_true", help="Convert every HTTPS remote")
    remote_convert.add_argument("--no-probe", action="store_true")
    remote_check = remote_sub.add_parser("check", help="Analyze remotes")
    remote_check.add_argument("--no-probe", action="store_true")
    remote_check.add_argument("--json", action="store_true")
    remote_list = remote_sub.add_parser("list", help="List remotes")
    remote_list.add_argument("--json", action="store_true")
    remote_add = remote_sub.add_parser("add", help="Add an SSH remote for another account")
    remote_add.add_argument("--host", default=None, help="SSH host alias to use")
    remote_add.add_argument("--name", default=None, help="Remote name")
    remote_add.add_argument("--no-probe", action="store_true")
    remote_recommend = remote_sub.add_parser("recommend", help="Suggest improvements for origin")
    remote_recommend.add_argument("--no-probe", action="store_true")

    # ssh
    ssh = sub.add_parser("ssh", help="SSH host aliases")
    ssh_sub = ssh.add_subparsers(dest="ssh_command", required=True)
    ssh_hosts = ssh_sub.add_parser("hosts", help="List host aliases from the SSH config")
    ssh_hosts.add_argument("--all", action="store_true", help="Include unrelated hosts")
    ssh_hosts.add_argument("--json", action="store_true")
    ssh_test = ssh_sub.add_parser("test", help="Test SSH authentication")
    ssh_test.add_argument("hosts", nargs="*")
    ssh_test.add_argument("--json", action="store_true")

    # config
    config = sub.add_parser("config", help="Configuration files")
    config_sub = config.add_subparsers(dest="config_command", required=True)
    config_show = config_sub.add_parser("show", help="Show paths and system information")
    config_show.add_argument("--json", action="store_true")
    config_backup = config_sub.add_parser("backup", help="Copy configuration files")
    config_backup.add_argument("directory", nargs="?", default=None)
    config_restore = config_sub.add_parser("restore", help="Restore configuration files")
    config_restore.add_argument("directory")
    config_sub.add_parser("reset", help="Back up, remove and recreate configuration")

    # wrappers
    sub.add_parser("commit", help="git commit after identity checks")
    sub.add_parser("push", help="git push after identity and SSH checks")
    sub.add_parser("pull", help="git pull with identity details")
    sub.add_parser("fetch", help="git fetch with an SSH check")
    clone = sub.add_parser("clone", help="git clone, offering an SSH address")
    clone.add_argument("url")
    clone.add_argument("directory", nargs="?", default=None)
    sub.add_parser("init-repo", help="git init followed by identity setup")
    info = sub.add_parser("info", help="Repository information")
    info.add_argument("--no-probe", action="store_true")
    info.add_argument("--json", action="store_true")
    analyze = sub.add_parser("analyze", help="Look for identity and remote problems")
    analyze.add_argument("--json", action="store_true")
    worktree_add = sub.add_parser("worktree-add", help="git worktree add with the session identity")
    worktree_add.add_argument("path")
    worktree_add.add_argument("branch", nargs="?", default=None)
    branch_info = sub.add_parser("branch-info", help="Branch, commit author and upstream status")
    branch_info.add_argument("--json", action="store_true")
    sub.add_parser("log-user", help="git log limited to the current user's commits")

    return parser


def _print_error(stderr, prefix: str, message: str, *, code: int) -> int:
    print(f"{prefix}: {message}", file=stderr)
    return code


def _handle_error(exc: GitSSHError, stderr) -> int:
    if isinstance(exc, OperationCancelled):
        return _print_error(stderr, "cancelled", str(exc), code=EXIT_CANCELLED)
    if isinstance(exc, ValidationError):
        return _print_error(stderr, "validation error", str(exc), code=EXIT_VALIDATION_ERROR)
    if isinstance(exc, MissingDependencyError):
        return _print_error(stderr, "missing dependency", str(exc), code=EXIT_TOOL_ERROR)
    if isinstance(exc, IntegrityError):
        _print_error(stderr, "integrity error", str(exc), code=EXIT_INTEGRITY_ERROR)
        print("run 'gitssh init --repair' to back up and recreate it", file=stderr)
        return EXIT_INTEGRITY_ERROR
    if isinstance(exc, NotFoundError):
        _print_error(stderr, "not found", str(exc), code=EXIT_NOT_FOUND)
        if exc.available:
            print(f"available: {', '.join(exc.available)}", file=stderr)
        return EXIT_NOT_FOUND
    if isinstance(exc, ExternalToolError):
        return _print_error(stderr, "git error", str(exc), code=EXIT_TOOL_ERROR)
    return _print_error(stderr, "error", str(exc), code=EXIT_TOOL_ERROR)


def _build_context(config: CLIConfig, repo: str | None) -> Context:
    return Context(
        store=ConfigStore(
            users_file=Path(config.users_file),
            bindings_file=Path(config.bindings_file),
        ),
        cache=SessionCache(Path(config.session_file)),
        git=Git(repo),
        ssh_config_file=Path(config.ssh_config_file),
        services=dict(config.services),
        probe_timeout=config.probe_timeout,
    )


def _probe(ctx: Context, alias: str, user: str = "git") -> ProbeResult:
    return probe_host(alias, timeout=ctx.probe_timeout, user=user)


def _probe_alias(ctx: Context, entry: HostAlias) -> ProbeResult:
    return _probe(ctx, entry.alias, entry.user)


def _print_remotes(ctx: Context, repo_path: str, stdout, *, title: str) -> None:
    print(title, file=stdout)
    for remote in ctx.git_at(repo_path).remotes():
        print(f"  {remote.name}\t{remote.url}", file=stdout)


def _seed_accounts(ctx: Context) -> list[tuple[str, str]]:
    seeds: list[tuple[str, str]] = []
    for entry in ctx.host_aliases():
        parsed = parse_alias(entry.alias, ctx.services)
        if parsed is not None:
            seeds.append((parsed[1], entry.alias))
    return seeds


def _run_version(*, config: CLIConfig, as_json: bool, stdout) -> int:
    payload = {
        "cli": "gitssh",
        "version": _package_version(),
        "python": platform.python_version(),
        "users_file": config.users_file,
        "bindings_file": config.bindings_file,
        "session_file": config.session_file,
    }
    if as_json:
        print(json.dumps(payload, sort_keys=True), file=stdout)
    else:
        print(f"gitssh {payload['version']}", file=stdout)
        print(f"python: {payload['python']}", file=stdout)
        print(f"users file: {payload['users_file']}", file=stdout)
    return EXIT_SUCCESS


def _initialize(ctx: Context, *, repair: bool, as_json: bool, stdout, stderr) -> int:
    seeds = _seed_accounts(ctx)
    report = ctx.store.initialize(repair=repair, seed_accounts=seeds)
    names = ctx.store.list_identity_names() if report.ok else []

    if as_json:
        payload = {
            "ok": report.ok,
            "created": [str(path) for path in report.created],
            "repaired": [str(path) for path in report.repaired],
            "backups": [str(path) for path in report.backups],
            "seeded": report.seeded,
            "unresolved": [
                {"path": str(status.path), "detail": status.detail} for status in report.unresolved
            ],
            "users": names,
        }
        print(json.dumps(payload, sort_keys=True), file=stdout)
        return EXIT_SUCCESS if report.ok else EXIT_INTEGRITY_ERROR

    print("Initializing gitssh...", file=stdout)
    for path in report.created:
        print(f"Created: {path}", file=stdout)
    for path in report.backups:
        print(f"Backed up: {path}", file=stdout)
    for path in report.repaired:
        print(f"Recreated: {path}", file=stdout)
    if report.seeded:
        print(f"Found SSH hosts for: {', '.join(report.seeded)}", file=stdout)
        print("Please edit the file to set correct email addresses:", file=stdout)
        print(f"    {ctx.store.users_file}", file=stdout)
    if not report.ok:
        for status in report.unresolved:
            _print_error(stderr, "integrity error", status.detail, code=EXIT_INTEGRITY_ERROR)
        print("run 'gitssh init --repair' to back up and recreate it", file=stderr)
        return EXIT_INTEGRITY_ERROR
    print(f"Configuration valid with {len(names)} user(s)", file=stdout)
    print("Initialization complete!", file=stdout)
    return EXIT_SUCCESS


def _run_init(*, args, ctx: Context, stdout, stderr) -> int:
    return _initialize(ctx, repair=args.repair, as_json=args.json, stdout=stdout, stderr=stderr)


def _run_validate(*, args, ctx: Context, stdout) -> int:
    issues = 0
    dependencies = {tool: shutil.which(tool) is not None for tool in ("git", "ssh")}
    issues += sum(1 for available in dependencies.values() if not available)

    documents = ctx.store.check()
    issues += sum(1 for status in documents if status.state != "valid")

    hosts = service_aliases(ctx.host_aliases(), ctx.services)
    probes: dict[str, bool | None] = {}
    for entry in hosts:
        if args.no_probe or not dependencies["ssh"]:
            probes[entry.alias] = None
        else:
            probes[entry.alias] = _probe_alias(ctx, entry).ok

    if args.json:
        payload = {
            "ok": issues == 0,
            "issues": issues,
            "dependencies": dependencies,
            "documents": [
                {"label": status.label, "path": str(status.path), "state": status.state}
                for status in documents
            ],
            "ssh_hosts": probes,
        }
        print(json.dumps(payload, sort_keys=True), file=stdout)
        return EXIT_SUCCESS if issues == 0 else EXIT_VALIDATION_ERROR

    print("Validating gitssh configuration", file=stdout)
    print("Dependencies:", file=stdout)
    for tool, available in dependencies.items():
        print(f"  {tool}: {'Available' if available else 'Missing'}", file=stdout)
    print("\nConfiguration Files:", file=stdout)
    for status in documents:
        label = status.label[0].upper() + status.label[1:]
        line = f"  {label}: {status.state.capitalize()}"
        if status.state == "valid":
            line = f"{line} ({status.detail})"
        print(line, file=stdout)
        if status.state == "invalid":
            print(f"    {status.detail}", file=stdout)
    print("\nSSH Configuration:", file=stdout)
    if hosts:
        print(f"  SSH hosts found: {len(hosts)}", file=stdout)
        for alias, ok in probes.items():
            state = "not tested" if ok is None else ("Connected" if ok else "Connection failed")
            print(f"    {alias}: {state}", file=stdout)
    else:
        print(f"  No SSH host aliases found in {ctx.ssh_config_file}", file=stdout)
    print("\nValidation Summary:", file=stdout)
    if issues == 0:
        print("Configuration is valid and ready to use", file=stdout)
        return EXIT_SUCCESS
    print(f"Found {issues} issue(s)", file=stdout)
    print("Run 'gitssh init' to fix configuration issues", file=stdout)
    return EXIT_VALIDATION_ERROR


def _run_status(*, ctx: Context, git_args: Sequence[str], stdout) -> int:
    repo_path = wrappers.require_repository(ctx)
    report = wrappers.repository_report(ctx, repo_path)
    print("Git Repository Status", file=stdout)
    print("=" * 24, file=stdout)
    print(f"Repository: {report.repo_name}", file=stdout)
    print(f"Current user: {report.effective}", file=stdout)
    if report.session is not None:
        print(f"Session user: {report.session}", file=stdout)
    if report.remote:
        print(f"Remote: {report.remote}", file=stdout)
        if report.owner:
            print(f"Remote user: {report.owner}", file=stdout)
        if isinstance(report.mismatch, Mismatch):
            print("Warning: user mismatch detected!", file=stdout)
        print(f"Remote type: {report.remote_kind.value if report.remote_kind else 'none'}", file=stdout)
    print("=" * 24, file=stdout)
    stdout.flush()
    return ctx.git_at(repo_path).run(["status", *git_args])


def _run_info(*, args, ctx: Context, stdout) -> int:
    repo_path = wrappers.require_repository(ctx)
    report = wrappers.repository_report(ctx, repo_path, probe=not args.no_probe)
    if args.json:
        print(json.dumps(report.to_dict(), sort_keys=True), file=stdout)
        return EXIT_SUCCESS

    print("Repository Information", file=stdout)
    print("=" * 25, file=stdout)
    print(f"Repository: {report.repo_name}", file=stdout)
    print(f"Location: {report.repo_path}", file=stdout)
    print(f"Current branch: {report.branch or 'unknown'}", file=stdout)
    print(f"Git user: {report.effective}", file=stdout)
    if report.session is not None:
        print(f"Session user: {report.session}", file=stdout)
    if report.remote is None:
        print("Remote: Not configured", file=stdout)
    else:
        print(f"Remote: {report.remote}", file=stdout)
        if report.owner:
            print(f"Remote user: {report.owner}", file=stdout)
        if isinstance(report.mismatch, Mismatch):
            print("Warning: user mismatch detected!", file=stdout)
        parsed = classify(report.remote, ctx.services)
        if isinstance(parsed, PasswordOriented):
            print("Protocol: HTTPS", file=stdout)
            print("Consider 'gitssh remote convert' for passwordless access", file=stdout)
        elif isinstance(parsed, KeyBased):
            print("Protocol: SSH", file=stdout)
            if report.probe is not None:
                print(
                    "SSH connection working" if report.probe.ok else "Warning: SSH connection failed",
                    file=stdout,
                )
        else:
            print("Protocol: unknown", file=stdout)
    if report.changes:
        print(f"Working directory: {report.changes} uncommitted changes", file=stdout)
    else:
        print("Working directory: Clean", file=stdout)
    if report.last_commit is None:
        print("Last commit: No commits yet", file=stdout)
    else:
        commit = report.last_commit
        print(
            f'Last commit: {commit.short_hash} - "{commit.subject}" ({commit.relative_date})',
            file=stdout,
        )
    return EXIT_SUCCESS


def _run_branch_info(*, args, ctx: Context, stdout) -> int:
    repo_path = wrappers.require_repository(ctx)
    info = wrappers.branch_info(ctx, repo_path)
    if args.json:
        print(json.dumps(info.to_dict(), sort_keys=True), file=stdout)
        return EXIT_SUCCESS

    print("Branch Information", file=stdout)
    print("=" * 18, file=stdout)
    print(f"Current branch: {info.branch or 'unknown'}", file=stdout)
    print(f"Commits will be authored by: {info.author}", file=stdout)
    print(file=stdout)
    print("All branches:", file=stdout)
    stdout.flush()
    ctx.git_at(repo_path).run(["branch", "-a"])
    if info.branch is None:
        return EXIT_SUCCESS
    print(file=stdout)
    if info.upstream is None:
        print("No upstream branch configured", file=stdout)
        return EXIT_SUCCESS
    print(f"Upstream: {info.upstream}", file=stdout)
    if info.tracking_status is not None:
        print(f"Status: {info.tracking_status}", file=stdout)
    return EXIT_SUCCESS


def _run_analyze(*, args, ctx: Context, stdout) -> int:
    repo_path = wrappers.require_repository(ctx)
    analysis = wrappers.analyze(ctx, repo_path)
    if args.json:
        payload = {
            "repository": analysis.report.repo_name,
            "ok": analysis.ok,
            "issues": [
                {"area": issue.area, "problem": issue.problem, "fix": issue.fix}
                for issue in analysis.issues
            ],
        }
        print(json.dumps(payload, sort_keys=True), file=stdout)
        return EXIT_SUCCESS if analysis.ok else EXIT_VALIDATION_ERROR

    print("Repository Analysis", file=stdout)
    print("===================", file=stdout)
    print(f"Repository: {analysis.report.repo_name}", file=stdout)
    print(f"Current user: {analysis.report.effective}", file=stdout)
    print(f"Origin: {analysis.report.remote or 'not configured'}", file=stdout)
    for issue in analysis.issues:
        print(f"  Issue ({issue.area}): {issue.problem}", file=stdout)
        if issue.fix:
            print(f"  Fix: {issue.fix}", file=stdout)
    if analysis.report.changes:
        print("  Note: uncommitted changes present; commit before switching users", file=stdout)
    print("\nAnalysis Summary:", file=stdout)
    if analysis.ok:
        print("No issues found - repository is properly configured", file=stdout)
        return EXIT_SUCCESS
    print(f"Found {len(analysis.issues)} issue(s) that may need attention", file=stdout)
    return EXIT_VALIDATION_ERROR


def _run_user_add(*, args, ctx: Context, prompter: Prompter, stdout) -> int:
    interactive = not (args.username and args.email and args.ssh_host)
    service = next(iter(ctx.services))

    username = args.username
    if username is None:
        username = prompter.ask(f"Username (for SSH host {default_host_alias('<username>', service)}): ")
        if username is None:
            raise OperationCancelled("user add cancelled")
    username = validate_name(username)

    if ctx.store.get_identity(username) is not None:
        print(f"Warning: user '{username}' already exists", file=stdout)
        if not prompter.confirm("Overwrite?", default=False):
            raise OperationCancelled("user add cancelled")

    display_name = args.name
    if display_name is None:
        display_name = prompter.ask(f"Display name [{username}]: ") if interactive else None
    display_name = (display_name or "").strip() or username

    email = args.email
    if email is None:
        email = prompter.ask("Email address: ")
        if email is None:
            raise OperationCancelled("user add cancelled")
    email = validate_email(email)

    default_host = default_host_alias(username, service)
    ssh_host = args.ssh_host
    if ssh_host is None:
        ssh_host = prompter.ask(f"SSH host [{default_host}]: ")
    ssh_host = (ssh_host or "").strip() or default_host

    if interactive:
        print("\nSummary:", file=stdout)
        print(f"  Username:  {username}", file=stdout)
        print(f"  Name:      {display_name}", file=stdout)
        print(f"  Email:     {email}", file=stdout)
        print(f"  SSH Host:  {ssh_host}", file=stdout)
        if not prompter.confirm("Add this user?", default=True):
            raise OperationCancelled("user add cancelled")

    ctx.store.put_identity(username, display_name, email, ssh_host)
    print(f"Added user '{username}'", file=stdout)

    if not args.no_probe:
        print("Testing SSH connection...", file=stdout)
        if _probe(ctx, ssh_host).ok:
            print("SSH connection successful!", file=stdout)
        else:
            print("Warning: SSH connection failed - check your SSH config and keys", file=stdout)
            print(f"Make sure {ctx.ssh_config_file} has an entry for '{ssh_host}'", file=stdout)
    return EXIT_SUCCESS


def _run_user_remove(*, args, ctx: Context, prompter: Prompter, stdout) -> int:
    username = args.username
    if username is None:
        identities = ctx.store.list_identities()
        if not identities:
            print("No users configured", file=stdout)
            print("Use 'gitssh user add' to add users first", file=stdout)
            return EXIT_SUCCESS
        print("Available users:", file=stdout)
        for index, identity in enumerate(identities, start=1):
            print(
                f"  {index}. {identity.name} ({identity.display_name} <{identity.contact_address}>)",
                file=stdout,
            )
        choice = prompter.choose("Select user to remove", len(identities))
        if choice is None:
            raise OperationCancelled("user remove cancelled")
        username = identities[choice - 1].name
    elif ctx.store.get_identity(username) is None:
        raise NotFoundError(
            f"user '{username}' not found", available=ctx.store.list_identity_names()
        )

    if not prompter.confirm(f"Remove user '{username}'?", default=False):
        raise OperationCancelled("user remove cancelled")
    ctx.store.remove_identity(username)
    print(f"Removed user '{username}'", file=stdout)
    return EXIT_SUCCESS


def _run_user_list(*, args, ctx: Context, stdout) -> int:
    identities = ctx.store.list_identities()
    if args.names:
        for identity in identities:
            print(identity.name, file=stdout)
        return EXIT_SUCCESS

    default_user = ctx.store.get_default_user()
    statuses: dict[str, bool | None] = {}
    for identity in identities:
        statuses[identity.name] = None if args.no_probe else _probe(ctx, identity.host_alias).ok

    if args.json:
        payload = [
            {
                "username": identity.name,
                "name": identity.display_name,
                "email": identity.contact_address,
                "ssh_host": identity.host_alias,
                "default": identity.name == default_user,
                "ssh_ok": statuses[identity.name],
            }
            for identity in identities
        ]
        print(json.dumps(payload, sort_keys=True), file=stdout)
        return EXIT_SUCCESS

    if not identities:
        print("No users configured", file=stdout)
        print("Use 'gitssh user add' to add users", file=stdout)
        return EXIT_SUCCESS

    aliases = ctx.host_aliases()
    print("Configured Git Users:", file=stdout)
    print("========================", file=stdout)
    for identity in identities:
        marker = " (default)" if identity.name == default_user else ""
        print(f"{identity.name}{marker}", file=stdout)
        print(f"   Name:     {identity.display_name}", file=stdout)
        print(f"   Email:    {identity.contact_address}", file=stdout)
        print(f"   SSH Host: {identity.host_alias}", file=stdout)
        entry = find_alias(aliases, identity.host_alias)
        fingerprint = describe_key(entry) if entry is not None else None
        if fingerprint:
            print(f"   Key:      {fingerprint}", file=stdout)
        ok = statuses[identity.name]
        if ok is not None:
            print(f"   Status:   {'SSH Connected' if ok else 'SSH Failed'}", file=stdout)
        print("", file=stdout)
    return EXIT_SUCCESS


def _run_user_show(*, args, ctx: Context, stdout) -> int:
    global_identity = git_identity(ctx.git, "global")
    repo_path = ctx.git.toplevel()
    local_identity = git_identity(ctx.git, "local") if repo_path else None
    effective = resolve_effective_identity(ctx, repo_path) if repo_path else None
    keys = agent_keys()
    hosts = service_aliases(ctx.host_aliases(), ctx.services)
    connections = {
        entry.alias: (None if args.no_probe else _probe_alias(ctx, entry).ok) for entry in hosts
    }

    if args.json:
        payload = {
            "global": str(global_identity) if global_identity else None,
            "local": str(local_identity) if local_identity else None,
            "effective": str(effective) if effective else None,
            "agent_keys": keys,
            "connections": connections,
        }
        print(json.dumps(payload, sort_keys=True), file=stdout)
        return EXIT_SUCCESS

    print("Current Git Configuration:", file=stdout)
    global_name = ctx.git.get_config("user.name", "global")
    global_email = ctx.git.get_config("user.email", "global")
    print(f"  Global Name:  {global_name or 'Not set'}", file=stdout)
    print(f"  Global Email: {global_email or 'Not set'}", file=stdout)
    if repo_path:
        local_name = ctx.git.get_config("user.name", "local")
        local_email = ctx.git.get_config("user.email", "local")
        print(f"  Local Name:   {local_name or 'Not set'}", file=stdout)
        print(f"  Local Email:  {local_email or 'Not set'}", file=stdout)
        print(f"  Effective:    {effective}", file=stdout)
    print("SSH Agent Status:", file=stdout)
    if keys:
        print("  SSH agent is running", file=stdout)
        print("  Loaded SSH keys:", file=stdout)
        for key in keys:
            print(f"    {key}", file=stdout)
    else:
        print("  SSH agent not running or no keys loaded", file=stdout)
    print("Testing connections:", file=stdout)
    if not hosts:
        print(f"  No SSH host aliases found in {ctx.ssh_config_file}", file=stdout)
    for alias, ok in connections.items():
        state = "not tested" if ok is None else ("Connected" if ok else "Failed")
        print(f"  {alias}: {state}", file=stdout)
    return EXIT_SUCCESS


def _run_user_switch(*, args, ctx: Context, stdout) -> int:
    identity = ctx.store.get_identity(args.username)
    if identity is None:
        raise NotFoundError(
            f"user '{args.username}' not found", available=ctx.store.list_identity_names()
        )
    if args.global_scope:
        ctx.git.set_config("user.name", identity.display_name, "global")
        ctx.git.set_config("user.email", identity.contact_address, "global")
        print(f"Switched to {identity.name} globally", file=stdout)
    else:
        repo_path = ctx.git.toplevel()
        if repo_path is None:
            raise NotFoundError(
                f"not in a git repository; use 'gitssh user switch -g {identity.name}' "
                "for a global switch"
            )
        git = ctx.git_at(repo_path)
        git.set_config("user.name", identity.display_name)
        git.set_config("user.email", identity.contact_address)
        print(f"Switched to {identity.name} for this repository", file=stdout)
        print(f"  Repository: {os.path.basename(repo_path)}", file=stdout)
    print(f"  Name: {identity.display_name}", file=stdout)
    print(f"  Email: {identity.contact_address}", file=stdout)
    print(f"  SSH Host: {identity.host_alias}", file=stdout)

    if not args.no_probe:
        print("Testing SSH connection...", file=stdout)
        if _probe(ctx, identity.host_alias).ok:
            print("SSH connection verified", file=stdout)
        else:
            print("Warning: SSH connection failed - check SSH setup", file=stdout)
    return EXIT_SUCCESS


def _run_user_default(*, args, ctx: Context, stdout) -> int:
    if args.clear:
        ctx.store.set_default_user(None)
        print("Cleared default user", file=stdout)
        return EXIT_SUCCESS
    if args.username:
        ctx.store.set_default_user(args.username)
        print(f"Default user: {args.username}", file=stdout)
        return EXIT_SUCCESS
    print(f"Default user: {ctx.store.get_default_user() or 'Not set'}", file=stdout)
    return EXIT_SUCCESS


def _run_session_set(*, args, ctx: Context, prompter: Prompter, stdout) -> int:
    repo_path = wrappers.require_repository(ctx)
    if args.user:
        binding = select_identity(ctx, repo_path, args.user)
        print(f"Set user: {binding}", file=stdout)
        return EXIT_SUCCESS
    if AutoPrompt(ctx, repo_path, prompter).select() != PromptState.DONE:
        raise OperationCancelled("no identity selected")
    return EXIT_SUCCESS


def _run_session_auto(*, ctx: Context, prompter: Prompter) -> int:
    repo_path = wrappers.require_repository(ctx)
    outcome = ensure_identity_configured(ctx, repo_path, prompter)
    if not outcome.ok:
        raise OperationCancelled("no identity selected")
    return EXIT_SUCCESS


def _run_session_show(*, args, ctx: Context, stdout) -> int:
    repo_path = ctx.git.toplevel()
    current = None
    if repo_path is not None:
        cached = ctx.cache.get_cached_binding(repo_path)
        durable = ctx.store.get_durable_binding(repo_path)
        effective = resolve_effective_identity(ctx, repo_path)
        current = {
            "path": repo_path,
            "session": str(cached) if cached else None,
            "saved": str(durable) if durable else None,
            "effective": str(effective),
            "source": effective.source.value,
        }

    saved_all = ctx.store.list_durable_bindings() if args.all else {}
    session_all = ctx.cache.entries() if args.all else []

    if args.json:
        payload: dict[str, object] = {"current": current}
        if args.all:
            payload["saved"] = {path: str(binding) for path, binding in saved_all.items()}
            payload["session"] = {entry.repo_path: entry.identity for entry in session_all}
        print(json.dumps(payload, sort_keys=True), file=stdout)
        return EXIT_SUCCESS

    if current is None:
        print("Not in a git repository", file=stdout)
    else:
        print(f"Repository: {os.path.basename(repo_path or '')}", file=stdout)
        print(f"  Session user: {current['session'] or 'Not set'}", file=stdout)
        print(f"  Saved user:   {current['saved'] or 'Not set'}", file=stdout)
        print(f"  Effective:    {current['effective']} ({current['source']})", file=stdout)
    if args.all:
        print("\nSaved configurations:", file=stdout)
        if not saved_all:
            print("  (none)", file=stdout)
        for path, binding in saved_all.items():
            print(f"  {path}: {binding}", file=stdout)
        print("\nSession mappings:", file=stdout)
        if not session_all:
            print("  (none)", file=stdout)
        for entry in session_all:
            print(f"  {entry.repo_path}: {entry.identity}", file=stdout)
    return EXIT_SUCCESS


def _run_session_clear(*, ctx: Context, stdout) -> int:
    ctx.cache.clear_all_cached_bindings()
    print("Cleared session mappings", file=stdout)
    return EXIT_SUCCESS


def _run_session_forget(*, ctx: Context, stdout) -> int:
    repo_path = wrappers.require_repository(ctx)
    durable, cached = forget(ctx, repo_path)
    if durable or cached:
        print(f"Removed config for {os.path.basename(repo_path)}", file=stdout)
    else:
        print(f"No saved config for {os.path.basename(repo_path)}", file=stdout)
    return EXIT_SUCCESS


def _run_session_list(*, args, ctx: Context, stdout) -> int:
    entries = [entry for entry in ctx.cache.entries() if repository_exists(entry.repo_path)]
    stats = ctx.cache.stats()
    if args.json:
        payload = {
            "repositories": [
                {"path": entry.repo_path, "user": entry.identity} for entry in entries
            ],
            "active": stats.active,
            "invalid": stats.invalid,
        }
        print(json.dumps(payload, sort_keys=True), file=stdout)
        return EXIT_SUCCESS

    print("Session Repositories:", file=stdout)
    print("====================", file=stdout)
    if not entries and not stats.invalid:
        print("  (no repositories in session)", file=stdout)
        return EXIT_SUCCESS
    for index, entry in enumerate(entries, start=1):
        print(f"  {index}. {os.path.basename(entry.repo_path.rstrip('/'))}", file=stdout)
        print(f"     Path: {entry.repo_path}", file=stdout)
        print(f"     User: {entry.identity}", file=stdout)
        branch = ctx.git_at(entry.repo_path).current_branch()
        if branch:
            print(f"     Branch: {branch}", file=stdout)
        print("", file=stdout)
    summary = f"Session Summary: {stats.active} active repositories"
    if stats.invalid:
        summary += f", {stats.invalid} invalid entries (use 'gitssh session cleanup')"
    print(summary, file=stdout)
    return EXIT_SUCCESS


def _run_session_cleanup(*, ctx: Context, stdout) -> int:
    print("Cleaning up session...", file=stdout)
    if ctx.cache.stats().invalid == 0:
        print("No cleanup needed", file=stdout)
        return EXIT_SUCCESS
    removed, kept = ctx.cache.prune_missing()
    print(f"Removed {removed} invalid entries, {kept} repositories remain", file=stdout)
    return EXIT_SUCCESS


def _run_session_export(*, args, ctx: Context, stdout) -> int:
    document = build_session_export(ctx.cache)
    if not document.session_repositories:
        print("No session data to export", file=stdout)
        return EXIT_SUCCESS
    target = save_session_export(document, args.file)
    print(f"Session exported to {target}", file=stdout)
    return EXIT_SUCCESS


def _run_session_import(*, args, ctx: Context, prompter: Prompter, stdout) -> int:
    document = load_session_export(args.file)
    print(f"Importing session from: {args.file}", file=stdout)
    print("Session data to import:", file=stdout)
    for repo_name, record in document.session_repositories.items():
        print(f"  {repo_name}: {record.user}", file=stdout)
    if not prompter.confirm("Proceed with import?", default=False):
        raise OperationCancelled("import cancelled")
    result = import_session(ctx.cache, document)
    for path in result.skipped:
        print(f"Warning: skipping missing repository: {path}", file=stdout)
    print(f"Imported {len(result.imported)} repository sessions", file=stdout)
    return EXIT_SUCCESS


def _print_alias_example(stdout, owner: str, service: str, hostname: str) -> None:
    alias = default_host_alias(owner, service)
    print("You need to set up SSH hosts first. Example ~/.ssh/config entry:", file=stdout)
    print("", file=stdout)
    print(f"Host {alias}", file=stdout)
    print(f"    HostName {hostname}", file=stdout)
    print("    User git", file=stdout)
    print(f"    IdentityFile ~/.ssh/id_ed25519_{owner}", file=stdout)
    print("", file=stdout)


def _apply_plan(ctx: Context, repo_path: str, plan: ConversionPlan) -> None:
    ctx.git_at(repo_path).set_remote_url(plan.remote, plan.new_address)


def _convert_all(*, ctx: Context, repo_path: str, stdout) -> int:
    print("Converting all HTTPS remotes to SSH...", file=stdout)
    outcomes = propose_conversion_all(
        ctx.git_at(repo_path).remotes(), ctx.host_aliases(), ctx.services
    )
    if not outcomes:
        print("No HTTPS remotes found", file=stdout)
        return EXIT_SUCCESS
    converted = 0
    for outcome in outcomes:
        print(f"\nProcessing remote '{outcome.remote}':", file=stdout)
        print(f"  URL: {outcome.address}", file=stdout)
        if outcome.plan is None:
            print(f"  Warning: {outcome.reason}", file=stdout)
            print(f"  Skipping remote '{outcome.remote}'", file=stdout)
            continue
        print(f"  Converting to: {outcome.plan.new_address}", file=stdout)
        _apply_plan(ctx, repo_path, outcome.plan)
        print(f"  Converted {outcome.remote}", file=stdout)
        converted += 1
    print("\nConversion Summary:", file=stdout)
    print(f"  Converted {converted} remote(s)", file=stdout)
    return EXIT_SUCCESS


def _run_remote_convert(*, args, ctx: Context, prompter: Prompter, stdout) -> int:
    repo_path = wrappers.require_repository(ctx)
    if args.all:
        return _convert_all(ctx=ctx, repo_path=repo_path, stdout=stdout)

    _print_remotes(ctx, repo_path, stdout, title="Current git remotes:")
    address = ctx.git_at(repo_path).remote_url(args.remote)
    if address is None:
        raise NotFoundError(f"no '{args.remote}' remote found")

    result = propose_conversion(address, ctx.host_aliases(), ctx.services, remote=args.remote)
    if isinstance(result, AlreadyKeyBased):
        print(f"Already using SSH with custom host: {result.address}", file=stdout)
        return EXIT_SUCCESS
    if isinstance(result, NotSupported):
        raise ValidationError(f"{result.reason} (current: {result.address})")
    if isinstance(result, NoHostAvailable):
        _print_alias_example(
            stdout, result.ref.owner, result.service, ctx.services[result.service]
        )
        raise NotFoundError(f"no {result.service} SSH hosts found in {ctx.ssh_config_file}")

    proposal: ConversionProposal = result
    print(f"Detected repository: {proposal.ref.owner}/{proposal.ref.repo_name}", file=stdout)
    if isinstance(proposal.source, KeyBased):
        print("Using the default SSH host; consider converting to a custom host", file=stdout)

    print("Available SSH hosts:", file=stdout)
    for index, entry in enumerate(proposal.options, start=1):
        note = ""
        if entry in proposal.candidates:
            note = " (matches repository owner"
            note += " - RECOMMENDED)" if entry == proposal.recommended else ")"
        print(f"  {index}. {entry.alias}{note}", file=stdout)

    plan = None
    if args.host:
        chosen = find_alias(list(proposal.options), args.host)
        if chosen is None:
            raise NotFoundError(
                f"SSH host '{args.host}' not available",
                available=[entry.alias for entry in proposal.options],
            )
        plan = proposal.plan(chosen)
    elif proposal.recommended_plan is not None and prompter.confirm(
        "Auto-select recommended host?", default=True
    ):
        plan = proposal.recommended_plan
    if plan is None:
        choice = prompter.choose("Select SSH host", len(proposal.options))
        if choice is None:
            raise OperationCancelled("conversion cancelled")
        plan = proposal.plan_for_choice(choice)

    print("Converting remote URL:", file=stdout)
    print(f"  From: {plan.original}", file=stdout)
    print(f"  To:   {plan.new_address}", file=stdout)
    if not prompter.confirm("Proceed with this change?", default=False):
        raise OperationCancelled("conversion cancelled")
    _apply_plan(ctx, repo_path, plan)
    print("Successfully updated remote URL", file=stdout)

    if not args.no_probe:
        print("Testing SSH connection...", file=stdout)
        chosen = find_alias(list(proposal.options), plan.alias)
        if _probe(ctx, plan.alias, chosen.user if chosen else "git").ok:
            print("SSH connection successful!", file=stdout)
            print("You can now use 'git push' without entering a password", file=stdout)
        else:
            print("Warning: SSH connection test failed. Please check your SSH setup.", file=stdout)
    return EXIT_SUCCESS


def _run_remote_check(*, args, ctx: Context, stdout) -> int:
    repo_path = wrappers.require_repository(ctx)
    aliases = ctx.host_aliases()
    rows: list[dict[str, object]] = []
    for remote in ctx.git_at(repo_path).remotes():
        parsed = classify(remote.url, ctx.services)
        row: dict[str, object] = {"remote": remote.name, "url": remote.url, "kind": parsed.kind.value}
        if isinstance(parsed, PasswordOriented):
            result = propose_conversion(remote.url, aliases, ctx.services, remote=remote.name)
            matching = (
                result.candidates[0].alias
                if isinstance(result, ConversionProposal) and result.candidates
                else None
            )
            row["owner"] = parsed.ref.owner
            row["matching_host"] = matching
        elif isinstance(parsed, KeyBased):
            row["owner"] = parsed.ref.owner
            row["host"] = parsed.host
            row["ssh_ok"] = None if args.no_probe else _probe(ctx, parsed.host, parsed.user).ok
        rows.append(row)

    if args.json:
        print(json.dumps(rows, sort_keys=True), file=stdout)
        return EXIT_SUCCESS

    print("Remote Analysis:", file=stdout)
    print("================", file=stdout)
    if not rows:
        print("No remotes configured", file=stdout)
    for row in rows:
        print(f"\nRemote: {row['remote']}", file=stdout)
        print(f"  URL: {row['url']}", file=stdout)
        if row["kind"] == "password_oriented":
            print("  Type: HTTPS", file=stdout)
            print("  Recommendation: convert to SSH for passwordless access", file=stdout)
            print("  Use: gitssh remote convert", file=stdout)
            if row["matching_host"]:
                print(f"  Matching SSH host available: {row['matching_host']}", file=stdout)
            else:
                print(f"  No matching SSH host found for user '{row['owner']}'", file=stdout)
        elif row["kind"] == "key_based":
            print("  Type: SSH", file=stdout)
            if row["ssh_ok"] is not None:
                state = "SSH connection working" if row["ssh_ok"] else "SSH connection failed"
                print(f"  Status: {state}", file=stdout)
        else:
            print("  Type: Other/Unknown", file=stdout)
    return EXIT_SUCCESS


def _run_remote_list(*, args, ctx: Context, stdout) -> int:
    repo_path = wrappers.require_repository(ctx)
    remotes = ctx.git_at(repo_path).remotes()
    rows = []
    for remote in remotes:
        parsed = classify(remote.url, ctx.services)
        ref = decompose(parsed)
        rows.append(
            {
                "remote": remote.name,
                "url": remote.url,
                "kind": parsed.kind.value,
                "owner": ref.owner if ref else None,
            }
        )
    if args.json:
        print(json.dumps(rows, sort_keys=True), file=stdout)
        return EXIT_SUCCESS
    print("Repository Remotes", file=stdout)
    print("==================", file=stdout)
    if not rows:
        print("No remotes configured", file=stdout)
    for row in rows:
        print(f"Remote: {row['remote']}", file=stdout)
        print(f"  {row['url']} ({row['kind']})", file=stdout)
        if row["owner"]:
            print(f"    Account: {row['owner']}", file=stdout)
    return EXIT_SUCCESS


def _run_remote_add(*, args, ctx: Context, prompter: Prompter, stdout) -> int:
    repo_path = wrappers.require_repository(ctx)
    git = ctx.git_at(repo_path)
    origin = git.remote_url("origin")
    if origin is None:
        raise NotFoundError("no origin remote found")
    parsed = classify(origin, ctx.services)
    if not isinstance(parsed, (PasswordOriented, KeyBased)):
        raise ValidationError("cannot extract repository path from origin URL")

    print("Add SSH remote for different user", file=stdout)
    print(f"Repository: {parsed.ref.repo_name}", file=stdout)
    print(f"Current origin: {origin}", file=stdout)

    options = relevant_aliases(ctx.host_aliases(), parsed.service, ctx.services)
    if not options:
        raise NotFoundError(f"no SSH hosts configured in {ctx.ssh_config_file}")

    if args.host:
        selected = find_alias(options, args.host)
        if selected is None:
            raise NotFoundError(
                f"SSH host '{args.host}' not available",
                available=[entry.alias for entry in options],
            )
    else:
        print("Available SSH hosts:", file=stdout)
        for index, entry in enumerate(options, start=1):
            account = implied_account(entry.alias, ctx.services) or "-"
            print(f"  {index}. {entry.alias} (user: {account})", file=stdout)
        choice = prompter.choose("Select SSH host", len(options))
        if choice is None:
            raise OperationCancelled("remote add cancelled")
        selected = options[choice - 1]

    account = implied_account(selected.alias, ctx.services) or parsed.ref.owner
    remote_name = args.name
    if remote_name is None:
        answer = prompter.ask(f"Remote name [{account}]: ")
        if answer is None:
            raise OperationCancelled("remote add cancelled")
        remote_name = answer or account

    exists = git.remote_exists(remote_name)
    if exists:
        print(f"Warning: remote '{remote_name}' already exists", file=stdout)
        if not prompter.confirm("Overwrite?", default=False):
            raise OperationCancelled("remote add cancelled")

    new_url = key_based_address(selected, account, parsed.ref.repo_name)
    print("Adding remote:", file=stdout)
    print(f"  Name: {remote_name}", file=stdout)
    print(f"  URL:  {new_url}", file=stdout)
    if not prompter.confirm("Add this remote?", default=True):
        raise OperationCancelled("remote add cancelled")

    if exists:
        git.set_remote_url(remote_name, new_url)
        print(f"Updated remote '{remote_name}'", file=stdout)
    else:
        git.add_remote(remote_name, new_url)
        print(f"Added remote '{remote_name}'", file=stdout)

    if not args.no_probe:
        print("Testing SSH connection...", file=stdout)
        if _probe_alias(ctx, selected).ok:
            print("SSH connection successful!", file=stdout)
        else:
            print("Warning: SSH connection failed - check your SSH setup", file=stdout)
    return EXIT_SUCCESS


def _run_remote_recommend(*, args, ctx: Context, stdout) -> int:
    repo_path = wrappers.require_repository(ctx)
    print("Remote Recommendations:", file=stdout)
    print("=======================", file=stdout)
    origin = ctx.git_at(repo_path).remote_url("origin")
    if origin is None:
        print("No origin remote configured", file=stdout)
        return EXIT_SUCCESS

    parsed = classify(origin, ctx.services)
    print(f"Current origin: {origin} ({parsed.kind.value})", file=stdout)
    if isinstance(parsed, PasswordOriented):
        print("Recommendation: convert to SSH for passwordless access", file=stdout)
        print("  Command: gitssh remote convert", file=stdout)
        registered = {identity.name: identity.host_alias for identity in ctx.store.list_identities()}
        suggestion = recommend_host(parsed.ref.owner, ctx.host_aliases(), registered, ctx.services)
        if suggestion.kind == "exact":
            print(f"  Matching SSH host available: {suggestion.host}", file=stdout)
        elif suggestion.kind == "suggested":
            print(f"  Suggested SSH host: {suggestion.host}", file=stdout)
        else:
            print(f"  No SSH host configured for user '{parsed.ref.owner}'", file=stdout)
            print("  Consider adding SSH host configuration", file=stdout)
    elif isinstance(parsed, KeyBased):
        print(f"SSH remote configured: {parsed.host}", file=stdout)
        if not args.no_probe:
            if _probe(ctx, parsed.host, parsed.user).ok:
                print("SSH connection working properly", file=stdout)
            else:
                print("Warning: SSH connection not working", file=stdout)
                print(f"  Check SSH key configuration for {parsed.host}", file=stdout)
    else:
        print("Unrecognized remote; no specific recommendations", file=stdout)
    return EXIT_SUCCESS


def _run_ssh_hosts(*, args, ctx: Context, stdout) -> int:
    aliases = ctx.host_aliases()
    if not args.all:
        aliases = service_aliases(aliases, ctx.services)
    rows = [
        {
            "alias": entry.alias,
            "hostname": entry.hostname,
            "user": entry.user,
            "identity_file": entry.identity_file,
            "account": implied_account(entry.alias, ctx.services),
            "fingerprint": describe_key(entry),
        }
        for entry in aliases
    ]
    if args.json:
        print(json.dumps(rows, sort_keys=True), file=stdout)
        return EXIT_SUCCESS
    if not rows:
        print(f"No SSH host aliases found in {ctx.ssh_config_file}", file=stdout)
        return EXIT_SUCCESS
    for row in rows:
        print(f"{row['alias']} -> {row['user']}@{row['hostname']}", file=stdout)
        if row["account"]:
            print(f"  Account: {row['account']}", file=stdout)
        if row["identity_file"]:
            print(f"  Key: {row['identity_file']}", file=stdout)
        if row["fingerprint"]:
            print(f"  Fingerprint: {row['fingerprint']}", file=stdout)
    return EXIT_SUCCESS


def _run_ssh_test(*, args, ctx: Context, stdout) -> int:
    aliases = ctx.host_aliases()
    if args.hosts:
        targets = [find_alias(aliases, name) or HostAlias(alias=name, hostname=name) for name in args.hosts]
    else:
        targets = service_aliases(aliases, ctx.services)
    results = [_probe_alias(ctx, entry) for entry in targets]
    if args.json:
        payload = {
            result.alias: {"ok": result.ok, "timed_out": result.timed_out} for result in results
        }
        print(json.dumps(payload, sort_keys=True), file=stdout)
    else:
        if not results:
            print(f"No SSH host aliases found in {ctx.ssh_config_file}", file=stdout)
        for result in results:
            if result.ok:
                state = "Connected"
            elif result.timed_out:
                state = "Timed out"
            else:
                state = "Failed"
            print(f"{result.alias}: {state}", file=stdout)
    return EXIT_SUCCESS if all(result.ok for result in results) else EXIT_TOOL_ERROR


def _file_status(path: Path) -> str:
    if path.is_file():
        return f"exists ({path.stat().st_size} bytes)"
    return "missing"


def _run_config_show(*, args, config: CLIConfig, ctx: Context, stdout) -> int:
    files = {
        "users": ctx.store.users_file,
        "bindings": ctx.store.bindings_file,
        "session": ctx.cache.path,
        "ssh_config": ctx.ssh_config_file,
    }
    keys = agent_keys()
    hosts = [entry.alias for entry in service_aliases(ctx.host_aliases(), ctx.services)]
    payload = {
        "os": platform.platform(),
        "shell": os.environ.get("SHELL", "unknown"),
        "git": ctx.git.version(),
        "ssh": ssh_version(),
        "files": {name: str(path) for name, path in files.items()},
        "file_status": {name: _file_status(path) for name, path in files.items()},
        "agent_keys": len(keys) if keys is not None else None,
        "ssh_hosts": hosts,
        "services": dict(config.services),
        "probe_timeout": config.probe_timeout,
    }
    if args.json:
        print(json.dumps(payload, sort_keys=True), file=stdout)
        return EXIT_SUCCESS

    print("gitssh System Information", file=stdout)
    print("=========================", file=stdout)
    print(f"Operating System: {payload['os']}", file=stdout)
    print(f"Shell: {payload['shell']}", file=stdout)
    print(f"Git: {payload['git'] or 'Not installed'}", file=stdout)
    print(f"SSH: {payload['ssh'] or 'Not installed'}", file=stdout)
    print("\nConfiguration Files:", file=stdout)
    for name, path in files.items():
        print(f"  {name}: {path} ({_file_status(path)})", file=stdout)
    print("\nSSH Agent:", file=stdout)
    if keys:
        print(f"  Status: Running ({len(keys)} keys loaded)", file=stdout)
    else:
        print("  Status: Not running or no keys loaded", file=stdout)
    print("\nSSH Hosts:", file=stdout)
    if not hosts:
        print("  (none configured)", file=stdout)
    for alias in hosts:
        print(f"  {alias}", file=stdout)
    return EXIT_SUCCESS


def _timestamp() -> str:
    return datetime.now().strftime("%Y%m%d_%H%M%S")


def _run_config_backup(*, args, config: CLIConfig, ctx: Context, stdout) -> int:
    directory = Path(args.directory) if args.directory else Path(config.home_dir) / "backups" / _timestamp()
    copied = ctx.store.backup(directory)
    if not copied:
        print("No configuration files to back up", file=stdout)
        return EXIT_SUCCESS
    for path in copied:
        print(f"Backed up: {path}", file=stdout)
    return EXIT_SUCCESS


def _run_config_restore(*, args, ctx: Context, stdout) -> int:
    for path in ctx.store.restore(Path(args.directory)):
        print(f"Restored: {path}", file=stdout)
    return EXIT_SUCCESS


def _run_config_reset(*, ctx: Context, prompter: Prompter, stdout, stderr) -> int:
    print("Reset gitssh Configuration", file=stdout)
    print("This will remove all configuration and start fresh", file=stdout)
    if not prompter.confirm("Are you sure?", default=False):
        raise OperationCancelled("reset cancelled")
    for path in ctx.store.reset(_timestamp()):
        print(f"Backed up and removed: {path.name}", file=stdout)
    ctx.cache.clear_all_cached_bindings()
    print("Cleared session data", file=stdout)
    print("\nReinitializing...", file=stdout)
    return _initialize(ctx, repair=False, as_json=False, stdout=stdout, stderr=stderr)


def _run_clone(*, args, ctx: Context, prompter: Prompter, git_args: Sequence[str]) -> int:
    cwd = args.repo or os.getcwd()
    return wrappers.clone(ctx, cwd, prompter, args.url, args.directory, git_args)


def _run_init_repo(*, args, ctx: Context, prompter: Prompter, git_args: Sequence[str], stderr) -> int:
    cwd = args.repo or os.getcwd()
    outcome = wrappers.init_repo(ctx, cwd, prompter, git_args)
    if outcome is None:
        return _print_error(stderr, "git error", "failed to initialize repository", code=EXIT_TOOL_ERROR)
    if not outcome.ok:
        prompter.say("Repository initialized without an identity; run 'gitssh session set' later")
    return EXIT_SUCCESS


def _dispatch(*, args, config: CLIConfig, ctx: Context, prompter: Prompter, git_args, stdout, stderr) -> int:
    if args.command == "version":
        return _run_version(config=config, as_json=args.json, stdout=stdout)
    if args.command == "init":
        return _run_init(args=args, ctx=ctx, stdout=stdout, stderr=stderr)
    if args.command == "validate":
        return _run_validate(args=args, ctx=ctx, stdout=stdout)
    if args.command == "status":
        return _run_status(ctx=ctx, git_args=git_args, stdout=stdout)

    if args.command == "user":
        if args.user_command == "add":
            return _run_user_add(args=args, ctx=ctx, prompter=prompter, stdout=stdout)
        if args.user_command == "remove":
            return _run_user_remove(args=args, ctx=ctx, prompter=prompter, stdout=stdout)
        if args.user_command == "list":
            return _run_user_list(args=args, ctx=ctx, stdout=stdout)
        if args.user_command == "show":
            return _run_user_show(args=args, ctx=ctx, stdout=stdout)
        if args.user_command == "switch":
            return _run_user_switch(args=args, ctx=ctx, stdout=stdout)
        if args.user_command == "default":
            return _run_user_default(args=args, ctx=ctx, stdout=stdout)

    if args.command == "session":
        if args.session_command == "set":
            return _run_session_set(args=args, ctx=ctx, prompter=prompter, stdout=stdout)
        if args.session_command == "auto":
            return _run_session_auto(ctx=ctx, prompter=prompter)
        if args.session_command == "show":
            return _run_session_show(args=args, ctx=ctx, stdout=stdout)
        if args.session_command == "clear":
            return _run_session_clear(ctx=ctx, stdout=stdout)
        if args.session_command == "forget":
            return _run_session_forget(ctx=ctx, stdout=stdout)
        if args.session_command == "list":
            return _run_session_list(args=args, ctx=ctx, stdout=stdout)
        if args.session_command == "cleanup":
            return _run_session_cleanup(ctx=ctx, stdout=stdout)
        if args.session_command == "export":
            return _run_session_export(args=args, ctx=ctx, stdout=stdout)
        if args.session_command == "import":
            return _run_session_import(args=args, ctx=ctx, prompter=prompter, stdout=stdout)

    if args.command == "remote":
        if args.remote_command == "convert":
            return _run_remote_convert(args=args, ctx=ctx, prompter=prompter, stdout=stdout)
        if args.remote_command == "check":
            return _run_remote_check(args=args, ctx=ctx, stdout=stdout)
        if args.remote_command == "list":
            return _run_remote_list(args=args, ctx=ctx, stdout=stdout)
        if args.remote_command == "add":
            return _run_remote_add(args=args, ctx=ctx, prompter=prompter, stdout=stdout)
        if args.remote_command == "recommend":
            return _run_remote_recommend(args=args, ctx=ctx, stdout=stdout)

    if args.command == "ssh":
        if args.ssh_command == "hosts":
            return _run_ssh_hosts(args=args, ctx=ctx, stdout=stdout)
        if args.ssh_command == "test":
            return _run_ssh_test(args=args, ctx=ctx, stdout=stdout)

    if args.command == "config":
        if args.config_command == "show":
            return _run_config_show(args=args, config=config, ctx=ctx, stdout=stdout)
        if args.config_command == "backup":
            return _run_config_backup(args=args, config=config, ctx=ctx, stdout=stdout)
        if args.config_command == "restore":
            return _run_config_restore(args=args, ctx=ctx, stdout=stdout)
        if args.config_command == "reset":
            return _run_config_reset(ctx=ctx, prompter=prompter, stdout=stdout, stderr=stderr)

    if args.command in ("commit", "push", "pull", "fetch"):
        repo_path = wrappers.require_repository(ctx)
        handler = getattr(wrappers, args.command)
        stdout.flush()
        return handler(ctx, repo_path, prompter, git_args)
    if args.command == "clone":
        return _run_clone(args=args, ctx=ctx, prompter=prompter, git_args=git_args)
    if args.command == "init-repo":
        return _run_init_repo(args=args, ctx=ctx, prompter=prompter, git_args=git_args, stderr=stderr)
    if args.command == "info":
        return _run_info(args=args, ctx=ctx, stdout=stdout)
    if args.command == "analyze":
        return _run_analyze(args=args, ctx=ctx, stdout=stdout)
    if args.command == "branch-info":
        return _run_branch_info(args=args, ctx=ctx, stdout=stdout)
    if args.command == "log-user":
        repo_path = wrappers.require_repository(ctx)
        stdout.flush()
        return wrappers.log_user(ctx, repo_path, prompter, git_args)
    if args.command == "worktree-add":
        repo_path = wrappers.require_repository(ctx)
        return wrappers.worktree_add(ctx, repo_path, prompter, args.path, args.branch)

    print("unknown command", file=stderr)
    return EXIT_VALIDATION_ERROR


def main(
    argv: Sequence[str] | None = None,
    *,
    stdin=sys.stdin,
    stdout=sys.stdout,
    stderr=sys.stderr,
) -> int:
    parser = _build_parser()
    args, extras = parser.parse_known_args(argv)
    if extras and args.command not in PASSTHROUGH_COMMANDS:
        parser.error(f"unrecognized arguments: {' '.join(extras)}")

    if args.verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            stream=stderr,
            format="%(levelname)s %(name)s: %(message)s",
        )

    try:
        config = load_cli_config(args.config)
    except ConfigError as exc:
        return _print_error(stderr, "config error", str(exc), code=EXIT_VALIDATION_ERROR)

    ctx = _build_context(config, args.repo)
    prompter = Prompter(stdin, stdout, assume_yes=args.yes)
    try:
        return _dispatch(
            args=args,
            config=config,
            ctx=ctx,
            prompter=prompter,
            git_args=list(extras),
            stdout=stdout,
            stderr=stderr,
        )
    except SessionError as exc:
        return _print_error(stderr, "session error", str(exc), code=EXIT_VALIDATION_ERROR)
    except GitSSHError as exc:
        logger.debug("command failed", exc_info=True)
        return _handle_error(exc, stderr)


if __name__ == "__main__":
    raise SystemExit(main())

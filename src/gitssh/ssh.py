"""SSH-side helpers: host aliases from ``~/.ssh/config``, probes, agent and key info."""

from __future__ import annotations

import base64
import hashlib
import logging
import os
import subprocess
from dataclasses import dataclass
from pathlib import Path

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives.serialization import (
    Encoding,
    PublicFormat,
    load_ssh_public_key,
)

from gitssh.errors import MissingDependencyError

logger = logging.getLogger(__name__)

DEFAULT_SSH_CONFIG = Path.home() / ".ssh" / "config"
DEFAULT_PROBE_TIMEOUT = 3.0
SUCCESS_SIGNATURES = ("successfully authenticated", "Welcome to GitLab")
SSH_INSTALL_HINT = "install the OpenSSH client via your package manager"


@dataclass(frozen=True)
class HostAlias:
    alias: str
    hostname: str
    user: str = "git"
    identity_file: str | None = None

    @property
    def public_key_path(self) -> Path | None:
        if not self.identity_file:
            return None
        return Path(os.path.expanduser(self.identity_file + ".pub"))


@dataclass(frozen=True)
class ProbeResult:
    alias: str
    ok: bool
    output: str
    timed_out: bool = False


def _split_directive(line: str) -> tuple[str, str] | None:
    stripped = line.strip()
    if not stripped or stripped.startswith("#"):
        return None
    if "=" in stripped.split(None, 1)[0]:
        key, _, value = stripped.partition("=")
    else:
        parts = stripped.split(None, 1)
        key, value = parts[0], parts[1] if len(parts) > 1 else ""
    return key.strip().lower(), value.strip().lstrip("=").strip().strip('"')


def _is_pattern(alias: str) -> bool:
    return any(char in alias for char in "*?!")


def parse_host_aliases(text: str) -> list[HostAlias]:
    """Parse ``Host`` blocks. Wildcard or negated patterns are not aliases."""
    aliases: list[HostAlias] = []
    current: list[str] = []
    options: dict[str, str] = {}

    def flush() -> None:
        for alias in current:
            aliases.append(
                HostAlias(
                    alias=alias,
                    hostname=options.get("hostname", alias),
                    user=options.get("user", "git"),
                    identity_file=options.get("identityfile"),
                )
            )

    for line in text.splitlines():
        directive = _split_directive(line)
        if directive is None:
            continue
        key, value = directive
        if key in ("host", "match"):
            flush()
            options = {}
            current = (
                [name for name in value.split() if not _is_pattern(name)]
                if key == "host"
                else []
            )
            continue
        if current:
            # First value wins, as in ssh itself.
            options.setdefault(key, value)
    flush()

    unique: dict[str, HostAlias] = {}
    for entry in aliases:
        unique.setdefault(entry.alias, entry)
    return list(unique.values())


def read_host_aliases(path: Path = DEFAULT_SSH_CONFIG) -> list[HostAlias]:
    if not path.is_file():
        return []
    return parse_host_aliases(path.read_text(encoding="utf-8", errors="replace"))


def find_alias(aliases: list[HostAlias], name: str) -> HostAlias | None:
    for entry in aliases:
        if entry.alias == name:
            return entry
    return None


def probe_host(
    alias: str,
    *,
    timeout: float = DEFAULT_PROBE_TIMEOUT,
    user: str = "git",
    binary: str = "ssh",
) -> ProbeResult:
    """Check that ``user@alias`` authenticates. Never blocks much longer than ``timeout``."""
    seconds = max(1, int(round(timeout)))
    command = [
        binary,
        "-o",
        f"ConnectTimeout={seconds}",
        "-o",
        "BatchMode=yes",
        "-T",
        f"{user}@{alias}",
    ]
    logger.debug("probing %s", " ".join(command))
    try:
        result = subprocess.run(
            command,
            capture_output=True,
            text=True,
            timeout=seconds + 2,
            check=False,
        )
    except FileNotFoundError as exc:
        raise MissingDependencyError("ssh", hint=SSH_INSTALL_HINT) from exc
    except subprocess.TimeoutExpired:
        logger.debug("probe of %s timed out", alias)
        return ProbeResult(alias=alias, ok=False, output="connection timed out", timed_out=True)

    output = f"{result.stdout or ''}{result.stderr or ''}".strip()
    ok = any(signature in output for signature in SUCCESS_SIGNATURES)
    logger.debug("probe of %s ok=%s", alias, ok)
    return ProbeResult(alias=alias, ok=ok, output=output)


def agent_keys(binary: str = "ssh-add") -> list[str] | None:
    """Keys loaded in the agent, or ``None`` when no agent answers."""
    try:
        result = subprocess.run([binary, "-l"], capture_output=True, text=True, check=False)
    except FileNotFoundError:
        return None
    if result.returncode != 0:
        return None
    return [line for line in result.stdout.splitlines() if line.strip()]


def key_fingerprint(path: Path) -> str:
    """``SHA256:`` fingerprint of an OpenSSH public key file, as ``ssh-keygen -l`` prints."""
    key = load_ssh_public_key(path.read_bytes())
    openssh = key.public_bytes(Encoding.OpenSSH, PublicFormat.OpenSSH)
    blob = base64.b64decode(openssh.split()[1])
    digest = base64.b64encode(hashlib.sha256(blob).digest()).decode("ascii").rstrip("=")
    return f"SHA256:{digest}"


def describe_key(alias: HostAlias) -> str | None:
    public_key = alias.public_key_path
    if public_key is None or not public_key.is_file():
        return None
    try:
        return key_fingerprint(public_key)
    except (ValueError, IndexError, UnsupportedAlgorithm) as exc:
        logger.debug("unreadable public key %s: %s", public_key, exc)
        return None


def ssh_version(binary: str = "ssh") -> str | None:
    try:
        result = subprocess.run([binary, "-V"], capture_output=True, text=True, check=False)
    except FileNotFoundError:
        return None
    # OpenSSH prints its version on stderr.
    lines = (result.stderr or result.stdout or "").strip().splitlines()
    return lines[0] if lines else None

"""Configuration helpers for the gitssh CLI."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from gitssh.cache import default_session_file
from gitssh.remotes import DEFAULT_SERVICES
from gitssh.ssh import DEFAULT_PROBE_TIMEOUT, DEFAULT_SSH_CONFIG

DEFAULT_HOME_DIR = Path.home() / ".gitssh"
DEFAULT_CONFIG_PATH = DEFAULT_HOME_DIR / "config.toml"
HOME_ENV_VAR = "GITSSH_HOME"
SESSION_FILE_ENV_VAR = "GITSSH_SESSION_FILE"


@dataclass(frozen=True)
class CLIConfig:
    home_dir: str = str(DEFAULT_HOME_DIR)
    users_file: str = str(DEFAULT_HOME_DIR / "users.json")
    bindings_file: str = str(DEFAULT_HOME_DIR / "sessions.json")
    session_file: str = field(default_factory=lambda: str(default_session_file()))
    ssh_config_file: str = str(DEFAULT_SSH_CONFIG)
    probe_timeout: float = DEFAULT_PROBE_TIMEOUT
    services: dict[str, str] = field(default_factory=lambda: dict(DEFAULT_SERVICES))


class ConfigError(ValueError):
    """Raised when CLI config is invalid."""


def _load_toml(path: Path) -> dict[str, Any]:
    raw = path.read_text(encoding="utf-8")

    try:  # Python 3.11+
        import tomllib  # type: ignore[attr-defined]
        try:
            return tomllib.loads(raw)
        except tomllib.TOMLDecodeError as exc:
            raise ConfigError(f"invalid TOML in {path}: {exc}") from exc
    except ModuleNotFoundError:
        try:
            import tomli
        except ModuleNotFoundError as exc:
            raise ConfigError("toml parser unavailable; install tomli for Python < 3.11") from exc
        try:
            return tomli.loads(raw)
        except tomli.TOMLDecodeError as exc:
            raise ConfigError(f"invalid TOML in {path}: {exc}") from exc


def _to_path(value: Any, field_name: str) -> str:
    text = str(value).strip()
    if not text:
        raise ConfigError(f"{field_name} must not be empty")
    return os.path.expanduser(text)


def _to_timeout(value: Any) -> float:
    if isinstance(value, bool):
        raise ConfigError("probe_timeout must be a positive number")
    try:
        timeout = float(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError("probe_timeout must be a positive number") from exc
    if timeout <= 0:
        raise ConfigError("probe_timeout must be a positive number")
    return timeout


def _to_services(value: Any) -> dict[str, str]:
    if not isinstance(value, dict) or not value:
        raise ConfigError("services must be a non-empty table of prefix = hostname")
    services: dict[str, str] = {}
    for prefix, hostname in value.items():
        prefix_text = str(prefix).strip()
        hostname_text = str(hostname).strip().lower()
        if not prefix_text or not hostname_text or "-" in prefix_text:
            raise ConfigError(f"invalid services entry: {prefix!r} = {hostname!r}")
        services[prefix_text] = hostname_text
    return services


def load_cli_config(path: str | Path | None = None) -> CLIConfig:
    config_path = Path(path) if path else DEFAULT_CONFIG_PATH
    parsed: dict[str, Any] = _load_toml(config_path) if config_path.exists() else {}

    section = parsed.get("cli")
    if isinstance(section, dict):
        source = section
    elif section is None:
        source = parsed
    else:
        raise ConfigError("[cli] must be a table")

    env_home = os.getenv(HOME_ENV_VAR)
    configured_home = source.get("home_dir", str(DEFAULT_HOME_DIR))
    home_dir = Path(_to_path(env_home.strip() if env_home else configured_home, "home_dir"))

    users_file = _to_path(source.get("users_file", home_dir / "users.json"), "users_file")
    bindings_file = _to_path(
        source.get("bindings_file", home_dir / "sessions.json"), "bindings_file"
    )

    env_session = os.getenv(SESSION_FILE_ENV_VAR)
    if env_session and env_session.strip():
        session_file = _to_path(env_session, SESSION_FILE_ENV_VAR)
    else:
        session_file = _to_path(
            source.get("session_file", default_session_file()), "session_file"
        )

    ssh_config_file = _to_path(
        source.get("ssh_config_file", DEFAULT_SSH_CONFIG), "ssh_config_file"
    )
    probe_timeout = _to_timeout(source.get("probe_timeout", DEFAULT_PROBE_TIMEOUT))
    services = _to_services(source.get("services", dict(DEFAULT_SERVICES)))

    return CLIConfig(
        home_dir=str(home_dir),
        users_file=users_file,
        bindings_file=bindings_file,
        session_file=session_file,
        ssh_config_file=ssh_config_file,
        probe_timeout=probe_timeout,
        services=services,
    )

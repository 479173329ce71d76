"""Durable configuration store: the identity registry and per-repository bindings.

Both documents are JSON. Every mutation rebuilds the whole document in memory and
swaps it into place with :func:`gitssh.fileio.atomic_write_json`. A missing file reads
as empty; a malformed one raises :class:`IntegrityError` and is only rewritten by
:meth:`ConfigStore.initialize` with ``repair=True``.
"""

from __future__ import annotations

import json
import logging
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, Literal

from pydantic import TypeAdapter
from pydantic import ValidationError as SchemaError

from gitssh.errors import IntegrityError, NotFoundError, ValidationError
from gitssh.fileio import atomic_write_json, atomic_write_text, backup_file
from gitssh.identity import Binding, Identity, is_valid_name, validate_email, validate_name
from gitssh.schemas import BindingRecord, BindingValue, UserRecord, UsersDocument

logger = logging.getLogger(__name__)

DocumentState = Literal["missing", "valid", "invalid"]

_BINDINGS_ADAPTER = TypeAdapter(Dict[str, BindingValue])


@dataclass(frozen=True)
class DocumentStatus:
    label: str
    path: Path
    state: DocumentState
    detail: str = ""


@dataclass
class InitReport:
    created: list[Path] = field(default_factory=list)
    repaired: list[Path] = field(default_factory=list)
    unresolved: list[DocumentStatus] = field(default_factory=list)
    backups: list[Path] = field(default_factory=list)
    seeded: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.unresolved


def _parse_users(raw: str, path: Path) -> UsersDocument:
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise IntegrityError(f"invalid JSON in {path}: {exc}", path=path) from exc
    if not isinstance(payload, dict):
        raise IntegrityError(f"{path} must contain a JSON object", path=path)
    if not isinstance(payload.get("users"), dict):
        raise IntegrityError(f"{path} is missing a 'users' object", path=path)
    try:
        return UsersDocument.model_validate(payload)
    except SchemaError as exc:
        raise IntegrityError(f"invalid users document {path}: {exc}", path=path) from exc


def _parse_bindings(raw: str, path: Path) -> dict[str, Binding]:
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise IntegrityError(f"invalid JSON in {path}: {exc}", path=path) from exc
    if not isinstance(payload, dict):
        raise IntegrityError(f"{path} must contain a JSON object", path=path)
    try:
        values = _BINDINGS_ADAPTER.validate_python(payload)
    except SchemaError as exc:
        raise IntegrityError(f"invalid bindings document {path}: {exc}", path=path) from exc

    bindings: dict[str, Binding] = {}
    for repo_path, value in values.items():
        if isinstance(value, BindingRecord):
            bindings[repo_path] = Binding(name=value.name, email=value.email)
            continue
        try:
            bindings[repo_path] = Binding.parse(value)
        except ValueError as exc:
            raise IntegrityError(
                f"invalid binding for {repo_path} in {path}: {exc}", path=path
            ) from exc
    return bindings


def _identity_from_record(name: str, record: UserRecord) -> Identity:
    return Identity(
        name=name,
        display_name=record.name,
        contact_address=record.email,
        host_alias=record.ssh_host,
    )


class ConfigStore:
    def __init__(self, *, users_file: Path, bindings_file: Path) -> None:
        self.users_file = Path(users_file)
        self.bindings_file = Path(bindings_file)

    # -- identity registry -------------------------------------------------

    def _load_users(self) -> UsersDocument:
        if not self.users_file.exists():
            return UsersDocument(users={})
        return _parse_users(self.users_file.read_text(encoding="utf-8"), self.users_file)

    def _save_users(self, document: UsersDocument) -> None:
        atomic_write_json(self.users_file, document.model_dump(exclude_none=True))

    def get_identity(self, name: str) -> Identity | None:
        record = self._load_users().users.get(name)
        if record is None:
            return None
        return _identity_from_record(name, record)

    def list_identity_names(self) -> list[str]:
        return list(self._load_users().users.keys())

    def list_identities(self) -> list[Identity]:
        document = self._load_users()
        return [_identity_from_record(name, record) for name, record in document.users.items()]

    def put_identity(
        self,
        name: str,
        display_name: str,
        contact_address: str,
        host_alias: str,
    ) -> Identity:
        """Create or overwrite an identity. Overwrite confirmation is the caller's job."""
        name = validate_name(name)
        contact_address = validate_email(contact_address)
        display_name = display_name.strip() or name
        host_alias = host_alias.strip()
        if not host_alias:
            raise ValidationError("SSH host cannot be empty")

        document = self._load_users()
        users = dict(document.users)
        users[name] = UserRecord(name=display_name, email=contact_address, ssh_host=host_alias)
        self._save_users(document.model_copy(update={"users": users}))
        logger.debug("stored identity %s", name)
        return Identity(
            name=name,
            display_name=display_name,
            contact_address=contact_address,
            host_alias=host_alias,
        )

    def remove_identity(self, name: str) -> None:
        document = self._load_users()
        if name not in document.users:
            raise NotFoundError(
                f"user '{name}' not found", available=list(document.users.keys())
            )
        users = {key: value for key, value in document.users.items() if key != name}
        update: dict[str, Any] = {"users": users}
        if document.default_user == name:
            update["default_user"] = None
        self._save_users(document.model_copy(update=update))
        logger.debug("removed identity %s", name)

    def get_default_user(self) -> str | None:
        return self._load_users().default_user

    def set_default_user(self, name: str | None) -> None:
        document = self._load_users()
        if name is not None and name not in document.users:
            raise NotFoundError(
                f"user '{name}' not found", available=list(document.users.keys())
            )
        self._save_users(document.model_copy(update={"default_user": name}))

    # -- durable bindings --------------------------------------------------

    def _load_bindings(self) -> dict[str, Binding]:
        if not self.bindings_file.exists():
            return {}
        return _parse_bindings(
            self.bindings_file.read_text(encoding="utf-8"), self.bindings_file
        )

    def _save_bindings(self, bindings: dict[str, Binding]) -> None:
        payload = {
            repo_path: {"name": binding.name, "email": binding.email}
            for repo_path, binding in bindings.items()
        }
        atomic_write_json(self.bindings_file, payload)

    def get_durable_binding(self, repo_path: str) -> Binding | None:
        return self._load_bindings().get(repo_path)

    def list_durable_bindings(self) -> dict[str, Binding]:
        return self._load_bindings()

    def put_durable_binding(self, repo_path: str, binding: Binding) -> None:
        bindings = self._load_bindings()
        bindings[repo_path] = binding
        self._save_bindings(bindings)

    def remove_durable_binding(self, repo_path: str) -> bool:
        bindings = self._load_bindings()
        if repo_path not in bindings:
            return False
        del bindings[repo_path]
        self._save_bindings(bindings)
        return True

    # -- lifecycle ---------------------------------------------------------

    def check(self) -> list[DocumentStatus]:
        statuses: list[DocumentStatus] = []
        for label, path, loader in (
            ("sessions config", self.bindings_file, self._load_bindings),
            ("users config", self.users_file, self._load_users),
        ):
            if not path.exists():
                statuses.append(DocumentStatus(label, path, "missing"))
                continue
            try:
                loaded = loader()
            except IntegrityError as exc:
                statuses.append(DocumentStatus(label, path, "invalid", str(exc)))
                continue
            count = len(loaded.users) if isinstance(loaded, UsersDocument) else len(loaded)
            statuses.append(DocumentStatus(label, path, "valid", f"{count} entries"))
        return statuses

    def initialize(
        self,
        *,
        repair: bool = False,
        seed_accounts: Iterable[tuple[str, str]] = (),
    ) -> InitReport:
        """Create missing documents; back up and recreate malformed ones if ``repair``.

        ``seed_accounts`` holds ``(account, host_alias)`` pairs mined from the SSH config;
        they become placeholder identities when a users document is (re)created.
        """
        report = InitReport()
        statuses = {status.path: status for status in self.check()}

        bindings_status = statuses[self.bindings_file]
        if bindings_status.state == "missing":
            self._save_bindings({})
            report.created.append(self.bindings_file)
        elif bindings_status.state == "invalid":
            if repair:
                backup = backup_file(self.bindings_file, "invalid-backup")
                if backup is not None:
                    report.backups.append(backup)
                self._save_bindings({})
                report.repaired.append(self.bindings_file)
            else:
                report.unresolved.append(bindings_status)

        users_status = statuses[self.users_file]
        if users_status.state == "valid":
            return report
        if users_status.state == "invalid" and not repair:
            report.unresolved.append(users_status)
            return report
        if users_status.state == "invalid":
            backup = backup_file(self.users_file, "backup")
            if backup is not None:
                report.backups.append(backup)

        users: dict[str, UserRecord] = {}
        for account, alias in seed_accounts:
            if not is_valid_name(account) or account in users:
                continue
            users[account] = UserRecord(
                name=account, email=f"{account}@example.com", ssh_host=alias
            )
        self._save_users(UsersDocument(users=users))
        report.seeded = list(users.keys())
        if users_status.state == "missing":
            report.created.append(self.users_file)
        else:
            report.repaired.append(self.users_file)
        return report

    def backup(self, dest_dir: Path) -> list[Path]:
        dest_dir.mkdir(parents=True, exist_ok=True)
        copied: list[Path] = []
        for source in (self.users_file, self.bindings_file):
            if source.is_file():
                target = dest_dir / source.name
                shutil.copy2(source, target)
                copied.append(target)
        return copied

    def restore(self, src_dir: Path) -> list[Path]:
        """Restore documents saved by :meth:`backup`, validating each before it lands."""
        pending: list[tuple[Path, str]] = []
        for target, parser in (
            (self.users_file, _parse_users),
            (self.bindings_file, _parse_bindings),
        ):
            source = src_dir / target.name
            if not source.is_file():
                continue
            raw = source.read_text(encoding="utf-8")
            parser(raw, source)
            pending.append((target, raw))
        if not pending:
            raise NotFoundError(f"no configuration files found in {src_dir}")

        restored: list[Path] = []
        for target, raw in pending:
            backup_file(target, "pre-restore")
            atomic_write_text(target, raw)
            restored.append(target)
        return restored

    def reset(self, stamp: str) -> list[Path]:
        backups: list[Path] = []
        for path in (self.bindings_file, self.users_file):
            backup = backup_file(path, f"reset-{stamp}")
            if backup is not None:
                backups.append(backup)
            path.unlink(missing_ok=True)
        return backups

"""Remote address classification and HTTPS to SSH conversion planning.

Addresses come in three shapes, produced only by :func:`classify`:

- :class:`PasswordOriented`: ``https://<known host>/<owner>/<repo>[.git]``
- :class:`KeyBased`: ``<user>@<known host or alias>:<owner>/<repo>[.git]``
- :class:`Unrecognized`: anything else

Host aliases follow the ``{service}-{account}`` convention (``github-acme``), which is
how an alias implies the account it authenticates as. Everything here is a pure
function of its inputs; nothing touches git, ssh or the network.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Mapping, Sequence, Union

from gitssh.git import Remote
from gitssh.ssh import HostAlias

DEFAULT_SERVICES: Mapping[str, str] = {"github": "github.com"}
ALIAS_CONVENTION = "{service}-{account}"
ARCHIVE_SUFFIX = ".git"

_HTTPS_RE = re.compile(r"^https://(?:[^/@]+@)?(?P<host>[^/@]+)/(?P<path>.+)$")
_SCP_RE = re.compile(r"^(?P<user>[^@/\s:]+)@(?P<host>[^:/\s]+):(?P<path>.+)$")


class AddressKind(str, Enum):
    PASSWORD_ORIENTED = "password_oriented"
    KEY_BASED = "key_based"
    UNRECOGNIZED = "unrecognized"


@dataclass(frozen=True)
class RepoRef:
    owner: str
    repo_name: str
    path: str


@dataclass(frozen=True)
class PasswordOriented:
    address: str
    service: str
    host: str
    ref: RepoRef
    kind = AddressKind.PASSWORD_ORIENTED


@dataclass(frozen=True)
class KeyBased:
    address: str
    service: str
    user: str
    host: str
    ref: RepoRef
    alias_account: str | None = None
    kind = AddressKind.KEY_BASED

    @property
    def uses_alias(self) -> bool:
        return self.alias_account is not None


@dataclass(frozen=True)
class Unrecognized:
    address: str
    kind = AddressKind.UNRECOGNIZED


RemoteAddress = Union[PasswordOriented, KeyBased, Unrecognized]


def parse_alias(alias: str, services: Mapping[str, str] = DEFAULT_SERVICES) -> tuple[str, str] | None:
    """Split an alias into ``(service, account)`` per ``ALIAS_CONVENTION``."""
    for service in services:
        prefix = ALIAS_CONVENTION.format(service=service, account="")
        if alias.startswith(prefix) and len(alias) > len(prefix):
            return service, alias[len(prefix) :]
    return None


def implied_account(alias: str, services: Mapping[str, str] = DEFAULT_SERVICES) -> str | None:
    parsed = parse_alias(alias, services)
    return parsed[1] if parsed else None


def _service_for_host(host: str, services: Mapping[str, str]) -> str | None:
    lowered = host.lower()
    for service, hostname in services.items():
        if hostname.lower() == lowered:
            return service
    return None


def _repo_ref(path: str) -> RepoRef | None:
    trimmed = path.strip().rstrip("/")
    if trimmed.endswith(ARCHIVE_SUFFIX):
        trimmed = trimmed[: -len(ARCHIVE_SUFFIX)]
    segments = [segment for segment in trimmed.split("/") if segment]
    if len(segments) < 2:
        return None
    return RepoRef(owner=segments[0], repo_name=segments[-1], path="/".join(segments))


def classify(address: str, services: Mapping[str, str] = DEFAULT_SERVICES) -> RemoteAddress:
    value = address.strip()

    match = _HTTPS_RE.match(value)
    if match is not None:
        service = _service_for_host(match.group("host"), services)
        ref = _repo_ref(match.group("path"))
        if service is not None and ref is not None:
            return PasswordOriented(
                address=value, service=service, host=match.group("host"), ref=ref
            )
        return Unrecognized(address=value)

    match = _SCP_RE.match(value)
    if match is not None:
        host = match.group("host")
        ref = _repo_ref(match.group("path"))
        if ref is None:
            return Unrecognized(address=value)
        service = _service_for_host(host, services)
        if service is not None:
            return KeyBased(
                address=value, service=service, user=match.group("user"), host=host, ref=ref
            )
        alias = parse_alias(host, services)
        if alias is not None:
            return KeyBased(
                address=value,
                service=alias[0],
                user=match.group("user"),
                host=host,
                ref=ref,
                alias_account=alias[1],
            )

    return Unrecognized(address=value)


def decompose(
    address: str | RemoteAddress, services: Mapping[str, str] = DEFAULT_SERVICES
) -> RepoRef | None:
    parsed = classify(address, services) if isinstance(address, str) else address
    if isinstance(parsed, (PasswordOriented, KeyBased)):
        return parsed.ref
    return None


def key_based_address(alias: HostAlias, owner: str, repo_name: str) -> str:
    return f"{alias.user}@{alias.alias}:{owner}/{repo_name}{ARCHIVE_SUFFIX}"


def relevant_aliases(
    aliases: Sequence[HostAlias], service: str, services: Mapping[str, str] = DEFAULT_SERVICES
) -> list[HostAlias]:
    """Aliases usable for ``service``, in SSH config order."""
    hostname = services.get(service, "").lower()
    relevant: list[HostAlias] = []
    for entry in aliases:
        if entry.alias.lower() == hostname:
            continue
        parsed = parse_alias(entry.alias, services)
        if (parsed is not None and parsed[0] == service) or entry.hostname.lower() == hostname:
            relevant.append(entry)
    return relevant


@dataclass(frozen=True)
class ConversionPlan:
    remote: str
    original: str
    alias: str
    new_address: str


@dataclass(frozen=True)
class NotSupported:
    address: str
    reason: str = "only HTTPS or SSH addresses on a known host can be converted"


@dataclass(frozen=True)
class AlreadyKeyBased:
    address: str
    alias: str


@dataclass(frozen=True)
class NoHostAvailable:
    address: str
    service: str
    ref: RepoRef


@dataclass(frozen=True)
class ConversionProposal:
    """Host choices for one remote. ``options`` is the full list in display order."""

    remote: str
    source: PasswordOriented | KeyBased
    options: tuple[HostAlias, ...]
    candidates: tuple[HostAlias, ...]

    @property
    def ref(self) -> RepoRef:
        return self.source.ref

    @property
    def recommended(self) -> HostAlias | None:
        if len(self.candidates) == 1:
            return self.candidates[0]
        return None

    @property
    def recommended_index(self) -> int | None:
        recommended = self.recommended
        if recommended is None:
            return None
        return self.options.index(recommended) + 1

    @property
    def recommended_plan(self) -> ConversionPlan | None:
        recommended = self.recommended
        return self.plan(recommended) if recommended is not None else None

    def plan(self, alias: HostAlias) -> ConversionPlan:
        return ConversionPlan(
            remote=self.remote,
            original=self.source.address,
            alias=alias.alias,
            new_address=f"{alias.user}@{alias.alias}:{self.ref.path}{ARCHIVE_SUFFIX}",
        )

    def plan_for_choice(self, choice: int) -> ConversionPlan:
        """Plan for a 1-based index into ``options``."""
        if not 1 <= choice <= len(self.options):
            raise ValueError(f"choice must be between 1 and {len(self.options)}")
        return self.plan(self.options[choice - 1])


ConversionResult = Union[ConversionProposal, AlreadyKeyBased, NoHostAvailable, NotSupported]


def propose_conversion(
    address: str,
    aliases: Sequence[HostAlias],
    services: Mapping[str, str] = DEFAULT_SERVICES,
    *,
    remote: str = "origin",
) -> ConversionResult:
    parsed = classify(address, services)
    if isinstance(parsed, Unrecognized):
        return NotSupported(address=parsed.address)
    if isinstance(parsed, KeyBased) and parsed.uses_alias:
        return AlreadyKeyBased(address=parsed.address, alias=parsed.host)

    options = relevant_aliases(aliases, parsed.service, services)
    if not options:
        return NoHostAvailable(address=parsed.address, service=parsed.service, ref=parsed.ref)
    candidates = tuple(
        entry for entry in options if implied_account(entry.alias, services) == parsed.ref.owner
    )
    return ConversionProposal(
        remote=remote, source=parsed, options=tuple(options), candidates=candidates
    )


@dataclass(frozen=True)
class BatchOutcome:
    remote: str
    address: str
    plan: ConversionPlan | None
    reason: str = ""


def propose_conversion_all(
    remotes: Iterable[Remote],
    aliases: Sequence[HostAlias],
    services: Mapping[str, str] = DEFAULT_SERVICES,
) -> list[BatchOutcome]:
    """Plan every HTTPS remote independently; remotes without a matching alias are skipped."""
    outcomes: list[BatchOutcome] = []
    for entry in remotes:
        parsed = classify(entry.url, services)
        if not isinstance(parsed, PasswordOriented):
            continue
        result = propose_conversion(entry.url, aliases, services, remote=entry.name)
        if isinstance(result, ConversionProposal) and result.candidates:
            outcomes.append(
                BatchOutcome(
                    remote=entry.name,
                    address=entry.url,
                    plan=result.plan(result.candidates[0]),
                )
            )
            continue
        outcomes.append(
            BatchOutcome(
                remote=entry.name,
                address=entry.url,
                plan=None,
                reason=f"no matching SSH host found for user '{parsed.ref.owner}'",
            )
        )
    return outcomes


@dataclass(frozen=True)
class HostRecommendation:
    kind: str  # "exact", "suggested" or "none"
    host: str | None = None


def recommend_host(
    owner: str,
    aliases: Sequence[HostAlias],
    registered: Mapping[str, str],
    services: Mapping[str, str] = DEFAULT_SERVICES,
) -> HostRecommendation:
    """``registered`` maps identity name to its configured SSH host."""
    for entry in aliases:
        if implied_account(entry.alias, services) == owner:
            return HostRecommendation(kind="exact", host=entry.alias)
    if owner in registered:
        return HostRecommendation(kind="suggested", host=registered[owner])
    return HostRecommendation(kind="none")


def service_aliases(
    aliases: Sequence[HostAlias], services: Mapping[str, str] = DEFAULT_SERVICES
) -> list[HostAlias]:
    """Aliases relevant to any known service, in SSH config order."""
    relevant = {
        entry.alias for service in services for entry in relevant_aliases(aliases, service, services)
    }
    return [entry for entry in aliases if entry.alias in relevant]

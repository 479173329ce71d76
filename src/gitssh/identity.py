"""Identity records and repository bindings.

An identity is a registered account (``name`` is the registry key). A binding is the
resolved ``display_name``/``email`` pair pinned to one repository; it is copied out of
the registry on selection, so later registry edits never rewrite existing bindings.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from gitssh.errors import ValidationError

_NAME_RE = re.compile(r"^[A-Za-z0-9_-]+$")
_BINDING_RE = re.compile(r"^(?P<name>.*?)\s*<(?P<email>[^<>]*)>\s*$")

NOT_CONFIGURED = "Not configured"


def is_valid_name(value: str) -> bool:
    return bool(_NAME_RE.match(value))


def is_valid_email(value: str) -> bool:
    at = value.find("@")
    if at < 0:
        return False
    return "." in value[at + 1 :]


def validate_name(value: str) -> str:
    name = value.strip()
    if not name:
        raise ValidationError("username cannot be empty")
    if not is_valid_name(name):
        raise ValidationError(
            "username can only contain letters, numbers, hyphens, and underscores"
        )
    return name


def validate_email(value: str) -> str:
    email = value.strip()
    if not email:
        raise ValidationError("email cannot be empty")
    if not is_valid_email(email):
        raise ValidationError(f"invalid email format: {email}")
    return email


@dataclass(frozen=True)
class Identity:
    name: str
    display_name: str
    contact_address: str
    host_alias: str

    @property
    def binding(self) -> "Binding":
        return Binding(name=self.display_name, email=self.contact_address)


@dataclass(frozen=True)
class Binding:
    name: str
    email: str

    def __str__(self) -> str:
        return f"{self.name} <{self.email}>"

    @classmethod
    def parse(cls, value: str) -> "Binding":
        match = _BINDING_RE.match(value.strip())
        if match is None or not match.group("name") or not match.group("email"):
            raise ValueError(f"not an identity string: {value!r}")
        return cls(name=match.group("name"), email=match.group("email"))


def default_host_alias(name: str, service: str = "github") -> str:
    return f"{service}-{name}"

"""On-disk document schemas."""

from __future__ import annotations

from typing import Dict, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

USERS_KEY = "users"
DEFAULT_USER_KEY = "default_user"


class UserRecord(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str
    email: str
    ssh_host: str


class UsersDocument(BaseModel):
    model_config = ConfigDict(extra="allow")

    users: Dict[str, UserRecord]
    default_user: Optional[str] = None


class BindingRecord(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str = Field(..., min_length=1)
    email: str = Field(..., min_length=1)


# Older files store the formatted "Name <email>" string instead of a record.
BindingValue = Union[BindingRecord, str]


class ExportedRepository(BaseModel):
    model_config = ConfigDict(extra="ignore")

    path: str
    user: str


class SessionExport(BaseModel):
    model_config = ConfigDict(extra="ignore")

    session_repositories: Dict[str, ExportedRepository]
    export_date: Optional[str] = None

"""gitssh error types."""

from __future__ import annotations

from pathlib import Path
from typing import Sequence


class GitSSHError(RuntimeError):
    """Base gitssh error."""


class ValidationError(GitSSHError):
    """User-supplied value failed validation; nothing was written."""


class MissingDependencyError(GitSSHError):
    """A required external tool is not installed."""

    def __init__(self, tool: str, *, hint: str | None = None) -> None:
        message = f"{tool} is required but was not found on PATH"
        if hint:
            message = f"{message} ({hint})"
        super().__init__(message)
        self.tool = tool
        self.hint = hint


class IntegrityError(GitSSHError):
    """A configuration document exists but is malformed."""

    def __init__(self, message: str, *, path: Path | None = None) -> None:
        super().__init__(message)
        self.path = path


class NotFoundError(GitSSHError):
    """Requested identity, binding or host alias does not exist."""

    def __init__(self, message: str, *, available: Sequence[str] = ()) -> None:
        super().__init__(message)
        self.available = tuple(available)


class ExternalToolError(GitSSHError):
    """An external tool exited unsuccessfully."""


class GitCommandError(ExternalToolError):
    """git returned a non-zero exit status."""

    def __init__(
        self,
        message: str,
        *,
        args: Sequence[str] = (),
        returncode: int | None = None,
        stderr: str = "",
    ) -> None:
        super().__init__(message)
        self.command = tuple(args)
        self.returncode = returncode
        self.stderr = stderr


class OperationCancelled(GitSSHError):
    """The user declined a confirmation or ended input."""

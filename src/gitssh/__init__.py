"""gitssh public surface."""

from gitssh.cache import SessionCache
from gitssh.context import Context
from gitssh.errors import (
    ExternalToolError,
    GitCommandError,
    GitSSHError,
    IntegrityError,
    MissingDependencyError,
    NotFoundError,
    OperationCancelled,
    ValidationError,
)
from gitssh.git import Git, Remote
from gitssh.identity import NOT_CONFIGURED, Binding, Identity
from gitssh.mismatch import (
    Indeterminate,
    Match,
    Mismatch,
    confirm_identity_gate,
    detect_mismatch,
)
from gitssh.remotes import (
    AddressKind,
    AlreadyKeyBased,
    ConversionPlan,
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
)
from gitssh.resolver import (
    EffectiveIdentity,
    PromptState,
    apply_binding,
    ensure_identity_configured,
    forget,
    resolve_effective_identity,
    select_identity,
)
from gitssh.ssh import HostAlias, probe_host, read_host_aliases
from gitssh.store import ConfigStore

__all__ = [
    "GitSSHError",
    "ValidationError",
    "MissingDependencyError",
    "OperationCancelled",
    "IntegrityError",
    "NotFoundError",
    "ExternalToolError",
    "GitCommandError",
    "Context",
    "ConfigStore",
    "SessionCache",
    "Git",
    "Remote",
    "Identity",
    "Binding",
    "NOT_CONFIGURED",
    "EffectiveIdentity",
    "PromptState",
    "resolve_effective_identity",
    "apply_binding",
    "select_identity",
    "forget",
    "ensure_identity_configured",
    "AddressKind",
    "PasswordOriented",
    "KeyBased",
    "Unrecognized",
    "classify",
    "decompose",
    "implied_account",
    "ConversionPlan",
    "ConversionProposal",
    "AlreadyKeyBased",
    "NoHostAvailable",
    "NotSupported",
    "propose_conversion",
    "propose_conversion_all",
    "Match",
    "Mismatch",
    "Indeterminate",
    "detect_mismatch",
    "confirm_identity_gate",
    "HostAlias",
    "read_host_aliases",
    "probe_host",
]

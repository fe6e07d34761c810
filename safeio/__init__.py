"""safeio - sandboxed filesystem access layer.

Every mutating filesystem call is checked against a WritePolicy before it
reaches the OS. Denials are reported and returned as failed FsResults.
"""

from safeio.errors import (
    FailureKind,
    FsResult,
    PathSecurityError,
    PolicyDeniedError,
    PreconditionError,
    SafeIOError,
    get_error_reporter,
)
from safeio.facade import SafeFS
from safeio.paths import normalize_path, sanitize_name
from safeio.policy import OverrideScope, PolicyDecision, WritePolicy
from safeio.stream import SafeFileStream

__version__ = "0.1.0"

__all__ = [
    "FailureKind",
    "FsResult",
    "OverrideScope",
    "PathSecurityError",
    "PolicyDecision",
    "PolicyDeniedError",
    "PreconditionError",
    "SafeFS",
    "SafeFileStream",
    "SafeIOError",
    "WritePolicy",
    "get_error_reporter",
    "normalize_path",
    "sanitize_name",
]

"""
Error surface for safeio.

Denied writes are an expected outcome, so wrappers report them and hand back
a failed FsResult instead of raising. Callers that need a hard stop pass
errors="raise". OS errors that are not authorization failures are never
caught here and reach the caller unchanged.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
import errno
import logging
from threading import Lock
from typing import Any

logger = logging.getLogger("safeio.errors")

ERROR_MODES = ("report", "raise")

# errno values treated like PermissionError (EROFS: read-only filesystem)
_AUTHORIZATION_ERRNOS = frozenset({errno.EACCES, errno.EPERM, errno.EROFS})


class SafeIOError(Exception):
    """Base class for errors raised by safeio."""


class PathSecurityError(SafeIOError, ValueError):
    """Raised when a path cannot be evaluated safely (e.g. embedded null bytes)."""

    pass


class PolicyDeniedError(SafeIOError):
    """Raised in errors="raise" mode when the write policy denies a path."""

    def __init__(self, message: str, path: str | None = None, rule: str | None = None):
        super().__init__(message)
        self.path = path
        self.rule = rule


class PreconditionError(SafeIOError):
    """Raised in errors="raise" mode when an operation precondition fails."""

    def __init__(self, message: str, path: str | None = None):
        super().__init__(message)
        self.path = path


class FailureKind(str, Enum):
    POLICY_DENIED = "policy_denied"
    AUTHORIZATION = "authorization"
    PRECONDITION = "precondition"


@dataclass
class FsResult:
    """Result from a guarded filesystem operation."""

    success: bool
    data: Any
    meta: dict[str, Any] = field(default_factory=dict)
    error: str | None = None
    kind: FailureKind | None = None


ErrorSink = Callable[[str, BaseException | None, FailureKind | None], None]


class ErrorReporter:
    """
    Receives every denial and authorization failure.

    Messages always go to the "safeio.errors" logger. Hosts that display
    diagnostics elsewhere (a console, an in-game overlay) subscribe a sink.
    A failing sink is logged and skipped so it cannot break the reporting path.
    """

    def __init__(self) -> None:
        self._sinks: list[ErrorSink] = []
        self._lock = Lock()

    def subscribe(self, sink: ErrorSink) -> None:
        with self._lock:
            if sink not in self._sinks:
                self._sinks.append(sink)

    def unsubscribe(self, sink: ErrorSink) -> None:
        with self._lock:
            if sink in self._sinks:
                self._sinks.remove(sink)

    def report(
        self,
        message: str,
        cause: BaseException | None = None,
        kind: FailureKind | None = None,
        path: str | None = None,
    ) -> None:
        logger.error(
            message,
            exc_info=cause,
            extra={"kind": kind.value if kind else None, "path": path},
        )
        with self._lock:
            sinks = list(self._sinks)
        for sink in sinks:
            try:
                sink(message, cause, kind)
            except Exception:
                logger.exception("Error sink %r failed", sink)


_error_reporter: ErrorReporter | None = None


def get_error_reporter() -> ErrorReporter:
    """Get or create the global error reporter."""
    global _error_reporter
    if _error_reporter is None:
        _error_reporter = ErrorReporter()
    return _error_reporter


def check_error_mode(errors: str) -> None:
    if errors not in ERROR_MODES:
        raise ValueError(f"Invalid errors mode: {errors!r} (expected one of {ERROR_MODES})")


def is_authorization_error(exc: BaseException) -> bool:
    """True for OS refusals: permission bits, EPERM, read-only filesystems."""
    if isinstance(exc, PermissionError):
        return True
    return isinstance(exc, OSError) and exc.errno in _AUTHORIZATION_ERRNOS


def denied(
    message: str,
    path: str,
    rule: str | None,
    errors: str = "report",
    meta: dict[str, Any] | None = None,
) -> FsResult:
    """Report a policy denial; raise PolicyDeniedError in raise mode."""
    get_error_reporter().report(message, kind=FailureKind.POLICY_DENIED, path=path)
    if errors == "raise":
        raise PolicyDeniedError(message, path=path, rule=rule)
    return FsResult(
        success=False,
        data=None,
        meta=meta if meta is not None else {"path": path},
        error=message,
        kind=FailureKind.POLICY_DENIED,
    )


def precondition_failed(
    message: str,
    path: str,
    errors: str = "report",
    meta: dict[str, Any] | None = None,
) -> FsResult:
    get_error_reporter().report(message, kind=FailureKind.PRECONDITION, path=path)
    if errors == "raise":
        raise PreconditionError(message, path=path)
    return FsResult(
        success=False,
        data=None,
        meta=meta if meta is not None else {"path": path},
        error=message,
        kind=FailureKind.PRECONDITION,
    )


def authorization_failed(
    message: str,
    path: str,
    cause: OSError,
    errors: str = "report",
    data: Any = None,
    meta: dict[str, Any] | None = None,
) -> FsResult:
    """
    Report an OS authorization failure.

    Must be called from inside the except block so that raise mode can
    re-raise the original exception with its traceback.
    """
    get_error_reporter().report(message, cause=cause, kind=FailureKind.AUTHORIZATION, path=path)
    if errors == "raise":
        raise cause
    return FsResult(
        success=False,
        data=data,
        meta=meta if meta is not None else {"path": path},
        error=message,
        kind=FailureKind.AUTHORIZATION,
    )

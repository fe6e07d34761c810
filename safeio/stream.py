"""
Guarded file stream.

A SafeFileStream re-checks the write policy on every mutating call, not only
when it is opened. If the policy changes while the stream is alive (an
override scope ends, for example) later writes are reported and dropped.
Data already written stays as it is.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
import io
from typing import IO, TYPE_CHECKING, Any, AnyStr

from safeio.errors import FailureKind, get_error_reporter

if TYPE_CHECKING:
    from safeio.policy import WritePolicy


class SafeFileStream(io.IOBase):
    """
    File object wrapper that consults a WritePolicy before each write.

    Reading, seeking and flushing pass straight through to the inner file.
    Being an io.IOBase, a binary stream can be wrapped in io.TextIOWrapper
    or handed to anything that expects a file object.
    """

    def __init__(self, path: str, inner: IO[Any], policy: WritePolicy, downgraded: bool = False):
        self._path = path
        self._inner = inner
        self._policy = policy
        self.downgraded = downgraded

    def __repr__(self) -> str:
        return (
            f"<SafeFileStream path={self._path!r} mode={self.mode!r} "
            f"downgraded={self.downgraded}>"
        )

    @property
    def name(self) -> str:
        return self._path

    @property
    def mode(self) -> str:
        return getattr(self._inner, "mode", "")

    @property
    def closed(self) -> bool:
        return self._inner.closed

    @property
    def length(self) -> int:
        """Current size of the underlying file in bytes."""
        self._inner.flush()
        pos = self._inner.tell()
        try:
            return self._inner.seek(0, io.SEEK_END)
        finally:
            self._inner.seek(pos)

    def isatty(self) -> bool:
        return self._inner.isatty()

    def readable(self) -> bool:
        return self._inner.readable()

    def seekable(self) -> bool:
        return self._inner.seekable()

    def writable(self) -> bool:
        """Whether a write issued right now would reach the file."""
        if not self._inner.writable():
            return False
        return self._policy.can_write(self._path, False)

    def _write_allowed(self, action: str) -> bool:
        decision = self._policy.explain(self._path, False)
        if not decision.allowed:
            get_error_reporter().report(
                f'Cannot {action} file "{self._path}": {decision.reason}',
                kind=FailureKind.POLICY_DENIED,
                path=self._path,
            )
            return False
        if not self._inner.writable():
            if self.downgraded:
                get_error_reporter().report(
                    f'Cannot {action} file "{self._path}": stream was opened read-only',
                    kind=FailureKind.POLICY_DENIED,
                    path=self._path,
                )
                return False
            raise io.UnsupportedOperation(f"{action}: stream for {self._path} is not writable")
        return True

    # ------------------------------------------------------------------
    # Writing (guarded)
    # ------------------------------------------------------------------

    def write(self, data: AnyStr) -> int:
        """Write data; returns 0 without writing if the policy denies the path."""
        if not self._write_allowed("write to"):
            return 0
        return self._inner.write(data)

    def writelines(self, lines: Iterable[AnyStr]) -> None:
        for line in lines:
            self.write(line)

    def truncate(self, size: int | None = None) -> int:
        """Resize the file; returns the unchanged size if the policy denies the path."""
        if not self._write_allowed("truncate"):
            return self.length
        return self._inner.truncate(size)

    # ------------------------------------------------------------------
    # Pass-through
    # ------------------------------------------------------------------

    def read(self, size: int = -1) -> AnyStr:
        return self._inner.read(size)

    def read1(self, size: int = -1) -> bytes:
        return self._inner.read1(size)

    def readinto(self, buffer) -> int:
        return self._inner.readinto(buffer)

    def readline(self, size: int = -1) -> AnyStr:
        return self._inner.readline(size)

    def readlines(self, hint: int = -1) -> list[AnyStr]:
        return self._inner.readlines(hint)

    def seek(self, offset: int, whence: int = io.SEEK_SET) -> int:
        return self._inner.seek(offset, whence)

    def tell(self) -> int:
        return self._inner.tell()

    def flush(self) -> None:
        self._inner.flush()

    def fileno(self) -> int:
        return self._inner.fileno()

    def close(self) -> None:
        self._inner.close()

    def __iter__(self) -> Iterator[AnyStr]:
        return iter(self._inner)

    def __enter__(self) -> SafeFileStream:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

"""
Guarded file operations.

Every mutating call asks the WritePolicy for a fresh decision right before
touching the OS, and acts on the normalized path it checked. That path is
what the OS sees: "~" is expanded and "\\" is a separator on every platform,
so on POSIX "Data/a\\b.txt" is written to Data/a/b.txt, never to a file
named "a\\b.txt".

Results come back as FsResult:

- policy denial      -> reported, success=False, kind=POLICY_DENIED
- precondition       -> reported, success=False, kind=PRECONDITION
- OS authorization   -> reported, success=False, kind=AUTHORIZATION
- anything else      -> propagates unchanged (missing files, disk errors)

Pass errors="raise" to turn the first three into exceptions instead.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import UTC, datetime
import logging
import os
from pathlib import Path
import shutil
import stat as stat_module
from typing import Any
import xml.etree.ElementTree as ET

from safeio.errors import (
    FsResult,
    authorization_failed,
    check_error_mode,
    denied,
    is_authorization_error,
    precondition_failed,
)
from safeio.paths import normalize_path
from safeio.policy import PolicyDecision, WritePolicy
from safeio.stream import SafeFileStream

logger = logging.getLogger("safeio.file")

# Modes that create, truncate or append: denied outright when the policy says no
_CREATING_MODE_CHARS = frozenset("wax")

_WRITE_BITS = stat_module.S_IWUSR | stat_module.S_IWGRP | stat_module.S_IWOTH

_EPOCH = datetime.fromtimestamp(0, tz=UTC)


def _unauthorized(action: str, path: str) -> str:
    return f'Cannot {action} "{path}": unauthorized access. The file/folder might be read-only!'


def _not_allowed(action: str, path: str, decision: PolicyDecision) -> str:
    return f'Cannot {action} "{path}": {decision.reason}'


def exists(path: str | os.PathLike[str]) -> bool:
    return os.path.isfile(path)


def get_last_write_time(path: str | os.PathLike[str], errors: str = "report") -> FsResult:
    """Return the modification time (UTC) of a file or directory."""
    check_error_mode(errors)
    try:
        mtime = os.stat(path).st_mtime
    except OSError as e:
        if not is_authorization_error(e):
            raise
        return authorization_failed(
            _unauthorized("get last write time of", os.fspath(path)),
            os.fspath(path),
            e,
            errors,
            data=_EPOCH,
        )
    return FsResult(
        success=True,
        data=datetime.fromtimestamp(mtime, tz=UTC),
        meta={"path": os.fspath(path)},
    )


def is_read_only(path: str | os.PathLike[str]) -> bool:
    return not (os.stat(path).st_mode & stat_module.S_IWUSR)


# ============================================================================
# Mutating operations
# ============================================================================


def copy_file(
    policy: WritePolicy,
    src: str | os.PathLike[str],
    dest: str | os.PathLike[str],
    overwrite: bool = False,
    errors: str = "report",
) -> FsResult:
    """Copy a file (contents and metadata). Only the destination is checked."""
    check_error_mode(errors)
    src_str, dest_str = os.fspath(src), os.fspath(dest)
    meta = {"source": src_str, "dest": dest_str}

    decision = policy.explain(dest_str, False)
    if not decision.allowed:
        return denied(
            _not_allowed(f'copy "{src_str}" to', dest_str, decision),
            dest_str,
            decision.rule,
            errors,
            meta=meta,
        )

    target = decision.path
    if os.path.isdir(target):
        return precondition_failed(
            f'Cannot copy "{src_str}" to "{dest_str}": destination is a directory.',
            dest_str,
            errors,
            meta=meta,
        )
    if not overwrite and os.path.exists(target):
        return precondition_failed(
            f'Cannot copy "{src_str}" to "{dest_str}": destination file already exists.',
            dest_str,
            errors,
            meta=meta,
        )

    try:
        shutil.copy2(src_str, target)
    except OSError as e:
        if not is_authorization_error(e):
            raise
        return authorization_failed(
            _unauthorized(f'copy "{src_str}" to', dest_str), dest_str, e, errors, meta=meta
        )

    logger.debug("Copied %s -> %s", src_str, target)
    return FsResult(success=True, data={"source": src_str, "dest": target}, meta=meta)


def move_file(
    policy: WritePolicy,
    src: str | os.PathLike[str],
    dest: str | os.PathLike[str],
    overwrite: bool = False,
    errors: str = "report",
) -> FsResult:
    """Move/rename a file. Both source and destination must be writable."""
    check_error_mode(errors)
    src_str, dest_str = os.fspath(src), os.fspath(dest)
    meta = {"source": src_str, "dest": dest_str}

    src_decision = policy.explain(src_str, False)
    if not src_decision.allowed:
        return denied(
            _not_allowed(f'move "{src_str}" to "{dest_str}"; source', src_str, src_decision),
            src_str,
            src_decision.rule,
            errors,
            meta=meta,
        )
    dest_decision = policy.explain(dest_str, False)
    if not dest_decision.allowed:
        return denied(
            _not_allowed(f'move "{src_str}" to', dest_str, dest_decision),
            dest_str,
            dest_decision.rule,
            errors,
            meta=meta,
        )

    target = dest_decision.path
    if os.path.isdir(target):
        return precondition_failed(
            f'Cannot move "{src_str}" to "{dest_str}": destination is a directory.',
            dest_str,
            errors,
            meta=meta,
        )
    if not overwrite and os.path.exists(target):
        return precondition_failed(
            f'Cannot move "{src_str}" to "{dest_str}": destination file already exists.',
            dest_str,
            errors,
            meta=meta,
        )

    try:
        shutil.move(src_decision.path, target)
    except OSError as e:
        if not is_authorization_error(e):
            raise
        return authorization_failed(
            _unauthorized(f'move "{src_str}" to', dest_str), src_str, e, errors, meta=meta
        )

    return FsResult(success=True, data={"source": src_decision.path, "dest": target}, meta=meta)


def delete_file(
    policy: WritePolicy,
    path: str | os.PathLike[str],
    missing_ok: bool = False,
    errors: str = "report",
) -> FsResult:
    """Delete a file."""
    check_error_mode(errors)
    path_str = os.fspath(path)

    decision = policy.explain(path_str, False)
    if not decision.allowed:
        return denied(
            _not_allowed("delete file", path_str, decision), path_str, decision.rule, errors
        )

    try:
        Path(decision.path).unlink(missing_ok=missing_ok)
    except OSError as e:
        if not is_authorization_error(e):
            raise
        return authorization_failed(_unauthorized("delete", path_str), path_str, e, errors)

    return FsResult(success=True, data={"deleted": decision.path}, meta={"path": path_str})


def set_read_only(
    policy: WritePolicy,
    path: str | os.PathLike[str],
    value: bool,
    errors: str = "report",
) -> FsResult:
    """Set or clear the read-only flag (all write permission bits)."""
    check_error_mode(errors)
    path_str = os.fspath(path)

    decision = policy.explain(path_str, False)
    if not decision.allowed:
        return denied(
            _not_allowed(f"set read-only to {value} for", path_str, decision),
            path_str,
            decision.rule,
            errors,
        )

    try:
        mode = os.stat(decision.path).st_mode
        new_mode = (mode & ~_WRITE_BITS) if value else (mode | stat_module.S_IWUSR)
        os.chmod(decision.path, stat_module.S_IMODE(new_mode))
    except OSError as e:
        if not is_authorization_error(e):
            raise
        return authorization_failed(
            _unauthorized("change read-only flag of", path_str), path_str, e, errors
        )

    return FsResult(success=True, data={"read_only": value}, meta={"path": path_str})


# ============================================================================
# Streams
# ============================================================================


def open_file(
    policy: WritePolicy,
    path: str | os.PathLike[str],
    mode: str = "r",
    encoding: str | None = None,
    newline: str | None = None,
    errors: str = "report",
) -> FsResult:
    """
    Open a guarded stream.

    Args:
        policy: Write policy to consult
        path: File to open
        mode: Any mode accepted by open()
        encoding: Text encoding (text modes only)
        newline: Newline handling (text modes only)
        errors: "report" or "raise"

    Returns:
        FsResult with a SafeFileStream in data. Creating, truncating,
        appending and exclusive modes on a denied path fail with no stream.
        An update mode ("r+") on a denied path opens the file read-only
        instead; the stream's writable() then reports False.
    """
    check_error_mode(errors)
    path_str = os.fspath(path)

    decision = policy.explain(path_str, False)
    downgraded = False
    if not decision.allowed:
        if _CREATING_MODE_CHARS.intersection(mode):
            return denied(
                _not_allowed(f"open in {mode!r} mode", path_str, decision),
                path_str,
                decision.rule,
                errors,
            )
        if "+" in mode:
            mode = mode.replace("+", "")
            downgraded = True
            logger.debug("Opening %s read-only: %s", path_str, decision.reason)

    try:
        inner = open(decision.path, mode, encoding=encoding, newline=newline)
    except OSError as e:
        if not is_authorization_error(e):
            raise
        return authorization_failed(_unauthorized("open (stream)", path_str), path_str, e, errors)

    stream = SafeFileStream(decision.path, inner, policy, downgraded=downgraded)
    return FsResult(
        success=True,
        data=stream,
        meta={"path": path_str, "mode": mode, "downgraded": downgraded},
    )


def open_read(
    policy: WritePolicy, path: str | os.PathLike[str], errors: str = "report"
) -> FsResult:
    return open_file(policy, path, "rb", errors=errors)


def open_write(
    policy: WritePolicy, path: str | os.PathLike[str], errors: str = "report"
) -> FsResult:
    """Open for binary writing, creating the file if needed, without truncating it."""
    check_error_mode(errors)
    path_str = os.fspath(path)
    decision = policy.explain(path_str, False)
    if not decision.allowed:
        return denied(
            _not_allowed("open for writing", path_str, decision), path_str, decision.rule, errors
        )
    mode = "r+b" if os.path.exists(decision.path) else "wb"
    return open_file(policy, decision.path, mode, errors=errors)


def create(policy: WritePolicy, path: str | os.PathLike[str], errors: str = "report") -> FsResult:
    """Create or truncate a file and open it for binary writing."""
    return open_file(policy, path, "wb", errors=errors)


# ============================================================================
# Whole-file helpers
# ============================================================================


def _write_whole(
    policy: WritePolicy,
    path: str | os.PathLike[str],
    what: str,
    writer,
    errors: str,
) -> FsResult:
    check_error_mode(errors)
    path_str = os.fspath(path)

    decision = policy.explain(path_str, False)
    if not decision.allowed:
        return denied(
            _not_allowed(f"write all {what} to", path_str, decision),
            path_str,
            decision.rule,
            errors,
        )

    try:
        written = writer(decision.path)
    except OSError as e:
        if not is_authorization_error(e):
            raise
        return authorization_failed(_unauthorized("write at", path_str), path_str, e, errors)

    return FsResult(success=True, data={"bytes_written": written}, meta={"path": path_str})


def write_all_bytes(
    policy: WritePolicy, path: str | os.PathLike[str], contents: bytes, errors: str = "report"
) -> FsResult:
    return _write_whole(policy, path, "bytes", lambda p: Path(p).write_bytes(contents), errors)


def write_all_text(
    policy: WritePolicy,
    path: str | os.PathLike[str],
    contents: str,
    encoding: str = "utf-8",
    errors: str = "report",
) -> FsResult:
    return _write_whole(
        policy, path, "text", lambda p: Path(p).write_text(contents, encoding=encoding), errors
    )


def write_all_lines(
    policy: WritePolicy,
    path: str | os.PathLike[str],
    lines: Iterable[str],
    encoding: str = "utf-8",
    errors: str = "report",
) -> FsResult:
    """Write each line followed by a newline."""

    def _write(p: str) -> int:
        count = 0
        with open(p, "w", encoding=encoding) as f:
            for line in lines:
                count += f.write(line)
                count += f.write("\n")
        return count

    return _write_whole(policy, path, "lines", _write, errors)


def save_xml(
    policy: WritePolicy,
    document: ET.ElementTree | ET.Element,
    path: str | os.PathLike[str],
    encoding: str = "utf-8",
    xml_declaration: bool = True,
    errors: str = "report",
) -> FsResult:
    """Serialize an ElementTree (or a bare Element) to path."""
    tree = document if isinstance(document, ET.ElementTree) else ET.ElementTree(document)

    def _write(p: str) -> int:
        tree.write(p, encoding=encoding, xml_declaration=xml_declaration)
        return os.path.getsize(p)

    return _write_whole(policy, path, "XML", _write, errors)


# ============================================================================
# Reads (no policy, but authorization failures are reported the same way)
# ============================================================================


def _read_whole(path: str | os.PathLike[str], reader, empty: Any, errors: str) -> FsResult:
    check_error_mode(errors)
    path_str = os.fspath(path)
    try:
        data = reader(path_str)
    except OSError as e:
        if not is_authorization_error(e):
            raise
        return authorization_failed(
            _unauthorized("read", path_str), path_str, e, errors, data=empty
        )
    return FsResult(success=True, data=data, meta={"path": normalize_path(path_str)})


def read_all_bytes(path: str | os.PathLike[str], errors: str = "report") -> FsResult:
    return _read_whole(path, lambda p: Path(p).read_bytes(), b"", errors)


def read_all_text(
    path: str | os.PathLike[str], encoding: str = "utf-8", errors: str = "report"
) -> FsResult:
    return _read_whole(path, lambda p: Path(p).read_text(encoding=encoding), "", errors)


def read_all_lines(
    path: str | os.PathLike[str], encoding: str = "utf-8", errors: str = "report"
) -> FsResult:
    return _read_whole(
        path, lambda p: Path(p).read_text(encoding=encoding).splitlines(), [], errors
    )

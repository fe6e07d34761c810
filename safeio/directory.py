"""
Guarded directory operations.

Same contract as safeio.file: a fresh policy decision right before each OS
mutation, FsResult back, errors="raise" for callers that need a hard stop.
Like safeio.file, the OS call gets the normalized path the policy checked.

Listing helpers skip hidden entries (dot-prefixed names) and silently skip
subdirectories that cannot be read. A missing or unreadable top-level
directory still raises.
"""

from __future__ import annotations

from collections.abc import Iterator
import fnmatch
import logging
import os
import shutil

from safeio.errors import (
    FsResult,
    authorization_failed,
    check_error_mode,
    denied,
    is_authorization_error,
    precondition_failed,
)
from safeio.file import copy_file, get_last_write_time
from safeio.paths import combine, get_relative_path, is_under
from safeio.policy import WritePolicy

__all__ = [
    "copy_directory",
    "create_directory",
    "delete_directory",
    "enumerate_directories",
    "enumerate_files",
    "exists",
    "get_directories",
    "get_file_system_entries",
    "get_files",
    "get_last_write_time",
    "move_directory",
    "try_delete_directory",
]

logger = logging.getLogger("safeio.directory")


def exists(path: str | os.PathLike[str]) -> bool:
    return os.path.isdir(path)


# ============================================================================
# Listing
# ============================================================================


def _matches(name: str, pattern: str) -> bool:
    return fnmatch.fnmatchcase(name.casefold(), pattern.casefold())


def _scan(path: str, top: bool) -> list[os.DirEntry[str]]:
    try:
        with os.scandir(path) as it:
            return [e for e in it if not e.name.startswith(".")]
    except OSError:
        if top:
            raise
        logger.debug("Skipping inaccessible directory %s", path)
        return []


def _walk(
    path: str | os.PathLike[str],
    pattern: str,
    recursive: bool,
    want_files: bool,
    want_dirs: bool,
) -> Iterator[str]:
    pending = [os.fspath(path)]
    top = True
    while pending:
        current = pending.pop(0)
        for entry in sorted(_scan(current, top), key=lambda e: e.name):
            try:
                is_dir = entry.is_dir()
            except OSError:
                continue
            if is_dir:
                if want_dirs and _matches(entry.name, pattern):
                    yield combine(current, entry.name)
                if recursive:
                    pending.append(combine(current, entry.name))
            elif want_files and _matches(entry.name, pattern):
                yield combine(current, entry.name)
        top = False


def enumerate_files(
    path: str | os.PathLike[str], pattern: str = "*", recursive: bool = False
) -> Iterator[str]:
    return _walk(path, pattern, recursive, want_files=True, want_dirs=False)


def enumerate_directories(
    path: str | os.PathLike[str], pattern: str = "*", recursive: bool = False
) -> Iterator[str]:
    return _walk(path, pattern, recursive, want_files=False, want_dirs=True)


def get_files(
    path: str | os.PathLike[str], pattern: str = "*", recursive: bool = False
) -> list[str]:
    return list(enumerate_files(path, pattern, recursive))


def get_directories(path: str | os.PathLike[str], pattern: str = "*") -> list[str]:
    return list(enumerate_directories(path, pattern))


def get_file_system_entries(path: str | os.PathLike[str]) -> list[str]:
    return list(_walk(path, "*", recursive=False, want_files=True, want_dirs=True))


# ============================================================================
# Mutating operations
# ============================================================================


def create_directory(
    policy: WritePolicy, path: str | os.PathLike[str], errors: str = "report"
) -> FsResult:
    """Create a directory and any missing parents. Existing directories are fine."""
    check_error_mode(errors)
    path_str = os.fspath(path)

    decision = policy.explain(path_str, True)
    if not decision.allowed:
        return denied(
            f'Cannot create directory "{path_str}": {decision.reason}',
            path_str,
            decision.rule,
            errors,
        )

    try:
        os.makedirs(decision.path, exist_ok=True)
    except OSError as e:
        if not is_authorization_error(e):
            raise
        return authorization_failed(
            f'Cannot create directory at "{path_str}": unauthorized access. '
            "The file/folder might be read-only!",
            path_str,
            e,
            errors,
        )

    return FsResult(success=True, data={"created": decision.path}, meta={"path": path_str})


def delete_directory(
    policy: WritePolicy,
    path: str | os.PathLike[str],
    recursive: bool = True,
    errors: str = "report",
) -> FsResult:
    """Delete a directory; non-recursive deletes require it to be empty."""
    check_error_mode(errors)
    path_str = os.fspath(path)

    decision = policy.explain_tree(path_str) if recursive else policy.explain(path_str, True)
    if not decision.allowed:
        return denied(
            f'Cannot delete directory "{path_str}": {decision.reason}',
            path_str,
            decision.rule,
            errors,
        )

    try:
        if recursive:
            shutil.rmtree(decision.path)
        else:
            os.rmdir(decision.path)
    except OSError as e:
        if not is_authorization_error(e):
            raise
        return authorization_failed(
            f'Cannot delete "{path_str}": unauthorized access. The file/folder might be read-only!',
            path_str,
            e,
            errors,
        )

    return FsResult(success=True, data={"deleted": decision.path}, meta={"path": path_str})


def try_delete_directory(
    policy: WritePolicy, path: str | os.PathLike[str], recursive: bool = True
) -> bool:
    """Delete a directory, returning False instead of raising on any failure."""
    try:
        return delete_directory(policy, path, recursive=recursive).success
    except OSError as e:
        logger.warning("Could not delete directory %s: %s", os.fspath(path), e)
        return False


def copy_directory(
    policy: WritePolicy,
    src: str | os.PathLike[str],
    dest: str | os.PathLike[str],
    overwrite: bool = False,
    errors: str = "report",
) -> FsResult:
    """
    Recursively copy src into dest.

    The destination is checked before anything is created, so a denied
    destination leaves the filesystem untouched. A destination inside the
    source is a precondition failure. Individual files are then
    copied through copy_file(), which applies the extension gate per file;
    files it refuses are reported, skipped and listed in data["skipped"].
    """
    check_error_mode(errors)
    src_str, dest_str = os.fspath(src), os.fspath(dest)
    meta = {"source": src_str, "dest": dest_str}

    decision = policy.explain(dest_str, True)
    if not decision.allowed:
        return denied(
            f'Cannot copy "{src_str}" to "{dest_str}": {decision.reason}',
            dest_str,
            decision.rule,
            errors,
            meta=meta,
        )

    src_path = policy.explain(src_str, True).path
    if is_under(decision.path, src_path):
        return precondition_failed(
            f'Cannot copy "{src_str}" to "{dest_str}": '
            "destination is inside the source folder.",
            dest_str,
            errors,
            meta=meta,
        )

    copied: list[str] = []
    skipped: list[str] = []
    created = create_directory(policy, decision.path, errors=errors)
    if not created.success:
        return created
    _copy_contents(policy, src_str, decision.path, overwrite, errors, copied, skipped)

    data = {"source": src_str, "dest": decision.path, "copied": copied, "skipped": skipped}
    if skipped:
        return FsResult(
            success=False,
            data=data,
            meta=meta,
            error=f"{len(skipped)} entries were not copied",
        )
    return FsResult(success=True, data=data, meta=meta)


def _copy_contents(
    policy: WritePolicy,
    src: str,
    dest: str,
    overwrite: bool,
    errors: str,
    copied: list[str],
    skipped: list[str],
) -> None:
    # Files first, then recurse into subdirectories
    for file_path in get_files(src):
        target = combine(dest, get_relative_path(src, file_path))
        result = copy_file(policy, file_path, target, overwrite=overwrite, errors=errors)
        (copied if result.success else skipped).append(target)

    for dir_path in get_directories(src):
        target = combine(dest, get_relative_path(src, dir_path))
        if not create_directory(policy, target, errors=errors).success:
            skipped.append(target)
            continue
        _copy_contents(policy, dir_path, target, overwrite, errors, copied, skipped)


def move_directory(
    policy: WritePolicy,
    src: str | os.PathLike[str],
    dest: str | os.PathLike[str],
    overwrite: bool = False,
    errors: str = "report",
) -> FsResult:
    """
    Move a directory tree.

    All checks run before the first mutation: destination must not exist
    unless overwrite is set, both ends must pass the policy, and neither
    may contain the other. With overwrite, an existing destination is
    deleted first; if that fails nothing is moved. A failure of the move
    itself is not rolled back.
    """
    check_error_mode(errors)
    src_str, dest_str = os.fspath(src), os.fspath(dest)
    meta = {"source": src_str, "dest": dest_str}

    if not overwrite and os.path.exists(dest_str):
        return precondition_failed(
            f'Cannot move "{src_str}" to "{dest_str}": destination folder already exists.',
            dest_str,
            errors,
            meta=meta,
        )

    src_decision = policy.explain_tree(src_str)
    if not src_decision.allowed:
        return denied(
            f'Cannot move "{src_str}" to "{dest_str}": source not writable, {src_decision.reason}',
            src_str,
            src_decision.rule,
            errors,
            meta=meta,
        )
    dest_decision = policy.explain_tree(dest_str) if overwrite else policy.explain(dest_str, True)
    if not dest_decision.allowed:
        return denied(
            f'Cannot move "{src_str}" to "{dest_str}": destination not writable, '
            f"{dest_decision.reason}",
            dest_str,
            dest_decision.rule,
            errors,
            meta=meta,
        )

    if is_under(src_decision.path, dest_decision.path) or is_under(
        dest_decision.path, src_decision.path
    ):
        return precondition_failed(
            f'Cannot move "{src_str}" to "{dest_str}": source and destination overlap.',
            dest_str,
            errors,
            meta=meta,
        )

    if overwrite and os.path.exists(dest_decision.path):
        if not try_delete_directory(policy, dest_decision.path):
            return precondition_failed(
                f'Cannot move "{src_str}" to "{dest_str}": '
                "existing destination could not be removed.",
                dest_str,
                errors,
                meta=meta,
            )

    try:
        shutil.move(src_decision.path, dest_decision.path)
    except OSError as e:
        if not is_authorization_error(e):
            raise
        return authorization_failed(
            f'Cannot move "{src_str}" to "{dest_str}": unauthorized access. '
            "The file/folder might be read-only!",
            src_str,
            e,
            errors,
            meta=meta,
        )

    logger.debug("Moved directory %s -> %s", src_decision.path, dest_decision.path)
    return FsResult(
        success=True,
        data={"source": src_decision.path, "dest": dest_decision.path},
        meta=meta,
    )

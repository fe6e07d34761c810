"""
Path utilities for safeio.

Everything the write policy compares goes through normalize_path():
- Expands ~ to home directory
- Treats backslash and forward slash as the same separator
- Makes the path absolute against the current working directory
- Collapses . and .. segments without touching the filesystem

The remaining helpers mirror ordinary os.path primitives so callers can use
this module as a drop-in for path handling around the guarded wrappers.
"""

from __future__ import annotations

import os
import re

from safeio.errors import PathSecurityError

SEPARATOR = "/"

_DRIVE_ROOT = re.compile(r"^[A-Za-z]:/$")

# Invalid on at least one supported platform (the Windows set is the superset)
_INVALID_FILE_NAME_CHARS: frozenset[str] = frozenset(
    ['"', "<", ">", "|", "\x00", ":", "*", "?", "\\", "/"] + [chr(c) for c in range(1, 32)]
)


def _unify_separators(path: str) -> str:
    return path.replace("\\", SEPARATOR)


def normalize_path(path: str | os.PathLike[str]) -> str:
    """
    Return the canonical absolute form of a path.

    The result always uses "/" as separator and never ends with one, except
    for a bare filesystem root ("/" or "C:/"). No symlinks are resolved, so
    the only environment input is the current working directory.

    Raises:
        PathSecurityError: If path contains null bytes
    """
    path_str = os.fspath(path)

    if "\x00" in path_str:
        raise PathSecurityError("Path contains null bytes")

    expanded = os.path.expanduser(_unify_separators(path_str))
    absolute = _unify_separators(os.path.abspath(expanded))

    if len(absolute) > 1 and absolute.endswith(SEPARATOR) and not _DRIVE_ROOT.match(absolute):
        absolute = absolute.rstrip(SEPARATOR) or SEPARATOR
    return absolute


def is_under(path: str, root: str) -> bool:
    """
    Case-insensitive prefix check on two normalized paths.

    Matches the root itself and anything below it; "/game/ContentX" is not
    under "/game/Content".
    """
    p = path.casefold()
    r = root.casefold()
    if p == r:
        return True
    if not r.endswith(SEPARATOR):
        r += SEPARATOR
    return p.startswith(r)


def get_file_name(path: str | os.PathLike[str]) -> str:
    """Return the last path segment (empty if the path ends with a separator)."""
    return _unify_separators(os.fspath(path)).rsplit(SEPARATOR, 1)[-1]


def get_extension(path: str | os.PathLike[str]) -> str:
    """
    Return the extension of the last segment, including the leading dot.

    A leading-dot name such as ".exe" counts as an extension, a trailing dot
    ("name.") does not.
    """
    name = get_file_name(path)
    idx = name.rfind(".")
    if idx == -1 or idx == len(name) - 1:
        return ""
    return name[idx:]


def get_file_name_without_extension(path: str | os.PathLike[str]) -> str:
    name = get_file_name(path)
    ext = get_extension(name)
    return name[: len(name) - len(ext)] if ext else name


def get_directory_name(path: str | os.PathLike[str]) -> str | None:
    """Return the parent portion of a path: None for a root, "" for a bare name."""
    unified = _unify_separators(os.fspath(path))
    if unified in ("", SEPARATOR) or _DRIVE_ROOT.match(unified):
        return None
    head, sep, _ = unified.rpartition(SEPARATOR)
    if not sep:
        return ""
    return head or SEPARATOR


def get_full_path(path: str | os.PathLike[str]) -> str:
    return normalize_path(path)


def get_relative_path(relative_to: str | os.PathLike[str], path: str | os.PathLike[str]) -> str:
    rel = os.path.relpath(normalize_path(path), normalize_path(relative_to))
    return _unify_separators(rel)


def combine(*parts: str | os.PathLike[str]) -> str:
    return _unify_separators(os.path.join(*[_unify_separators(os.fspath(p)) for p in parts]))


def is_path_rooted(path: str | os.PathLike[str]) -> bool:
    unified = _unify_separators(os.fspath(path))
    return unified.startswith(SEPARATOR) or bool(re.match(r"^[A-Za-z]:", unified))


def get_invalid_file_name_chars_cross_platform() -> frozenset[str]:
    """File name characters that are invalid on any supported platform."""
    return _INVALID_FILE_NAME_CHARS


def sanitize_name(name: str, placeholder: str = "-") -> str:
    """Replace every cross-platform-invalid file name character with placeholder."""
    if placeholder in _INVALID_FILE_NAME_CHARS:
        raise ValueError(f"Placeholder {placeholder!r} is itself an invalid file name character")
    return "".join(placeholder if c in _INVALID_FILE_NAME_CHARS else c for c in name)


"""
SafeFS - one object that carries the write policy.

The module-level wrappers take the policy explicitly. Code that only ever
talks to one policy holds a SafeFS instead and calls the same operations as
methods.
"""

from __future__ import annotations

from collections.abc import Iterable
import os
from pathlib import Path
import xml.etree.ElementTree as ET

from safeio import directory, file
from safeio.config import build_policy, load_config
from safeio.errors import FsResult, check_error_mode
from safeio.policy import OverrideScope, PolicyDecision, WritePolicy

PathLike = str | os.PathLike[str]


class SafeFS:
    """Guarded filesystem bound to a single WritePolicy."""

    def __init__(self, policy: WritePolicy, errors: str = "report"):
        check_error_mode(errors)
        self.policy = policy
        self.errors = errors

    @classmethod
    def from_config(cls, config_path: str | Path | None = None) -> SafeFS:
        return cls(build_policy(load_config(config_path)))

    def _mode(self, errors: str | None) -> str:
        return errors if errors is not None else self.errors

    # policy ------------------------------------------------------------

    def can_write(self, path: PathLike, is_directory: bool = False) -> bool:
        return self.policy.can_write(path, is_directory)

    def explain(self, path: PathLike, is_directory: bool = False) -> PolicyDecision:
        return self.policy.explain(path, is_directory)

    def begin_override(self) -> OverrideScope:
        return self.policy.begin_override()

    # directories -------------------------------------------------------

    def create_directory(self, path: PathLike, errors: str | None = None) -> FsResult:
        return directory.create_directory(self.policy, path, errors=self._mode(errors))

    def delete_directory(
        self, path: PathLike, recursive: bool = True, errors: str | None = None
    ) -> FsResult:
        return directory.delete_directory(
            self.policy, path, recursive=recursive, errors=self._mode(errors)
        )

    def try_delete_directory(self, path: PathLike, recursive: bool = True) -> bool:
        return directory.try_delete_directory(self.policy, path, recursive=recursive)

    def copy_directory(
        self, src: PathLike, dest: PathLike, overwrite: bool = False, errors: str | None = None
    ) -> FsResult:
        return directory.copy_directory(
            self.policy, src, dest, overwrite=overwrite, errors=self._mode(errors)
        )

    def move_directory(
        self, src: PathLike, dest: PathLike, overwrite: bool = False, errors: str | None = None
    ) -> FsResult:
        return directory.move_directory(
            self.policy, src, dest, overwrite=overwrite, errors=self._mode(errors)
        )

    directory_exists = staticmethod(directory.exists)
    get_files = staticmethod(directory.get_files)
    get_directories = staticmethod(directory.get_directories)
    get_file_system_entries = staticmethod(directory.get_file_system_entries)
    enumerate_files = staticmethod(directory.enumerate_files)
    enumerate_directories = staticmethod(directory.enumerate_directories)

    # files -------------------------------------------------------------

    def copy_file(
        self, src: PathLike, dest: PathLike, overwrite: bool = False, errors: str | None = None
    ) -> FsResult:
        return file.copy_file(
            self.policy, src, dest, overwrite=overwrite, errors=self._mode(errors)
        )

    def move_file(
        self, src: PathLike, dest: PathLike, overwrite: bool = False, errors: str | None = None
    ) -> FsResult:
        return file.move_file(
            self.policy, src, dest, overwrite=overwrite, errors=self._mode(errors)
        )

    def delete_file(
        self, path: PathLike, missing_ok: bool = False, errors: str | None = None
    ) -> FsResult:
        return file.delete_file(self.policy, path, missing_ok=missing_ok, errors=self._mode(errors))

    def set_read_only(self, path: PathLike, value: bool, errors: str | None = None) -> FsResult:
        return file.set_read_only(self.policy, path, value, errors=self._mode(errors))

    def open(
        self,
        path: PathLike,
        mode: str = "r",
        encoding: str | None = None,
        newline: str | None = None,
        errors: str | None = None,
    ) -> FsResult:
        return file.open_file(
            self.policy, path, mode, encoding=encoding, newline=newline, errors=self._mode(errors)
        )

    def open_read(self, path: PathLike, errors: str | None = None) -> FsResult:
        return file.open_read(self.policy, path, errors=self._mode(errors))

    def open_write(self, path: PathLike, errors: str | None = None) -> FsResult:
        return file.open_write(self.policy, path, errors=self._mode(errors))

    def create(self, path: PathLike, errors: str | None = None) -> FsResult:
        return file.create(self.policy, path, errors=self._mode(errors))

    def write_all_bytes(
        self, path: PathLike, contents: bytes, errors: str | None = None
    ) -> FsResult:
        return file.write_all_bytes(self.policy, path, contents, errors=self._mode(errors))

    def write_all_text(
        self, path: PathLike, contents: str, encoding: str = "utf-8", errors: str | None = None
    ) -> FsResult:
        return file.write_all_text(
            self.policy, path, contents, encoding=encoding, errors=self._mode(errors)
        )

    def write_all_lines(
        self,
        path: PathLike,
        lines: Iterable[str],
        encoding: str = "utf-8",
        errors: str | None = None,
    ) -> FsResult:
        return file.write_all_lines(
            self.policy, path, lines, encoding=encoding, errors=self._mode(errors)
        )

    def save_xml(
        self, document: ET.ElementTree | ET.Element, path: PathLike, errors: str | None = None
    ) -> FsResult:
        return file.save_xml(self.policy, document, path, errors=self._mode(errors))

    def read_all_bytes(self, path: PathLike, errors: str | None = None) -> FsResult:
        return file.read_all_bytes(path, errors=self._mode(errors))

    def read_all_text(
        self, path: PathLike, encoding: str = "utf-8", errors: str | None = None
    ) -> FsResult:
        return file.read_all_text(path, encoding=encoding, errors=self._mode(errors))

    def read_all_lines(
        self, path: PathLike, encoding: str = "utf-8", errors: str | None = None
    ) -> FsResult:
        return file.read_all_lines(path, encoding=encoding, errors=self._mode(errors))

    def get_last_write_time(self, path: PathLike, errors: str | None = None) -> FsResult:
        return file.get_last_write_time(path, errors=self._mode(errors))

    file_exists = staticmethod(file.exists)
    is_read_only = staticmethod(file.is_read_only)

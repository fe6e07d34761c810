"""Tests for guarded file operations."""

from datetime import UTC, datetime
import errno
import os
import pathlib
import shutil
import stat
import xml.etree.ElementTree as ET

import pytest

from safeio import file
from safeio.errors import FailureKind, PolicyDeniedError, PreconditionError


# ----------------------------------------------------------------------------
# Whole-file writes
# ----------------------------------------------------------------------------


def test_write_all_text_allowed(policy, install_root):
    target = install_root / "Data" / "save.xml"
    result = file.write_all_text(policy, target, "<Save />")
    assert result.success
    assert result.data["bytes_written"] == len("<Save />")
    assert target.read_text() == "<Save />"


def test_write_all_bytes_to_protected_dir_denied(policy, install_root, reports):
    target = install_root / "Content" / "Items" / "items.xml"
    result = file.write_all_bytes(policy, target, b"hacked")
    assert result.success is False
    assert result.kind == FailureKind.POLICY_DENIED
    assert "protected directory" in result.error
    assert target.read_bytes() == b"<Items />"
    assert len(reports) == 1
    message, cause, kind = reports[0]
    assert message == result.error
    assert cause is None
    assert kind == FailureKind.POLICY_DENIED


def test_executable_allowed_only_under_trusted_roots(policy, install_root):
    outside = install_root / "Data" / "tool.exe"
    inside = install_root / "LocalMods" / "tool.exe"

    assert file.write_all_bytes(policy, outside, b"MZ").success is False
    assert not outside.exists()

    assert file.write_all_bytes(policy, inside, b"MZ").success is True
    assert inside.read_bytes() == b"MZ"


def test_write_all_lines_appends_newlines(policy, install_root):
    target = install_root / "Data" / "list.txt"
    result = file.write_all_lines(policy, target, ["a", "b"])
    assert result.success
    assert target.read_text() == "a\nb\n"
    assert file.read_all_lines(target).data == ["a", "b"]


def test_write_denied_in_raise_mode(policy, install_root):
    with pytest.raises(PolicyDeniedError) as exc_info:
        file.write_all_text(policy, install_root / "Content" / "x.txt", "x", errors="raise")
    assert exc_info.value.rule == "protected"
    assert not (install_root / "Content" / "x.txt").exists()


def test_invalid_errors_mode_rejected(policy, install_root):
    with pytest.raises(ValueError):
        file.write_all_text(policy, install_root / "Data" / "x.txt", "x", errors="ignore")


def test_decision_is_taken_per_call(dev_policy, install_root):
    target = install_root / "Content" / "Items" / "items.xml"
    with dev_policy.begin_override():
        assert file.write_all_text(dev_policy, target, "<Items new='1' />").success
    assert file.write_all_text(dev_policy, target, "<Items />").success is False
    assert target.read_text() == "<Items new='1' />"


def test_save_xml(policy, install_root):
    root = ET.Element("Mod", name="Demo")
    ET.SubElement(root, "Item", identifier="sword")
    target = install_root / "LocalMods" / "filelist.xml"

    result = file.save_xml(policy, root, target)
    assert result.success
    assert result.data["bytes_written"] == target.stat().st_size

    parsed = ET.parse(target).getroot()
    assert parsed.tag == "Mod"
    assert parsed.find("Item").get("identifier") == "sword"

    denied = file.save_xml(policy, ET.ElementTree(root), install_root / "Content" / "mod.xml")
    assert denied.success is False


# ----------------------------------------------------------------------------
# Authorization failures
# ----------------------------------------------------------------------------


def test_permission_error_is_reported(policy, install_root, monkeypatch, reports):
    def refuse(self, data):
        raise PermissionError(errno.EACCES, "Permission denied", str(self))

    monkeypatch.setattr(pathlib.Path, "write_bytes", refuse)
    result = file.write_all_bytes(policy, install_root / "Data" / "x.bin", b"x")

    assert result.success is False
    assert result.kind == FailureKind.AUTHORIZATION
    assert "might be read-only" in result.error
    assert isinstance(reports[-1][1], PermissionError)


def test_read_only_filesystem_is_authorization_failure(policy, install_root, monkeypatch):
    def refuse(src, dst, **kwargs):
        raise OSError(errno.EROFS, "Read-only file system")

    src = install_root / "Data" / "a.txt"
    src.write_text("a")
    monkeypatch.setattr(shutil, "copy2", refuse)

    result = file.copy_file(policy, src, install_root / "Data" / "b.txt")
    assert result.kind == FailureKind.AUTHORIZATION

    with pytest.raises(OSError) as exc_info:
        file.copy_file(policy, src, install_root / "Data" / "b.txt", errors="raise")
    assert exc_info.value.errno == errno.EROFS


def test_other_os_errors_propagate(policy, install_root):
    with pytest.raises(FileNotFoundError):
        file.copy_file(policy, install_root / "Data" / "missing.txt", install_root / "Data" / "b")
    with pytest.raises(FileNotFoundError):
        file.read_all_text(install_root / "Data" / "missing.txt")


def test_read_authorization_failure_returns_empty_value(install_root, monkeypatch):
    def refuse(self, encoding=None, errors=None):
        raise PermissionError(errno.EACCES, "Permission denied")

    monkeypatch.setattr(pathlib.Path, "read_text", refuse)
    result = file.read_all_text(install_root / "Content" / "Items" / "items.xml")
    assert result.success is False
    assert result.data == ""
    assert result.kind == FailureKind.AUTHORIZATION


def test_reads_ignore_the_policy(install_root):
    protected = install_root / "Content" / "Items" / "items.xml"
    assert file.read_all_text(protected).data == "<Items />"
    assert file.read_all_bytes(protected).data == b"<Items />"


# ----------------------------------------------------------------------------
# Copy / move / delete
# ----------------------------------------------------------------------------


def test_copy_file(policy, install_root):
    src = install_root / "Content" / "Items" / "items.xml"
    dest = install_root / "LocalMods" / "items.xml"
    result = file.copy_file(policy, src, dest)
    assert result.success
    assert dest.read_text() == "<Items />"


def test_copy_file_into_protected_dir_denied(policy, install_root):
    src = install_root / "Data" / "a.txt"
    src.write_text("a")
    result = file.copy_file(policy, src, install_root / "Content" / "a.txt")
    assert result.kind == FailureKind.POLICY_DENIED
    assert not (install_root / "Content" / "a.txt").exists()


def test_copy_file_preconditions(policy, install_root):
    src = install_root / "Data" / "a.txt"
    src.write_text("new")
    dest = install_root / "Data" / "b.txt"
    dest.write_text("old")

    result = file.copy_file(policy, src, dest)
    assert result.kind == FailureKind.PRECONDITION
    assert dest.read_text() == "old"

    assert file.copy_file(policy, src, dest, overwrite=True).success
    assert dest.read_text() == "new"

    with pytest.raises(PreconditionError):
        file.copy_file(policy, src, install_root / "Data", overwrite=True, errors="raise")


def test_move_file_checks_both_ends(policy, install_root):
    protected = install_root / "Content" / "Items" / "items.xml"
    result = file.move_file(policy, protected, install_root / "Data" / "items.xml")
    assert result.kind == FailureKind.POLICY_DENIED
    assert protected.exists()

    src = install_root / "Data" / "a.txt"
    src.write_text("a")
    result = file.move_file(policy, src, install_root / "Content" / "a.txt")
    assert result.kind == FailureKind.POLICY_DENIED
    assert src.exists()


def test_move_file(policy, install_root):
    src = install_root / "Data" / "a.txt"
    src.write_text("a")
    dest = install_root / "LocalMods" / "a.txt"
    result = file.move_file(policy, src, dest)
    assert result.success
    assert not src.exists()
    assert dest.read_text() == "a"


def test_delete_file(policy, install_root):
    target = install_root / "Data" / "a.txt"
    target.write_text("a")
    assert file.delete_file(policy, target).success
    assert not target.exists()

    with pytest.raises(FileNotFoundError):
        file.delete_file(policy, target)
    assert file.delete_file(policy, target, missing_ok=True).success


def test_delete_protected_file_denied(policy, install_root):
    target = install_root / "Content" / "Items" / "items.xml"
    assert file.delete_file(policy, target).success is False
    assert target.exists()


# ----------------------------------------------------------------------------
# Attributes
# ----------------------------------------------------------------------------


@pytest.mark.skipif(os.name == "nt", reason="POSIX permission bits")
def test_set_read_only(policy, install_root):
    target = install_root / "Data" / "a.txt"
    target.write_text("a")

    assert file.set_read_only(policy, target, True).success
    assert file.is_read_only(target)
    assert not target.stat().st_mode & stat.S_IWUSR

    assert file.set_read_only(policy, target, False).success
    assert not file.is_read_only(target)


def test_set_read_only_on_protected_file_denied(policy, install_root):
    target = install_root / "Content" / "Items" / "items.xml"
    result = file.set_read_only(policy, target, True)
    assert result.kind == FailureKind.POLICY_DENIED
    assert not file.is_read_only(target)


def test_get_last_write_time_is_utc(install_root):
    result = file.get_last_write_time(install_root / "Content" / "Items" / "items.xml")
    assert result.success
    assert result.data.tzinfo is UTC
    assert result.data <= datetime.now(tz=UTC)


def test_exists_distinguishes_files(install_root):
    assert file.exists(install_root / "Content" / "Items" / "items.xml")
    assert not file.exists(install_root / "Content")


@pytest.mark.skipif(os.name == "nt", reason="backslash is already a separator")
def test_backslash_is_a_separator_for_the_os_call_too(policy, install_root):
    (install_root / "Data" / "sub").mkdir()
    result = file.write_all_text(policy, f"{install_root}/Data/sub\\save.xml", "<Save />")

    assert result.success
    assert (install_root / "Data" / "sub" / "save.xml").read_text() == "<Save />"
    assert not (install_root / "Data" / "sub\\save.xml").exists()

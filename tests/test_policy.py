"""Tests for WritePolicy decisions."""

import pytest

from safeio.policy import DEFAULT_DENIED_EXTENSIONS, WritePolicy

PROTECTED = [
    "Content",
    "Content/Items/items.xml",
    "Content/Items/new_item.png",
    "content/items/ITEMS.XML",
    "CONTENT/Map",
]


@pytest.mark.parametrize("rel", PROTECTED)
def test_protected_paths_denied_in_production(policy, install_root, rel):
    path = str(install_root / rel)
    assert policy.can_write(path, False) is False
    assert policy.can_write(path, True) is False


@pytest.mark.parametrize("rel", PROTECTED)
def test_production_ignores_override(policy, install_root, rel):
    path = str(install_root / rel)
    with policy.begin_override():
        assert policy.can_write(path, False) is False
        assert policy.can_write(path, True) is False


@pytest.mark.parametrize("rel", PROTECTED)
def test_development_protected_decision_follows_override(dev_policy, install_root, rel):
    path = str(install_root / rel)
    assert dev_policy.override_active is False
    assert dev_policy.can_write(path, True) is False
    with dev_policy.begin_override():
        assert dev_policy.can_write(path, False) is True
        assert dev_policy.can_write(path, True) is True
    assert dev_policy.can_write(path, False) is False


@pytest.mark.parametrize(
    "rel",
    [
        "LocalMods/tool.exe",
        "LocalMods/MyMod/bin/native.dll",
        "WorkshopMods/Installed/12345/run.sh",
        "WorkshopMods/Staging/pkg/filelist.json",
        "Downloads/pkg/setup.bat",
        "localmods/TOOL.EXE",
    ],
)
def test_denied_extensions_allowed_under_trusted_roots(policy, install_root, rel):
    assert policy.can_write(str(install_root / rel), False) is True


@pytest.mark.parametrize(
    "rel",
    ["launcher.exe", "Data/hack.dll", "Data/run.SH", "Data/config.json", "Data/tool.e xe"],
)
def test_denied_extensions_outside_trusted_roots(policy, install_root, rel):
    decision = policy.explain(str(install_root / rel), False)
    assert decision.allowed is False
    assert decision.rule == "extension"


def test_directories_skip_extension_gate(policy, install_root):
    assert policy.can_write(str(install_root / "Data" / "folder.exe"), True) is True


def test_plain_files_outside_protected_dirs_allowed(policy, install_root):
    assert policy.can_write(str(install_root / "Data" / "save.xml"), False) is True
    assert policy.can_write(str(install_root / "Data" / "README"), False) is True
    assert policy.can_write(str(install_root / "Data" / "name."), False) is True


def test_comparison_is_case_insensitive(policy, install_root):
    a = policy.can_write(str(install_root / "Content" / "x"), False)
    b = policy.can_write(str(install_root / "content" / "X"), False)
    assert a is False
    assert b is False

    c = policy.can_write(str(install_root / "LocalMods" / "x.exe"), False)
    d = policy.can_write(str(install_root / "LOCALMODS" / "X.EXE"), False)
    assert c is True
    assert d is True


def test_backslash_paths_are_recognized(policy, install_root):
    path = str(install_root).replace("/", "\\") + "\\Content\\Items\\items.xml"
    assert policy.can_write(path, False) is False


@pytest.mark.parametrize("rel", ["ContentBackup/items.xml", "Content.bak/items.xml", "Content_old"])
def test_siblings_sharing_the_protected_prefix_are_protected(policy, dev_policy, install_root, rel):
    path = str(install_root / rel)
    decision = policy.explain(path, False)
    assert decision.allowed is False
    assert decision.rule == "protected"
    assert dev_policy.can_write(path, False) is False
    with dev_policy.begin_override():
        assert dev_policy.can_write(path, False) is True


def test_trusted_roots_match_whole_components(policy, install_root):
    decision = policy.explain(str(install_root / "LocalModsX" / "tool.exe"), False)
    assert decision.allowed is False
    assert decision.rule == "extension"


def test_dot_segments_cannot_escape_into_protected(policy, install_root):
    path = str(install_root / "Data" / ".." / "Content" / "Items" / "items.xml")
    assert policy.can_write(path, False) is False


def test_trusted_root_inside_protected_dir_is_still_denied(install_root):
    policy = WritePolicy(
        trusted_roots=[install_root / "Content" / "Mods"],
        install_root=install_root,
        production=True,
    )
    decision = policy.explain(str(install_root / "Content" / "Mods" / "tool.exe"), False)
    assert decision.allowed is False
    assert decision.rule == "protected"


def test_extension_gate_checked_before_protected_gate(dev_policy, install_root):
    with dev_policy.begin_override():
        decision = dev_policy.explain(str(install_root / "Content" / "payload.exe"), False)
    assert decision.allowed is False
    assert decision.rule == "extension"


def test_relative_protected_dirs_resolve_against_cwd_at_call_time(tmp_path, monkeypatch):
    first = tmp_path / "first"
    second = tmp_path / "second"
    first.mkdir()
    second.mkdir()
    policy = WritePolicy(install_root=None, production=True)

    monkeypatch.chdir(first)
    assert policy.can_write("Content/a.xml", False) is False
    assert policy.can_write(str(second / "Content" / "a.xml"), False) is True

    monkeypatch.chdir(second)
    assert policy.can_write(str(second / "Content" / "a.xml"), False) is False
    assert policy.can_write(str(first / "Content" / "a.xml"), False) is True


def test_null_byte_paths_are_denied(policy):
    decision = policy.explain("Data/evil\x00.txt", False)
    assert decision.allowed is False
    assert decision.rule == "invalid"


def test_denied_extensions_are_canonicalized():
    policy = WritePolicy(denied_extensions=["EXE", " .Bat ", ""], production=True)
    assert policy.denied_extensions == frozenset({".exe", ".bat"})


def test_default_denylist():
    for ext in (".exe", ".dll", ".so", ".dylib", ".sh", ".bat", ".json"):
        assert ext in DEFAULT_DENIED_EXTENSIONS


def test_trusted_roots_keep_order_and_drop_duplicates(tmp_path):
    policy = WritePolicy(trusted_roots=["b", "a", "b", ""])
    assert policy.trusted_roots == ("b", "a")


def test_decision_is_truthy_when_allowed(policy, install_root):
    assert policy.explain(str(install_root / "Data" / "x.txt"), False)
    assert not policy.explain(str(install_root / "Content" / "x.txt"), False)


def test_explain_tree_denies_ancestors_of_protected_dirs(policy, dev_policy, install_root):
    assert policy.can_write(str(install_root), True) is True
    decision = policy.explain_tree(str(install_root))
    assert decision.allowed is False
    assert decision.rule == "protected"

    assert dev_policy.explain_tree(str(install_root)).allowed is False
    with dev_policy.begin_override():
        assert dev_policy.explain_tree(str(install_root)).allowed is True

    assert policy.explain_tree(str(install_root / "Data")).allowed is True

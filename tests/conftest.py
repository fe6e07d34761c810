from pathlib import Path

import pytest

from safeio.errors import get_error_reporter
from safeio.policy import WritePolicy

_SAFEIO_ENV = (
    "SAFEIO_CONFIG",
    "SAFEIO_ROOT",
    "SAFEIO_PRODUCTION",
    "SAFEIO_HEADLESS",
    "SAFEIO_INSTALL_ROOT",
    "SAFEIO_TRUSTED_ROOTS",
    "SAFEIO_LOG_LEVEL",
    "SAFEIO_LOG_FORMAT",
)


@pytest.fixture(autouse=True)
def hermetic_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """
    Autouse: each test runs in its own tmp cwd with no SAFEIO_* env leaking in.
    """
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    for var in _SAFEIO_ENV:
        monkeypatch.delenv(var, raising=False)
    return tmp_path


@pytest.fixture
def install_root(tmp_path: Path) -> Path:
    """A fake installation: protected Content, trusted mod roots, plain Data."""
    root = tmp_path / "game"
    for sub in (
        "Content/Items",
        "LocalMods",
        "WorkshopMods/Installed",
        "WorkshopMods/Staging",
        "Downloads",
        "Data",
    ):
        (root / sub).mkdir(parents=True)
    (root / "Content" / "Items" / "items.xml").write_text("<Items />")
    return root


def make_policy(root: Path, production: bool) -> WritePolicy:
    return WritePolicy(
        trusted_roots=[
            root / "LocalMods",
            root / "WorkshopMods" / "Installed",
            root / "WorkshopMods" / "Staging",
            root / "Downloads",
        ],
        install_root=root,
        production=production,
    )


@pytest.fixture
def policy(install_root: Path) -> WritePolicy:
    """Production policy: protected content is never writable."""
    return make_policy(install_root, production=True)


@pytest.fixture
def dev_policy(install_root: Path) -> WritePolicy:
    """Development policy: protected content writable inside an override scope."""
    return make_policy(install_root, production=False)


@pytest.fixture
def reports():
    """Collect everything sent to the error reporter during the test."""
    collected = []

    def sink(message, cause, kind):
        collected.append((message, cause, kind))

    reporter = get_error_reporter()
    reporter.subscribe(sink)
    yield collected
    reporter.unsubscribe(sink)

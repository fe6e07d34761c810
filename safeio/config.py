"""safeio configuration loader - reads safeio.toml with ENV overrides."""

from __future__ import annotations

from dataclasses import dataclass, field
import os
from pathlib import Path
import tomllib
from typing import Any, cast

from safeio.policy import DEFAULT_DENIED_EXTENSIONS, DEFAULT_PROTECTED_DIRS, WritePolicy


@dataclass
class PolicyConfig:
    """Protected directories and denylisted extensions."""

    protected_dirs: list[str] = field(default_factory=lambda: list(DEFAULT_PROTECTED_DIRS))
    denied_extensions: list[str] = field(
        default_factory=lambda: sorted(DEFAULT_DENIED_EXTENSIONS)
    )

    def validate(self) -> None:
        if not self.protected_dirs:
            raise ValueError("protected_dirs must name at least one directory")
        for ext in self.denied_extensions:
            if not ext.strip():
                raise ValueError("denied_extensions must not contain empty entries")


@dataclass
class RootsConfig:
    """Trusted roots supplied by the host application."""

    local_mods: str | None = "LocalMods"
    workshop_mods: str | None = "WorkshopMods/Installed"
    publish_staging: str | None = "WorkshopMods/Staging"
    download: str | None = "Downloads"
    extra: list[str] = field(default_factory=list)

    def validate(self) -> None:
        for root in self.extra:
            if not root.strip():
                raise ValueError("extra trusted roots must not be empty")


@dataclass
class LoggingConfig:
    """Logging settings."""

    level: str = "info"
    format: str = "text"  # "text" | "json"

    def validate(self) -> None:
        if self.format not in ("text", "json"):
            raise ValueError(f"Invalid log format: {self.format}")
        if self.level.upper() not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Invalid log level: {self.level}")


@dataclass
class SafeIOConfig:
    """Root safeio configuration."""

    production: bool = True
    headless: bool = False
    install_root: str | None = None
    policy: PolicyConfig = field(default_factory=PolicyConfig)
    roots: RootsConfig = field(default_factory=RootsConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def validate(self) -> None:
        self.policy.validate()
        self.roots.validate()
        self.logging.validate()

    def trusted_roots(self) -> list[str]:
        """
        Trusted roots in order, relative ones resolved against install_root.

        Headless (server) builds have no staging or download directories.
        """
        names = [self.roots.local_mods, self.roots.workshop_mods]
        if not self.headless:
            names += [self.roots.publish_staging, self.roots.download]
        names += self.roots.extra

        base = self.install_root
        roots = []
        for name in names:
            if not name:
                continue
            roots.append(os.path.join(base, name) if base else name)
        return roots


def _env_flag(name: str) -> bool | None:
    value = os.getenv(name)
    if not value:
        return None
    return value.lower() in ("1", "true", "yes")


def _apply_env_overrides(cfg: SafeIOConfig) -> SafeIOConfig:
    """Apply environment variable overrides. ENV beats TOML."""
    production = _env_flag("SAFEIO_PRODUCTION")
    if production is not None:
        cfg.production = production

    headless = _env_flag("SAFEIO_HEADLESS")
    if headless is not None:
        cfg.headless = headless

    if os.getenv("SAFEIO_INSTALL_ROOT"):
        cfg.install_root = os.getenv("SAFEIO_INSTALL_ROOT")

    # SAFEIO_TRUSTED_ROOTS (comma-separated, appended to configured roots)
    if os.getenv("SAFEIO_TRUSTED_ROOTS"):
        extra = [r.strip() for r in os.getenv("SAFEIO_TRUSTED_ROOTS", "").split(",")]
        cfg.roots.extra = cfg.roots.extra + [r for r in extra if r]

    if os.getenv("SAFEIO_LOG_LEVEL"):
        cfg.logging.level = os.getenv("SAFEIO_LOG_LEVEL", cfg.logging.level)
    if os.getenv("SAFEIO_LOG_FORMAT"):
        cfg.logging.format = os.getenv("SAFEIO_LOG_FORMAT", cfg.logging.format)

    return cfg


def find_config_path(config_path: str | Path | None = None) -> Path:
    """
    Locate safeio.toml.

    Search order:
        1. explicit config_path
        2. SAFEIO_CONFIG env var
        3. SAFEIO_ROOT/safeio.toml
        4. ./safeio.toml
    """
    if config_path is not None:
        return Path(config_path)
    if os.getenv("SAFEIO_CONFIG"):
        return Path(cast(str, os.getenv("SAFEIO_CONFIG")))
    if os.getenv("SAFEIO_ROOT"):
        return Path(cast(str, os.getenv("SAFEIO_ROOT"))) / "safeio.toml"
    return Path("safeio.toml")


def _merge_toml(cfg: SafeIOConfig, data: dict[str, Any]) -> None:
    section = data.get("safeio", {})

    cfg.production = section.get("production", cfg.production)
    cfg.headless = section.get("headless", cfg.headless)
    cfg.install_root = section.get("install_root", cfg.install_root)

    policy = section.get("policy", {})
    cfg.policy.protected_dirs = policy.get("protected_dirs", cfg.policy.protected_dirs)
    cfg.policy.denied_extensions = policy.get("denied_extensions", cfg.policy.denied_extensions)

    roots = section.get("roots", {})
    cfg.roots.local_mods = roots.get("local_mods", cfg.roots.local_mods)
    cfg.roots.workshop_mods = roots.get("workshop_mods", cfg.roots.workshop_mods)
    cfg.roots.publish_staging = roots.get("publish_staging", cfg.roots.publish_staging)
    cfg.roots.download = roots.get("download", cfg.roots.download)
    cfg.roots.extra = roots.get("extra", cfg.roots.extra)

    log = section.get("logging", {})
    cfg.logging.level = log.get("level", cfg.logging.level)
    cfg.logging.format = log.get("format", cfg.logging.format)


def load_config(config_path: str | Path | None = None) -> SafeIOConfig:
    """
    Load safeio config from safeio.toml with ENV overrides.

    Precedence: ENV → TOML → defaults. A missing file means defaults.

    Returns:
        Validated SafeIOConfig.
    """
    path = find_config_path(config_path)

    cfg = SafeIOConfig()

    if path.exists():
        with open(path, "rb") as f:
            data = tomllib.load(f)
        _merge_toml(cfg, data)

    cfg = _apply_env_overrides(cfg)

    cfg.validate()

    return cfg


def build_policy(cfg: SafeIOConfig) -> WritePolicy:
    """Construct the process-wide WritePolicy from a loaded config."""
    return WritePolicy(
        protected_dirs=cfg.policy.protected_dirs,
        denied_extensions=cfg.policy.denied_extensions,
        trusted_roots=cfg.trusted_roots(),
        install_root=cfg.install_root,
        production=cfg.production,
    )

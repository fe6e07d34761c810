"""
Write policy for safeio.

WritePolicy answers one question: may this path be written? Two independent
gates must both pass:

1. Extension gate (files only): executables, libraries and scripts may only
   be written under a trusted root.
2. Protected-directory gate: installation content directories are read-only.
   Matching is a plain case-insensitive prefix, so siblings that share the
   name prefix ("Content.bak") are protected as well.
   Outside production builds an override scope can lift this gate.

The policy is built once from configuration. The only mutable part is the
override depth, which is a counter so nested scopes cannot clear each other.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
import logging
import os
from threading import Lock

from safeio.errors import PathSecurityError
from safeio.paths import get_extension, is_under, normalize_path

logger = logging.getLogger("safeio.policy")

DEFAULT_PROTECTED_DIRS: tuple[str, ...] = ("Content",)

DEFAULT_DENIED_EXTENSIONS: frozenset[str] = frozenset(
    {
        # executables and libraries
        ".exe", ".dll", ".json", ".pdb", ".com", ".scr", ".dylib", ".so", ".a", ".app",
        # shell scripts
        ".bat", ".sh",
    }
)


def _starts_with(path: str, prefix: str) -> bool:
    return path.casefold().startswith(prefix.casefold())


def _canonical_extension(ext: str) -> str:
    ext = ext.replace(" ", "").casefold()
    if ext and not ext.startswith("."):
        ext = "." + ext
    return ext


@dataclass(frozen=True)
class PolicyDecision:
    """Outcome of evaluating one path against the policy."""

    allowed: bool
    path: str
    rule: str | None = None  # "invalid" | "extension" | "protected"
    reason: str | None = None

    def __bool__(self) -> bool:
        return self.allowed


class OverrideScope:
    """
    Keeps protected-directory writes allowed while alive.

    Use as a context manager, or call release() on every exit path.
    Releasing more than once has no further effect.
    """

    def __init__(self, policy: WritePolicy, active: bool):
        self._policy = policy
        self._active = active

    @property
    def active(self) -> bool:
        return self._active

    def release(self) -> None:
        if self._active:
            self._active = False
            self._policy._leave_override()

    def __enter__(self) -> OverrideScope:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()


class WritePolicy:
    """
    Decides whether a path may be written.

    Args:
        protected_dirs: Directory names (or paths) that must not be written,
            resolved against install_root on every call
        denied_extensions: Extensions that may only be written under a trusted root
        trusted_roots: Roots where the extension gate does not apply
        install_root: Base for relative protected dirs; None means the current
            working directory at call time
        production: Production builds never grant an override
    """

    def __init__(
        self,
        protected_dirs: Iterable[str] = DEFAULT_PROTECTED_DIRS,
        denied_extensions: Iterable[str] = DEFAULT_DENIED_EXTENSIONS,
        trusted_roots: Iterable[str | os.PathLike[str]] = (),
        install_root: str | os.PathLike[str] | None = None,
        production: bool = True,
    ):
        self.protected_dirs: tuple[str, ...] = tuple(os.fspath(d) for d in protected_dirs)
        self.denied_extensions: frozenset[str] = frozenset(
            e for e in (_canonical_extension(x) for x in denied_extensions) if e
        )
        # dict.fromkeys keeps order and drops duplicates
        self.trusted_roots: tuple[str, ...] = tuple(
            dict.fromkeys(os.fspath(r) for r in trusted_roots if os.fspath(r))
        )
        self.install_root = os.fspath(install_root) if install_root is not None else None
        self.production = production
        self._override_depth = 0
        self._lock = Lock()

    def __repr__(self) -> str:
        return (
            f"WritePolicy(protected_dirs={self.protected_dirs!r}, "
            f"trusted_roots={self.trusted_roots!r}, production={self.production!r})"
        )

    # ------------------------------------------------------------------
    # Override scopes
    # ------------------------------------------------------------------

    @property
    def override_active(self) -> bool:
        return self._override_depth > 0

    @property
    def override_depth(self) -> int:
        return self._override_depth

    def begin_override(self) -> OverrideScope:
        """
        Allow writes to protected directories until the returned scope is released.

        In production builds this returns an inert scope and grants nothing.
        """
        if self.production:
            logger.warning("Override requested in a production build; ignoring")
            return OverrideScope(self, active=False)
        with self._lock:
            self._override_depth += 1
            depth = self._override_depth
        logger.debug("Protected-directory override entered (depth=%d)", depth)
        return OverrideScope(self, active=True)

    def _leave_override(self) -> None:
        with self._lock:
            if self._override_depth > 0:
                self._override_depth -= 1
            depth = self._override_depth
        logger.debug("Protected-directory override left (depth=%d)", depth)

    # ------------------------------------------------------------------
    # Decisions
    # ------------------------------------------------------------------

    def resolved_protected_dirs(self) -> list[str]:
        """Protected dirs as normalized absolute paths, resolved now."""
        base = self.install_root if self.install_root is not None else os.getcwd()
        return [normalize_path(os.path.join(base, d)) for d in self.protected_dirs]

    def resolved_trusted_roots(self) -> list[str]:
        return [normalize_path(r) for r in self.trusted_roots]

    def is_trusted(self, path: str | os.PathLike[str]) -> bool:
        normalized = normalize_path(path)
        return any(is_under(normalized, root) for root in self.resolved_trusted_roots())

    def explain(self, path: str | os.PathLike[str], is_directory: bool) -> PolicyDecision:
        """Evaluate path and say which rule, if any, denied it."""
        try:
            normalized = normalize_path(path)
        except PathSecurityError as e:
            return PolicyDecision(False, os.fspath(path), "invalid", str(e))

        if not is_directory:
            extension = _canonical_extension(get_extension(normalized))
            if (
                extension
                and extension in self.denied_extensions
                and not any(is_under(normalized, r) for r in self.resolved_trusted_roots())
            ):
                return PolicyDecision(
                    False,
                    normalized,
                    "extension",
                    f"writing {extension} files outside trusted roots is not allowed",
                )

        for protected in self.resolved_protected_dirs():
            if _starts_with(normalized, protected):
                if self.production:
                    return PolicyDecision(
                        False, normalized, "protected", f"{protected} is a protected directory"
                    )
                if self.override_active:
                    return PolicyDecision(True, normalized)
                return PolicyDecision(
                    False,
                    normalized,
                    "protected",
                    f"{protected} is a protected directory (no override active)",
                )

        return PolicyDecision(True, normalized)

    def can_write(self, path: str | os.PathLike[str], is_directory: bool) -> bool:
        return self.explain(path, is_directory).allowed

    def explain_tree(self, path: str | os.PathLike[str]) -> PolicyDecision:
        """
        Decision for removing or relocating a whole directory tree.

        Same as explain(path, True), but also denies when a protected
        directory sits inside the tree (deleting the install root would
        otherwise take its content with it).
        """
        decision = self.explain(path, True)
        if not decision.allowed:
            return decision
        if not self.production and self.override_active:
            return decision
        for protected in self.resolved_protected_dirs():
            if is_under(protected, decision.path):
                return PolicyDecision(
                    False,
                    decision.path,
                    "protected",
                    f"{decision.path} contains protected directory {protected}",
                )
        return decision

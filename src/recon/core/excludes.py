"""Directory exclusion rules for repository walks.

Tier 0 (HARDCODED_DIRS): Never traversed.
    - VCS internals, the recon data directory

Tier 1 (DEFAULT_PRUNABLE_DIRS): Dependencies, fixtures and build outputs.
    - Can be extended through ``index.excluded_dirs`` in config

Hidden directories (leading dot) below the walk root are skipped as well.
"""

from __future__ import annotations

from collections.abc import Iterable

HARDCODED_DIRS: frozenset[str] = frozenset(
    (
        # VCS internals
        ".git",
        ".svn",
        ".hg",
        ".bzr",
        # Recon data
        ".recon",
    )
)

DEFAULT_PRUNABLE_DIRS: frozenset[str] = frozenset(
    (
        # Vendored dependencies and fixtures
        "vendor",
        "testdata",
        "third_party",
        # JavaScript/Node.js
        "node_modules",
        "bower_components",
        # Python
        "venv",
        "__pycache__",
        "site-packages",
        # Rust / JVM / generic build outputs
        "target",
        "dist",
        "build",
        "out",
    )
)

PRUNABLE_DIRS: frozenset[str] = HARDCODED_DIRS | DEFAULT_PRUNABLE_DIRS


def is_hardcoded_dir(dirname: str) -> bool:
    """Check if directory is hardcoded (never traversable, not overridable)."""
    return dirname in HARDCODED_DIRS


def should_skip_dir(dirname: str, extra: Iterable[str] = ()) -> bool:
    """Return True if a directory below the walk root must not be descended into."""
    if dirname.startswith("."):
        return True
    return dirname in PRUNABLE_DIRS or dirname in frozenset(extra)

"""Eligible source files and the working-tree content fingerprint.

A file is eligible when its extension belongs to the module's language, it
is not a test file, it is not generated code, and no directory on its path
is excluded. The fingerprint is a sha256 over ``relpath NUL sha256 NUL`` for
every eligible file in path order; the indexer stores it in sync_state and
the freshness oracle recomputes it against the live tree.
"""

from __future__ import annotations

import hashlib
import os
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

from recon.config.constants import GENERATED_MARKER_WINDOW
from recon.core.excludes import should_skip_dir

LANGUAGE_EXTENSIONS: dict[str, tuple[str, ...]] = {
    "go": (".go",),
    "python": (".py",),
    "javascript": (".js", ".jsx", ".mjs", ".cjs", ".ts", ".tsx"),
}


def is_test_file(name: str) -> bool:
    """Test sources are excluded from the fingerprint and from grep checks."""
    if name.endswith("_test.go") or name.endswith("_test.py"):
        return True
    if name.startswith("test_") and name.endswith(".py"):
        return True
    stem = name.rsplit(".", 1)[0]
    return stem.endswith((".test", ".spec"))


def _extensions_for(language: str | None) -> tuple[str, ...]:
    if language is None:
        return tuple(ext for exts in LANGUAGE_EXTENSIONS.values() for ext in exts)
    return LANGUAGE_EXTENSIONS.get(language, ())


def is_generated(content: bytes) -> bool:
    head = content[:GENERATED_MARKER_WINDOW]
    return b"Code generated" in head and b"DO NOT EDIT" in head


@dataclass(frozen=True, slots=True)
class SourceFile:
    """An eligible file with its content digest."""

    abs_path: Path
    rel_path: str
    content: bytes
    hash: str

    @property
    def lines(self) -> int:
        return self.content.count(b"\n") + 1


def collect_eligible_files(
    root: Path,
    language: str | None = None,
    excluded_dirs: Iterable[str] = (),
    max_file_size_mb: int | None = None,
) -> list[SourceFile]:
    """Walk ``root`` and return eligible files sorted by relative path.

    ``language`` selects the extensions; None accepts every known source
    language.

    Raises:
        OSError: A directory or file could not be read.
    """
    extensions = _extensions_for(language)
    extra = frozenset(excluded_dirs)
    max_bytes = max_file_size_mb * 1024 * 1024 if max_file_size_mb else None
    files: list[SourceFile] = []

    def _raise(err: OSError) -> None:
        raise err

    for dirpath, dirnames, filenames in os.walk(root, onerror=_raise):
        dirnames[:] = sorted(d for d in dirnames if not should_skip_dir(d, extra))
        for filename in filenames:
            if not filename.endswith(extensions) or is_test_file(filename):
                continue
            abs_path = Path(dirpath) / filename
            if max_bytes is not None and abs_path.stat().st_size > max_bytes:
                continue
            content = abs_path.read_bytes()
            if is_generated(content):
                continue
            files.append(
                SourceFile(
                    abs_path=abs_path,
                    rel_path=abs_path.relative_to(root).as_posix(),
                    content=content,
                    hash=hashlib.sha256(content).hexdigest(),
                )
            )

    files.sort(key=lambda f: f.rel_path)
    return files


def compute_fingerprint(files: Iterable[SourceFile]) -> str:
    digest = hashlib.sha256()
    for f in files:
        digest.update(f.rel_path.encode())
        digest.update(b"\x00")
        digest.update(f.hash.encode())
        digest.update(b"\x00")
    return digest.hexdigest()


def current_fingerprint(
    root: Path,
    language: str | None = None,
    excluded_dirs: Iterable[str] = (),
    max_file_size_mb: int | None = None,
) -> str:
    """Fingerprint of the live tree under ``root``.

    Raises:
        OSError: The tree could not be read. Callers treat this as soft.
    """
    return compute_fingerprint(
        collect_eligible_files(root, language, excluded_dirs, max_file_size_mb)
    )

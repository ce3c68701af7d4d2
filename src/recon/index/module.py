"""Module descriptor resolution.

A module root is a directory holding one of the descriptors below, checked
in order. The descriptor yields the declared module identifier and the
primary language:

    go.mod          ``module <path>``                 go
    pyproject.toml  ``[project] name``                python
    package.json    ``"name"``                        javascript
"""

from __future__ import annotations

import json
import tomllib
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from recon.core.errors import ProjectError


@dataclass(frozen=True, slots=True)
class ModuleDescriptor:
    """Project identity for a module root."""

    name: str
    module_path: str
    language: str
    descriptor: Path


def _read_go_mod(path: Path) -> str:
    for raw in path.read_text(encoding="utf-8").splitlines():
        line = raw.strip()
        if line.startswith("module "):
            module_path = line.removeprefix("module ").strip().strip('"')
            if module_path:
                return module_path
            break
    raise ProjectError.descriptor_invalid(str(path), "module path not found in go.mod")


def _read_pyproject(path: Path) -> str:
    try:
        data = tomllib.loads(path.read_text(encoding="utf-8"))
    except tomllib.TOMLDecodeError as e:
        raise ProjectError.descriptor_invalid(str(path), str(e)) from e
    name = data.get("project", {}).get("name") or data.get("tool", {}).get("poetry", {}).get(
        "name"
    )
    if not name:
        raise ProjectError.descriptor_invalid(str(path), "project name not found")
    return str(name)


def _read_package_json(path: Path) -> str:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ProjectError.descriptor_invalid(str(path), str(e)) from e
    name = data.get("name") if isinstance(data, dict) else None
    if not name:
        raise ProjectError.descriptor_invalid(str(path), "package name not found")
    return str(name)


DESCRIPTORS: tuple[tuple[str, str, Callable[[Path], str]], ...] = (
    ("go.mod", "go", _read_go_mod),
    ("pyproject.toml", "python", _read_pyproject),
    ("package.json", "javascript", _read_package_json),
)


def resolve_module(root: Path) -> ModuleDescriptor:
    """Read the module descriptor at ``root``.

    Raises:
        ProjectError: No descriptor exists, or the first one found is
            unreadable or lacks a module identifier.
    """
    root = Path(root)
    for filename, language, reader in DESCRIPTORS:
        candidate = root / filename
        if not candidate.is_file():
            continue
        try:
            module_path = reader(candidate)
        except OSError as e:
            raise ProjectError.descriptor_invalid(str(candidate), str(e)) from e
        return ModuleDescriptor(
            name=root.resolve().name,
            module_path=module_path,
            language=language,
            descriptor=candidate,
        )
    raise ProjectError.descriptor_not_found(str(root))


def find_module_root(start: Path) -> Path:
    """Nearest directory at or above ``start`` that holds a module descriptor."""
    current = Path(start).resolve()
    while True:
        if any((current / filename).is_file() for filename, _, _ in DESCRIPTORS):
            return current
        if current.parent == current:
            raise ProjectError.descriptor_not_found(str(Path(start).resolve()))
        current = current.parent

"""Tests for module descriptor resolution."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from recon.core.errors import ErrorCode, ProjectError
from recon.index.module import find_module_root, resolve_module


class TestResolveModule:
    def test_go_mod(self, tmp_path: Path) -> None:
        (tmp_path / "go.mod").write_text("module github.com/example/recon\n\ngo 1.22\n")

        descriptor = resolve_module(tmp_path)

        assert descriptor.module_path == "github.com/example/recon"
        assert descriptor.language == "go"
        assert descriptor.name == tmp_path.name

    def test_pyproject(self, tmp_path: Path) -> None:
        (tmp_path / "pyproject.toml").write_text('[project]\nname = "billing"\n')

        descriptor = resolve_module(tmp_path)

        assert (descriptor.module_path, descriptor.language) == ("billing", "python")

    def test_poetry_pyproject(self, tmp_path: Path) -> None:
        (tmp_path / "pyproject.toml").write_text('[tool.poetry]\nname = "legacy-app"\n')
        assert resolve_module(tmp_path).module_path == "legacy-app"

    def test_package_json(self, tmp_path: Path) -> None:
        (tmp_path / "package.json").write_text(json.dumps({"name": "@acme/web"}))

        descriptor = resolve_module(tmp_path)

        assert (descriptor.module_path, descriptor.language) == ("@acme/web", "javascript")

    def test_go_mod_wins_over_package_json(self, tmp_path: Path) -> None:
        (tmp_path / "go.mod").write_text("module example.com/tool\n")
        (tmp_path / "package.json").write_text(json.dumps({"name": "tool-ui"}))
        assert resolve_module(tmp_path).language == "go"

    def test_missing_descriptor(self, tmp_path: Path) -> None:
        with pytest.raises(ProjectError) as exc_info:
            resolve_module(tmp_path)
        assert exc_info.value.code == ErrorCode.PROJECT_DESCRIPTOR_NOT_FOUND

    def test_go_mod_without_module_line(self, tmp_path: Path) -> None:
        (tmp_path / "go.mod").write_text("go 1.22\n")
        with pytest.raises(ProjectError) as exc_info:
            resolve_module(tmp_path)
        assert exc_info.value.code == ErrorCode.PROJECT_DESCRIPTOR_INVALID

    def test_malformed_package_json(self, tmp_path: Path) -> None:
        (tmp_path / "package.json").write_text("{not json")
        with pytest.raises(ProjectError):
            resolve_module(tmp_path)


class TestFindModuleRoot:
    def test_walks_up_to_descriptor(self, tmp_path: Path) -> None:
        (tmp_path / "go.mod").write_text("module example.com/tool\n")
        nested = tmp_path / "internal" / "cli"
        nested.mkdir(parents=True)

        assert find_module_root(nested) == tmp_path.resolve()

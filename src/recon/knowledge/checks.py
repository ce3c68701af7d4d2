"""Automated checks that gate claim promotion.

Three check types, each with its own spec shape:

    file_exists    {"path": ...}              path relative to the module root
    symbol_exists  {"name": ...}              symbol present in the index
    grep_pattern   {"pattern": ..., "scope": ...}
                                              regex found in an eligible file
                                              whose base name or relative
                                              path matches the scope glob

Specs are parsed before any database work; a malformed spec is an
InputError. A check that runs and does not find its subject is a failed
outcome, not an error.
"""

from __future__ import annotations

import json
import re
from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum
from fnmatch import fnmatchcase
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator
from sqlmodel import Session, func, select

from recon.core.errors import InputError, db_step
from recon.index.files import collect_eligible_files
from recon.store.models import Symbol


class CheckType(str, Enum):
    FILE_EXISTS = "file_exists"
    SYMBOL_EXISTS = "symbol_exists"
    GREP_PATTERN = "grep_pattern"


class _Spec(BaseModel):
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)


class FileExistsSpec(_Spec):
    path: str

    @field_validator("path")
    @classmethod
    def _non_empty(cls, v: str) -> str:
        if not v:
            raise ValueError("file_exists requires spec.path")
        return v


class SymbolExistsSpec(_Spec):
    name: str

    @field_validator("name")
    @classmethod
    def _non_empty(cls, v: str) -> str:
        if not v:
            raise ValueError("symbol_exists requires spec.name")
        return v


class GrepPatternSpec(_Spec):
    pattern: str
    scope: str = ""

    @field_validator("pattern")
    @classmethod
    def _compiles(cls, v: str) -> str:
        if not v:
            raise ValueError("grep_pattern requires spec.pattern")
        try:
            re.compile(v)
        except re.error as e:
            raise ValueError(f"compile regex pattern: {e}") from e
        return v


CheckSpec = FileExistsSpec | SymbolExistsSpec | GrepPatternSpec

_SPEC_MODELS: dict[CheckType, type[_Spec]] = {
    CheckType.FILE_EXISTS: FileExistsSpec,
    CheckType.SYMBOL_EXISTS: SymbolExistsSpec,
    CheckType.GREP_PATTERN: GrepPatternSpec,
}


@dataclass(frozen=True, slots=True)
class ParsedCheck:
    """A validated check ready to run."""

    type: CheckType
    spec: CheckSpec

    def spec_json(self) -> str:
        return self.spec.model_dump_json()


@dataclass(frozen=True, slots=True)
class CheckOutcome:
    passed: bool
    details: str
    baseline: dict[str, Any] = field(default_factory=dict)


def _path_matches(path: str, pattern: str) -> bool:
    """Glob match where wildcards never cross a ``/``."""
    parts = path.split("/")
    globs = pattern.split("/")
    return len(parts) == len(globs) and all(
        fnmatchcase(part, glob) for part, glob in zip(parts, globs, strict=True)
    )


def parse_check(check_type: str | None, spec: dict[str, Any] | str | None) -> ParsedCheck:
    """Validate a check descriptor.

    ``spec`` may be a mapping or its JSON text.

    Raises:
        InputError: Missing type or spec, unknown type, or a spec that does
            not fit its type.
    """
    if not check_type or not str(check_type).strip():
        raise InputError.missing_field("check type")
    if spec is None or (isinstance(spec, str) and not spec.strip()):
        raise InputError.missing_field("check spec")

    try:
        kind = CheckType(str(check_type).strip())
    except ValueError as e:
        supported = ", ".join(t.value for t in CheckType)
        raise InputError.invalid_value(
            "check type", check_type, f"unsupported check type (expected one of {supported})"
        ) from e

    if isinstance(spec, str):
        try:
            spec = json.loads(spec)
        except json.JSONDecodeError as e:
            raise InputError.invalid_value(
                "check spec", spec, f"parse {kind.value} spec: {e}"
            ) from e
    if not isinstance(spec, dict):
        raise InputError.invalid_value("check spec", spec, "spec must be a JSON object")

    try:
        parsed = _SPEC_MODELS[kind].model_validate(spec)
    except ValidationError as e:
        err = e.errors()[0]
        loc = ".".join(str(part) for part in err["loc"]) or "spec"
        raise InputError.invalid_value(
            "check spec", spec, f"{kind.value} spec.{loc}: {err['msg']}"
        ) from e
    return ParsedCheck(type=kind, spec=parsed)  # type: ignore[arg-type]


class CheckRunner:
    """Runs parsed checks against the live tree and the index.

    Symbol lookups go through ``session`` so they see the same transaction
    as the promotion that triggered them.
    """

    def __init__(
        self,
        session: Session,
        module_root: Path,
        language: str | None = None,
        excluded_dirs: Iterable[str] = (),
        max_file_size_mb: int | None = None,
    ) -> None:
        self._session = session
        self._root = Path(module_root)
        self._language = language
        self._excluded_dirs = tuple(excluded_dirs)
        self._max_file_size_mb = max_file_size_mb

    def run(self, check: ParsedCheck) -> CheckOutcome:
        spec = check.spec
        if isinstance(spec, FileExistsSpec):
            return self._file_exists(spec)
        if isinstance(spec, SymbolExistsSpec):
            return self._symbol_exists(spec)
        return self._grep_pattern(spec)

    def _file_exists(self, spec: FileExistsSpec) -> CheckOutcome:
        target = Path(spec.path)
        if not target.is_absolute():
            target = self._root / target
        exists = target.exists()
        return CheckOutcome(
            passed=exists,
            details=f"file {spec.path} exists={str(exists).lower()}",
            baseline={"path": spec.path, "exists": exists},
        )

    def _symbol_exists(self, spec: SymbolExistsSpec) -> CheckOutcome:
        with db_step("query symbol count"):
            count = self._session.exec(
                select(func.count()).select_from(Symbol).where(Symbol.name == spec.name)
            ).one()
        return CheckOutcome(
            passed=count > 0,
            details=f"symbol {spec.name} count={count}",
            baseline={"name": spec.name, "count": count},
        )

    def _grep_pattern(self, spec: GrepPatternSpec) -> CheckOutcome:
        try:
            files = collect_eligible_files(
                self._root, self._language, self._excluded_dirs, self._max_file_size_mb
            )
        except OSError as e:
            return CheckOutcome(
                passed=False,
                details=f"grep pattern {spec.pattern} could not read files: {e}",
                baseline={"pattern": spec.pattern, "scope": spec.scope, "error": str(e)},
            )

        regex = re.compile(spec.pattern)
        total = matched = 0
        for f in files:
            if spec.scope and not (
                _path_matches(f.rel_path.rsplit("/", 1)[-1], spec.scope)
                or _path_matches(f.rel_path, spec.scope)
            ):
                continue
            total += 1
            if regex.search(f.content.decode("utf-8", errors="replace")):
                matched += 1

        return CheckOutcome(
            passed=matched > 0,
            details=f"grep pattern {spec.pattern} matched {matched} of {total} files",
            baseline={
                "pattern": spec.pattern,
                "scope": spec.scope,
                "matched": matched,
                "total": total,
            },
        )

"""Resolve a symbol name to one indexed symbol and its direct dependencies.

Lookup runs in three stages:

    match      every symbol with exactly that name
    filter     optional package, file and kind filters narrow the matches
    resolve    one survivor is the result; several are ambiguous

An unknown name fails with up to five prefix suggestions. A known name that
the filters remove fails without suggestions and echoes the filters.

Dependencies come from ``symbol_deps`` rows joined back to symbols by name.
A non-empty ``dep_package`` or ``dep_kind`` on the row must also match.
"""

from __future__ import annotations

import posixpath
from dataclasses import dataclass

import structlog
from pydantic import BaseModel, Field
from sqlalchemy import text
from sqlmodel import Session

from recon.core.errors import InputError, SymbolLookupError, db_step
from recon.store.database import Database

logger = structlog.get_logger()

SUGGESTION_LIMIT = 5
DEPENDENCY_LIMIT = 25

_COLUMNS = """
    s.id AS id,
    s.kind AS kind,
    s.name AS name,
    COALESCE(s.signature, '') AS signature,
    COALESCE(s.body, '') AS body,
    s.line_start AS line_start,
    s.line_end AS line_end,
    COALESCE(s.receiver, '') AS receiver,
    f.path AS file_path,
    COALESCE(p.path, '.') AS package
"""

_MATCHES_SQL = f"""
SELECT {_COLUMNS}
FROM symbols s
JOIN files f ON f.id = s.file_id
LEFT JOIN packages p ON p.id = f.package_id
WHERE s.name = :name
ORDER BY package, file_path, kind, receiver
"""

_SUGGESTIONS_SQL = """
SELECT DISTINCT name
FROM symbols
WHERE name LIKE :prefix ESCAPE '\\'
ORDER BY name
LIMIT :limit
"""

_DEPENDENCIES_SQL = f"""
SELECT DISTINCT {_COLUMNS}
FROM symbol_deps d
JOIN symbols s ON s.name = d.dep_name
JOIN files f ON f.id = s.file_id
LEFT JOIN packages p ON p.id = f.package_id
WHERE d.symbol_id = :symbol_id
  AND (d.dep_package = '' OR COALESCE(p.path, '.') = d.dep_package)
  AND (d.dep_kind = '' OR s.kind = d.dep_kind)
ORDER BY package, file_path, name
LIMIT :limit
"""


class SymbolInfo(BaseModel):
    id: int
    kind: str
    name: str
    signature: str = ""
    body: str = ""
    line_start: int = 0
    line_end: int = 0
    receiver: str = ""
    file_path: str
    package: str

    def candidate(self) -> dict[str, str]:
        """Where this symbol lives, for ambiguity reports."""
        out = {"kind": self.kind, "file_path": self.file_path, "package": self.package}
        if self.receiver:
            out["receiver"] = self.receiver
        return out


class FindResult(BaseModel):
    symbol: SymbolInfo
    dependencies: list[SymbolInfo] = Field(default_factory=list)


def _clean_path(path: str) -> str:
    trimmed = path.strip().replace("\\", "/")
    if not trimmed:
        return ""
    return posixpath.normpath(trimmed)


def _file_matches(symbol_path: str, wanted: str) -> bool:
    """A filter without a slash names a file; with one it is a path fragment."""
    if symbol_path == wanted:
        return True
    if "/" not in wanted:
        return posixpath.basename(symbol_path) == wanted
    return wanted in symbol_path


@dataclass(frozen=True, slots=True)
class FindOptions:
    package: str = ""
    file: str = ""
    kind: str = ""

    def normalized(self) -> FindOptions:
        return FindOptions(
            package=self.package.strip(),
            file=_clean_path(self.file),
            kind=self.kind.strip().lower(),
        )

    def active(self) -> dict[str, str]:
        """Filters that were set, keyed by name."""
        pairs = (("package", self.package), ("file", self.file), ("kind", self.kind))
        return {key: value for key, value in pairs if value}

    def accepts(self, symbol: SymbolInfo) -> bool:
        if self.package and symbol.package != self.package:
            return False
        if self.file and not _file_matches(_clean_path(symbol.file_path), self.file):
            return False
        return not (self.kind and symbol.kind.lower() != self.kind)


def _prefix_pattern(name: str) -> str:
    escaped = name.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"{escaped}%"


class FindService:
    """Exact-name symbol lookup."""

    def __init__(self, db: Database) -> None:
        self._db = db

    def find_exact(self, name: str) -> FindResult:
        return self.find(name)

    def find(self, name: str, options: FindOptions | None = None) -> FindResult:
        """Resolve ``name`` to a single symbol.

        Raises:
            InputError: Empty name.
            SymbolLookupError: No symbol matched, or more than one did.
            StoreError: A query failed.
        """
        name = (name or "").strip()
        if not name:
            raise InputError.missing_field("symbol")
        options = (options or FindOptions()).normalized()
        filters = options.active()

        with self._db.session() as session:
            with db_step("query symbol"):
                rows = session.execute(text(_MATCHES_SQL), {"name": name}).mappings().all()
            matches = [SymbolInfo.model_validate(dict(row)) for row in rows]
            if not matches:
                raise SymbolLookupError.not_found(name, self._suggestions(session, name))

            if filters:
                matches = [m for m in matches if options.accepts(m)]
                if not matches:
                    raise SymbolLookupError.not_found(name, [], filters)

            if len(matches) > 1:
                raise SymbolLookupError.ambiguous(name, [m.candidate() for m in matches])

            symbol = matches[0]
            dependencies = self._dependencies(session, symbol.id)

        logger.debug(
            "symbol_found",
            symbol=name,
            file=symbol.file_path,
            dependencies=len(dependencies),
        )
        return FindResult(symbol=symbol, dependencies=dependencies)

    @staticmethod
    def _suggestions(session: Session, name: str) -> list[str]:
        with db_step("query suggestions"):
            rows = session.execute(
                text(_SUGGESTIONS_SQL),
                {"prefix": _prefix_pattern(name), "limit": SUGGESTION_LIMIT},
            ).all()
        return [row[0] for row in rows]

    @staticmethod
    def _dependencies(session: Session, symbol_id: int) -> list[SymbolInfo]:
        with db_step("query dependencies"):
            rows = session.execute(
                text(_DEPENDENCIES_SQL),
                {"symbol_id": symbol_id, "limit": DEPENDENCY_LIMIT},
            ).mappings().all()
        return [SymbolInfo.model_validate(dict(row)) for row in rows]

"""Heuristic detection of code entities mentioned in claim text.

Two passes over the index:
- packages: any package path that occurs as a substring of the text,
  longest paths first
- symbols: exported symbols whose name is at least MIN_SYMBOL_NAME_LEN
  characters, is not a generic word, and occurs in the text as a whole
  word (bounded by anything other than a letter, digit or underscore)

Every detection becomes an ``affects`` edge. Duplicates by (to_type, to_ref)
are dropped, keeping the first. The linker only reads the index.
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import text
from sqlmodel import Session

from recon.core.errors import db_step
from recon.store.models import EntityType, Relation

MIN_SYMBOL_NAME_LEN = 6

GENERIC_SYMBOL_NAMES: frozenset[str] = frozenset(
    {
        "String",
        "Error",
        "Close",
        "Write",
        "Reader",
        "Writer",
        "Buffer",
        "Logger",
        "Config",
        "Option",
        "Result",
        "Status",
        "Server",
        "Client",
        "Handle",
    }
)


@dataclass(frozen=True, slots=True)
class DetectedEdge:
    to_type: str
    to_ref: str
    relation: str = Relation.AFFECTS.value


def _is_word_char(ch: str) -> bool:
    return ch.isalnum() or ch == "_"


def contains_word(haystack: str, word: str) -> bool:
    """True when ``word`` occurs in ``haystack`` with non-word characters (or
    the string edge) on both sides."""
    if not word:
        return False
    start = 0
    while True:
        idx = haystack.find(word, start)
        if idx < 0:
            return False
        end = idx + len(word)
        before_ok = idx == 0 or not _is_word_char(haystack[idx - 1])
        after_ok = end == len(haystack) or not _is_word_char(haystack[end])
        if before_ok and after_ok:
            return True
        start = idx + 1


class AutoLinker:
    """Finds packages and exported symbols referenced by free text."""

    def __init__(self, session: Session) -> None:
        self._session = session

    def detect(self, text_: str) -> list[DetectedEdge]:
        if not text_.strip():
            return []

        detected: list[DetectedEdge] = []
        seen: set[tuple[str, str]] = set()

        def _add(to_type: str, to_ref: str) -> None:
            key = (to_type, to_ref)
            if key not in seen:
                seen.add(key)
                detected.append(DetectedEdge(to_type=to_type, to_ref=to_ref))

        for path in self._package_paths():
            if path and path in text_:
                _add(EntityType.PACKAGE.value, path)

        for name, package_path in self._exported_symbols():
            if len(name) < MIN_SYMBOL_NAME_LEN or name in GENERIC_SYMBOL_NAMES:
                continue
            if contains_word(text_, name):
                _add(EntityType.SYMBOL.value, f"{package_path}.{name}")

        return detected

    def _package_paths(self) -> list[str]:
        with db_step("load package paths"):
            rows = self._session.execute(
                text("SELECT path FROM packages ORDER BY length(path) DESC, path")
            ).all()
        return [row[0] for row in rows]

    def _exported_symbols(self) -> list[tuple[str, str]]:
        with db_step("load exported symbols"):
            rows = self._session.execute(
                text(
                    """
                    SELECT s.name, p.path
                    FROM symbols s
                    JOIN files f ON f.id = s.file_id
                    JOIN packages p ON p.id = f.package_id
                    WHERE s.exported = 1
                    ORDER BY p.path, s.name
                    """
                )
            ).all()
        return [(row[0], row[1]) for row in rows]

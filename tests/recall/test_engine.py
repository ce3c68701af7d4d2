"""Tests for tiered recall."""

from __future__ import annotations

from pathlib import Path

import pytest

from recon.config.models import RecallConfig
from recon.core.errors import InputError, StoreError
from recon.knowledge import CheckDescriptor, ClaimInput, PromotionPipeline
from recon.recall import STRATEGIES, RecallEngine, RecallOptions, Strategy
from recon.store.database import Database
from recon.store.migrations import Migrator


def _claim(module_root: Path, kind: str, title: str, body: str) -> ClaimInput:
    return ClaimInput(
        kind=kind,
        title=title,
        body=body,
        evidence_summary=f"{title} is checked against go.mod",
        check=CheckDescriptor("file_exists", {"path": "go.mod"}),
        module_root=module_root,
    )


@pytest.fixture
def knowledge(seeded: Database, module_root: Path) -> Database:
    """Two decisions and one pattern, all promoted."""
    pipeline = PromotionPipeline(seeded)
    pipeline.propose(
        _claim(module_root, "decision", "Use SQLite for storage", "internal/store uses OpenStore")
    )
    pipeline.propose(
        _claim(module_root, "decision", "Enable write-ahead logging", "Readers never block")
    )
    pipeline.propose(
        _claim(module_root, "pattern", "Wrap storage errors", "Return errors with context")
    )
    return seeded


@pytest.fixture
def legacy(tmp_path: Path) -> Database:
    """Database stopped before the patterns and edges tables existed."""
    database = Database(tmp_path / "legacy.db")
    Migrator(database.engine).migrate(target=2)
    database.execute_raw(
        "INSERT INTO decisions (title, reasoning, created_at, updated_at) "
        "VALUES ('Use SQLite for storage', 'one file', "
        "'2024-01-01T00:00:00Z', '2024-01-01T00:00:00Z')"
    )
    database.execute_raw(
        "INSERT INTO search_index (title, content, entity_type, entity_id) "
        "VALUES ('Use SQLite for storage', 'one file', 'decision', 1)"
    )
    yield database
    database.dispose()


class TestFullText:
    def test_matches_title(self, knowledge: Database) -> None:
        result = RecallEngine(knowledge).recall("sqlite")

        assert result.strategy == "fts"
        assert [item.title for item in result.items] == ["Use SQLite for storage"]
        item = result.items[0]
        assert (item.entity_type, item.decision_id, item.pattern_id) == ("decision", 1, None)
        assert item.reasoning == "internal/store uses OpenStore"
        assert item.evidence_drift_status == "ok"

    def test_patterns_are_searched(self, knowledge: Database) -> None:
        result = RecallEngine(knowledge).recall("errors")

        assert [(i.entity_type, i.pattern_id) for i in result.items] == [("pattern", 1)]
        assert result.items[0].reasoning == "Return errors with context"

    def test_hits_carry_outgoing_edges(self, knowledge: Database) -> None:
        result = RecallEngine(knowledge).recall("sqlite")

        edges = [(e.to_type, e.to_ref, e.relation) for e in result.items[0].connected_edges]
        assert edges == [
            ("package", "internal/store", "affects"),
            ("symbol", "internal/store.OpenStore", "affects"),
        ]

    def test_kind_filter(self, knowledge: Database) -> None:
        result = RecallEngine(knowledge).recall("storage", RecallOptions(kind="pattern"))

        assert [i.title for i in result.items] == ["Wrap storage errors"]

    def test_limit_defaults_from_config(self, knowledge: Database) -> None:
        engine = RecallEngine(knowledge, RecallConfig(default_limit=1))

        assert len(engine.recall("storage").items) == 1
        assert len(engine.recall("storage", RecallOptions(limit=5)).items) == 2

    def test_no_hits(self, knowledge: Database) -> None:
        result = RecallEngine(knowledge).recall("kubernetes")

        assert result.items == []
        assert result.strategy == "fts"


class TestFallbacks:
    def test_syntax_error_falls_back_to_substring(self, knowledge: Database) -> None:
        result = RecallEngine(knowledge).recall("write-ahead")

        assert result.strategy == "like"
        assert [i.title for i in result.items] == ["Enable write-ahead logging"]

    def test_unterminated_quote(self, knowledge: Database) -> None:
        result = RecallEngine(knowledge).recall('"SQLite')

        assert result.strategy == "like"

    def test_substring_only_chain_finds_promoted_claim(self, knowledge: Database) -> None:
        engine = RecallEngine(knowledge, strategies=STRATEGIES[2:])

        result = engine.recall("Use SQLite for storage")

        assert result.strategy == "like"
        assert [i.decision_id for i in result.items] == [1]

    def test_substring_wildcards_are_literal(self, knowledge: Database) -> None:
        engine = RecallEngine(knowledge, strategies=STRATEGIES[2:])

        assert engine.recall("%").items == []
        assert engine.recall("_").items == []

    def test_substring_orders_by_recency(self, knowledge: Database) -> None:
        engine = RecallEngine(knowledge, strategies=STRATEGIES[2:])

        result = engine.recall("go.mod")

        assert len(result.items) == 3
        decisions = [i.decision_id for i in result.items if i.entity_type == "decision"]
        assert decisions == [2, 1]

    def test_legacy_schema_uses_decisions_only(self, legacy: Database) -> None:
        result = RecallEngine(legacy).recall("sqlite")

        assert result.strategy == "fts_legacy"
        assert [i.title for i in result.items] == ["Use SQLite for storage"]
        assert result.items[0].connected_edges == []

    def test_legacy_schema_substring(self, legacy: Database) -> None:
        result = RecallEngine(legacy).recall("one-file")

        assert result.strategy == "like_legacy"
        assert result.items == []

    def test_unclassified_error_is_fatal(self, knowledge: Database) -> None:
        broken = Strategy(
            "broken", "SELECT * FROM missing_table LIMIT :limit", full_text=False, legacy=False
        )

        with pytest.raises(StoreError) as exc_info:
            RecallEngine(knowledge, strategies=(broken,)).recall("sqlite")

        assert exc_info.value.step == "fallback recall query"


class TestInput:
    @pytest.mark.parametrize("query", ["", "   "])
    def test_empty_query(self, knowledge: Database, query: str) -> None:
        with pytest.raises(InputError):
            RecallEngine(knowledge).recall(query)

    def test_unknown_kind(self, knowledge: Database) -> None:
        with pytest.raises(InputError):
            RecallEngine(knowledge).recall("sqlite", RecallOptions(kind="file"))

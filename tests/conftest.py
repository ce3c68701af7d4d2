"""Root conftest.py for test configuration.

Ensures local src/ directory takes priority over any installed packages and
provides the shared store fixtures.
"""

import sys
from collections.abc import Generator
from pathlib import Path

import pytest

# Insert local src directory at the beginning of sys.path
# This ensures that the local recon package is used, not any installed one
_src_dir = Path(__file__).parent.parent / "src"
if str(_src_dir) not in sys.path:
    sys.path.insert(0, str(_src_dir))

from recon.store.database import Database, open_database  # noqa: E402
from recon.store.models import File, Import, Package, Symbol  # noqa: E402


@pytest.fixture
def db(tmp_path: Path) -> Generator[Database, None, None]:
    """Fully migrated database in a temporary directory."""
    database = open_database(tmp_path / ".recon" / "recon.db")
    yield database
    database.dispose()


@pytest.fixture
def module_root(tmp_path: Path) -> Path:
    """A small Go module on disk matching the ``seeded`` index rows."""
    root = tmp_path / "module"
    (root / "internal" / "store").mkdir(parents=True)
    (root / "internal" / "cli").mkdir(parents=True)
    (root / "cmd" / "recon").mkdir(parents=True)
    (root / "go.mod").write_text("module github.com/example/recon\n\ngo 1.22\n")
    (root / "internal" / "store" / "store.go").write_text(
        "package store\n\nfunc OpenStore() error {\n\treturn nil\n}\n"
    )
    (root / "internal" / "cli" / "root.go").write_text(
        'package cli\n\nimport "github.com/example/recon/internal/store"\n\n'
        "func ExecuteRoot() error {\n\treturn store.OpenStore()\n}\n"
    )
    (root / "cmd" / "recon" / "main.go").write_text("package main\n\nfunc main() {}\n")
    return root


@pytest.fixture
def seeded(db: Database) -> Database:
    """Index rows for three packages, their files, symbols and imports."""
    with db.session() as session:
        store = Package(path="internal/store", name="store", file_count=1, line_count=120)
        cli = Package(path="internal/cli", name="cli", file_count=1, line_count=80)
        main = Package(path="cmd/recon", name="main", file_count=1, line_count=10)
        session.add_all([store, cli, main])
        session.flush()

        store_go = File(package_id=store.id, path="internal/store/store.go", language="go")
        root_go = File(package_id=cli.id, path="internal/cli/root.go", language="go")
        main_go = File(package_id=main.id, path="cmd/recon/main.go", language="go")
        session.add_all([store_go, root_go, main_go])
        session.flush()

        session.add_all(
            [
                Symbol(file_id=store_go.id, kind="func", name="OpenStore", exported=True),
                Symbol(file_id=store_go.id, kind="type", name="Config", exported=True),
                Symbol(file_id=store_go.id, kind="func", name="openRaw", exported=False),
                Symbol(file_id=root_go.id, kind="func", name="ExecuteRoot", exported=True),
                Symbol(file_id=main_go.id, kind="func", name="main", exported=False),
                Import(
                    from_file_id=root_go.id,
                    to_path="github.com/example/recon/internal/store",
                    to_package_id=store.id,
                ),
                Import(
                    from_file_id=main_go.id,
                    to_path="github.com/example/recon/internal/cli",
                    to_package_id=cli.id,
                ),
                Import(from_file_id=main_go.id, to_path="fmt", import_type="stdlib"),
            ]
        )
        session.commit()
    return db

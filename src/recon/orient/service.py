"""Orient: one read-only snapshot of what the store knows about a module.

Every query runs under its own step name; a failing query aborts the build
with a StoreError naming that step. Git signals and the fingerprint are
soft: outside a repository the modules are cold and recent activity is
empty, and an unreadable tree becomes a warning.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from pathlib import Path, PurePosixPath

import structlog
from sqlalchemy import text
from sqlmodel import Session, col, func, select

from recon.config.constants import RECENT_ACTIVITY_MAX
from recon.config.models import ReconConfig
from recon.core.errors import db_step
from recon.freshness.oracle import FreshnessOracle
from recon.git.models import RecentFile
from recon.index.probes import RepoProbes
from recon.orient.models import (
    Architecture,
    DecisionDigest,
    DependencyEdge,
    Heat,
    ModuleKnowledge,
    ModuleSummary,
    PatternDigest,
    Payload,
    ProjectInfo,
    RecentActivity,
    Summary,
)
from recon.store.database import Database
from recon.store.models import ClaimStatus, Decision, File, Package, Symbol
from recon.store.sync_state import load_sync_state

logger = structlog.get_logger()

_MODULE_KNOWLEDGE_SQL = """
SELECT e.to_ref, e.from_type, e.from_id,
       COALESCE(d.title, p.title, '') AS title,
       COALESCE(d.confidence, p.confidence, 'medium') AS confidence,
       COALESCE(e.confidence, 'medium') AS edge_confidence
FROM edges e
LEFT JOIN decisions d
    ON e.from_type = 'decision' AND e.from_id = d.id AND d.status = 'active'
LEFT JOIN patterns p
    ON e.from_type = 'pattern' AND e.from_id = p.id AND p.status = 'active'
WHERE e.to_type = 'package'
  AND (d.id IS NOT NULL OR p.id IS NOT NULL)
ORDER BY e.to_ref, e.from_type, e.from_id
"""

_DECISIONS_SQL = """
SELECT d.id, d.title, d.reasoning, d.confidence, d.updated_at,
       COALESCE(e.drift_status, 'ok') AS drift_status
FROM decisions d
LEFT JOIN evidence e ON e.entity_type = 'decision' AND e.entity_id = d.id
WHERE d.status = 'active'
ORDER BY d.updated_at DESC, d.id DESC
LIMIT :limit
"""

_PATTERNS_SQL = """
SELECT p.id, p.title, p.description, p.confidence, p.updated_at,
       COALESCE(e.drift_status, 'ok') AS drift_status
FROM patterns p
LEFT JOIN evidence e ON e.entity_type = 'pattern' AND e.entity_id = p.id
WHERE p.status = 'active'
ORDER BY p.updated_at DESC, p.id DESC
LIMIT :limit
"""

_DEPENDENCY_FLOW_SQL = """
SELECT DISTINCT p1.path AS from_pkg, p2.path AS to_pkg
FROM imports i
JOIN files f ON f.id = i.from_file_id
JOIN packages p1 ON p1.id = f.package_id
JOIN packages p2 ON p2.id = i.to_package_id
WHERE p1.id != p2.id
ORDER BY p1.path, p2.path
"""


@dataclass(frozen=True, slots=True)
class BuildOptions:
    """Caps of 0 or None fall back to the configured defaults."""

    module_root: Path
    max_modules: int | None = None
    max_decisions: int | None = None
    max_patterns: int | None = None


def classify_heat(touches: int, hot_threshold: int) -> Heat:
    if touches >= hot_threshold:
        return "hot"
    if touches > 0:
        return "warm"
    return "cold"


def attribute_touches(counts: dict[str, int], module_paths: Iterable[str]) -> dict[str, int]:
    """Sum per-file touch counts into the module with the longest matching path.

    A module path of ``.`` or ``""`` owns files at the module root only.
    """
    by_length = sorted(module_paths, key=len, reverse=True)
    totals = dict.fromkeys(by_length, 0)
    for file_path, touches in counts.items():
        directory = PurePosixPath(file_path).parent.as_posix()
        for module in by_length:
            if module in ("", "."):
                matched = directory == "."
            else:
                matched = directory == module or directory.startswith(f"{module}/")
            if matched:
                totals[module] += touches
                break
    return totals


def dedupe_recent(
    files: Iterable[RecentFile], limit: int = RECENT_ACTIVITY_MAX
) -> list[RecentActivity]:
    """First occurrence of each file, newest first as given, capped at ``limit``."""
    seen: set[str] = set()
    activity: list[RecentActivity] = []
    for entry in files:
        if entry.file in seen:
            continue
        seen.add(entry.file)
        activity.append(RecentActivity(file=entry.file, last_modified=entry.last_modified))
        if len(activity) >= limit:
            break
    return activity


class OrientService:
    """Builds the orient payload from the store and live repository signals."""

    def __init__(
        self,
        db: Database,
        config: ReconConfig | None = None,
        probes: RepoProbes | None = None,
    ) -> None:
        self._db = db
        self._config = config or ReconConfig()
        self._probes = probes or RepoProbes.from_config(self._config)
        self._oracle = FreshnessOracle(self._probes)

    def build(self, options: BuildOptions) -> Payload:
        """Assemble the payload.

        Raises:
            ProjectError: No readable module descriptor at the module root.
            StoreError: A query failed, or the stored sync timestamp is corrupt.
        """
        orient = self._config.orient
        root = Path(options.module_root)
        max_modules = options.max_modules or orient.max_modules
        max_decisions = options.max_decisions or orient.max_decisions
        max_patterns = options.max_patterns or orient.max_patterns

        descriptor = self._probes.module_descriptor(root)
        project = ProjectInfo(
            name=descriptor.name,
            module_path=descriptor.module_path,
            language=descriptor.language,
        )

        with self._db.session() as session:
            state = load_sync_state(session)
            report = self._oracle.evaluate(state, root, descriptor.language)
            summary = self._summary(session)
            modules = self._modules(session, max_modules)
            decisions = self._decisions(session, max_decisions)
            patterns = self._patterns(session, max_patterns)
            architecture = Architecture(
                entry_points=self._entry_points(session),
                dependency_flow=self._dependency_flow(session),
            )

        self._apply_heat(root, modules)
        recent = dedupe_recent(
            self._probes.recent_files(root, RECENT_ACTIVITY_MAX, orient.recent_commit_scan)
        )

        payload = Payload(
            project=project,
            architecture=architecture,
            freshness=report.freshness,
            summary=summary,
            modules=modules,
            active_decisions=decisions,
            active_patterns=patterns,
            recent_activity=recent,
            warnings=report.warnings,
        )
        logger.info(
            "orient_built",
            module=project.module_path,
            stale=payload.freshness.is_stale,
            modules=len(modules),
            decisions=len(decisions),
            patterns=len(patterns),
        )
        return payload

    # ------------------------------------------------------------------

    @staticmethod
    def _count(session: Session, step: str, stmt: object) -> int:
        with db_step(step):
            return int(session.exec(stmt).one())  # type: ignore[call-overload]

    def _summary(self, session: Session) -> Summary:
        return Summary(
            file_count=self._count(session, "count files", select(func.count()).select_from(File)),
            symbol_count=self._count(
                session, "count symbols", select(func.count()).select_from(Symbol)
            ),
            package_count=self._count(
                session, "count packages", select(func.count()).select_from(Package)
            ),
            decision_count=self._count(
                session,
                "count decisions",
                select(func.count())
                .select_from(Decision)
                .where(Decision.status == ClaimStatus.ACTIVE.value),
            ),
        )

    def _modules(self, session: Session, limit: int) -> list[ModuleSummary]:
        with db_step("query modules"):
            packages = session.exec(
                select(Package)
                .order_by(col(Package.line_count).desc(), col(Package.path))
                .limit(limit)
            ).all()
            modules = [
                ModuleSummary(
                    path=pkg.path,
                    name=pkg.name,
                    file_count=pkg.file_count,
                    line_count=pkg.line_count,
                )
                for pkg in packages
            ]

        with db_step("query module knowledge"):
            rows = session.execute(text(_MODULE_KNOWLEDGE_SQL)).all()
        knowledge: dict[str, list[ModuleKnowledge]] = {}
        for row in rows:
            knowledge.setdefault(row[0], []).append(
                ModuleKnowledge(
                    id=row[2],
                    type=row[1],
                    title=row[3],
                    confidence=row[4],
                    edge_confidence=row[5],
                )
            )
        cap = self._config.orient.max_knowledge_per_module
        for module in modules:
            module.knowledge = knowledge.get(module.path, [])[:cap]
        return modules

    @staticmethod
    def _decisions(session: Session, limit: int) -> list[DecisionDigest]:
        with db_step("query decisions"):
            rows = session.execute(text(_DECISIONS_SQL), {"limit": limit}).all()
        return [
            DecisionDigest(
                id=row[0],
                title=row[1],
                reasoning=row[2] or "",
                confidence=row[3],
                updated_at=row[4],
                drift_status=row[5],
            )
            for row in rows
        ]

    @staticmethod
    def _patterns(session: Session, limit: int | None) -> list[PatternDigest]:
        # LIMIT -1 is unbounded in SQLite
        with db_step("query patterns"):
            rows = session.execute(text(_PATTERNS_SQL), {"limit": limit or -1}).all()
        return [
            PatternDigest(
                id=row[0],
                title=row[1],
                description=row[2] or "",
                confidence=row[3],
                updated_at=row[4],
                drift_status=row[5],
            )
            for row in rows
        ]

    def _entry_points(self, session: Session) -> list[str]:
        orient = self._config.orient
        with db_step("query entry points"):
            paths = session.exec(
                select(File.path)
                .join(Package, col(Package.id) == col(File.package_id))
                .where(col(Package.name).in_(orient.entry_package_names))
                .order_by(col(File.path))
            ).all()
        names = set(orient.entry_file_names)
        return [p for p in paths if PurePosixPath(p).name in names]

    @staticmethod
    def _dependency_flow(session: Session) -> list[DependencyEdge]:
        with db_step("query dependency flow"):
            rows = session.execute(text(_DEPENDENCY_FLOW_SQL)).all()
        grouped: dict[str, list[str]] = {}
        for from_pkg, to_pkg in rows:
            grouped.setdefault(from_pkg, []).append(to_pkg)
        return [
            DependencyEdge(from_=source, to=sorted(targets))
            for source, targets in sorted(grouped.items())
        ]

    def _apply_heat(self, root: Path, modules: Sequence[ModuleSummary]) -> None:
        orient = self._config.orient
        since = datetime.now(UTC) - timedelta(days=orient.heat_window_days)
        counts = self._probes.touch_counts(root, since)
        totals = attribute_touches(counts, (m.path for m in modules))
        for module in modules:
            touches = totals.get(module.path, 0)
            module.recent_commits = touches
            module.heat = classify_heat(touches, orient.heat_hot_threshold)

"""Plain-text rendering of the orient payload."""

from __future__ import annotations

from recon.orient.models import ModuleKnowledge, Payload


def _dependency_line(payload: Payload) -> str | None:
    flow = payload.architecture.dependency_flow
    if not flow:
        return None

    top = {m.path for m in payload.modules}
    clauses: list[str] = []
    for edge in flow:
        if edge.from_ not in top:
            continue
        targets = [to for to in edge.to if to in top]
        if not targets:
            continue
        if len(targets) == 1:
            clauses.append(f"{edge.from_} → {targets[0]}")
        else:
            clauses.append(f"{edge.from_} → {{{', '.join(targets)}}}")

    if not clauses:
        return f"Dependency flow: {len(flow)} edges (none between top modules)"
    line = f"Dependency flow: {'; '.join(clauses)}"
    if len(flow) > len(clauses):
        line += f" (+{len(flow) - len(clauses)} more)"
    return line


def _knowledge_line(k: ModuleKnowledge) -> str:
    conf = k.confidence
    if k.edge_confidence and k.edge_confidence != k.confidence:
        conf = f"{k.confidence}, edge={k.edge_confidence}"
    return f"    {k.type} #{k.id}: {k.title} [{conf}]"


def render_text(payload: Payload) -> str:
    """Render ``payload`` in the fixed section order used at session start."""
    lines: list[str] = [
        f"Project: {payload.project.name}",
        f"Language: {payload.project.language}",
        f"Module: {payload.project.module_path}",
    ]
    entry_points = payload.architecture.entry_points
    lines.append(f"Entry points: {', '.join(entry_points) if entry_points else '(none)'}")
    dependency = _dependency_line(payload)
    if dependency:
        lines.append(dependency)
    lines.append("")

    freshness = payload.freshness
    if freshness.is_stale:
        lines.append(f"STALE CONTEXT: {freshness.reason}")
        if freshness.stale_summary:
            lines.append(f"Changes: {freshness.stale_summary}")
        if freshness.last_sync_at:
            lines.append(f"Last sync: {freshness.last_sync_at}")
        lines.append("")

    s = payload.summary
    lines.append(
        f"Summary: files={s.file_count} symbols={s.symbol_count} "
        f"packages={s.package_count} decisions={s.decision_count}"
    )
    lines.append("")

    lines.append("Modules:")
    if not payload.modules:
        lines.append("- (none)")
    for m in payload.modules:
        lines.append(
            f"- {m.path} ({m.name}): {m.file_count} files, {m.line_count} lines "
            f"[{m.heat.upper()}]"
        )
        lines.extend(_knowledge_line(k) for k in m.knowledge)
    lines.append("")

    lines.append("Active decisions:")
    if not payload.active_decisions:
        lines.append("- (none)")
    for d in payload.active_decisions:
        lines.append(
            f"- #{d.id} {d.title} [{d.confidence}] drift={d.drift_status} updated={d.updated_at}"
        )
        if d.reasoning:
            lines.append(f"  Why: {d.reasoning}")

    if payload.active_patterns:
        lines.extend(("", "Active patterns:"))
        for p in payload.active_patterns:
            lines.append(f"- #{p.id} {p.title} [{p.confidence}] drift={p.drift_status}")
            if p.description:
                lines.append(f"  Why: {p.description}")

    if payload.recent_activity:
        lines.extend(("", "Recent activity:"))
        lines.extend(f"- {a.file} ({a.last_modified})" for a in payload.recent_activity)

    if payload.warnings:
        lines.extend(("", "Warnings:"))
        lines.extend(f"- {w}" for w in payload.warnings)

    return "\n".join(lines).strip() + "\n"

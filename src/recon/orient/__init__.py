"""Orient payload assembly and rendering."""

from recon.orient.models import (
    Architecture,
    DecisionDigest,
    DependencyEdge,
    ModuleKnowledge,
    ModuleSummary,
    PatternDigest,
    Payload,
    ProjectInfo,
    RecentActivity,
    Summary,
)
from recon.orient.render import render_text
from recon.orient.service import BuildOptions, OrientService

__all__ = [
    "Architecture",
    "BuildOptions",
    "DecisionDigest",
    "DependencyEdge",
    "ModuleKnowledge",
    "ModuleSummary",
    "OrientService",
    "PatternDigest",
    "Payload",
    "ProjectInfo",
    "RecentActivity",
    "Summary",
    "render_text",
]

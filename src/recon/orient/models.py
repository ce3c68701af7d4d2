"""Orient payload: the session-start snapshot handed to an agent."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from recon.freshness.oracle import Freshness

Heat = Literal["hot", "warm", "cold"]


class ProjectInfo(BaseModel):
    name: str
    module_path: str
    language: str


class DependencyEdge(BaseModel):
    """Internal imports of one package, serialized as ``{"from", "to"}``."""

    model_config = ConfigDict(populate_by_name=True)

    from_: str = Field(alias="from")
    to: list[str] = Field(default_factory=list)


class Architecture(BaseModel):
    entry_points: list[str] = Field(default_factory=list)
    dependency_flow: list[DependencyEdge] = Field(default_factory=list)


class Summary(BaseModel):
    file_count: int = 0
    symbol_count: int = 0
    package_count: int = 0
    decision_count: int = 0


class ModuleKnowledge(BaseModel):
    """A decision or pattern attached to a module by an edge."""

    id: int
    type: str
    title: str
    confidence: str
    edge_confidence: str = ""


class ModuleSummary(BaseModel):
    path: str
    name: str
    file_count: int
    line_count: int
    heat: Heat = "cold"
    recent_commits: int = 0
    knowledge: list[ModuleKnowledge] = Field(default_factory=list)


class DecisionDigest(BaseModel):
    id: int
    title: str
    reasoning: str = ""
    confidence: str
    updated_at: str
    drift_status: str = "ok"


class PatternDigest(BaseModel):
    id: int
    title: str
    description: str = ""
    confidence: str
    updated_at: str
    drift_status: str = "ok"


class RecentActivity(BaseModel):
    file: str
    last_modified: str


class Payload(BaseModel):
    project: ProjectInfo
    architecture: Architecture = Field(default_factory=Architecture)
    freshness: Freshness
    summary: Summary = Field(default_factory=Summary)
    modules: list[ModuleSummary] = Field(default_factory=list)
    active_decisions: list[DecisionDigest] = Field(default_factory=list)
    active_patterns: list[PatternDigest] = Field(default_factory=list)
    recent_activity: list[RecentActivity] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """JSON-ready form with wire field names."""
        return self.model_dump(mode="json", by_alias=True)

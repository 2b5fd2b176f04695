"""Pydantic v2 data models: the data contracts flowing through the engine."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Literal

import networkx as nx
from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator


# ---------------------------------------------------------------------------
# Type aliases
# ---------------------------------------------------------------------------

QualityTier = Literal["low", "medium", "high"]

Dimension = Literal["interests", "semantic", "age", "location", "completeness"]

DIMENSIONS: tuple[Dimension, ...] = (
    "interests", "semantic", "age", "location", "completeness",
)

InterestWeightMap = dict[str, int]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def normalize_interest(tag: str) -> str:
    return "-".join(tag.strip().lower().split())


# ---------------------------------------------------------------------------
# Profile snapshot
# ---------------------------------------------------------------------------

class Profile(BaseModel):
    """Read-only snapshot of a member profile owned by the surrounding product."""

    model_config = ConfigDict(frozen=True)

    id: str
    display_name: str | None = None
    age: int | None = None
    location: str | None = None
    interests: list[str] = Field(default_factory=list)
    bio: str | None = None
    bio_embedding: list[float] | None = None

    @field_validator("interests", mode="before")
    @classmethod
    def _normalize_interests(cls, v):
        if v is None:
            return []
        seen: list[str] = []
        for raw in v:
            tag = normalize_interest(raw)
            if tag and tag not in seen:
                seen.append(tag)
        return seen

    @field_validator("location", mode="before")
    @classmethod
    def _normalize_location(cls, v):
        if v is None:
            return None
        v = str(v).strip()
        return v or None

    @field_validator("bio", mode="before")
    @classmethod
    def _normalize_bio(cls, v):
        if v is None:
            return None
        v = str(v).strip()
        return v or None


# ---------------------------------------------------------------------------
# Scoring / output types
# ---------------------------------------------------------------------------

class InterestScore(BaseModel):
    exact: float = 0.0
    category: float = 0.0
    combined: float = 0.0
    weighted: bool = False
    shared: list[str] = Field(default_factory=list)


class ComponentScores(BaseModel):
    interests: float = 0.0
    semantic: float = 0.5
    age: float = 0.5
    location: float = 0.5
    completeness: float = 0.0


class ComponentContribution(BaseModel):
    score: float
    weight: float
    contribution: float


class PairError(BaseModel):
    dimension: Dimension
    code: str
    message: str


class ScoreRecord(BaseModel):
    """One evaluated, canonicalized pair.  Immutable; later runs replace it."""

    model_config = ConfigDict(frozen=True)

    profile_a_id: str
    profile_b_id: str
    score: float = Field(ge=0.0, le=1.0)
    base_score: float
    tier: QualityTier
    components: dict[Dimension, ComponentContribution]
    interest_detail: InterestScore = Field(default_factory=InterestScore)
    age_difference: int | None = None
    insights: list[str] = Field(default_factory=list)
    diversity_applied: bool = False
    missing_dimensions: list[Dimension] = Field(default_factory=list)
    errors: list[PairError] = Field(default_factory=list)
    calculated_at: datetime = Field(default_factory=_utcnow)

    @property
    def pair(self) -> tuple[str, str]:
        return self.profile_a_id, self.profile_b_id

    @property
    def failed(self) -> bool:
        return bool(self.errors)

    def other(self, profile_id: str) -> str:
        if profile_id == self.profile_a_id:
            return self.profile_b_id
        if profile_id == self.profile_b_id:
            return self.profile_a_id
        raise KeyError(profile_id)

    def involves(self, profile_id: str) -> bool:
        return profile_id in (self.profile_a_id, self.profile_b_id)


class BatchSummary(BaseModel):
    pair_count: int = 0
    average_score: float = 0.0
    distribution: dict[QualityTier, int] = Field(
        default_factory=lambda: {"high": 0, "medium": 0, "low": 0},
    )
    top_matches: list[ScoreRecord] = Field(default_factory=list)
    error_count: int = 0
    skipped_pairs: int = 0
    diversity_enabled: bool = False
    diversity_factor: float = 0.0


class ScoringRun(BaseModel):
    records: list[ScoreRecord] = Field(default_factory=list)
    summary: BatchSummary = Field(default_factory=BatchSummary)


# ---------------------------------------------------------------------------
# Graph / community types
# ---------------------------------------------------------------------------

class MatchGraph(BaseModel):
    threshold: float
    nodes: list[str] = Field(default_factory=list)
    edges: list[ScoreRecord] = Field(default_factory=list)

    def to_networkx(self) -> nx.Graph:
        """Undirected graph with nodes in insertion order and scores as edge weights."""
        g = nx.Graph(threshold=self.threshold)
        g.add_nodes_from(self.nodes)
        for edge in self.edges:
            g.add_edge(edge.profile_a_id, edge.profile_b_id, weight=edge.score, tier=edge.tier)
        return g


class CommunityDescriptor(BaseModel):
    community_id: int
    member_ids: list[str]
    size: int
    dominant_category: str | None = None
    category_interests: list[str] = Field(default_factory=list)
    shared_interests: list[str] = Field(default_factory=list)
    shared_interest_ratio: float = 0.0
    location_cluster: str | None = None
    age_range: str | None = None
    min_age: int | None = None
    max_age: int | None = None
    mean_age: float | None = None
    includes_viewer: bool = False
    description: str = ""


class CommunityReport(BaseModel):
    threshold: float
    communities: list[CommunityDescriptor] = Field(default_factory=list)
    assignments: dict[str, int] = Field(default_factory=dict)
    isolated_ids: list[str] = Field(default_factory=list)
    explanation: str = ""

    @computed_field
    @property
    def isolated_count(self) -> int:
        return len(self.isolated_ids)

    def community_of(self, profile_id: str) -> CommunityDescriptor | None:
        cid = self.assignments.get(profile_id)
        if cid is None:
            return None
        return self.communities[cid]


# ---------------------------------------------------------------------------
# Explanations
# ---------------------------------------------------------------------------

class MatchExplanation(BaseModel):
    profile_id: str
    match_id: str
    compatibility_reason: str = ""
    shared_interests: list[str] = Field(default_factory=list)
    conversation_starters: list[str] = Field(default_factory=list)
    meeting_suggestions: list[str] = Field(default_factory=list)
    is_high_priority: bool = False
    generated: bool = True

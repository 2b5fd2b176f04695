"""Configuration: weights, thresholds, tolerances and model parameters."""

from __future__ import annotations

import math

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from affinity.errors import InvalidConfiguration
from affinity.models import normalize_interest

WEIGHT_SUM_TOLERANCE = 1e-6


class _FrozenConfig(BaseModel):
    """Immutable config model whose validation failures surface as InvalidConfiguration."""

    model_config = ConfigDict(frozen=True)

    def __init__(self, **data):
        try:
            super().__init__(**data)
        except ValidationError as exc:
            raise InvalidConfiguration(str(exc)) from exc

    def revalidated(self):
        """A freshly validated copy; ``model_copy(update=...)`` skips validation."""
        return type(self)(**self.model_dump())


class ScoringWeights(_FrozenConfig):
    interests: float = Field(default=0.35, ge=0.0, le=1.0)
    semantic: float = Field(default=0.25, ge=0.0, le=1.0)
    age: float = Field(default=0.15, ge=0.0, le=1.0)
    location: float = Field(default=0.15, ge=0.0, le=1.0)
    completeness: float = Field(default=0.10, ge=0.0, le=1.0)

    @model_validator(mode="after")
    def _check_sum(self) -> ScoringWeights:
        total = self.interests + self.semantic + self.age + self.location + self.completeness
        if not math.isclose(total, 1.0, abs_tol=WEIGHT_SUM_TOLERANCE):
            raise InvalidConfiguration(f"scoring weights must sum to 1.0, got {total:.6f}")
        return self

    def as_dict(self) -> dict[str, float]:
        return self.model_dump()


class InterestBlend(BaseModel):
    exact: float = 0.6
    category: float = 0.4


class TierThresholds(_FrozenConfig):
    """Lower bounds for the ``medium`` and ``high`` quality tiers.

    Two calibrations exist in the wild (0.4/0.7 and 0.6/0.8); 0.4/0.7 is the
    default and the other can be configured.
    """

    medium: float = Field(default=0.4, ge=0.0, le=1.0)
    high: float = Field(default=0.7, ge=0.0, le=1.0)

    @model_validator(mode="after")
    def _check_order(self) -> TierThresholds:
        if self.medium > self.high:
            raise InvalidConfiguration(
                f"medium tier threshold {self.medium} exceeds high tier threshold {self.high}"
            )
        return self


class LocationTiers(BaseModel):
    exact: float = 1.0
    adjacent: float = 0.7
    wide: float = 0.3
    distant: float = 0.0


class ProximityRadii(BaseModel):
    adjacent_km: float = Field(default=5.0, gt=0.0)
    wide_km: float = Field(default=15.0, gt=0.0)


class CommunitySettings(BaseModel):
    shared_interest_ratio: float = Field(default=0.4, ge=0.0, le=1.0)
    location_coverage: float = Field(default=0.5, ge=0.0, le=1.0)
    max_shared_interests: int = 3
    max_category_interests: int = 3


class Settings(BaseSettings):
    anthropic_api_key: str = ""
    anthropic_model: str = "claude-sonnet-4-20250514"
    anthropic_fast_model: str = "claude-3-haiku-20240307"

    embedding_model: str = "all-MiniLM-L6-v2"

    weights: ScoringWeights = ScoringWeights()
    interest_blend: InterestBlend = InterestBlend()
    tiers: TierThresholds = TierThresholds()
    location_tiers: LocationTiers = LocationTiers()
    radii: ProximityRadii = ProximityRadii()
    community: CommunitySettings = CommunitySettings()

    age_tolerance: int = 5
    neutral_default: float = 0.5
    default_interest_weight: int = 3

    diversity_factor: float = 0.1

    match_threshold: float = 0.5
    top_k: int = 5
    max_workers: int = 8

    model_config = SettingsConfigDict(
        env_prefix="AFFINITY_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
    )


settings = Settings()


def validate_threshold(threshold: float) -> float:
    if not 0.0 <= threshold <= 1.0:
        raise InvalidConfiguration(f"threshold must be within [0, 1], got {threshold}")
    return float(threshold)


class ScoringConfig(_FrozenConfig):
    """Per-run scoring configuration, validated before any pair is scored."""

    weights: ScoringWeights = Field(default_factory=lambda: settings.weights)
    tiers: TierThresholds = Field(default_factory=lambda: settings.tiers)
    enable_diversity: bool = False
    diversity_factor: float = Field(default_factory=lambda: settings.diversity_factor)
    interest_weights: dict[str, int] | None = None
    age_tolerance: int = Field(default_factory=lambda: settings.age_tolerance, gt=0)
    top_k: int = Field(default_factory=lambda: settings.top_k, ge=0)
    seed: int | None = None
    include_insights: bool = True

    @field_validator("diversity_factor")
    @classmethod
    def _check_diversity(cls, v: float) -> float:
        if not 0.0 <= v <= 1.0:
            raise InvalidConfiguration(f"diversity factor must be within [0, 1], got {v}")
        return v

    @field_validator("interest_weights")
    @classmethod
    def _check_interest_weights(cls, v: dict[str, int] | None) -> dict[str, int] | None:
        if v is None:
            return None
        normalized: dict[str, int] = {}
        for tag, weight in v.items():
            if not 1 <= weight <= 5:
                raise InvalidConfiguration(
                    f"interest weight for {tag!r} must be within 1-5, got {weight}"
                )
            normalized[normalize_interest(tag)] = weight
        return normalized

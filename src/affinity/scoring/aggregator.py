"""Score aggregator: weighted sum of component scores, optional diversity, tiering."""

from __future__ import annotations

import logging
from dataclasses import dataclass

import numpy as np

from affinity.config import ScoringWeights, TierThresholds, settings
from affinity.models import (
    DIMENSIONS,
    ComponentContribution,
    ComponentScores,
    Dimension,
    QualityTier,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AggregateResult:
    base_score: float
    score: float
    tier: QualityTier
    components: dict[Dimension, ComponentContribution]
    diversity_applied: bool


def classify_tier(score: float, thresholds: TierThresholds | None = None) -> QualityTier:
    t = thresholds or settings.tiers
    if score >= t.high:
        return "high"
    if score >= t.medium:
        return "medium"
    return "low"


def base_score(components: ComponentScores, weights: ScoringWeights | None = None) -> float:
    w = weights or settings.weights
    return (
        w.interests * components.interests
        + w.semantic * components.semantic
        + w.age * components.age
        + w.location * components.location
        + w.completeness * components.completeness
    )


def apply_diversity(score: float, factor: float, rng: np.random.Generator) -> float:
    """Perturb by U(-factor, +factor) and clamp back into [0, 1]."""
    if factor <= 0:
        return min(max(score, 0.0), 1.0)
    adjusted = score + rng.uniform(-factor, factor)
    return float(min(max(adjusted, 0.0), 1.0))


def aggregate(
    components: ComponentScores,
    weights: ScoringWeights | None = None,
    diversity_factor: float = 0.0,
    enable_diversity: bool = False,
    rng: np.random.Generator | None = None,
    thresholds: TierThresholds | None = None,
) -> AggregateResult:
    """Combine component scores into one compatibility score.

    Pure: randomness only enters through ``rng``, which must be supplied when
    diversity is enabled so callers control seeding.
    """
    w = weights or settings.weights
    weight_map = w.as_dict()

    contributions: dict[Dimension, ComponentContribution] = {}
    for dim in DIMENSIONS:
        value = getattr(components, dim)
        contributions[dim] = ComponentContribution(
            score=value,
            weight=weight_map[dim],
            contribution=value * weight_map[dim],
        )

    base = base_score(components, w)
    if enable_diversity:
        if rng is None:
            raise ValueError("diversity requires an explicit random generator")
        final = apply_diversity(base, diversity_factor, rng)
    else:
        final = min(max(base, 0.0), 1.0)

    tier = classify_tier(final, thresholds)
    logger.debug(
        "Aggregate: base=%.3f final=%.3f tier=%s diversity=%s",
        base, final, tier, enable_diversity,
    )
    return AggregateResult(
        base_score=base,
        score=final,
        tier=tier,
        components=contributions,
        diversity_applied=enable_diversity,
    )

"""Similarity primitives: one dimension at a time, each score in [0.0, 1.0].

  - interests    exact (or weighted) Jaccard blended with taxonomy-cluster Jaccard
  - semantic     cosine similarity of bio embeddings, remapped to [0, 1]
  - age          tiered by multiples of a tolerance window
  - location     tiered by a pluggable proximity function
  - completeness fraction of filled profile fields, averaged over the pair

A dimension whose input is missing on either side scores the neutral default
(0.5) so an unknown neither helps nor hurts the pair.
"""

from __future__ import annotations

import logging
from typing import Iterable, Sequence

import numpy as np

from affinity.config import settings
from affinity.errors import DimensionMismatch
from affinity.location import ProximityFn, default_proximity
from affinity.models import Dimension, InterestScore, InterestWeightMap, Profile
from affinity.taxonomy import cluster_set

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Interests
# ---------------------------------------------------------------------------

def jaccard(a: Iterable[str], b: Iterable[str]) -> float:
    set_a, set_b = set(a), set(b)
    if not set_a or not set_b:
        return 0.0
    return len(set_a & set_b) / len(set_a | set_b)


def weighted_jaccard(
    a: Iterable[str],
    b: Iterable[str],
    weights: InterestWeightMap | None = None,
    default_weight: int | None = None,
) -> float:
    """Jaccard where each item counts its importance weight instead of 1."""
    set_a, set_b = set(a), set(b)
    if not set_a or not set_b:
        return 0.0
    weights = weights or {}
    fallback = default_weight if default_weight is not None else settings.default_interest_weight

    intersection = 0.0
    union = 0.0
    for item in set_a | set_b:
        w = weights.get(item, fallback)
        union += w
        if item in set_a and item in set_b:
            intersection += w
    return intersection / union if union else 0.0


def category_similarity(a: Iterable[str], b: Iterable[str]) -> float:
    return jaccard(cluster_set(a), cluster_set(b))


def interest_similarity(
    a: Sequence[str],
    b: Sequence[str],
    weights: InterestWeightMap | None = None,
) -> InterestScore:
    if not a or not b:
        return InterestScore(weighted=weights is not None)

    blend = settings.interest_blend
    exact = weighted_jaccard(a, b, weights) if weights is not None else jaccard(a, b)
    if cluster_set(a) or cluster_set(b):
        category = category_similarity(a, b)
    else:
        # Neither side touches the taxonomy; the literal overlap is all we know.
        category = exact
    combined = min(max(blend.exact * exact + blend.category * category, 0.0), 1.0)
    shared = [tag for tag in a if tag in set(b)]
    return InterestScore(
        exact=exact,
        category=category,
        combined=combined,
        weighted=weights is not None,
        shared=shared,
    )


# ---------------------------------------------------------------------------
# Semantic (bio embeddings)
# ---------------------------------------------------------------------------

def cosine_similarity(a: np.ndarray, b: np.ndarray) -> float:
    """Raw cosine in [-1, 1]; 0.0 when either vector has zero norm."""
    dot = np.dot(a, b)
    norm = np.linalg.norm(a) * np.linalg.norm(b)
    if norm == 0:
        return 0.0
    return float(np.clip(dot / norm, -1.0, 1.0))


def semantic_similarity(
    a: Sequence[float] | None,
    b: Sequence[float] | None,
) -> float:
    """Bio similarity remapped from cosine's [-1, 1] onto [0, 1] via (cos + 1) / 2.

    Missing embeddings score the neutral default.  Zero-norm vectors score
    0.0.  Raises DimensionMismatch for a present-but-empty embedding or for
    vectors of unequal length.
    """
    if a is None or b is None:
        return settings.neutral_default

    vec_a = np.asarray(a, dtype=float)
    vec_b = np.asarray(b, dtype=float)
    if vec_a.size == 0 or vec_b.size == 0:
        raise DimensionMismatch(
            f"empty bio embedding ({vec_a.size} vs {vec_b.size} dims)",
        )
    if vec_a.shape != vec_b.shape:
        raise DimensionMismatch(
            f"bio embeddings differ in length ({vec_a.size} vs {vec_b.size} dims)",
        )
    if not np.any(vec_a) or not np.any(vec_b):
        logger.debug("Zero-norm bio embedding, semantic similarity is 0")
        return 0.0

    return (cosine_similarity(vec_a, vec_b) + 1.0) / 2.0


# ---------------------------------------------------------------------------
# Age
# ---------------------------------------------------------------------------

_AGE_TIERS: tuple[tuple[int, float], ...] = ((1, 1.0), (2, 0.8), (3, 0.5), (4, 0.3))
_AGE_FLOOR = 0.1


def age_compatibility(
    age_a: int | None,
    age_b: int | None,
    tolerance: int | None = None,
) -> float:
    if age_a is None or age_b is None:
        return settings.neutral_default
    tolerance = tolerance if tolerance is not None else settings.age_tolerance

    diff = abs(age_a - age_b)
    for multiple, score in _AGE_TIERS:
        if diff <= tolerance * multiple:
            return score
    # Large gaps bottom out at the floor, never zero.
    return _AGE_FLOOR


# ---------------------------------------------------------------------------
# Location
# ---------------------------------------------------------------------------

def location_proximity(
    loc_a: str | None,
    loc_b: str | None,
    proximity: ProximityFn | None = None,
) -> float:
    if not loc_a or not loc_b:
        return settings.neutral_default
    tier = (proximity or default_proximity)(loc_a, loc_b)
    return getattr(settings.location_tiers, tier)


# ---------------------------------------------------------------------------
# Completeness
# ---------------------------------------------------------------------------

def profile_completeness(profile: Profile) -> float:
    filled = [
        profile.bio is not None,
        bool(profile.interests),
        profile.age is not None,
        profile.location is not None,
    ]
    return sum(filled) / len(filled)


def completeness_bonus(a: Profile, b: Profile) -> float:
    return (profile_completeness(a) + profile_completeness(b)) / 2.0


# ---------------------------------------------------------------------------
# Pair-level helpers
# ---------------------------------------------------------------------------

def evaluable_dimensions(a: Profile, b: Profile) -> list[Dimension]:
    """Dimensions whose inputs are present on both profiles."""
    dims: list[Dimension] = []
    if a.interests and b.interests:
        dims.append("interests")
    if a.bio_embedding is not None and b.bio_embedding is not None:
        dims.append("semantic")
    if a.age is not None and b.age is not None:
        dims.append("age")
    if a.location and b.location:
        dims.append("location")
    return dims


def missing_dimensions(a: Profile, b: Profile) -> list[Dimension]:
    """Dimensions scored with the neutral default because an input is absent."""
    present = set(evaluable_dimensions(a, b))
    return [d for d in ("semantic", "age", "location") if d not in present]

"""Pairwise scoring driver: every unordered pair once, fanned out over workers.

Each pair reads two immutable profile snapshots and writes one independent
ScoreRecord, so pairs are scored on a thread pool with no shared mutable
state.  The summary (count, average, tier distribution, top-K) is the single
reduction step after all pairs complete.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Callable, Iterable, Iterator, Sequence

import numpy as np

from affinity.config import ScoringConfig, settings, validate_threshold
from affinity.errors import AffinityError
from affinity.location import ProximityFn
from affinity.models import (
    BatchSummary,
    ComponentScores,
    PairError,
    Profile,
    ScoreRecord,
    ScoringRun,
)
from affinity.scoring.aggregator import aggregate
from affinity.scoring.insights import generate_insights
from affinity.similarity import (
    age_compatibility,
    completeness_bonus,
    evaluable_dimensions,
    interest_similarity,
    location_proximity,
    missing_dimensions,
    semantic_similarity,
)

logger = logging.getLogger(__name__)


def canonical_pair(a: Profile, b: Profile) -> tuple[Profile, Profile]:
    return (a, b) if a.id <= b.id else (b, a)


def iter_pairs(
    profiles: Sequence[Profile],
    target_id: str | None = None,
) -> Iterator[tuple[Profile, Profile]]:
    """Yield each unordered pair once (i < j), never pairing an id with itself.

    With ``target_id`` only pairs involving that profile are yielded, still in
    i < j order.
    """
    n = len(profiles)
    if target_id is None:
        for i in range(n):
            for j in range(i + 1, n):
                if profiles[i].id != profiles[j].id:
                    yield profiles[i], profiles[j]
        return

    target_idx = [i for i, p in enumerate(profiles) if p.id == target_id]
    if not target_idx:
        logger.warning("Target profile %s not in population", target_id)
        return
    t = target_idx[0]
    for k in range(n):
        if profiles[k].id == target_id:
            continue
        i, j = (k, t) if k < t else (t, k)
        yield profiles[i], profiles[j]


def score_pair(
    a: Profile,
    b: Profile,
    config: ScoringConfig | None = None,
    rng: np.random.Generator | None = None,
    proximity: ProximityFn | None = None,
) -> ScoreRecord:
    """Score one pair.  Per-pair embedding errors are recorded, never raised."""
    config = config or ScoringConfig()
    a, b = canonical_pair(a, b)

    interest = interest_similarity(a.interests, b.interests, config.interest_weights)

    errors: list[PairError] = []
    missing = missing_dimensions(a, b)
    try:
        semantic = semantic_similarity(a.bio_embedding, b.bio_embedding)
    except AffinityError as exc:
        logger.warning("Semantic score failed for %s<->%s: %s", a.id, b.id, exc)
        errors.append(PairError(dimension="semantic", code=exc.code, message=str(exc)))
        semantic = settings.neutral_default
        if "semantic" not in missing:
            missing.insert(0, "semantic")

    components = ComponentScores(
        interests=interest.combined,
        semantic=semantic,
        age=age_compatibility(a.age, b.age, config.age_tolerance),
        location=location_proximity(a.location, b.location, proximity),
        completeness=completeness_bonus(a, b),
    )

    if config.enable_diversity and rng is None:
        rng = np.random.default_rng(config.seed)
    result = aggregate(
        components,
        weights=config.weights,
        diversity_factor=config.diversity_factor,
        enable_diversity=config.enable_diversity,
        rng=rng,
        thresholds=config.tiers,
    )

    insights = (
        generate_insights(a, b, components, interest, result.score)
        if config.include_insights else []
    )
    age_diff = abs(a.age - b.age) if a.age is not None and b.age is not None else None

    logger.debug(
        "Pair %s<->%s: interests=%.3f semantic=%.3f age=%.3f location=%.3f "
        "completeness=%.3f -> %.3f (%s)",
        a.id, b.id, components.interests, components.semantic, components.age,
        components.location, components.completeness, result.score, result.tier,
    )
    return ScoreRecord(
        profile_a_id=a.id,
        profile_b_id=b.id,
        score=result.score,
        base_score=result.base_score,
        tier=result.tier,
        components=result.components,
        interest_detail=interest,
        age_difference=age_diff,
        insights=insights,
        diversity_applied=result.diversity_applied,
        missing_dimensions=missing,
        errors=errors,
    )


def summarize(
    records: Sequence[ScoreRecord],
    config: ScoringConfig | None = None,
    skipped_pairs: int = 0,
) -> BatchSummary:
    config = config or ScoringConfig()
    distribution = {"high": 0, "medium": 0, "low": 0}
    for r in records:
        distribution[r.tier] += 1

    # sorted() is stable, so equal scores keep pair insertion order.
    ranked = sorted(records, key=lambda r: r.score, reverse=True)
    average = sum(r.score for r in records) / len(records) if records else 0.0

    return BatchSummary(
        pair_count=len(records),
        average_score=average,
        distribution=distribution,
        top_matches=ranked[:config.top_k],
        error_count=sum(1 for r in records if r.failed),
        skipped_pairs=skipped_pairs,
        diversity_enabled=config.enable_diversity,
        diversity_factor=config.diversity_factor if config.enable_diversity else 0.0,
    )


def score_population(
    profiles: Iterable[Profile],
    config: ScoringConfig | None = None,
    *,
    target_id: str | None = None,
    max_workers: int | None = None,
    proximity: ProximityFn | None = None,
    progress_callback: Callable[[str, float], None] | None = None,
) -> ScoringRun:
    config = (config or ScoringConfig()).revalidated()
    population = list(profiles)

    def _progress(label: str, frac: float) -> None:
        if progress_callback:
            progress_callback(label, frac)

    if len(population) < 2:
        logger.info("Population of %d profile(s), nothing to score", len(population))
        return ScoringRun(summary=summarize([], config))

    candidates: list[tuple[Profile, Profile]] = []
    skipped = 0
    for a, b in iter_pairs(population, target_id):
        if evaluable_dimensions(a, b):
            candidates.append((a, b))
        else:
            skipped += 1
            logger.debug("Skipping %s<->%s: no shared evaluable dimension", a.id, b.id)

    total = len(candidates)
    # Child seed i always belongs to pair i, whichever worker scores it.
    seeds = (
        np.random.SeedSequence(config.seed).spawn(total)
        if config.enable_diversity else None
    )

    def _score(idx: int) -> tuple[int, ScoreRecord]:
        a, b = candidates[idx]
        rng = np.random.default_rng(seeds[idx]) if seeds is not None else None
        return idx, score_pair(a, b, config, rng=rng, proximity=proximity)

    results: list[ScoreRecord | None] = [None] * total
    workers = max_workers if max_workers is not None else settings.max_workers
    _progress("Scoring pairs...", 0.0)

    if workers <= 1 or total < 2:
        for idx in range(total):
            _, results[idx] = _score(idx)
            _progress("Scoring pairs...", (idx + 1) / total)
    else:
        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = [executor.submit(_score, idx) for idx in range(total)]
            for done, future in enumerate(as_completed(futures), start=1):
                idx, record = future.result()
                results[idx] = record
                _progress("Scoring pairs...", done / total)

    records = [r for r in results if r is not None]
    summary = summarize(records, config, skipped_pairs=skipped)
    _progress("Complete", 1.0)
    logger.info(
        "Scored %d pairs from %d profiles (skipped=%d, errors=%d, avg=%.3f)",
        summary.pair_count, len(population), skipped, summary.error_count,
        summary.average_score,
    )
    return ScoringRun(records=records, summary=summary)


def rank_matches_for(
    user_id: str,
    records: Iterable[ScoreRecord],
    *,
    limit: int = 50,
    threshold: float | None = None,
) -> list[ScoreRecord]:
    """A user's matches, best first, optionally filtered by a minimum score."""
    if threshold is not None:
        threshold = validate_threshold(threshold)
    mine = [
        r for r in records
        if r.involves(user_id) and (threshold is None or r.score >= threshold)
    ]
    mine.sort(key=lambda r: r.score, reverse=True)
    return mine[:limit]

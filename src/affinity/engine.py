"""Top-level orchestrator: ties scoring, graph building and clustering together.

Pipeline:
  1. Receive profile snapshots and a scoring config
  2. Validate config and threshold                        (before any work)
  3. Score every unordered pair on a worker pool          (deterministic when seeded)
  4. Threshold the score records into a match graph
  5. Detect and characterize communities
  6. Return records, summary, graph and community report

Steps 4-5 are cheap and are re-run through ``regroup`` whenever the threshold
changes; the scored records are reused.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Callable, Iterable

from pydantic import BaseModel

from affinity.config import ScoringConfig, settings, validate_threshold
from affinity.graph.builder import build_match_graph
from affinity.graph.communities import detect_communities
from affinity.location import ProximityFn, are_nearby, nearby_from
from affinity.models import CommunityReport, MatchGraph, Profile, ScoringRun
from affinity.scoring.pairwise import score_population

logger = logging.getLogger(__name__)

DATA_DIR = Path(__file__).resolve().parent.parent.parent / "data"


class AnalysisResult(BaseModel):
    run: ScoringRun
    graph: MatchGraph
    communities: CommunityReport


def load_profiles_from_json(data: list[dict]) -> list[Profile]:
    return [Profile(**p) for p in data]


def load_sample_profiles() -> list[Profile]:
    path = DATA_DIR / "sample_profiles.json"
    with open(path) as f:
        raw = json.load(f)
    return load_profiles_from_json(raw)


def regroup(
    result: AnalysisResult,
    profiles: Iterable[Profile],
    threshold: float,
    *,
    viewer_id: str | None = None,
    proximity: ProximityFn | None = None,
) -> AnalysisResult:
    """Rebuild the graph and communities at a new threshold, reusing the scores.

    Geographic clustering treats codes as nearby exactly when ``proximity``
    scores them exact or adjacent.
    """
    profiles = list(profiles)
    graph = build_match_graph(result.run.records, threshold, population=profiles)
    nearby = nearby_from(proximity) if proximity is not None else are_nearby
    report = detect_communities(graph, profiles, viewer_id=viewer_id, nearby=nearby)
    return AnalysisResult(run=result.run, graph=graph, communities=report)


def run(
    profiles: Iterable[Profile],
    config: ScoringConfig | None = None,
    *,
    threshold: float | None = None,
    viewer_id: str | None = None,
    target_id: str | None = None,
    max_workers: int | None = None,
    proximity: ProximityFn | None = None,
    progress_callback: Callable[[str, float], None] | None = None,
) -> AnalysisResult:
    config = (config or ScoringConfig()).revalidated()
    threshold = validate_threshold(
        threshold if threshold is not None else settings.match_threshold,
    )
    profiles = list(profiles)

    def _progress(label: str, frac: float) -> None:
        if progress_callback:
            progress_callback(label, frac)

    def _scoring_progress(label: str, frac: float) -> None:
        _progress(label, frac * 0.8)

    scoring = score_population(
        profiles,
        config,
        target_id=target_id,
        max_workers=max_workers,
        proximity=proximity,
        progress_callback=_scoring_progress,
    )

    _progress("Detecting communities...", 0.8)
    result = regroup(
        AnalysisResult(
            run=scoring,
            graph=MatchGraph(threshold=threshold),
            communities=CommunityReport(threshold=threshold),
        ),
        profiles,
        threshold,
        viewer_id=viewer_id,
        proximity=proximity,
    )
    _progress("Complete", 1.0)

    logger.info(
        "Analysis complete: %d profiles, %d pairs scored, %d edges at %.2f, "
        "%d communities, %d isolated",
        len(profiles), scoring.summary.pair_count, len(result.graph.edges),
        threshold, len(result.communities.communities),
        result.communities.isolated_count,
    )
    return result

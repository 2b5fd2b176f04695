"""Match graph builder: threshold score records into an undirected graph."""

from __future__ import annotations

import logging
from typing import Iterable

from affinity.config import validate_threshold
from affinity.models import MatchGraph, Profile, ScoreRecord

logger = logging.getLogger(__name__)


def build_match_graph(
    records: Iterable[ScoreRecord],
    threshold: float,
    population: Iterable[Profile | str] | None = None,
) -> MatchGraph:
    """Keep records scoring at or above ``threshold`` as edges.

    Nodes are the population ids in input order followed by any ids first seen
    in the records, so isolated members stay visible.
    """
    threshold = validate_threshold(threshold)
    records = list(records)

    nodes: dict[str, None] = {}
    for member in population or ():
        nodes[member if isinstance(member, str) else member.id] = None
    for r in records:
        nodes.setdefault(r.profile_a_id, None)
        nodes.setdefault(r.profile_b_id, None)

    edges = [r for r in records if r.score >= threshold]
    logger.debug(
        "Match graph at %.2f: %d nodes, %d/%d edges",
        threshold, len(nodes), len(edges), len(records),
    )
    return MatchGraph(threshold=threshold, nodes=list(nodes), edges=edges)

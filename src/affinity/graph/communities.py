"""Community detector: connected components of the match graph, characterized.

A single pass per call:

  1. Load the match graph into networkx and take its connected components,
     discovered in node insertion order.
  2. Components with two or more members become communities numbered 0..k-1
     in discovery order; singletons are reported as isolated nodes.
  3. Each community is characterized by its dominant interest category, the
     interests most members share, a geographic cluster, an age range, and
     whether the current viewer belongs to it.

Community ids are only meaningful within one report.  A new threshold or
population can merge, split, or renumber every community.
"""

from __future__ import annotations

import logging
import math
from collections import Counter
from typing import Iterable, Mapping

import networkx as nx

from affinity.config import CommunitySettings, settings
from affinity.location import NearbyFn, are_nearby, cluster_locations
from affinity.models import CommunityDescriptor, CommunityReport, MatchGraph, Profile
from affinity.taxonomy import primary_cluster

logger = logging.getLogger(__name__)


def connected_components(graph: MatchGraph) -> list[list[str]]:
    """Components in discovery order, each listing its members in node order."""
    g = graph.to_networkx()
    order = {node: i for i, node in enumerate(g)}
    return [
        sorted(component, key=order.__getitem__)
        for component in nx.connected_components(g)
    ]


# ---------------------------------------------------------------------------
# Characterization
# ---------------------------------------------------------------------------

def category_label(category: str) -> str:
    return category.replace("-", " ").title()


def dominant_category(
    members: list[Profile],
    max_interests: int = 3,
) -> tuple[str | None, list[str]]:
    """Bucket every interest hit into its primary cluster; the biggest bucket wins.

    Ties go to the bucket reached first.  Returns the category and its most
    frequent literal interests.
    """
    hits: dict[str, list[str]] = {}
    for member in members:
        for interest in member.interests:
            cluster = primary_cluster(interest)
            if cluster is not None:
                hits.setdefault(cluster, []).append(interest)

    best: str | None = None
    best_count = 0
    for cluster, interests in hits.items():
        if len(interests) > best_count:
            best, best_count = cluster, len(interests)

    if best is None:
        return None, []
    top = [tag for tag, _ in Counter(hits[best]).most_common(max_interests)]
    return best, top


def shared_interests(
    members: list[Profile],
    min_ratio: float,
    limit: int = 3,
) -> tuple[list[str], float]:
    """Interests held by at least ``min_ratio`` of members, most common first."""
    if not members:
        return [], 0.0
    counts = Counter(tag for m in members for tag in m.interests)
    qualifying = [
        (tag, n) for tag, n in counts.most_common()
        if n >= len(members) * min_ratio
    ]
    top = qualifying[:limit]
    ratio = top[0][1] / len(members) if top else 0.0
    return [tag for tag, _ in top], ratio


def location_cluster(
    members: list[Profile],
    nearby: NearbyFn | None = None,
    min_coverage: float = 0.5,
) -> str | None:
    codes = [m.location for m in members if m.location]
    if not codes or not members:
        return None

    clusters = cluster_locations(codes, nearby)
    counts = Counter(codes)
    # Stable sort: equally large clusters keep creation order.
    ranked = sorted(clusters, key=lambda c: sum(counts[code] for code in c), reverse=True)
    largest = ranked[0]
    covered = sum(counts[code] for code in largest)
    if covered < len(members) * min_coverage:
        return None
    if len(largest) == 1:
        return f"{largest[0]} area"
    return f"{largest[0][:3]}xx area"


def age_summary(members: list[Profile]) -> tuple[str | None, int | None, int | None, float | None]:
    ages = [m.age for m in members if m.age is not None]
    if not ages:
        return None, None, None, None
    lo, hi = min(ages), max(ages)
    mean = sum(ages) / len(ages)
    if lo == hi:
        return f"Age {lo}", lo, hi, mean
    return f"Ages {lo}-{hi} (avg {math.floor(mean + 0.5)})", lo, hi, mean


def _describe(desc: CommunityDescriptor) -> str:
    parts = [f"{desc.size} members"]
    if desc.dominant_category:
        focus = f"{category_label(desc.dominant_category)} focus"
        if desc.category_interests:
            focus += f" ({', '.join(desc.category_interests)})"
        parts.append(focus)
    if desc.shared_interests:
        pct = round(desc.shared_interest_ratio * 100)
        readable = ", ".join(tag.replace("-", " ") for tag in desc.shared_interests)
        parts.append(f"{pct}% share: {readable}")
    if desc.location_cluster:
        parts.append(desc.location_cluster)
    if desc.age_range:
        parts.append(desc.age_range)
    if desc.includes_viewer:
        parts.append("YOUR COMMUNITY")
    return " • ".join(parts)


def characterize(
    community_id: int,
    member_ids: list[str],
    profiles: Mapping[str, Profile],
    *,
    viewer_id: str | None = None,
    nearby: NearbyFn | None = None,
    options: CommunitySettings | None = None,
) -> CommunityDescriptor:
    opts = options or settings.community
    members = [profiles[pid] for pid in member_ids if pid in profiles]

    category, category_interests = dominant_category(members, opts.max_category_interests)
    shared, ratio = shared_interests(
        members, opts.shared_interest_ratio, opts.max_shared_interests,
    )
    age_range, min_age, max_age, mean_age = age_summary(members)

    desc = CommunityDescriptor(
        community_id=community_id,
        member_ids=list(member_ids),
        size=len(member_ids),
        dominant_category=category,
        category_interests=category_interests,
        shared_interests=shared,
        shared_interest_ratio=ratio,
        location_cluster=location_cluster(members, nearby, opts.location_coverage),
        age_range=age_range,
        min_age=min_age,
        max_age=max_age,
        mean_age=mean_age,
        includes_viewer=viewer_id is not None and viewer_id in member_ids,
    )
    return desc.model_copy(update={"description": _describe(desc)})


def explain_partition(report: CommunityReport) -> str:
    pct = f"{report.threshold * 100:.0f}%"
    n = len(report.communities)
    isolated = report.isolated_count
    if n == 0 and isolated == 0:
        return f"With minimum score {pct}, there are no members to group."
    if n == 1 and isolated == 0:
        return (
            f"With minimum score {pct}, all members form a single connected "
            "community, suggesting broad compatibility."
        )
    text = f"With minimum score {pct}, members separate into {n} distinct communities"
    if isolated:
        text += f" with {isolated} isolated members"
    text += ". "
    if report.threshold >= 0.5:
        text += "Only strong matches connect at this threshold, showing natural friend groups."
    else:
        text += "Moderate connections are visible at this threshold, showing broader social potential."
    return text


def detect_communities(
    graph: MatchGraph,
    profiles: Iterable[Profile] | Mapping[str, Profile] | None = None,
    *,
    viewer_id: str | None = None,
    nearby: NearbyFn | None = None,
    options: CommunitySettings | None = None,
) -> CommunityReport:
    if profiles is None:
        profile_map: Mapping[str, Profile] = {}
    elif isinstance(profiles, Mapping):
        profile_map = profiles
    else:
        profile_map = {p.id: p for p in profiles}
    nearby = nearby or are_nearby

    communities: list[CommunityDescriptor] = []
    assignments: dict[str, int] = {}
    isolated: list[str] = []

    for component in connected_components(graph):
        if len(component) < 2:
            isolated.extend(component)
            continue
        cid = len(communities)
        communities.append(characterize(
            cid, component, profile_map,
            viewer_id=viewer_id, nearby=nearby, options=options,
        ))
        for pid in component:
            assignments[pid] = cid

    report = CommunityReport(
        threshold=graph.threshold,
        communities=communities,
        assignments=assignments,
        isolated_ids=isolated,
    )
    report = report.model_copy(update={"explanation": explain_partition(report)})
    logger.info(
        "Detected %d communities and %d isolated members at threshold %.2f",
        len(communities), len(isolated), graph.threshold,
    )
    return report

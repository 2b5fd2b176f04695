"""Location proximity: pluggable "nearby" functions over short location codes.

The engine only needs two callables:

  - a ``ProximityFn`` mapping two codes to a proximity tier, used by the
    location similarity primitive
  - a ``NearbyFn`` predicate, used to group community members into
    geographic clusters, derived from the ``ProximityFn`` with
    ``nearby_from`` so that scoring and clustering agree on adjacency

``ZipProximity`` and ``are_nearby`` are the reference implementations for US
postal codes.  Callers with real geodata can pass their own proximity.
"""

from __future__ import annotations

import logging
import math
from typing import Callable, Iterable, Literal

from affinity.config import settings

logger = logging.getLogger(__name__)

ProximityTier = Literal["exact", "adjacent", "wide", "distant"]
ProximityFn = Callable[[str, str], ProximityTier]
NearbyFn = Callable[[str, str], bool]

EARTH_RADIUS_KM = 6371.0

# Approximate centroids (lat, lng) for a sample of Bay Area and Seattle ZIPs.
ZIP_COORDINATES: dict[str, tuple[float, float]] = {
    # San Francisco
    "94102": (37.7795, -122.4187),
    "94103": (37.7725, -122.4116),
    "94107": (37.7599, -122.3997),
    "94108": (37.7924, -122.4091),
    "94109": (37.7930, -122.4215),
    "94110": (37.7484, -122.4156),
    "94111": (37.7987, -122.4007),
    "94112": (37.7209, -122.4436),
    "94114": (37.7581, -122.4351),
    "94115": (37.7857, -122.4367),
    "94116": (37.7449, -122.4856),
    "94117": (37.7707, -122.4486),
    "94118": (37.7823, -122.4625),
    "94121": (37.7787, -122.4934),
    "94122": (37.7585, -122.4757),
    "94123": (37.8007, -122.4380),
    "94124": (37.7324, -122.3937),
    "94127": (37.7354, -122.4598),
    "94131": (37.7419, -122.4370),
    "94132": (37.7238, -122.4839),
    "94133": (37.8009, -122.4111),
    "94134": (37.7191, -122.4135),
    # Oakland
    "94601": (37.7800, -122.2166),
    "94606": (37.7914, -122.2409),
    "94607": (37.8072, -122.2981),
    "94608": (37.8335, -122.2630),
    "94609": (37.8330, -122.2530),
    "94610": (37.8119, -122.2413),
    "94611": (37.8335, -122.2002),
    "94612": (37.8044, -122.2712),
    # Berkeley
    "94702": (37.8659, -122.2909),
    "94703": (37.8710, -122.2761),
    "94704": (37.8670, -122.2577),
    "94705": (37.8591, -122.2420),
    "94706": (37.8805, -122.3041),
    "94707": (37.8930, -122.2410),
    "94708": (37.8900, -122.2640),
    "94709": (37.8804, -122.2676),
    "94710": (37.8670, -122.3020),
    # San Jose
    "95110": (37.3382, -121.8990),
    "95112": (37.3564, -121.8881),
    "95113": (37.3334, -121.8850),
    "95116": (37.3540, -121.8463),
    "95117": (37.3089, -121.9525),
    "95118": (37.2486, -121.8944),
    "95119": (37.2290, -121.7846),
    "95120": (37.2180, -121.8616),
    # Palo Alto
    "94301": (37.4435, -122.1495),
    "94303": (37.4170, -122.1260),
    "94304": (37.4080, -122.1170),
    "94305": (37.4250, -122.1750),
    "94306": (37.3770, -122.1110),
    # Seattle
    "98101": (47.6113, -122.3305),
    "98102": (47.6306, -122.3215),
    "98103": (47.6734, -122.3427),
    "98104": (47.6026, -122.3258),
    "98105": (47.6633, -122.3037),
    "98109": (47.6338, -122.3428),
    "98115": (47.6859, -122.2974),
    "98122": (47.6097, -122.3032),
}


def haversine_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    d_lat = math.radians(lat2 - lat1)
    d_lng = math.radians(lng2 - lng1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2))
        * math.sin(d_lng / 2) ** 2
    )
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def zip_distance_km(zip_a: str, zip_b: str) -> float | None:
    """Distance between two known ZIP centroids, or None if either is unknown."""
    coord_a = ZIP_COORDINATES.get(zip_a)
    coord_b = ZIP_COORDINATES.get(zip_b)
    if coord_a is None or coord_b is None:
        return None
    return haversine_km(*coord_a, *coord_b)


def _numeric(code: str) -> int | None:
    return int(code) if code.isdigit() else None


class ZipProximity:
    """Tier two postal codes by centroid distance, or numeric distance as a fallback."""

    def __init__(
        self,
        adjacent_km: float | None = None,
        wide_km: float | None = None,
        adjacent_step: int = 3,
        wide_step: int = 10,
    ):
        self.adjacent_km = adjacent_km if adjacent_km is not None else settings.radii.adjacent_km
        self.wide_km = wide_km if wide_km is not None else settings.radii.wide_km
        self.adjacent_step = adjacent_step
        self.wide_step = wide_step

    def __call__(self, code_a: str, code_b: str) -> ProximityTier:
        a = code_a.strip().lower()
        b = code_b.strip().lower()
        if a == b:
            return "exact"

        distance = zip_distance_km(a, b)
        if distance is not None:
            if distance <= self.adjacent_km:
                return "adjacent"
            if distance <= self.wide_km:
                return "wide"
            return "distant"

        num_a, num_b = _numeric(a), _numeric(b)
        if num_a is not None and num_b is not None:
            diff = abs(num_a - num_b)
            if diff <= self.adjacent_step:
                return "adjacent"
            if diff <= self.wide_step:
                return "wide"
        return "distant"


default_proximity = ZipProximity()


NEARBY_TIERS: frozenset[str] = frozenset({"exact", "adjacent"})


def nearby_from(proximity: ProximityFn) -> NearbyFn:
    """Clustering predicate that agrees with ``proximity``: exact or adjacent codes."""

    def nearby(code_a: str, code_b: str) -> bool:
        return proximity(code_a, code_b) in NEARBY_TIERS

    return nearby


def are_nearby(code_a: str, code_b: str) -> bool:
    """True when the default proximity puts two codes in the same or an adjacent area."""
    return default_proximity(code_a, code_b) in NEARBY_TIERS


def cluster_locations(
    codes: Iterable[str],
    nearby: NearbyFn | None = None,
) -> list[list[str]]:
    """Greedy grouping: each unassigned code seeds a cluster of its nearby codes."""
    nearby = nearby or are_nearby
    unique = list(dict.fromkeys(codes))
    assigned: set[str] = set()
    clusters: list[list[str]] = []
    for seed in unique:
        if seed in assigned:
            continue
        cluster = [seed]
        assigned.add(seed)
        for other in unique:
            if other not in assigned and nearby(seed, other):
                cluster.append(other)
                assigned.add(other)
        clusters.append(cluster)
    logger.debug("Clustered %d location codes into %d groups", len(unique), len(clusters))
    return clusters

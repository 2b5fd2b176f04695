"""Canonical interest taxonomy: topic clusters shared by scoring and clustering.

Both the category half of interest similarity and the community detector's
dominant-category tally read from ``INTEREST_CLUSTERS``.  Bump
``TAXONOMY_VERSION`` whenever membership changes so persisted scores can be
traced back to the taxonomy that produced them.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Iterable

TAXONOMY_VERSION = "2024.2"

# Declaration order matters: it breaks ties when an interest is tallied to a
# single cluster.
INTEREST_CLUSTERS: dict[str, list[str]] = {
    "technology": [
        "tech", "programming", "software-engineering", "data-science",
        "machine-learning", "ai", "nlp", "devops", "cybersecurity",
        "blockchain", "video-games", "esports", "virtual-reality", "gadgets",
    ],
    "wellness": [
        "fitness", "yoga", "pilates", "running", "crossfit", "nutrition",
        "wellness", "meditation", "healthcare", "medical-research",
        "mindfulness",
    ],
    "creative-arts": [
        "art", "design", "photography", "music", "concerts", "writing",
        "creative-writing", "poetry", "painting", "drawing", "illustration",
        "sketching", "dancing", "theater", "film-making",
    ],
    "food": [
        "cooking", "baking", "food", "wine", "coffee", "craft-beer",
        "farmers-markets", "restaurants", "culinary",
    ],
    "entertainment": [
        "gaming", "board-games", "movies", "podcasts", "sci-fi", "star-trek",
        "star-wars", "anime", "comedy", "trivia",
    ],
    "pets": ["dogs", "cats", "pets", "animals"],
    "sports": [
        "basketball", "football", "baseball", "soccer", "golf", "tennis",
        "cycling", "hiking", "climbing", "triathlon", "surfing", "skiing",
        "warriors", "giants", "fantasy-football",
    ],
    "business": [
        "startups", "entrepreneurship", "investing", "finance", "marketing",
        "product-management", "real-estate", "networking", "leadership",
    ],
    "social": ["volunteering", "community", "mentoring", "social-impact"],
    "family": ["parenting", "kids", "pta", "playdates", "family", "education"],
    "environment": [
        "sustainability", "climate", "vegan", "organic", "zero-waste",
        "gardening",
    ],
    "intellectual": [
        "books", "reading", "philosophy", "politics", "history",
        "documentaries", "museums", "languages", "travel",
    ],
}


def _segments_contain(interest: str, keyword: str) -> bool:
    return f"-{keyword}-" in f"-{interest}-"


@lru_cache(maxsize=4096)
def _clusters_for(interest: str) -> tuple[str, ...]:
    return tuple(
        cluster
        for cluster, keywords in INTEREST_CLUSTERS.items()
        if any(_segments_contain(interest, kw) for kw in keywords)
    )


def clusters_for(interest: str) -> tuple[str, ...]:
    """All clusters an interest belongs to, in declaration order.

    A keyword matches when it appears in the tag as a whole run of
    hyphen-delimited segments: ``"yoga"`` matches ``"hot-yoga"`` while
    ``"art"`` does not match ``"startups"``.
    """
    return _clusters_for(interest.strip().lower())


def primary_cluster(interest: str) -> str | None:
    clusters = clusters_for(interest)
    return clusters[0] if clusters else None


def cluster_set(interests: Iterable[str]) -> set[str]:
    touched: set[str] = set()
    for interest in interests:
        touched.update(clusters_for(interest))
    return touched

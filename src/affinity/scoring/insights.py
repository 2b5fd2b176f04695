"""Short human-readable insights derived by thresholding component scores."""

from __future__ import annotations

from affinity.config import settings
from affinity.models import ComponentScores, InterestScore, Profile

FALLBACK_INSIGHT = "This could be an interesting connection"
MAX_INSIGHTS = 4


def generate_insights(
    a: Profile,
    b: Profile,
    components: ComponentScores,
    interest: InterestScore,
    score: float,
) -> list[str]:
    insights: list[str] = []

    if interest.shared:
        noun = "interest" if len(interest.shared) == 1 else "interests"
        insights.append(
            f"Share {len(interest.shared)} common {noun}: {', '.join(interest.shared[:3])}"
        )

    if a.age is not None and b.age is not None:
        if components.age > 0.8:
            insights.append("Very compatible age range")
        elif components.age > 0.5:
            insights.append("Compatible age range")

    if a.location and b.location:
        if components.location >= settings.location_tiers.exact:
            insights.append("Same neighborhood")
        elif components.location >= settings.location_tiers.adjacent:
            insights.append("Nearby neighborhoods")

    if score > 0.7:
        insights.append("Strong overall compatibility")
    elif score > 0.5:
        insights.append("Good potential for connection")
    elif score > 0.3:
        insights.append("Some common ground")

    if not insights:
        insights.append(FALLBACK_INSIGHT)
    return insights[:MAX_INSIGHTS]

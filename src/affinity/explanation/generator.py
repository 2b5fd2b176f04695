"""Explanation generator: a scored pair to a friendly "why you matched" note.

Produces a 2-3 sentence compatibility reason, conversation starters and
meeting suggestions for the top matches shown to a member.  When the LLM
returns nothing usable the note is built from the record's insights instead.
"""

from __future__ import annotations

import logging

from anthropic import Anthropic

from affinity.llm import call_llm_json, get_client
from affinity.models import MatchExplanation, Profile, ScoreRecord

logger = logging.getLogger(__name__)

_SYSTEM_PROMPT = """\
You explain why two members of a social-connection platform might get along.
You receive both profiles and their compatibility scores and must produce:

1. A brief, encouraging 2-3 sentence reason why they might connect well.
2. The shared interests that could be conversation topics.
3. 2-3 natural conversation starters based on their profiles.
4. 1-2 low-key activity suggestions for meeting (coffee, a local event, ...).
5. Whether this looks like a high-priority connection.

SAFETY RULES (always apply):
- Never comment on physical appearance, race, ethnicity, religion or sexuality.
- Never assume anything about relationship status or family situation.
- Keep suggestions appropriate for platonic connections and networking.
- Only use information present in the profiles; do not oversell compatibility.

Return ONLY valid JSON:
{
  "compatibility_reason": "2-3 sentences",
  "shared_interests": ["..."],
  "conversation_starters": ["..."],
  "meeting_suggestions": ["..."],
  "is_high_priority": true
}
"""


def _profile_lines(label: str, profile: Profile) -> list[str]:
    return [
        f"{label}:",
        f"  Name: {profile.display_name or profile.id}",
        f"  Bio: {profile.bio or 'Not provided'}",
        f"  Age: {profile.age if profile.age is not None else 'Not specified'}",
        f"  Interests: {', '.join(profile.interests) or 'None listed'}",
        f"  Location: {profile.location or 'Not specified'}",
    ]


def _build_user_message(
    record: ScoreRecord,
    perspective: Profile,
    other: Profile,
) -> str:
    parts = _profile_lines("MEMBER (who receives this recommendation)", perspective)
    parts.append("")
    parts.extend(_profile_lines("SUGGESTED CONNECTION", other))
    parts.append("")
    parts.append("SCORES:")
    parts.append(f"  Overall: {record.score:.2f} ({record.tier})")
    for dim, comp in record.components.items():
        parts.append(f"  {dim.capitalize()}: {comp.score:.2f}")
    if record.interest_detail.shared:
        parts.append(f"  Shared interests: {', '.join(record.interest_detail.shared)}")
    if record.insights:
        parts.append(f"  Insights: {'; '.join(record.insights)}")
    return "\n".join(parts)


def fallback_explanation(
    record: ScoreRecord,
    perspective: Profile,
    other: Profile,
) -> MatchExplanation:
    shared = record.interest_detail.shared
    name = other.display_name or other.id
    reason = f"{name} could be a good connection."
    if record.insights:
        reason += " " + ". ".join(record.insights) + "."
    starters = [f"Ask {name} what got them into {tag.replace('-', ' ')}" for tag in shared[:3]]
    if not starters:
        starters = [f"Ask {name} what they like to do on weekends"]
    return MatchExplanation(
        profile_id=perspective.id,
        match_id=other.id,
        compatibility_reason=reason,
        shared_interests=shared[:5],
        conversation_starters=starters,
        meeting_suggestions=["Meet for coffee nearby"],
        is_high_priority=record.tier == "high",
        generated=False,
    )


def generate_explanation(
    client: Anthropic | None,
    record: ScoreRecord,
    perspective: Profile,
    other: Profile,
) -> MatchExplanation:
    """Explain ``record`` from ``perspective``'s point of view.

    With no ``client`` the shared one from ``get_client`` is used.
    """
    if not record.involves(perspective.id) or not record.involves(other.id):
        raise ValueError(
            f"record {record.pair} does not pair {perspective.id} with {other.id}"
        )

    user_msg = _build_user_message(record, perspective, other)
    data = call_llm_json(client or get_client(), _SYSTEM_PROMPT, user_msg, fast=False)

    reason = str(data.get("compatibility_reason", "")).strip()
    if not reason:
        logger.warning(
            "Empty explanation for %s -> %s, using insights", perspective.id, other.id,
        )
        return fallback_explanation(record, perspective, other)

    return MatchExplanation(
        profile_id=perspective.id,
        match_id=other.id,
        compatibility_reason=reason,
        shared_interests=list(data.get("shared_interests") or record.interest_detail.shared)[:5],
        conversation_starters=list(data.get("conversation_starters") or [])[:3],
        meeting_suggestions=list(data.get("meeting_suggestions") or [])[:2],
        is_high_priority=bool(data.get("is_high_priority", record.tier == "high")),
    )


def explain_top_matches(
    client: Anthropic | None,
    perspective: Profile,
    records: list[ScoreRecord],
    profiles: dict[str, Profile],
    limit: int = 10,
) -> list[MatchExplanation]:
    out: list[MatchExplanation] = []
    for record in records[:limit]:
        other = profiles.get(record.other(perspective.id))
        if other is None:
            logger.warning("Match %s missing from profile map", record.other(perspective.id))
            continue
        out.append(generate_explanation(client, record, perspective, other))
    return out

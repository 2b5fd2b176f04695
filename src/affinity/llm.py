"""Anthropic access for the explanation step: client factory and JSON calls."""

from __future__ import annotations

import json
import logging
import re
from functools import lru_cache

from anthropic import Anthropic

from affinity.config import settings
from affinity.errors import InvalidConfiguration

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"```(?:json)?\s*\n?(.*?)```", re.DOTALL)


def _strip_fences(text: str) -> str:
    m = _FENCE_RE.search(text)
    return m.group(1).strip() if m else text.strip()


@lru_cache(maxsize=1)
def get_client() -> Anthropic:
    """Shared client built from ``AFFINITY_ANTHROPIC_API_KEY``."""
    if not settings.anthropic_api_key:
        raise InvalidConfiguration("AFFINITY_ANTHROPIC_API_KEY is not set")
    return Anthropic(api_key=settings.anthropic_api_key)


def call_llm_json(
    client: Anthropic,
    system: str,
    user: str,
    *,
    fast: bool = True,
    max_tokens: int = 2048,
) -> dict:
    """Ask for a JSON object.  Prose, bad JSON or a non-object reply yields ``{}``."""
    model = settings.anthropic_fast_model if fast else settings.anthropic_model
    resp = client.messages.create(
        model=model,
        max_tokens=max_tokens,
        system=system,
        messages=[{"role": "user", "content": user}],
    )
    text_blocks = [block.text for block in resp.content if getattr(block, "text", None)]
    if not text_blocks:
        logger.warning("LLM reply (%s model) had no text content", model)
        return {}

    raw = text_blocks[0]
    try:
        data = json.loads(_strip_fences(raw))
    except json.JSONDecodeError:
        logger.warning("LLM returned non-JSON (%s model): %s", model, raw[:200])
        return {}
    if not isinstance(data, dict):
        logger.warning("LLM returned JSON %s, expected an object", type(data).__name__)
        return {}
    return data

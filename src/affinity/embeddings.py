"""Bio embeddings with sentence-transformers.

Scoring never calls this module: embeddings arrive precomputed on profiles.
It exists for the profile store's backfill job, which fills
``bio_embedding`` for profiles that have bio text but no vector yet.
"""

from __future__ import annotations

import logging
import re
from typing import Iterable

import numpy as np

from affinity.config import settings
from affinity.models import Profile

logger = logging.getLogger(__name__)

_model = None
_cache: dict[str, np.ndarray] = {}

_WHITESPACE_RE = re.compile(r"\s+")


def _load_model():
    global _model
    if _model is None:
        from sentence_transformers import SentenceTransformer
        _model = SentenceTransformer(settings.embedding_model)
        logger.info("Loaded sentence-transformer model: %s", settings.embedding_model)
    return _model


def clean_bio(text: str) -> str:
    return _WHITESPACE_RE.sub(" ", text.strip().lower())


def encode_bio(text: str) -> list[float]:
    cleaned = clean_bio(text)
    if cleaned in _cache:
        return _cache[cleaned].tolist()
    model = _load_model()
    vec = model.encode(cleaned, show_progress_bar=False, normalize_embeddings=True)
    _cache[cleaned] = vec
    return vec.tolist()


def backfill_bio_embeddings(
    profiles: Iterable[Profile],
    force: bool = False,
) -> list[Profile]:
    """Return new snapshots with ``bio_embedding`` filled where a bio exists.

    Profiles without bio text are returned unchanged.  Existing embeddings
    are kept unless ``force`` is set.
    """
    profiles = list(profiles)
    todo = [
        i for i, p in enumerate(profiles)
        if p.bio and (force or p.bio_embedding is None)
    ]
    if not todo:
        return profiles

    texts = [clean_bio(profiles[i].bio) for i in todo]
    pending = [t for t in dict.fromkeys(texts) if t not in _cache]
    if pending:
        model = _load_model()
        vectors = model.encode(pending, show_progress_bar=False, normalize_embeddings=True)
        for text, vec in zip(pending, vectors):
            _cache[text] = vec
        logger.info("Encoded %d bios (%d-dim embeddings)", len(pending), vectors.shape[1])

    out = list(profiles)
    for i, text in zip(todo, texts):
        out[i] = profiles[i].model_copy(update={"bio_embedding": _cache[text].tolist()})
    return out


def reset() -> None:
    _cache.clear()

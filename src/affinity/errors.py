"""Domain errors raised by the scoring and clustering engine."""

from __future__ import annotations


class AffinityError(Exception):
    code: str = "affinity_error"

    def __init__(self, message: str = "", *, code: str | None = None):
        super().__init__(message or self.__class__.__name__)
        if code:
            self.code = code


class DimensionMismatch(AffinityError):
    """Two bio embeddings cannot be compared (unequal or zero length)."""

    code = "dimension_mismatch"


class InvalidConfiguration(AffinityError, ValueError):
    """Scoring configuration would bias every result; raised before scoring."""

    code = "invalid_configuration"

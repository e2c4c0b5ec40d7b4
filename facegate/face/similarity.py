"""Cosine similarity between face embeddings."""

from __future__ import annotations

import math
from typing import Sequence

import numpy as np

from facegate.services.errors import DegenerateVector, DimensionMismatch


def _rescale(vector: np.ndarray) -> np.ndarray:
    # Dividing by the largest magnitude keeps the norm in [1, sqrt(n)].
    peak = float(np.max(np.abs(vector))) if vector.size else 0.0
    if not math.isfinite(peak):
        raise DegenerateVector("Cannot score an embedding with non-finite values.")
    if peak == 0.0:
        raise DegenerateVector("Cannot score an embedding with zero norm.")
    return vector / peak


def cosine_similarity(a: np.ndarray | Sequence[float], b: np.ndarray | Sequence[float]) -> float:
    """
    Return the cosine similarity of two embeddings in ``[-1, 1]``.

    Raises ``DimensionMismatch`` when the lengths differ and ``DegenerateVector``
    when either vector has zero norm, so callers never see NaN or infinity.
    Vectors are rescaled first, so very large or very small magnitudes score
    the same as their unit-length direction.
    """

    vec_a = np.asarray(a, dtype=np.float64)
    vec_b = np.asarray(b, dtype=np.float64)
    if vec_a.shape != vec_b.shape:
        raise DimensionMismatch(vec_a.size, vec_b.size)

    vec_a = _rescale(vec_a)
    vec_b = _rescale(vec_b)
    norm_a = float(np.linalg.norm(vec_a))
    norm_b = float(np.linalg.norm(vec_b))

    score = float(np.dot(vec_a, vec_b)) / (norm_a * norm_b)
    if not math.isfinite(score):
        raise DegenerateVector("Similarity is not a finite number.")
    return max(-1.0, min(1.0, score))

"""Face encoding helpers and embedding (de)serialisation."""

from __future__ import annotations

import base64
import binascii
import json
import math
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Sequence

import numpy as np

from facegate.services.errors import InvalidInput

_DATA_URI_PREFIX = re.compile(r"^data:image/\w+;base64,")


@dataclass(slots=True)
class FaceEmbedding:
    """Wrapper for face embeddings."""

    vector: list[float]
    model: str


@dataclass(slots=True, frozen=True)
class DecodedEmbedding:
    """Outcome of reading a stored embedding: either a vector or an error reason."""

    vector: np.ndarray | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.vector is not None


class FaceEncoder(ABC):
    """Interface for the face recognition backend."""

    @abstractmethod
    def encode(self, image_bytes: bytes) -> FaceEmbedding | None:
        """Return the embedding representing the person's face, or ``None`` if no face is found."""


def decode_base64_image(data: str) -> bytes:
    """Decode a base64 image, accepting an optional ``data:image/...;base64,`` prefix."""

    payload = _DATA_URI_PREFIX.sub("", data.strip())
    if not payload:
        raise InvalidInput("Image payload is empty.")
    try:
        return base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise InvalidInput("Image payload is not valid base64.") from exc


def encode_embedding(vector: np.ndarray | Sequence[float]) -> str:
    """Serialise an embedding as a JSON array of floats."""

    return json.dumps([float(value) for value in vector])


def _validate(values: Any, expected_dim: int) -> tuple[np.ndarray | None, str | None]:
    if isinstance(values, (str, bytes)) or not isinstance(values, (list, tuple, np.ndarray)):
        return None, "embedding is not an array"
    if len(values) == 0:
        return None, "embedding is empty"
    if expected_dim and len(values) != expected_dim:
        return None, f"expected {expected_dim} values, got {len(values)}"
    for value in values:
        if isinstance(value, bool) or not isinstance(value, (int, float, np.number)):
            return None, "embedding contains non-numeric values"
        if not math.isfinite(float(value)):
            return None, "embedding contains non-finite values"
    vector = np.asarray(values, dtype=np.float64)
    if not np.any(vector):
        return None, "embedding has zero norm"
    return vector, None


def decode_embedding(raw: str | None, expected_dim: int) -> DecodedEmbedding:
    """Parse a stored JSON embedding without raising on bad data."""

    if raw is None or not raw.strip():
        return DecodedEmbedding(error="embedding is missing")
    try:
        values = json.loads(raw)
    except json.JSONDecodeError as exc:
        return DecodedEmbedding(error=f"embedding is not valid JSON ({exc.msg})")

    vector, error = _validate(values, expected_dim)
    if error:
        return DecodedEmbedding(error=error)
    return DecodedEmbedding(vector=vector)


def coerce_embedding(values: Any, expected_dim: int) -> np.ndarray:
    """Validate a caller supplied embedding, raising ``InvalidInput`` when it is unusable."""

    if values is None:
        raise InvalidInput("Embedding is required.")
    if isinstance(values, FaceEmbedding):
        values = values.vector
    vector, error = _validate(values, expected_dim)
    if error:
        raise InvalidInput(f"Invalid embedding: {error}.")
    return vector

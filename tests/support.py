"""In-memory doubles and vector helpers for the service tests."""

from __future__ import annotations

import math

import numpy as np

from facegate.db import models
from facegate.face.encode import encode_embedding
from facegate.geo.geofence import LocationPoint
from facegate.services.store import AnchorSource, EmbeddingStore

DIM = 128


def embedding_with_similarity(similarity: float, dim: int = DIM) -> np.ndarray:
    """Return a unit vector whose cosine similarity with ``reference()`` equals ``similarity``."""

    vector = np.zeros(dim)
    vector[0] = similarity
    vector[1] = math.sqrt(max(0.0, 1.0 - similarity**2))
    return vector


def reference(dim: int = DIM) -> np.ndarray:
    vector = np.zeros(dim)
    vector[0] = 1.0
    return vector


def make_record(
    record_id: int,
    subject_id: str,
    embedding_json: str | None,
    *,
    active: bool = True,
) -> models.EnrollmentRecord:
    return models.EnrollmentRecord(
        id=record_id,
        subject_id=subject_id,
        embedding_json=embedding_json,
        is_active=active,
    )


class FakeEmbeddingStore(EmbeddingStore):
    """List-backed store that records how it was used."""

    def __init__(self, records: list[models.EnrollmentRecord] | None = None) -> None:
        self.records = list(records or [])
        self.enroll_calls = 0
        self.list_calls = 0
        self.error: Exception | None = None

    async def enroll(self, subject_id: str, embedding: np.ndarray) -> models.EnrollmentRecord:
        self.enroll_calls += 1
        if self.error is not None:
            raise self.error
        record = make_record(len(self.records) + 1, subject_id, encode_embedding(embedding))
        self.records.append(record)
        return record

    async def list_active(self) -> list[models.EnrollmentRecord]:
        self.list_calls += 1
        if self.error is not None:
            raise self.error
        return [record for record in self.records if record.is_active]

    async def get_active(self, record_id: int) -> models.EnrollmentRecord | None:
        if self.error is not None:
            raise self.error
        for record in self.records:
            if record.id == record_id and record.is_active:
                return record
        return None


class FakeAnchorSource(AnchorSource):
    def __init__(self, anchors: list[LocationPoint]) -> None:
        self.anchors = anchors
        self.calls = 0
        self.error: Exception | None = None

    async def list_anchors(self) -> list[LocationPoint]:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return list(self.anchors)

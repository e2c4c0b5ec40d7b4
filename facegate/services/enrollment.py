"""Business logic for enrolling subjects."""

from __future__ import annotations

import logging
from typing import Any

from facegate.db import models
from facegate.face.encode import coerce_embedding, decode_embedding
from facegate.face.similarity import cosine_similarity
from facegate.metrics.prometheus_exporter import enrollment_total
from facegate.services.errors import (
    DataQualityError,
    InvalidInput,
    PersistenceError,
    RecordNotFound,
    StoreError,
)
from facegate.services.outcomes import ComparisonResult
from facegate.services.store import EmbeddingStore

logger = logging.getLogger(__name__)


class EnrollmentService:
    """Facade over the embedding store for registration flows."""

    def __init__(
        self,
        store: EmbeddingStore,
        *,
        embedding_dim: int = 128,
        compare_threshold: float = 0.8,
    ) -> None:
        self._store = store
        self._embedding_dim = embedding_dim
        self._compare_threshold = compare_threshold

    async def register(self, subject_id: str | None, embedding: Any) -> models.EnrollmentRecord:
        """
        Persist a new embedding for ``subject_id``.

        Subjects may hold several records; earlier enrollments stay active.
        """

        if subject_id is None or not str(subject_id).strip():
            raise InvalidInput("Subject id is required.")
        vector = coerce_embedding(embedding, self._embedding_dim)

        try:
            record = await self._store.enroll(str(subject_id).strip(), vector)
        except StoreError as exc:
            enrollment_total.labels(outcome=exc.code).inc()
            raise

        enrollment_total.labels(outcome="enrolled").inc()
        logger.info("Enrolled record %s for subject %s", record.id, record.subject_id)
        return record

    async def compare(
        self,
        record_id: int,
        candidate: Any,
        *,
        threshold: float | None = None,
    ) -> ComparisonResult:
        """Compare a fresh capture with a previously enrolled record."""

        vector = coerce_embedding(candidate, self._embedding_dim)
        if threshold is None:
            threshold = self._compare_threshold

        record = await self._store.get_active(record_id)
        if record is None:
            raise RecordNotFound(f"No active enrollment with id {record_id}.")

        decoded = decode_embedding(record.embedding_json, self._embedding_dim)
        if not decoded.ok:
            raise PersistenceError(f"Stored embedding for record {record_id} is unusable: {decoded.error}.")
        try:
            similarity = cosine_similarity(decoded.vector, vector)
        except DataQualityError as exc:
            raise PersistenceError(f"Stored embedding for record {record_id} is unusable: {exc}") from exc

        matched = similarity > threshold
        logger.info(
            "Compared capture with record %s: similarity=%.4f matched=%s",
            record_id,
            similarity,
            matched,
        )
        return ComparisonResult(
            record_id=record.id,
            subject_id=record.subject_id,
            similarity=similarity,
            matched=matched,
        )

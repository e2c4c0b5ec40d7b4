"""Verification of a captured embedding against enrolled subjects."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, replace
from typing import Any

from facegate.db import models
from facegate.face.encode import coerce_embedding, decode_embedding
from facegate.face.similarity import cosine_similarity
from facegate.geo.geofence import LocationPoint, is_within_range
from facegate.metrics.prometheus_exporter import skipped_embeddings_total, verification_total
from facegate.services.errors import DataQualityError, InvalidInput, StoreError
from facegate.services.outcomes import MatchResult, VerificationStatus
from facegate.services.store import AnchorSource, EmbeddingStore

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class GeofenceGate:
    """Restricts verification to callers near an authorized location."""

    anchors: AnchorSource
    radius_meters: float = 15.0


class VerificationService:
    """
    Matches a candidate embedding against every active enrollment.

    The scan walks records in store order and stops at the first one whose
    similarity is strictly greater than the threshold, even if a later record
    would score higher. Pass ``full_scan=True`` to get the best match instead;
    ties keep the earliest record.
    """

    def __init__(
        self,
        store: EmbeddingStore,
        *,
        embedding_dim: int = 128,
        default_threshold: float = 0.95,
        geofence: GeofenceGate | None = None,
    ) -> None:
        self._store = store
        self._embedding_dim = embedding_dim
        self._default_threshold = default_threshold
        self._geofence = geofence

    async def verify(
        self,
        candidate: Any,
        *,
        threshold: float | None = None,
        location: LocationPoint | None = None,
        full_scan: bool = False,
    ) -> MatchResult:
        """Return the verification outcome for ``candidate``."""

        vector = coerce_embedding(candidate, self._embedding_dim)
        if threshold is None:
            threshold = self._default_threshold
        if not math.isfinite(threshold):
            raise InvalidInput("Threshold must be a finite number.")

        try:
            if self._geofence is not None and not await self._is_location_allowed(location):
                return self._finish(MatchResult(status=VerificationStatus.OUT_OF_RANGE))

            records = await self._store.list_active()
        except StoreError as exc:
            verification_total.labels(outcome=exc.code).inc()
            raise

        if not records:
            return self._finish(MatchResult(status=VerificationStatus.NO_ENROLLMENTS))

        best: MatchResult | None = None
        scanned = 0
        skipped = 0
        for record in records:
            similarity = self._score(record, vector)
            if similarity is None:
                skipped += 1
                continue
            scanned += 1
            if similarity <= threshold:
                continue

            match = MatchResult(
                status=VerificationStatus.MATCHED,
                subject_id=record.subject_id,
                record_id=record.id,
                similarity=similarity,
            )
            if not full_scan:
                return self._finish(match, scanned=scanned, skipped=skipped)
            if best is None or similarity > best.similarity:
                best = match

        if best is not None:
            return self._finish(best, scanned=scanned, skipped=skipped)
        return self._finish(
            MatchResult(status=VerificationStatus.NO_MATCH),
            scanned=scanned,
            skipped=skipped,
        )

    async def _is_location_allowed(self, location: LocationPoint | None) -> bool:
        if location is None or not location.is_complete:
            raise InvalidInput("Latitude and longitude are required for verification.")
        anchors = await self._geofence.anchors.list_anchors()
        allowed = is_within_range(location, anchors, self._geofence.radius_meters)
        if not allowed:
            logger.info(
                "Location %.6f,%.6f is outside %gm of %d anchors",
                location.latitude,
                location.longitude,
                self._geofence.radius_meters,
                len(anchors),
            )
        return allowed

    def _score(self, record: models.EnrollmentRecord, vector) -> float | None:
        """Return the similarity for ``record`` or ``None`` when it must be skipped."""

        decoded = decode_embedding(record.embedding_json, self._embedding_dim)
        if not decoded.ok:
            logger.warning("Skipping invalid embedding for record %s: %s", record.id, decoded.error)
            skipped_embeddings_total.labels(reason="malformed").inc()
            return None
        try:
            return cosine_similarity(decoded.vector, vector)
        except DataQualityError as exc:
            logger.warning("Skipping record %s: %s", record.id, exc)
            skipped_embeddings_total.labels(reason=exc.code).inc()
            return None

    def _finish(self, result: MatchResult, *, scanned: int = 0, skipped: int = 0) -> MatchResult:
        final = replace(result, scanned=scanned, skipped=skipped)
        verification_total.labels(outcome=final.status.value).inc()
        logger.info(
            "Verification finished: status=%s record=%s similarity=%s scanned=%d skipped=%d",
            final.status.value,
            final.record_id,
            f"{final.similarity:.4f}" if final.similarity is not None else "-",
            scanned,
            skipped,
        )
        return final

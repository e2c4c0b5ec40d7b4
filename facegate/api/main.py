"""FastAPI entrypoint and HTTP routes."""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from functools import lru_cache
from typing import Any, AsyncIterator

from fastapi import Depends, FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from facegate.api.schemas import (
    CaptureRequest,
    CompareRequest,
    CompareResponse,
    MatchResponse,
    RegisterRequest,
    RegisterResponse,
    VerifyRequest,
)
from facegate.config.settings import get_settings
from facegate.face.encode import FaceEncoder, decode_base64_image
from facegate.geo.geofence import LocationPoint
from facegate.integrations.checks import check_database
from facegate.monitoring.logging import configure_logging
from facegate.services.enrollment import EnrollmentService
from facegate.services.errors import (
    EncoderNotConfigured,
    FaceGateError,
    InvalidInput,
    NoFaceDetected,
    PersistenceError,
    RecordNotFound,
    StoreTimeout,
    StoreUnavailable,
)
from facegate.services.outcomes import VerificationStatus
from facegate.services.store import AnchorSource, EmbeddingStore, SqlEmbeddingStore, SqlLocationSource
from facegate.services.verification import GeofenceGate, VerificationService

logger = logging.getLogger(__name__)

# Checked in order, first isinstance match wins.
_ERROR_STATUS: tuple[tuple[type[FaceGateError], int, str], ...] = (
    (NoFaceDetected, status.HTTP_400_BAD_REQUEST, "No face detected."),
    (InvalidInput, status.HTTP_400_BAD_REQUEST, "Invalid request."),
    (RecordNotFound, status.HTTP_404_NOT_FOUND, "Enrollment record not found."),
    (
        EncoderNotConfigured,
        status.HTTP_503_SERVICE_UNAVAILABLE,
        "Face extractor is not configured.",
    ),
    (StoreTimeout, status.HTTP_502_BAD_GATEWAY, "Database query timeout - slow network or server issue."),
    (
        StoreUnavailable,
        status.HTTP_501_NOT_IMPLEMENTED,
        "Database connection failed - check network or database server.",
    ),
    (PersistenceError, status.HTTP_500_INTERNAL_SERVER_ERROR, "Error accessing stored faces."),
)

_OUTCOME_STATUS: dict[VerificationStatus, tuple[int, str]] = {
    VerificationStatus.NO_MATCH: (status.HTTP_404_NOT_FOUND, "Face not registered."),
    VerificationStatus.NO_ENROLLMENTS: (status.HTTP_404_NOT_FOUND, "No face registered in the system."),
    VerificationStatus.OUT_OF_RANGE: (
        status.HTTP_202_ACCEPTED,
        "You are outside the allowed location range.",
    ),
}


def get_face_encoder() -> FaceEncoder | None:
    """Return the extractor used to turn images into embeddings.

    No extractor ships with the service. Deployments override this dependency;
    until then only requests carrying a precomputed embedding succeed.
    """

    return None


@lru_cache
def get_embedding_store() -> EmbeddingStore:
    from facegate.db.session import AsyncSessionFactory

    return SqlEmbeddingStore(AsyncSessionFactory, timeout=get_settings().store_timeout_seconds)


@lru_cache
def get_anchor_source() -> AnchorSource | None:
    settings = get_settings()
    if not settings.geofence_enabled:
        return None

    from facegate.db.session import AsyncSessionFactory

    return SqlLocationSource(AsyncSessionFactory, timeout=settings.store_timeout_seconds)


def get_enrollment_service(
    store: EmbeddingStore = Depends(get_embedding_store),
) -> EnrollmentService:
    settings = get_settings()
    return EnrollmentService(
        store,
        embedding_dim=settings.embedding_dim,
        compare_threshold=settings.compare_threshold,
    )


def get_verification_service(
    store: EmbeddingStore = Depends(get_embedding_store),
    anchors: AnchorSource | None = Depends(get_anchor_source),
) -> VerificationService:
    settings = get_settings()
    geofence = None
    if anchors is not None:
        geofence = GeofenceGate(anchors=anchors, radius_meters=settings.geofence_radius_meters)
    return VerificationService(
        store,
        embedding_dim=settings.embedding_dim,
        default_threshold=settings.verify_threshold,
        geofence=geofence,
    )


async def _resolve_embedding(payload: CaptureRequest, encoder: FaceEncoder | None) -> Any:
    """Return the caller's embedding, running the extractor when an image was sent."""

    if payload.embedding is not None:
        return payload.embedding
    if not payload.base64_image:
        raise InvalidInput("No image provided.")

    image_bytes = decode_base64_image(payload.base64_image)
    if encoder is None:
        raise EncoderNotConfigured("Face extractor is not configured; send a precomputed embedding.")
    face = await asyncio.to_thread(encoder.encode, image_bytes)
    if face is None:
        raise NoFaceDetected("No face detected.")
    return face.vector


def _error_response(exc: FaceGateError) -> JSONResponse:
    for error_type, status_code, fallback in _ERROR_STATUS:
        if isinstance(exc, error_type):
            break
    else:
        status_code, fallback = status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error."

    if status_code >= 500:
        logger.error("Request failed with %s: %s", exc.code, exc)
    return JSONResponse(
        status_code=status_code,
        content={"message": str(exc) or fallback, "code": exc.code},
    )


@asynccontextmanager
async def lifespan(_: FastAPI) -> AsyncIterator[None]:
    configure_logging()

    from facegate.db.session import init_db

    try:
        await init_db()
    except Exception:  # noqa: BLE001
        logger.exception("Could not create database tables")

    result = await check_database(get_embedding_store())
    if result.success:
        logger.info(result.message)
    else:
        logger.error("Database connection error: %s", result.message)
    yield


def create_app() -> FastAPI:
    """Initialise the FastAPI application."""

    settings = get_settings()
    app = FastAPI(
        title="FaceGate API",
        version="0.1.0",
        docs_url="/docs" if settings.environment != "prod" else None,
        redoc_url="/redoc" if settings.environment != "prod" else None,
        lifespan=lifespan,
    )

    @app.exception_handler(FaceGateError)
    async def handle_service_error(_: Request, exc: FaceGateError) -> JSONResponse:
        return _error_response(exc)

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(_: Request, exc: RequestValidationError) -> JSONResponse:
        first = exc.errors()[0] if exc.errors() else {}
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        detail = first.get("msg", "Invalid request.")
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={
                "message": f"{location}: {detail}" if location else detail,
                "code": InvalidInput.code,
            },
        )

    @app.get("/health", tags=["system"])
    async def health_check() -> dict[str, str]:
        """Simple health endpoint used for readiness probes."""

        return {"status": "ok"}

    @app.post("/api/save", tags=["faces"])
    async def register_face(
        payload: RegisterRequest,
        service: EnrollmentService = Depends(get_enrollment_service),
        encoder: FaceEncoder | None = Depends(get_face_encoder),
    ) -> JSONResponse:
        """Enroll a face embedding for a subject."""

        if not payload.user_id or not payload.user_id.strip():
            raise InvalidInput("User ID and face are required.")
        embedding = await _resolve_embedding(payload, encoder)
        record = await service.register(payload.user_id, embedding)
        body = RegisterResponse(
            message="Face registered successfully.",
            record_id=record.id,
            subject_id=record.subject_id,
        )
        return JSONResponse(status_code=status.HTTP_200_OK, content=body.model_dump(by_alias=True))

    @app.post("/api/verify", tags=["faces"])
    async def verify_face(
        payload: VerifyRequest,
        service: VerificationService = Depends(get_verification_service),
        encoder: FaceEncoder | None = Depends(get_face_encoder),
    ) -> JSONResponse:
        """Match a face against every active enrollment."""

        embedding = await _resolve_embedding(payload, encoder)
        location = None
        if payload.latitude is not None or payload.longitude is not None:
            location = LocationPoint(latitude=payload.latitude, longitude=payload.longitude)

        result = await service.verify(
            embedding,
            threshold=payload.threshold,
            location=location,
            full_scan=payload.full_scan,
        )
        if result.matched:
            body = MatchResponse(
                message="Face Matched",
                similarity=round(result.similarity, 4),
                matched_id=result.subject_id,
                record_id=result.record_id,
            )
            return JSONResponse(status_code=status.HTTP_200_OK, content=body.model_dump(by_alias=True))

        status_code, message = _OUTCOME_STATUS[result.status]
        return JSONResponse(
            status_code=status_code,
            content={"message": message, "code": result.status.value},
        )

    @app.post("/api/compare-face", tags=["faces"])
    async def compare_face(
        payload: CompareRequest,
        service: EnrollmentService = Depends(get_enrollment_service),
        encoder: FaceEncoder | None = Depends(get_face_encoder),
    ) -> JSONResponse:
        """Check a fresh capture against a just-enrolled record."""

        embedding = await _resolve_embedding(payload, encoder)
        result = await service.compare(payload.record_id, embedding, threshold=payload.threshold)
        body = CompareResponse(
            message="Face Match!" if result.matched else "Face Not Match!",
            similarity=round(result.similarity, 4),
            matched=result.matched,
        )
        return JSONResponse(status_code=status.HTTP_200_OK, content=body.model_dump(by_alias=True))

    return app


app = create_app()

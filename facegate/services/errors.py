"""Exception hierarchy shared by the enrollment and verification services."""

from __future__ import annotations


class FaceGateError(RuntimeError):
    """Base class for all errors raised by the service layer."""

    code = "error"


class InvalidInput(FaceGateError):
    """Raised when the caller supplied missing or malformed data."""

    code = "invalid_input"


class NoFaceDetected(InvalidInput):
    """Raised when the extractor could not find a face in the image."""

    code = "no_face_detected"


class DataQualityError(FaceGateError):
    """Raised when an embedding cannot be scored."""

    code = "data_quality"


class DimensionMismatch(DataQualityError):
    """Raised when two embeddings have different lengths."""

    code = "dimension_mismatch"

    def __init__(self, left: int, right: int) -> None:
        self.left = left
        self.right = right
        super().__init__(f"Embedding lengths differ: {left} != {right}.")


class DegenerateVector(DataQualityError):
    """Raised when an embedding has zero norm."""

    code = "degenerate_vector"


class EncoderNotConfigured(FaceGateError):
    """Raised when an image arrives but no face extractor is installed."""

    code = "encoder_not_configured"


class RecordNotFound(FaceGateError):
    """Raised when an enrollment record does not exist or is inactive."""

    code = "record_not_found"


class StoreError(FaceGateError):
    """Base class for persistence failures."""

    code = "persistence_error"


class PersistenceError(StoreError):
    """Raised when the database rejected or failed an operation."""

    code = "persistence_error"


class StoreTimeout(StoreError):
    """Raised when a database call exceeds its deadline."""

    code = "timeout"


class StoreUnavailable(StoreError):
    """Raised when the database cannot be reached."""

    code = "unavailable"

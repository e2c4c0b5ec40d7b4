"""Request and response bodies for the HTTP API."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class CaptureRequest(BaseModel):
    """Either a precomputed embedding or a base64 image for the extractor."""

    model_config = ConfigDict(populate_by_name=True)

    embedding: list[float] | None = None
    base64_image: str | None = Field(default=None, alias="base64Image")


class RegisterRequest(CaptureRequest):
    user_id: str | None = Field(default=None, alias="userId")


class VerifyRequest(CaptureRequest):
    latitude: float | None = None
    longitude: float | None = None
    threshold: float | None = Field(default=None, ge=-1.0, le=1.0)
    full_scan: bool = Field(default=False, alias="fullScan")


class CompareRequest(CaptureRequest):
    record_id: int = Field(alias="recordId")
    threshold: float | None = Field(default=None, ge=-1.0, le=1.0)


class RegisterResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: str
    record_id: int = Field(serialization_alias="recordId")
    subject_id: str = Field(serialization_alias="subjectId")


class MatchResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: str
    similarity: float
    matched_id: str = Field(serialization_alias="matchedId")
    record_id: int = Field(serialization_alias="recordId")


class CompareResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: str
    similarity: float
    matched: bool

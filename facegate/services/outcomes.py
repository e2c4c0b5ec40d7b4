"""Result types returned by the verification and enrollment services."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class VerificationStatus(str, Enum):
    """Terminal states of a verification call."""

    MATCHED = "matched"
    NO_MATCH = "no_match"
    NO_ENROLLMENTS = "no_enrollments"
    OUT_OF_RANGE = "out_of_range"


@dataclass(slots=True, frozen=True)
class MatchResult:
    """Outcome of a verification call."""

    status: VerificationStatus
    subject_id: str | None = None
    record_id: int | None = None
    similarity: float | None = None
    scanned: int = 0
    skipped: int = 0

    @property
    def matched(self) -> bool:
        return self.status is VerificationStatus.MATCHED


@dataclass(slots=True, frozen=True)
class ComparisonResult:
    """Outcome of comparing a fresh capture with a just-enrolled record."""

    record_id: int
    subject_id: str
    similarity: float
    matched: bool

"""Prometheus exporter helpers."""

from __future__ import annotations

from prometheus_client import Counter


verification_total = Counter(
    "verification_total",
    "Total number of verification requests by outcome.",
    ["outcome"],
)

enrollment_total = Counter(
    "enrollment_total",
    "Total number of enrollment requests by outcome.",
    ["outcome"],
)

skipped_embeddings_total = Counter(
    "skipped_embeddings_total",
    "Stored embeddings skipped during a verification scan.",
    ["reason"],
)

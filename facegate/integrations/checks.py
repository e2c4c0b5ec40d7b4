"""Connectivity checks for external services."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable

from facegate.config.settings import get_settings
from facegate.services.store import EmbeddingStore, SqlEmbeddingStore


@dataclass(slots=True)
class IntegrationCheckResult:
    """Structured result describing the integration check outcome."""

    name: str
    success: bool
    message: str


async def _run_check(
    name: str,
    factory: Callable[[], Awaitable[None]],
    success_message: str,
) -> IntegrationCheckResult:
    try:
        await factory()
    except Exception as exc:  # noqa: BLE001
        return IntegrationCheckResult(name=name, success=False, message=str(exc))

    return IntegrationCheckResult(name=name, success=True, message=success_message)


def _default_store() -> EmbeddingStore:
    from facegate.db.session import AsyncSessionFactory

    settings = get_settings()
    return SqlEmbeddingStore(AsyncSessionFactory, timeout=settings.store_timeout_seconds)


async def check_database(store: EmbeddingStore | None = None) -> IntegrationCheckResult:
    """Run ``SELECT 1`` against the embedding database and return the result."""

    target = store or _default_store()
    return await _run_check(
        name="Database",
        factory=target.ping,
        success_message="Database connected successfully.",
    )


async def run_all_checks() -> list[IntegrationCheckResult]:
    """Execute all integration checks concurrently."""

    return list(await asyncio.gather(check_database()))

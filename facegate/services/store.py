"""Persistence layer for enrolled embeddings and authorized locations."""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Awaitable, Callable, Sequence, TypeVar

import numpy as np
from sqlalchemy import select, text
from sqlalchemy.exc import DBAPIError, InterfaceError, OperationalError, SQLAlchemyError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from facegate.db import models
from facegate.face.encode import encode_embedding
from facegate.geo.geofence import LocationPoint
from facegate.services.errors import (
    PersistenceError,
    StoreTimeout,
    StoreUnavailable,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

_UNAVAILABLE_MARKERS = (
    "connection refused",
    "econnrefused",
    "could not connect",
    "can't connect",
    "unable to open database",
    "server has gone away",
    "lost connection",
    "connection reset",
    "name or service not known",
)


def _is_connectivity_error(exc: SQLAlchemyError) -> bool:
    if isinstance(exc, DBAPIError):
        if exc.connection_invalidated or isinstance(exc.orig, OSError):
            return True
    if isinstance(exc, (OperationalError, InterfaceError)):
        message = str(exc).lower()
        return any(marker in message for marker in _UNAVAILABLE_MARKERS)
    return False


class EmbeddingStore(ABC):
    """Keyed record store holding enrolled face embeddings."""

    @abstractmethod
    async def enroll(self, subject_id: str, embedding: np.ndarray) -> models.EnrollmentRecord:
        """Insert a new active record for ``subject_id``."""

    @abstractmethod
    async def list_active(self) -> list[models.EnrollmentRecord]:
        """Return every active record in insertion order."""

    @abstractmethod
    async def get_active(self, record_id: int) -> models.EnrollmentRecord | None:
        """Return a single active record or ``None``."""

    async def ping(self) -> None:
        """Raise a ``StoreError`` if the backend cannot be reached."""


class AnchorSource(ABC):
    """Read-only source of authorized anchor locations."""

    @abstractmethod
    async def list_anchors(self) -> list[LocationPoint]:
        """Return all authorized locations."""


class _SqlRepository:
    """Runs each operation in its own session under a fixed deadline."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        timeout: float = 5.0,
    ) -> None:
        self._session_factory = session_factory
        self._timeout = timeout

    async def _with_session(self, operation: Callable[[AsyncSession], Awaitable[T]]) -> T:
        async with self._session_factory() as session:
            return await operation(session)

    async def _run(self, name: str, operation: Callable[[AsyncSession], Awaitable[T]]) -> T:
        try:
            return await asyncio.wait_for(self._with_session(operation), timeout=self._timeout)
        except asyncio.TimeoutError as exc:
            logger.warning("Store operation %s timed out after %.1fs", name, self._timeout)
            raise StoreTimeout(
                f"Database query timeout after {self._timeout:g}s - slow network or server overload."
            ) from exc
        except PoolTimeoutError as exc:
            logger.warning("Store operation %s could not obtain a connection in time", name)
            raise StoreTimeout("Timed out waiting for a database connection.") from exc
        except SQLAlchemyError as exc:
            if _is_connectivity_error(exc):
                logger.warning("Store operation %s failed to connect: %s", name, exc)
                raise StoreUnavailable(
                    "Database connection failed - check network or database server."
                ) from exc
            logger.warning("Store operation %s failed: %s", name, exc)
            raise PersistenceError(f"Database error during {name}.") from exc
        except (ConnectionError, OSError) as exc:
            logger.warning("Store operation %s failed to connect: %s", name, exc)
            raise StoreUnavailable(
                "Database connection failed - check network or database server."
            ) from exc


class SqlEmbeddingStore(_SqlRepository, EmbeddingStore):
    """Embedding store backed by an async SQLAlchemy session factory."""

    async def enroll(self, subject_id: str, embedding: np.ndarray) -> models.EnrollmentRecord:
        payload = encode_embedding(embedding)

        async def _insert(session: AsyncSession) -> models.EnrollmentRecord:
            record = models.EnrollmentRecord(
                subject_id=subject_id,
                embedding_json=payload,
                created_by=0,
                updated_by=0,
                is_active=True,
            )
            session.add(record)
            await session.commit()
            await session.refresh(record)
            return record

        return await self._run("enroll", _insert)

    async def list_active(self) -> list[models.EnrollmentRecord]:
        async def _select(session: AsyncSession) -> list[models.EnrollmentRecord]:
            stmt = (
                select(models.EnrollmentRecord)
                .where(models.EnrollmentRecord.is_active.is_(True))
                .order_by(models.EnrollmentRecord.id)
            )
            result = await session.execute(stmt)
            return list(result.scalars().all())

        return await self._run("list_active", _select)

    async def get_active(self, record_id: int) -> models.EnrollmentRecord | None:
        async def _select(session: AsyncSession) -> models.EnrollmentRecord | None:
            stmt = select(models.EnrollmentRecord).where(
                models.EnrollmentRecord.id == record_id,
                models.EnrollmentRecord.is_active.is_(True),
            )
            result = await session.execute(stmt)
            return result.scalar_one_or_none()

        return await self._run("get_active", _select)

    async def ping(self) -> None:
        async def _select_one(session: AsyncSession) -> None:
            await session.execute(text("SELECT 1"))

        await self._run("ping", _select_one)


class SqlLocationSource(_SqlRepository, AnchorSource):
    """Reads active anchor locations from the ``locations`` table."""

    async def list_anchors(self) -> list[LocationPoint]:
        async def _select(session: AsyncSession) -> Sequence[models.Location]:
            stmt = (
                select(models.Location)
                .where(models.Location.is_active.is_(True))
                .order_by(models.Location.id)
            )
            result = await session.execute(stmt)
            return result.scalars().all()

        locations = await self._run("list_anchors", _select)
        return [
            LocationPoint(latitude=location.location_lat, longitude=location.location_long)
            for location in locations
        ]

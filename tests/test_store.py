"""Tests for the SQLAlchemy-backed embedding store."""

from __future__ import annotations

import asyncio
import json
from contextlib import asynccontextmanager
from pathlib import Path

import numpy as np
import pytest
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from facegate.db import models
from facegate.geo.geofence import LocationPoint
from facegate.services.errors import PersistenceError, StoreTimeout, StoreUnavailable
from facegate.services.store import SqlEmbeddingStore, SqlLocationSource


class _TrackingFactory:
    """Wraps a session factory and counts released sessions."""

    def __init__(self, factory: async_sessionmaker[AsyncSession]) -> None:
        self._factory = factory
        self.released = 0

    @asynccontextmanager
    async def __call__(self):
        try:
            async with self._factory() as session:
                yield session
        finally:
            self.released += 1


async def _hang(self, *args, **kwargs):
    await asyncio.sleep(5)


@pytest.mark.asyncio
async def test_enroll_persists_active_record(session_factory) -> None:
    store = SqlEmbeddingStore(session_factory)

    record = await store.enroll("user-1", np.array([0.1, 0.2, 0.3]))

    assert record.id is not None
    assert record.subject_id == "user-1"
    assert record.is_active
    assert json.loads(record.embedding_json) == [0.1, 0.2, 0.3]
    assert record.created_at is not None
    assert record.updated_at is not None


@pytest.mark.asyncio
async def test_list_active_keeps_insertion_order_and_skips_inactive(session_factory) -> None:
    store = SqlEmbeddingStore(session_factory)
    first = await store.enroll("a", np.array([1.0, 0.0]))
    second = await store.enroll("b", np.array([0.0, 1.0]))
    third = await store.enroll("a", np.array([1.0, 1.0]))

    async with session_factory() as session:
        await session.execute(
            update(models.EnrollmentRecord)
            .where(models.EnrollmentRecord.id == second.id)
            .values(is_active=False)
        )
        await session.commit()

    records = await store.list_active()

    assert [record.id for record in records] == [first.id, third.id]
    assert await store.get_active(second.id) is None
    assert (await store.get_active(third.id)).subject_id == "a"


@pytest.mark.asyncio
async def test_concurrent_enrollments_are_all_visible(session_factory) -> None:
    store = SqlEmbeddingStore(session_factory)

    await asyncio.gather(
        *(store.enroll(f"user-{index}", np.array([float(index + 1), 1.0])) for index in range(5))
    )
    records = await store.list_active()

    assert sorted(record.subject_id for record in records) == [f"user-{index}" for index in range(5)]


@pytest.mark.asyncio
async def test_ping_succeeds_on_reachable_database(session_factory) -> None:
    await SqlEmbeddingStore(session_factory).ping()


@pytest.mark.asyncio
async def test_slow_query_raises_timeout_and_releases_session(
    session_factory,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    tracking = _TrackingFactory(session_factory)
    store = SqlEmbeddingStore(tracking, timeout=0.05)
    monkeypatch.setattr(AsyncSession, "execute", _hang)

    with pytest.raises(StoreTimeout):
        await store.list_active()

    assert tracking.released == 1


@pytest.mark.asyncio
async def test_cancelled_call_releases_session(
    session_factory,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    tracking = _TrackingFactory(session_factory)
    store = SqlEmbeddingStore(tracking, timeout=5)
    monkeypatch.setattr(AsyncSession, "execute", _hang)

    task = asyncio.create_task(store.list_active())
    await asyncio.sleep(0.05)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert tracking.released == 1


@pytest.mark.asyncio
async def test_unreachable_database_raises_unavailable(tmp_path: Path) -> None:
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'missing' / 'dir' / 'faces.db'}")
    store = SqlEmbeddingStore(async_sessionmaker(engine, class_=AsyncSession))
    try:
        with pytest.raises(StoreUnavailable):
            await store.list_active()
    finally:
        await engine.dispose()


@pytest.mark.asyncio
async def test_refused_connection_is_not_a_timeout() -> None:
    def _refuse():
        raise ConnectionRefusedError(111, "Connection refused")

    store = SqlEmbeddingStore(_refuse, timeout=0.05)

    with pytest.raises(StoreUnavailable) as exc_info:
        await store.list_active()

    assert not isinstance(exc_info.value, StoreTimeout)


@pytest.mark.asyncio
async def test_other_database_errors_raise_persistence_error(tmp_path: Path) -> None:
    # Tables were never created.
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'empty.db'}")
    store = SqlEmbeddingStore(async_sessionmaker(engine, class_=AsyncSession))
    try:
        with pytest.raises(PersistenceError):
            await store.enroll("user-1", np.array([1.0, 0.0]))
    finally:
        await engine.dispose()


@pytest.mark.asyncio
async def test_location_source_returns_active_anchors(session_factory) -> None:
    async with session_factory() as session:
        session.add_all(
            [
                models.Location(name="hq", location_lat=12.97, location_long=77.59),
                models.Location(name="unset", location_lat=None, location_long=77.0),
                models.Location(name="closed", location_lat=1.0, location_long=1.0, is_active=False),
            ]
        )
        await session.commit()

    anchors = await SqlLocationSource(session_factory).list_anchors()

    assert anchors == [
        LocationPoint(latitude=12.97, longitude=77.59),
        LocationPoint(latitude=None, longitude=77.0),
    ]

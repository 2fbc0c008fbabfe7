"""Tests for the event store append and retention paths."""

import asyncio
from datetime import datetime, timedelta
from unittest.mock import AsyncMock

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker

from insightify.core.clock import utcnow
from insightify.core.exceptions import StorageUnavailableError, ValidationError
from insightify.domain.models.tracking import EventRecord, HeatmapPointRecord, PageViewRecord
from insightify.domain.services.event_store import EventStore
from insightify.persistence.database import Base
from insightify.persistence.models import Event, HeatmapPage, HeatmapPoint, PageView, VisitorSession

PROJECT = "proj-1"
T0 = datetime(2026, 3, 10, 12, 0, 0)


def page_view(session_id: str, url: str = "/", at: datetime | None = None, **kwargs) -> PageViewRecord:
    return PageViewRecord(session_id=session_id, page_url=url, timestamp=at, **kwargs)


def click(url: str, x: int, y: int, count: int = 1, **kwargs) -> HeatmapPointRecord:
    return HeatmapPointRecord(page_url=url, heatmap_type="click", x=x, y=y, count=count, **kwargs)


async def _count(session, model) -> int:
    result = await session.execute(select(func.count()).select_from(model))
    return result.scalar_one()


async def _session_row(session, session_id: str, project_id: str = PROJECT) -> VisitorSession:
    result = await session.execute(
        select(VisitorSession).where(
            VisitorSession.project_id == project_id,
            VisitorSession.session_id == session_id,
        )
    )
    return result.scalar_one()


@pytest.mark.asyncio
class TestAppendPageViews:
    async def test_empty_batch_is_noop(self, db_session):
        store = EventStore(db_session)

        assert await store.append_page_views(PROJECT, []) == []
        assert await _count(db_session, PageView) == 0
        assert await _count(db_session, VisitorSession) == 0

    async def test_stores_rows_and_session_rollup(self, db_session):
        store = EventStore(db_session)
        batch = [
            page_view("s1", "/", T0, device_type="mobile", browser="Safari", os="iOS"),
            page_view("s1", "/pricing", T0 + timedelta(seconds=40), device_type="desktop"),
        ]

        stored = await store.append_page_views(PROJECT, batch)

        assert [pv.page_url for pv in stored] == ["/", "/pricing"]
        assert all(pv.id is not None for pv in stored)
        row = await _session_row(db_session, "s1")
        assert row.page_views == 2
        assert row.start_time == T0
        assert row.end_time == T0 + timedelta(seconds=40)
        # Device fields come from the first page view
        assert row.device_type == "mobile"
        assert row.os == "iOS"

    async def test_single_record_session_has_no_end_time(self, db_session):
        store = EventStore(db_session)

        await store.append_page_views(PROJECT, [page_view("s1", "/", T0)])

        row = await _session_row(db_session, "s1")
        assert row.page_views == 1
        assert row.end_time is None

    async def test_later_batches_extend_session(self, db_session):
        store = EventStore(db_session)
        await store.append_page_views(PROJECT, [page_view("s1", "/", T0)])

        await store.append_page_views(PROJECT, [page_view("s1", "/docs", T0 + timedelta(minutes=3))])

        row = await _session_row(db_session, "s1")
        assert row.page_views == 2
        assert row.start_time == T0
        assert row.end_time == T0 + timedelta(minutes=3)

    async def test_older_record_in_later_batch_keeps_session_end(self, db_session):
        store = EventStore(db_session)
        await store.append_page_views(PROJECT, [page_view("s1", "/docs", T0 + timedelta(minutes=5))])

        await store.append_page_views(PROJECT, [page_view("s1", "/", T0)])

        db_session.expire_all()
        row = await _session_row(db_session, "s1")
        assert row.page_views == 2
        assert row.start_time == T0
        assert row.end_time == T0 + timedelta(minutes=5)

    async def test_assigns_timestamp_when_missing(self, db_session):
        store = EventStore(db_session)
        before = utcnow()

        stored = await store.append_page_views(PROJECT, [page_view("s1")])

        assert before <= stored[0].timestamp <= utcnow()

    async def test_storage_failure_rolls_back_batch(self, db_session):
        store = EventStore(db_session)
        store.session_repo.merge = AsyncMock(
            side_effect=OperationalError("INSERT", {}, ConnectionRefusedError("refused"))
        )

        with pytest.raises(StorageUnavailableError):
            await store.append_page_views(PROJECT, [page_view("s1", "/", T0)])

        assert await _count(db_session, PageView) == 0


@pytest.mark.asyncio
class TestAppendEvents:
    async def test_events_update_existing_session(self, db_session):
        store = EventStore(db_session)
        await store.append_page_views(PROJECT, [page_view("s1", "/", T0)])

        stored = await store.append_events(
            PROJECT,
            [
                EventRecord(
                    session_id="s1",
                    event_type="signup",
                    event_data={"plan": "pro"},
                    timestamp=T0 + timedelta(seconds=90),
                )
            ],
        )

        assert stored[0].event_data == {"plan": "pro"}
        row = await _session_row(db_session, "s1")
        assert row.page_views == 1
        assert row.events == 1
        assert row.end_time == T0 + timedelta(seconds=90)

    async def test_empty_batch_is_noop(self, db_session):
        store = EventStore(db_session)

        assert await store.append_events(PROJECT, []) == []
        assert await _count(db_session, Event) == 0


@pytest.mark.asyncio
class TestAppendHeatmapPoints:
    async def test_duplicate_keys_in_batch_are_summed(self, db_session):
        store = EventStore(db_session)

        merged = await store.append_heatmap_points(
            PROJECT,
            [click("/", 10, 20, 1), click("/", 10, 20, 2), click("/", 10, 20)],
        )

        assert len(merged) == 1
        assert merged[0]["count"] == 4
        result = await db_session.execute(select(HeatmapPoint))
        points = result.scalars().all()
        assert len(points) == 1
        assert points[0].count == 4

    async def test_counts_accumulate_across_batches(self, db_session):
        store = EventStore(db_session)

        await store.append_heatmap_points(PROJECT, [click("/", 10, 20, 2)])
        await store.append_heatmap_points(PROJECT, [click("/", 10, 20, 5), click("/", 11, 20)])

        result = await db_session.execute(
            select(HeatmapPoint.x, HeatmapPoint.count).order_by(HeatmapPoint.x)
        )
        assert result.all() == [(10, 7), (11, 1)]

    async def test_latest_non_null_element_wins(self, db_session):
        store = EventStore(db_session)
        await store.append_heatmap_points(
            PROJECT, [click("/", 1, 1, element_selector="#old", element_text="Old")]
        )

        await store.append_heatmap_points(PROJECT, [click("/", 1, 1, element_selector="#new")])
        await store.append_heatmap_points(PROJECT, [click("/", 1, 1)])

        db_session.expire_all()
        result = await db_session.execute(select(HeatmapPoint))
        point = result.scalar_one()
        assert point.count == 3
        assert point.element_selector == "#new"
        assert point.element_text == "Old"

    async def test_page_rollup_tracks_point_totals(self, db_session):
        store = EventStore(db_session)

        await store.append_heatmap_points(
            PROJECT,
            [
                click("/", 1, 1, 3, page_title="Home"),
                HeatmapPointRecord(page_url="/", heatmap_type="scroll", x=0, y=500),
            ],
        )
        await store.append_heatmap_points(PROJECT, [click("/", 2, 2)])

        db_session.expire_all()
        result = await db_session.execute(select(HeatmapPage))
        page = result.scalar_one()
        assert page.page_title == "Home"
        assert page.total_clicks == 4
        assert page.total_scrolls == 1
        assert page.total_moves == 0

    async def test_merge_order_does_not_change_counts(self, db_session):
        store = EventStore(db_session)
        first = [click("/", 1, 1, 2), click("/", 2, 2)]
        second = [click("/", 1, 1, 3), click("/a", 5, 5)]

        for batch in (first, second):
            await store.append_heatmap_points("forward", batch)
        for batch in (second, first):
            await store.append_heatmap_points("reverse", batch)

        async def totals(project_id: str):
            result = await db_session.execute(
                select(HeatmapPoint.page_url, HeatmapPoint.x, HeatmapPoint.y, HeatmapPoint.count)
                .where(HeatmapPoint.project_id == project_id)
                .order_by(HeatmapPoint.page_url, HeatmapPoint.x)
            )
            return result.all()

        assert await totals("forward") == await totals("reverse")
        assert await totals("forward") == [("/", 1, 1, 5), ("/", 2, 2, 1), ("/a", 5, 5, 1)]

    async def test_older_observation_keeps_latest_timestamp(self, db_session):
        store = EventStore(db_session)
        await store.append_heatmap_points(PROJECT, [click("/", 1, 1, timestamp=T0)])

        await store.append_heatmap_points(
            PROJECT, [click("/", 1, 1, timestamp=T0 - timedelta(days=30))]
        )

        db_session.expire_all()
        result = await db_session.execute(select(HeatmapPoint))
        point = result.scalar_one()
        assert point.count == 2
        assert point.timestamp == T0


@pytest.mark.asyncio
class TestConcurrentHeatmapIngest:
    @pytest.fixture
    async def session_factory(self, tmp_path):
        engine = create_async_engine(
            f"sqlite+aiosqlite:///{tmp_path / 'heatmaps.db'}",
            connect_args={"timeout": 30},
        )
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

        yield sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

        await engine.dispose()

    async def test_parallel_batches_on_disjoint_and_shared_keys(self, session_factory):
        async def ingest(worker: int):
            async with session_factory() as session:
                await EventStore(session).append_heatmap_points(
                    PROJECT, [click("/", worker + 1, 0), click("/", 0, 100)]
                )

        await asyncio.gather(*(ingest(worker) for worker in range(10)))

        async with session_factory() as session:
            result = await session.execute(
                select(HeatmapPoint.x, HeatmapPoint.y, HeatmapPoint.count).order_by(
                    HeatmapPoint.x, HeatmapPoint.y
                )
            )
            cells = result.all()
            page = (await session.execute(select(HeatmapPage))).scalar_one()

        assert cells[0] == (0, 100, 10)
        assert cells[1:] == [(x, 0, 1) for x in range(1, 11)]
        assert page.total_clicks == 20


@pytest.mark.asyncio
class TestCleanOldData:
    async def test_deletes_rows_before_cutoff(self, db_session):
        store = EventStore(db_session)
        old = utcnow() - timedelta(days=120)
        recent = utcnow() - timedelta(days=1)
        await store.append_page_views(
            PROJECT, [page_view("old", "/", old), page_view("new", "/", recent)]
        )
        await store.append_events(
            PROJECT, [EventRecord(session_id="old", event_type="click", timestamp=old)]
        )
        await store.append_heatmap_points(
            PROJECT, [HeatmapPointRecord(page_url="/", x=1, y=1, timestamp=old)]
        )

        deleted = await store.clean_old_data(90)

        assert deleted == {"page_views": 1, "events": 1, "heatmap_points": 1, "sessions": 1}
        assert await _count(db_session, PageView) == 1
        assert await _count(db_session, VisitorSession) == 1

    async def test_negative_retention_rejected(self, db_session):
        store = EventStore(db_session)

        with pytest.raises(ValidationError):
            await store.clean_old_data(-1)

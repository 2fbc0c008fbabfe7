"""Tests for batch ingestion orchestration."""

from unittest.mock import MagicMock

import pytest
from sqlalchemy import func, select

from insightify.core.exceptions import ValidationError
from insightify.domain.models.tracking import PageViewRecord
from insightify.domain.services.broadcast_gateway import BroadcastGateway
from insightify.domain.services.ingestion_service import IngestionService, validate_batch
from insightify.domain.services.presence_tracker import LivePresenceTracker
from insightify.persistence.models import Event, HeatmapPoint, PageView

PROJECT = "proj-1"
IPHONE_UA = (
    "Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/17.0 Mobile/15E148 Safari/604.1"
)


@pytest.fixture
def tracker():
    return LivePresenceTracker()


@pytest.fixture
def gateway():
    gateway = BroadcastGateway()
    gateway.connect("dashboard")
    gateway.join("dashboard", PROJECT)
    return gateway


async def _count(session, model) -> int:
    result = await session.execute(select(func.count()).select_from(model))
    return result.scalar_one()


@pytest.mark.asyncio
class TestIngestPageViews:
    async def test_stores_tracks_and_broadcasts(self, db_session, tracker, gateway):
        service = IngestionService(db_session, tracker=tracker, gateway=gateway)

        accepted = await service.ingest_page_views(
            PROJECT,
            [{"session_id": "s1", "page_url": "/", "user_agent": IPHONE_UA, "ip_address": "10.0.0.1"}],
        )

        assert accepted == 1
        result = await db_session.execute(select(PageView))
        stored = result.scalar_one()
        assert (stored.device_type, stored.browser, stored.os) == ("mobile", "Safari", "iOS")
        assert tracker.get_live_visitors(PROJECT)[0].ip == "10.0.0.1"

        subscription = gateway.connect("dashboard")
        message = subscription.queue.get_nowait()
        assert message["type"] == "pageview"
        assert message["data"]["page_url"] == "/"

    async def test_supplied_device_fields_are_kept(self, db_session):
        service = IngestionService(db_session)

        await service.ingest_page_views(
            PROJECT,
            [PageViewRecord(session_id="s1", page_url="/", user_agent=IPHONE_UA, device_type="tablet")],
        )

        result = await db_session.execute(select(PageView))
        stored = result.scalar_one()
        assert stored.device_type == "tablet"
        assert stored.browser == "Safari"

    async def test_invalid_record_rejects_whole_batch(self, db_session, tracker):
        gateway = MagicMock()
        service = IngestionService(db_session, tracker=tracker, gateway=gateway)

        with pytest.raises(ValidationError) as exc_info:
            await service.ingest_page_views(
                PROJECT,
                [
                    {"session_id": "s1", "page_url": "/"},
                    {"session_id": "", "page_url": "/"},
                    {"session_id": "s3"},
                ],
            )

        errors = exc_info.value.errors
        assert {(e["index"], e["field"]) for e in errors} == {(1, "session_id"), (2, "page_url")}
        assert await _count(db_session, PageView) == 0
        assert tracker.get_live_visitor_count(PROJECT) == 0
        gateway.broadcast_page_view.assert_not_called()

    async def test_empty_batch_accepts_nothing(self, db_session, tracker):
        service = IngestionService(db_session, tracker=tracker)

        assert await service.ingest_page_views(PROJECT, []) == 0


@pytest.mark.asyncio
class TestIngestEventsAndHeatmap:
    async def test_events_broadcast(self, db_session, gateway):
        service = IngestionService(db_session, gateway=gateway)

        accepted = await service.ingest_events(
            PROJECT,
            [
                {"session_id": "s1", "event_type": "signup", "event_data": {"plan": "pro"}},
                {"session_id": "s1", "event_type": "click"},
            ],
        )

        assert accepted == 2
        assert await _count(db_session, Event) == 2
        assert gateway.connect("dashboard").queue.qsize() == 2

    async def test_heatmap_counts_records_and_broadcasts_merged_points(self, db_session, gateway):
        service = IngestionService(db_session, gateway=gateway)

        accepted = await service.ingest_heatmap_points(
            PROJECT,
            [
                {"page_url": "/", "x": 1, "y": 2},
                {"page_url": "/", "x": 1, "y": 2, "count": 2},
            ],
        )

        assert accepted == 2
        result = await db_session.execute(select(HeatmapPoint.count))
        assert result.scalar_one() == 3
        message = gateway.connect("dashboard").queue.get_nowait()
        assert message["type"] == "heatmap"
        assert message["data"]["count"] == 3

    async def test_invalid_heatmap_type_rejected(self, db_session):
        service = IngestionService(db_session)

        with pytest.raises(ValidationError):
            await service.ingest_heatmap_points(
                PROJECT, [{"page_url": "/", "x": 1, "y": 1, "heatmap_type": "hover"}]
            )

        assert await _count(db_session, HeatmapPoint) == 0


def test_validate_batch_accepts_models_and_dicts():
    records = validate_batch(
        PageViewRecord,
        [PageViewRecord(session_id="a", page_url="/"), {"session_id": "b", "page_url": "/x"}],
    )

    assert [r.session_id for r in records] == ["a", "b"]
    assert records[0].referrer == "direct"

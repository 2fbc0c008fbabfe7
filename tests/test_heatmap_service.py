"""Tests for heatmap aggregation queries."""

from datetime import datetime

import pytest

from insightify.core.exceptions import ValidationError
from insightify.domain.models.tracking import HeatmapPointRecord
from insightify.domain.services.event_store import EventStore
from insightify.domain.services.heatmap_service import HeatmapService

PROJECT = "proj-1"


def point(url: str, x: int, y: int, count: int = 1, heatmap_type: str = "click", **kwargs):
    return HeatmapPointRecord(page_url=url, heatmap_type=heatmap_type, x=x, y=y, count=count, **kwargs)


@pytest.fixture
async def heatmaps(db_session):
    store = EventStore(db_session)
    await store.append_heatmap_points(
        PROJECT,
        [
            point("/", 10, 10, 5, element_selector="#buy", element_text="Buy"),
            point("/", 20, 20, 2, element_selector="#nav"),
            point("/", 30, 30, 2),
            point("/", 0, 800, 4, heatmap_type="scroll"),
            point("/about", 5, 5, 1, timestamp=datetime(2026, 1, 1)),
        ],
    )
    return HeatmapService(db_session)


@pytest.mark.asyncio
class TestHeatmapService:
    async def test_aggregated_by_page_orders_by_count(self, heatmaps):
        cells = await heatmaps.get_aggregated_by_page(PROJECT, "/", "click")

        assert [(c.x, c.y, c.count) for c in cells] == [(10, 10, 5), (20, 20, 2), (30, 30, 2)]

    async def test_aggregated_sum_matches_ingested_counts(self, heatmaps, db_session):
        await EventStore(db_session).append_heatmap_points(PROJECT, [point("/", 30, 30, 4)])

        cells = await heatmaps.get_aggregated_by_page(PROJECT, "/", "click")

        assert sum(c.count for c in cells) == 5 + 2 + 2 + 4
        assert cells[0].x == 30

    async def test_element_analysis_skips_points_without_selector(self, heatmaps):
        elements = await heatmaps.get_element_analysis(PROJECT, "/", "click")

        assert [(e.element_selector, e.element_text, e.count) for e in elements] == [
            ("#buy", "Buy", 5),
            ("#nav", None, 2),
        ]

    async def test_unknown_type_rejected(self, heatmaps):
        with pytest.raises(ValidationError):
            await heatmaps.get_aggregated_by_page(PROJECT, "/", "hover")

    async def test_project_stats(self, heatmaps):
        stats = await heatmaps.get_project_stats(PROJECT)

        assert stats.total_pages == 2
        assert stats.total_clicks == 10
        assert stats.total_scrolls == 4
        assert stats.total_moves == 0
        assert stats.total_activity == 14
        assert stats.most_active_page == "/"

    async def test_project_stats_none_without_data(self, db_session):
        assert await HeatmapService(db_session).get_project_stats("empty") is None

    async def test_pages_listing(self, heatmaps):
        pages = await heatmaps.get_pages(PROJECT)

        by_url = {p["page_url"]: p for p in pages}
        assert set(by_url) == {"/", "/about"}
        assert by_url["/"]["total_clicks"] == 9
        assert by_url["/"]["total_scrolls"] == 4

    async def test_points_by_date_range(self, heatmaps):
        points = await heatmaps.get_points_by_date_range(
            PROJECT, "/about", datetime(2025, 12, 31), datetime(2026, 1, 2)
        )

        assert [(p["x"], p["y"]) for p in points] == [(5, 5)]
        assert await heatmaps.get_points_by_date_range(
            PROJECT, "/about", datetime(2026, 2, 1), datetime(2026, 2, 2)
        ) == []

    async def test_export_points_filters(self, heatmaps):
        everything = await heatmaps.export_points(PROJECT)
        scrolls = await heatmaps.export_points(PROJECT, heatmap_type="scroll")

        assert len(everything) == 5
        assert [(p["page_url"], p["count"]) for p in scrolls] == [("/", 4)]

    async def test_delete_page(self, heatmaps):
        assert await heatmaps.delete_page(PROJECT, "/") is True

        assert await heatmaps.get_aggregated_by_page(PROJECT, "/", "click") == []
        assert [p["page_url"] for p in await heatmaps.get_pages(PROJECT)] == ["/about"]

    async def test_delete_unknown_page_is_noop(self, heatmaps):
        assert await heatmaps.delete_page(PROJECT, "/missing") is False
        assert len(await heatmaps.export_points(PROJECT)) == 5

"""Dashboard analytics response schemas."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel

from insightify.domain.models.analytics import (
    EventTypeSummary,
    HeatmapCell,
    RealtimeStats,
    TimeSeriesPoint,
)


class TimeSeriesResponse(BaseModel):
    granularity: str
    start: datetime
    end: datetime
    points: list[TimeSeriesPoint] = []


class EventTypesResponse(BaseModel):
    event_types: list[EventTypeSummary] = []


class ExportResponse(BaseModel):
    record_type: str
    start: datetime
    end: datetime
    rows: list[dict[str, Any]] = []


class HeatmapDataResponse(BaseModel):
    page_url: str
    heatmap_type: str
    points: list[HeatmapCell] = []


class HeatmapDeleteResponse(BaseModel):
    page_url: str
    deleted: bool


class LiveVisitorResponse(BaseModel):
    session_id: str
    current_page: str
    user_agent: str | None = None
    ip: str | None = None
    last_activity: datetime
    is_active: bool

    class Config:
        from_attributes = True


class RealtimeResponse(BaseModel):
    live_count: int = 0
    live_visitors: list[LiveVisitorResponse] = []
    stats: RealtimeStats = RealtimeStats()
    recent_page_views: list[dict[str, Any]] = []
    recent_events: list[dict[str, Any]] = []


class LiveCountResponse(BaseModel):
    project_id: str
    live_count: int

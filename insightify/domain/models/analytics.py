"""Result models returned by the aggregation and heatmap queries."""

from datetime import datetime

from pydantic import BaseModel


class AnalyticsSummary(BaseModel):
    total_page_views: int = 0
    unique_sessions: int = 0
    unique_visitors: int = 0
    bounce_rate: float = 0.0  # percent, two decimals
    average_session_duration: int = 0  # seconds
    average_page_views_per_session: float = 0.0


class TopPage(BaseModel):
    url: str
    views: int
    sessions: int


class TrafficSource(BaseModel):
    source: str
    visitors: int


class DeviceShare(BaseModel):
    device: str
    sessions: int
    percentage: int  # independently rounded, may not sum to 100


class TimeSeriesPoint(BaseModel):
    period: datetime
    page_views: int = 0
    sessions: int = 0
    unique_visitors: int = 0


class EventTypeSummary(BaseModel):
    event_type: str
    count: int
    unique_sessions: int


class RealtimeStats(BaseModel):
    active_sessions: int = 0
    page_views_last_hour: int = 0
    events_last_hour: int = 0


class HeatmapCell(BaseModel):
    x: int
    y: int
    count: int


class ElementActivity(BaseModel):
    element_selector: str
    element_text: str | None = None
    count: int


class HeatmapProjectStats(BaseModel):
    total_pages: int
    total_clicks: int
    total_scrolls: int
    total_moves: int
    total_activity: int
    most_active_page: str | None = None

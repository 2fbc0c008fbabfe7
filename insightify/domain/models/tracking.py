"""Inbound tracking records accepted by the ingestion path."""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

DeviceType = Literal["desktop", "mobile", "tablet"]
HeatmapType = Literal["click", "scroll", "move"]


class PageViewRecord(BaseModel):
    """One page load reported by the tracking snippet."""

    model_config = ConfigDict(extra="ignore")

    session_id: str = Field(min_length=1, max_length=255)
    page_url: str = Field(min_length=1)
    referrer: str = "direct"  # URL or the literal "direct"
    page_title: str | None = None
    user_agent: str | None = None
    visitor_id: str | None = Field(default=None, max_length=255)
    ip_address: str | None = None
    # Derived from user_agent on ingest when omitted
    device_type: DeviceType | None = None
    browser: str | None = Field(default=None, max_length=50)
    os: str | None = Field(default=None, max_length=50)
    # Server-assigned unless supplied by a batch import
    timestamp: datetime | None = None


class EventRecord(BaseModel):
    """One custom or system interaction."""

    model_config = ConfigDict(extra="ignore")

    session_id: str = Field(min_length=1, max_length=255)
    event_type: str = Field(min_length=1, max_length=100)
    event_data: dict[str, Any] | None = None
    page_url: str | None = None
    timestamp: datetime | None = None


class HeatmapPointRecord(BaseModel):
    """One or more interactions observed at a coordinate."""

    model_config = ConfigDict(extra="ignore")

    page_url: str = Field(min_length=1)
    heatmap_type: HeatmapType = "click"
    x: int
    y: int
    count: int = Field(default=1, ge=1)
    page_title: str | None = None
    element_selector: str | None = None
    element_text: str | None = None
    timestamp: datetime | None = None

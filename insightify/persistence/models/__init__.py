"""Database models."""

from insightify.persistence.models.event import Event
from insightify.persistence.models.heatmap import HEATMAP_TYPES, HeatmapPage, HeatmapPoint
from insightify.persistence.models.page_view import PageView
from insightify.persistence.models.visitor_session import VisitorSession

__all__ = [
    "Event",
    "HEATMAP_TYPES",
    "HeatmapPage",
    "HeatmapPoint",
    "PageView",
    "VisitorSession",
]

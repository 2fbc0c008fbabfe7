"""Repositories for data access."""

from insightify.persistence.repositories.base import BaseRepository
from insightify.persistence.repositories.event_repository import EventRepository
from insightify.persistence.repositories.heatmap_repository import HeatmapRepository
from insightify.persistence.repositories.page_view_repository import PageViewRepository
from insightify.persistence.repositories.session_repository import SessionRepository

__all__ = [
    "BaseRepository",
    "EventRepository",
    "HeatmapRepository",
    "PageViewRepository",
    "SessionRepository",
]

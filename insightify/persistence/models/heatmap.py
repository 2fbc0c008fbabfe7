"""Heatmap point and page rollup models."""

from sqlalchemy import Column, DateTime, Index, Integer, String, Text, UniqueConstraint

from insightify.core.clock import utcnow
from insightify.persistence.database import Base

HEATMAP_TYPES = ("click", "scroll", "move")


class HeatmapPoint(Base):
    """Aggregated interaction count at one coordinate on one page.

    At most one row exists per (project, page, x, y, type); new observations
    increment ``count``.
    """

    __tablename__ = "heatmap_points"

    id = Column(Integer, primary_key=True, index=True)
    project_id = Column(String(64), nullable=False, index=True)
    page_url = Column(Text, nullable=False)
    page_title = Column(Text, nullable=True)

    heatmap_type = Column(String(10), nullable=False, default="click")
    x = Column(Integer, nullable=False)
    y = Column(Integer, nullable=False)
    count = Column(Integer, nullable=False, default=1)

    element_selector = Column(Text, nullable=True)
    element_text = Column(Text, nullable=True)

    timestamp = Column(DateTime, default=utcnow, nullable=False, index=True)

    __table_args__ = (
        UniqueConstraint(
            "project_id", "page_url", "x", "y", "heatmap_type",
            name="uq_heatmap_points_key",
        ),
        Index("ix_heatmap_points_project_page_type", "project_id", "page_url", "heatmap_type"),
    )

    def __repr__(self) -> str:
        return (
            f"<HeatmapPoint(project_id={self.project_id}, page_url={self.page_url}, "
            f"type={self.heatmap_type}, x={self.x}, y={self.y}, count={self.count})>"
        )


class HeatmapPage(Base):
    """Per-page heatmap rollup, kept in step with point writes."""

    __tablename__ = "heatmap_pages"

    id = Column(Integer, primary_key=True, index=True)
    project_id = Column(String(64), nullable=False, index=True)
    page_url = Column(Text, nullable=False)
    page_title = Column(Text, nullable=True)

    total_clicks = Column(Integer, nullable=False, default=0)
    total_scrolls = Column(Integer, nullable=False, default=0)
    total_moves = Column(Integer, nullable=False, default=0)

    last_activity = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("project_id", "page_url", name="uq_heatmap_pages_project_page"),
    )

    def __repr__(self) -> str:
        return f"<HeatmapPage(project_id={self.project_id}, page_url={self.page_url})>"

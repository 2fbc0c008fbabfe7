"""Event model for custom and system interactions."""

from sqlalchemy import JSON, Column, DateTime, Index, Integer, String, Text

from insightify.core.clock import utcnow
from insightify.persistence.database import Base


class Event(Base):
    """One custom or system interaction (click, scroll, custom...)."""

    __tablename__ = "events"

    id = Column(Integer, primary_key=True, index=True)
    project_id = Column(String(64), nullable=False, index=True)
    session_id = Column(String(255), nullable=False, index=True)

    event_type = Column(String(100), nullable=False, index=True)
    event_data = Column(JSON, nullable=True)
    page_url = Column(Text, nullable=True)

    timestamp = Column(DateTime, default=utcnow, nullable=False, index=True)

    __table_args__ = (
        Index("ix_events_project_type_timestamp", "project_id", "event_type", "timestamp"),
    )

    def __repr__(self) -> str:
        return f"<Event(id={self.id}, project_id={self.project_id}, event_type={self.event_type})>"

"""Session rollup model derived from page views and events."""

from sqlalchemy import Column, DateTime, Index, Integer, String, UniqueConstraint

from insightify.core.clock import utcnow
from insightify.persistence.database import Base


class VisitorSession(Base):
    """Rollup of page views and events sharing one session id."""

    __tablename__ = "sessions"

    id = Column(Integer, primary_key=True, index=True)
    project_id = Column(String(64), nullable=False, index=True)
    session_id = Column(String(255), nullable=False)
    visitor_id = Column(String(255), nullable=True)

    start_time = Column(DateTime, nullable=False, default=utcnow)
    end_time = Column(DateTime, nullable=True)  # Null until a second record arrives

    page_views = Column(Integer, nullable=False, default=0)
    events = Column(Integer, nullable=False, default=0)

    # Taken from the session's first page view
    device_type = Column(String(20), nullable=True)
    browser = Column(String(50), nullable=True)
    os = Column(String(50), nullable=True)

    __table_args__ = (
        UniqueConstraint("project_id", "session_id", name="uq_sessions_project_session"),
        Index("ix_sessions_project_start", "project_id", "start_time"),
    )

    def __repr__(self) -> str:
        return (
            f"<VisitorSession(project_id={self.project_id}, session_id={self.session_id}, "
            f"page_views={self.page_views})>"
        )

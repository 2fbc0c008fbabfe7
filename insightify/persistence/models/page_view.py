"""Page view model for raw tracking-snippet page loads."""

from sqlalchemy import Column, DateTime, Index, Integer, String, Text

from insightify.core.clock import utcnow
from insightify.persistence.database import Base


class PageView(Base):
    """One browser page load. Immutable once written."""

    __tablename__ = "page_views"

    id = Column(Integer, primary_key=True, index=True)
    project_id = Column(String(64), nullable=False, index=True)

    # Session tracking
    session_id = Column(String(255), nullable=False, index=True)
    visitor_id = Column(String(255), nullable=True)  # Persistent browser id, if the snippet sends one

    page_url = Column(Text, nullable=False)
    page_title = Column(Text, nullable=True)
    referrer = Column(Text, nullable=True)  # URL or the literal "direct"

    # Device/browser info
    user_agent = Column(Text, nullable=True)
    device_type = Column(String(20), nullable=True)  # desktop, mobile, tablet
    browser = Column(String(50), nullable=True)
    os = Column(String(50), nullable=True)
    ip_address = Column(String(64), nullable=True)

    timestamp = Column(DateTime, default=utcnow, nullable=False, index=True)

    __table_args__ = (
        Index("ix_page_views_project_timestamp", "project_id", "timestamp"),
    )

    def __repr__(self) -> str:
        return f"<PageView(id={self.id}, project_id={self.project_id}, page_url={self.page_url})>"

"""Base repository with project-scoped queries."""

from datetime import datetime
from typing import Any, Generic, Type, TypeVar

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from insightify.persistence.database import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseRepository(Generic[ModelType]):
    """Base repository with project-scoped query methods.

    Write helpers only flush; the caller owns the transaction so that raw rows
    and their rollups commit together.
    """

    #: Column used for time-window filters and retention
    time_column: str = "timestamp"

    def __init__(self, model: Type[ModelType], session: AsyncSession):
        """Initialize repository with model and session."""
        self.model = model
        self.session = session

    @property
    def dialect_name(self) -> str:
        """Name of the SQL dialect behind the session (postgresql, sqlite)."""
        return self.session.get_bind().dialect.name

    def _time(self):
        return getattr(self.model, self.time_column)

    async def list_in_window(
        self, project_id: str, start: datetime, end: datetime
    ) -> list[ModelType]:
        """List entities whose time column falls in the inclusive window."""
        stmt = (
            select(self.model)
            .where(
                self.model.project_id == project_id,
                self._time().between(start, end),
            )
            .order_by(self._time().desc())
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def add_all(self, project_id: str, rows: list[dict[str, Any]]) -> list[ModelType]:
        """Stage new entities for the project and flush them."""
        instances = [self.model(project_id=project_id, **row) for row in rows]
        self.session.add_all(instances)
        await self.session.flush()
        return instances

    async def delete_older_than(self, cutoff: datetime) -> int:
        """Delete every row whose time column is before the cutoff."""
        stmt = delete(self.model).where(self._time() < cutoff)
        result = await self.session.execute(stmt)
        return result.rowcount or 0

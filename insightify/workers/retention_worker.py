"""Retention worker deleting tracking data past the retention window.

Runs daily via an external scheduler hitting ``POST /workers/clean-old-data``.
"""

import logging
from typing import Annotated, Any

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from insightify.domain.services.event_store import EventStore
from insightify.persistence.database import get_db
from insightify.settings import settings

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/clean-old-data")
async def clean_old_data_task(
    db: Annotated[AsyncSession, Depends(get_db)],
    days_to_keep: Annotated[int | None, Query(ge=0)] = None,
) -> dict[str, Any]:
    """Delete page views, events, heatmap points and sessions past retention."""
    days = settings.analytics_retention_days if days_to_keep is None else days_to_keep
    deleted = await EventStore(db).clean_old_data(days)
    logger.info(
        f"Retention cleanup removed {sum(deleted.values())} rows",
        extra={"days_to_keep": days},
    )
    return {"status": "ok", "days_to_keep": days, "deleted": deleted}

"""
Activity checklist routes for the Bhakti Tracker API.
"""

import logging
from datetime import datetime, timezone
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Path, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from api.core.dates import resolve_date
from api.models.database import Activity, ensure_day, get_db
from api.models.schemas import (
    DATE_REGEX,
    ActivitiesResponse,
    ActivityOut,
    ActivityUpdate,
    ErrorResponse,
)
from tracker.catalog import activity_sort_key

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/activities", tags=["Activities"])


def to_out(activity: Activity) -> ActivityOut:
    return ActivityOut(
        name=activity.name,
        display_name=activity.display_name,
        category=activity.category,
        completed=activity.completed,
    )


async def load_activities(db: AsyncSession, date: str) -> list[ActivityOut]:
    """All checklist items for ``date`` in catalog order."""
    await ensure_day(db, date)
    result = await db.execute(select(Activity).where(Activity.date == date))
    activities = sorted(result.scalars().all(), key=lambda a: activity_sort_key(a.name))
    return [to_out(a) for a in activities]


@router.get(
    "/{date}",
    response_model=ActivitiesResponse,
    summary="Get activities for a date",
)
async def get_activities(
    db: Annotated[AsyncSession, Depends(get_db)],
    date: str = Path(..., pattern=DATE_REGEX),
) -> ActivitiesResponse:
    day = resolve_date(date)
    return ActivitiesResponse(date=day, activities=await load_activities(db, day))


@router.put(
    "",
    response_model=ActivityOut,
    responses={404: {"description": "Unknown activity", "model": ErrorResponse}},
    summary="Set an activity's completion",
)
async def set_activity(
    update: ActivityUpdate,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> ActivityOut:
    day = resolve_date(update.date)
    await ensure_day(db, day)
    result = await db.execute(
        select(Activity).where(Activity.name == update.name, Activity.date == day)
    )
    activity = result.scalar_one_or_none()
    if activity is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Unknown activity '{update.name}'",
        )

    if update.completed and not activity.completed:
        activity.completed_at = datetime.now(timezone.utc)
    elif not update.completed:
        activity.completed_at = None
    activity.completed = update.completed

    await db.commit()
    await db.refresh(activity)
    logger.debug(f"Set {update.name}@{day} completed={update.completed}")
    return to_out(activity)

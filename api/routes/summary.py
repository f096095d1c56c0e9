"""
Read-only summary routes: daily, weekly, and the note-taking export.
"""

from datetime import date as date_type, timedelta
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from api.core.dates import resolve_date
from api.models.database import Mantra, get_db
from api.models.schemas import (
    DATE_REGEX,
    DailySummary,
    ObsidianMantra,
    ObsidianSummary,
    WeeklyEntry,
    WeeklySummary,
)
from api.routes.activities import load_activities
from api.routes.mantras import load_mantras
from tracker.catalog import counter_sort_key

router = APIRouter(tags=["Summary"])


@router.get(
    "/summary/{date}",
    response_model=DailySummary,
    summary="Daily summary",
    description="All counters and activities for one day.",
)
async def get_summary(
    db: Annotated[AsyncSession, Depends(get_db)],
    date: str = Path(..., pattern=DATE_REGEX),
) -> DailySummary:
    day = resolve_date(date)
    return DailySummary(
        date=day,
        mantras=await load_mantras(db, day),
        activities=await load_activities(db, day),
    )


@router.get(
    "/weekly",
    response_model=WeeklySummary,
    summary="Weekly counters",
    description="Counter rows for the seven days ending at `end` (default today).",
)
async def get_weekly(
    db: Annotated[AsyncSession, Depends(get_db)],
    end: Optional[str] = Query(None, description="Last day as YYYY-MM-DD"),
) -> WeeklySummary:
    end_day = resolve_date(end)
    start_day = (date_type.fromisoformat(end_day) - timedelta(days=6)).isoformat()

    result = await db.execute(
        select(Mantra)
        .where(Mantra.date >= start_day, Mantra.date <= end_day)
        .order_by(Mantra.date)
    )
    rows = sorted(
        result.scalars().all(),
        key=lambda m: (m.date, counter_sort_key(m.name)),
    )
    return WeeklySummary(
        start=start_day,
        end=end_day,
        data=[
            WeeklyEntry(date=m.date, name=m.name, count=m.count, target=m.target)
            for m in rows
        ],
    )


@router.get(
    "/obsidian/{date}",
    response_model=ObsidianSummary,
    summary="Note-taking export",
    description="Daily summary with completion percentages for note-taking tools.",
)
async def get_obsidian(
    db: Annotated[AsyncSession, Depends(get_db)],
    date: str = Path(..., pattern=DATE_REGEX),
) -> ObsidianSummary:
    day = resolve_date(date)
    mantras = await load_mantras(db, day)
    activities = await load_activities(db, day)

    formatted = []
    for m in mantras:
        if m.target:
            percentage = min(round(m.count / m.target * 100), 100)
            complete = m.count >= m.target
        else:
            percentage = None
            complete = None
        formatted.append(ObsidianMantra(
            name=m.name,
            count=m.count,
            target=m.target,
            percentage=percentage,
            complete=complete,
        ))

    targeted = [m for m in formatted if m.target]
    return ObsidianSummary(
        date=day,
        mantras=formatted,
        totalCount=sum(m.count for m in formatted),
        allComplete=bool(targeted) and all(m.complete for m in targeted),
        activitiesCompleted=sum(1 for a in activities if a.completed),
        activitiesTotal=len(activities),
    )

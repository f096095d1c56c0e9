"""
Mantra counter routes for the Bhakti Tracker API.

Every read or write first materializes the default catalog for the date.
"""

import logging
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, HTTPException, Path, Query, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from api.core.dates import resolve_date
from api.models.database import Mantra, ensure_day, get_db
from api.models.schemas import (
    DATE_REGEX,
    ErrorResponse,
    MantraCountUpdate,
    MantraIncrement,
    MantraOut,
    MantrasResponse,
)
from tracker.catalog import counter_sort_key

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/mantras", tags=["Mantras"])


async def load_mantras(db: AsyncSession, date: str) -> list[MantraOut]:
    """All counters for ``date`` in catalog order."""
    await ensure_day(db, date)
    result = await db.execute(select(Mantra).where(Mantra.date == date))
    mantras = sorted(result.scalars().all(), key=lambda m: counter_sort_key(m.name))
    return [MantraOut.model_validate(m) for m in mantras]


async def get_mantra_or_404(db: AsyncSession, name: str, date: str) -> Mantra:
    await ensure_day(db, date)
    result = await db.execute(
        select(Mantra).where(Mantra.name == name, Mantra.date == date)
    )
    mantra = result.scalar_one_or_none()
    if mantra is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Unknown mantra '{name}'",
        )
    return mantra


# =============================================================================
# Read
# =============================================================================

@router.get(
    "",
    response_model=MantrasResponse,
    summary="Get mantras",
    description="Get the counters for a day (default today).",
)
async def get_mantras(
    db: Annotated[AsyncSession, Depends(get_db)],
    date: Optional[str] = Query(None, description="Day as YYYY-MM-DD"),
) -> MantrasResponse:
    day = resolve_date(date)
    return MantrasResponse(date=day, mantras=await load_mantras(db, day))


@router.get(
    "/{date}",
    response_model=MantrasResponse,
    summary="Get mantras for a date",
)
async def get_mantras_for_date(
    db: Annotated[AsyncSession, Depends(get_db)],
    date: str = Path(..., pattern=DATE_REGEX),
) -> MantrasResponse:
    day = resolve_date(date)
    return MantrasResponse(date=day, mantras=await load_mantras(db, day))


# =============================================================================
# Write
# =============================================================================

@router.put(
    "",
    response_model=MantraOut,
    responses={404: {"description": "Unknown mantra", "model": ErrorResponse}},
    summary="Set a mantra count",
    description="Overwrite the count for one counter. Clients push absolute counts here.",
)
async def set_mantra_count(
    update: MantraCountUpdate,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> MantraOut:
    day = resolve_date(update.date)
    mantra = await get_mantra_or_404(db, update.name, day)
    mantra.count = update.count
    await db.commit()
    await db.refresh(mantra)
    logger.debug(f"Set {update.name}@{day} to {update.count}")
    return MantraOut.model_validate(mantra)


@router.post(
    "/increment",
    response_model=MantraOut,
    responses={404: {"description": "Unknown mantra", "model": ErrorResponse}},
    summary="Increment a mantra",
    description="Add one to a counter on the server.",
)
async def increment_mantra(
    body: MantraIncrement,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> MantraOut:
    day = resolve_date(body.date)
    mantra = await get_mantra_or_404(db, body.name, day)
    mantra.count = Mantra.count + 1
    await db.commit()
    await db.refresh(mantra)
    return MantraOut.model_validate(mantra)

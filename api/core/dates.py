"""
Calendar-day helpers shared by the routes.
"""

from datetime import date as date_type
from typing import Optional

from fastapi import HTTPException, status

from tracker.models import validate_date


def today() -> str:
    """Server-local calendar day in YYYY-MM-DD form."""
    return date_type.today().isoformat()


def resolve_date(value: Optional[str]) -> str:
    """Validate a client-supplied day, defaulting to today."""
    if value is None:
        return today()
    try:
        return validate_date(value)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(e),
        )

"""
Pydantic schemas for the Bhakti Tracker API.

Field names follow the wire contract shared with every client
(``displayName`` for activities).
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

DATE_REGEX = r"^\d{4}-\d{2}-\d{2}$"


# =============================================================================
# Mantra Schemas
# =============================================================================

class MantraOut(BaseModel):
    """One counter as served to clients."""
    model_config = ConfigDict(from_attributes=True)

    name: str
    count: int = Field(..., ge=0)
    target: Optional[int] = None


class MantrasResponse(BaseModel):
    date: str
    mantras: list[MantraOut]


class MantraCountUpdate(BaseModel):
    """PUT /api/mantras body."""
    name: str = Field(..., min_length=1, max_length=50)
    date: Optional[str] = Field(None, pattern=DATE_REGEX)
    count: int = Field(..., ge=0)


class MantraIncrement(BaseModel):
    """POST /api/mantras/increment body."""
    name: str = Field(..., min_length=1, max_length=50)
    date: Optional[str] = Field(None, pattern=DATE_REGEX)


# =============================================================================
# Activity Schemas
# =============================================================================

class ActivityOut(BaseModel):
    """One checklist item as served to clients."""
    model_config = ConfigDict(populate_by_name=True)

    name: str
    display_name: str = Field(..., alias="displayName")
    category: str
    completed: bool


class ActivitiesResponse(BaseModel):
    date: str
    activities: list[ActivityOut]


class ActivityUpdate(BaseModel):
    """PUT /api/activities body."""
    name: str = Field(..., min_length=1, max_length=50)
    date: Optional[str] = Field(None, pattern=DATE_REGEX)
    completed: bool


# =============================================================================
# Summary Schemas
# =============================================================================

class DailySummary(BaseModel):
    date: str
    mantras: list[MantraOut]
    activities: list[ActivityOut]


class WeeklyEntry(BaseModel):
    date: str
    name: str
    count: int
    target: Optional[int] = None


class WeeklySummary(BaseModel):
    start: str
    end: str
    data: list[WeeklyEntry]


class ObsidianMantra(BaseModel):
    name: str
    count: int
    target: Optional[int] = None
    percentage: Optional[int] = None
    complete: Optional[bool] = None


class ObsidianSummary(BaseModel):
    """Daily summary formatted for note-taking integrations."""
    date: str
    mantras: list[ObsidianMantra]
    totalCount: int
    allComplete: bool
    activitiesCompleted: int
    activitiesTotal: int


# =============================================================================
# Common Schemas
# =============================================================================

class ErrorResponse(BaseModel):
    """Standard error response."""
    error: str
    detail: Optional[str] = None
    status_code: int


class HealthResponse(BaseModel):
    """Health check response."""
    status: str = "ok"
    version: str
    timestamp: str
    database: str = "connected"

"""
SQLAlchemy async models for the Bhakti Tracker API.

SQLite via aiosqlite by default; any async SQLAlchemy URL works.
"""

from datetime import datetime
from pathlib import Path
from typing import Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Index,
    Integer,
    String,
    UniqueConstraint,
    func,
    select,
)
from sqlalchemy.engine import make_url
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncAttrs, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.pool import NullPool

from api.core.config import settings
from tracker.catalog import DEFAULT_ACTIVITIES, DEFAULT_COUNTERS


# =============================================================================
# Database Engine and Session
# =============================================================================

def _engine_options(url: str) -> dict:
    if make_url(url).get_backend_name() == "sqlite":
        # One connection per session keeps aiosqlite off foreign event loops
        return {"poolclass": NullPool}
    return {"pool_pre_ping": True, "pool_size": 10, "max_overflow": 20}


engine = create_async_engine(
    settings.database_url,
    echo=settings.debug,
    **_engine_options(settings.database_url),
)

AsyncSessionLocal = async_sessionmaker(
    engine,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)


async def get_db():
    """Dependency to get database session."""
    async with AsyncSessionLocal() as session:
        yield session


# =============================================================================
# Base Model
# =============================================================================

class Base(AsyncAttrs, DeclarativeBase):
    """Base class for all database models."""
    pass


# =============================================================================
# Mantra Model
# =============================================================================

class Mantra(Base):
    """Daily recitation counter."""
    __tablename__ = "mantras"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(50), nullable=False)
    date: Mapped[str] = mapped_column(String(10), nullable=False, index=True)
    count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    target: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    __table_args__ = (
        UniqueConstraint("name", "date", name="uq_mantras_name_date"),
        CheckConstraint("count >= 0", name="ck_mantras_count_non_negative"),
    )


# =============================================================================
# Activity Model
# =============================================================================

class Activity(Base):
    """Daily ritual checklist item."""
    __tablename__ = "activities"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(50), nullable=False)
    date: Mapped[str] = mapped_column(String(10), nullable=False)
    display_name: Mapped[str] = mapped_column(String(100), nullable=False)
    category: Mapped[str] = mapped_column(String(50), nullable=False)
    completed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    completed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    __table_args__ = (
        UniqueConstraint("name", "date", name="uq_activities_name_date"),
        Index("ix_activities_date_category", "date", "category"),
    )


# =============================================================================
# Day Materialization
# =============================================================================

async def ensure_day(db: AsyncSession, date: str) -> None:
    """Insert any default mantras and activities missing for ``date``."""
    existing_mantras = set(
        (await db.execute(select(Mantra.name).where(Mantra.date == date))).scalars()
    )
    existing_activities = set(
        (await db.execute(select(Activity.name).where(Activity.date == date))).scalars()
    )

    added = False
    for name, target in DEFAULT_COUNTERS:
        if name not in existing_mantras:
            db.add(Mantra(name=name, date=date, count=0, target=target))
            added = True
    for name, display_name, category in DEFAULT_ACTIVITIES:
        if name not in existing_activities:
            db.add(Activity(
                name=name,
                date=date,
                display_name=display_name,
                category=category,
                completed=False,
            ))
            added = True

    if not added:
        return
    try:
        await db.commit()
    except IntegrityError:
        # A concurrent request materialized the same day first
        await db.rollback()


async def init_db():
    """Initialize database tables."""
    url = make_url(settings.database_url)
    if url.get_backend_name() == "sqlite" and url.database and url.database != ":memory:":
        Path(url.database).parent.mkdir(parents=True, exist_ok=True)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

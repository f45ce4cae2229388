"""Database initialization utilities."""

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from followup.db.base import Base
from followup.db.session import engine
from followup.models import Practitioner

logger = logging.getLogger(__name__)


async def create_tables() -> None:
    """Create all database tables."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables created")


async def create_demo_practitioner(session: AsyncSession) -> Practitioner | None:
    """Create a demo practitioner account if none exists.

    Returns:
        Created practitioner or None if one already exists
    """
    result = await session.execute(select(Practitioner).limit(1))
    if result.scalar_one_or_none():
        logger.info("Practitioner already exists, skipping demo account")
        return None

    practitioner = Practitioner(
        email="demo.practitioner@followup.local",
        full_name="Demo Practitioner",
        is_active=True,
    )
    session.add(practitioner)
    await session.commit()
    await session.refresh(practitioner)

    logger.info(f"Created demo practitioner: {practitioner.email}")
    return practitioner


async def init_db(session: AsyncSession) -> None:
    """Initialize database with tables and a demo account."""
    await create_tables()
    await create_demo_practitioner(session)

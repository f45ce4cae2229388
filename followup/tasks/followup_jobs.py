"""Scheduled follow-up jobs.

Fires scheduled dispatches that have fallen due, sends the single
follow-up reminder and expires dispatches nobody answered.

Usage:
    # Run every job once
    python -m followup.tasks.followup_jobs

    # Or a single job via cron (recommended hourly)
    0 * * * * cd /path/to/project && python -m followup.tasks.followup_jobs --job fire

    # Environment variables:
    DATABASE_URL - PostgreSQL connection string
    DELIVERY_ENDPOINT_URL - delivery service base URL (simulated when unset)
"""

import asyncio
import logging
import os
import sys
from dataclasses import asdict
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from followup.core.config import settings
from followup.services.delivery import DeliveryProvider
from followup.services.dispatch import DispatchService

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

JOBS = ("fire", "reminders", "expire")


async def run_jobs(
    session: AsyncSession,
    jobs: tuple[str, ...] = JOBS,
    provider: DeliveryProvider | None = None,
    now: datetime | None = None,
) -> dict:
    """Run the selected jobs against one session.

    Firing runs before expiry so a dispatch due today is sent rather than
    expired.

    Returns:
        Job name to report dict
    """
    service = DispatchService(session, provider=provider)
    results = {}

    if "fire" in jobs:
        today = now.date() if now else None
        results["fire"] = asdict(await service.fire_due_dispatches(today))
    if "reminders" in jobs:
        results["reminders"] = asdict(await service.send_reminders(now))
    if "expire" in jobs:
        results["expire"] = asdict(await service.expire_stale(now))

    return results


async def run_followup_task(
    database_url: str | None = None,
    jobs: tuple[str, ...] = JOBS,
) -> dict:
    """Run the follow-up jobs with a dedicated engine.

    Args:
        database_url: Database connection string. Defaults to settings.
        jobs: Which jobs to run

    Returns:
        Job results summary
    """
    db_url = database_url or os.getenv("DATABASE_URL") or settings.database_url

    # Convert sync URL to async if needed
    if db_url.startswith("postgresql://"):
        db_url = db_url.replace("postgresql://", "postgresql+asyncpg://", 1)

    logger.info(f"Starting follow-up jobs {', '.join(jobs)} at {datetime.now().isoformat()}")

    engine = create_async_engine(db_url, echo=False)
    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    try:
        async with session_factory() as session:
            results = await run_jobs(session, jobs)
            logger.info(f"Follow-up jobs complete: {results}")
            return results
    finally:
        await engine.dispose()


def main():
    """CLI entry point."""
    import argparse

    parser = argparse.ArgumentParser(description="Run follow-up dispatch jobs")
    parser.add_argument(
        "--job",
        choices=[*JOBS, "all"],
        default="all",
        help="Which job to run",
    )
    parser.add_argument(
        "--database-url",
        default=None,
        help="Database URL (overrides DATABASE_URL env var)",
    )
    args = parser.parse_args()

    jobs = JOBS if args.job == "all" else (args.job,)

    try:
        results = asyncio.run(run_followup_task(database_url=args.database_url, jobs=jobs))
        print(f"Jobs completed successfully: {results}")
        sys.exit(0)
    except Exception as e:
        logger.exception(f"Jobs failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()

"""
DoggyClub Backend — Maintenance Commands
==========================================

What:  Location retention job: deletes device locations nobody has updated
       within the retention period.
Who:   Run by an external scheduler (cron, Kubernetes CronJob), never by the
       HTTP app itself.
How:   `doggyclub-cleanup --older-than-hours 24`
       or `python -m app.maintenance --older-than-hours 24`

Retries:
    The job usually runs right after a deploy or a database failover, when
    the first connection attempt is the most likely to fail. Connection-level
    errors are retried with exponential backoff (tenacity); a bad argument is
    not.

Exit codes:
    0  rows deleted (possibly zero)
    1  gave up after the configured retry attempts
    2  invalid arguments
"""

import argparse
import asyncio
import logging
import sys
from datetime import timedelta
from typing import List, Optional

from sqlalchemy.exc import OperationalError
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
    wait_random,
)

from app.config import settings
from app.database import async_session_factory, dispose_engine
from app.exceptions import DatabaseError, ValidationError
from app.services.location_service import location_service

logger = logging.getLogger("doggyclub.maintenance")

# DatabaseError is how the service reports a failed DELETE; OperationalError
# and OSError surface from connect/commit outside the service call
RETRYABLE_ERRORS = (DatabaseError, OperationalError, OSError)


async def _cleanup_once(older_than: timedelta) -> int:
    async with async_session_factory() as session:
        try:
            deleted = await location_service.cleanup(session, older_than)
            await session.commit()
            return deleted
        except Exception:
            await session.rollback()
            raise


async def run_cleanup(older_than: timedelta) -> int:
    """
    Delete stale device locations, retrying transient database failures.

    Returns:
        Number of rows deleted
    """
    try:
        async for attempt in AsyncRetrying(
            retry=retry_if_exception_type(RETRYABLE_ERRORS),
            stop=stop_after_attempt(settings.cleanup_retry_attempts),
            # min_wait * 2^n capped at max_wait, plus random jitter
            wait=wait_exponential(
                multiplier=settings.cleanup_retry_min_wait,
                max=settings.cleanup_retry_max_wait,
            ) + wait_random(0, settings.cleanup_retry_jitter),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        ):
            with attempt:
                return await _cleanup_once(older_than)
    finally:
        await dispose_engine()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="doggyclub-cleanup",
        description="Delete device locations not updated within the retention period.",
    )
    parser.add_argument(
        "--older-than-hours",
        type=float,
        default=float(settings.location_retention_hours),
        help="Retention period in hours (default: %(default)s, from LOCATION_RETENTION_HOURS)",
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
    )

    older_than = timedelta(hours=args.older_than_hours)
    try:
        deleted = asyncio.run(run_cleanup(older_than))
    except ValidationError as e:
        logger.error("Invalid retention period: %s", e.message)
        return 2
    except RETRYABLE_ERRORS as e:
        logger.error(
            "Location cleanup failed after %d attempt(s): %s",
            settings.cleanup_retry_attempts,
            getattr(e, "message", str(e)),
        )
        return 1

    logger.info("Location cleanup complete: %d row(s) deleted", deleted)
    return 0


if __name__ == "__main__":
    sys.exit(main())

"""Worker process for scheduled ledger jobs.

Runs an asyncio loop that, once per interval, rolls the previous year's
balances forward (on Jan 1 only) and lapses expired carried-forward days.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import date

from leaveflow.config import get_settings
from leaveflow.db import get_session_factory

logger = logging.getLogger(__name__)


async def run_scheduled_jobs(today: date) -> None:
    """One iteration of the worker loop. Each job is isolated from the others."""
    from leaveflow.services.rollover import (
        companies_with_balances,
        execute_rollover,
        run_carry_forward_expiry,
    )

    session_factory = get_session_factory()

    if today.month == 1 and today.day == 1:
        from_year = today.year - 1
        try:
            async with session_factory() as session:
                company_ids = await companies_with_balances(session, from_year)
        except Exception:
            logger.exception("Could not list companies for rollover of %d", from_year)
            company_ids = []

        for company_id in company_ids:
            try:
                async with session_factory() as session:
                    result = await execute_rollover(session, company_id, from_year)
                logger.info(
                    "Rollover %d for company %s: executed=%d already_done=%d failed=%d",
                    from_year,
                    company_id,
                    result.executed,
                    result.already_done,
                    result.failed,
                )
            except Exception:
                logger.exception("Rollover %d failed for company %s", from_year, company_id)

    try:
        async with session_factory() as session:
            expiry = await run_carry_forward_expiry(session, today)
        if expiry.expired_balances > 0:
            logger.info("Carry-forward expiry for %s: expired=%d", today, expiry.expired_balances)
    except Exception:
        logger.exception("Carry-forward expiry failed for %s", today)


async def run_worker_loop() -> None:
    """Main worker loop."""
    interval = get_settings().worker_interval_seconds
    logger.info("Ledger worker started (interval=%ds)", interval)

    while True:
        await run_scheduled_jobs(date.today())
        await asyncio.sleep(interval)


def main() -> None:
    """Entry point for the worker process."""
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )
    asyncio.run(run_worker_loop())


if __name__ == "__main__":
    main()

"""ARQ worker entrypoint: runs the monthly billing cycle on a cron schedule.

Start with ``arq mysre.workers.main.WorkerSettings``. The job can also be
enqueued by hand (``run_billing_cycle``) to re-close a month.
"""

import asyncio
import logging

from arq import cron
from arq.connections import RedisSettings

from mysre.core.config import get_settings
from mysre.workers.billing_cycle import run_billing_cycle

logger = logging.getLogger(__name__)

settings = get_settings()


async def startup(ctx: dict) -> None:
    logging.basicConfig(level=settings.log_level.upper())
    from mysre.core.database import init_db
    await init_db()
    logger.info("Billing worker started")


async def shutdown(ctx: dict) -> None:
    logger.info("Billing worker stopped")


class WorkerSettings:
    """ARQ worker configuration."""
    functions = [run_billing_cycle]
    cron_jobs = [
        # 00:00 UTC on the first of every month
        cron(run_billing_cycle, day=1, hour=0, minute=0, run_at_startup=False),
    ]
    on_startup = startup
    on_shutdown = shutdown
    redis_settings = RedisSettings.from_dsn(settings.redis_url)
    # One cycle at a time; a month's reset must not interleave with a re-run
    max_jobs = 1
    job_timeout = 1800


if __name__ == "__main__":
    from arq import run_worker
    asyncio.run(run_worker(WorkerSettings))  # type: ignore[arg-type]

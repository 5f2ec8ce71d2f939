"""
定时任务调度器
"""

import logging
from datetime import timezone

from apscheduler.schedulers.blocking import BlockingScheduler
from apscheduler.triggers.interval import IntervalTrigger

from storefront.core.config import settings
from storefront.worker.tasks import reconcile_stale_transactions

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def build_scheduler() -> BlockingScheduler:
    scheduler = BlockingScheduler(timezone=timezone.utc)
    scheduler.add_job(
        reconcile_stale_transactions,
        IntervalTrigger(minutes=settings.RECONCILE_INTERVAL_MINUTES),
        id="ecpay_reconcile",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )
    return scheduler


def main() -> None:
    scheduler = build_scheduler()
    logger.info(
        "Scheduler started. Payment reconcile job runs every %s minutes.",
        settings.RECONCILE_INTERVAL_MINUTES,
    )
    scheduler.start()


if __name__ == "__main__":
    main()

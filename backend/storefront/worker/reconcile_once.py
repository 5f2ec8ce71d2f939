from __future__ import annotations

import logging

from storefront.worker.tasks import reconcile_stale_transactions

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("ecpay_reconcile")


def main() -> None:
    summary = reconcile_stale_transactions()
    logger.info(
        "Reconcile done: adopted=%d released=%d skipped=%d failed=%d",
        summary["adopted"],
        summary["released"],
        summary["skipped"],
        summary["failed"],
    )


if __name__ == "__main__":
    main()

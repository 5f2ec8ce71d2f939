"""
定时任务逻辑
"""

import logging
from uuid import uuid4

from sqlmodel import Session

from storefront import crud
from storefront.core.config import settings
from storefront.core.db import engine
from storefront.core.redis import acquire_lock, get_redis, release_lock
from storefront.enums import HashAlgorithm
from storefront.integrations.ecpay_logistics import LogisticsClient
from storefront.integrations.shopify import ShopifyAdminClient
from storefront.services.checkmac import CheckMacSigner
from storefront.services.fulfillment_service import FulfillmentService

logger = logging.getLogger(__name__)

RECONCILE_LOCK_KEY = "ecpay:reconcile:lock"
RECONCILE_LOCK_TTL_SECONDS = 60 * 5


def default_fulfillment() -> FulfillmentService:
    signer = CheckMacSigner(settings.ecpay_logistics_credentials(), HashAlgorithm.md5)
    return FulfillmentService(ShopifyAdminClient(), LogisticsClient(signer))


def reconcile_transaction(
    *, session: Session, fulfillment: FulfillmentService, merchant_trade_no: str
) -> str:
    """
    处理一笔租约过期的交易

    Returns:
        "adopted"（找到已建立的订单并标记完成）/ "released"（释放租约等待绿界重送）/ "skipped"
    """
    token = crud.transactions.claim(
        session=session,
        merchant_trade_no=merchant_trade_no,
        lease_seconds=settings.PAYMENT_CLAIM_LEASE_SECONDS,
    )
    if token is None:
        return "skipped"

    try:
        order = fulfillment.find_existing_order(merchant_trade_no)
        txn = crud.transactions.get_pending(session=session, merchant_trade_no=merchant_trade_no)
        if order is None or txn is None:
            crud.transactions.release_claim(
                session=session, merchant_trade_no=merchant_trade_no, token=token
            )
            return "released"
        record = crud.transactions.complete(session=session, txn=txn, token=token, order=order)
    except Exception:
        session.rollback()
        crud.transactions.release_claim(
            session=session, merchant_trade_no=merchant_trade_no, token=token
        )
        raise

    if record is None:
        return "skipped"
    logger.info("Trade %s adopted Shopify order %s", merchant_trade_no, order.get("id"))
    fulfillment.create_shipment(session=session, txn=txn)
    return "adopted"


def reconcile_stale_transactions(fulfillment: FulfillmentService | None = None) -> dict[str, int]:
    """
    对账：处理回调处理中途崩溃 / 超时留下的交易

    按 plg-trade-<交易编号> 标签查询 Shopify：
    - 找到订单：标记交易完成并写入订单镜像
    - 找不到：释放租约，等待绿界下一次重送时重新建单
    """
    summary = {"adopted": 0, "released": 0, "skipped": 0, "failed": 0}
    redis_client = get_redis()
    lock_value = str(uuid4())
    if not acquire_lock(
        redis_client, RECONCILE_LOCK_KEY, lock_value, expire_seconds=RECONCILE_LOCK_TTL_SECONDS
    ):
        logger.info("Reconcile task already running, skip this run.")
        return summary

    fulfillment = fulfillment or default_fulfillment()
    try:
        with Session(engine) as session:
            stale = crud.transactions.list_stale_claims(
                session=session, lease_seconds=settings.PAYMENT_CLAIM_LEASE_SECONDS
            )
            trade_nos = [txn.merchant_trade_no for txn in stale]
            if not trade_nos:
                logger.info("No stale payment claims found.")
                return summary

            for trade_no in trade_nos:
                try:
                    outcome = reconcile_transaction(
                        session=session, fulfillment=fulfillment, merchant_trade_no=trade_no
                    )
                except Exception as exc:
                    logger.error("Failed to reconcile trade %s: %s", trade_no, exc)
                    summary["failed"] += 1
                    continue
                summary[outcome] += 1

            logger.info("Reconcile finished: %s", summary)
    finally:
        release_lock(redis_client, RECONCILE_LOCK_KEY, lock_value)
    return summary

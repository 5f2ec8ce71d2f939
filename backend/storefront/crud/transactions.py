"""
待确认交易 CRUD 操作

claim / release_claim / complete 都是带条件的单条 UPDATE，
是否成功以受影响行数判断，不做"先读再写"。
"""
from datetime import timedelta
from typing import Any
from uuid import uuid4

from sqlalchemy import or_, update
from sqlmodel import Session, select

from storefront.crud.orders import upsert_order_record
from storefront.models import PendingTransaction, ShopifyOrder, utc_now


def persist_pending(
    *,
    session: Session,
    merchant_trade_no: str,
    user_id: int,
    total_amount: int,
    order_payload: dict[str, Any],
) -> PendingTransaction:
    """
    写入待确认交易；同一交易编号重新结账时覆盖内容并重置完成状态
    """
    now = utc_now()
    txn = session.get(PendingTransaction, merchant_trade_no)
    if txn is None:
        txn = PendingTransaction(
            merchant_trade_no=merchant_trade_no,
            user_id=user_id,
            total_amount=total_amount,
            order_payload=order_payload,
        )
    else:
        txn.user_id = user_id
        txn.total_amount = total_amount
        txn.order_payload = order_payload
        txn.processed_at = None
        txn.shopify_order_id = None
        txn.shopify_order_name = None
        txn.shopify_order_number = None
        txn.claimed_at = None
        txn.claim_token = None
        txn.attempts = 0
        txn.updated_at = now
    session.add(txn)
    session.commit()
    session.refresh(txn)
    return txn


def get_pending(*, session: Session, merchant_trade_no: str) -> PendingTransaction | None:
    return session.get(PendingTransaction, merchant_trade_no, populate_existing=True)


def claim(*, session: Session, merchant_trade_no: str, lease_seconds: int) -> str | None:
    """
    取得交易的处理租约

    只有在交易尚未完成、且没有其他未过期租约时才会成功。

    Returns:
        成功时返回租约 token，否则返回 None
    """
    now = utc_now()
    token = uuid4().hex
    stmt = (
        update(PendingTransaction)
        .where(PendingTransaction.merchant_trade_no == merchant_trade_no)
        .where(PendingTransaction.processed_at.is_(None))
        .where(
            or_(
                PendingTransaction.claimed_at.is_(None),
                PendingTransaction.claimed_at < now - timedelta(seconds=lease_seconds),
            )
        )
        .values(
            claimed_at=now,
            claim_token=token,
            attempts=PendingTransaction.attempts + 1,
            updated_at=now,
        )
        .execution_options(synchronize_session=False)
    )
    result = session.exec(stmt)
    session.commit()
    return token if result.rowcount == 1 else None


def release_claim(*, session: Session, merchant_trade_no: str, token: str) -> bool:
    """放弃租约，让下一次回调投递可以重新处理"""
    stmt = (
        update(PendingTransaction)
        .where(PendingTransaction.merchant_trade_no == merchant_trade_no)
        .where(PendingTransaction.processed_at.is_(None))
        .where(PendingTransaction.claim_token == token)
        .values(claimed_at=None, claim_token=None, updated_at=utc_now())
        .execution_options(synchronize_session=False)
    )
    result = session.exec(stmt)
    session.commit()
    return result.rowcount == 1


def complete(
    *,
    session: Session,
    txn: PendingTransaction,
    token: str,
    order: dict[str, Any],
) -> ShopifyOrder | None:
    """
    标记交易完成并写入 Shopify 订单镜像（同一个数据库事务）

    processed_at 只会从 NULL 变成非 NULL 一次；租约已被他人取得时返回 None。
    """
    now = utc_now()
    stmt = (
        update(PendingTransaction)
        .where(PendingTransaction.merchant_trade_no == txn.merchant_trade_no)
        .where(PendingTransaction.processed_at.is_(None))
        .where(PendingTransaction.claim_token == token)
        .values(
            processed_at=now,
            shopify_order_id=int(order["id"]),
            shopify_order_name=order.get("name"),
            shopify_order_number=order.get("order_number"),
            claim_token=None,
            updated_at=now,
        )
        .execution_options(synchronize_session=False)
    )
    result = session.exec(stmt)
    if result.rowcount != 1:
        session.rollback()
        return None

    record = upsert_order_record(
        session=session,
        order=order,
        user_id=txn.user_id,
        order_payload=txn.order_payload,
        merchant_trade_no=txn.merchant_trade_no,
        commit=False,
    )
    session.commit()
    session.refresh(record)
    return record


def list_stale_claims(
    *, session: Session, lease_seconds: int, limit: int = 100
) -> list[PendingTransaction]:
    """租约已过期但仍未完成的交易（处理过程中崩溃或超时）"""
    cutoff = utc_now() - timedelta(seconds=lease_seconds)
    stmt = (
        select(PendingTransaction)
        .where(PendingTransaction.processed_at.is_(None))
        .where(PendingTransaction.claimed_at.is_not(None))
        .where(PendingTransaction.claimed_at < cutoff)
        .order_by(PendingTransaction.claimed_at)
        .limit(limit)
    )
    return list(session.exec(stmt).all())

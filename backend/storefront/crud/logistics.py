"""物流单与门市选择 CRUD 操作"""
from datetime import timedelta
from typing import Any

from sqlmodel import Session, select

from storefront.models import LogisticsShipment, StoreSelection, as_utc, utc_now


def save_shipment(
    *,
    session: Session,
    merchant_trade_no: str,
    logistics_id: str,
    logistics_subtype: str | None,
    cvs_payment_no: str | None = None,
    cvs_validation_no: str | None = None,
) -> LogisticsShipment:
    """
    保存绿界物流单（按交易编号 upsert）

    寄货编号 / 验证码为空时保留原值。
    """
    shipment = session.exec(
        select(LogisticsShipment).where(LogisticsShipment.merchant_trade_no == merchant_trade_no)
    ).first()
    if shipment is None:
        shipment = LogisticsShipment(merchant_trade_no=merchant_trade_no, logistics_id=logistics_id)

    shipment.logistics_id = logistics_id
    shipment.logistics_subtype = logistics_subtype or ""
    shipment.cvs_payment_no = cvs_payment_no or shipment.cvs_payment_no
    shipment.cvs_validation_no = cvs_validation_no or shipment.cvs_validation_no
    shipment.updated_at = utc_now()
    session.add(shipment)
    session.commit()
    session.refresh(shipment)
    return shipment


def get_shipment(*, session: Session, merchant_trade_no: str) -> LogisticsShipment | None:
    return session.exec(
        select(LogisticsShipment).where(LogisticsShipment.merchant_trade_no == merchant_trade_no)
    ).first()


def update_shipment_status(
    *,
    session: Session,
    logistics_id: str,
    rtn_code: str,
    rtn_msg: str | None,
) -> LogisticsShipment | None:
    shipment = session.exec(
        select(LogisticsShipment).where(LogisticsShipment.logistics_id == logistics_id)
    ).first()
    if shipment is None:
        return None
    shipment.rtn_code = rtn_code
    shipment.rtn_msg = rtn_msg
    shipment.updated_at = utc_now()
    session.add(shipment)
    session.commit()
    session.refresh(shipment)
    return shipment


def save_store_selection(*, session: Session, token: str, store_info: dict[str, Any]) -> StoreSelection:
    selection = session.get(StoreSelection, token)
    if selection is None:
        selection = StoreSelection(token=token, store_info=store_info)
    selection.store_info = store_info
    selection.updated_at = utc_now()
    session.add(selection)
    session.commit()
    session.refresh(selection)
    return selection


def get_store_selection(
    *, session: Session, token: str, ttl_minutes: int
) -> StoreSelection | None:
    """取得未过期的门市选择结果"""
    selection = session.get(StoreSelection, token)
    if selection is None:
        return None
    if as_utc(selection.updated_at) < utc_now() - timedelta(minutes=ttl_minutes):
        return None
    return selection

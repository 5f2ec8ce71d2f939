"""Shopify 订单镜像 CRUD 操作"""
from decimal import Decimal, InvalidOperation
from typing import Any

from sqlmodel import Session, delete, select

from storefront.enums import ShippingMethod
from storefront.models import ShopifyOrder, utc_now

# Shopify 订单标签 -> 配送方式
_TAG_METHODS = (
    ("plg-cvs-seveneleven", ShippingMethod.seveneleven),
    ("plg-cvs-familymart", ShippingMethod.familymart),
    ("plg-home-delivery", ShippingMethod.home),
)


def snapshot_line_items(items: list[dict[str, Any]] | None) -> list[dict[str, Any]]:
    return [
        {
            "id": item.get("id"),
            "title": item.get("title"),
            "quantity": item.get("quantity"),
            "price": item.get("price"),
            "sku": item.get("sku"),
        }
        for item in items or []
    ]


def resolve_shipping_method(
    order: dict[str, Any], order_payload: dict[str, Any] | None = None
) -> str | None:
    """优先使用结账时提交的配送方式，否则从订单标签推断"""
    method = ((order_payload or {}).get("shipping") or {}).get("method")
    if method:
        return str(method)
    tags = str(order.get("tags") or "").lower()
    for tag, candidate in _TAG_METHODS:
        if tag in tags:
            return candidate.value
    return None


def _to_decimal(value: Any) -> Decimal | None:
    if value is None or value == "":
        return None
    try:
        return Decimal(str(value))
    except InvalidOperation:
        return None


def upsert_order_record(
    *,
    session: Session,
    order: dict[str, Any],
    user_id: int | None,
    order_payload: dict[str, Any] | None = None,
    merchant_trade_no: str | None = None,
    commit: bool = True,
) -> ShopifyOrder:
    """按 Shopify 订单 ID 新增或更新本地镜像"""
    shopify_order_id = int(order["id"])
    record = session.exec(
        select(ShopifyOrder).where(ShopifyOrder.shopify_order_id == shopify_order_id)
    ).first()
    if record is None:
        record = ShopifyOrder(shopify_order_id=shopify_order_id)

    record.user_id = user_id
    record.shopify_order_name = order.get("name")
    record.shopify_order_number = order.get("order_number")
    record.currency = order.get("currency")
    record.subtotal_price = _to_decimal(order.get("subtotal_price"))
    record.total_price = _to_decimal(order.get("total_price"))
    record.financial_status = order.get("financial_status")
    record.fulfillment_status = order.get("fulfillment_status")
    record.shipping_method = resolve_shipping_method(order, order_payload)
    record.merchant_trade_no = merchant_trade_no
    record.line_items = snapshot_line_items(order.get("line_items"))
    record.updated_at = utc_now()

    session.add(record)
    if commit:
        session.commit()
        session.refresh(record)
    else:
        session.flush()
    return record


def list_user_orders(*, session: Session, user_id: int, limit: int = 10) -> list[ShopifyOrder]:
    stmt = (
        select(ShopifyOrder)
        .where(ShopifyOrder.user_id == user_id)
        .order_by(ShopifyOrder.created_at.desc(), ShopifyOrder.id.desc())
        .limit(limit)
    )
    return list(session.exec(stmt).all())


def apply_webhook_update(*, session: Session, payload: dict[str, Any]) -> bool:
    """用 Shopify webhook 推送的订单内容更新状态；本地没有镜像时忽略"""
    record = session.exec(
        select(ShopifyOrder).where(ShopifyOrder.shopify_order_id == int(payload["id"]))
    ).first()
    if record is None:
        return False

    record.financial_status = payload.get("financial_status")
    record.fulfillment_status = payload.get("fulfillment_status")
    record.total_price = _to_decimal(payload.get("total_price"))
    record.subtotal_price = _to_decimal(payload.get("subtotal_price"))
    if payload.get("line_items") is not None:
        record.line_items = snapshot_line_items(payload.get("line_items"))
    record.updated_at = utc_now()
    session.add(record)
    session.commit()
    return True


def delete_order_record(*, session: Session, shopify_order_id: int) -> int:
    result = session.exec(
        delete(ShopifyOrder).where(ShopifyOrder.shopify_order_id == shopify_order_id)
    )
    session.commit()
    return result.rowcount

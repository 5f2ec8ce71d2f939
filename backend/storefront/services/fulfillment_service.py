"""
付款完成后的下游处理：建立 Shopify 订单、超商取货订单建立绿界物流单

物流单建立失败只记录日志，不影响已建立的 Shopify 订单（没有补偿交易）。
"""
from __future__ import annotations

import logging
from typing import Any

from sqlmodel import Session

from storefront import crud
from storefront.api.errors import ValidationError
from storefront.core.config import settings
from storefront.enums import PICKUP_SUBTYPES, ShippingMethod
from storefront.integrations.ecpay_logistics import (
    LogisticsClient,
    LogisticsProtocolError,
    LogisticsResult,
    LogisticsSuccess,
)
from storefront.integrations.shopify import ShopifyAdminClient, trade_tag
from storefront.models import PendingTransaction

logger = logging.getLogger(__name__)

DEFAULT_RECEIVER_CELLPHONE = "0911222333"
HOME = ShippingMethod.home.value


def format_price(amount: Any) -> str:
    """整数金额转成 Shopify 要求的两位小数字符串"""
    return f"{float(amount or 0):.2f}"


def validate_order_payload(items: list[dict[str, Any]] | None, shipping: dict[str, Any] | None) -> None:
    """
    检查订单明细与配送资料，通过后才能建单或付款

    Raises:
        ValidationError: 缺少商品、数量不是正整数、配送方式缺失或不支援、宅配地址不完整、未选门市
    """
    if not items:
        raise ValidationError("缺少商品資料", code=400305)
    for item in items:
        try:
            quantity = int(item.get("quantity"))
        except (TypeError, ValueError):
            raise ValidationError("商品數量不正確", code=400306)
        if quantity <= 0:
            raise ValidationError("商品數量不正確", code=400306)

    if not shipping or not shipping.get("method"):
        raise ValidationError("缺少配送方式", code=400301)
    try:
        method = ShippingMethod(shipping["method"])
    except ValueError:
        raise ValidationError("不支援的配送方式", code=400302)
    if method is ShippingMethod.home:
        address = shipping.get("address") or {}
        if not address.get("city") or not address.get("district") or not address.get("detail"):
            raise ValidationError("宅配地址不完整", code=400303)
    elif not (shipping.get("store") or {}).get("id"):
        raise ValidationError("尚未選擇門市", code=400304)


def _method_of(shipping: dict[str, Any]) -> str:
    # 保留原始字串，已付款的订单不能因为未知的取货方式而建单失败
    return str(shipping.get("method") or HOME)


def _quantity(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 1


def _line_items(items: list[dict[str, Any]]) -> list[dict[str, Any]]:
    return [
        {
            "title": item.get("name") or f"PLG 商品 #{item.get('productId')}",
            "quantity": _quantity(item.get("quantity") or 1),
            "price": format_price(item.get("priceCents")),
            "sku": str(item.get("productId")),
        }
        for item in items
    ]


def _shipping_address(method: str, shipping: dict[str, Any]) -> dict[str, Any]:
    if method == HOME:
        address = shipping.get("address") or {}
        return {
            "first_name": address.get("receiver") or "PLG",
            "address1": address.get("detail") or "",
            "city": address.get("city") or "",
            "province": address.get("district") or "",
            "zip": address.get("postal") or "",
            "phone": address.get("phone") or "",
            "country": "TW",
        }
    store = shipping.get("store") or {}
    return {
        "first_name": store.get("name") or "CVS",
        "last_name": store.get("id") or "",
        "address1": store.get("address") or "",
        "phone": store.get("phone") or "",
        "city": "台灣",
        "province": store.get("logisticsSubType") or "",
        "country": "TW",
    }


def _note_attributes(method: str, shipping: dict[str, Any]) -> list[dict[str, str]]:
    if method == HOME:
        return []
    store = shipping.get("store") or {}
    return [
        {"name": "storeId", "value": store.get("id") or ""},
        {"name": "storeName", "value": store.get("name") or ""},
        {"name": "storeAddress", "value": store.get("address") or ""},
        {"name": "logisticsSubType", "value": store.get("logisticsSubType") or ""},
    ]


def build_shopify_order(
    order_payload: dict[str, Any],
    *,
    merchant_trade_no: str | None = None,
    paid_amount: int | None = None,
) -> dict[str, Any]:
    """
    由结账内容组装 Shopify 建单请求

    Args:
        order_payload: 结账时提交的 {"items": [...], "shipping": {...}}
        merchant_trade_no: 绿界交易编号；提供时会加上 plg-trade-<编号> 标签
        paid_amount: 已付款金额；提供时订单标记为已付款并附带一笔 ecpay 交易

    Returns:
        {"order": {...}}
    """
    shipping = order_payload.get("shipping") or {}
    method = _method_of(shipping)

    tags = ["plg-home-delivery" if method == HOME else f"plg-cvs-{method}"]
    if merchant_trade_no:
        tags.append(trade_tag(merchant_trade_no))

    order: dict[str, Any] = {
        "line_items": _line_items(order_payload.get("items") or []),
        "currency": "TWD",
        "financial_status": "paid" if paid_amount is not None else "pending",
        "fulfillment_status": "unfulfilled",
        "tags": ", ".join(tags),
        "shipping_address": _shipping_address(method, shipping),
        "note": "宅配" if method == HOME else "超商取貨付款",
        "note_attributes": _note_attributes(method, shipping),
    }
    if paid_amount is not None:
        order["transactions"] = [
            {
                "kind": "sale",
                "status": "success",
                "amount": format_price(paid_amount),
                "gateway": "ecpay",
            }
        ]
    if merchant_trade_no:
        order["note_attributes"].append({"name": "merchantTradeNo", "value": merchant_trade_no})
    return {"order": order}


class FulfillmentService:
    """
    下游订单 / 物流单建立

    Shopify 与物流客户端在构造时注入，测试中可以替换为假实现。
    """

    def __init__(
        self,
        shopify: ShopifyAdminClient,
        logistics: LogisticsClient,
        *,
        status_reply_url: str | None = None,
    ) -> None:
        self.shopify = shopify
        self.logistics = logistics
        self.status_reply_url = status_reply_url or (
            f"{settings.SERVER_BASE_URL.rstrip('/')}{settings.API_V1_STR}/logistics/status-callback"
        )

    def find_existing_order(self, merchant_trade_no: str) -> dict[str, Any] | None:
        """查找之前的尝试已经建立的订单"""
        return self.shopify.find_order_by_tag(trade_tag(merchant_trade_no))

    def create_order(self, txn: PendingTransaction) -> dict[str, Any]:
        """
        建立已付款的 Shopify 订单

        Raises:
            DownstreamFailure: Shopify 请求失败或没有返回订单 ID
        """
        payload = build_shopify_order(
            txn.order_payload or {},
            merchant_trade_no=txn.merchant_trade_no,
            paid_amount=txn.total_amount,
        )
        order = self.shopify.create_order(payload)
        logger.info(
            "Shopify order %s created for trade %s", order.get("id"), txn.merchant_trade_no
        )
        return order

    def create_shipment(self, *, session: Session, txn: PendingTransaction) -> LogisticsResult | None:
        """
        超商取货订单建立物流单

        宅配或资料不足时跳过；任何失败都只记录日志，返回 None 或失败结果。
        """
        payload = txn.order_payload or {}
        shipping = payload.get("shipping") or {}
        method = _method_of(shipping)
        if method == HOME:
            return None

        store = shipping.get("store") or {}
        subtype = PICKUP_SUBTYPES.get(method)
        subtype_value = subtype.value if subtype else store.get("logisticsSubType")
        if not store.get("id") or not subtype_value:
            logger.warning("Missing store for pickup trade %s, logistics skipped", txn.merchant_trade_no)
            return None

        items = payload.get("items") or []
        goods_name = (items[0].get("name") if items else None) or "PLG 商品"
        try:
            fields = self.logistics.build_create_fields(
                merchant_trade_no=txn.merchant_trade_no,
                logistics_subtype=subtype_value,
                goods_amount=txn.total_amount,
                goods_name=goods_name,
                receiver_name=shipping.get("receiverName") or store.get("name") or "PLG收件",
                receiver_cellphone=shipping.get("receiverPhone") or store.get("phone") or DEFAULT_RECEIVER_CELLPHONE,
                receiver_store_id=store["id"],
                server_reply_url=self.status_reply_url,
            )
            result = self.logistics.create_shipment(fields)
            if isinstance(result, LogisticsSuccess) and result.logistics_id:
                crud.save_shipment(
                    session=session,
                    merchant_trade_no=txn.merchant_trade_no,
                    logistics_id=result.logistics_id,
                    logistics_subtype=result.fields.get("LogisticsSubType") or subtype_value,
                    cvs_payment_no=result.fields.get("CVSPaymentNo"),
                    cvs_validation_no=result.fields.get("CVSValidationNo"),
                )
            elif isinstance(result, LogisticsProtocolError):
                logger.error(
                    "Logistics rejected trade %s: %s|%s", txn.merchant_trade_no, result.code, result.message
                )
            else:
                logger.error("Unexpected logistics response for trade %s: %r", txn.merchant_trade_no, result)
            return result
        except Exception as exc:
            logger.error("Logistics creation failed for trade %s: %s", txn.merchant_trade_no, exc)
            return None

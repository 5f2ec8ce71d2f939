"""
订单路由模块

- POST /orders: 建立待付款的 Shopify 订单（不经过绿界金流）
- GET /orders: 当前用户的订单记录（最新的在前）
"""
from typing import Any

from fastapi import APIRouter, Query, status

from storefront import crud
from storefront.api.deps import CurrentUser, SessionDep, ShopifyDep
from storefront.api.schemas import ApiEnvelope, OrderCreateRequest
from storefront.models import ShopifyOrder
from storefront.services.fulfillment_service import build_shopify_order, validate_order_payload

router = APIRouter(prefix="/orders", tags=["orders"])


def order_public(record: ShopifyOrder) -> dict[str, Any]:
    return {
        "id": record.shopify_order_id,
        "name": record.shopify_order_name,
        "number": record.shopify_order_number,
        "currency": record.currency,
        "subtotalPrice": str(record.subtotal_price) if record.subtotal_price is not None else None,
        "totalPrice": str(record.total_price) if record.total_price is not None else None,
        "financialStatus": record.financial_status,
        "fulfillmentStatus": record.fulfillment_status,
        "shippingMethod": record.shipping_method,
        "merchantTradeNo": record.merchant_trade_no,
        "lineItems": record.line_items or [],
        "createdAt": record.created_at.isoformat(),
    }


@router.post("", response_model=ApiEnvelope, status_code=status.HTTP_201_CREATED)
def create_order(
    session: SessionDep,
    current_user: CurrentUser,
    shopify: ShopifyDep,
    body: OrderCreateRequest,
) -> ApiEnvelope:
    """
    建立待付款订单

    请求路径: POST /api/v1/orders
    """
    validate_order_payload(body.items, body.shipping)

    order_payload = {"items": body.items, "shipping": body.shipping}
    order = shopify.create_order(build_shopify_order(order_payload))
    record = crud.upsert_order_record(
        session=session, order=order, user_id=current_user.id, order_payload=order_payload
    )
    return ApiEnvelope(data={"orderId": order["id"], "order": order_public(record)})


@router.get("", response_model=ApiEnvelope)
def list_orders(
    session: SessionDep,
    current_user: CurrentUser,
    limit: int = Query(default=10),
) -> ApiEnvelope:
    limit = min(max(limit, 1), 50)
    records = crud.list_user_orders(session=session, user_id=current_user.id, limit=limit)
    return ApiEnvelope(data={"orders": [order_public(r) for r in records]})

"""
Shopify Storefront 结账与商品变体查询
"""
from typing import Any

from fastapi import APIRouter

from storefront.api.deps import ShopifyDep, StorefrontDep
from storefront.api.errors import AppError
from storefront.api.schemas import ApiEnvelope, StorefrontCheckoutRequest

router = APIRouter(tags=["storefront"])


def _cart_lines(raw_lines: list[dict[str, Any]]) -> list[dict[str, Any]]:
    lines = []
    for raw in raw_lines:
        merchandise_id = raw.get("merchandiseId")
        if not isinstance(merchandise_id, str):
            continue
        try:
            quantity = max(1, int(raw.get("quantity") or 1))
        except (TypeError, ValueError):
            quantity = 1
        line: dict[str, Any] = {"merchandiseId": merchandise_id, "quantity": quantity}
        if raw.get("sellingPlanId"):
            line["sellingPlanId"] = raw["sellingPlanId"]
        if raw.get("attributes"):
            line["attributes"] = raw["attributes"]
        lines.append(line)
    return lines


@router.post("/storefront/checkout", response_model=ApiEnvelope)
def storefront_checkout(client: StorefrontDep, body: StorefrontCheckoutRequest) -> ApiEnvelope:
    """建立 Storefront 购物车并返回 checkout URL"""
    if not body.lines:
        raise AppError(code=400501, message="缺少商品資料", status_code=400)
    lines = _cart_lines(body.lines)
    if not lines:
        raise AppError(code=400502, message="缺少有效的商品變體", status_code=400)

    cart_input: dict[str, Any] = {"lines": lines}
    if body.custom_attributes is not None:
        cart_input["customAttributes"] = body.custom_attributes
    if body.buyer_identity is not None:
        cart_input["buyerIdentity"] = body.buyer_identity
    if body.shipping_address is not None:
        cart_input["shippingAddress"] = body.shipping_address
    return ApiEnvelope(data=client.cart_create(cart_input))


@router.get("/shopify/products/{product_id}/variants", response_model=ApiEnvelope)
def product_variants(shopify: ShopifyDep, product_id: str) -> ApiEnvelope:
    return ApiEnvelope(
        data={"productId": product_id, "variants": shopify.get_product_variants(product_id)}
    )

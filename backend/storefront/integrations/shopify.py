"""
Shopify API 集成模块

- ShopifyAdminClient: Admin REST / GraphQL（建立订单、按标签查找订单、商品变体）
- ShopifyStorefrontClient: Storefront GraphQL（cartCreate 取得 checkout URL）

所有调用都带超时，失败时抛出 DownstreamFailure，不在本地重试。
"""
from __future__ import annotations

import logging
from typing import Any

import httpx

from storefront.api.errors import AppError, DownstreamFailure
from storefront.core.config import settings

logger = logging.getLogger(__name__)

SHOPIFY_TIMEOUT_SECONDS = 15

_ORDERS_BY_TAG_QUERY = """
query ordersByTag($query: String!) {
  orders(first: 1, query: $query) {
    edges { node { id legacyResourceId } }
  }
}
"""

_CART_CREATE_MUTATION = """
mutation cartCreate($input: CartInput!) {
  cartCreate(input: $input) {
    cart { id checkoutUrl }
    userErrors { field message }
  }
}
"""


def trade_tag(merchant_trade_no: str) -> str:
    """写在 Shopify 订单上的交易编号标签，用于重投递 / 对账时查找已建立的订单"""
    return f"plg-trade-{merchant_trade_no}"


class ShopifyAdminClient:
    """Shopify Admin API 客户端"""

    def __init__(
        self,
        *,
        store_domain: str | None = None,
        access_token: str | None = None,
        api_version: str | None = None,
    ) -> None:
        self._domain = store_domain or settings.SHOPIFY_STORE_DOMAIN
        self._token = access_token or settings.SHOPIFY_ACCESS_TOKEN
        self._version = api_version or settings.SHOPIFY_API_VERSION

    @property
    def base_url(self) -> str:
        return f"https://{self._domain}/admin/api/{self._version}"

    def _headers(self) -> dict[str, str]:
        if not self._domain or not self._token:
            raise AppError(code=500201, message="Shopify Admin API 未設定", status_code=500)
        return {
            "Content-Type": "application/json",
            "X-Shopify-Access-Token": self._token,
        }

    def _request(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        headers = self._headers()
        try:
            with httpx.Client(timeout=SHOPIFY_TIMEOUT_SECONDS) as client:
                r = client.request(method, f"{self.base_url}{path}", headers=headers, **kwargs)
                r.raise_for_status()
                data = r.json()
        except httpx.HTTPStatusError as e:
            raise DownstreamFailure(
                f"Shopify {method} {path} returned {e.response.status_code}: {e.response.text[:200]}"
            )
        except httpx.HTTPError as e:
            raise DownstreamFailure(f"Shopify {method} {path} error: {e}")
        except ValueError:
            raise DownstreamFailure(f"Shopify {method} {path} returned a non-JSON body")
        if not isinstance(data, dict):
            raise DownstreamFailure(f"Shopify {method} {path} returned an unexpected body")
        return data

    def create_order(self, payload: dict[str, Any]) -> dict[str, Any]:
        """
        建立订单

        Args:
            payload: {"order": {...}} 格式的订单内容

        Returns:
            Shopify 回传的 order 对象（保证带 id）

        Raises:
            DownstreamFailure: 请求失败或回应中没有订单 ID
        """
        data = self._request("POST", "/orders.json", json=payload)
        order = data.get("order")
        if not isinstance(order, dict) or not order.get("id"):
            raise DownstreamFailure("Shopify did not return an order id")
        return order

    def get_order(self, order_id: int | str) -> dict[str, Any] | None:
        data = self._request("GET", f"/orders/{order_id}.json")
        order = data.get("order")
        return order if isinstance(order, dict) and order.get("id") else None

    def find_order_by_tag(self, tag: str) -> dict[str, Any] | None:
        """按标签查找订单（GraphQL 搜索后再用 REST 取完整订单），找不到返回 None"""
        data = self._request(
            "POST",
            "/graphql.json",
            json={"query": _ORDERS_BY_TAG_QUERY, "variables": {"query": f"tag:'{tag}'"}},
        )
        if data.get("errors"):
            raise DownstreamFailure(f"Shopify order search failed: {data['errors']}")
        edges = ((data.get("data") or {}).get("orders") or {}).get("edges") or []
        if not edges:
            return None
        node = edges[0].get("node") or {}
        legacy_id = node.get("legacyResourceId") or str(node.get("id", "")).rsplit("/", 1)[-1]
        if not legacy_id:
            return None
        return self.get_order(legacy_id)

    def get_product_variants(self, product_id: str) -> list[dict[str, Any]]:
        data = self._request("GET", f"/products/{product_id}.json")
        variants = (data.get("product") or {}).get("variants") or []
        return [
            {
                "id": variant.get("id"),
                "gid": f"gid://shopify/ProductVariant/{variant.get('id')}",
                "title": variant.get("title"),
                "sku": variant.get("sku"),
            }
            for variant in variants
        ]


class ShopifyStorefrontClient:
    """Shopify Storefront API 客户端"""

    def __init__(
        self,
        *,
        store_domain: str | None = None,
        access_token: str | None = None,
        api_version: str | None = None,
    ) -> None:
        self._domain = store_domain or settings.SHOPIFY_STORE_DOMAIN
        self._token = access_token or settings.SHOPIFY_STOREFRONT_ACCESS_TOKEN
        self._version = api_version or settings.SHOPIFY_STOREFRONT_VERSION

    def cart_create(self, cart_input: dict[str, Any]) -> dict[str, Any]:
        """
        建立 Storefront 购物车

        Returns:
            {"checkoutUrl": ..., "cartId": ...}

        Raises:
            AppError: 未配置（500）/ GraphQL 或 userErrors（400）
            DownstreamFailure: 请求失败或没有返回 checkout URL
        """
        if not self._domain or not self._token:
            raise AppError(code=500202, message="Shopify Storefront API 未設定", status_code=500)
        url = f"https://{self._domain}/api/{self._version}/graphql.json"
        headers = {
            "Content-Type": "application/json",
            "X-Shopify-Storefront-Access-Token": self._token,
        }
        try:
            with httpx.Client(timeout=SHOPIFY_TIMEOUT_SECONDS) as client:
                r = client.post(
                    url,
                    json={"query": _CART_CREATE_MUTATION, "variables": {"input": cart_input}},
                    headers=headers,
                )
                r.raise_for_status()
                data = r.json()
        except httpx.HTTPError as e:
            raise DownstreamFailure(f"Shopify storefront error: {e}", code=502202)

        errors = data.get("errors") or []
        if errors:
            message = "; ".join(str(err.get("message")) for err in errors)
            raise AppError(code=400201, message=message, status_code=400)

        payload = (data.get("data") or {}).get("cartCreate") or {}
        user_errors = payload.get("userErrors") or []
        if user_errors:
            message = "; ".join(str(err.get("message")) for err in user_errors)
            raise AppError(code=400202, message=message, status_code=400)

        cart = payload.get("cart") or {}
        if not cart.get("checkoutUrl"):
            raise DownstreamFailure("Shopify 未回傳 checkout URL", code=502203)
        return {"checkoutUrl": cart["checkoutUrl"], "cartId": cart.get("id")}

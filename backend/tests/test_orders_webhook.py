from __future__ import annotations

import base64
import hashlib
import hmac
import json

import pytest
from sqlmodel import select

from storefront import crud
from storefront.api import deps
from storefront.api.errors import AppError
from storefront.api.routes.webhook import verify_shopify_hmac
from storefront.core.config import settings
from storefront.main import app
from storefront.models import ShopifyOrder

ORDERS = f"{settings.API_V1_STR}/orders"
WEBHOOK = f"{settings.API_V1_STR}/webhook/shopify"

ITEMS = [{"productId": 1, "name": "PLG 經典款", "quantity": 2, "priceCents": 250}]
HOME = {"method": "home", "address": {"receiver": "王小明", "city": "台北市", "district": "信義區", "detail": "市府路45號"}}
FAMILYMART = {"method": "familymart", "store": {"id": "F001", "name": "全家 信義店", "logisticsSubType": "FAMIC2C"}}


def test_create_pending_order(auth_client, fake_shopify, user):
    r = auth_client.post(ORDERS, json={"items": ITEMS, "shipping": HOME})
    assert r.status_code == 201
    data = r.json()["data"]
    assert data["orderId"] == fake_shopify.orders[0]["id"]
    assert data["order"]["shippingMethod"] == "home"
    assert data["order"]["merchantTradeNo"] is None
    assert data["order"]["totalPrice"] == "500.00"

    order = fake_shopify.created[0]["order"]
    assert order["financial_status"] == "pending"
    assert "transactions" not in order
    assert order["tags"] == "plg-home-delivery"
    assert order["line_items"][0] == {"title": "PLG 經典款", "quantity": 2, "price": "250.00", "sku": "1"}


def test_create_pickup_order_note(auth_client, fake_shopify):
    r = auth_client.post(ORDERS, json={"items": ITEMS, "shipping": FAMILYMART})
    assert r.status_code == 201
    order = fake_shopify.created[0]["order"]
    assert order["note"] == "超商取貨付款"
    assert order["tags"] == "plg-cvs-familymart"
    assert r.json()["data"]["order"]["shippingMethod"] == "familymart"


@pytest.mark.parametrize(
    "shipping, code",
    [
        (None, 400301),
        ({"method": "drone"}, 400302),
        ({"method": "home", "address": {"city": "台北市"}}, 400303),
        ({"method": "seveneleven", "store": {}}, 400304),
    ],
)
def test_create_order_shipping_validation(auth_client, fake_shopify, shipping, code):
    r = auth_client.post(ORDERS, json={"items": ITEMS, "shipping": shipping})
    assert r.status_code == 400
    assert r.json()["code"] == code
    assert fake_shopify.created == []


def test_create_order_without_items(auth_client):
    r = auth_client.post(ORDERS, json={"items": [], "shipping": HOME})
    assert r.json()["code"] == 400305


def test_create_order_rejects_bad_quantity(auth_client, fake_shopify):
    items = [{"productId": 1, "name": "PLG 經典款", "quantity": 0, "priceCents": 250}]
    r = auth_client.post(ORDERS, json={"items": items, "shipping": HOME})
    assert r.status_code == 400
    assert r.json()["code"] == 400306
    assert fake_shopify.created == []


def test_create_order_shopify_failure(auth_client, fake_shopify, downstream_failure):
    fake_shopify.fail_with = downstream_failure
    r = auth_client.post(ORDERS, json={"items": ITEMS, "shipping": HOME})
    assert r.status_code == 502
    assert r.json()["code"] == 502110


def test_list_orders_newest_first_with_limit(auth_client, db, user):
    for i in range(3):
        crud.upsert_order_record(
            session=db,
            order={"id": 100 + i, "name": f"#{100 + i}", "tags": "plg-cvs-seveneleven"},
            user_id=user.id,
        )
    crud.upsert_order_record(session=db, order={"id": 999}, user_id=user.id + 1)

    r = auth_client.get(ORDERS)
    orders = r.json()["data"]["orders"]
    assert [o["id"] for o in orders] == [102, 101, 100]
    assert orders[0]["shippingMethod"] == "seveneleven"

    r = auth_client.get(ORDERS, params={"limit": 2})
    assert len(r.json()["data"]["orders"]) == 2

    r = auth_client.get(ORDERS, params={"limit": 0})
    assert len(r.json()["data"]["orders"]) == 1


def test_resolve_shipping_method_prefers_checkout_payload():
    order = {"tags": "plg-home-delivery"}
    assert crud.resolve_shipping_method(order, {"shipping": {"method": "familymart"}}) == "familymart"
    assert crud.resolve_shipping_method(order) == "home"
    assert crud.resolve_shipping_method({"tags": ""}) is None


def _signed_post(client, payload, topic: str = "orders/updated", secret: str = "whsec"):
    raw = json.dumps(payload).encode("utf-8")
    digest = base64.b64encode(hmac.new(secret.encode(), raw, hashlib.sha256).digest()).decode()
    return client.post(
        WEBHOOK,
        content=raw,
        headers={
            "Content-Type": "application/json",
            "X-Shopify-Topic": topic,
            "X-Shopify-Hmac-Sha256": digest,
        },
    )


@pytest.fixture
def webhook_secret(monkeypatch) -> str:
    monkeypatch.setattr(settings, "SHOPIFY_WEBHOOK_SECRET", "whsec")
    return "whsec"


def test_verify_shopify_hmac():
    raw = b'{"id": 1}'
    header = base64.b64encode(hmac.new(b"k", raw, hashlib.sha256).digest()).decode()
    assert verify_shopify_hmac(raw, header, "k")
    assert not verify_shopify_hmac(raw, header, "other")
    assert not verify_shopify_hmac(raw, None, "k")
    assert not verify_shopify_hmac(raw, header, "")


def test_webhook_updates_order(client, db, user, webhook_secret):
    crud.upsert_order_record(session=db, order={"id": 7001, "financial_status": "pending"}, user_id=user.id)

    r = _signed_post(
        client,
        {
            "id": 7001,
            "financial_status": "paid",
            "fulfillment_status": "fulfilled",
            "total_price": "880.00",
            "line_items": [{"id": 1, "title": "PLG 旅行組", "quantity": 1, "price": "880.00", "sku": "2"}],
        },
    )
    assert r.status_code == 200
    assert r.text == "ok"

    db.expire_all()
    record = db.exec(select(ShopifyOrder).where(ShopifyOrder.shopify_order_id == 7001)).one()
    assert record.financial_status == "paid"
    assert record.fulfillment_status == "fulfilled"
    assert str(record.total_price) == "880.00"
    assert record.line_items[0]["title"] == "PLG 旅行組"


def test_webhook_delete(client, db, user, webhook_secret):
    crud.upsert_order_record(session=db, order={"id": 7002}, user_id=user.id)
    r = _signed_post(client, {"id": 7002}, topic="orders/delete")
    assert r.text == "ok"
    db.expire_all()
    assert crud.list_user_orders(session=db, user_id=user.id) == []


def test_webhook_rejects_bad_signature_and_payload(client, webhook_secret):
    r = _signed_post(client, {"id": 1}, secret="wrong")
    assert r.status_code == 401
    assert r.text == "Invalid signature"

    r = _signed_post(client, {"name": "#1"})
    assert r.status_code == 400

    r = client.post(
        WEBHOOK,
        content=b"not json",
        headers={
            "X-Shopify-Hmac-Sha256": base64.b64encode(
                hmac.new(b"whsec", b"not json", hashlib.sha256).digest()
            ).decode()
        },
    )
    assert r.status_code == 400


@pytest.mark.parametrize("topic", ["orders/updated", "orders/delete"])
@pytest.mark.parametrize("order_id", ["gid-abc", [7001]])
def test_webhook_rejects_non_numeric_order_id(client, webhook_secret, topic, order_id):
    r = _signed_post(client, {"id": order_id}, topic=topic)
    assert r.status_code == 400
    assert r.text == "Invalid order id"


def test_webhook_without_configured_secret(client, monkeypatch):
    monkeypatch.setattr(settings, "SHOPIFY_WEBHOOK_SECRET", "")
    r = _signed_post(client, {"id": 1}, secret="")
    assert r.status_code == 401


class _FakeStorefront:
    def __init__(self) -> None:
        self.inputs: list[dict] = []

    def cart_create(self, cart_input):
        self.inputs.append(cart_input)
        return {"checkoutUrl": "https://shop.example/cart/c/1", "cartId": "gid://shopify/Cart/1"}


def test_storefront_checkout(client):
    fake = _FakeStorefront()
    app.dependency_overrides[deps.get_storefront_client] = lambda: fake

    r = client.post(
        f"{settings.API_V1_STR}/storefront/checkout",
        json={
            "lines": [
                {"merchandiseId": "gid://shopify/ProductVariant/11", "quantity": "2"},
                {"merchandiseId": 42},
                {"merchandiseId": "gid://shopify/ProductVariant/12", "quantity": "x"},
            ],
            "buyerIdentity": {"email": "buyer@example.com"},
        },
    )
    assert r.status_code == 200
    assert r.json()["data"]["checkoutUrl"] == "https://shop.example/cart/c/1"
    assert fake.inputs[0] == {
        "lines": [
            {"merchandiseId": "gid://shopify/ProductVariant/11", "quantity": 2},
            {"merchandiseId": "gid://shopify/ProductVariant/12", "quantity": 1},
        ],
        "buyerIdentity": {"email": "buyer@example.com"},
    }

    r = client.post(f"{settings.API_V1_STR}/storefront/checkout", json={"lines": []})
    assert r.json()["code"] == 400501
    r = client.post(f"{settings.API_V1_STR}/storefront/checkout", json={"lines": [{"quantity": 1}]})
    assert r.json()["code"] == 400502


def test_storefront_checkout_errors_propagate(client):
    class _Failing:
        def cart_create(self, cart_input):
            raise AppError(code=400202, message="Variant not found", status_code=400)

    app.dependency_overrides[deps.get_storefront_client] = lambda: _Failing()
    r = client.post(
        f"{settings.API_V1_STR}/storefront/checkout",
        json={"lines": [{"merchandiseId": "gid://shopify/ProductVariant/11"}]},
    )
    assert r.status_code == 400
    assert r.json()["code"] == 400202


def test_product_variants(client):
    r = client.get(f"{settings.API_V1_STR}/shopify/products/8001/variants")
    assert r.status_code == 200
    data = r.json()["data"]
    assert data["productId"] == "8001"
    assert data["variants"][0]["gid"] == "gid://shopify/ProductVariant/11"


def test_utils(client):
    assert client.get(f"{settings.API_V1_STR}/utils/health-check/").json() is True
    codes = client.get(f"{settings.API_V1_STR}/utils/dial-codes").json()["data"]["codes"]
    assert codes[0]["value"] == "+886"

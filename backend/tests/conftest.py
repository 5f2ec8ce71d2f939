from __future__ import annotations

from collections.abc import Generator
from datetime import timedelta
from typing import Any

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine, delete

from storefront.api import deps
from storefront.api.errors import DownstreamFailure
from storefront.core import security
from storefront.core.config import settings
from storefront.integrations.ecpay_logistics import LogisticsResult, LogisticsSuccess
from storefront.integrations.shopify import trade_tag
from storefront.main import app
from storefront.models import (
    Cart,
    CartItem,
    EmailVerification,
    LogisticsShipment,
    PendingTransaction,
    Product,
    ShopifyOrder,
    StoreSelection,
    User,
)


class FakeShopify:
    """记录建单请求的 Shopify Admin 假实现"""

    def __init__(self) -> None:
        self.created: list[dict[str, Any]] = []
        self.orders: list[dict[str, Any]] = []
        self.lookups: list[str] = []
        self.fail_with: Exception | None = None
        self.next_id = 5_000_000_000_001

    def create_order(self, payload: dict[str, Any]) -> dict[str, Any]:
        if self.fail_with is not None:
            raise self.fail_with
        body = payload["order"]
        order = {
            "id": self.next_id,
            "name": f"#{1000 + len(self.orders) + 1}",
            "order_number": 1000 + len(self.orders) + 1,
            "currency": "TWD",
            "subtotal_price": "500.00",
            "total_price": "500.00",
            "financial_status": body.get("financial_status"),
            "fulfillment_status": None,
            "tags": body.get("tags", ""),
            "line_items": [
                {"id": i + 1, "title": li["title"], "quantity": li["quantity"], "price": li["price"], "sku": li["sku"]}
                for i, li in enumerate(body.get("line_items", []))
            ],
        }
        self.next_id += 1
        self.created.append(payload)
        self.orders.append(order)
        return order

    def find_order_by_tag(self, tag: str) -> dict[str, Any] | None:
        self.lookups.append(tag)
        for order in self.orders:
            if tag in [t.strip() for t in str(order.get("tags", "")).split(",")]:
                return order
        return None

    def get_product_variants(self, product_id: str) -> list[dict[str, Any]]:
        return [{"id": 11, "gid": "gid://shopify/ProductVariant/11", "title": "Default", "sku": product_id}]

    def add_existing(self, merchant_trade_no: str, order_id: int = 4_000_000_000_001) -> dict[str, Any]:
        order = {
            "id": order_id,
            "name": "#999",
            "order_number": 999,
            "currency": "TWD",
            "subtotal_price": "500.00",
            "total_price": "500.00",
            "financial_status": "paid",
            "fulfillment_status": None,
            "tags": f"plg-home-delivery, {trade_tag(merchant_trade_no)}",
            "line_items": [],
        }
        self.orders.append(order)
        return order


class FakeLogistics:
    """物流客户端假实现，返回预设的结果"""

    def __init__(self) -> None:
        self.requests: list[dict[str, Any]] = []
        self.result: LogisticsResult | Exception = LogisticsSuccess(
            fields={
                "AllPayLogisticsID": "1718",
                "LogisticsSubType": "UNIMARTC2C",
                "CVSPaymentNo": "C0001",
                "CVSValidationNo": "8888",
            }
        )

    def build_create_fields(self, **kwargs: Any) -> dict[str, Any]:
        return dict(kwargs)

    def create_shipment(self, fields: dict[str, Any]) -> LogisticsResult:
        self.requests.append(fields)
        if isinstance(self.result, Exception):
            raise self.result
        return self.result


@pytest.fixture(scope="session")
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    return engine


@pytest.fixture(scope="function")
def db(engine) -> Generator[Session, None, None]:
    with Session(engine) as session:
        yield session
        # Clean tables after each test (children first).
        session.rollback()
        session.exec(delete(CartItem))
        session.exec(delete(Cart))
        session.exec(delete(Product))
        session.exec(delete(LogisticsShipment))
        session.exec(delete(StoreSelection))
        session.exec(delete(ShopifyOrder))
        session.exec(delete(PendingTransaction))
        session.exec(delete(EmailVerification))
        session.exec(delete(User))
        session.commit()


@pytest.fixture(scope="function")
def fake_shopify() -> FakeShopify:
    return FakeShopify()


@pytest.fixture(scope="function")
def fake_logistics() -> FakeLogistics:
    return FakeLogistics()


@pytest.fixture(scope="function")
def client(engine, db, fake_shopify, fake_logistics) -> Generator[TestClient, None, None]:
    def _override_get_db() -> Generator[Session, None, None]:
        with Session(engine) as session:
            yield session

    app.dependency_overrides[deps.get_db] = _override_get_db
    app.dependency_overrides[deps.get_shopify_client] = lambda: fake_shopify
    app.dependency_overrides[deps.get_logistics_client] = lambda: fake_logistics
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
def user(db) -> User:
    u = User(email="buyer@example.com", password_hash=security.get_password_hash("secret1"), email_verified=True)
    db.add(u)
    db.commit()
    db.refresh(u)
    return u


def login_as(client: TestClient, user: User) -> None:
    token = security.create_access_token(user.id, timedelta(days=1), email=user.email)
    client.cookies.set(settings.AUTH_COOKIE_NAME, token)


@pytest.fixture(scope="function")
def auth_client(client, user) -> TestClient:
    login_as(client, user)
    return client


@pytest.fixture(scope="function")
def downstream_failure() -> DownstreamFailure:
    return DownstreamFailure("Shopify POST /orders.json returned 503")

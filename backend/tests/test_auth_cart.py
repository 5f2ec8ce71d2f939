from __future__ import annotations

import smtplib
from datetime import timedelta

import pytest

from storefront import crud
from storefront.api.errors import AppError
from storefront.api.routes import auth as auth_routes
from storefront.core import security
from storefront.core.config import settings
from storefront.models import EmailVerification, Product, User, utc_now

AUTH = f"{settings.API_V1_STR}/auth"
CART = f"{settings.API_V1_STR}/cart"


@pytest.fixture
def sent_codes(monkeypatch) -> dict[str, str]:
    sent: dict[str, str] = {}

    def _fake_send(to: str, code: str) -> bool:
        sent[to] = code
        return True

    monkeypatch.setattr(auth_routes, "send_verification_email", _fake_send)
    return sent


@pytest.fixture
def products(db) -> list[Product]:
    items = [
        Product(name="PLG 經典款", price_cents=500, shopify_variant_id="gid://shopify/ProductVariant/11"),
        Product(name="PLG 旅行組", price_cents=880),
    ]
    for p in items:
        db.add(p)
    db.commit()
    for p in items:
        db.refresh(p)
    return items


def test_register_and_login_with_email(client, db, sent_codes):
    r = client.post(f"{AUTH}/send-email-code", json={"email": "new@example.com"})
    assert r.status_code == 200
    assert r.json()["code"] == 0
    code = sent_codes["new@example.com"]
    assert len(code) == 6

    r = client.post(
        f"{AUTH}/register-email",
        json={"email": "new@example.com", "password": "secret1", "verificationCode": code},
    )
    assert r.status_code == 200
    assert settings.AUTH_COOKIE_NAME in r.cookies
    user_id = r.json()["data"]["userId"]

    r = client.get(f"{AUTH}/me")
    assert r.status_code == 200
    assert r.json()["data"] == {"userId": user_id, "email": "new@example.com", "isAdmin": False}

    db.expire_all()
    assert db.get(EmailVerification, "new@example.com").is_used is True

    # 验证码只能使用一次
    r = client.post(
        f"{AUTH}/register-email",
        json={"email": "new@example.com", "password": "secret1", "verificationCode": code},
    )
    assert r.status_code == 400
    assert r.json()["code"] == 400012

    client.post(f"{AUTH}/logout")
    client.cookies.clear()
    r = client.get(f"{AUTH}/me")
    assert r.status_code == 401

    r = client.post(f"{AUTH}/login-email", json={"email": "new@example.com", "password": "secret1"})
    assert r.status_code == 200
    assert r.json()["data"]["userId"] == user_id


def test_send_code_rejects_registered_and_invalid_email(client, user, sent_codes):
    r = client.post(f"{AUTH}/send-email-code", json={"email": "not-an-email"})
    assert r.status_code == 400
    assert r.json()["code"] == 400001

    r = client.post(f"{AUTH}/send-email-code", json={"email": user.email})
    assert r.status_code == 409
    assert sent_codes == {}


def test_send_code_smtp_failure(client, monkeypatch):
    def _broken(to: str, code: str) -> bool:
        raise smtplib.SMTPException("connection refused")

    monkeypatch.setattr(auth_routes, "send_verification_email", _broken)
    r = client.post(f"{AUTH}/send-email-code", json={"email": "new@example.com"})
    assert r.status_code == 502
    assert r.json()["code"] == 502501


def test_register_validation(client, db):
    r = client.post(
        f"{AUTH}/register-email",
        json={"email": "new@example.com", "password": "123", "verificationCode": "123456"},
    )
    assert r.json()["code"] == 400002

    r = client.post(
        f"{AUTH}/register-email",
        json={"email": "new@example.com", "password": "secret1", "verificationCode": "12ab"},
    )
    assert r.json()["code"] == 400003

    r = client.post(
        f"{AUTH}/register-email",
        json={"email": "new@example.com", "password": "secret1", "verificationCode": "123456"},
    )
    assert r.json()["code"] == 400011

    crud.upsert_email_code(session=db, email="new@example.com", code="654321", ttl_minutes=5)
    r = client.post(
        f"{AUTH}/register-email",
        json={"email": "new@example.com", "password": "secret1", "verificationCode": "123456"},
    )
    assert r.json()["code"] == 400014


def test_expired_code(db):
    crud.upsert_email_code(session=db, email="late@example.com", code="111111", ttl_minutes=5)
    with pytest.raises(AppError) as exc_info:
        crud.check_email_code(
            session=db, email="late@example.com", code="111111", now=utc_now() + timedelta(minutes=6)
        )
    assert exc_info.value.code == 400013


def test_register_upgrades_unverified_account(db):
    db.add(User(email="pending@example.com"))
    db.commit()
    user = crud.register_with_password(
        session=db, email="pending@example.com", password_hash=security.get_password_hash("secret1")
    )
    assert user.email_verified is True
    assert security.verify_password("secret1", user.password_hash)


def test_login_failures(client, user):
    r = client.post(f"{AUTH}/login-email", json={"email": "bad", "password": "x"})
    assert r.json()["code"] == 400004

    r = client.post(f"{AUTH}/login-email", json={"email": "ghost@example.com", "password": "secret1"})
    assert r.status_code == 401
    assert r.json()["code"] == 401003

    r = client.post(f"{AUTH}/login-email", json={"email": user.email, "password": "wrong!"})
    assert r.status_code == 401
    assert r.json()["code"] == 401004


def test_unverified_account_cannot_login(client, db):
    db.add(User(email="half@example.com", password_hash=security.get_password_hash("secret1")))
    db.commit()
    r = client.post(f"{AUTH}/login-email", json={"email": "half@example.com", "password": "secret1"})
    assert r.json()["code"] == 401003


def test_me_reports_admin(client, user, monkeypatch):
    monkeypatch.setattr(settings, "ADMIN_EMAILS", ["Buyer@Example.com"])
    token = security.create_access_token(user.id, timedelta(days=1), email=user.email)
    client.cookies.set(settings.AUTH_COOKIE_NAME, token)
    r = client.get(f"{AUTH}/me")
    assert r.json()["data"]["isAdmin"] is True


def test_invalid_or_stale_cookie(client, db, user):
    client.cookies.set(settings.AUTH_COOKIE_NAME, "garbage")
    r = client.get(f"{CART}/items")
    assert r.status_code == 401
    assert r.json()["code"] == 401002

    token = security.create_access_token(user.id, timedelta(minutes=-1), email=user.email)
    client.cookies.set(settings.AUTH_COOKIE_NAME, token)
    assert client.get(f"{CART}/items").json()["code"] == 401002

    token = security.create_access_token(999999, timedelta(days=1))
    client.cookies.set(settings.AUTH_COOKIE_NAME, token)
    assert client.get(f"{CART}/items").json()["code"] == 401002


def test_cart_requires_login(client):
    r = client.get(f"{CART}/items")
    assert r.status_code == 401
    assert r.json() == {"code": 401001, "message": "尚未登入", "data": None}


def test_cart_add_list_count_remove(auth_client, products):
    classic, travel = products

    r = auth_client.post(f"{CART}/items", json={"productId": classic.id, "quantity": 2})
    assert r.status_code == 200
    cart = r.json()["data"]["cart"]
    assert cart == [
        {
            "productId": classic.id,
            "quantity": 2,
            "name": "PLG 經典款",
            "priceCents": 500,
            "imageUrl": None,
            "shopifyVariantId": "gid://shopify/ProductVariant/11",
        }
    ]

    # 重复加入覆盖数量
    auth_client.post(f"{CART}/items", json={"productId": classic.id, "quantity": 3})
    auth_client.post(f"{CART}/items", json={"productId": travel.id, "quantity": 1})
    cart = auth_client.get(f"{CART}/items").json()["data"]["cart"]
    assert [(i["productId"], i["quantity"]) for i in cart] == [(classic.id, 3), (travel.id, 1)]
    assert auth_client.get(f"{CART}/items/count").json()["data"]["count"] == 2

    r = auth_client.delete(f"{CART}/items/{classic.id}")
    assert r.status_code == 200
    assert [i["productId"] for i in r.json()["data"]["cart"]] == [travel.id]

    r = auth_client.delete(f"{CART}/items/{classic.id}")
    assert r.status_code == 404
    assert r.json()["code"] == 404203


def test_cart_errors(auth_client, products):
    r = auth_client.post(f"{CART}/items", json={"productId": products[0].id, "quantity": 0})
    assert r.json()["code"] == 400201

    r = auth_client.post(f"{CART}/items", json={"productId": 99999, "quantity": 1})
    assert r.status_code == 404
    assert r.json()["code"] == 404201

    r = auth_client.delete(f"{CART}/items/{products[0].id}")
    assert r.status_code == 404
    assert r.json()["code"] == 404202

    r = auth_client.post(f"{CART}/items", json={"quantity": 1})
    assert r.status_code == 422
    assert r.json()["code"] == 422000

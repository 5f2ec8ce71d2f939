"""
FastAPI 依赖注入模块

提供可复用的依赖项：
- 数据库会话
- 当前登录用户（从 auth_token cookie 解析）
- 绿界签名器、Shopify / 物流客户端、对账器等服务对象

服务对象都通过依赖函数构造，测试时用 app.dependency_overrides 替换成假实现。
"""
from collections.abc import Generator
from typing import Annotated

from fastapi import Depends
from fastapi.security import APIKeyCookie
from jwt.exceptions import InvalidTokenError
from pydantic import ValidationError
from sqlmodel import Session

from storefront.api.errors import not_logged_in, session_expired
from storefront.api.schemas import TokenPayload
from storefront.core import security
from storefront.core.config import settings
from storefront.core.db import engine
from storefront.enums import HashAlgorithm
from storefront.integrations.ecpay_logistics import LogisticsClient
from storefront.integrations.shopify import ShopifyAdminClient, ShopifyStorefrontClient
from storefront.models import User
from storefront.services.checkmac import CheckMacSigner
from storefront.services.checkout_service import CheckoutInitiator
from storefront.services.fulfillment_service import FulfillmentService
from storefront.services.reconciler import CallbackReconciler

# 登录 cookie；缺失时由 get_current_user 返回统一的 401 格式
auth_cookie = APIKeyCookie(name=settings.AUTH_COOKIE_NAME, auto_error=False)


def get_db() -> Generator[Session, None, None]:
    """
    获取数据库会话（依赖注入）

    使用 yield 确保会话在请求结束后自动关闭。
    """
    with Session(engine) as session:
        yield session


SessionDep = Annotated[Session, Depends(get_db)]
CookieTokenDep = Annotated[str | None, Depends(auth_cookie)]


def get_token_payload(token: CookieTokenDep) -> TokenPayload:
    """
    解析登录 cookie 中的 JWT

    Raises:
        AppError: 401001 未登录 / 401002 登录状态失效
    """
    if not token:
        raise not_logged_in()
    try:
        payload = TokenPayload(**security.decode_access_token(token))
    except (InvalidTokenError, ValidationError):
        raise session_expired()
    if not payload.sub:
        raise session_expired()
    return payload


TokenPayloadDep = Annotated[TokenPayload, Depends(get_token_payload)]


def get_current_user(session: SessionDep, payload: TokenPayloadDep) -> User:
    """获取当前登录用户；token 中的用户已不存在时视为登录失效"""
    try:
        user_id = int(payload.sub or "")
    except ValueError:
        raise session_expired()
    user = session.get(User, user_id)
    if not user:
        raise session_expired()
    return user


CurrentUser = Annotated[User, Depends(get_current_user)]


# ============================================================
# 服务对象
# ============================================================


def get_payment_signer() -> CheckMacSigner:
    """金流签名器：金流商户凭证 + SHA-256"""
    return CheckMacSigner(settings.ecpay_payment_credentials(), HashAlgorithm.sha256)


def get_logistics_signer() -> CheckMacSigner:
    """物流签名器：物流商户凭证 + MD5"""
    return CheckMacSigner(settings.ecpay_logistics_credentials(), HashAlgorithm.md5)


PaymentSignerDep = Annotated[CheckMacSigner, Depends(get_payment_signer)]
LogisticsSignerDep = Annotated[CheckMacSigner, Depends(get_logistics_signer)]


def get_shopify_client() -> ShopifyAdminClient:
    return ShopifyAdminClient()


def get_storefront_client() -> ShopifyStorefrontClient:
    return ShopifyStorefrontClient()


def get_logistics_client(signer: LogisticsSignerDep) -> LogisticsClient:
    return LogisticsClient(signer)


ShopifyDep = Annotated[ShopifyAdminClient, Depends(get_shopify_client)]
StorefrontDep = Annotated[ShopifyStorefrontClient, Depends(get_storefront_client)]
LogisticsClientDep = Annotated[LogisticsClient, Depends(get_logistics_client)]


def get_fulfillment(shopify: ShopifyDep, logistics: LogisticsClientDep) -> FulfillmentService:
    return FulfillmentService(shopify, logistics)


FulfillmentDep = Annotated[FulfillmentService, Depends(get_fulfillment)]


def get_checkout_initiator(signer: PaymentSignerDep) -> CheckoutInitiator:
    return CheckoutInitiator(signer)


def get_reconciler(signer: PaymentSignerDep, fulfillment: FulfillmentDep) -> CallbackReconciler:
    return CallbackReconciler(
        signer, fulfillment, lease_seconds=settings.PAYMENT_CLAIM_LEASE_SECONDS
    )


CheckoutDep = Annotated[CheckoutInitiator, Depends(get_checkout_initiator)]
ReconcilerDep = Annotated[CallbackReconciler, Depends(get_reconciler)]

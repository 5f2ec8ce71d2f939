"""
API 请求/响应数据模型（Schema）

定义 API 接口的请求和响应数据结构，使用 Pydantic 进行数据验证和序列化。

前端沿用 camelCase 字段名，因此请求模型通过 alias 接收 camelCase，
同时允许用 snake_case 构造（populate_by_name）。
"""
from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

# ============================================================
# 通用响应模型
# ============================================================


class Message(BaseModel):
    """消息响应模型"""
    message: str


class TokenPayload(BaseModel):
    """
    JWT Token 载荷模型

    sub 为用户 ID，email 为登录时的邮箱（Google 登录同样写入）。
    """
    sub: str | None = None
    email: str | None = None


class ApiEnvelope(BaseModel):
    """
    API 统一响应格式

    - code: 状态码（0 表示成功，非 0 表示错误）
    - message: 消息（成功时为 "success"，错误时为错误描述）
    - data: 数据（成功时返回业务数据，错误时为 None）

    绿界回调类接口回应纯文本，不使用这个格式。
    """
    code: int = 0
    message: str = "success"
    data: Any | None = None


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


# ============================================================
# 认证
# ============================================================


class SendEmailCodeRequest(_CamelModel):
    email: str = ""


class RegisterEmailRequest(_CamelModel):
    """邮箱注册请求（格式错误统一返回 400，由路由检查）"""
    email: str = ""
    password: str = ""
    verification_code: str = Field(default="", alias="verificationCode")


class LoginEmailRequest(_CamelModel):
    email: str = ""
    password: str = ""


# ============================================================
# 购物车
# ============================================================


class CartItemRequest(_CamelModel):
    product_id: int = Field(alias="productId")
    quantity: int


# ============================================================
# 结账 / 订单
# ============================================================


class EcpayCheckoutRequest(_CamelModel):
    """
    绿界结账请求

    order 的结构：
        {
            "items": [{"productId": 1, "name": "...", "quantity": 1, "priceCents": 500}],
            "shipping": {
                "method": "home" | "seveneleven" | "familymart",
                "address": {"receiver", "city", "district", "detail", "postal"},
                "store": {"id", "name", "address", "phone", "logisticsSubType"}
            }
        }
    """
    trade_no: str | None = Field(default=None, alias="tradeNo")
    total_amount: float | str | None = Field(default=None, alias="totalAmount")
    description: str | None = None
    return_url: str | None = Field(default=None, alias="returnURL")
    order: dict[str, Any] | None = None


class OrderCreateRequest(_CamelModel):
    """建立待付款 Shopify 订单（货到付款 / 线下付款）"""
    items: list[dict[str, Any]] = Field(default_factory=list)
    shipping: dict[str, Any] | None = None


class StorefrontCheckoutRequest(_CamelModel):
    lines: list[dict[str, Any]] = Field(default_factory=list)
    custom_attributes: list[dict[str, Any]] | None = Field(default=None, alias="customAttributes")
    buyer_identity: dict[str, Any] | None = Field(default=None, alias="buyerIdentity")
    shipping_address: dict[str, Any] | None = Field(default=None, alias="shippingAddress")


# ============================================================
# 物流
# ============================================================


class MapTokenRequest(_CamelModel):
    """电子地图选店请求；extraData 为前端产生的一次性 token"""
    logistics_sub_type: str = Field(default="FAMIC2C", alias="logisticsSubType")
    extra_data: str = Field(default="", alias="extraData")

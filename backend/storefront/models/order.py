"""
Shopify 订单镜像模型模块
"""
from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import JSON, BigInteger, Column, DateTime, Integer, Numeric, String
from sqlmodel import Field, SQLModel

from .base import utc_now


class ShopifyOrder(SQLModel, table=True):
    """
    Shopify 订单本地镜像

    以 Shopify 订单 ID 为自然键 upsert；之后由 Shopify webhook 更新状态。

    字段说明：
    - shopify_order_id: Shopify 订单 ID（唯一）
    - shopify_order_name: 显示名称（如 "#1001"）
    - shopify_order_number: 流水号
    - financial_status / fulfillment_status: 付款 / 出货状态
    - shipping_method: 配送方式（home / seveneleven / familymart）
    - merchant_trade_no: 对应的绿界交易编号（货到付款订单为空）
    - line_items: 商品快照
    """
    __tablename__ = "shopify_orders"

    id: int | None = Field(default=None, primary_key=True)
    user_id: int | None = Field(default=None, sa_column=Column(Integer, index=True, nullable=True))
    shopify_order_id: int = Field(
        sa_column=Column(BigInteger, unique=True, index=True, nullable=False)
    )
    shopify_order_name: str | None = Field(default=None, max_length=64)
    shopify_order_number: int | None = Field(default=None)
    currency: str | None = Field(default=None, max_length=8)
    subtotal_price: Decimal | None = Field(
        default=None, sa_column=Column(Numeric(12, 2), nullable=True)
    )
    total_price: Decimal | None = Field(
        default=None, sa_column=Column(Numeric(12, 2), nullable=True)
    )
    financial_status: str | None = Field(default=None, max_length=32)
    fulfillment_status: str | None = Field(default=None, max_length=32)
    shipping_method: str | None = Field(default=None, max_length=32)
    merchant_trade_no: str | None = Field(
        default=None, sa_column=Column(String(64), index=True, nullable=True)
    )
    line_items: list[dict[str, Any]] = Field(default_factory=list, sa_column=Column(JSON))

    created_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )
    updated_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )

"""
绿界交易模型模块

定义等待付款确认的交易记录（以商户交易编号 MerchantTradeNo 为主键）。
"""
from datetime import datetime
from typing import Any

from sqlalchemy import JSON, BigInteger, Column, DateTime, Integer, String
from sqlmodel import Field, SQLModel

from .base import utc_now


class PendingTransaction(SQLModel, table=True):
    """
    待确认交易

    生命周期：
    - 发起结账时创建（或覆盖重置）
    - 只由付款回调对账流程修改
    - processed_at 从 NULL 变为非 NULL 只发生一次，之后不再回退

    字段说明：
    - merchant_trade_no: 商户交易编号（主键）
    - user_id: 下单用户（弱引用，不建外键）
    - total_amount: 订单金额（整数）
    - order_payload: 结账时提交的订单内容（商品、配送方式、地址/门市）
    - processed_at: 完成时间，NULL 表示仍待处理
    - shopify_order_*: 完成后写入的 Shopify 订单信息
    - claimed_at / claim_token: 正在处理该交易的回调所持有的租约
    - attempts: 已开始处理的次数，大于 1 表示之前的尝试未完成
    """
    __tablename__ = "ecpay_transactions"

    merchant_trade_no: str = Field(sa_column=Column(String(64), primary_key=True))
    user_id: int = Field(sa_column=Column(Integer, index=True, nullable=False))
    total_amount: int = Field(nullable=False)
    order_payload: dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON, nullable=False))

    processed_at: datetime | None = Field(
        default=None, sa_column=Column(DateTime(timezone=True), nullable=True)
    )
    shopify_order_id: int | None = Field(
        default=None, sa_column=Column(BigInteger, nullable=True)
    )
    shopify_order_name: str | None = Field(default=None, max_length=64)
    shopify_order_number: int | None = Field(default=None)

    claimed_at: datetime | None = Field(
        default=None, sa_column=Column(DateTime(timezone=True), nullable=True)
    )
    claim_token: str | None = Field(default=None, max_length=64)
    attempts: int = Field(default=0)

    created_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )
    updated_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )

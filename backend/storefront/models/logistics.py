"""
物流模型模块

- LogisticsShipment: 超商取货订单在绿界建立的物流单（与交易 1:1）
- StoreSelection: 用户在绿界电子地图选择的门市（按一次性 token 暂存）
"""
from datetime import datetime
from typing import Any

from sqlalchemy import JSON, Column, DateTime, String
from sqlmodel import Field, SQLModel

from .base import utc_now


class LogisticsShipment(SQLModel, table=True):
    """
    绿界物流单

    字段说明：
    - merchant_trade_no: 对应交易编号（唯一）
    - logistics_id: 绿界物流交易编号 AllPayLogisticsID
    - logistics_subtype: 物流子类型（UNIMARTC2C / FAMIC2C ...）
    - cvs_payment_no / cvs_validation_no: 寄货编号 / 验证码
    - rtn_code / rtn_msg: 绿界最近一次回报的物流状态
    """
    __tablename__ = "logistics_shipments"

    id: int | None = Field(default=None, primary_key=True)
    merchant_trade_no: str = Field(
        sa_column=Column(String(64), unique=True, index=True, nullable=False)
    )
    logistics_id: str = Field(max_length=64)
    logistics_subtype: str = Field(default="", max_length=32)
    cvs_payment_no: str | None = Field(default=None, max_length=64)
    cvs_validation_no: str | None = Field(default=None, max_length=64)
    rtn_code: str | None = Field(default=None, max_length=16)
    rtn_msg: str | None = Field(default=None, max_length=255)

    created_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )
    updated_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )


class StoreSelection(SQLModel, table=True):
    """门市选择结果，超过 STORE_SELECTION_TTL_MINUTES 视为失效"""
    __tablename__ = "logistics_store_selections"

    token: str = Field(sa_column=Column(String(128), primary_key=True))
    store_info: dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON, nullable=False))
    updated_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )

"""
商品与购物车模型模块
"""
from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Integer, UniqueConstraint
from sqlmodel import Field, SQLModel

from .base import utc_now


class Product(SQLModel, table=True):
    """
    商品目录

    price_cents 为整数金额（新台币不使用小数位，与绿界 TotalAmount 单位一致）。
    """
    __tablename__ = "products"
    id: int | None = Field(default=None, primary_key=True)
    name: str = Field(max_length=255)
    price_cents: int = Field(default=0)
    image_url: str | None = Field(default=None, max_length=1024)
    shopify_variant_id: str | None = Field(default=None, max_length=128)


class Cart(SQLModel, table=True):
    """每个用户只有一个购物车"""
    __tablename__ = "carts"
    id: int | None = Field(default=None, primary_key=True)
    user_id: int = Field(
        sa_column=Column(
            Integer, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False
        )
    )
    created_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )


class CartItem(SQLModel, table=True):
    """购物车商品，同一购物车内每个商品只有一行"""
    __tablename__ = "cart_items"
    __table_args__ = (UniqueConstraint("cart_id", "product_id", name="uq_cart_items_cart_product"),)

    id: int | None = Field(default=None, primary_key=True)
    cart_id: int = Field(
        sa_column=Column(
            Integer, ForeignKey("carts.id", ondelete="CASCADE"), index=True, nullable=False
        )
    )
    product_id: int = Field(
        sa_column=Column(Integer, ForeignKey("products.id"), nullable=False)
    )
    quantity: int = Field(default=1)
    updated_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )



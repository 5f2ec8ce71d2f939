"""
数据库模型定义模块

模型按功能拆分：
- user.py: 用户、邮箱验证码
- cart.py: 商品、购物车
- transaction.py: 绿界待确认交易
- order.py: Shopify 订单镜像
- logistics.py: 物流单、门市选择
"""
from sqlmodel import SQLModel

from .base import as_utc, utc_now
from .cart import Cart, CartItem, Product
from .logistics import LogisticsShipment, StoreSelection
from .order import ShopifyOrder
from .transaction import PendingTransaction
from .user import EmailVerification, User

__all__ = [
    "SQLModel",
    "as_utc",
    "utc_now",
    "User",
    "EmailVerification",
    "Product",
    "Cart",
    "CartItem",
    "PendingTransaction",
    "ShopifyOrder",
    "LogisticsShipment",
    "StoreSelection",
]

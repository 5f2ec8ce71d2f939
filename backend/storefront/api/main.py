"""
API 路由聚合模块

将所有业务路由模块聚合到一个统一的 router 中，注册到主应用（storefront/main.py）。

路由模块说明：
- auth / google_auth: 邮箱注册登录、Google 登录
- cart: 购物车
- ecpay: 绿界金流结账与付款通知
- logistics: 超商门市选择、物流状态通知
- orders: Shopify 订单
- storefront: Storefront 结账、商品变体
- webhook: Shopify webhook
- utils: 健康检查等
"""
from fastapi import APIRouter

from storefront.api.routes import (
    auth,
    cart,
    ecpay,
    google_auth,
    logistics,
    orders,
    storefront,
    utils,
    webhook,
)

api_router = APIRouter()

api_router.include_router(auth.router)  # /auth/*
api_router.include_router(google_auth.router)  # /auth/google/*
api_router.include_router(cart.router)  # /cart/*
api_router.include_router(ecpay.router)  # /ecpay/*
api_router.include_router(logistics.router)  # /logistics/*
api_router.include_router(orders.router)  # /orders
api_router.include_router(storefront.router)  # /storefront/*, /shopify/*
api_router.include_router(webhook.router)  # /webhook/*
api_router.include_router(utils.router)  # /utils/*

"""CRUD 操作模块"""
from . import transactions
from .cart import count_items as count_cart_items
from .cart import list_items as list_cart_items
from .cart import remove_item as remove_cart_item
from .cart import set_item_quantity as set_cart_item_quantity
from .logistics import (
    get_shipment,
    get_store_selection,
    save_shipment,
    save_store_selection,
    update_shipment_status,
)
from .orders import (
    apply_webhook_update,
    delete_order_record,
    list_user_orders,
    resolve_shipping_method,
    upsert_order_record,
)
from .user import (
    check_email_code,
    get_or_create_verified_user,
    get_verified_by_email,
    register_with_password,
    upsert_email_code,
)
from .user import (
    get_by_email as get_user_by_email,
)

__all__ = [
    "transactions",
    "count_cart_items",
    "list_cart_items",
    "remove_cart_item",
    "set_cart_item_quantity",
    "get_shipment",
    "get_store_selection",
    "save_shipment",
    "save_store_selection",
    "update_shipment_status",
    "apply_webhook_update",
    "delete_order_record",
    "list_user_orders",
    "resolve_shipping_method",
    "upsert_order_record",
    "check_email_code",
    "get_or_create_verified_user",
    "get_verified_by_email",
    "register_with_password",
    "upsert_email_code",
    "get_user_by_email",
]

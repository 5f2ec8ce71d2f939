"""购物车 CRUD 操作"""
from typing import Any

from sqlmodel import Session, delete, func, select

from storefront.api.errors import AppError
from storefront.models import Cart, CartItem, Product, utc_now


def get_cart(*, session: Session, user_id: int) -> Cart | None:
    return session.exec(select(Cart).where(Cart.user_id == user_id)).first()


def list_items(*, session: Session, user_id: int) -> list[dict[str, Any]]:
    """购物车商品（带商品信息），按加入顺序排列"""
    stmt = (
        select(CartItem, Product)
        .join(Cart, Cart.id == CartItem.cart_id)
        .join(Product, Product.id == CartItem.product_id)
        .where(Cart.user_id == user_id)
        .order_by(CartItem.id)
    )
    return [
        {
            "productId": product.id,
            "quantity": item.quantity,
            "name": product.name,
            "priceCents": product.price_cents,
            "imageUrl": product.image_url,
            "shopifyVariantId": product.shopify_variant_id,
        }
        for item, product in session.exec(stmt).all()
    ]


def set_item_quantity(*, session: Session, user_id: int, product_id: int, quantity: int) -> None:
    """加入购物车；已存在的商品直接覆盖数量"""
    if session.get(Product, product_id) is None:
        raise AppError(code=404201, message="商品不存在", status_code=404)

    cart = get_cart(session=session, user_id=user_id)
    if cart is None:
        cart = Cart(user_id=user_id)
        session.add(cart)
        session.flush()

    item = session.exec(
        select(CartItem)
        .where(CartItem.cart_id == cart.id)
        .where(CartItem.product_id == product_id)
    ).first()
    if item is None:
        item = CartItem(cart_id=cart.id, product_id=product_id, quantity=quantity)
    item.quantity = quantity
    item.updated_at = utc_now()
    session.add(item)
    session.commit()


def count_items(*, session: Session, user_id: int) -> int:
    stmt = (
        select(func.count())
        .select_from(CartItem)
        .join(Cart, Cart.id == CartItem.cart_id)
        .where(Cart.user_id == user_id)
    )
    return int(session.exec(stmt).one())


def remove_item(*, session: Session, user_id: int, product_id: int) -> None:
    cart = get_cart(session=session, user_id=user_id)
    if cart is None:
        raise AppError(code=404202, message="購物車目前沒有商品", status_code=404)
    result = session.exec(
        delete(CartItem)
        .where(CartItem.cart_id == cart.id)
        .where(CartItem.product_id == product_id)
    )
    if result.rowcount == 0:
        session.rollback()
        raise AppError(code=404203, message="購物車中找不到此商品", status_code=404)
    session.commit()

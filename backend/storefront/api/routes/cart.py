"""
购物车路由模块

每个用户一个购物车，同一商品只占一行（重复加入时覆盖数量）。
"""
from fastapi import APIRouter

from storefront import crud
from storefront.api.deps import CurrentUser, SessionDep
from storefront.api.errors import AppError
from storefront.api.schemas import ApiEnvelope, CartItemRequest

router = APIRouter(prefix="/cart", tags=["cart"])


@router.post("/items", response_model=ApiEnvelope)
def add_item(session: SessionDep, current_user: CurrentUser, body: CartItemRequest) -> ApiEnvelope:
    """
    加入购物车

    请求路径: POST /api/v1/cart/items
    """
    if body.quantity <= 0:
        raise AppError(code=400201, message="請提供正確的商品與數量", status_code=400)
    crud.set_cart_item_quantity(
        session=session,
        user_id=current_user.id,
        product_id=body.product_id,
        quantity=body.quantity,
    )
    cart = crud.list_cart_items(session=session, user_id=current_user.id)
    return ApiEnvelope(data={"message": "商品已加入購物車", "cart": cart})


@router.get("/items", response_model=ApiEnvelope)
def list_items(session: SessionDep, current_user: CurrentUser) -> ApiEnvelope:
    return ApiEnvelope(data={"cart": crud.list_cart_items(session=session, user_id=current_user.id)})


@router.get("/items/count", response_model=ApiEnvelope)
def count_items(session: SessionDep, current_user: CurrentUser) -> ApiEnvelope:
    return ApiEnvelope(data={"count": crud.count_cart_items(session=session, user_id=current_user.id)})


@router.delete("/items/{product_id}", response_model=ApiEnvelope)
def remove_item(session: SessionDep, current_user: CurrentUser, product_id: int) -> ApiEnvelope:
    crud.remove_cart_item(session=session, user_id=current_user.id, product_id=product_id)
    cart = crud.list_cart_items(session=session, user_id=current_user.id)
    return ApiEnvelope(data={"message": "商品已從購物車移除", "cart": cart})

"""
Shopify webhook

验证 X-Shopify-Hmac-Sha256（原始请求体的 HMAC-SHA256，base64 编码），
orders/delete 删除本地镜像，其他订单事件更新状态。
"""
import base64
import hashlib
import hmac
import json
import logging

from fastapi import APIRouter, Header, Request
from fastapi.responses import PlainTextResponse
from starlette.concurrency import run_in_threadpool

from storefront import crud
from storefront.api.deps import SessionDep
from storefront.core.config import settings

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhook", tags=["webhook"])


def verify_shopify_hmac(raw_body: bytes, header: str | None, secret: str) -> bool:
    if not secret or not header:
        return False
    digest = base64.b64encode(
        hmac.new(secret.encode("utf-8"), raw_body, hashlib.sha256).digest()
    ).decode("ascii")
    return hmac.compare_digest(digest.encode("ascii"), header.encode("utf-8"))


@router.post("/shopify", response_class=PlainTextResponse)
async def shopify_webhook(
    request: Request,
    session: SessionDep,
    x_shopify_topic: str | None = Header(default=None),
    x_shopify_hmac_sha256: str | None = Header(default=None),
) -> PlainTextResponse:
    raw_body = await request.body()
    if not verify_shopify_hmac(raw_body, x_shopify_hmac_sha256, settings.SHOPIFY_WEBHOOK_SECRET):
        logger.warning("Shopify webhook %s rejected: invalid signature", x_shopify_topic)
        return PlainTextResponse("Invalid signature", status_code=401)

    try:
        payload = json.loads(raw_body)
    except ValueError:
        return PlainTextResponse("Invalid payload", status_code=400)
    if not isinstance(payload, dict) or not payload.get("id"):
        return PlainTextResponse("Missing order id", status_code=400)
    try:
        order_id = int(payload["id"])
    except (TypeError, ValueError):
        return PlainTextResponse("Invalid order id", status_code=400)

    logger.info("Shopify webhook %s for order %s", x_shopify_topic, order_id)
    if x_shopify_topic == "orders/delete":
        await run_in_threadpool(
            crud.delete_order_record, session=session, shopify_order_id=order_id
        )
    else:
        await run_in_threadpool(crud.apply_webhook_update, session=session, payload=payload)
    return PlainTextResponse("ok")

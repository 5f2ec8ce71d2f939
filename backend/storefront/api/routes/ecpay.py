"""
绿界金流路由模块

- POST /ecpay/checkout        发起结账，返回 {action, fields}
- POST /ecpay/payment-return  绿界服务器端付款结果通知（纯文本 1|OK / 0|<reason>）
- POST /ecpay/client-return   用户付款后浏览器跳回
"""
import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, PlainTextResponse, RedirectResponse
from starlette.concurrency import run_in_threadpool

from storefront.api.deps import CheckoutDep, CurrentUser, ReconcilerDep, SessionDep
from storefront.api.schemas import EcpayCheckoutRequest
from storefront.core.config import settings

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/ecpay", tags=["ecpay"])


@router.post("/checkout")
def checkout(
    session: SessionDep,
    current_user: CurrentUser,
    initiator: CheckoutDep,
    body: EcpayCheckoutRequest,
) -> JSONResponse:
    """
    发起绿界结账

    写入待确认交易后返回签名表单，前端以 form POST 跳转到 action。
    回应不使用统一格式：{"action": "...", "fields": {..., "CheckMacValue": "..."}}
    """
    form = initiator.initiate(
        session=session,
        user_id=current_user.id,
        trade_no=body.trade_no,
        total_amount=body.total_amount,
        order=body.order,
        description=body.description,
        return_url=body.return_url,
    )
    return JSONResponse(form.as_dict())


@router.post("/payment-return", response_class=PlainTextResponse)
async def payment_return(
    request: Request, session: SessionDep, reconciler: ReconcilerDep
) -> PlainTextResponse:
    """
    绿界付款结果通知

    绿界会重送直到收到 1|OK，因此同一笔交易可能收到多次。
    """
    form = await request.form()
    params = {key: value for key, value in form.items() if isinstance(value, str)}
    logger.info(
        "ECPay payment-return trade=%s rtn=%s amount=%s",
        params.get("MerchantTradeNo"),
        params.get("RtnCode"),
        params.get("TradeAmt"),
    )
    result = await run_in_threadpool(reconciler.handle, session, params)
    if not result.ok:
        logger.warning(
            "ECPay payment-return trade=%s answered %s (%s)",
            params.get("MerchantTradeNo"),
            result.body,
            result.status_code,
        )
    return PlainTextResponse(result.body, status_code=result.status_code)


@router.post("/client-return")
async def client_return(request: Request) -> RedirectResponse:
    form = await request.form()
    logger.info("ECPay client-return trade=%s", form.get("MerchantTradeNo"))
    return RedirectResponse(f"{settings.CLIENT_ORIGIN.rstrip('/')}/orders", status_code=302)

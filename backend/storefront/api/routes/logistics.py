"""
物流路由模块

门市选择流程：
1. 前端取得 map-token 的签名表单，POST 到绿界电子地图
2. 用户选店后绿界 POST 到 map-callback，按 ExtraData（一次性 token）暂存门市
3. 前端以 token 查询 selection-result

status-callback 接收绿界物流状态通知（MD5 签名）。
"""
from __future__ import annotations

import json
import logging
from urllib.parse import urlencode

from fastapi import APIRouter, Request
from fastapi.responses import HTMLResponse, JSONResponse, PlainTextResponse, RedirectResponse
from starlette.concurrency import run_in_threadpool

from storefront import crud
from storefront.api.deps import LogisticsSignerDep, SessionDep
from storefront.api.errors import AppError
from storefront.api.schemas import ApiEnvelope, MapTokenRequest
from storefront.core.config import settings
from storefront.enums import LogisticsSubType
from storefront.integrations.ecpay_logistics import normalize_store_info
from storefront.services.reconciler import ACK_OK, failure

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/logistics", tags=["logistics"])

_STORE_CALLBACK_PATH = "/payment/store-callback"

_REDIRECT_PAGE = """<!DOCTYPE html>
<html lang="zh-Hant">
  <head>
    <meta charset="utf-8" />
    <title>門市資料回傳中</title>
  </head>
  <body>
    <p>門市資料回傳中，請稍候…</p>
    <script>window.location.replace({target});</script>
  </body>
</html>"""


def _client_store_callback(query: dict[str, str]) -> str:
    base = f"{settings.CLIENT_ORIGIN.rstrip('/')}{_STORE_CALLBACK_PATH}"
    return f"{base}?{urlencode(query)}" if query else base


async def _form_params(request: Request) -> dict[str, str]:
    form = await request.form()
    return {key: value for key, value in form.items() if isinstance(value, str)}


@router.post("/map-token")
def map_token(signer: LogisticsSignerDep, body: MapTokenRequest) -> JSONResponse:
    """电子地图选店的签名表单：{action, fields}"""
    try:
        subtype = LogisticsSubType(body.logistics_sub_type)
    except ValueError:
        raise AppError(code=400401, message="不支援的物流子類型", status_code=400)

    params = {
        "MerchantID": signer.merchant_id,
        "LogisticsType": "CVS",
        "LogisticsSubType": subtype.value,
        "IsCollection": "N",
        "ServerReplyURL": f"{settings.SERVER_BASE_URL.rstrip('/')}{settings.API_V1_STR}/logistics/map-callback",
        "ExtraData": body.extra_data,
        "Device": "0",
    }
    return JSONResponse({"action": settings.ECPAY_LOGISTICS_MAP_URL, "fields": signer.signed_fields(params)})


@router.post("/map-callback", response_class=HTMLResponse)
async def map_callback(request: Request, session: SessionDep) -> HTMLResponse:
    """保存选中的门市，回传一个跳转回前端的页面"""
    params = await _form_params(request)
    token = params.get("ExtraData") or params.get("extraData") or ""
    store = normalize_store_info(params)
    logger.info("Store selected token=%s store=%s", token, store["storeId"])
    if token and store["storeId"]:
        await run_in_threadpool(
            crud.save_store_selection, session=session, token=token, store_info=store
        )

    # 防止门市名称中的 </script> 截断脚本
    target = json.dumps(_client_store_callback(params)).replace("</", "<\\/")
    return HTMLResponse(_REDIRECT_PAGE.format(target=target))


@router.get("/selection-result/{token}", response_model=ApiEnvelope)
def selection_result(session: SessionDep, token: str) -> ApiEnvelope:
    selection = crud.get_store_selection(
        session=session, token=token, ttl_minutes=settings.STORE_SELECTION_TTL_MINUTES
    )
    if selection is None:
        raise AppError(code=404401, message="尚未收到門市資訊", status_code=404)
    return ApiEnvelope(data={"store": selection.store_info})


@router.post("/client-callback")
async def client_callback(request: Request) -> RedirectResponse:
    params = await _form_params(request)
    token = params.get("ExtraData") or params.get("selectionToken") or params.get("extraData") or ""
    return RedirectResponse(
        _client_store_callback({"token": token} if token else {}), status_code=303
    )


@router.post("/status-callback", response_class=PlainTextResponse)
async def status_callback(
    request: Request, session: SessionDep, signer: LogisticsSignerDep
) -> PlainTextResponse:
    """绿界物流状态通知"""
    params = await _form_params(request)
    logistics_id = params.get("AllPayLogisticsID")
    logger.info(
        "Logistics status-callback id=%s rtn=%s", logistics_id, params.get("RtnCode")
    )
    if not logistics_id or not params.get("CheckMacValue"):
        return PlainTextResponse(failure("Fail"), status_code=400)
    if not signer.verify(params):
        logger.error("Logistics CheckMacValue mismatch for %s", logistics_id)
        return PlainTextResponse(failure("Invalid CheckMacValue"), status_code=400)

    shipment = await run_in_threadpool(
        crud.update_shipment_status,
        session=session,
        logistics_id=logistics_id,
        rtn_code=params.get("RtnCode", ""),
        rtn_msg=params.get("RtnMsg"),
    )
    if shipment is None:
        return PlainTextResponse(failure("Order Not Found"), status_code=404)
    return PlainTextResponse(ACK_OK)

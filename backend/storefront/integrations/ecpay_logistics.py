"""
绿界物流 API 集成模块

物流建单接口的回应格式并不固定：
- "1|MerchantID=...&AllPayLogisticsID=...&..."  成功
- "<code>|<message>"                             协议层错误
- JSON（部分新版接口）
- HTML 错误页（参数或签名错误时）

parse_logistics_response 在边界处按内容判断格式，返回三种结果之一，
调用方只需要对结果类型做分支，不需要自己检查字符串。
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Union

import httpx

from storefront.api.errors import DownstreamFailure
from storefront.core.config import settings
from storefront.services.checkmac import CheckMacSigner

logger = logging.getLogger(__name__)

LOGISTICS_TIMEOUT_SECONDS = 30

# 绿界要求的 MerchantTradeDate 为台湾时间
TAIPEI_TZ = timezone(timedelta(hours=8), name="Asia/Taipei")


def format_trade_date(now: datetime | None = None) -> str:
    """绿界的日期格式：YYYY/MM/DD HH:MM:SS（台湾时间）"""
    current = now or datetime.now(timezone.utc)
    return current.astimezone(TAIPEI_TZ).strftime("%Y/%m/%d %H:%M:%S")


@dataclass(frozen=True)
class LogisticsSuccess:
    """建单成功，fields 为绿界回传的键值"""
    fields: dict[str, str] = field(default_factory=dict)

    @property
    def logistics_id(self) -> str | None:
        return self.fields.get("AllPayLogisticsID") or None


@dataclass(frozen=True)
class LogisticsProtocolError:
    """绿界明确回报的错误（code|message）"""
    code: str
    message: str


@dataclass(frozen=True)
class LogisticsUnexpectedResponse:
    """无法识别的回应（HTML 错误页、空回应等），原文保留用于排查"""
    raw: str


LogisticsResult = Union[LogisticsSuccess, LogisticsProtocolError, LogisticsUnexpectedResponse]


def _parse_kv(body: str) -> dict[str, str]:
    fields: dict[str, str] = {}
    for pair in body.split("&"):
        if not pair:
            continue
        key, _, value = pair.partition("=")
        fields[key] = value
    return fields


def _parse_json(body: str) -> LogisticsResult:
    try:
        data = json.loads(body)
    except ValueError:
        return LogisticsUnexpectedResponse(raw=body)
    if not isinstance(data, dict):
        return LogisticsUnexpectedResponse(raw=body)
    if data.get("AllPayLogisticsID"):
        return LogisticsSuccess(fields={k: "" if v is None else str(v) for k, v in data.items()})
    if "RtnCode" in data:
        return LogisticsProtocolError(code=str(data["RtnCode"]), message=str(data.get("RtnMsg") or ""))
    return LogisticsUnexpectedResponse(raw=body)


def parse_logistics_response(body: str) -> LogisticsResult:
    """按内容判断绿界物流回应的格式"""
    text = (body or "").strip()
    if not text:
        return LogisticsUnexpectedResponse(raw=body or "")
    if text.startswith("{"):
        return _parse_json(text)
    if text.startswith("<") or "<html" in text[:200].lower():
        return LogisticsUnexpectedResponse(raw=body)

    code, sep, rest = text.partition("|")
    if not sep or not code.strip().isdigit():
        return LogisticsUnexpectedResponse(raw=body)
    if code.strip() == "1":
        return LogisticsSuccess(fields=_parse_kv(rest))
    return LogisticsProtocolError(code=code.strip(), message=rest)


class LogisticsClient:
    """
    绿界 C2C 超商物流客户端

    使用物流商户凭证、MD5 签名；签名器在构造时注入。
    """

    def __init__(self, signer: CheckMacSigner, *, create_url: str | None = None) -> None:
        self.signer = signer
        self._create_url = create_url or settings.ECPAY_LOGISTICS_CREATE_URL

    def build_create_fields(
        self,
        *,
        merchant_trade_no: str,
        logistics_subtype: str,
        goods_amount: int,
        goods_name: str,
        receiver_name: str,
        receiver_cellphone: str,
        receiver_store_id: str,
        server_reply_url: str,
    ) -> dict[str, Any]:
        params = {
            "MerchantID": self.signer.merchant_id,
            "MerchantTradeNo": merchant_trade_no,
            "MerchantTradeDate": format_trade_date(),
            "LogisticsType": "CVS",
            "LogisticsSubType": logistics_subtype,
            "GoodsAmount": str(goods_amount),
            "GoodsName": goods_name,
            "IsCollection": "N",
            "SenderName": settings.ECPAY_LOGISTICS_SENDER_NAME,
            "SenderCellPhone": settings.ECPAY_LOGISTICS_SENDER_CELLPHONE,
            "ReceiverName": receiver_name,
            "ReceiverCellPhone": receiver_cellphone,
            "ReceiverStoreID": receiver_store_id,
            "ServerReplyURL": server_reply_url,
        }
        return self.signer.signed_fields(params)

    def create_shipment(self, fields: dict[str, Any]) -> LogisticsResult:
        """
        送出物流建单请求

        Raises:
            DownstreamFailure: 网络错误或超时（HTTP 非 2xx 仍会解析回应主体）
        """
        try:
            with httpx.Client(timeout=LOGISTICS_TIMEOUT_SECONDS) as client:
                r = client.post(self._create_url, data=fields)
        except httpx.HTTPError as e:
            raise DownstreamFailure(f"ECPay logistics error: {e}", code=502301)
        result = parse_logistics_response(r.text)
        logger.info(
            "Logistics create %s -> %s (HTTP %s)",
            fields.get("MerchantTradeNo"),
            type(result).__name__,
            r.status_code,
        )
        return result


def _first(payload: dict[str, Any], *keys: str) -> str:
    for key in keys:
        value = payload.get(key)
        if value:
            return str(value)
    return ""


def normalize_store_info(payload: dict[str, Any]) -> dict[str, Any]:
    """
    统一电子地图回传的门市资料

    不同版本的地图接口字段名不一致（CVSStoreID / ReceiverStoreID / storeid ...），
    这里整理成前端使用的固定结构，原始内容放在 raw。
    """
    return {
        "storeId": _first(payload, "ReceiverStoreID", "CVSStoreID", "StoreID", "storeid", "storeId"),
        "storeName": _first(payload, "ReceiverStoreName", "CVSStoreName", "StoreName", "storename", "storeName"),
        "storeAddress": _first(payload, "ReceiverAddress", "CVSAddress", "storeaddress", "storeAddress"),
        "receiverPhone": _first(payload, "ReceiverPhone", "phone", "CVSTelephone"),
        "receiverCellPhone": _first(payload, "ReceiverCellPhone", "cellphone"),
        "logisticsSubType": _first(payload, "LogisticsSubType", "logisticsSubType", "SubType"),
        "raw": dict(payload),
    }

"""
绿界付款回调对账

检查顺序：
1. 必要字段
2. CheckMacValue（不通过直接拒绝，不修改任何状态）
3. 查找待确认交易
4. 已完成 -> 1|OK（重复投递）
5. RtnCode == 1
6. TradeAmt 与结账金额一致
7. 原子取得处理租约（claim）
8. 建立下游订单（attempts > 1 时先按交易编号标签查找已建立的订单）
9. 条件更新标记完成，再建立物流单

回应只有 "1|OK" 与 "0|<reason>" 两种格式，由绿界协议规定，不能改动。
"""
from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from sqlmodel import Session

from storefront import crud
from storefront.api.errors import (
    AmountMismatch,
    ClaimConflict,
    NotFound,
    PaymentProtocolError,
    PaymentRejected,
    SignatureMismatch,
    ValidationError,
)
from storefront.services.checkmac import CHECK_MAC_FIELD, CheckMacSigner
from storefront.services.fulfillment_service import FulfillmentService

logger = logging.getLogger(__name__)

ACK_OK = "1|OK"


def failure(reason: str) -> str:
    return f"0|{reason}"


@dataclass(frozen=True)
class CallbackResult:
    status_code: int
    body: str

    @property
    def ok(self) -> bool:
        return self.body == ACK_OK


class CallbackReconciler:
    def __init__(
        self,
        signer: CheckMacSigner,
        fulfillment: FulfillmentService,
        *,
        lease_seconds: int,
    ) -> None:
        self.signer = signer
        self.fulfillment = fulfillment
        self.lease_seconds = lease_seconds

    def handle(self, session: Session, params: Mapping[str, Any]) -> CallbackResult:
        """处理一次回调投递，任何异常都转换为协议回应"""
        trade_no = params.get("MerchantTradeNo")
        try:
            self._process(session, params)
        except PaymentProtocolError as e:
            return CallbackResult(status_code=e.status_code, body=failure(e.reason))
        except Exception:
            logger.exception("Payment callback for %s failed unexpectedly", trade_no)
            return CallbackResult(status_code=500, body=failure("Error"))
        return CallbackResult(status_code=200, body=ACK_OK)

    def _process(self, session: Session, params: Mapping[str, Any]) -> None:
        trade_no = params.get("MerchantTradeNo")
        if not trade_no or not params.get(CHECK_MAC_FIELD):
            raise ValidationError("Missing MerchantTradeNo or CheckMacValue")

        if not self.signer.verify(params):
            logger.error("CheckMacValue mismatch for trade %s", trade_no)
            raise SignatureMismatch()

        txn = crud.transactions.get_pending(session=session, merchant_trade_no=trade_no)
        if txn is None:
            logger.warning("Payment callback for unknown trade %s", trade_no)
            raise NotFound()
        if txn.processed_at is not None:
            logger.info("Trade %s already processed, acknowledging redelivery", trade_no)
            return

        if str(params.get("RtnCode", "")).strip() != "1":
            logger.error(
                "Payment for trade %s not successful: %s %s",
                trade_no,
                params.get("RtnCode"),
                params.get("RtnMsg"),
            )
            raise PaymentRejected(f"RtnCode {params.get('RtnCode')}")

        try:
            paid = int(str(params.get("TradeAmt", "")).strip())
        except ValueError:
            paid = None
        if paid != txn.total_amount:
            logger.error(
                "Amount mismatch for trade %s: expected %s, got %s",
                trade_no,
                txn.total_amount,
                params.get("TradeAmt"),
            )
            raise AmountMismatch()

        token = crud.transactions.claim(
            session=session, merchant_trade_no=trade_no, lease_seconds=self.lease_seconds
        )
        if token is None:
            txn = crud.transactions.get_pending(session=session, merchant_trade_no=trade_no)
            if txn is not None and txn.processed_at is not None:
                return
            logger.info("Trade %s is being processed by another delivery", trade_no)
            raise ClaimConflict()

        txn = crud.transactions.get_pending(session=session, merchant_trade_no=trade_no)
        if txn is None:
            raise NotFound()
        try:
            order = None
            if txn.attempts > 1:
                order = self.fulfillment.find_existing_order(trade_no)
                if order is not None:
                    logger.info("Adopting existing Shopify order %s for trade %s", order.get("id"), trade_no)
            if order is None:
                order = self.fulfillment.create_order(txn)
            record = crud.transactions.complete(session=session, txn=txn, token=token, order=order)
        except Exception as exc:
            session.rollback()
            crud.transactions.release_claim(session=session, merchant_trade_no=trade_no, token=token)
            if isinstance(exc, PaymentProtocolError):
                logger.error("Downstream failure for trade %s: %s", trade_no, exc.message)
            raise

        if record is None:
            logger.error("Trade %s lost its claim before completion; order %s", trade_no, order.get("id"))
            return

        self.fulfillment.create_shipment(session=session, txn=txn)

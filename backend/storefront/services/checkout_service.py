"""
绿界金流结账

写入（或覆盖）待确认交易，返回前端自动提交到绿界收银台的签名表单。
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from sqlmodel import Session

from storefront import crud
from storefront.api.errors import ValidationError
from storefront.core.config import settings
from storefront.integrations.ecpay_logistics import format_trade_date
from storefront.services.checkmac import CheckMacSigner
from storefront.services.fulfillment_service import validate_order_payload

logger = logging.getLogger(__name__)

# 绿界 MerchantTradeNo：英数字，最长 20 码
_TRADE_NO_RE = re.compile(r"^[A-Za-z0-9]{1,20}$")


@dataclass(frozen=True)
class CheckoutForm:
    action: str
    fields: dict[str, Any]

    def as_dict(self) -> dict[str, Any]:
        return {"action": self.action, "fields": self.fields}


def round_amount(value: Any) -> int:
    """金额四舍五入为整数；无法解析时返回 0"""
    try:
        return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    except (InvalidOperation, ValueError):
        return 0


class CheckoutInitiator:
    def __init__(
        self,
        signer: CheckMacSigner,
        *,
        action_url: str | None = None,
        default_return_url: str | None = None,
        client_back_url: str | None = None,
    ) -> None:
        self.signer = signer
        self.action_url = action_url or settings.ECPAY_PAYMENT_URL
        self.default_return_url = default_return_url or (
            f"{settings.SERVER_BASE_URL.rstrip('/')}{settings.API_V1_STR}/ecpay/payment-return"
        )
        self.client_back_url = client_back_url or f"{settings.CLIENT_ORIGIN.rstrip('/')}/orders"

    def initiate(
        self,
        *,
        session: Session,
        user_id: int,
        trade_no: str | None,
        total_amount: Any,
        order: dict[str, Any] | None,
        description: str | None = None,
        return_url: str | None = None,
    ) -> CheckoutForm:
        """
        发起结账

        Raises:
            ValidationError: 缺少交易编号 / 金额、订单没有商品或配送资料不完整；
                都在写入待确认交易之前检查
        """
        total = round_amount(total_amount) if total_amount not in (None, "") else 0
        if not trade_no or total <= 0:
            raise ValidationError("缺少交易編號或金額")
        if not _TRADE_NO_RE.match(trade_no):
            raise ValidationError("交易編號格式不正確")
        if not order or not order.get("items"):
            raise ValidationError("缺少訂單明細")
        validate_order_payload(order.get("items"), order.get("shipping"))

        crud.transactions.persist_pending(
            session=session,
            merchant_trade_no=trade_no,
            user_id=user_id,
            total_amount=total,
            order_payload=order,
        )

        params = {
            "MerchantID": self.signer.merchant_id,
            "MerchantTradeNo": trade_no,
            "MerchantTradeDate": format_trade_date(),
            "PaymentType": "aio",
            "TotalAmount": str(total),
            "TradeDesc": description or "PLG order",
            "ItemName": "PLG item",
            "ReturnURL": return_url or self.default_return_url,
            "ClientBackURL": self.client_back_url,
            "ChoosePayment": "Credit",
            "EncryptType": "1",
        }
        logger.info("Checkout %s initiated for user %s, amount %s", trade_no, user_id, total)
        return CheckoutForm(action=self.action_url, fields=self.signer.signed_fields(params))

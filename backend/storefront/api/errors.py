"""
自定义异常模块

定义应用特定的异常类，用于统一的错误处理。
所有业务异常都继承自 AppError，在 main.py 中有统一的异常处理器。

付款回调相关的异常另外携带 reason，对应绿界协议要求的 "0|<reason>" 回应。
"""
from __future__ import annotations


class AppError(Exception):
    """
    应用自定义异常类

    - code: 业务错误码（用于前端区分不同错误）
    - message: 错误消息
    - status_code: HTTP 状态码（400, 404, 500 等）

    使用示例：
        raise AppError(code=400101, message="缺少交易編號或金額", status_code=400)
    """

    def __init__(self, *, code: int, message: str, status_code: int = 400) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.status_code = status_code


class PaymentProtocolError(AppError):
    """
    付款回调处理失败

    reason 会原样写入回应主体 "0|<reason>"，不要随意修改已有的文字。
    """

    reason = "Fail"

    def __init__(
        self,
        *,
        code: int,
        message: str,
        status_code: int = 400,
        reason: str | None = None,
    ) -> None:
        super().__init__(code=code, message=message, status_code=status_code)
        if reason is not None:
            self.reason = reason


class ValidationError(PaymentProtocolError):
    """输入缺失或格式错误"""

    reason = "Fail"

    def __init__(self, message: str, *, code: int = 400100) -> None:
        super().__init__(code=code, message=message, status_code=400)


class SignatureMismatch(PaymentProtocolError):
    """CheckMacValue 验证失败，永远拒绝，不会重试"""

    reason = "Invalid CheckMacValue"

    def __init__(self, message: str = "CheckMacValue mismatch") -> None:
        super().__init__(code=400110, message=message, status_code=400)


class NotFound(PaymentProtocolError):
    """未知的交易编号"""

    reason = "Order Not Found"

    def __init__(self, message: str = "Pending order not found") -> None:
        super().__init__(code=404110, message=message, status_code=404)


class PaymentRejected(PaymentProtocolError):
    """绿界回报付款未成功（RtnCode != 1）"""

    reason = "Fail"

    def __init__(self, message: str) -> None:
        super().__init__(code=400120, message=message, status_code=400)


class AmountMismatch(PaymentProtocolError):
    """回调金额与结账金额不一致（疑似篡改或重复提交）"""

    reason = "Amount Mismatch"

    def __init__(self, message: str = "Trade amount mismatch") -> None:
        super().__init__(code=400130, message=message, status_code=400)


class ClaimConflict(PaymentProtocolError):
    """另一次回调投递正在处理同一笔交易"""

    reason = "Processing"

    def __init__(self, message: str = "Transaction is being processed") -> None:
        super().__init__(code=409110, message=message, status_code=409)


class DownstreamFailure(PaymentProtocolError):
    """Shopify 或物流 API 调用失败 / 回应格式不符，不在本地重试"""

    reason = "Shopify Error"

    def __init__(self, message: str, *, code: int = 502110) -> None:
        super().__init__(code=code, message=message, status_code=502)


def not_logged_in() -> AppError:
    return AppError(code=401001, message="尚未登入", status_code=401)


def session_expired() -> AppError:
    return AppError(code=401002, message="登入狀態已失效，請重新登入", status_code=401)

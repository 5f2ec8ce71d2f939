"""
绿界 CheckMacValue 签名

签名步骤（必须逐字节一致，否则所有与绿界往来的签名都会失效）：
1. 去掉值为 None 的参数（空字符串保留）
2. 按参数名的码位顺序排序（不是 locale 排序）
3. 拼成 key=value&key=value
4. 前后加上 HashKey=...& 与 &HashIV=...
5. URL encode：只保留英数字与 - _ . ! * ( ) 原样，空格转成 +，其余字符一律 %XX
6. 整串转小写
7. sha256（金流）或 md5（物流）
8. 十六进制摘要转大写
"""
from __future__ import annotations

import hashlib
import hmac
from collections.abc import Mapping
from typing import Any
from urllib.parse import quote_plus

from storefront.core.config import EcpayCredentials
from storefront.enums import HashAlgorithm

CHECK_MAC_FIELD = "CheckMacValue"

# quote_plus 默认把 ~ 视为安全字符，绿界（.NET UrlEncode）会编码它
_SAFE_CHARS = "-_.!*()"


def ecpay_url_encode(raw: str) -> str:
    return quote_plus(raw, safe=_SAFE_CHARS).replace("~", "%7E")


def compute_check_mac(
    params: Mapping[str, Any],
    *,
    hash_key: str,
    hash_iv: str,
    algorithm: HashAlgorithm = HashAlgorithm.sha256,
) -> str:
    """
    计算 CheckMacValue

    Args:
        params: 参与签名的参数（不含 CheckMacValue）
        hash_key: 商户 HashKey
        hash_iv: 商户 HashIV
        algorithm: sha256（金流）或 md5（物流）

    Returns:
        大写十六进制摘要（sha256 为 64 位，md5 为 32 位）
    """
    query = "&".join(
        f"{key}={params[key]}" for key in sorted(k for k, v in params.items() if v is not None)
    )
    raw = f"HashKey={hash_key}&{query}&HashIV={hash_iv}"
    encoded = ecpay_url_encode(raw).lower()
    digest = hashlib.new(HashAlgorithm(algorithm).value, encoded.encode("utf-8"))
    return digest.hexdigest().upper()


class CheckMacSigner:
    """
    绑定一组商户凭证与摘要算法的签名器

    凭证在构造时注入，签名器本身不读取任何全局配置。
    """

    def __init__(
        self,
        credentials: EcpayCredentials,
        algorithm: HashAlgorithm = HashAlgorithm.sha256,
    ) -> None:
        self.credentials = credentials
        self.algorithm = algorithm

    @property
    def merchant_id(self) -> str:
        return self.credentials.merchant_id

    def sign(self, params: Mapping[str, Any]) -> str:
        return compute_check_mac(
            params,
            hash_key=self.credentials.hash_key,
            hash_iv=self.credentials.hash_iv,
            algorithm=self.algorithm,
        )

    def signed_fields(self, params: Mapping[str, Any]) -> dict[str, Any]:
        """返回附带 CheckMacValue 的新字典，None 值不会出现在结果中"""
        fields = {k: v for k, v in params.items() if v is not None}
        fields[CHECK_MAC_FIELD] = self.sign(fields)
        return fields

    def verify(self, params: Mapping[str, Any]) -> bool:
        """
        验证回调参数中的 CheckMacValue

        对除 CheckMacValue 之外的全部字段重新计算摘要，要求完全一致。
        """
        received = params.get(CHECK_MAC_FIELD)
        if not isinstance(received, str) or not received or not received.isascii():
            return False
        rest = {k: v for k, v in params.items() if k != CHECK_MAC_FIELD}
        return hmac.compare_digest(received, self.sign(rest))

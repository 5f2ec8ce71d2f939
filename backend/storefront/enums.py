"""
枚举类型定义模块

所有枚举都继承自 str 和 Enum，这样既可以用作字符串，又具有枚举的特性。
"""
from enum import Enum


class ShippingMethod(str, Enum):
    """
    配送方式

    - home: 宅配
    - seveneleven: 7-ELEVEN 超商取货
    - familymart: 全家超商取货
    """
    home = "home"
    seveneleven = "seveneleven"
    familymart = "familymart"


class LogisticsSubType(str, Enum):
    """绿界 C2C 超商物流子类型"""
    unimart_c2c = "UNIMARTC2C"
    fami_c2c = "FAMIC2C"
    hilife_c2c = "HILIFEC2C"
    okmart_c2c = "OKMARTC2C"


# 配送方式 -> 物流子类型
PICKUP_SUBTYPES: dict[ShippingMethod, LogisticsSubType] = {
    ShippingMethod.seveneleven: LogisticsSubType.unimart_c2c,
    ShippingMethod.familymart: LogisticsSubType.fami_c2c,
}


class HashAlgorithm(str, Enum):
    """
    CheckMacValue 使用的摘要算法

    金流使用 sha256，物流使用 md5，两者不可互换。
    """
    sha256 = "sha256"
    md5 = "md5"

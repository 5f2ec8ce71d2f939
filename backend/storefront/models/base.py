"""
基础模型模块

定义所有模型共用的基础类和工具函数。
"""
from datetime import datetime, timezone

from sqlmodel import SQLModel


def utc_now() -> datetime:
    """获取当前 UTC 时间"""
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """
    把数据库读回的时间统一成 UTC aware

    SQLite 等后端不保存时区信息，读回的是 naive datetime。
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


__all__ = ["SQLModel", "utc_now", "as_utc"]

"""
Redis 连接模块

只用于后台任务的分布式锁：多个 worker 实例同时运行对账任务时，
保证同一时刻只有一个实例在处理。
"""
from __future__ import annotations

import logging
from functools import lru_cache

import redis

from storefront.core.config import settings

logger = logging.getLogger(__name__)

# 仅当锁值匹配时才删除，防止误删其他实例的锁
_RELEASE_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
else
    return 0
end
"""


@lru_cache(maxsize=1)
def get_redis() -> redis.Redis:
    """获取 Redis 客户端实例（单例，首次使用时才建立连接）"""
    return redis.Redis(
        host=settings.REDIS_HOST,
        port=settings.REDIS_PORT,
        db=settings.REDIS_DB,
        password=settings.REDIS_PASSWORD,
        decode_responses=True,
    )


def acquire_lock(client: redis.Redis, key: str, value: str, *, expire_seconds: int) -> bool:
    try:
        return bool(client.set(key, value, ex=expire_seconds, nx=True))
    except redis.RedisError as e:
        logger.error(f"Failed to acquire lock {key}: {e}")
        return False


def release_lock(client: redis.Redis, key: str, value: str) -> bool:
    try:
        return bool(client.eval(_RELEASE_SCRIPT, 1, key, value))
    except redis.RedisError as e:
        logger.error(f"Failed to release lock {key}: {e}")
        return False

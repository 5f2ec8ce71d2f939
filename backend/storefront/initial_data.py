"""
初始数据脚本

数据库迁移完成后执行：商品表为空时写入 config/default_products.json 中的商品。
"""
import logging

from sqlmodel import Session

from storefront.core.db import engine, init_db

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def init() -> int:
    with Session(engine) as session:
        return init_db(session)


def main() -> None:
    logger.info("Creating initial data")
    created = init()
    logger.info("Initial data created (%d products)", created)


if __name__ == "__main__":  # pragma: no cover
    main()

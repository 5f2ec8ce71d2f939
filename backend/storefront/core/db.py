"""
数据库连接模块

管理数据库引擎和会话的创建。
使用 SQLModel 的 create_engine 创建数据库连接池。

重要提示：
- 数据库表结构通过 Alembic 迁移管理，不要在这里创建表
- 确保在使用前导入所有模型（storefront.models），否则关系可能无法正确初始化
"""
import json
import logging
from pathlib import Path

from sqlmodel import Session, create_engine, func, select

from storefront.core.config import settings
from storefront.models import Product

logger = logging.getLogger(__name__)

# 创建数据库引擎（连接池）
engine = create_engine(str(settings.SQLALCHEMY_DATABASE_URI), pool_pre_ping=True)

_DEFAULT_PRODUCTS = Path(__file__).resolve().parents[1] / "config" / "default_products.json"


def init_db(session: Session, *, products_file: Path = _DEFAULT_PRODUCTS) -> int:
    """
    填充商品目录种子数据

    只有在 products 表为空时才写入，避免覆盖运营后台维护的数据。

    Returns:
        新写入的商品数量
    """
    existing = session.exec(select(func.count()).select_from(Product)).one()
    if existing:
        return 0
    if not products_file.exists():
        logger.warning("Seed file %s not found, skipping product seed", products_file)
        return 0

    rows = json.loads(products_file.read_text(encoding="utf-8"))
    for row in rows:
        session.add(
            Product(
                name=row["name"],
                price_cents=int(row["price_cents"]),
                image_url=row.get("image_url"),
                shopify_variant_id=row.get("shopify_variant_id"),
            )
        )
    session.commit()
    return len(rows)

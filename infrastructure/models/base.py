"""
数据库元数据基类（SQLAlchemy Core 风格）

OAuth 表名带有构造期注入的前缀，无法使用固定 __tablename__ 的声明式模型，
因此每组表挂在独立的 MetaData 上，便于多租户前缀在同一数据库中共存。
"""
from typing import Optional

from sqlalchemy import MetaData


NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "pk": "pk_%(table_name)s",
}


def new_metadata(schema: Optional[str] = None) -> MetaData:
    """创建带统一命名约定的元数据对象"""
    return MetaData(schema=schema, naming_convention=NAMING_CONVENTION)

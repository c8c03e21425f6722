"""
数据库配置和连接管理

存储层不持有全局引擎：引擎与会话工厂由调用方（或 OAuthStorage.from_settings）创建并注入。
"""
from typing import Optional

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from core.config import DatabaseSettings
from infrastructure.models import OAuthTables


def build_async_url(database_url: str) -> str:
    """确保数据库URL使用异步驱动"""
    url = make_url(database_url)
    drivername = url.drivername

    if "+" in drivername:
        return database_url

    driver_map = {
        "postgresql": "postgresql+asyncpg",
        "postgres": "postgresql+asyncpg",
        "mysql": "mysql+aiomysql",
        "sqlite": "sqlite+aiosqlite",
    }

    if drivername not in driver_map:
        raise ValueError(f"不支持的数据库驱动: {drivername}. 请使用 async 驱动或更新 DATABASE__URL")

    async_driver = driver_map[drivername]
    return url.set(drivername=async_driver).render_as_string(hide_password=False)


def create_engine(database: DatabaseSettings) -> AsyncEngine:
    """根据配置创建异步引擎"""
    return create_async_engine(
        build_async_url(database.url),
        echo=database.echo,
        future=True,
    )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """创建异步会话工厂"""
    return async_sessionmaker(
        bind=engine,
        expire_on_commit=False,
    )


async def create_tables(engine: AsyncEngine, tables: Optional[OAuthTables] = None):
    """
    创建 OAuth 表

    仅用于开发与测试环境；生产部署的表结构由迁移工具维护。
    """
    tables = tables or OAuthTables()
    async with engine.begin() as conn:
        await conn.run_sync(tables.metadata.create_all)


async def drop_tables(engine: AsyncEngine, tables: Optional[OAuthTables] = None):
    """
    删除 OAuth 表

    警告：仅用于测试环境，会删除所有数据！
    """
    tables = tables or OAuthTables()
    async with engine.begin() as conn:
        await conn.run_sync(tables.metadata.drop_all)

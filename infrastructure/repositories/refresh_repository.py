"""
刷新令牌索引仓储实现
"""
from typing import Optional

from sqlalchemy import delete, insert, select
from sqlalchemy.ext.asyncio import AsyncSession

from domain.oauth.repository import RefreshRepository
from infrastructure.models import OAuthTables
from infrastructure.repositories.base import backend_errors


class SQLAlchemyRefreshRepository(RefreshRepository):
    """刷新令牌索引的SQLAlchemy实现"""

    def __init__(self, session: AsyncSession, tables: OAuthTables):
        self.session = session
        self.table = tables.refresh

    async def add(self, refresh_token: str, access_token: str) -> None:
        with backend_errors("saveRefresh"):
            await self.session.execute(
                insert(self.table).values(
                    refresh_token=refresh_token,
                    access_token=access_token,
                )
            )

    async def get_access_token(self, refresh_token: str) -> Optional[str]:
        t = self.table
        with backend_errors("LoadRefresh"):
            result = await self.session.execute(
                select(t.c.access_token).where(t.c.refresh_token == refresh_token).limit(1)
            )
            return result.scalar_one_or_none()

    async def delete(self, refresh_token: str) -> int:
        with backend_errors("RemoveRefresh"):
            result = await self.session.execute(
                delete(self.table).where(self.table.c.refresh_token == refresh_token)
            )
        return result.rowcount

"""
过期时间索引仓储实现

与授权码/访问令牌表之间没有外键，一致性由 OAuthStorage 的写路径保证。
"""
from datetime import datetime
from typing import List, Tuple

from sqlalchemy import delete, insert, select
from sqlalchemy.ext.asyncio import AsyncSession

from domain.oauth.entity import as_utc
from domain.oauth.repository import ExpiryRepository
from infrastructure.models import OAuthTables
from infrastructure.repositories.base import backend_errors


class SQLAlchemyExpiryRepository(ExpiryRepository):
    """过期时间索引的SQLAlchemy实现"""

    def __init__(self, session: AsyncSession, tables: OAuthTables):
        self.session = session
        self.table = tables.expires

    async def add(self, code_or_token: str, expires_at: datetime) -> None:
        with backend_errors("AddExpireAtData"):
            await self.session.execute(
                insert(self.table).values(
                    code_or_token=code_or_token,
                    expires_at=as_utc(expires_at),
                )
            )

    async def delete(self, code_or_token: str) -> int:
        with backend_errors("RemoveExpireAtData"):
            result = await self.session.execute(
                delete(self.table).where(self.table.c.code_or_token == code_or_token)
            )
        return result.rowcount

    async def find_expired(
        self,
        before: datetime,
        limit: int = 100
    ) -> List[Tuple[str, datetime]]:
        t = self.table
        with backend_errors("FindExpired"):
            result = await self.session.execute(
                select(t.c.code_or_token, t.c.expires_at)
                .where(t.c.expires_at < as_utc(before))
                .order_by(t.c.expires_at.asc(), t.c.id.asc())
                .limit(limit)
            )
            rows = result.all()
        return [
            (row._mapping[t.c.code_or_token], as_utc(row._mapping[t.c.expires_at]))
            for row in rows
        ]

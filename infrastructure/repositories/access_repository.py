"""
访问令牌仓储实现 - 使用SQLAlchemy实现数据访问
"""
from typing import Optional

from sqlalchemy import delete, insert, select
from sqlalchemy.ext.asyncio import AsyncSession

from domain.oauth.entity import AccessData, AccessRecord, as_utc, serialize_user_data
from domain.oauth.repository import AccessRepository
from infrastructure.models import OAuthTables
from infrastructure.repositories.base import backend_errors


class SQLAlchemyAccessRepository(AccessRepository):
    """访问令牌仓储的SQLAlchemy实现"""

    def __init__(self, session: AsyncSession, tables: OAuthTables):
        self.session = session
        self.table = tables.access

    async def add(self, data: AccessData) -> None:
        authorize_code = data.authorize_data.code if data.authorize_data else ""
        # 既有部署的这三列为 NOT NULL，缺失时写空字符串
        with backend_errors("SaveAccess insert"):
            await self.session.execute(
                insert(self.table).values(
                    client_id=data.client.id,
                    authorize_code=authorize_code or "",
                    prev_access_token=data.prev_access_token or "",
                    access_token=data.access_token,
                    refresh_token=data.refresh_token or "",
                    expires_in=data.expires_in,
                    scope=data.scope or "",
                    redirect_uri=data.redirect_uri or "",
                    created_at=as_utc(data.created_at),
                    user_data=serialize_user_data(data.user_data),
                )
            )

    async def get(self, access_token: str) -> Optional[AccessRecord]:
        t = self.table
        with backend_errors("LoadAccess"):
            result = await self.session.execute(
                select(t).where(t.c.access_token == access_token).limit(1)
            )
            row = result.first()
        if row is None:
            return None
        m = row._mapping
        # 既有部署用空字符串表示“无”，这里与 NULL 一并归一
        return AccessRecord(
            client_id=m[t.c.client_id],
            authorize_code=m[t.c.authorize_code] or None,
            prev_access_token=m[t.c.prev_access_token] or None,
            access_token=m[t.c.access_token],
            refresh_token=m[t.c.refresh_token] or "",
            expires_in=m[t.c.expires_in],
            scope=m[t.c.scope],
            redirect_uri=m[t.c.redirect_uri],
            user_data=m[t.c.user_data],
            created_at=as_utc(m[t.c.created_at]),
        )

    async def delete(self, access_token: str) -> int:
        with backend_errors("RemoveAccess"):
            result = await self.session.execute(
                delete(self.table).where(self.table.c.access_token == access_token)
            )
        return result.rowcount

"""
授权码仓储实现 - 使用SQLAlchemy实现数据访问
"""
from typing import Optional

from sqlalchemy import delete, insert, select
from sqlalchemy.ext.asyncio import AsyncSession

from domain.oauth.entity import AuthorizeData, AuthorizeRecord, as_utc, serialize_user_data
from domain.oauth.repository import AuthorizationRepository
from infrastructure.models import OAuthTables
from infrastructure.repositories.base import backend_errors


class SQLAlchemyAuthorizationRepository(AuthorizationRepository):
    """授权码仓储的SQLAlchemy实现"""

    def __init__(self, session: AsyncSession, tables: OAuthTables):
        self.session = session
        self.table = tables.authorize

    async def add(self, data: AuthorizeData) -> None:
        with backend_errors("SaveAuthorize"):
            await self.session.execute(
                insert(self.table).values(
                    client_id=data.client.id,
                    code=data.code,
                    expires_in=data.expires_in,
                    scope=data.scope or "",
                    redirect_uri=data.redirect_uri or "",
                    state=data.state or "",
                    created_at=as_utc(data.created_at),
                    user_data=serialize_user_data(data.user_data),
                )
            )

    async def get(self, code: str) -> Optional[AuthorizeRecord]:
        t = self.table
        with backend_errors("LoadAuthorize"):
            result = await self.session.execute(
                select(t).where(t.c.code == code).limit(1)
            )
            row = result.first()
        if row is None:
            return None
        m = row._mapping
        return AuthorizeRecord(
            client_id=m[t.c.client_id],
            code=m[t.c.code],
            expires_in=m[t.c.expires_in],
            scope=m[t.c.scope],
            redirect_uri=m[t.c.redirect_uri],
            state=m[t.c.state],
            user_data=m[t.c.user_data],
            created_at=as_utc(m[t.c.created_at]),
        )

    async def delete(self, code: str) -> int:
        with backend_errors("RemoveAuthorize"):
            result = await self.session.execute(
                delete(self.table).where(self.table.c.code == code)
            )
        return result.rowcount

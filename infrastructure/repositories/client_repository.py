"""
客户端仓储实现 - 使用SQLAlchemy实现数据访问
"""
from typing import Optional

from sqlalchemy import delete, insert, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from core.logging_config import get_logger
from domain.oauth.entity import Client, serialize_user_data
from domain.oauth.repository import ClientRepository
from infrastructure.models import OAuthTables
from infrastructure.repositories.base import backend_errors


logger = get_logger(__name__)


class SQLAlchemyClientRepository(ClientRepository):
    """客户端仓储的SQLAlchemy实现"""

    def __init__(self, session: AsyncSession, tables: OAuthTables):
        self.session = session
        self.table = tables.client

    async def get(self, client_id: str) -> Optional[Client]:
        t = self.table
        with backend_errors("GetClient"):
            result = await self.session.execute(
                select(t.c.id, t.c.secret, t.c.redirect_uri, t.c.user_data)
                .where(t.c.id == client_id)
            )
            row = result.first()
        if row is None:
            return None
        m = row._mapping
        return Client(
            id=m[t.c.id],
            secret=m[t.c.secret],
            redirect_uri=m[t.c.redirect_uri],
            user_data=m[t.c.user_data],
        )

    async def create(self, client: Client) -> None:
        with backend_errors("CreateClient"):
            await self.session.execute(
                insert(self.table).values(
                    id=client.id,
                    secret=client.secret,
                    redirect_uri=client.redirect_uri,
                    user_data=serialize_user_data(client.user_data),
                )
            )
        logger.info("oauth_client_created", client_id=client.id)

    async def update(self, client: Client) -> int:
        t = self.table
        with backend_errors("UpdateClient"):
            result = await self.session.execute(
                update(t)
                .where(t.c.id == client.id)
                .values(
                    secret=client.secret,
                    redirect_uri=client.redirect_uri,
                    user_data=serialize_user_data(client.user_data),
                )
            )
        # 不存在的ID影响0行，视为成功
        if result.rowcount == 0:
            logger.info("oauth_client_update_noop", client_id=client.id)
        return result.rowcount

    async def delete(self, client_id: str) -> int:
        with backend_errors("RemoveClient"):
            result = await self.session.execute(
                delete(self.table).where(self.table.c.id == client_id)
            )
        return result.rowcount

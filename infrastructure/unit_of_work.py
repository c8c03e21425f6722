"""SQLAlchemy Unit of Work 实现"""
from __future__ import annotations

from typing import Optional, Callable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from domain.common.exceptions import StorageBackendException
from domain.common.unit_of_work import AbstractUnitOfWork
from infrastructure.models import OAuthTables
from infrastructure.repositories.access_repository import SQLAlchemyAccessRepository
from infrastructure.repositories.authorization_repository import (
    SQLAlchemyAuthorizationRepository,
)
from infrastructure.repositories.client_repository import SQLAlchemyClientRepository
from infrastructure.repositories.expiry_repository import SQLAlchemyExpiryRepository
from infrastructure.repositories.refresh_repository import SQLAlchemyRefreshRepository


class SQLAlchemyUnitOfWork(AbstractUnitOfWork):
    """基于SQLAlchemy的Unit of Work，每个实例对应一个独立会话"""

    def __init__(
        self,
        session_factory: Callable[[], AsyncSession],
        tables: OAuthTables,
        *,
        readonly: bool = False,
    ) -> None:
        super().__init__(readonly=readonly)
        self._session_factory = session_factory
        self._tables = tables
        self.session: Optional[AsyncSession] = None

    async def __aenter__(self) -> "SQLAlchemyUnitOfWork":
        self.session = self._session_factory()
        self.client_repository = SQLAlchemyClientRepository(self.session, self._tables)
        self.authorization_repository = SQLAlchemyAuthorizationRepository(self.session, self._tables)
        self.access_repository = SQLAlchemyAccessRepository(self.session, self._tables)
        self.refresh_repository = SQLAlchemyRefreshRepository(self.session, self._tables)
        self.expiry_repository = SQLAlchemyExpiryRepository(self.session, self._tables)
        # 仅在非只读模式下显式开启事务
        if not self._readonly:
            try:
                await self.session.begin()
            except SQLAlchemyError as e:
                await self._close_session()
                raise StorageBackendException("begin transaction", e.__class__.__name__) from e
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        try:
            await super().__aexit__(exc_type, exc, tb)
        finally:
            # 关闭会话会回滚仍未结束的事务（只读会话的隐式事务亦然）
            await self._close_session()
            self.client_repository = None  # type: ignore[assignment]
            self.authorization_repository = None  # type: ignore[assignment]
            self.access_repository = None  # type: ignore[assignment]
            self.refresh_repository = None  # type: ignore[assignment]
            self.expiry_repository = None  # type: ignore[assignment]

    async def _close_session(self) -> None:
        if self.session is not None:
            await self.session.close()
            self.session = None

    async def commit(self) -> None:
        if self._readonly:
            # 只读情况下不提交
            self._committed = True
            return
        if self.session and self.session.in_transaction():
            try:
                await self.session.commit()
            except SQLAlchemyError as e:
                raise StorageBackendException("commit", e.__class__.__name__) from e
        self._committed = True

    async def rollback(self) -> None:
        if self.session and self.session.in_transaction():
            await self.session.rollback()
        self._committed = False

"""
OAuth2 存储应用服务 - 协议引擎使用的令牌生命周期门面

编排客户端、授权码、访问令牌、刷新令牌索引与过期索引五个仓储：
- 授权码/访问令牌的主记录与过期索引在同一事务内写入和删除
- 访问令牌写入时，刷新索引、主记录、过期索引三者同事务提交
- 加载访问令牌时尽力解析来源授权码与轮换链，链上任一环节失败只记为缺失
"""
from __future__ import annotations

from datetime import datetime
from functools import partial
from typing import Any, Callable, List, Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

from core.config import Settings
from core.logging_config import get_logger, mask_token
from domain.common.exceptions import (
    InvalidArgumentException,
    OAuthExpiredException,
    OAuthNotFoundException,
    StorageBackendException,
)
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.oauth.entity import AccessData, AuthorizeData, Client, utcnow


logger = get_logger(__name__)

# 可选关联（来源授权码、上一个访问令牌）解析失败时吞掉的异常类型
_OPTIONAL_LINK_ERRORS = (
    OAuthNotFoundException,
    OAuthExpiredException,
    StorageBackendException,
)


class OAuthStorage:
    """
    OAuth2 令牌生命周期门面

    Args:
        uow_factory: 创建 Unit of Work 的工厂，支持 readonly 关键字参数
        clock: 当前时间来源，返回带时区的 datetime；默认 UTC 当前时间
        max_chain_depth: 加载访问令牌时最多解析的历史令牌层数
        engine: 由本实例持有的引擎，close() 时释放；外部注入会话工厂时为 None
    """

    def __init__(
        self,
        uow_factory: Callable[..., AbstractUnitOfWork],
        *,
        clock: Optional[Callable[[], datetime]] = None,
        max_chain_depth: int = 16,
        engine: Optional[AsyncEngine] = None,
    ) -> None:
        if max_chain_depth < 0:
            raise ValueError("max_chain_depth 不能为负数")
        self._uow_factory = uow_factory
        self._clock = clock or utcnow
        self._max_chain_depth = max_chain_depth
        self._engine = engine

    @classmethod
    def from_session_factory(
        cls,
        session_factory: Callable[[], AsyncSession],
        *,
        table_prefix: str = "osin",
        db_schema: Optional[str] = None,
        **kwargs: Any,
    ) -> "OAuthStorage":
        """基于外部会话工厂构建；连接池与引擎生命周期归调用方"""
        from infrastructure.models import OAuthTables
        from infrastructure.unit_of_work import SQLAlchemyUnitOfWork

        tables = OAuthTables(table_prefix, schema=db_schema)
        return cls(partial(SQLAlchemyUnitOfWork, session_factory, tables), **kwargs)

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs: Any) -> "OAuthStorage":
        """根据配置创建引擎与会话工厂；引擎由返回的实例持有"""
        from infrastructure.database import create_engine, create_session_factory
        from infrastructure.models import OAuthTables
        from infrastructure.unit_of_work import SQLAlchemyUnitOfWork

        engine = create_engine(settings.database)
        tables = OAuthTables(settings.oauth.table_prefix, schema=settings.oauth.db_schema)
        uow_factory = partial(SQLAlchemyUnitOfWork, create_session_factory(engine), tables)
        kwargs.setdefault("max_chain_depth", settings.oauth.max_chain_depth)
        return cls(uow_factory, engine=engine, **kwargs)

    def clone(self) -> "OAuthStorage":
        """每次调用都使用独立会话，实例本身无请求级状态，可直接共享"""
        return self

    async def close(self) -> None:
        """释放自身持有的引擎"""
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None

    def _now(self) -> datetime:
        return self._clock()

    # ------------------------------------------------------------------
    # 客户端
    # ------------------------------------------------------------------

    @staticmethod
    def create_client_with_information(
        id: str,
        secret: str,
        redirect_uri: str,
        user_data: Any = None,
    ) -> Client:
        """便捷构造客户端对象（不入库）"""
        return Client(id=id, secret=secret, redirect_uri=redirect_uri, user_data=user_data)

    async def get_client(self, client_id: str) -> Client:
        async with self._uow_factory(readonly=True) as uow:
            return await self._get_client(uow, client_id)

    async def create_client(self, client: Client) -> None:
        async with self._uow_factory() as uow:
            await uow.client_repository.create(client)

    async def update_client(self, client: Client) -> None:
        """更新客户端；ID 不存在时影响 0 行，同样视为成功"""
        async with self._uow_factory() as uow:
            await uow.client_repository.update(client)

    async def remove_client(self, client_id: str) -> None:
        async with self._uow_factory() as uow:
            await uow.client_repository.delete(client_id)

    # ------------------------------------------------------------------
    # 授权码
    # ------------------------------------------------------------------

    async def save_authorize(self, data: AuthorizeData) -> None:
        """写入授权码及其过期索引"""
        if data.client is None:
            raise InvalidArgumentException("data.client must not be None", field="client")
        async with self._uow_factory() as uow:
            await uow.authorization_repository.add(data)
            await uow.expiry_repository.add(data.code, data.expire_at)
        logger.info(
            "oauth_authorize_saved",
            client_id=data.client.id,
            code=data.code,
            expire_at=data.expire_at.isoformat(),
        )

    async def load_authorize(self, code: str) -> AuthorizeData:
        """
        按授权码加载，并解析客户端

        过期时抛出 OAuthExpiredException，记录本身保留，需调用方显式 remove_authorize。
        """
        async with self._uow_factory(readonly=True) as uow:
            return await self._load_authorize(uow, code)

    async def remove_authorize(self, code: str) -> None:
        """删除授权码及其过期索引；记录不存在时为空操作"""
        async with self._uow_factory() as uow:
            await uow.authorization_repository.delete(code)
            await uow.expiry_repository.delete(code)

    # ------------------------------------------------------------------
    # 访问令牌
    # ------------------------------------------------------------------

    async def save_access(self, data: AccessData) -> None:
        """
        写入访问令牌

        同一事务内依次写入：刷新令牌索引（若有）、访问令牌记录、过期索引。
        任一步失败整体回滚并抛出 StorageBackendException。
        """
        if data.client is None:
            raise InvalidArgumentException("data.client must not be None", field="client")
        async with self._uow_factory() as uow:
            if data.refresh_token:
                await uow.refresh_repository.add(data.refresh_token, data.access_token)
            await uow.access_repository.add(data)
            await uow.expiry_repository.add(data.access_token, data.expire_at)
        logger.info(
            "oauth_access_saved",
            client_id=data.client.id,
            access_token=data.access_token,
            has_refresh=bool(data.refresh_token),
            prev_access_token=data.prev_access_token,
        )

    async def load_access(self, access_token: str) -> AccessData:
        """
        按访问令牌加载，客户端必须可解析

        来源授权码与轮换链为可选信息：解析失败时对应字段为 None，不影响主查询。
        轮换链按迭代方式解析，最多 max_chain_depth 层，并对循环引用做保护。
        """
        async with self._uow_factory(readonly=True) as uow:
            result, prev_token = await self._load_access(uow, access_token)

            visited = {result.access_token}
            current = result
            depth = 0
            while prev_token and depth < self._max_chain_depth:
                if prev_token in visited:
                    logger.warning(
                        "oauth_access_chain_cycle",
                        access_token=access_token,
                        prev_access_token=prev_token,
                    )
                    break
                visited.add(prev_token)
                try:
                    previous, prev_token = await self._load_access(uow, prev_token)
                except _OPTIONAL_LINK_ERRORS as e:
                    self._log_missing_link("access", prev_token, e)
                    break
                current.access_data = previous
                current = previous
                depth += 1
        return result

    async def remove_access(self, access_token: str) -> None:
        """删除访问令牌及其过期索引；刷新令牌索引需通过 remove_refresh 单独撤销"""
        async with self._uow_factory() as uow:
            await uow.access_repository.delete(access_token)
            await uow.expiry_repository.delete(access_token)

    # ------------------------------------------------------------------
    # 刷新令牌
    # ------------------------------------------------------------------

    async def load_refresh(self, refresh_token: str) -> AccessData:
        """通过刷新令牌找到访问令牌后委托 load_access；过期判断不在此处重复"""
        async with self._uow_factory(readonly=True) as uow:
            access_token = await uow.refresh_repository.get_access_token(refresh_token)
        if access_token is None:
            raise OAuthNotFoundException("refresh", mask_token(refresh_token))
        return await self.load_access(access_token)

    async def remove_refresh(self, refresh_token: str) -> None:
        async with self._uow_factory() as uow:
            await uow.refresh_repository.delete(refresh_token)

    # ------------------------------------------------------------------
    # 过期索引
    # ------------------------------------------------------------------

    async def add_expire_at_data(self, code_or_token: str, expire_at: datetime) -> None:
        async with self._uow_factory() as uow:
            await uow.expiry_repository.add(code_or_token, expire_at)

    async def remove_expire_at_data(self, code_or_token: str) -> None:
        async with self._uow_factory() as uow:
            await uow.expiry_repository.delete(code_or_token)

    async def list_expired(
        self,
        before: Optional[datetime] = None,
        limit: int = 100,
    ) -> List[Tuple[str, datetime]]:
        """列出已过期的授权码/访问令牌，供调用方清理；本方法不删除任何数据"""
        async with self._uow_factory(readonly=True) as uow:
            return await uow.expiry_repository.find_expired(before or self._now(), limit)

    # ------------------------------------------------------------------
    # 内部工具
    # ------------------------------------------------------------------

    async def _get_client(self, uow: AbstractUnitOfWork, client_id: str) -> Client:
        client = await uow.client_repository.get(client_id)
        if client is None:
            raise OAuthNotFoundException("client", client_id)
        return client

    async def _load_authorize(self, uow: AbstractUnitOfWork, code: str) -> AuthorizeData:
        record = await uow.authorization_repository.get(code)
        if record is None:
            raise OAuthNotFoundException("authorization", mask_token(code))
        client = await self._get_client(uow, record.client_id)
        data = record.to_data(client)
        if data.is_expired_at(self._now()):
            raise OAuthExpiredException(data.expire_at)
        return data

    async def _load_access(
        self,
        uow: AbstractUnitOfWork,
        access_token: str,
    ) -> Tuple[AccessData, Optional[str]]:
        """加载单个访问令牌（含客户端与来源授权码），返回数据及其上一个令牌值"""
        record = await uow.access_repository.get(access_token)
        if record is None:
            raise OAuthNotFoundException("access", mask_token(access_token))
        client = await self._get_client(uow, record.client_id)
        data = record.to_data(client)
        if record.authorize_code:
            try:
                data.authorize_data = await self._load_authorize(uow, record.authorize_code)
            except _OPTIONAL_LINK_ERRORS as e:
                self._log_missing_link("authorization", record.authorize_code, e)
        return data, record.prev_access_token

    @staticmethod
    def _log_missing_link(kind: str, key: str, error: Exception) -> None:
        # 后端故障与“确实不存在”区分级别记录，便于排查
        log = logger.warning if isinstance(error, StorageBackendException) else logger.debug
        log(
            "oauth_chain_link_unavailable",
            kind=kind,
            code_or_token=key,
            error_type=getattr(error, "error_type", error.__class__.__name__),
        )

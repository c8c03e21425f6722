"""
OAuth2 仓储接口 - 定义五张逻辑表的数据访问抽象

仓储只负责单表读写，不解析跨表引用，也不做过期判断；
跨表编排与事务边界由应用层的 OAuthStorage 与 Unit of Work 负责。
"""
from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional, Tuple

from .entity import AccessRecord, AuthorizeData, AccessData, AuthorizeRecord, Client


class ClientRepository(ABC):
    """客户端注册表"""

    @abstractmethod
    async def get(self, client_id: str) -> Optional[Client]:
        """根据ID获取客户端，不存在返回 None"""
        pass

    @abstractmethod
    async def create(self, client: Client) -> None:
        """创建客户端，ID 重复时由唯一约束拒绝"""
        pass

    @abstractmethod
    async def update(self, client: Client) -> int:
        """更新客户端，返回受影响行数（可能为 0）"""
        pass

    @abstractmethod
    async def delete(self, client_id: str) -> int:
        """删除客户端，返回受影响行数"""
        pass


class AuthorizationRepository(ABC):
    """授权码表"""

    @abstractmethod
    async def add(self, data: AuthorizeData) -> None:
        pass

    @abstractmethod
    async def get(self, code: str) -> Optional[AuthorizeRecord]:
        pass

    @abstractmethod
    async def delete(self, code: str) -> int:
        pass


class AccessRepository(ABC):
    """访问令牌表"""

    @abstractmethod
    async def add(self, data: AccessData) -> None:
        """
        写入访问令牌

        Args:
            data: 访问令牌；authorize_data.code 与 access_data.access_token
                分别写入 code 与 prev_access_token 列（缺失时为 NULL）
        """
        pass

    @abstractmethod
    async def get(self, access_token: str) -> Optional[AccessRecord]:
        pass

    @abstractmethod
    async def delete(self, access_token: str) -> int:
        pass


class RefreshRepository(ABC):
    """刷新令牌索引：refresh_token -> access_token"""

    @abstractmethod
    async def add(self, refresh_token: str, access_token: str) -> None:
        pass

    @abstractmethod
    async def get_access_token(self, refresh_token: str) -> Optional[str]:
        pass

    @abstractmethod
    async def delete(self, refresh_token: str) -> int:
        pass


class ExpiryRepository(ABC):
    """过期时间二级索引，与主记录表之间没有外键"""

    @abstractmethod
    async def add(self, code_or_token: str, expires_at: datetime) -> None:
        pass

    @abstractmethod
    async def delete(self, code_or_token: str) -> int:
        """删除该值的全部过期条目，返回删除条数"""
        pass

    @abstractmethod
    async def find_expired(
        self,
        before: datetime,
        limit: int = 100
    ) -> List[Tuple[str, datetime]]:
        """
        查询在 before 之前过期的条目（按过期时间升序）

        Returns:
            (code_or_token, expires_at) 列表
        """
        pass

"""
OAuth2 领域实体 - 客户端、授权码、访问令牌

*Data 类型是协议引擎看到的完整对象（客户端已解析）；
*Record 类型是单表行的直接映射，引用字段仍是字符串键，由应用层负责解析。
"""
from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """统一为 UTC 时间；无时区信息的值按 UTC 解释（SQLite 等驱动读回时会丢失时区）"""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def serialize_user_data(value: Any) -> str:
    """将调用方的不透明数据转换为字符串后入库；读回时原样返回该字符串"""
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, bytes):
        return value.decode("utf-8")
    return json.dumps(value, ensure_ascii=False, default=str, sort_keys=True)


@dataclass
class Client:
    """已注册的 OAuth 客户端"""

    id: str
    secret: str
    redirect_uri: str
    user_data: Any = None


@dataclass
class AuthorizeData:
    """授权码及其上下文"""

    client: Optional[Client]
    code: str
    expires_in: int
    scope: str = ""
    redirect_uri: str = ""
    state: str = ""
    user_data: Any = None
    created_at: datetime = field(default_factory=utcnow)

    @property
    def expire_at(self) -> datetime:
        return as_utc(self.created_at) + timedelta(seconds=self.expires_in)

    def is_expired_at(self, now: datetime) -> bool:
        return self.expire_at < as_utc(now)


@dataclass
class AccessData:
    """访问令牌，可能携带来源授权码与被轮换掉的上一个访问令牌"""

    client: Optional[Client]
    access_token: str
    expires_in: int
    refresh_token: str = ""
    scope: str = ""
    redirect_uri: str = ""
    user_data: Any = None
    created_at: datetime = field(default_factory=utcnow)
    authorize_data: Optional[AuthorizeData] = None
    # 轮换链：本令牌替换掉的上一个访问令牌
    access_data: Optional["AccessData"] = None

    @property
    def expire_at(self) -> datetime:
        return as_utc(self.created_at) + timedelta(seconds=self.expires_in)

    def is_expired_at(self, now: datetime) -> bool:
        return self.expire_at < as_utc(now)

    @property
    def prev_access_token(self) -> Optional[str]:
        return self.access_data.access_token if self.access_data else None


@dataclass
class AuthorizeRecord:
    """授权码表的一行"""

    client_id: str
    code: str
    expires_in: int
    scope: str
    redirect_uri: str
    state: str
    user_data: str
    created_at: datetime

    def to_data(self, client: Client) -> AuthorizeData:
        return AuthorizeData(
            client=client,
            code=self.code,
            expires_in=self.expires_in,
            scope=self.scope,
            redirect_uri=self.redirect_uri,
            state=self.state,
            user_data=self.user_data,
            created_at=self.created_at,
        )


@dataclass
class AccessRecord:
    """访问令牌表的一行"""

    client_id: str
    authorize_code: Optional[str]
    prev_access_token: Optional[str]
    access_token: str
    refresh_token: str
    expires_in: int
    scope: str
    redirect_uri: str
    user_data: str
    created_at: datetime

    def to_data(self, client: Client) -> AccessData:
        return AccessData(
            client=client,
            access_token=self.access_token,
            expires_in=self.expires_in,
            refresh_token=self.refresh_token,
            scope=self.scope,
            redirect_uri=self.redirect_uri,
            user_data=self.user_data,
            created_at=self.created_at,
        )

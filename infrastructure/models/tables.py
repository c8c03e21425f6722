"""
OAuth2 存储表定义 - 五张逻辑表

表名格式为 {prefix}_client / _authorize / _access / _refresh / _expires，
列名沿用既有部署的布局（client、code、extra 等），Python 侧通过 key 使用更清晰的名字。
"""
from __future__ import annotations

import re
from typing import Optional

from sqlalchemy import Column, DateTime, Index, Integer, MetaData, String, Table, Text

from .base import new_metadata


_PREFIX_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class OAuthTables:
    """
    一组按前缀命名的 OAuth 表

    Args:
        prefix: 表名前缀，只允许字母、数字和下划线
        schema: 可选的数据库 schema 名
        metadata: 可选的外部 MetaData；默认新建一个
    """

    def __init__(
        self,
        prefix: str = "osin",
        *,
        schema: Optional[str] = None,
        metadata: Optional[MetaData] = None,
    ) -> None:
        if not _PREFIX_PATTERN.match(prefix):
            raise ValueError(f"非法的表名前缀: {prefix!r}")
        self.prefix = prefix
        self.schema = schema
        self.metadata = metadata if metadata is not None else new_metadata(schema)

        self.client = Table(
            f"{prefix}_client",
            self.metadata,
            Column("id", String(255), primary_key=True, comment="客户端ID"),
            Column("secret", String(255), nullable=False, comment="客户端密钥"),
            Column("extra", Text, nullable=False, key="user_data", comment="不透明用户数据（字符串）"),
            Column("redirect_uri", String(255), nullable=False, comment="回调地址"),
        )

        self.authorize = Table(
            f"{prefix}_authorize",
            self.metadata,
            Column("client", String(255), nullable=False, key="client_id", comment="客户端ID"),
            Column("code", String(255), primary_key=True, comment="授权码"),
            Column("expires_in", Integer, nullable=False, comment="有效期（秒）"),
            Column("scope", String(255), nullable=False, comment="授权范围"),
            Column("redirect_uri", String(255), nullable=False, comment="回调地址"),
            Column("state", String(255), nullable=False, comment="state 参数"),
            Column("extra", Text, nullable=False, key="user_data", comment="不透明用户数据（字符串）"),
            Column("created_at", DateTime(timezone=True), nullable=False, comment="创建时间"),
        )

        self.access = Table(
            f"{prefix}_access",
            self.metadata,
            Column("client", String(255), nullable=False, key="client_id", comment="客户端ID"),
            Column("code", String(255), nullable=False, key="authorize_code", comment="来源授权码，无则为空字符串"),
            Column("prev_access_token", String(512), nullable=False, comment="被轮换掉的上一个访问令牌，无则为空字符串"),
            Column("access_token", String(512), primary_key=True, comment="访问令牌"),
            Column("refresh_token", String(512), nullable=False, comment="刷新令牌，无则为空字符串"),
            Column("expires_in", Integer, nullable=False, comment="有效期（秒）"),
            Column("scope", String(255), nullable=False, comment="授权范围"),
            Column("redirect_uri", String(255), nullable=False, comment="回调地址"),
            Column("extra", Text, nullable=False, key="user_data", comment="不透明用户数据（字符串）"),
            Column("created_at", DateTime(timezone=True), nullable=False, comment="创建时间"),
        )

        self.refresh = Table(
            f"{prefix}_refresh",
            self.metadata,
            Column("access_token", String(512), nullable=False, comment="对应的访问令牌"),
            Column("refresh_token", String(512), primary_key=True, comment="刷新令牌"),
        )

        self.expires = Table(
            f"{prefix}_expires",
            self.metadata,
            Column("id", Integer, primary_key=True, autoincrement=True),
            Column("code_or_token", String(512), nullable=False, comment="授权码或访问令牌"),
            Column("expires_at", DateTime(timezone=True), nullable=False, comment="过期时间"),
            Index(f"ix_{prefix}_expires_expires_at", "expires_at"),
            Index(f"ix_{prefix}_expires_code_or_token", "code_or_token"),
        )

    @property
    def all(self) -> list[Table]:
        return [self.client, self.authorize, self.access, self.refresh, self.expires]

    def __repr__(self) -> str:
        return f"<OAuthTables(prefix='{self.prefix}', schema={self.schema!r})>"

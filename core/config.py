"""
配置文件 - 项目配置管理
"""
from typing import Optional

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseModel):
    url: str = "sqlite+aiosqlite:///./oauth.db"
    echo: bool = False


class OAuthStorageSettings(BaseModel):
    # 表名前缀，用于同一数据库内区分多个逻辑租户
    table_prefix: str = "osin"
    # 可选的数据库 schema（PostgreSQL 等）
    db_schema: Optional[str] = None
    # 加载访问令牌时最多解析的历史令牌层数；0 表示不解析上一个令牌
    max_chain_depth: int = Field(default=16, ge=0)

    @field_validator("table_prefix")
    @classmethod
    def _validate_prefix(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("table_prefix 不能为空")
        return v


class Settings(BaseSettings):
    """项目配置"""

    # 基础配置
    DEBUG: bool = Field(default=False)

    # 分组配置：Database/OAuth 采用嵌套模型，环境变量形如 DATABASE__URL、OAUTH__TABLE_PREFIX
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    oauth: OAuthStorageSettings = Field(default_factory=OAuthStorageSettings)

    # pydantic-settings v2 configuration
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="allow",
        env_nested_delimiter="__",
    )


settings = Settings()

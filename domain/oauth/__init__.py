"""OAuth2 存储领域：实体与仓储接口"""
from .entity import (
    AccessData,
    AccessRecord,
    AuthorizeData,
    AuthorizeRecord,
    Client,
    serialize_user_data,
)
from .repository import (
    AccessRepository,
    AuthorizationRepository,
    ClientRepository,
    ExpiryRepository,
    RefreshRepository,
)

__all__ = [
    "AccessData",
    "AccessRecord",
    "AuthorizeData",
    "AuthorizeRecord",
    "Client",
    "serialize_user_data",
    "AccessRepository",
    "AuthorizationRepository",
    "ClientRepository",
    "ExpiryRepository",
    "RefreshRepository",
]

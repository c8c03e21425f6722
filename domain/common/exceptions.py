"""领域层业务异常定义，供领域、基础设施与应用层使用。

存储层对外只暴露四类错误：未找到、已过期、参数非法、后端故障。
调用方（OAuth2 协议引擎）可据此区分“令牌无效”与“系统不可用”。
"""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from shared.codes import BusinessCode


class BusinessException(Exception):
    """业务异常基类"""

    def __init__(
        self,
        code: int,
        message: str,
        error_type: str = "BusinessError",
        details: Optional[dict] = None,
        field: Optional[str] = None,
    ) -> None:
        self.code = code
        self.message = message
        self.error_type = error_type
        self.details = details
        self.field = field
        super().__init__(self.message)


class OAuthNotFoundException(BusinessException):
    """按唯一键查找时没有匹配记录"""

    def __init__(self, kind: str, key: Optional[str] = None):
        details = {"kind": kind}
        if key is not None:
            details["key"] = key
        super().__init__(
            code=BusinessCode.NOT_FOUND,
            message=f"{kind} not found",
            error_type="NotFound",
            details=details,
        )
        self.kind = kind
        self.key = key


class OAuthExpiredException(BusinessException):
    """记录仍然存在，但已超过 expire_at"""

    def __init__(self, expire_at: datetime, *, kind: str = "authorization"):
        super().__init__(
            code=BusinessCode.TOKEN_EXPIRED,
            message=f"Token expired at {expire_at.isoformat()}.",
            error_type="Expired",
            details={"kind": kind, "expire_at": expire_at.isoformat()},
        )
        self.expire_at = expire_at
        self.kind = kind


class InvalidArgumentException(BusinessException):
    def __init__(self, message: str, *, field: Optional[str] = None):
        super().__init__(
            code=BusinessCode.PARAM_VALIDATION_ERROR,
            message=message,
            error_type="InvalidArgument",
            field=field,
        )


class StorageBackendException(BusinessException):
    """底层存储失败（连接、约束冲突、事务失败），仅附带操作名，不做结构化解析"""

    def __init__(self, operation: str, reason: Optional[str] = None):
        message = f"{operation} err"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(
            code=BusinessCode.DATABASE_ERROR,
            message=message,
            error_type="BackendError",
            details={"operation": operation},
        )
        self.operation = operation

"""
仓储公共工具 - 将 SQLAlchemy 异常统一转换为 StorageBackendException
"""
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from core.logging_config import get_logger
from domain.common.exceptions import StorageBackendException


logger = get_logger(__name__)


def _error_name(e: SQLAlchemyError) -> str:
    # 驱动消息可能包含键值（如 MySQL 的 Duplicate entry '<token>'），只记录异常类型
    orig = getattr(e, "orig", None)
    return (orig or e).__class__.__name__


@contextmanager
def backend_errors(operation: str) -> Iterator[None]:
    """包裹一次数据库操作；约束冲突与其他驱动错误都以操作名包装后抛出"""
    try:
        yield
    except IntegrityError as e:
        logger.warning("storage_integrity_error", operation=operation, error=_error_name(e))
        raise StorageBackendException(operation, "constraint violation") from e
    except SQLAlchemyError as e:
        logger.error("storage_backend_error", operation=operation, error=_error_name(e))
        raise StorageBackendException(operation, e.__class__.__name__) from e

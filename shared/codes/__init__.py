"""
Shared business codes used across layers (Domain/Infrastructure/Application).

This package exposes BusinessCode at `shared.codes` so the storage errors and
any caller mapping them to protocol responses agree on one set of values.
"""
from enum import IntEnum


class BusinessCode(IntEnum):
    """Unified business status codes (single source of truth)."""

    # Parameter errors (1xxxx)
    PARAM_VALIDATION_ERROR = 10003

    # Business errors (2xxxx)
    TOKEN_EXPIRED = 20005
    NOT_FOUND = 20006  # Generic resource not found

    # System errors (4xxxx)
    DATABASE_ERROR = 40001


__all__ = ["BusinessCode"]

"""
Shared error codes used across layers (Domain/Application/gRPC).

Single source of truth for the `error-code` values sent to clients and for
the error kinds the transport layer maps to protocol status codes.
"""
from enum import Enum


class ErrorCode(str, Enum):
    """Wire values of the `error-code` metadata entry."""

    VALIDATION_ERROR = "VALIDATION_ERROR"
    ENTITY_NOT_FOUND = "ENTITY_NOT_FOUND"
    BUSINESS_RULE_VIOLATION = "BUSINESS_RULE_VIOLATION"
    DATA_ACCESS_ERROR = "DATA_ACCESS_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class ErrorKind(str, Enum):
    """Classification of a failure, independent of any exception class."""

    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    BUSINESS_RULE = "business_rule"
    DATA_ACCESS = "data_access"
    DOMAIN = "domain"
    INTERNAL = "internal"


class Operation(str, Enum):
    """CRUD operation classes used for authorization and metrics."""

    CREATE = "create"
    READ = "read"
    UPDATE = "update"
    DELETE = "delete"


__all__ = ["ErrorCode", "ErrorKind", "Operation"]

"""Domain error taxonomy, shared by the domain, application and infrastructure layers.

Each error carries an `ErrorKind`; the transport layer maps kinds to protocol
status codes and never needs to know the concrete class.
"""
from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Sequence

from shared.codes import ErrorCode, ErrorKind


class DomainError(Exception):
    """Base class for all classified errors."""

    kind: ErrorKind = ErrorKind.DOMAIN

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        details: Optional[Any] = None,
    ) -> None:
        self.code = code
        self.message = message
        self.details = details
        super().__init__(message)

    @property
    def error_code(self) -> str:
        return self.code.value


class ValidationError(DomainError):
    """Client input is malformed. Errors are keyed by field name."""

    kind = ErrorKind.VALIDATION

    def __init__(
        self,
        errors: Mapping[str, Sequence[str]],
        message: str = "One or more validation errors occurred.",
    ) -> None:
        self.errors: Dict[str, List[str]] = {field: list(msgs) for field, msgs in errors.items()}
        super().__init__(ErrorCode.VALIDATION_ERROR, message, details=self.errors)

    @classmethod
    def for_field(cls, field: str, error: str) -> "ValidationError":
        return cls({field: [error]}, message=f"Validation failed for field '{field}': {error}")


class EntityNotFoundError(DomainError):
    kind = ErrorKind.NOT_FOUND

    def __init__(self, entity_type: str, entity_id: str) -> None:
        self.entity_type = entity_type
        self.entity_id = str(entity_id)
        super().__init__(
            ErrorCode.ENTITY_NOT_FOUND,
            f"{entity_type} with ID '{self.entity_id}' was not found.",
        )


class BusinessRuleError(DomainError):
    """A domain invariant was violated."""

    kind = ErrorKind.BUSINESS_RULE

    def __init__(self, rule_name: str, message: str) -> None:
        self.rule_name = rule_name
        super().__init__(ErrorCode.BUSINESS_RULE_VIOLATION, message)


class DataAccessError(DomainError):
    """A storage operation failed. `operation` is one of Create/Read/Update/Delete."""

    kind = ErrorKind.DATA_ACCESS

    def __init__(self, operation: str, message: str) -> None:
        self.operation = operation
        super().__init__(ErrorCode.DATA_ACCESS_ERROR, message)


class StorageError(Exception):
    """Raised by the infrastructure layer when the store rejects an operation."""


class StorageConflictError(StorageError):
    """The row changed since it was read (optimistic concurrency violation)."""


def error_kind_of(exc: BaseException) -> ErrorKind:
    return exc.kind if isinstance(exc, DomainError) else ErrorKind.INTERNAL

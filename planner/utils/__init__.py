"""Utilidades de Outcome Planner."""

from planner.utils.errors import (
    PlannerError,
    ValidationError,
    NotFoundError,
    ConflictError,
    ConversionConflictError,
    BusinessRuleViolation,
    ConversionLockedError,
    ConversionIncompleteError,
    TransientStoreError,
    OracleUnavailableError,
    ErrorCategory,
    ErrorContext,
    log_error,
    retry_store,
    retry_oracle,
)

from planner.utils.locks import KeyedLock, get_chunk_locks

from planner.utils.text import (
    truncate_text,
    clean_text,
    clean_optional,
)

__all__ = [
    # Errors
    "PlannerError",
    "ValidationError",
    "NotFoundError",
    "ConflictError",
    "ConversionConflictError",
    "BusinessRuleViolation",
    "ConversionLockedError",
    "ConversionIncompleteError",
    "TransientStoreError",
    "OracleUnavailableError",
    "ErrorCategory",
    "ErrorContext",
    "log_error",
    "retry_store",
    "retry_oracle",
    # Locks
    "KeyedLock",
    "get_chunk_locks",
    # Text utilities
    "truncate_text",
    "clean_text",
    "clean_optional",
]

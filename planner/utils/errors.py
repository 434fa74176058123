"""Manejo centralizado de errores y excepciones."""

import logging
import traceback
from dataclasses import dataclass
from enum import Enum
from typing import Any

from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
    before_sleep_log,
)

from planner.config import get_settings

logger = logging.getLogger(__name__)


class ErrorCategory(str, Enum):
    """Categorías de errores."""

    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    BUSINESS_RULE = "business_rule"
    CONVERSION = "conversion"
    DATABASE = "database"
    ORACLE = "oracle"
    UNKNOWN = "unknown"


@dataclass
class ErrorContext:
    """Contexto de un error para logging."""

    category: ErrorCategory
    operation: str
    error_type: str
    message: str
    details: dict[str, Any] | None = None
    traceback_str: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convierte a diccionario para logging."""
        return {
            "category": self.category.value,
            "operation": self.operation,
            "error_type": self.error_type,
            "message": self.message,
            "details": self.details,
        }


class PlannerError(Exception):
    """Excepción base para Outcome Planner."""

    def __init__(
        self,
        message: str,
        category: ErrorCategory = ErrorCategory.UNKNOWN,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category
        self.details = details or {}

    def __str__(self) -> str:
        return f"[{self.category.value}] {self.message}"


class ValidationError(PlannerError):
    """Error de validación de datos (título, propósito o área vacíos, etc.)."""

    def __init__(self, message: str, field: str | None = None, details: dict[str, Any] | None = None):
        details = details or {}
        if field:
            details["field"] = field
        super().__init__(message, ErrorCategory.VALIDATION, details)
        self.field = field


class NotFoundError(PlannerError):
    """La entidad solicitada no existe."""

    def __init__(self, resource: str, entity_id: Any):
        super().__init__(
            f"{resource} {entity_id} no encontrado",
            ErrorCategory.NOT_FOUND,
            {"resource": resource, "id": str(entity_id)},
        )
        self.resource = resource
        self.entity_id = entity_id


class ConflictError(PlannerError):
    """El estado actual impide la operación (item ya en un chunk, re-triage, etc.)."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, ErrorCategory.CONFLICT, details)


class ConversionConflictError(ConflictError):
    """Otra conversión ya reclamó el chunk."""

    def __init__(self, chunk_id: Any, message: str, outcome_id: Any | None = None):
        details = {"chunk_id": str(chunk_id)}
        if outcome_id is not None:
            details["outcome_id"] = str(outcome_id)
        super().__init__(message, details)
        self.chunk_id = chunk_id
        self.outcome_id = outcome_id


class BusinessRuleViolation(PlannerError):
    """La operación viola una regla de negocio."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, ErrorCategory.BUSINESS_RULE, details)


class ConversionLockedError(BusinessRuleViolation):
    """El chunk está convertido (o en conversión) y ya no admite cambios."""

    def __init__(self, chunk_id: Any, operation: str):
        super().__init__(
            f"Chunk {chunk_id} convertido o en conversión: no se permite {operation}",
            {"chunk_id": str(chunk_id), "operation": operation},
        )
        self.chunk_id = chunk_id


class ConversionIncompleteError(PlannerError):
    """
    La conversión falló después de crear el outcome.

    No es un error genérico: el outcome ya existe y la conversión debe
    reintentarse con el mismo token, nunca repetirse desde cero.
    """

    def __init__(
        self,
        chunk_id: Any,
        outcome_id: Any,
        step: str,
        token: str,
        cause: str | None = None,
    ):
        super().__init__(
            f"Conversión incompleta del chunk {chunk_id} (paso {step}), reintentar",
            ErrorCategory.CONVERSION,
            {
                "chunk_id": str(chunk_id),
                "outcome_id": str(outcome_id),
                "step": step,
                "token": token,
                "cause": cause,
            },
        )
        self.chunk_id = chunk_id
        self.outcome_id = outcome_id
        self.step = step
        self.token = token


class TransientStoreError(PlannerError):
    """Fallo temporal del almacenamiento, reintentable."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, ErrorCategory.DATABASE, details)


class OracleUnavailableError(PlannerError):
    """El oráculo de sugerencias no respondió. Nunca es fatal."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, ErrorCategory.ORACLE, details)


def log_error(
    error: Exception,
    operation: str,
    category: ErrorCategory = ErrorCategory.UNKNOWN,
    extra: dict[str, Any] | None = None,
) -> ErrorContext:
    """
    Registra un error con contexto estructurado.

    Args:
        error: La excepción capturada
        operation: Nombre de la operación que falló
        category: Categoría del error
        extra: Información adicional

    Returns:
        ErrorContext con los detalles del error
    """
    if isinstance(error, PlannerError):
        category = error.category
        details = {**(error.details or {}), **(extra or {})}
    else:
        details = extra or {}

    context = ErrorContext(
        category=category,
        operation=operation,
        error_type=type(error).__name__,
        message=str(error),
        details=details,
        traceback_str=traceback.format_exc(),
    )

    logger.error(
        f"Error en {operation}: {error}",
        extra={"error_context": context.to_dict()},
    )

    return context


# Configuración de retry para diferentes dependencias
def retry_store():
    """Retry configurado para escrituras de una sola entidad en el store."""
    return retry(
        stop=stop_after_attempt(get_settings().store_retry_attempts),
        wait=wait_exponential(multiplier=0.1, min=0.1, max=2),
        retry=retry_if_exception_type(TransientStoreError),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )


def retry_oracle():
    """Retry configurado para llamadas al oráculo de sugerencias."""
    return retry(
        stop=stop_after_attempt(2),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_exception_type((ConnectionError, TimeoutError)),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )

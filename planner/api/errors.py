"""Traducción de la taxonomía de errores del dominio a respuestas HTTP."""

import logging

from fastapi import Request
from fastapi.responses import JSONResponse

from planner.utils.errors import (
    BusinessRuleViolation,
    ConflictError,
    ConversionIncompleteError,
    NotFoundError,
    OracleUnavailableError,
    PlannerError,
    TransientStoreError,
    ValidationError,
)

logger = logging.getLogger(__name__)

STATUS_BY_ERROR: list[tuple[type[PlannerError], int]] = [
    (ConversionIncompleteError, 202),
    (ValidationError, 422),
    (NotFoundError, 404),
    (ConflictError, 409),
    (BusinessRuleViolation, 400),
    (TransientStoreError, 503),
    (OracleUnavailableError, 503),
]


def status_for(error: PlannerError) -> int:
    for error_type, status in STATUS_BY_ERROR:
        if isinstance(error, error_type):
            return status
    return 500


async def planner_error_handler(request: Request, exc: PlannerError) -> JSONResponse:
    """Handler de FastAPI para PlannerError."""
    status = status_for(exc)
    if status >= 500:
        logger.error(f"{request.method} {request.url.path}: {exc}")
    else:
        logger.info(f"{request.method} {request.url.path} -> {status}: {exc.message}")

    content = {
        "error": exc.category.value,
        "message": exc.message,
        "details": exc.details,
    }
    if isinstance(exc, ConversionIncompleteError):
        # No es un fallo: el outcome existe y la conversión debe reintentarse
        content["status"] = "incomplete"
    return JSONResponse(status_code=status, content=content)

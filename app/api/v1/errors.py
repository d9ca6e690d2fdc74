"""Translate engine exceptions into HTTP responses."""

import logging
from fastapi import HTTPException
from app.core.exceptions import (
    ConcurrencyConflict,
    LifecycleError,
    NotFoundError,
    SchedulingError,
    ValidationRejection,
)

logger = logging.getLogger(__name__)

RETRY_AFTER_SECONDS = "1"


def to_http_exception(exc: SchedulingError) -> HTTPException:
    if isinstance(exc, ValidationRejection):
        return HTTPException(status_code=422, detail={"code": exc.code.value, "message": exc.message})
    if isinstance(exc, LifecycleError):
        return HTTPException(status_code=409, detail={"code": exc.code.value, "message": exc.message})
    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=404, detail=f"{exc.entity} not found")
    if isinstance(exc, ConcurrencyConflict):
        return HTTPException(
            status_code=409,
            detail={"code": "concurrency_conflict", "message": exc.message, "retryable": True},
            headers={"Retry-After": RETRY_AFTER_SECONDS},
        )
    logger.error(f"Unmapped scheduling error: {exc}")
    return HTTPException(status_code=500, detail="Internal scheduling error")

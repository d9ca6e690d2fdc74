"""Tests for commit-time race handling and HTTP error mapping."""

import uuid
from unittest.mock import AsyncMock

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from app.api.v1.errors import to_http_exception
from app.core.exceptions import (
    ConcurrencyConflict,
    LifecycleError,
    NotFoundError,
    RejectionCode,
    TransitionCode,
    ValidationRejection,
)
from app.services.booking import commit_booking, lock_business


class DriverError(Exception):
    def __init__(self, message, pgcode=None):
        super().__init__(message)
        self.pgcode = pgcode


def failing_session(exc):
    session = AsyncMock()
    session.commit.side_effect = exc
    return session


@pytest.mark.asyncio
async def test_unique_violation_becomes_conflict():
    session = failing_session(IntegrityError("INSERT", {}, DriverError("duplicate key")))
    with pytest.raises(ConcurrencyConflict):
        await commit_booking(session)
    session.rollback.assert_awaited_once()


@pytest.mark.asyncio
@pytest.mark.parametrize("driver_error", [
    DriverError("deadlock detected", pgcode="40P01"),
    DriverError("could not serialize access", pgcode="40001"),
    DriverError("database is locked"),
])
async def test_lock_contention_becomes_conflict(driver_error):
    session = failing_session(OperationalError("INSERT", {}, driver_error))
    with pytest.raises(ConcurrencyConflict):
        await commit_booking(session)


@pytest.mark.asyncio
async def test_other_operational_errors_propagate():
    session = failing_session(OperationalError("INSERT", {}, DriverError("connection refused", pgcode="08006")))
    with pytest.raises(OperationalError):
        await commit_booking(session)
    session.rollback.assert_awaited_once()


def test_conflict_maps_to_retryable_409():
    exc = to_http_exception(ConcurrencyConflict())
    assert exc.status_code == 409
    assert exc.detail["code"] == "concurrency_conflict"
    assert exc.detail["retryable"] is True
    assert exc.headers == {"Retry-After": "1"}


def test_rejection_and_lifecycle_mapping():
    exc = to_http_exception(ValidationRejection(RejectionCode.TIME_OFF, "This time overlaps with time off."))
    assert exc.status_code == 422
    assert exc.detail == {"code": "time_off", "message": "This time overlaps with time off."}

    exc = to_http_exception(LifecycleError(TransitionCode.LOCKED, "locked"))
    assert exc.status_code == 409
    assert exc.detail["code"] == "locked"

    exc = to_http_exception(NotFoundError("Service", "abc"))
    assert exc.status_code == 404
    assert exc.detail == "Service not found"


@pytest.mark.asyncio
async def test_lock_wait_timeout_becomes_conflict():
    session = AsyncMock()
    session.execute.side_effect = OperationalError("BEGIN IMMEDIATE", {}, DriverError("database is locked"))
    with pytest.raises(ConcurrencyConflict):
        await lock_business(session, uuid.uuid4())
    session.rollback.assert_awaited_once()

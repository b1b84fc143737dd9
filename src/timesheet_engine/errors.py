"""Error taxonomy for the timesheet engine.

Operational errors are expected, user-facing outcomes of a request and carry a
stable ``code`` that an outer layer maps to its own response format. Anything
else is an unexpected fault: it is logged in full and reported generically.
"""

from __future__ import annotations

import logging
from typing import Any

logger = logging.getLogger(__name__)


class ErrorCode:
    """Stable error codes exposed to callers."""

    FORBIDDEN = "FORBIDDEN"
    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"
    SELF_APPROVAL_FORBIDDEN = "SELF_APPROVAL_FORBIDDEN"
    IMMUTABLE_TIMESHEET = "IMMUTABLE_TIMESHEET"
    INVALID_TRANSITION = "INVALID_TRANSITION"
    MAX_HOURS_EXCEEDED = "MAX_HOURS_EXCEEDED"
    BACKDATING_NOT_ALLOWED = "BACKDATING_NOT_ALLOWED"
    DESCRIPTION_REQUIRED = "DESCRIPTION_REQUIRED"
    COPY_WEEK_DISABLED = "COPY_WEEK_DISABLED"
    NOT_DIRECT_REPORT = "NOT_DIRECT_REPORT"
    EMPLOYEE_NOT_ASSIGNED = "EMPLOYEE_NOT_ASSIGNED"
    SELF_MANAGER_ASSIGNMENT = "SELF_MANAGER_ASSIGNMENT"


class TimesheetEngineError(Exception):
    """Base class for operational errors."""

    code: str = ErrorCode.INTERNAL_ERROR

    def __init__(self, message: str, code: str | None = None):
        self.message = message
        if code is not None:
            self.code = code
        super().__init__(message)


class NotFoundError(TimesheetEngineError):
    """Entity is absent or outside the caller's tenant/ownership scope."""

    code = ErrorCode.NOT_FOUND

    def __init__(self, resource: str):
        self.resource = resource
        super().__init__(f"{resource} not found")


class ForbiddenError(TimesheetEngineError):
    """Actor lacks the role or relationship privilege for the action."""

    code = ErrorCode.FORBIDDEN

    def __init__(self, message: str = "Access denied", code: str | None = None):
        super().__init__(message, code)


class SelfApprovalForbiddenError(ForbiddenError):
    code = ErrorCode.SELF_APPROVAL_FORBIDDEN

    def __init__(self, action: str = "approve"):
        super().__init__(f"Managers cannot {action} their own timesheets")


class NotDirectReportError(ForbiddenError):
    code = ErrorCode.NOT_DIRECT_REPORT

    def __init__(self, message: str = "You can only manage timesheets of your direct reports"):
        super().__init__(message)


class NotAssignedToProjectError(ForbiddenError):
    code = ErrorCode.EMPLOYEE_NOT_ASSIGNED

    def __init__(self) -> None:
        super().__init__("You are not assigned to this project")


class ConflictError(TimesheetEngineError):
    """Uniqueness violation."""

    code = ErrorCode.CONFLICT


class ValidationError(TimesheetEngineError):
    """Malformed or policy-violating input."""

    code = ErrorCode.VALIDATION_ERROR


class SelfManagerAssignmentError(ValidationError):
    code = ErrorCode.SELF_MANAGER_ASSIGNMENT

    def __init__(self) -> None:
        super().__init__("A user cannot be assigned as their own manager")


class DescriptionRequiredError(ValidationError):
    code = ErrorCode.DESCRIPTION_REQUIRED

    def __init__(self) -> None:
        super().__init__("Description is required for each day with logged hours")


class MaxHoursExceededError(ValidationError):
    code = ErrorCode.MAX_HOURS_EXCEEDED


class BackdatingNotAllowedError(ValidationError):
    code = ErrorCode.BACKDATING_NOT_ALLOWED

    def __init__(self) -> None:
        super().__init__("Backdated timesheets are not allowed")


class ImmutableTimesheetError(TimesheetEngineError):
    """Mutation attempted outside the DRAFT/REJECTED window."""

    code = ErrorCode.IMMUTABLE_TIMESHEET

    def __init__(self, message: str = "Timesheet cannot be modified after submission"):
        super().__init__(message)


class InvalidTransitionError(TimesheetEngineError):
    """Raised when an invalid state transition is attempted."""

    code = ErrorCode.INVALID_TRANSITION

    def __init__(self, from_status: str, to_status: str, reason: str | None = None):
        self.from_status = from_status
        self.to_status = to_status
        self.reason = reason
        msg = f"Cannot transition timesheet from {from_status} to {to_status}"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class FeatureDisabledError(TimesheetEngineError):
    """Action attempted while the governing organisation setting is off."""

    code = ErrorCode.COPY_WEEK_DISABLED


class InternalError(Exception):
    """Unexpected fault, reported without internal detail."""

    code = ErrorCode.INTERNAL_ERROR
    message = "An unexpected error occurred"


def describe_error(exc: BaseException) -> dict[str, Any]:
    """Map an exception to the payload an outer layer may expose.

    Operational errors keep their message and code. Everything else is logged
    with its traceback and collapsed into a generic internal error.
    """
    if isinstance(exc, TimesheetEngineError):
        return {"code": exc.code, "message": exc.message}

    logger.error("Unhandled error", exc_info=exc)
    return {"code": InternalError.code, "message": InternalError.message}

"""Timesheet state machine with transition validation."""

from __future__ import annotations

from enum import Enum

from timesheet_engine.errors import ImmutableTimesheetError, InvalidTransitionError


class TimesheetStatus(str, Enum):
    """Timesheet status values."""

    DRAFT = "DRAFT"
    SUBMITTED = "SUBMITTED"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class TimesheetStateMachine:
    """State machine for timesheet status transitions.

    Allowed transitions:
    - DRAFT → SUBMITTED
    - SUBMITTED → APPROVED
    - SUBMITTED → REJECTED
    - REJECTED → SUBMITTED (resubmit)

    APPROVED is terminal.
    """

    VALID_TRANSITIONS: dict[str, list[str]] = {
        TimesheetStatus.DRAFT: [TimesheetStatus.SUBMITTED],
        TimesheetStatus.SUBMITTED: [TimesheetStatus.APPROVED, TimesheetStatus.REJECTED],
        TimesheetStatus.REJECTED: [TimesheetStatus.SUBMITTED],
        TimesheetStatus.APPROVED: [],  # Terminal state
    }

    # Statuses where time entries can be added, changed or removed
    ENTRIES_MUTABLE = {
        TimesheetStatus.DRAFT,
        TimesheetStatus.REJECTED,
    }

    # Statuses where the timesheet itself can be edited or deleted
    FIELDS_MUTABLE = {
        TimesheetStatus.DRAFT,
    }

    @classmethod
    def can_transition(cls, from_status: str, to_status: str) -> bool:
        """Check if a transition is valid."""
        allowed = cls.VALID_TRANSITIONS.get(from_status, [])
        return to_status in allowed

    @classmethod
    def validate_transition(cls, from_status: str, to_status: str) -> None:
        """Validate a transition, raising InvalidTransitionError if invalid."""
        if not cls.can_transition(from_status, to_status):
            raise InvalidTransitionError(_value(from_status), _value(to_status))

    @classmethod
    def can_modify_entries(cls, status: str) -> bool:
        return status in cls.ENTRIES_MUTABLE

    @classmethod
    def can_modify_fields(cls, status: str) -> bool:
        return status in cls.FIELDS_MUTABLE

    @classmethod
    def ensure_entries_mutable(cls, status: str) -> None:
        if not cls.can_modify_entries(status):
            raise ImmutableTimesheetError()

    @classmethod
    def ensure_fields_mutable(cls, status: str) -> None:
        if not cls.can_modify_fields(status):
            raise ImmutableTimesheetError()

    @classmethod
    def is_terminal(cls, status: str) -> bool:
        return not cls.VALID_TRANSITIONS.get(status, [])

    @classmethod
    def get_next_statuses(cls, current_status: str) -> list[str]:
        """Get list of valid next statuses from current status."""
        return cls.VALID_TRANSITIONS.get(current_status, [])


def _value(status: str) -> str:
    return status.value if isinstance(status, TimesheetStatus) else status

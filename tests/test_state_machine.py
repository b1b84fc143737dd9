"""Tests for timesheet state machine."""

import pytest

from timesheet_engine.errors import ImmutableTimesheetError, InvalidTransitionError
from timesheet_engine.services.state_machine import TimesheetStateMachine, TimesheetStatus


class TestTimesheetStateMachine:
    """Test state machine transitions."""

    def test_valid_transitions(self):
        """Test that valid transitions are allowed."""
        # DRAFT → SUBMITTED
        assert TimesheetStateMachine.can_transition("DRAFT", "SUBMITTED") is True

        # SUBMITTED → APPROVED / REJECTED
        assert TimesheetStateMachine.can_transition("SUBMITTED", "APPROVED") is True
        assert TimesheetStateMachine.can_transition("SUBMITTED", "REJECTED") is True

        # REJECTED → SUBMITTED (resubmit)
        assert TimesheetStateMachine.can_transition("REJECTED", "SUBMITTED") is True

    def test_invalid_transitions(self):
        """Test that invalid transitions are blocked."""
        # Can't skip submission
        assert TimesheetStateMachine.can_transition("DRAFT", "APPROVED") is False
        assert TimesheetStateMachine.can_transition("DRAFT", "REJECTED") is False

        # Can't go back to draft
        assert TimesheetStateMachine.can_transition("SUBMITTED", "DRAFT") is False
        assert TimesheetStateMachine.can_transition("REJECTED", "DRAFT") is False

        # APPROVED is terminal
        for status in TimesheetStatus:
            assert TimesheetStateMachine.can_transition("APPROVED", status.value) is False

    def test_enum_and_string_statuses_are_interchangeable(self):
        assert TimesheetStateMachine.can_transition(
            TimesheetStatus.DRAFT, TimesheetStatus.SUBMITTED
        ) is True
        assert TimesheetStateMachine.can_transition("DRAFT", TimesheetStatus.SUBMITTED) is True

    def test_validate_transition_raises(self):
        """Test that validate_transition raises for invalid transitions."""
        with pytest.raises(InvalidTransitionError) as exc_info:
            TimesheetStateMachine.validate_transition("APPROVED", TimesheetStatus.SUBMITTED)

        assert exc_info.value.from_status == "APPROVED"
        assert exc_info.value.to_status == "SUBMITTED"
        assert exc_info.value.code == "INVALID_TRANSITION"

    def test_entry_mutability(self):
        """Entries are editable while DRAFT or REJECTED."""
        assert TimesheetStateMachine.can_modify_entries("DRAFT") is True
        assert TimesheetStateMachine.can_modify_entries("REJECTED") is True
        assert TimesheetStateMachine.can_modify_entries("SUBMITTED") is False
        assert TimesheetStateMachine.can_modify_entries("APPROVED") is False

    def test_field_mutability(self):
        """The timesheet itself is only editable while DRAFT."""
        assert TimesheetStateMachine.can_modify_fields("DRAFT") is True
        assert TimesheetStateMachine.can_modify_fields("REJECTED") is False
        assert TimesheetStateMachine.can_modify_fields("SUBMITTED") is False

        with pytest.raises(ImmutableTimesheetError):
            TimesheetStateMachine.ensure_fields_mutable("SUBMITTED")
        with pytest.raises(ImmutableTimesheetError):
            TimesheetStateMachine.ensure_entries_mutable("APPROVED")

    def test_terminal_states(self):
        assert TimesheetStateMachine.is_terminal("APPROVED") is True
        assert TimesheetStateMachine.is_terminal("REJECTED") is False
        assert TimesheetStateMachine.get_next_statuses("SUBMITTED") == [
            TimesheetStatus.APPROVED,
            TimesheetStatus.REJECTED,
        ]

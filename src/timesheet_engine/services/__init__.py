"""Timesheet engine services."""

from timesheet_engine.services.approval_service import ApprovalService, ApprovalStats
from timesheet_engine.services.assignment_service import AssignmentGraph
from timesheet_engine.services.copy_week_service import CopyResult, WeekCopyService
from timesheet_engine.services.entry_service import TimeEntryService
from timesheet_engine.services.holiday_service import HolidayService
from timesheet_engine.services.notification_service import (
    DatabaseNotificationSink,
    NotificationService,
    NotificationSink,
)
from timesheet_engine.services.pagination import Page
from timesheet_engine.services.project_service import ProjectService
from timesheet_engine.services.query_service import ScopedQueryService
from timesheet_engine.services.report_service import (
    MonthlyTimesheetData,
    ReportResult,
    ReportService,
)
from timesheet_engine.services.scope import ROLE_POLICIES, Actor, Visibility
from timesheet_engine.services.settings_service import EffectiveSettings, SettingsService
from timesheet_engine.services.state_machine import TimesheetStateMachine, TimesheetStatus
from timesheet_engine.services.timesheet_service import TimesheetService
from timesheet_engine.services.user_service import UserService

__all__ = [
    "Actor",
    "ApprovalService",
    "ApprovalStats",
    "AssignmentGraph",
    "CopyResult",
    "DatabaseNotificationSink",
    "EffectiveSettings",
    "HolidayService",
    "MonthlyTimesheetData",
    "NotificationService",
    "NotificationSink",
    "Page",
    "ProjectService",
    "ROLE_POLICIES",
    "ReportResult",
    "ReportService",
    "ScopedQueryService",
    "SettingsService",
    "TimeEntryService",
    "TimesheetService",
    "TimesheetStateMachine",
    "TimesheetStatus",
    "UserService",
    "Visibility",
    "WeekCopyService",
]

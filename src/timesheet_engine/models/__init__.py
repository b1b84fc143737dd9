"""ORM models."""

from timesheet_engine.models.base import Base, TimestampMixin
from timesheet_engine.models.notification import Notification, NotificationType
from timesheet_engine.models.organisation import (
    Holiday,
    ManagerEmployee,
    Organisation,
    OrgSettings,
    User,
    UserRole,
    UserStatus,
    WeekStart,
)
from timesheet_engine.models.project import (
    Project,
    ProjectEmployee,
    ProjectManager,
    ProjectStatus,
)
from timesheet_engine.models.timesheet import DAYS, TimeEntry, Timesheet

__all__ = [
    "Base",
    "TimestampMixin",
    "DAYS",
    "Holiday",
    "ManagerEmployee",
    "Notification",
    "NotificationType",
    "Organisation",
    "OrgSettings",
    "Project",
    "ProjectEmployee",
    "ProjectManager",
    "ProjectStatus",
    "TimeEntry",
    "Timesheet",
    "User",
    "UserRole",
    "UserStatus",
    "WeekStart",
]

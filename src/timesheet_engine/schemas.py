"""Pydantic schemas for operation inputs."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Annotated, Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from timesheet_engine.models import DAYS, UserRole, WeekStart

# Every hours column is stored with two decimal places
Hours = Annotated[Decimal, Field(ge=0, decimal_places=2)]


# ============================================================================
# Timesheets
# ============================================================================


class TimesheetUpdate(BaseModel):
    """Only the week start may change before submission."""

    week_start_date: date | None = None


# ============================================================================
# Time entries
# ============================================================================


class _DayFields(BaseModel):
    model_config = ConfigDict(extra="forbid")

    mon_hours: Hours | None = None
    mon_desc: str | None = None
    tue_hours: Hours | None = None
    tue_desc: str | None = None
    wed_hours: Hours | None = None
    wed_desc: str | None = None
    thu_hours: Hours | None = None
    thu_desc: str | None = None
    fri_hours: Hours | None = None
    fri_desc: str | None = None
    sat_hours: Hours | None = None
    sat_desc: str | None = None
    sun_hours: Hours | None = None
    sun_desc: str | None = None

    def day_values(self) -> dict[str, Any]:
        """Per-day fields that were explicitly supplied."""
        names = {f"{d}_hours" for d in DAYS} | {f"{d}_desc" for d in DAYS}
        return {k: getattr(self, k) for k in self.model_fields_set if k in names}


class EntryCreate(_DayFields):
    """New time entry. Total hours are always derived from the day values."""

    project_id: UUID
    billable: bool = True


class EntryUpdate(_DayFields):
    """Partial entry update; unspecified fields keep their stored value."""

    project_id: UUID | None = None
    billable: bool | None = None


# ============================================================================
# Settings
# ============================================================================


class SettingsUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    work_week_start: WeekStart | None = None
    standard_hours: Decimal | None = Field(default=None, ge=0, le=24, decimal_places=2)
    max_hours_per_day: Decimal | None = Field(default=None, ge=0, le=24, decimal_places=2)
    max_hours_per_week: Decimal | None = Field(default=None, ge=0, le=168, decimal_places=2)
    allow_backdated: bool | None = None
    mandatory_desc: bool | None = None
    allow_copy_week: bool | None = None


# ============================================================================
# Users and projects
# ============================================================================


class UserCreate(BaseModel):
    name: str = Field(min_length=1)
    email: str = Field(min_length=3)
    role: UserRole = UserRole.EMPLOYEE
    department: str | None = None
    manager_ids: list[UUID] | None = None
    project_ids: list[UUID] | None = None

    @field_validator("email")
    @classmethod
    def normalise_email(cls, value: str) -> str:
        value = value.strip().lower()
        if "@" not in value:
            raise ValueError("email must contain '@'")
        return value


class UserUpdate(BaseModel):
    name: str | None = None
    role: UserRole | None = None
    department: str | None = None
    status: str | None = Field(default=None, pattern="^(active|inactive)$")
    manager_ids: list[UUID] | None = None
    project_ids: list[UUID] | None = None


class ProjectCreate(BaseModel):
    code: str = Field(min_length=1)
    name: str = Field(min_length=1)
    client: str | None = None
    budget_hours: Hours = Decimal("0")
    status: str = Field(default="active", pattern="^(active|inactive)$")
    manager_ids: list[UUID] | None = None
    employee_ids: list[UUID] | None = None


class ProjectUpdate(BaseModel):
    code: str | None = None
    name: str | None = None
    client: str | None = None
    budget_hours: Hours | None = None
    status: str | None = Field(default=None, pattern="^(active|inactive)$")
    manager_ids: list[UUID] | None = None
    employee_ids: list[UUID] | None = None


class HolidayCreate(BaseModel):
    name: str = Field(min_length=1)
    holiday_date: date
    recurring: bool = False


# ============================================================================
# Reports
# ============================================================================


class ReportFilters(BaseModel):
    date_from: date
    date_to: date
    user_id: UUID | None = None
    status: str | None = None
    project_id: UUID | None = None

"""Organisation, user and team structure models."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    ForeignKey,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from timesheet_engine.models.base import Base, TimestampMixin, uuid_pk

if TYPE_CHECKING:
    from timesheet_engine.models.timesheet import Timesheet


class UserRole(str, Enum):
    """User role values."""

    EMPLOYEE = "EMPLOYEE"
    MANAGER = "MANAGER"
    ADMIN = "ADMIN"


class UserStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class WeekStart(str, Enum):
    MONDAY = "monday"
    SUNDAY = "sunday"


class Organisation(Base, TimestampMixin):
    """Tenant boundary."""

    __tablename__ = "organisation"

    id: Mapped[UUID] = uuid_pk()
    name: Mapped[str] = mapped_column(String, nullable=False)

    # Relationships
    users: Mapped[list[User]] = relationship(back_populates="organisation")
    settings: Mapped[OrgSettings | None] = relationship(back_populates="organisation")


class OrgSettings(Base, TimestampMixin):
    """Per-organisation timesheet policy."""

    __tablename__ = "org_settings"

    id: Mapped[UUID] = uuid_pk()
    organisation_id: Mapped[UUID] = mapped_column(
        ForeignKey("organisation.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    work_week_start: Mapped[str] = mapped_column(
        String, nullable=False, default=WeekStart.MONDAY.value
    )
    standard_hours: Mapped[Decimal] = mapped_column(
        Numeric(5, 2), nullable=False, default=Decimal("8")
    )
    max_hours_per_day: Mapped[Decimal] = mapped_column(
        Numeric(5, 2), nullable=False, default=Decimal("24")
    )
    max_hours_per_week: Mapped[Decimal | None] = mapped_column(Numeric(6, 2), nullable=True)
    allow_backdated: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    mandatory_desc: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    allow_copy_week: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    __table_args__ = (
        CheckConstraint(
            "work_week_start IN ('monday', 'sunday')",
            name="org_settings_week_start_check",
        ),
        CheckConstraint(
            "max_hours_per_day >= 0 AND max_hours_per_day <= 24",
            name="org_settings_max_day_check",
        ),
    )

    # Relationships
    organisation: Mapped[Organisation] = relationship(back_populates="settings")


class User(Base, TimestampMixin):
    """User account. Deactivated users keep their row with status 'inactive'."""

    __tablename__ = "app_user"

    id: Mapped[UUID] = uuid_pk()
    organisation_id: Mapped[UUID] = mapped_column(
        ForeignKey("organisation.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String, nullable=False)
    email: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    role: Mapped[str] = mapped_column(String, nullable=False, default=UserRole.EMPLOYEE.value)
    status: Mapped[str] = mapped_column(String, nullable=False, default=UserStatus.ACTIVE.value)
    department: Mapped[str | None] = mapped_column(String, nullable=True)

    __table_args__ = (
        CheckConstraint(
            "role IN ('EMPLOYEE', 'MANAGER', 'ADMIN')",
            name="app_user_role_check",
        ),
        CheckConstraint(
            "status IN ('active', 'inactive')",
            name="app_user_status_check",
        ),
    )

    # Relationships
    organisation: Mapped[Organisation] = relationship(back_populates="users")
    timesheets: Mapped[list[Timesheet]] = relationship(
        back_populates="user",
        foreign_keys="Timesheet.user_id",
    )

    @property
    def is_active(self) -> bool:
        return self.status == UserStatus.ACTIVE


class ManagerEmployee(Base, TimestampMixin):
    """Manager to employee edge (many-to-many)."""

    __tablename__ = "manager_employee"

    id: Mapped[UUID] = uuid_pk()
    organisation_id: Mapped[UUID] = mapped_column(
        ForeignKey("organisation.id", ondelete="CASCADE"),
        nullable=False,
    )
    manager_id: Mapped[UUID] = mapped_column(
        ForeignKey("app_user.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("app_user.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    __table_args__ = (
        UniqueConstraint("manager_id", "employee_id", name="manager_employee_unique"),
        CheckConstraint("manager_id <> employee_id", name="manager_employee_not_self"),
    )


class Holiday(Base, TimestampMixin):
    """Organisation holiday; recurring holidays repeat every year on the same day."""

    __tablename__ = "holiday"

    id: Mapped[UUID] = uuid_pk()
    organisation_id: Mapped[UUID] = mapped_column(
        ForeignKey("organisation.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String, nullable=False)
    holiday_date: Mapped[date] = mapped_column("date", Date, nullable=False)
    recurring: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

"""Timesheet and time entry models."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from timesheet_engine.models.base import Base, TimestampMixin, uuid_pk

if TYPE_CHECKING:
    from timesheet_engine.models.organisation import User
    from timesheet_engine.models.project import Project


# Entry day columns, in Monday-first order
DAYS = ("mon", "tue", "wed", "thu", "fri", "sat", "sun")

ZERO = Decimal("0")


class Timesheet(Base, TimestampMixin):
    """One user's timesheet for one week."""

    __tablename__ = "timesheet"

    id: Mapped[UUID] = uuid_pk()
    organisation_id: Mapped[UUID] = mapped_column(
        ForeignKey("organisation.id", ondelete="CASCADE"),
        nullable=False,
    )
    user_id: Mapped[UUID] = mapped_column(
        ForeignKey("app_user.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    week_start_date: Mapped[date] = mapped_column(Date, nullable=False)
    week_end_date: Mapped[datetime] = mapped_column(DateTime(), nullable=False)
    status: Mapped[str] = mapped_column(String, nullable=False, default="DRAFT")
    total_hours: Mapped[Decimal] = mapped_column(Numeric(8, 2), nullable=False, default=ZERO)
    billable_hours: Mapped[Decimal] = mapped_column(Numeric(8, 2), nullable=False, default=ZERO)
    submitted_at: Mapped[datetime | None] = mapped_column(DateTime(), nullable=True)
    approved_by_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("app_user.id", ondelete="SET NULL"),
        nullable=True,
    )
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(), nullable=True)
    rejected_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        UniqueConstraint(
            "user_id",
            "organisation_id",
            "week_start_date",
            name="timesheet_user_org_week_unique",
        ),
        CheckConstraint(
            "status IN ('DRAFT', 'SUBMITTED', 'APPROVED', 'REJECTED')",
            name="timesheet_status_check",
        ),
    )

    # Relationships
    user: Mapped[User] = relationship(back_populates="timesheets", foreign_keys=[user_id])
    entries: Mapped[list[TimeEntry]] = relationship(
        back_populates="timesheet",
        cascade="all, delete-orphan",
        order_by="TimeEntry.created_at",
    )


class TimeEntry(Base, TimestampMixin):
    """Per-project row of weekday hours under a timesheet."""

    __tablename__ = "time_entry"

    id: Mapped[UUID] = uuid_pk()
    timesheet_id: Mapped[UUID] = mapped_column(
        ForeignKey("timesheet.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    project_id: Mapped[UUID] = mapped_column(
        ForeignKey("project.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    billable: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    mon_hours: Mapped[Decimal | None] = mapped_column(Numeric(5, 2), nullable=True)
    mon_desc: Mapped[str | None] = mapped_column(Text, nullable=True)
    tue_hours: Mapped[Decimal | None] = mapped_column(Numeric(5, 2), nullable=True)
    tue_desc: Mapped[str | None] = mapped_column(Text, nullable=True)
    wed_hours: Mapped[Decimal | None] = mapped_column(Numeric(5, 2), nullable=True)
    wed_desc: Mapped[str | None] = mapped_column(Text, nullable=True)
    thu_hours: Mapped[Decimal | None] = mapped_column(Numeric(5, 2), nullable=True)
    thu_desc: Mapped[str | None] = mapped_column(Text, nullable=True)
    fri_hours: Mapped[Decimal | None] = mapped_column(Numeric(5, 2), nullable=True)
    fri_desc: Mapped[str | None] = mapped_column(Text, nullable=True)
    sat_hours: Mapped[Decimal | None] = mapped_column(Numeric(5, 2), nullable=True)
    sat_desc: Mapped[str | None] = mapped_column(Text, nullable=True)
    sun_hours: Mapped[Decimal | None] = mapped_column(Numeric(5, 2), nullable=True)
    sun_desc: Mapped[str | None] = mapped_column(Text, nullable=True)

    total_hours: Mapped[Decimal] = mapped_column(Numeric(6, 2), nullable=False, default=ZERO)

    __table_args__ = (CheckConstraint("total_hours >= 0", name="time_entry_total_check"),)

    # Relationships
    timesheet: Mapped[Timesheet] = relationship(back_populates="entries")
    project: Mapped[Project] = relationship()

    def hours_for(self, day: str) -> Decimal:
        return getattr(self, f"{day}_hours") or ZERO

    def description_for(self, day: str) -> str | None:
        return getattr(self, f"{day}_desc")

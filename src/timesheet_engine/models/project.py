"""Project and project assignment models."""

from __future__ import annotations

from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from timesheet_engine.models.base import Base, TimestampMixin, uuid_pk


class ProjectStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class Project(Base, TimestampMixin):
    """Billable project with an hour budget."""

    __tablename__ = "project"

    id: Mapped[UUID] = uuid_pk()
    organisation_id: Mapped[UUID] = mapped_column(
        ForeignKey("organisation.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    code: Mapped[str] = mapped_column(String, nullable=False)
    name: Mapped[str] = mapped_column(String, nullable=False)
    client: Mapped[str | None] = mapped_column(String, nullable=True)
    budget_hours: Mapped[Decimal] = mapped_column(
        Numeric(10, 2), nullable=False, default=Decimal("0")
    )
    used_hours: Mapped[Decimal] = mapped_column(
        Numeric(10, 2), nullable=False, default=Decimal("0")
    )
    status: Mapped[str] = mapped_column(
        String, nullable=False, default=ProjectStatus.ACTIVE.value
    )

    __table_args__ = (
        UniqueConstraint("organisation_id", "code", name="project_org_code_unique"),
        CheckConstraint("status IN ('active', 'inactive')", name="project_status_check"),
        CheckConstraint("budget_hours >= 0", name="project_budget_check"),
    )

    # Relationships
    managers: Mapped[list[ProjectManager]] = relationship(
        back_populates="project", cascade="all, delete-orphan"
    )
    employees: Mapped[list[ProjectEmployee]] = relationship(
        back_populates="project", cascade="all, delete-orphan"
    )

    @property
    def is_active(self) -> bool:
        return self.status == ProjectStatus.ACTIVE


class ProjectManager(Base, TimestampMixin):
    """Manager assigned to a project."""

    __tablename__ = "project_manager"

    id: Mapped[UUID] = uuid_pk()
    organisation_id: Mapped[UUID] = mapped_column(
        ForeignKey("organisation.id", ondelete="CASCADE"),
        nullable=False,
    )
    project_id: Mapped[UUID] = mapped_column(
        ForeignKey("project.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    manager_id: Mapped[UUID] = mapped_column(
        ForeignKey("app_user.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    __table_args__ = (
        UniqueConstraint("project_id", "manager_id", name="project_manager_unique"),
    )

    project: Mapped[Project] = relationship(back_populates="managers")


class ProjectEmployee(Base, TimestampMixin):
    """Employee assigned to a project."""

    __tablename__ = "project_employee"

    id: Mapped[UUID] = uuid_pk()
    organisation_id: Mapped[UUID] = mapped_column(
        ForeignKey("organisation.id", ondelete="CASCADE"),
        nullable=False,
    )
    project_id: Mapped[UUID] = mapped_column(
        ForeignKey("project.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("app_user.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    __table_args__ = (
        UniqueConstraint("project_id", "employee_id", name="project_employee_unique"),
    )

    project: Mapped[Project] = relationship(back_populates="employees")

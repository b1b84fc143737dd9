"""Organisation holiday calendar."""

from __future__ import annotations

from datetime import date
from uuid import UUID

from sqlalchemy import delete, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from timesheet_engine.errors import ForbiddenError, NotFoundError
from timesheet_engine.models import Holiday
from timesheet_engine.schemas import HolidayCreate
from timesheet_engine.services.scope import Actor


class HolidayService:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def list(self, org_id: UUID, year: int | None = None) -> list[Holiday]:
        """Holidays by date; with a year, recurring holidays are always included."""
        query = select(Holiday).where(Holiday.organisation_id == org_id)
        if year is not None:
            query = query.where(
                or_(
                    Holiday.holiday_date.between(date(year, 1, 1), date(year, 12, 31)),
                    Holiday.recurring.is_(True),
                )
            )
        result = await self.session.execute(query.order_by(Holiday.holiday_date.asc()))
        return list(result.scalars().all())

    async def create(self, actor: Actor, data: HolidayCreate) -> Holiday:
        if not actor.is_admin:
            raise ForbiddenError("Only administrators can manage holidays")
        holiday = Holiday(
            organisation_id=actor.org_id,
            name=data.name,
            holiday_date=data.holiday_date,
            recurring=data.recurring,
        )
        self.session.add(holiday)
        await self.session.flush()
        return holiday

    async def delete(self, actor: Actor, holiday_id: UUID) -> None:
        if not actor.is_admin:
            raise ForbiddenError("Only administrators can manage holidays")
        result = await self.session.execute(
            delete(Holiday).where(
                Holiday.id == holiday_id, Holiday.organisation_id == actor.org_id
            )
        )
        if not result.rowcount:
            raise NotFoundError("Holiday")

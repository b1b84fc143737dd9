"""Organisation policy settings."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from timesheet_engine.models import OrgSettings, WeekStart
from timesheet_engine.schemas import SettingsUpdate


@dataclass(frozen=True)
class EffectiveSettings:
    """Organisation policy with defaults applied for missing rows."""

    work_week_start: str = WeekStart.MONDAY.value
    standard_hours: Decimal = Decimal("8")
    max_hours_per_day: Decimal = Decimal("24")
    max_hours_per_week: Decimal | None = None
    allow_backdated: bool = True
    mandatory_desc: bool = False
    allow_copy_week: bool = True

    @classmethod
    def from_row(cls, row: OrgSettings | None) -> EffectiveSettings:
        if row is None:
            return cls()
        return cls(
            work_week_start=row.work_week_start,
            standard_hours=row.standard_hours,
            max_hours_per_day=row.max_hours_per_day,
            max_hours_per_week=row.max_hours_per_week,
            allow_backdated=row.allow_backdated,
            mandatory_desc=row.mandatory_desc,
            allow_copy_week=row.allow_copy_week,
        )


class SettingsService:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_row(self, org_id: UUID) -> OrgSettings | None:
        result = await self.session.execute(
            select(OrgSettings).where(OrgSettings.organisation_id == org_id)
        )
        return result.scalar_one_or_none()

    async def get_effective(self, org_id: UUID) -> EffectiveSettings:
        return EffectiveSettings.from_row(await self.get_row(org_id))

    async def update(self, org_id: UUID, patch: SettingsUpdate) -> EffectiveSettings:
        """Upsert the settings row, creating it from defaults if missing."""
        row = await self.get_row(org_id)
        if row is None:
            defaults = EffectiveSettings()
            row = OrgSettings(
                organisation_id=org_id,
                work_week_start=defaults.work_week_start,
                standard_hours=defaults.standard_hours,
                max_hours_per_day=defaults.max_hours_per_day,
                max_hours_per_week=defaults.max_hours_per_week,
                allow_backdated=defaults.allow_backdated,
                mandatory_desc=defaults.mandatory_desc,
                allow_copy_week=defaults.allow_copy_week,
            )
            self.session.add(row)

        for field, value in patch.model_dump(exclude_unset=True).items():
            # Only the weekly cap may be cleared
            if value is None and field != "max_hours_per_week":
                continue
            if isinstance(value, WeekStart):
                value = value.value
            setattr(row, field, value)

        await self.session.flush()
        return EffectiveSettings.from_row(row)

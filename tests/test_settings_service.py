"""Tests for organisation settings and the holiday calendar."""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
from pydantic import ValidationError as SchemaValidationError

from timesheet_engine.errors import ForbiddenError, NotFoundError
from timesheet_engine.schemas import HolidayCreate, SettingsUpdate
from timesheet_engine.services.holiday_service import HolidayService
from timesheet_engine.services.settings_service import EffectiveSettings, SettingsService

pytestmark = pytest.mark.asyncio


class TestSettings:
    async def test_defaults_without_a_row(self, session, world):
        settings = await SettingsService(session).get_effective(world.org.id)

        assert settings == EffectiveSettings()
        assert settings.work_week_start == "monday"
        assert settings.max_hours_per_day == Decimal("24")
        assert settings.max_hours_per_week is None
        assert settings.allow_copy_week is True

    async def test_update_creates_row_and_keeps_unset_fields(self, session, world):
        service = SettingsService(session)

        await service.update(world.org.id, SettingsUpdate(max_hours_per_day=Decimal("10")))
        settings = await service.update(world.org.id, SettingsUpdate(mandatory_desc=True))

        assert settings.max_hours_per_day == Decimal("10")
        assert settings.mandatory_desc is True
        assert settings.allow_backdated is True

    async def test_weekly_cap_can_be_cleared(self, session, world):
        service = SettingsService(session)
        await service.update(world.org.id, SettingsUpdate(max_hours_per_week=Decimal("40")))

        settings = await service.update(world.org.id, SettingsUpdate(max_hours_per_week=None))

        assert settings.max_hours_per_week is None

    async def test_settings_are_per_org(self, session, world):
        service = SettingsService(session)
        await service.update(world.org.id, SettingsUpdate(work_week_start="sunday"))

        other = await service.get_effective(world.other_org.id)

        assert other.work_week_start == "monday"

    async def test_schema_bounds(self):
        with pytest.raises(SchemaValidationError):
            SettingsUpdate(max_hours_per_day=Decimal("25"))
        with pytest.raises(SchemaValidationError):
            SettingsUpdate(work_week_start="friday")
        with pytest.raises(SchemaValidationError):
            SettingsUpdate(unknown_flag=True)


class TestHolidays:
    async def test_list_by_year_includes_recurring(self, session, world):
        service = HolidayService(session)
        admin = world.actor(world.admin)
        for name, day, recurring in [
            ("New Year", date(2020, 1, 1), True),
            ("Company Day", date(2026, 6, 5), False),
            ("Old Offsite", date(2025, 9, 1), False),
        ]:
            await service.create(
                admin, HolidayCreate(name=name, holiday_date=day, recurring=recurring)
            )

        names = [h.name for h in await service.list(world.org.id, year=2026)]
        everything = await service.list(world.org.id)

        assert names == ["New Year", "Company Day"]
        assert len(everything) == 3
        assert await service.list(world.other_org.id) == []

    async def test_only_admins_manage_holidays(self, session, world):
        service = HolidayService(session)

        with pytest.raises(ForbiddenError):
            await service.create(
                world.actor(world.manager),
                HolidayCreate(name="Party", holiday_date=date(2026, 12, 24)),
            )

        holiday = await service.create(
            world.actor(world.admin),
            HolidayCreate(name="Party", holiday_date=date(2026, 12, 24)),
        )
        with pytest.raises(ForbiddenError):
            await service.delete(world.actor(world.manager), holiday.id)

    async def test_delete(self, session, world):
        service = HolidayService(session)
        admin = world.actor(world.admin)
        holiday = await service.create(
            admin, HolidayCreate(name="Party", holiday_date=date(2026, 12, 24))
        )

        await service.delete(admin, holiday.id)

        assert await service.list(world.org.id) == []
        with pytest.raises(NotFoundError):
            await service.delete(admin, uuid4())
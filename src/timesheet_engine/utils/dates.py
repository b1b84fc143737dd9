"""Date helpers. Week boundaries follow the organisation's week-start setting."""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone

END_OF_DAY = time(23, 59, 59, 999000)


def utcnow() -> datetime:
    """Naive UTC timestamp, as stored in the database."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_date(value: str | date | datetime) -> date:
    """Accept a YYYY-MM-DD string, a date or a datetime."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(value[:10])
    except (TypeError, ValueError) as exc:
        from timesheet_engine.errors import ValidationError

        raise ValidationError(f"Invalid date {value!r}, expected YYYY-MM-DD") from exc


def week_start(day: date, start_day: str = "monday") -> date:
    """Return the first day of the week containing ``day``."""
    if start_day == "sunday":
        offset = (day.weekday() + 1) % 7
    else:
        offset = day.weekday()
    return day - timedelta(days=offset)


def week_end(start: date) -> datetime:
    """Last instant of the week beginning at ``start``."""
    return datetime.combine(start + timedelta(days=6), END_OF_DAY)


def is_in_past(day: date, today: date | None = None) -> bool:
    """True if ``day`` is strictly before today."""
    return day < (today or date.today())

"""Schedule evaluation: matching, next-run computation and display strings."""

from __future__ import annotations

import calendar
from datetime import datetime, timedelta
from typing import Optional

from .contracts import Schedule, WorkflowTemplate

DAY_NAMES = (
    "Sunday",
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
)

# Far enough ahead to cover a monthly schedule on any day of any month.
_NEXT_RUN_SEARCH_DAYS = 400


def day_of_week(moment: datetime) -> int:
    """Weekday with Sunday=0..Saturday=6."""
    return (moment.weekday() + 1) % 7


def clamp_day_of_month(year: int, month: int, day: int) -> int:
    """Clamp ``day`` to the last day of a shorter month (31 -> 30, 29, 28)."""
    return min(day, calendar.monthrange(year, month)[1])


def slot_start(moment: datetime) -> datetime:
    return moment.replace(minute=0, second=0, microsecond=0)


def schedule_matches(schedule: Schedule, moment: datetime) -> bool:
    """Return ``True`` when ``moment`` falls in an hour the schedule fires in."""
    if schedule.type == "none" or moment.hour != schedule.hour:
        return False

    if schedule.type == "once":
        return schedule.run_date is None or moment.date() == schedule.run_date

    if schedule.end_date is not None and moment.date() > schedule.end_date:
        return False

    if schedule.type == "daily":
        return True
    if schedule.type == "weekly":
        return day_of_week(moment) == (schedule.day_of_week or 0)
    if schedule.type == "monthly":
        target = clamp_day_of_month(
            moment.year, moment.month, schedule.day_of_month or 1
        )
        return moment.day == target
    return False


def fired_in_slot(template: WorkflowTemplate, moment: datetime) -> bool:
    """Whether the template already started a run in ``moment``'s hour."""
    return template.last_run_at is not None and template.last_run_at >= slot_start(
        moment
    )


def is_due(template: WorkflowTemplate, moment: datetime) -> bool:
    """Active, not deleted, matching ``moment`` and not yet fired this hour."""
    if template.is_deleted or not template.has_active_schedule:
        return False
    return schedule_matches(template.schedule, moment) and not fired_in_slot(
        template, moment
    )


def next_run_at(schedule: Schedule, after: datetime) -> Optional[datetime]:
    """Next firing time strictly after ``after``, or ``None`` if it never fires again.

    The result carries ``after``'s timezone.
    """
    if schedule.type == "none":
        return None

    if schedule.type == "once":
        if schedule.run_date is None:
            return None
        candidate = datetime.combine(
            schedule.run_date, datetime.min.time(), tzinfo=after.tzinfo
        ).replace(hour=schedule.hour)
        return candidate if candidate > after else None

    day = after.replace(hour=schedule.hour, minute=0, second=0, microsecond=0)
    for _ in range(_NEXT_RUN_SEARCH_DAYS):
        if day > after and schedule_matches(schedule, day):
            return day
        day += timedelta(days=1)
    return None


def ordinal(n: int) -> str:
    if 10 <= n % 100 <= 20:
        suffix = "th"
    else:
        suffix = {1: "st", 2: "nd", 3: "rd"}.get(n % 10, "th")
    return f"{n}{suffix}"


def format_hour(hour: int) -> str:
    """``9 -> '09:00am'``, ``0 -> '12:00am'``, ``13 -> '01:00pm'``."""
    suffix = "am" if hour < 12 else "pm"
    return f"{hour % 12 or 12:02d}:00{suffix}"


def describe_schedule(schedule: Optional[Schedule]) -> str:
    """Human readable schedule label used by listings."""
    if schedule is None or schedule.type == "none":
        return ""
    time = format_hour(schedule.hour)
    if schedule.type == "daily":
        return f"daily {time}"
    if schedule.type == "weekly":
        return f"{DAY_NAMES[schedule.day_of_week or 0]} {time}"
    if schedule.type == "monthly":
        return f"{ordinal(schedule.day_of_month or 1)} {time}"
    return "Once"

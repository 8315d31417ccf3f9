"""Recurrence rule and next-occurrence computation.

A rule is (frequency, day_of_week, time_of_day) with day_of_week counted
from Sunday = 0. Wall-clock arithmetic happens in a configurable local
timezone; results are always returned as UTC instants.

Two functions cover the whole contract:

- next_occurrence(rule, now): the first matching slot strictly after now,
  skipping today when the slot has passed or it is already past the
  same-day cutoff hour.
- following_occurrence(rule, previous): the slot one interval after a
  materialized occurrence. WEEKLY and BIWEEKLY add 7 and 14 days.
  MONTHLY adds 30 days and snaps forward to the rule's weekday, so
  consecutive monthly meetings are 30 to 36 days apart.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from enum import Enum
from zoneinfo import ZoneInfo

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_SAME_DAY_CUTOFF_HOUR = 18


class Frequency(str, Enum):
    WEEKLY = "WEEKLY"
    BIWEEKLY = "BIWEEKLY"
    MONTHLY = "MONTHLY"


FREQUENCY_DAYS: dict[Frequency, int] = {
    Frequency.WEEKLY: 7,
    Frequency.BIWEEKLY: 14,
    Frequency.MONTHLY: 30,
}


class RecurrenceRule(BaseModel):
    """Validated recurrence rule. Invalid day or time never gets this far."""

    model_config = ConfigDict(frozen=True)

    frequency: Frequency = Frequency.BIWEEKLY
    day_of_week: int = Field(ge=0, le=6, description="0 = Sunday ... 6 = Saturday")
    time_of_day: str = Field(pattern=r"^([01]\d|2[0-3]):[0-5]\d$", description="24h HH:MM")

    @property
    def slot_time(self) -> time:
        hours, minutes = self.time_of_day.split(":")
        return time(int(hours), int(minutes))


def sunday_based_weekday(day: date) -> int:
    """Weekday of day with Sunday = 0."""
    return (day.weekday() + 1) % 7


def _at_slot(day: date, rule: RecurrenceRule, zone: ZoneInfo) -> datetime:
    return datetime.combine(day, rule.slot_time, tzinfo=zone)


def _as_aware(instant: datetime) -> datetime:
    if instant.tzinfo is None:
        return instant.replace(tzinfo=timezone.utc)
    return instant


def next_occurrence(
    rule: RecurrenceRule,
    now: datetime,
    tz_name: str = "UTC",
    cutoff_hour: int = DEFAULT_SAME_DAY_CUTOFF_HOUR,
) -> datetime:
    """First instant strictly after now on the rule's weekday and time.

    When today is the rule's weekday, today's slot is only used if it is
    still ahead and the local hour is below cutoff_hour. Otherwise the
    same weekday next week is returned.
    """
    zone = ZoneInfo(tz_name)
    local_now = _as_aware(now).astimezone(zone)

    days_ahead = (rule.day_of_week - sunday_based_weekday(local_now.date())) % 7
    candidate = _at_slot(local_now.date() + timedelta(days=days_ahead), rule, zone)

    if days_ahead == 0 and (candidate <= local_now or local_now.hour >= cutoff_hour):
        candidate = _at_slot(local_now.date() + timedelta(days=7), rule, zone)

    return candidate.astimezone(timezone.utc)


def following_occurrence(
    rule: RecurrenceRule,
    previous: datetime,
    tz_name: str = "UTC",
) -> datetime:
    """Occurrence one frequency interval after previous."""
    zone = ZoneInfo(tz_name)
    local_previous = _as_aware(previous).astimezone(zone)

    target = local_previous.date() + timedelta(days=FREQUENCY_DAYS[rule.frequency])
    # Snap forward onto the rule's weekday (no-op unless MONTHLY or the rule was edited)
    target += timedelta(days=(rule.day_of_week - sunday_based_weekday(target)) % 7)

    return _at_slot(target, rule, zone).astimezone(timezone.utc)

"""Twice-daily refresh schedule.

Refreshes are due at 06:00 and 20:00 US Eastern, compared in UTC as 11:00
and 01:00. The two trigger hours are checked independently: the evening
trigger falls on the next UTC day relative to the morning one.
"""

from __future__ import annotations

from datetime import datetime, time, timedelta, timezone

MORNING_TRIGGER = time(11, 0)
EVENING_TRIGGER = time(1, 0)
TRIGGERS = (EVENING_TRIGGER, MORNING_TRIGGER)


def _as_utc(moment: datetime) -> datetime:
  """Naive datetimes are taken to already be in UTC."""
  if moment.tzinfo is None:
    return moment.replace(tzinfo=timezone.utc)
  return moment.astimezone(timezone.utc)


def is_refresh_due(last_fetch: datetime | None, now: datetime) -> bool:
  """Decides whether stored data is stale relative to the trigger schedule."""
  if last_fetch is None:
    return True

  last = _as_utc(last_fetch)
  current = _as_utc(now)

  if last.date() != current.date():
    return True
  for trigger in (MORNING_TRIGGER, EVENING_TRIGGER):
    if current.hour >= trigger.hour and last.hour < trigger.hour:
      return True
  return False


def next_trigger(last_fetch: datetime | None, now: datetime) -> datetime:
  """Returns the instant of the next scheduled refresh.

  Without a previous fetch the refresh is due immediately, so ``now`` is
  returned. Otherwise the result is the soonest trigger strictly after ``now``.
  """
  current = _as_utc(now)
  if last_fetch is None:
    return current

  for day_offset in (0, 1):
    day = current.date() + timedelta(days=day_offset)
    for trigger in TRIGGERS:
      candidate = datetime.combine(day, trigger, tzinfo=timezone.utc)
      if candidate > current:
        return candidate
  # Unreachable: tomorrow's evening trigger is always after now.
  raise AssertionError("no trigger found within two days")


def seconds_until_next_trigger(last_fetch: datetime | None, now: datetime) -> float:
  """Seconds to wait before the next scheduled refresh, never negative."""
  return max(0.0, (next_trigger(last_fetch, now) - _as_utc(now)).total_seconds())

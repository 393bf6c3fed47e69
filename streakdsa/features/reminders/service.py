from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, List, Optional
from zoneinfo import ZoneInfo

from streakdsa.core.logging import log_event
from streakdsa.features.streaks import days as calendar
from streakdsa.features.streaks.store import DayStore
from streakdsa.models.streak import DayRecord, UserProfile

# Local hours at which a reminder may go out.
REMINDER_HOURS = (12, 18, 21, 23)

URGENCY_BY_HOUR = {
    12: "gentle",
    18: "reminder",
    21: "urgent",
    23: "final",
}


@dataclass(frozen=True)
class ReminderDecision:
    user_id: str
    status: str  # due | skipped | already_completed | frozen
    hour: Optional[int] = None
    urgency: Optional[str] = None
    reason: Optional[str] = None

    def as_dict(self) -> dict:
        data = {"user_id": self.user_id, "status": self.status}
        if self.hour is not None:
            data["hour"] = self.hour
        if self.urgency is not None:
            data["urgency"] = self.urgency
        if self.reason is not None:
            data["reason"] = self.reason
        return data


def reminder_due(profile: UserProfile, day_record: Optional[DayRecord], now: Optional[datetime] = None) -> ReminderDecision:
    """Decide whether `profile` should be nudged at `now`.

    `day_record` must be the record for the user's local today, if any.
    """
    if profile.pledge_days <= 0:
        return ReminderDecision(profile.user_id, "skipped", reason="No active pledge")

    hour = calendar.ensure_aware(now).astimezone(ZoneInfo(profile.timezone)).hour
    if hour not in REMINDER_HOURS:
        return ReminderDecision(profile.user_id, "skipped", hour=hour, reason=f"Hour {hour} not in schedule")

    if day_record is not None and day_record.completed:
        return ReminderDecision(profile.user_id, "already_completed", hour=hour)
    if day_record is not None and day_record.frozen:
        return ReminderDecision(profile.user_id, "frozen", hour=hour)

    return ReminderDecision(profile.user_id, "due", hour=hour, urgency=URGENCY_BY_HOUR[hour])


async def collect_due(store: DayStore, user_ids: Iterable[str], now: Optional[datetime] = None) -> List[ReminderDecision]:
    """Evaluate a batch of users for an hourly cron run. Unknown ids are skipped."""
    now = calendar.ensure_aware(now)
    decisions: List[ReminderDecision] = []
    for user_id in user_ids:
        profile = await store.get_user(user_id)
        if profile is None:
            decisions.append(ReminderDecision(user_id, "skipped", reason="Unknown user"))
            continue
        record = await store.get_day(user_id, calendar.today(profile.timezone, now))
        decisions.append(reminder_due(profile, record, now))

    due = sum(1 for d in decisions if d.status == "due")
    log_event("info", "reminders.collected", event_type="reminders.collected", extra={"processed": len(decisions), "due": due})
    return decisions

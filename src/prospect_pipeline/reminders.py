"""
Reminder Planning

Computes the reminder schedule a status change implies. Executing the
schedule (a delayed job queue) is outside this package; the orchestrator
reports the planned and cancelled reminders on its outcome.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import List, Sequence

from .states import ProspectStatus

KYC_REMINDER_DELAYS = (timedelta(hours=48), timedelta(days=5), timedelta(days=10))
ONBOARDING_REMINDER_DELAYS = (timedelta(hours=48), timedelta(hours=96), timedelta(hours=144))


class ReminderKind(str, Enum):
    """Reminder sequences, each tied to the one status it nudges out of."""
    KYC = "kyc_reminder"
    ONBOARDING = "onboarding_reminder"

    @property
    def target_status(self) -> ProspectStatus:
        if self == ReminderKind.KYC:
            return ProspectStatus.KYC_SENT
        return ProspectStatus.ACCOUNT_CREATED


@dataclass(frozen=True)
class ScheduledReminder:
    prospect_id: str
    kind: ReminderKind
    sequence: int
    due_at: datetime

    @property
    def job_name(self) -> str:
        """Queue job name, e.g. ``kyc_reminder_2``."""
        return f"{self.kind.value}_{self.sequence}"


def _plan(
    kind: ReminderKind,
    prospect_id: str,
    now: datetime,
    delays: Sequence[timedelta],
) -> List[ScheduledReminder]:
    return [
        ScheduledReminder(prospect_id, kind, sequence, now + delay)
        for sequence, delay in enumerate(delays, start=1)
    ]


def plan_kyc_reminders(
    prospect_id: str,
    now: datetime,
    delays: Sequence[timedelta] = KYC_REMINDER_DELAYS,
) -> List[ScheduledReminder]:
    """KYC reminders scheduled when the KYC link goes out."""
    return _plan(ReminderKind.KYC, prospect_id, now, delays)


def plan_onboarding_reminders(
    prospect_id: str,
    now: datetime,
    delays: Sequence[timedelta] = ONBOARDING_REMINDER_DELAYS,
) -> List[ScheduledReminder]:
    """Onboarding reminders scheduled once the investor account exists."""
    return _plan(ReminderKind.ONBOARDING, prospect_id, now, delays)


def reminders_to_plan(new_status: ProspectStatus) -> List[ReminderKind]:
    """Reminder sequences that start when a prospect enters ``new_status``."""
    return [kind for kind in ReminderKind if kind.target_status == new_status]


def reminders_to_cancel(
    previous_status: ProspectStatus,
    new_status: ProspectStatus,
) -> List[ReminderKind]:
    """
    Reminder sequences made stale by a status change.

    Leaving a reminder's target status cancels it; entering a terminal status
    cancels everything.
    """
    if new_status.is_terminal:
        return list(ReminderKind)
    return [
        kind for kind in ReminderKind
        if kind.target_status == previous_status and new_status != previous_status
    ]

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum


class Plan(Enum):
    FREE = "free"
    PRO = "pro"


def next_reset(now: datetime) -> datetime:
    """Return the next UTC midnight after `now`."""
    now = now.astimezone(timezone.utc)
    midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
    return midnight + timedelta(days=1)


@dataclass
class QuotaState:
    """Daily scan counter for one user and plan tier."""
    plan: Plan
    scans_used: int
    reset_date: datetime

    def ceiling_reached(self, limit: int) -> bool:
        return self.plan is Plan.FREE and self.scans_used >= limit

    def to_dict(self) -> dict:
        return {
            "plan": self.plan.value,
            "scansUsed": self.scans_used,
            "resetDate": self.reset_date.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "QuotaState":
        reset = datetime.fromisoformat(data["resetDate"])
        if reset.tzinfo is None:
            reset = reset.replace(tzinfo=timezone.utc)
        return cls(
            plan=Plan(data.get("plan", "free")),
            scans_used=int(data.get("scansUsed", 0)),
            reset_date=reset,
        )

    @classmethod
    def fresh(cls, now: datetime, plan: Plan = Plan.FREE) -> "QuotaState":
        return cls(plan=plan, scans_used=0, reset_date=next_reset(now))

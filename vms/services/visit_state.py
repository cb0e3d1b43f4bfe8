from dataclasses import dataclass
from datetime import date, timedelta
from typing import Optional

from vms.models import Standing, Visit, VisitState, VisitStatus

_STATUS_OVERRIDES = {
    VisitStatus.CANCELLED: VisitState.CANCELLED,
    VisitStatus.UNAPPROVED: VisitState.UNAPPROVED,
    VisitStatus.SUSPENDED: VisitState.SUSPENDED,
    VisitStatus.BANNED: VisitState.BANNED,
}

_STANDING_OVERRIDES = {
    Standing.SUSPENDED: VisitState.SUSPENDED,
    Standing.BANNED: VisitState.BANNED,
}


def derive_visit_state(
    visit: Visit, today: date, standing: Optional[Standing] = None
) -> VisitState:
    """Timeline state of a visit, unless its stored status or the person's standing overrides it."""
    if visit.status in _STATUS_OVERRIDES:
        return _STATUS_OVERRIDES[visit.status]
    if standing in _STANDING_OVERRIDES:
        return _STANDING_OVERRIDES[standing]

    if visit.sign_out_time is not None:
        return VisitState.COMPLETED
    if visit.visit_date > today:
        return VisitState.SCHEDULED
    if visit.visit_date < today:
        return VisitState.COMPLETED if visit.sign_in_time else VisitState.MISSED
    if visit.sign_in_time is not None:
        return VisitState.ACTIVE
    return VisitState.PENDING


def visit_duration(visit: Visit) -> Optional[timedelta]:
    if visit.sign_in_time is None or visit.sign_out_time is None:
        return None
    return visit.sign_out_time - visit.sign_in_time


def format_duration(duration: Optional[timedelta]) -> str:
    if duration is None:
        return "N/A"
    minutes = int(duration.total_seconds() // 60)
    hours, minutes = divmod(minutes, 60)
    if hours:
        return f"{hours}h {minutes}m"
    return f"{minutes}m"


@dataclass(frozen=True)
class VisitSummary:
    visit: Visit
    state: VisitState

    @classmethod
    def build(cls, visit: Visit, today: date) -> "VisitSummary":
        standing = visit.person.standing if visit.person else None
        return cls(visit, derive_visit_state(visit, today, standing))

    def to_dict(self):
        data = self.visit.to_dict()
        data["state"] = self.state.value
        data["duration"] = format_duration(visit_duration(self.visit))
        data["person"] = self.visit.person.to_dict() if self.visit.person else None
        data["host"] = self.visit.host.to_dict() if self.visit.host else None
        return data

"""Quota arithmetic shared by registration, recalculation and host balancing.

Nothing in here touches the database: callers pass in the visits they loaded.
"""

from collections import defaultdict
from dataclasses import dataclass
from datetime import date
from typing import Iterable, Optional

from vms.models import LimitKind, Visit, VisitPurpose, VisitStatus
from vms.settings import QuotaLimits


def counts_toward_quota(visit: Visit, today: date) -> bool:
    """Today and future visits count when approved, past ones only when attended."""
    if visit.status == VisitStatus.CANCELLED:
        return False
    if visit.purpose == VisitPurpose.GOLF_TOURNAMENT:
        return False
    if visit.visit_date >= today:
        return visit.status == VisitStatus.APPROVED
    return visit.sign_in_time is not None


@dataclass(frozen=True)
class QuotaCheck:
    monthly_count: int
    yearly_count: int
    breached: Optional[LimitKind] = None

    @property
    def exceeded(self) -> bool:
        return self.breached is not None


class QuotaCalculator:
    def __init__(self, limits: QuotaLimits):
        self.limits = limits

    def check(
        self,
        visits: Iterable[Visit],
        visit_date: date,
        today: date,
        exclude_visit_id: int = None,
    ) -> QuotaCheck:
        """Would one more visit on visit_date go over the monthly or yearly limit?"""
        monthly_count = 0
        yearly_count = 0
        for visit in visits:
            if exclude_visit_id is not None and visit.id == exclude_visit_id:
                continue
            if visit.visit_date.year != visit_date.year:
                continue
            if not counts_toward_quota(visit, today):
                continue
            yearly_count += 1
            if visit.visit_date.month == visit_date.month:
                monthly_count += 1

        breached = None
        if monthly_count >= self.limits.monthly:
            breached = LimitKind.MONTHLY
        elif yearly_count >= self.limits.yearly:
            breached = LimitKind.YEARLY
        return QuotaCheck(monthly_count, yearly_count, breached)


@dataclass(frozen=True)
class VisitVerdict:
    visit_id: int
    status: VisitStatus
    reason: Optional[str] = None

    @property
    def approved(self) -> bool:
        return self.status == VisitStatus.APPROVED


class QuotaReplay:
    """Running monthly and yearly tallies over a person's visits in date order.

    Every countable visit is added before it is judged. Past no-shows are
    taken back out right after, as are future visits that end up without
    approval, so neither holds a slot for the visits that follow.
    """

    def __init__(self, limits: QuotaLimits, today: date):
        self.limits = limits
        self.today = today
        self.monthly = defaultdict(int)
        self.yearly = defaultdict(int)

    def admit(self, visit: Visit) -> Optional[LimitKind]:
        """Count the visit and return the limit it breaches, if any."""
        if visit.purpose == VisitPurpose.GOLF_TOURNAMENT:
            return None
        month_key = (visit.visit_date.year, visit.visit_date.month)
        self.monthly[month_key] += 1
        self.yearly[visit.visit_date.year] += 1

        if self.monthly[month_key] > self.limits.monthly:
            return LimitKind.MONTHLY
        if self.yearly[visit.visit_date.year] > self.limits.yearly:
            return LimitKind.YEARLY
        return None

    def settle(self, visit: Visit, status: VisitStatus):
        """Release the slot again unless the visit really holds it."""
        if visit.purpose == VisitPurpose.GOLF_TOURNAMENT:
            return
        if visit.visit_date < self.today:
            holds_slot = visit.sign_in_time is not None
        else:
            holds_slot = status == VisitStatus.APPROVED
        if not holds_slot:
            self.monthly[(visit.visit_date.year, visit.visit_date.month)] -= 1
            self.yearly[visit.visit_date.year] -= 1

    def monthly_count(self, day: date) -> int:
        return self.monthly[(day.year, day.month)]

    def yearly_count(self, day: date) -> int:
        return self.yearly[day.year]

    def at_limit(self, day: date) -> Optional[LimitKind]:
        """Limit the running count for day's month or year has reached."""
        if self.monthly_count(day) >= self.limits.monthly:
            return LimitKind.MONTHLY
        if self.yearly_count(day) >= self.limits.yearly:
            return LimitKind.YEARLY
        return None

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import List

from vms.exceptions import NotFound
from vms.models import LimitKind, NotificationEvent, VisitStatus
from vms.services.quota_service import VisitVerdict

logger = logging.getLogger(__name__)


@dataclass
class RebalanceResult:
    host_id: int
    visit_date: date
    approved_count: int = 0
    unapproved_count: int = 0
    transitions: List = field(default_factory=list)


class HostCapacityService:
    """Keeps a host's approved guests per day under the daily cap, first registered first."""

    def __init__(self, ledger, outbox, clock, settings, recalculation):
        self.ledger = ledger
        self.outbox = outbox
        self.clock = clock
        self.settings = settings
        self.recalculation = recalculation

    def rebalance_host_day(self, host_id: int, visit_date: date) -> RebalanceResult:
        logger.info(f"Rebalancing host {host_id} on {visit_date}")
        with self.ledger.atomic():
            host = self.ledger.hosts.lock(host_id)
            if not host:
                raise NotFound(f"Host {host_id} not found")
            transitions = self._rebalance(host_id, visit_date)
            # Guests whose visit moved may have later visits to revisit
            transitions += self.recalculation._settle(
                [], person_ids=[t.person_id for t in transitions]
            )
            result = self._summarize(host_id, visit_date, transitions)
        logger.info(
            f"Host {host_id} on {visit_date}: {result.approved_count} approved, "
            f"{result.unapproved_count} unapproved, {len(result.transitions)} transition(s)"
        )
        return result

    def _rebalance(self, host_id: int, visit_date: date):
        """Walk the host's visits for the day in registration order, writing as it goes.

        A visit keeps its approval only while fewer than the cap are approved
        ahead of it, and never gains one its own quota or standing denies.
        """
        cap = self.settings.host_daily_limit
        approved = 0
        over_cap = 0
        newly_blocked = 0
        transitions = []

        for visit in self.ledger.visits.list_host_visits(host_id, visit_date):
            verdict = self.recalculation.verdict_for(visit)
            if verdict.approved:
                if approved >= cap:
                    verdict = VisitVerdict(
                        visit.id, VisitStatus.UNAPPROVED, LimitKind.HOST_DAILY.value
                    )
                    over_cap += 1
                else:
                    approved += 1

            transition = self.recalculation.apply_verdict(visit, verdict)
            if transition:
                transitions.append(transition)
                if verdict.reason == LimitKind.HOST_DAILY.value:
                    newly_blocked += 1

        if newly_blocked:
            host = self.ledger.hosts.find_by_id(host_id)
            logger.warning(
                f"Host {host_id} exceeded the daily limit ({cap}) on {visit_date}, "
                f"{over_cap} guest(s) pending approval"
            )
            self.outbox.queue_for_host(
                host,
                NotificationEvent.HOST_LIMIT_REACHED,
                {
                    "visit_date": visit_date,
                    "limit": cap,
                    "affected_count": over_cap,
                },
            )
        return transitions

    def _summarize(self, host_id, visit_date, transitions) -> RebalanceResult:
        visits = self.ledger.visits.list_host_visits(host_id, visit_date)
        return RebalanceResult(
            host_id=host_id,
            visit_date=visit_date,
            approved_count=sum(1 for v in visits if v.status == VisitStatus.APPROVED),
            unapproved_count=sum(
                1 for v in visits if v.status == VisitStatus.UNAPPROVED
            ),
            transitions=transitions,
        )

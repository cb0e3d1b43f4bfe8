import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, Iterable, List, Optional, Tuple

from vms.exceptions import NotFound
from vms.models import (
    LimitKind,
    NotificationEvent,
    Person,
    Standing,
    Visit,
    VisitStatus,
)
from vms.services.host_capacity_service import HostCapacityService
from vms.services.quota_service import QuotaReplay, VisitVerdict

logger = logging.getLogger(__name__)

_PINNED_STATUS = {
    Standing.SUSPENDED: VisitStatus.SUSPENDED,
    Standing.BANNED: VisitStatus.BANNED,
}


def pinned_status(standing: Standing) -> Optional[VisitStatus]:
    """Visit status forced by a person's standing, None while active."""
    return _PINNED_STATUS.get(standing)


@dataclass(frozen=True)
class StatusTransition:
    visit_id: int
    person_id: int
    visit_date: date
    old_status: VisitStatus
    new_status: VisitStatus
    host_id: Optional[int] = None
    courtesy: bool = False
    reason: Optional[str] = None

    @property
    def host_day(self) -> Optional[Tuple[int, date]]:
        """The host/date whose daily cap this visit takes part in."""
        if self.host_id is None or self.courtesy:
            return None
        return (self.host_id, self.visit_date)


@dataclass
class RecalculationResult:
    person_id: int
    transitions: List[StatusTransition] = field(default_factory=list)
    old_standing: Optional[Standing] = None
    new_standing: Optional[Standing] = None

    @property
    def standing_changed(self) -> bool:
        return self.old_standing != self.new_standing


class RecalculationService:
    # Upper bound on host-day rebalances triggered by a single write
    max_settle_passes = 50

    def __init__(self, ledger, outbox, clock, settings):
        self.ledger = ledger
        self.outbox = outbox
        self.clock = clock
        self.settings = settings
        self.host_capacity = HostCapacityService(ledger, outbox, clock, settings, self)

    def recalculate_person(self, person_id: int) -> RecalculationResult:
        logger.info(f"Recalculating visit statuses for person {person_id}")
        with self.ledger.atomic():
            [person] = self.lock_persons([person_id])
            if not person:
                raise NotFound(f"Person {person_id} not found")
            result = self._recalculate(person)
            self._settle(result.transitions)
        logger.info(
            f"Recalculated person {person_id}: {len(result.transitions)} transition(s), "
            f"standing {result.new_standing.value}"
        )
        return result

    def lock_persons(self, person_ids: Iterable[int]) -> List[Optional[Person]]:
        """Lock every host the persons have visits with, then the persons.

        Hosts always go before persons and each set is taken in id order, the
        same order registration and cancellation use.
        """
        person_ids = list(dict.fromkeys(person_ids))
        if not person_ids:
            return []
        for host_id in self.ledger.visits.list_host_ids(person_ids):
            self.ledger.hosts.lock(host_id)
        locked = {
            person_id: self.ledger.persons.lock(person_id)
            for person_id in sorted(person_ids)
        }
        return [locked[person_id] for person_id in person_ids]

    def evaluate(
        self,
        person: Person,
        visits: Optional[Iterable[Visit]] = None,
        skip_host_check_for: Optional[int] = None,
    ) -> Tuple[Dict[int, VisitVerdict], QuotaReplay]:
        """Replay a person's visits in date order and judge each one.

        Nothing is written. The host cap is judged against the approved
        visits registered ahead of each visit on the same host/date.
        """
        if visits is None:
            visits = self.ledger.visits.list_visits(person.id)
        replay = QuotaReplay(self.settings.limits_for(person.kind), self.clock.today())
        pinned = pinned_status(person.standing)
        verdicts = {}

        for visit in visits:
            breached = replay.admit(visit)
            if pinned:
                verdict = VisitVerdict(visit.id, pinned, person.standing.value)
            elif breached:
                verdict = VisitVerdict(visit.id, VisitStatus.UNAPPROVED, breached.value)
            elif (
                visit.host_id is not None
                and not visit.courtesy
                and visit.id != skip_host_check_for
                and self.ledger.visits.count_approved_ahead(visit)
                >= self.settings.host_daily_limit
            ):
                verdict = VisitVerdict(
                    visit.id, VisitStatus.UNAPPROVED, LimitKind.HOST_DAILY.value
                )
            else:
                verdict = VisitVerdict(visit.id, VisitStatus.APPROVED)
            replay.settle(visit, verdict.status)
            verdicts[visit.id] = verdict

        return verdicts, replay

    def verdict_for(self, visit: Visit) -> VisitVerdict:
        """Person-level verdict for one visit, leaving its host cap out."""
        verdicts, _ = self.evaluate(visit.person, skip_host_check_for=visit.id)
        return verdicts[visit.id]

    def _recalculate(
        self, person: Person, allow_auto_suspend: bool = True
    ) -> RecalculationResult:
        """Rewrite a person's visit statuses; the caller owns the transaction."""
        result = RecalculationResult(
            person_id=person.id,
            old_standing=person.standing,
            new_standing=person.standing,
        )
        visits = self.ledger.visits.list_visits(person.id)
        verdicts, replay = self.evaluate(person, visits)

        if allow_auto_suspend and person.standing == Standing.ACTIVE:
            reached = replay.at_limit(self.clock.today())
            if reached:
                self.ledger.persons.update_person_standing(
                    person, Standing.SUSPENDED, auto=True
                )
                result.new_standing = Standing.SUSPENDED
                logger.warning(
                    f"Person {person.id} reached the {reached.value} limit, suspended automatically"
                )
                self.outbox.queue_for_person(
                    person,
                    NotificationEvent.STANDING_CHANGED,
                    {
                        "old_standing": Standing.ACTIVE.value,
                        "new_standing": Standing.SUSPENDED.value,
                        "automatic": True,
                        "reason": reached.value,
                    },
                )
                verdicts, _ = self.evaluate(person, visits)

        for visit in visits:
            transition = self.apply_verdict(visit, verdicts[visit.id])
            if transition:
                result.transitions.append(transition)
        return result

    def apply_verdict(
        self, visit: Visit, verdict: VisitVerdict
    ) -> Optional[StatusTransition]:
        """Write the verdict if it changes the stored status and queue the notice."""
        if visit.status == verdict.status:
            return None
        old_status = visit.status
        self.ledger.visits.update_visit(visit, {"status": verdict.status})
        transition = StatusTransition(
            visit_id=visit.id,
            person_id=visit.person_id,
            visit_date=visit.visit_date,
            old_status=old_status,
            new_status=verdict.status,
            host_id=visit.host_id,
            courtesy=visit.courtesy,
            reason=verdict.reason,
        )
        logger.info(
            f"Visit {visit.id} on {visit.visit_date}: {old_status.value} -> {verdict.status.value}"
            + (f" ({verdict.reason})" if verdict.reason else "")
        )
        self.outbox.queue_for_person(
            visit.person,
            NotificationEvent.STATUS_CHANGED,
            {
                "visit_id": visit.id,
                "visit_date": visit.visit_date,
                "old_status": old_status.value,
                "new_status": verdict.status.value,
                "reason": verdict.reason,
                "host_id": visit.host_id,
            },
        )
        return transition

    def _settle(
        self,
        transitions: Iterable[StatusTransition],
        host_days: Iterable[Tuple[int, date]] = (),
        person_ids: Iterable[int] = (),
    ) -> List[StatusTransition]:
        """Rebalance host days touched by a write until no further status moves.

        A rebalance can change other people's visits, whose later visits are
        recalculated in turn; those may touch yet other host days.
        """
        queue = []

        def enqueue(day):
            if day is not None and day not in queue:
                queue.append(day)

        for day in host_days:
            enqueue(day)
        for transition in transitions:
            enqueue(transition.host_day)

        settled = []
        for person in self.lock_persons(person_ids):
            result = self._recalculate(person)
            settled.extend(result.transitions)
            for transition in result.transitions:
                enqueue(transition.host_day)

        passes = 0
        while queue:
            if passes >= self.max_settle_passes:
                logger.warning(
                    f"Stopped settling after {passes} host rebalances, {len(queue)} day(s) left for the next sweep"
                )
                break
            passes += 1
            host_id, visit_date = queue.pop(0)
            self.ledger.hosts.lock(host_id)
            changed = self.host_capacity._rebalance(host_id, visit_date)
            settled.extend(changed)

            for person in self.lock_persons(t.person_id for t in changed):
                result = self._recalculate(person)
                settled.extend(result.transitions)
                for transition in result.transitions:
                    enqueue(transition.host_day)
        return settled

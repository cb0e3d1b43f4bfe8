import logging
from dataclasses import dataclass, field
from datetime import date
from typing import List, Optional

from vms.exceptions import (
    AlreadySignedIn,
    AlreadySignedOut,
    DateMismatch,
    IneligibleStanding,
    NotFound,
    NotSignedIn,
    ValidationError,
)
from vms.models import NotificationEvent, Standing, Visit, VisitStatus
from vms.services.visit_state import format_duration, visit_duration

logger = logging.getLogger(__name__)


@dataclass
class CancellationResult:
    visit: Visit
    transitions: List = field(default_factory=list)


@dataclass
class AutoSignOutResult:
    visit_date: date
    visit_ids: List[int] = field(default_factory=list)
    transitions: List = field(default_factory=list)

    @property
    def signed_out_count(self) -> int:
        return len(self.visit_ids)


class VisitService:
    def __init__(self, ledger, outbox, clock, settings, recalculation):
        self.ledger = ledger
        self.outbox = outbox
        self.clock = clock
        self.settings = settings
        self.recalculation = recalculation

    def _get_visit(self, visit_id: int) -> Visit:
        visit = self.ledger.visits.find_by_id(visit_id)
        if not visit:
            raise NotFound(f"Visit {visit_id} not found")
        return visit

    def cancel_visit(self, visit_id: int) -> CancellationResult:
        logger.info(f"Cancelling visit {visit_id}")
        with self.ledger.atomic():
            visit = self._get_visit(visit_id)
            [person] = self.recalculation.lock_persons([visit.person_id])
            visit = self.ledger.visits.lock(visit_id)

            if visit.is_cancelled:
                raise ValidationError("Visit is already cancelled", ["visit_id"])

            old_status = visit.status
            self.ledger.visits.update_visit(visit, {"status": VisitStatus.CANCELLED})

            # The freed slot may let later visits of this person, and other
            # guests of the same host, through
            transitions = list(self.recalculation._recalculate(person).transitions)
            host_days = []
            if visit.host_id is not None and not visit.courtesy:
                host_days.append((visit.host_id, visit.visit_date))
            transitions += self.recalculation._settle(transitions, host_days)

            context = {
                "visit_id": visit.id,
                "visit_date": visit.visit_date,
                "old_status": old_status.value,
                "new_status": VisitStatus.CANCELLED.value,
                "host_id": visit.host_id,
            }
            self.outbox.queue_for_person(person, NotificationEvent.CANCELLED, context)

        logger.info(
            f"Cancelled visit {visit_id} ({old_status.value}), {len(transitions)} follow-up transition(s)"
        )
        return CancellationResult(visit=visit, transitions=transitions)

    def sign_in(self, visit_id: int, id_number: str) -> Visit:
        with self.ledger.atomic():
            visit = self._get_visit(visit_id)
            person = self.ledger.persons.lock(visit.person_id)
            visit = self.ledger.visits.lock(visit_id)

            id_number = (id_number or "").strip()
            if len(id_number) < self.settings.min_id_number_length:
                raise ValidationError(
                    f"ID number must be at least {self.settings.min_id_number_length} characters",
                    ["id_number"],
                )
            if visit.sign_in_time is not None:
                raise AlreadySignedIn()
            if person.standing in (Standing.SUSPENDED, Standing.BANNED):
                logger.warning(
                    f"Rejected sign-in for visit {visit_id}, person {person.id} is {person.standing.value}"
                )
                raise IneligibleStanding(
                    f"Access is restricted, status is {person.standing.value}"
                )
            today = self.clock.today()
            if visit.visit_date != today:
                logger.warning(
                    f"Rejected sign-in for visit {visit_id} dated {visit.visit_date} on {today}"
                )
                raise DateMismatch()

            if id_number != person.id_number:
                if self.ledger.persons.exists_with(
                    person.kind, "id_number", id_number, exclude_id=person.id
                ):
                    raise ValidationError(
                        "ID number is already registered to someone else", ["id_number"]
                    )
                logger.info(
                    f"Updating ID number on record for person {person.id} at sign-in"
                )
                self.ledger.persons.update_person(person, {"id_number": id_number})

            now = self.clock.now()
            self.ledger.visits.update_visit(visit, {"sign_in_time": now})
            self.outbox.queue_for_person(
                person,
                NotificationEvent.SIGNED_IN,
                {
                    "visit_id": visit.id,
                    "visit_date": visit.visit_date,
                    "sign_in_time": now,
                    "host_id": visit.host_id,
                },
            )

        logger.info(f"Person {person.id} signed in for visit {visit_id} at {now}")
        return visit

    def sign_out(self, visit_id: int) -> Visit:
        with self.ledger.atomic():
            visit = self._get_visit(visit_id)
            person = self.ledger.persons.lock(visit.person_id)
            visit = self.ledger.visits.lock(visit_id)

            if visit.sign_in_time is None:
                raise NotSignedIn()
            if visit.sign_out_time is not None:
                raise AlreadySignedOut()

            now = max(self.clock.now(), visit.sign_in_time)
            self.ledger.visits.update_visit(visit, {"sign_out_time": now})
            duration = visit_duration(visit)
            self.outbox.queue_for_person(
                person,
                NotificationEvent.SIGNED_OUT,
                {
                    "visit_id": visit.id,
                    "visit_date": visit.visit_date,
                    "sign_in_time": visit.sign_in_time,
                    "sign_out_time": now,
                    "duration": format_duration(duration),
                    "duration_seconds": int(duration.total_seconds()),
                },
            )

        logger.info(
            f"Person {person.id} signed out of visit {visit_id} after {format_duration(duration)}"
        )
        return visit

    def auto_sign_out_all(self, visit_date: Optional[date] = None) -> AutoSignOutResult:
        """Close every visit on the date still signed in, at 23:59:59, then recalculate."""
        visit_date = visit_date or self.clock.today()
        result = AutoSignOutResult(visit_date=visit_date)
        sign_out_time = self.clock.end_of_day(visit_date)

        with self.ledger.atomic():
            person_ids = []
            for visit in self.ledger.visits.list_open_sign_ins(visit_date):
                self.ledger.visits.update_visit(visit, {"sign_out_time": sign_out_time})
                result.visit_ids.append(visit.id)
                if visit.person_id not in person_ids:
                    person_ids.append(visit.person_id)

            result.transitions = self.recalculation._settle([], person_ids=person_ids)

        logger.info(
            f"Auto signed out {result.signed_out_count} visit(s) on {visit_date}, "
            f"recalculated {len(person_ids)} person(s)"
        )
        return result

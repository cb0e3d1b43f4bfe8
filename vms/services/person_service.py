import logging
from typing import Union

from vms.exceptions import NotFound, PersonHasVisits, ValidationError
from vms.models import NotificationEvent, Person, Standing, VisitStatus

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = (
    "first_name",
    "last_name",
    "phone",
    "email",
    "id_number",
    "reciprocating_member_number",
    "receive_sms",
    "receive_email",
)
UNIQUE_FIELDS = ("id_number", "phone", "email")


class PersonService:
    def __init__(self, ledger, outbox, clock, settings, recalculation):
        self.ledger = ledger
        self.outbox = outbox
        self.clock = clock
        self.settings = settings
        self.recalculation = recalculation

    def _lock_person(self, person_id: int) -> Person:
        [person] = self.recalculation.lock_persons([person_id])
        if not person:
            raise NotFound(f"Person {person_id} not found")
        return person

    def set_standing(self, person_id: int, standing: Union[Standing, str]):
        """Administrative standing change. Manual suspensions survive the periodic resets."""
        if not isinstance(standing, Standing):
            try:
                standing = Standing(standing)
            except ValueError:
                raise ValidationError(f"Unknown standing: {standing}", ["standing"])

        with self.ledger.atomic():
            person = self._lock_person(person_id)
            old_standing = person.standing
            self.ledger.persons.update_person_standing(person, standing, auto=False)

            result = self.recalculation._recalculate(person, allow_auto_suspend=False)
            result.old_standing = old_standing
            result.transitions += self.recalculation._settle(result.transitions)

            if old_standing != standing:
                self.outbox.queue_for_person(
                    person,
                    NotificationEvent.STANDING_CHANGED,
                    {
                        "old_standing": old_standing.value,
                        "new_standing": standing.value,
                        "automatic": False,
                    },
                )

        logger.info(
            f"Standing of person {person_id} set to {standing.value} (was {old_standing.value}), "
            f"{len(result.transitions)} visit transition(s)"
        )
        return result

    def update_person(self, person_id: int, **fields) -> Person:
        unknown = sorted(set(fields) - set(UPDATABLE_FIELDS))
        if unknown:
            raise ValidationError(
                [f"{f} cannot be updated" for f in unknown], unknown
            )

        with self.ledger.atomic():
            person = self._lock_person(person_id)

            errors = []
            error_fields = []
            for name in UNIQUE_FIELDS:
                value = fields.get(name)
                if not value or value == getattr(person, name):
                    continue
                if self.ledger.persons.exists_with(person.kind, name, value, exclude_id=person.id):
                    errors.append(f"{name.replace('_', ' ').capitalize()} is already in use")
                    error_fields.append(name)
            id_number = fields.get("id_number")
            if id_number and len(id_number) < self.settings.min_id_number_length:
                errors.append(
                    f"ID number must be at least {self.settings.min_id_number_length} characters"
                )
                error_fields.append("id_number")
            for name in ("first_name", "last_name"):
                if name in fields and not fields[name]:
                    errors.append(f"{name.replace('_', ' ').capitalize()} cannot be empty")
                    error_fields.append(name)
            if errors:
                raise ValidationError(errors, error_fields)

            self.ledger.persons.update_person(person, fields)

        logger.info(f"Updated person {person_id}: {', '.join(sorted(fields))}")
        return person

    def delete_person(self, person_id: int) -> int:
        """Delete a guest with all their visits. Other kinds must have none."""
        with self.ledger.atomic():
            person = self._lock_person(person_id)
            visits = self.ledger.visits.list_visits(person.id, include_cancelled=True)

            if not person.is_guest and visits:
                logger.warning(
                    f"Refused to delete {person.kind.value} {person_id} with {len(visits)} visit(s)"
                )
                raise PersonHasVisits()

            host_days = []
            for visit in visits:
                if (
                    visit.status == VisitStatus.APPROVED
                    and visit.host_id is not None
                    and not visit.courtesy
                    and (visit.host_id, visit.visit_date) not in host_days
                ):
                    host_days.append((visit.host_id, visit.visit_date))

            deleted = self.ledger.persons.delete_person_cascade(person)
            # Approved slots held by the guest go back to the host's queue
            self.recalculation._settle([], host_days)

        logger.info(f"Deleted person {person_id} and {deleted} visit(s)")
        return deleted

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional, Union

from vms.exceptions import (
    DuplicateVisit,
    InvalidHost,
    MissingFieldsError,
    PastDate,
    ValidationError,
)
from vms.models import (
    LimitKind,
    NotificationEvent,
    Person,
    PersonKind,
    Standing,
    Visit,
    VisitPurpose,
    VisitStatus,
)
from vms.services.quota_service import QuotaCalculator
from vms.services.recalculation_service import pinned_status

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PersonRef:
    """Who a visit is for. Phone or id number finds an existing person."""

    kind: PersonKind = PersonKind.GUEST
    phone: Optional[str] = None
    id_number: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    reciprocating_member_number: Optional[str] = None
    receive_sms: Optional[bool] = None
    receive_email: Optional[bool] = None

    def profile(self) -> dict:
        fields = {
            "first_name": self.first_name,
            "last_name": self.last_name,
            "phone": self.phone,
            "email": self.email,
            "id_number": self.id_number,
            "reciprocating_member_number": self.reciprocating_member_number,
            "receive_sms": self.receive_sms,
            "receive_email": self.receive_email,
        }
        return {k: v for k, v in fields.items() if v is not None}


@dataclass
class RegistrationResult:
    visit: Visit
    person: Person
    status: VisitStatus
    reason: Optional[str] = None
    person_created: bool = False
    reused_cancelled: bool = False


def parse_visit_date(value: Union[date, str, None]) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not value:
        raise MissingFieldsError(["visit_date"])
    try:
        return date.fromisoformat(str(value).strip())
    except ValueError:
        raise ValidationError("Visit date must be a valid date (YYYY-MM-DD)", ["visit_date"])


class RegistrationService:
    def __init__(self, ledger, outbox, clock, settings):
        self.ledger = ledger
        self.outbox = outbox
        self.clock = clock
        self.settings = settings

    def register_visit(
        self,
        person_ref: PersonRef,
        visit_date,
        host_id: Optional[int] = None,
        courtesy: bool = False,
        purpose: Optional[VisitPurpose] = None,
    ) -> RegistrationResult:
        visit_date = parse_visit_date(visit_date)
        purpose = self._validate(person_ref, host_id, courtesy, purpose)

        today = self.clock.today()
        if visit_date < today:
            raise PastDate()

        logger.info(
            f"Registering {person_ref.kind.value} visit on {visit_date} "
            f"(host {host_id}, courtesy {courtesy}, purpose {purpose.value})"
        )

        with self.ledger.atomic():
            host = None
            if host_id is not None:
                host = self.ledger.hosts.lock(host_id)
                if not host or not host.active:
                    logger.warning(f"Rejected registration, host {host_id} missing or inactive")
                    raise InvalidHost()

            person, created = self._lookup_or_create(person_ref)

            existing = self.ledger.visits.find_for_person_on_date(person.id, visit_date)
            if existing and not existing.is_cancelled:
                logger.warning(f"Duplicate visit for person {person.id} on {visit_date}")
                raise DuplicateVisit()

            status, reason = self._preliminary_status(
                person, host, visit_date, today, courtesy, purpose, existing
            )

            attrs = {
                "person_id": person.id,
                "host_id": host.id if host else None,
                "visit_date": visit_date,
                "status": status,
                "purpose": purpose,
                "courtesy": courtesy,
                "sign_in_time": None,
                "sign_out_time": None,
                "registered_at": self.clock.now(),
            }
            if existing:
                visit = self.ledger.visits.update_visit(existing, attrs)
            else:
                visit = self.ledger.visits.insert_visit(attrs)

            context = {
                "visit_id": visit.id,
                "visit_date": visit_date,
                "status": status.value,
                "reason": reason,
                "courtesy": courtesy,
                "purpose": purpose.value,
            }
            if host:
                context["host_id"] = host.id
                context["host_name"] = host.full_name
            self.outbox.queue_for_person(person, NotificationEvent.REGISTERED, context)

        logger.info(
            f"Registered visit {visit.id} for person {person.id} on {visit_date}: {status.value}"
            + (f" ({reason})" if reason else "")
        )
        return RegistrationResult(
            visit=visit,
            person=person,
            status=status,
            reason=reason,
            person_created=created,
            reused_cancelled=existing is not None,
        )

    def _validate(self, person_ref, host_id, courtesy, purpose) -> VisitPurpose:
        if not isinstance(person_ref.kind, PersonKind):
            raise ValidationError("Unknown person kind", ["kind"])
        if not person_ref.phone and not person_ref.id_number:
            raise ValidationError("Phone number or ID number is required", ["phone", "id_number"])
        if person_ref.id_number and len(person_ref.id_number) < self.settings.min_id_number_length:
            raise ValidationError(
                f"ID number must be at least {self.settings.min_id_number_length} characters",
                ["id_number"],
            )

        if purpose is None:
            purpose = VisitPurpose.CASUAL
        elif not isinstance(purpose, VisitPurpose):
            try:
                purpose = VisitPurpose(purpose)
            except ValueError:
                raise ValidationError("Unknown visit purpose", ["purpose"])

        if person_ref.kind == PersonKind.GUEST:
            if purpose != VisitPurpose.CASUAL:
                raise ValidationError("Guest visits are always casual visits", ["purpose"])
            if host_id is None and not courtesy:
                raise MissingFieldsError(["host_id"])
        else:
            if host_id is not None:
                raise ValidationError("Reciprocating member visits have no host", ["host_id"])
            if courtesy:
                raise ValidationError("Courtesy visits apply to guests only", ["courtesy"])
        return purpose

    def _lookup_or_create(self, person_ref: PersonRef):
        persons = self.ledger.persons
        person = persons.find_person(
            person_ref.kind, phone=person_ref.phone, id_number=person_ref.id_number
        )
        profile = person_ref.profile()

        if person is None:
            missing = [f for f in ("first_name", "last_name") if not profile.get(f)]
            if missing:
                raise MissingFieldsError(missing)
            profile.update(kind=person_ref.kind, standing=Standing.ACTIVE)
            person = persons.create_person(profile)
            logger.info(f"Created {person_ref.kind.value} {person.id} ({person.full_name})")
            return person, True

        person = persons.lock(person.id)
        if "id_number" in profile and profile["id_number"] != person.id_number:
            if persons.exists_with(person.kind, "id_number", profile["id_number"], exclude_id=person.id):
                raise ValidationError("ID number is already registered to someone else", ["id_number"])
        if "phone" in profile and profile["phone"] != person.phone:
            if persons.exists_with(person.kind, "phone", profile["phone"], exclude_id=person.id):
                # Keep the stored number rather than steal another person's
                profile.pop("phone")
        persons.update_person(person, profile)
        return person, False

    def _preliminary_status(self, person, host, visit_date, today, courtesy, purpose, existing):
        pinned = pinned_status(person.standing)
        if pinned:
            return pinned, person.standing.value

        if purpose != VisitPurpose.GOLF_TOURNAMENT:
            year_visits = self.ledger.visits.list_visits(
                person.id,
                start=date(visit_date.year, 1, 1),
                end=date(visit_date.year, 12, 31),
            )
            check = QuotaCalculator(self.settings.limits_for(person.kind)).check(
                year_visits,
                visit_date,
                today,
                exclude_visit_id=existing.id if existing else None,
            )
            if check.exceeded:
                logger.info(
                    f"Person {person.id} over the {check.breached.value} limit for {visit_date} "
                    f"(month {check.monthly_count}, year {check.yearly_count})"
                )
                return VisitStatus.UNAPPROVED, check.breached.value

        if host and not courtesy:
            approved = self.ledger.visits.count_approved_for_host(host.id, visit_date)
            if approved >= self.settings.host_daily_limit:
                logger.info(
                    f"Host {host.id} already has {approved} approved guest(s) on {visit_date}"
                )
                return VisitStatus.UNAPPROVED, LimitKind.HOST_DAILY.value

        return VisitStatus.APPROVED, None

"""Wires the admission services together around one session.

Everything the services need is passed in; nothing is looked up globally,
so tests and jobs can run several engines side by side.
"""

import logging
from datetime import date
from typing import Optional

from vms.models import VisitPurpose
from vms.repositories import Ledger
from vms.services.notification_service import (
    CompositeDispatcher,
    Dispatcher,
    LoggingDispatcher,
    NotificationOutbox,
)
from vms.services.person_service import PersonService
from vms.services.recalculation_service import RecalculationService
from vms.services.registration_service import PersonRef, RegistrationService
from vms.services.scheduler_service import SchedulerService
from vms.services.visit_service import VisitService
from vms.services.visit_state import VisitSummary
from vms.settings import AdmissionSettings
from vms.utils.clock import Clock
from vms.utils.email import MailDispatcher

logger = logging.getLogger(__name__)


def build_dispatcher(config) -> Dispatcher:
    backends = [
        name.strip()
        for name in config.get("NOTIFICATION_BACKEND", "log").split(",")
        if name.strip()
    ]
    dispatchers = []
    for name in backends:
        if name == "log":
            dispatchers.append(LoggingDispatcher())
        elif name == "mail":
            dispatchers.append(MailDispatcher())
        else:
            raise ValueError(f"Unknown notification backend: {name}")
    if len(dispatchers) == 1:
        return dispatchers[0]
    return CompositeDispatcher(dispatchers)


class AdmissionEngine:
    def __init__(
        self,
        session,
        dispatcher: Optional[Dispatcher] = None,
        clock: Optional[Clock] = None,
        settings: Optional[AdmissionSettings] = None,
    ):
        self.settings = settings or AdmissionSettings()
        self.clock = clock or Clock(self.settings.timezone)
        self.ledger = Ledger(session)
        self.outbox = NotificationOutbox(dispatcher or LoggingDispatcher(), self.ledger)

        deps = (self.ledger, self.outbox, self.clock, self.settings)
        self.recalculation = RecalculationService(*deps)
        self.host_capacity = self.recalculation.host_capacity
        self.registration = RegistrationService(*deps)
        self.visits = VisitService(*deps, self.recalculation)
        self.persons = PersonService(*deps, self.recalculation)
        self.scheduler = SchedulerService(*deps, self.recalculation, self.visits)

    @classmethod
    def from_app(cls, app=None, dispatcher=None, clock=None) -> "AdmissionEngine":
        """Engine bound to the Flask-SQLAlchemy session of the given (or current) app."""
        from flask import current_app

        from vms.extensions import db

        app = app or current_app._get_current_object()
        settings = AdmissionSettings.from_config(app.config)
        return cls(
            db.session,
            dispatcher=dispatcher or build_dispatcher(app.config),
            clock=clock or Clock(settings.timezone),
            settings=settings,
        )

    # Registration

    def register_visit(
        self,
        person_ref: PersonRef,
        visit_date,
        host_id: int = None,
        courtesy: bool = False,
        purpose: VisitPurpose = None,
    ):
        return self.registration.register_visit(
            person_ref, visit_date, host_id=host_id, courtesy=courtesy, purpose=purpose
        )

    # Recalculation and host capacity

    def recalculate_person(self, person_id: int):
        return self.recalculation.recalculate_person(person_id)

    def rebalance_host_day(self, host_id: int, visit_date: date):
        return self.host_capacity.rebalance_host_day(host_id, visit_date)

    # Visit lifecycle

    def cancel_visit(self, visit_id: int):
        return self.visits.cancel_visit(visit_id)

    def sign_in(self, visit_id: int, id_number: str):
        return self.visits.sign_in(visit_id, id_number)

    def sign_out(self, visit_id: int):
        return self.visits.sign_out(visit_id)

    def auto_sign_out_all(self, visit_date: date = None):
        return self.visits.auto_sign_out_all(visit_date)

    def visit_summary(self, visit_id: int) -> VisitSummary:
        visit = self.visits._get_visit(visit_id)
        return VisitSummary.build(visit, self.clock.today())

    # People

    def create_host(self, **attrs):
        with self.ledger.atomic():
            host = self.ledger.hosts.create_host(attrs)
        logger.info(f"Created host {host.id} ({host.full_name})")
        return host

    def set_standing(self, person_id: int, standing):
        return self.persons.set_standing(person_id, standing)

    def update_person(self, person_id: int, **fields):
        return self.persons.update_person(person_id, **fields)

    def delete_person(self, person_id: int) -> int:
        return self.persons.delete_person(person_id)

    # Scheduled jobs

    def midnight_sweep(self, visit_date: date = None):
        return self.scheduler.midnight_sweep(visit_date)

    def reset_monthly_limits(self):
        return self.scheduler.reset_monthly_limits()

    def reset_yearly_limits(self):
        return self.scheduler.reset_yearly_limits()

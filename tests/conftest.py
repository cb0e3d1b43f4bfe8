"""
Pytest configuration and fixtures.
"""
import os
import sys
import tempfile
from datetime import date, datetime, time, timedelta

import pytest

# Add project root to Python path
sys.path.insert(0, os.path.abspath(os.path.dirname(__file__) + '/..'))

from vms.models import Person, PersonKind, Standing, Visit, VisitPurpose, VisitStatus
from vms.services.notification_service import Dispatcher
from vms.settings import AdmissionSettings
from vms.utils.clock import Clock


class FixedClock(Clock):
    """Clock that only moves when a test moves it."""

    def __init__(self, current: datetime):
        super().__init__("UTC")
        self.current = current

    def now(self):
        return self.current

    def set(self, current: datetime):
        self.current = current


class RecordingDispatcher(Dispatcher):
    def __init__(self):
        self.sent = []

    def notify(self, recipient, event, context):
        self.sent.append((recipient, event, context))

    def events(self, event=None):
        return [s for s in self.sent if event is None or s[1] == event]

    def clear(self):
        self.sent.clear()


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    from vms import create_app

    db_fd, db_path = tempfile.mkstemp(suffix='.db')
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': f'sqlite:///{db_path}',
        'NOTIFICATION_BACKEND': 'log',
        'CLUB_TIMEZONE': 'UTC',
    })
    yield app

    os.close(db_fd)
    os.unlink(db_path)


@pytest.fixture(scope='function', autouse=True)
def clean_db(app):
    """Clean database between tests."""
    with app.app_context():
        from vms import db
        # Drop all tables and recreate them to ensure a clean slate
        db.drop_all()
        db.create_all()
    yield


@pytest.fixture
def app_context(app):
    with app.app_context():
        yield
        from vms import db
        db.session.remove()


@pytest.fixture
def clock():
    return FixedClock(datetime(2024, 5, 20, 9, 0))


@pytest.fixture
def dispatcher():
    return RecordingDispatcher()


@pytest.fixture
def settings():
    return AdmissionSettings(timezone='UTC')


@pytest.fixture
def engine(app_context, dispatcher, clock, settings):
    from vms import db
    from vms.engine import AdmissionEngine

    return AdmissionEngine(db.session, dispatcher=dispatcher, clock=clock, settings=settings)


@pytest.fixture
def make_host(engine):
    counter = {'n': 0}

    def _make_host(**attrs):
        counter['n'] += 1
        attrs.setdefault('first_name', f'Host{counter["n"]}')
        attrs.setdefault('last_name', 'Member')
        attrs.setdefault('phone', f'+2547000000{counter["n"]:02d}')
        attrs.setdefault('email', f'host{counter["n"]}@example.com')
        return engine.create_host(**attrs)

    return _make_host


@pytest.fixture
def make_person(engine):
    counter = {'n': 0}

    def _make_person(kind=PersonKind.GUEST, **attrs):
        counter['n'] += 1
        attrs.setdefault('first_name', f'Person{counter["n"]}')
        attrs.setdefault('last_name', 'Visitor')
        attrs.setdefault('phone', f'+2547110000{counter["n"]:02d}')
        attrs.setdefault('id_number', f'{30000000 + counter["n"]}')
        attrs.setdefault('standing', Standing.ACTIVE)
        with engine.ledger.atomic():
            person = engine.ledger.persons.create_person(dict(kind=kind, **attrs))
        return person

    return _make_person


@pytest.fixture
def add_visit(engine):
    """Write a visit row directly, bypassing registration checks."""
    seq = {'n': 0}

    def _add_visit(person, visit_date, status=VisitStatus.APPROVED, host=None,
                   signed_in=False, signed_out=False, courtesy=False,
                   purpose=VisitPurpose.CASUAL, registered_at=None):
        seq['n'] += 1
        if isinstance(visit_date, str):
            visit_date = date.fromisoformat(visit_date)
        attrs = {
            'person_id': person.id,
            'host_id': host.id if host else None,
            'visit_date': visit_date,
            'status': status,
            'purpose': purpose,
            'courtesy': courtesy,
            'registered_at': registered_at or datetime(2024, 1, 1, 8, 0) + timedelta(seconds=seq['n']),
        }
        if signed_in:
            attrs['sign_in_time'] = datetime.combine(visit_date, time(10, 0))
        if signed_out:
            attrs['sign_out_time'] = datetime.combine(visit_date, time(12, 30))
        with engine.ledger.atomic():
            visit = engine.ledger.visits.insert_visit(attrs)
        return visit

    return _add_visit


@pytest.fixture
def statuses(engine):
    """Stored status per visit date for a person, cancelled rows included."""

    def _statuses(person):
        visits = engine.ledger.visits.list_visits(person.id, include_cancelled=True)
        return {v.visit_date.isoformat(): v.status for v in visits}

    return _statuses

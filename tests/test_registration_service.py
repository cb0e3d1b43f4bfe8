from datetime import date, datetime

import pytest

from vms.exceptions import (
    DuplicateVisit,
    InvalidHost,
    MissingFieldsError,
    PastDate,
    ValidationError,
)
from vms.models import (
    NotificationEvent,
    Person,
    PersonKind,
    Standing,
    VisitPurpose,
    VisitStatus,
)
from vms.services.registration_service import PersonRef


def guest_ref(n=1, **kwargs):
    kwargs.setdefault('first_name', f'Guest{n}')
    kwargs.setdefault('last_name', 'Visitor')
    kwargs.setdefault('phone', f'+2547990000{n:02d}')
    return PersonRef(**kwargs)


def test_register_creates_guest_and_approves(engine, make_host, dispatcher):
    host = make_host()

    result = engine.register_visit(guest_ref(id_number='12345678'), '2024-05-25', host_id=host.id)

    assert result.status == VisitStatus.APPROVED
    assert result.person_created
    assert result.person.standing == Standing.ACTIVE
    assert result.visit.host_id == host.id
    assert result.visit.visit_date == date(2024, 5, 25)

    [(recipient, event, context)] = dispatcher.sent
    assert event == NotificationEvent.REGISTERED
    assert recipient.id == result.person.id
    assert context['status'] == 'approved'
    assert context['host_name'] == host.full_name


def test_register_finds_existing_person_by_phone(engine, make_host, make_person):
    host = make_host()
    person = make_person(phone='+254712345678', first_name='Old')

    result = engine.register_visit(
        PersonRef(phone='+254712345678', first_name='New', last_name='Name'),
        date(2024, 5, 25),
        host_id=host.id,
    )

    assert not result.person_created
    assert result.person.id == person.id
    assert result.person.first_name == 'New'


def test_visit_on_today_is_accepted(engine, make_host):
    result = engine.register_visit(guest_ref(), '2024-05-20', host_id=make_host().id)

    assert result.status == VisitStatus.APPROVED


@pytest.mark.parametrize('kwargs, error', [
    ({'visit_date': '2024-05-19'}, PastDate),
    ({'visit_date': '2024-13-01'}, ValidationError),
    ({'visit_date': 'next tuesday'}, ValidationError),
    ({'visit_date': None}, MissingFieldsError),
])
def test_bad_visit_dates_are_rejected(engine, make_host, kwargs, error):
    with pytest.raises(error):
        engine.register_visit(guest_ref(), host_id=make_host().id, **kwargs)


def test_phone_or_id_number_required(engine, make_host):
    with pytest.raises(ValidationError) as exc:
        engine.register_visit(
            PersonRef(first_name='No', last_name='Contact'), '2024-05-25', host_id=make_host().id
        )

    assert set(exc.value.fields) == {'phone', 'id_number'}


def test_names_required_for_new_person(engine, make_host):
    with pytest.raises(MissingFieldsError) as exc:
        engine.register_visit(PersonRef(phone='+254700111222'), '2024-05-25', host_id=make_host().id)

    assert exc.value.fields == ['first_name', 'last_name']


def test_short_id_number_rejected(engine, make_host):
    with pytest.raises(ValidationError):
        engine.register_visit(guest_ref(id_number='123'), '2024-05-25', host_id=make_host().id)


def test_guest_needs_host_unless_courtesy(engine):
    with pytest.raises(MissingFieldsError):
        engine.register_visit(guest_ref(), '2024-05-25')

    result = engine.register_visit(guest_ref(), '2024-05-25', courtesy=True)

    assert result.status == VisitStatus.APPROVED
    assert result.visit.courtesy
    assert result.visit.host_id is None


def test_unknown_or_inactive_host_rejected(engine, make_host):
    inactive = make_host(active=False)

    with pytest.raises(InvalidHost):
        engine.register_visit(guest_ref(), '2024-05-25', host_id=9999)
    with pytest.raises(InvalidHost):
        engine.register_visit(guest_ref(), '2024-05-25', host_id=inactive.id)

    assert engine.ledger.session.query(Person).count() == 0


def test_duplicate_visit_rejected_and_rolled_back(engine, make_host, dispatcher):
    host = make_host()
    first = engine.register_visit(guest_ref(first_name='Ann'), '2024-05-25', host_id=host.id)
    dispatcher.clear()

    with pytest.raises(DuplicateVisit):
        engine.register_visit(guest_ref(first_name='Changed'), '2024-05-25', host_id=host.id)

    person = engine.ledger.persons.find_by_id(first.person.id)
    assert person.first_name == 'Ann'
    assert dispatcher.sent == []


def test_cancelled_row_is_reused(engine, make_host):
    host = make_host()
    first = engine.register_visit(guest_ref(), '2024-05-25', host_id=host.id)
    engine.cancel_visit(first.visit.id)

    again = engine.register_visit(guest_ref(), '2024-05-25', host_id=host.id)

    assert again.reused_cancelled
    assert again.visit.id == first.visit.id
    assert again.status == VisitStatus.APPROVED


def test_scenario_a_fifth_monthly_visit_is_unapproved(engine, clock, make_host, make_person, add_visit):
    clock.set(datetime(2024, 3, 20, 9, 0))
    host = make_host()
    guest = make_person(phone='+254755000001')
    for day in ('2024-03-01', '2024-03-05', '2024-03-10', '2024-03-15'):
        add_visit(guest, day, host=host, signed_in=True, signed_out=True)

    result = engine.register_visit(PersonRef(phone='+254755000001'), '2024-03-25', host_id=host.id)

    assert result.status == VisitStatus.UNAPPROVED
    assert result.reason == 'monthly'


def test_yearly_limit_depends_on_person_kind(engine, make_person, make_host, add_visit):
    host = make_host()
    guest = make_person(phone='+254755000002')
    member = make_person(kind=PersonKind.RECIPROCATING_MEMBER, phone='+254755000003')
    for month in (1, 2, 3, 4):
        for day in (2, 9, 16):
            add_visit(guest, date(2024, month, day), host=host, signed_in=True)
            add_visit(member, date(2024, month, day), signed_in=True)

    guest_result = engine.register_visit(
        PersonRef(phone='+254755000002'), '2024-06-10', host_id=host.id
    )
    member_result = engine.register_visit(
        PersonRef(kind=PersonKind.RECIPROCATING_MEMBER, phone='+254755000003'), '2024-06-10'
    )

    assert (guest_result.status, guest_result.reason) == (VisitStatus.UNAPPROVED, 'yearly')
    assert member_result.status == VisitStatus.APPROVED


def test_host_daily_cap_and_courtesy_exemption(engine, make_host, settings):
    host = make_host()
    results = [
        engine.register_visit(guest_ref(n), '2024-06-01', host_id=host.id)
        for n in range(1, 6)
    ]

    assert [r.status for r in results[:4]] == [VisitStatus.APPROVED] * 4
    assert (results[4].status, results[4].reason) == (VisitStatus.UNAPPROVED, 'host_daily')
    assert engine.ledger.visits.count_approved_for_host(host.id, date(2024, 6, 1)) == settings.host_daily_limit

    courtesy = engine.register_visit(guest_ref(6), '2024-06-01', host_id=host.id, courtesy=True)

    assert courtesy.status == VisitStatus.APPROVED
    assert engine.ledger.visits.count_approved_for_host(host.id, date(2024, 6, 1)) == 4


@pytest.mark.parametrize('standing, expected', [
    (Standing.SUSPENDED, VisitStatus.SUSPENDED),
    (Standing.BANNED, VisitStatus.BANNED),
])
def test_standing_overrides_preliminary_status(engine, make_host, make_person, standing, expected):
    make_person(phone='+254755000009', standing=standing)

    result = engine.register_visit(PersonRef(phone='+254755000009'), '2024-05-25', host_id=make_host().id)

    assert result.status == expected


def test_reciprocating_member_rules(engine, make_host):
    member = PersonRef(
        kind=PersonKind.RECIPROCATING_MEMBER,
        first_name='Rec',
        last_name='Member',
        phone='+254766000001',
        reciprocating_member_number='RM-1',
    )

    with pytest.raises(ValidationError):
        engine.register_visit(member, '2024-05-25', host_id=make_host().id)
    with pytest.raises(ValidationError):
        engine.register_visit(guest_ref(), '2024-05-25', courtesy=True,
                              purpose=VisitPurpose.GOLF_TOURNAMENT)

    result = engine.register_visit(member, '2024-05-25')

    assert result.status == VisitStatus.APPROVED
    assert result.visit.host_id is None


def test_golf_tournaments_never_count(engine, make_person, add_visit):
    member = make_person(kind=PersonKind.RECIPROCATING_MEMBER, phone='+254766000002')
    for day in ('2024-05-21', '2024-05-22', '2024-05-23', '2024-05-24'):
        add_visit(member, day)
    ref = PersonRef(kind=PersonKind.RECIPROCATING_MEMBER, phone='+254766000002')

    casual = engine.register_visit(ref, '2024-05-27')
    golf = engine.register_visit(ref, '2024-05-28', purpose='golf_tournament')

    assert casual.status == VisitStatus.UNAPPROVED
    assert golf.status == VisitStatus.APPROVED
    assert golf.visit.purpose == VisitPurpose.GOLF_TOURNAMENT

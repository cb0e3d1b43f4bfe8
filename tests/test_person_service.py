import pytest

from vms.exceptions import NotFound, PersonHasVisits, ValidationError
from vms.models import NotificationEvent, Person, PersonKind, Standing, Visit, VisitStatus


def test_set_standing_banned_pins_visits(engine, make_person, add_visit, statuses, dispatcher):
    guest = make_person()
    add_visit(guest, '2024-05-25')
    add_visit(guest, '2024-06-02', status=VisitStatus.UNAPPROVED)

    result = engine.set_standing(guest.id, 'banned')

    assert result.old_standing == Standing.ACTIVE
    assert set(statuses(guest).values()) == {VisitStatus.BANNED}
    [(_, _, context)] = dispatcher.events(NotificationEvent.STANDING_CHANGED)
    assert context == {'old_standing': 'active', 'new_standing': 'banned', 'automatic': False}


def test_reactivation_by_admin_is_not_undone(engine, make_person, add_visit, statuses):
    guest = make_person(standing=Standing.SUSPENDED)
    for day in ('2024-05-21', '2024-05-22', '2024-05-23', '2024-05-24'):
        add_visit(guest, day, status=VisitStatus.SUSPENDED)

    engine.set_standing(guest.id, Standing.ACTIVE)

    person = engine.ledger.persons.find_by_id(guest.id)
    assert person.standing == Standing.ACTIVE
    assert not person.auto_suspended
    assert set(statuses(guest).values()) == {VisitStatus.APPROVED}


def test_manual_suspension_is_not_auto(engine, make_person):
    guest = make_person()

    engine.set_standing(guest.id, Standing.SUSPENDED)

    person = engine.ledger.persons.find_by_id(guest.id)
    assert person.standing == Standing.SUSPENDED
    assert not person.auto_suspended


def test_set_standing_rejects_unknown_value(engine, make_person):
    with pytest.raises(ValidationError):
        engine.set_standing(make_person().id, 'vip')
    with pytest.raises(NotFound):
        engine.set_standing(404, Standing.ACTIVE)


def test_update_person(engine, make_person):
    guest = make_person()

    engine.update_person(guest.id, email='new@example.com', receive_sms=False)

    person = engine.ledger.persons.find_by_id(guest.id)
    assert person.email == 'new@example.com'
    assert person.receive_sms is False


def test_update_person_checks_uniqueness_within_kind(engine, make_person):
    make_person(phone='+254700999001', id_number='99999999')
    guest = make_person()
    member = make_person(kind=PersonKind.RECIPROCATING_MEMBER)

    with pytest.raises(ValidationError) as exc:
        engine.update_person(guest.id, phone='+254700999001', id_number='99999999')
    assert set(exc.value.fields) == {'phone', 'id_number'}

    engine.update_person(member.id, id_number='99999999')
    assert engine.ledger.persons.find_by_id(member.id).id_number == '99999999'


def test_update_person_rejects_unknown_fields(engine, make_person):
    with pytest.raises(ValidationError):
        engine.update_person(make_person().id, standing='active')


def test_delete_guest_cascades_and_frees_host_slot(engine, make_host, make_person, add_visit):
    host = make_host()
    leaving = make_person()
    add_visit(leaving, '2024-06-01', host=host)
    add_visit(leaving, '2024-06-08', host=host)
    for _ in range(3):
        add_visit(make_person(), '2024-06-01', host=host)
    waiting = add_visit(make_person(), '2024-06-01', host=host, status=VisitStatus.UNAPPROVED)

    deleted = engine.delete_person(leaving.id)

    assert deleted == 2
    assert engine.ledger.session.get(Person, leaving.id) is None
    assert engine.ledger.visits.count_for_person(leaving.id) == 0
    assert engine.ledger.visits.find_by_id(waiting.id).status == VisitStatus.APPROVED


def test_delete_member_with_visits_is_refused(engine, make_person, add_visit):
    member = make_person(kind=PersonKind.RECIPROCATING_MEMBER)
    add_visit(member, '2024-06-01')

    with pytest.raises(PersonHasVisits):
        engine.delete_person(member.id)

    assert engine.ledger.session.query(Visit).count() == 1

    lonely = make_person(kind=PersonKind.RECIPROCATING_MEMBER)
    assert engine.delete_person(lonely.id) == 0

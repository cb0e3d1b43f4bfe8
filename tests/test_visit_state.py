from datetime import date, datetime, timedelta

import pytest

from vms.models import Standing, Visit, VisitState, VisitStatus
from vms.services.visit_state import derive_visit_state, format_duration, visit_duration

TODAY = date(2024, 5, 20)


def visit(day, status=VisitStatus.APPROVED, sign_in=None, sign_out=None):
    return Visit(visit_date=day, status=status, sign_in_time=sign_in, sign_out_time=sign_out)


@pytest.mark.parametrize('v, expected', [
    (visit(date(2024, 5, 21)), VisitState.SCHEDULED),
    (visit(TODAY), VisitState.PENDING),
    (visit(TODAY, sign_in=datetime(2024, 5, 20, 9)), VisitState.ACTIVE),
    (visit(TODAY, sign_in=datetime(2024, 5, 20, 9), sign_out=datetime(2024, 5, 20, 11)), VisitState.COMPLETED),
    (visit(date(2024, 5, 1), sign_in=datetime(2024, 5, 1, 9)), VisitState.COMPLETED),
    (visit(date(2024, 5, 1)), VisitState.MISSED),
    (visit(date(2024, 5, 21), status=VisitStatus.CANCELLED), VisitState.CANCELLED),
    (visit(date(2024, 5, 1), status=VisitStatus.UNAPPROVED), VisitState.UNAPPROVED),
    (visit(TODAY, status=VisitStatus.BANNED), VisitState.BANNED),
])
def test_derive_visit_state(v, expected):
    assert derive_visit_state(v, TODAY) == expected


def test_standing_overrides_timeline_state():
    v = visit(date(2024, 5, 21))

    assert derive_visit_state(v, TODAY, Standing.SUSPENDED) == VisitState.SUSPENDED
    assert derive_visit_state(v, TODAY, Standing.ACTIVE) == VisitState.SCHEDULED


def test_stored_status_wins_over_standing():
    v = visit(date(2024, 5, 21), status=VisitStatus.CANCELLED)

    assert derive_visit_state(v, TODAY, Standing.BANNED) == VisitState.CANCELLED


def test_visit_duration():
    v = visit(TODAY, sign_in=datetime(2024, 5, 20, 9, 15), sign_out=datetime(2024, 5, 20, 10, 5))

    assert visit_duration(v) == timedelta(minutes=50)
    assert format_duration(visit_duration(v)) == '50m'
    assert visit_duration(visit(TODAY)) is None
    assert format_duration(None) == 'N/A'

from datetime import date
from typing import List, Optional

from sqlalchemy import and_, func, or_

from vms.models import Visit, VisitStatus


class VisitRepository:
    def __init__(self, session):
        self.session = session

    def find_by_id(self, visit_id: int) -> Optional[Visit]:
        return self.session.query(Visit).filter_by(id=visit_id).first()

    def lock(self, visit_id: int) -> Optional[Visit]:
        return (
            self.session.query(Visit)
            .filter_by(id=visit_id)
            .with_for_update()
            .populate_existing()
            .first()
        )

    def find_for_person_on_date(self, person_id: int, visit_date: date) -> Optional[Visit]:
        """Any row for the person and date, cancelled ones included."""
        return (
            self.session.query(Visit)
            .filter_by(person_id=person_id, visit_date=visit_date)
            .first()
        )

    def list_visits(
        self,
        person_id: int,
        start: date = None,
        end: date = None,
        include_cancelled: bool = False,
    ) -> List[Visit]:
        """A person's visits in replay order: date, then registration order."""
        query = self.session.query(Visit).filter(Visit.person_id == person_id)
        if start is not None:
            query = query.filter(Visit.visit_date >= start)
        if end is not None:
            query = query.filter(Visit.visit_date <= end)
        if not include_cancelled:
            query = query.filter(Visit.status != VisitStatus.CANCELLED)
        return query.order_by(
            Visit.visit_date.asc(), Visit.registered_at.asc(), Visit.id.asc()
        ).all()

    def list_host_visits(self, host_id: int, visit_date: date) -> List[Visit]:
        """Non-cancelled, non-courtesy visits of a host on one date, first registered first."""
        return (
            self.session.query(Visit)
            .filter(
                Visit.host_id == host_id,
                Visit.visit_date == visit_date,
                Visit.status != VisitStatus.CANCELLED,
                Visit.courtesy.is_(False),
            )
            .order_by(Visit.registered_at.asc(), Visit.id.asc())
            .all()
        )

    def count_approved_for_host(self, host_id: int, visit_date: date) -> int:
        return (
            self.session.query(func.count(Visit.id))
            .filter(
                Visit.host_id == host_id,
                Visit.visit_date == visit_date,
                Visit.status == VisitStatus.APPROVED,
                Visit.courtesy.is_(False),
            )
            .scalar()
        )

    def count_approved_ahead(self, visit: Visit) -> int:
        """Approved visits registered before this one with the same host and date."""
        return (
            self.session.query(func.count(Visit.id))
            .filter(
                Visit.host_id == visit.host_id,
                Visit.visit_date == visit.visit_date,
                Visit.status == VisitStatus.APPROVED,
                Visit.courtesy.is_(False),
                Visit.id != visit.id,
                or_(
                    Visit.registered_at < visit.registered_at,
                    and_(
                        Visit.registered_at == visit.registered_at,
                        Visit.id < visit.id,
                    ),
                ),
            )
            .scalar()
        )

    def list_host_ids(self, person_ids: List[int]) -> List[int]:
        """Hosts named on any of the persons' visits, in id order."""
        rows = (
            self.session.query(Visit.host_id)
            .filter(Visit.person_id.in_(person_ids), Visit.host_id.isnot(None))
            .distinct()
            .order_by(Visit.host_id.asc())
            .all()
        )
        return [host_id for (host_id,) in rows]

    def count_for_person(self, person_id: int) -> int:
        return self.session.query(Visit).filter_by(person_id=person_id).count()

    def list_open_sign_ins(self, visit_date: date) -> List[Visit]:
        return (
            self.session.query(Visit)
            .filter(
                Visit.visit_date == visit_date,
                Visit.sign_in_time.isnot(None),
                Visit.sign_out_time.is_(None),
            )
            .order_by(Visit.id.asc())
            .all()
        )

    def insert_visit(self, attrs: dict) -> Visit:
        visit = Visit(**attrs)
        self.session.add(visit)
        self.session.flush()
        return visit

    def update_visit(self, visit: Visit, attrs: dict) -> Visit:
        for key, value in attrs.items():
            if hasattr(visit, key):
                setattr(visit, key, value)
        self.session.flush()
        return visit

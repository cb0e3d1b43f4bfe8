from typing import List, Optional

from vms.models import Person, PersonKind, Standing, Visit, VisitStatus


class PersonRepository:
    def __init__(self, session):
        self.session = session

    def find_by_id(self, person_id: int) -> Optional[Person]:
        return self.session.query(Person).filter_by(id=person_id).first()

    def lock(self, person_id: int) -> Optional[Person]:
        """Load a person row under a row-level lock for check-then-write sequences."""
        return (
            self.session.query(Person)
            .filter_by(id=person_id)
            .with_for_update()
            .populate_existing()
            .first()
        )

    def find_by_id_number(self, kind: PersonKind, id_number: str) -> Optional[Person]:
        return (
            self.session.query(Person)
            .filter_by(kind=kind, id_number=id_number)
            .first()
        )

    def find_by_phone(self, kind: PersonKind, phone: str) -> Optional[Person]:
        return (
            self.session.query(Person)
            .filter_by(kind=kind, phone=phone)
            .order_by(Person.id.asc())
            .first()
        )

    def find_person(
        self, kind: PersonKind, phone: str = None, id_number: str = None
    ) -> Optional[Person]:
        """The id document wins over the phone number when both are given."""
        if id_number:
            person = self.find_by_id_number(kind, id_number)
            if person:
                return person
        if phone:
            return self.find_by_phone(kind, phone)
        return None

    def exists_with(
        self, kind: PersonKind, field: str, value, exclude_id: int = None
    ) -> bool:
        query = self.session.query(Person).filter(
            Person.kind == kind, getattr(Person, field) == value
        )
        if exclude_id is not None:
            query = query.filter(Person.id != exclude_id)
        return query.first() is not None

    def create_person(self, attrs: dict) -> Person:
        person = Person(**attrs)
        self.session.add(person)
        self.session.flush()
        return person

    def update_person(self, person: Person, attrs: dict) -> Person:
        for key, value in attrs.items():
            if hasattr(person, key):
                setattr(person, key, value)
        self.session.flush()
        return person

    def update_person_standing(
        self, person: Person, standing: Standing, auto: bool = False
    ) -> Person:
        person.standing = standing
        person.auto_suspended = auto and standing == Standing.SUSPENDED
        self.session.flush()
        return person

    def delete_person_cascade(self, person: Person) -> int:
        """Delete a person together with every visit row; returns the visit count."""
        visit_count = self.session.query(Visit).filter_by(person_id=person.id).count()
        self.session.delete(person)
        self.session.flush()
        return visit_count

    def list_auto_suspended(self) -> List[Person]:
        return (
            self.session.query(Person)
            .filter(
                Person.standing == Standing.SUSPENDED,
                Person.auto_suspended.is_(True),
            )
            .order_by(Person.id.asc())
            .all()
        )

    def list_ids_with_visits(self) -> List[int]:
        rows = (
            self.session.query(Visit.person_id)
            .filter(Visit.status != VisitStatus.CANCELLED)
            .distinct()
            .order_by(Visit.person_id.asc())
            .all()
        )
        return [row[0] for row in rows]

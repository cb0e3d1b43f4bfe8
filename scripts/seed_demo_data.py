import sys
import os
from datetime import timedelta

sys.path.append(
    os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
)  # relative imports

from vms import create_app, db
from vms.engine import AdmissionEngine
from vms.exceptions import VMSError
from vms.models import Host, PersonKind, VisitPurpose
from vms.services.registration_service import PersonRef

HOSTS = [
    {"first_name": "Grace", "last_name": "Wanjiru", "phone": "+254700000001", "email": "grace@example.com"},
    {"first_name": "Peter", "last_name": "Otieno", "phone": "+254700000002", "email": "peter@example.com"},
]

GUESTS = [
    PersonRef(first_name="Amina", last_name="Hassan", phone="+254711000001", id_number="10000001"),
    PersonRef(first_name="Brian", last_name="Kamau", phone="+254711000002", id_number="10000002"),
    PersonRef(first_name="Cynthia", last_name="Mutua", phone="+254711000003", id_number="10000003"),
    PersonRef(first_name="David", last_name="Njoroge", phone="+254711000004", id_number="10000004"),
    PersonRef(first_name="Esther", last_name="Chebet", phone="+254711000005", id_number="10000005"),
]

MEMBERS = [
    PersonRef(
        kind=PersonKind.RECIPROCATING_MEMBER,
        first_name="Frank",
        last_name="Odhiambo",
        phone="+254722000001",
        id_number="20000001",
        reciprocating_member_number="RM-0001",
    ),
]


def seed_demo_data():
    """Hosts, a handful of guests registered against them and one reciprocating member"""
    app = create_app()
    with app.app_context():
        db.create_all()
        engine = AdmissionEngine.from_app()
        tomorrow = engine.clock.today() + timedelta(days=1)

        print("Creating hosts...")
        hosts = []
        for attrs in HOSTS:
            host = Host.query.filter_by(phone=attrs["phone"]).first()
            if not host:
                with engine.ledger.atomic():
                    host = engine.ledger.hosts.create_host(attrs)
            hosts.append(host)
            print(f"  {host.full_name} (id {host.id})")

        # Five guests on one host: the fifth lands over the daily cap
        print(f"Registering guests for {tomorrow}...")
        for guest in GUESTS:
            try:
                result = engine.register_visit(guest, tomorrow, host_id=hosts[0].id)
                print(f"  {guest.first_name}: {result.status.value}")
            except VMSError as e:
                print(f"  {guest.first_name}: {e.message}")

        print("Registering reciprocating members...")
        for member in MEMBERS:
            for purpose in (VisitPurpose.CASUAL, VisitPurpose.GOLF_TOURNAMENT):
                day = tomorrow if purpose == VisitPurpose.CASUAL else tomorrow + timedelta(days=1)
                try:
                    result = engine.register_visit(member, day, purpose=purpose)
                    print(f"  {member.first_name} {purpose.value} on {day}: {result.status.value}")
                except VMSError as e:
                    print(f"  {member.first_name} on {day}: {e.message}")

        print("Demo data ready!")

if __name__ == "__main__":
    seed_demo_data()

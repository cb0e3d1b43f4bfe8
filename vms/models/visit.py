from vms.extensions import db
from .enums import VisitPurpose, VisitStatus


class Visit(db.Model):
    __tablename__ = "visits"

    id = db.Column(db.Integer, primary_key=True)
    person_id = db.Column(
        db.Integer, db.ForeignKey("persons.id", ondelete="CASCADE"), nullable=False
    )
    host_id = db.Column(db.Integer, db.ForeignKey("hosts.id"), nullable=True)
    visit_date = db.Column(db.Date, nullable=False)
    status = db.Column(db.Enum(VisitStatus), nullable=False)
    purpose = db.Column(
        db.Enum(VisitPurpose), nullable=False, default=VisitPurpose.CASUAL
    )
    courtesy = db.Column(db.Boolean, nullable=False, default=False)
    sign_in_time = db.Column(db.DateTime, nullable=True)
    sign_out_time = db.Column(db.DateTime, nullable=True)
    # Queue position for the host daily cap; reset when a cancelled row is reused
    registered_at = db.Column(db.DateTime, nullable=False)
    updated_at = db.Column(
        db.TIMESTAMP(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )
    created_at = db.Column(
        db.TIMESTAMP(timezone=True), nullable=False, server_default=db.func.now()
    )

    person = db.relationship("Person", back_populates="visits")
    host = db.relationship("Host", back_populates="visits")

    # One row per person and date; cancelled rows are reused by later registrations
    __table_args__ = (
        db.UniqueConstraint("person_id", "visit_date", name="uq_visit_person_date"),
        db.CheckConstraint(
            "sign_out_time IS NULL OR sign_in_time IS NOT NULL",
            name="ck_visit_sign_out_requires_sign_in",
        ),
        db.Index("ix_visits_host_date", "host_id", "visit_date"),
    )

    @property
    def is_cancelled(self) -> bool:
        return self.status == VisitStatus.CANCELLED

    def to_dict(self):
        return {
            "id": self.id,
            "person_id": self.person_id,
            "host_id": self.host_id,
            "visit_date": self.visit_date.isoformat() if self.visit_date else None,
            "status": self.status.value if self.status else None,
            "purpose": self.purpose.value if self.purpose else None,
            "courtesy": self.courtesy,
            "sign_in_time": self.sign_in_time.isoformat() if self.sign_in_time else None,
            "sign_out_time": (
                self.sign_out_time.isoformat() if self.sign_out_time else None
            ),
            "registered_at": (
                self.registered_at.isoformat() if self.registered_at else None
            ),
        }

    def __repr__(self):
        return (
            f"Visit("
            f"id={self.id}, "
            f"person_id={self.person_id}, "
            f"host_id={self.host_id}, "
            f"visit_date={self.visit_date}, "
            f"status={self.status}, "
            f"sign_in_time={self.sign_in_time}, "
            f"sign_out_time={self.sign_out_time}"
            f")"
        )

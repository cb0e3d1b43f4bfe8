from vms.extensions import db
from .enums import PersonKind, Standing


class Person(db.Model):
    """A guest or a reciprocating member; both share the same quota machinery."""

    __tablename__ = "persons"

    id = db.Column(db.Integer, primary_key=True)
    kind = db.Column(db.Enum(PersonKind), nullable=False, index=True)
    first_name = db.Column(db.String(50), nullable=False)
    last_name = db.Column(db.String(50), nullable=False, default="")
    phone = db.Column(db.String(20), nullable=True, index=True)
    email = db.Column(db.String(255), nullable=True)
    id_number = db.Column(db.String(50), nullable=True)
    reciprocating_member_number = db.Column(db.String(50), nullable=True)
    standing = db.Column(db.Enum(Standing), nullable=False, default=Standing.ACTIVE)
    # Set when the recalculation engine suspended the person, cleared by manual changes
    auto_suspended = db.Column(db.Boolean, nullable=False, default=False)
    receive_sms = db.Column(db.Boolean, nullable=False, default=True)
    receive_email = db.Column(db.Boolean, nullable=False, default=True)
    updated_at = db.Column(
        db.TIMESTAMP(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )
    created_at = db.Column(
        db.TIMESTAMP(timezone=True), nullable=False, server_default=db.func.now()
    )

    visits = db.relationship(
        "Visit",
        back_populates="person",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        db.UniqueConstraint("kind", "id_number", name="uq_person_kind_id_number"),
        db.UniqueConstraint("kind", "phone", name="uq_person_kind_phone"),
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def is_guest(self) -> bool:
        return self.kind == PersonKind.GUEST

    def to_dict(self):
        return {
            "id": self.id,
            "kind": self.kind.value if self.kind else None,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "phone": self.phone,
            "email": self.email,
            "id_number": self.id_number,
            "reciprocating_member_number": self.reciprocating_member_number,
            "standing": self.standing.value if self.standing else None,
            "auto_suspended": self.auto_suspended,
            "receive_sms": self.receive_sms,
            "receive_email": self.receive_email,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self):
        return (
            f"Person("
            f"id={self.id}, "
            f"kind={self.kind}, "
            f"name='{self.full_name}', "
            f"standing={self.standing}"
            f")"
        )

from vms.extensions import db


class Host(db.Model):
    """Club member who sponsors guest visits."""

    __tablename__ = "hosts"

    id = db.Column(db.Integer, primary_key=True)
    first_name = db.Column(db.String(50), nullable=False)
    last_name = db.Column(db.String(50), nullable=False, default="")
    phone = db.Column(db.String(20), nullable=True)
    email = db.Column(db.String(255), nullable=True)
    active = db.Column(db.Boolean, nullable=False, default=True)
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

    visits = db.relationship("Visit", back_populates="host")

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def to_dict(self):
        return {
            "id": self.id,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "phone": self.phone,
            "email": self.email,
            "active": self.active,
        }

    def __repr__(self):
        return f"<Host id={self.id} name='{self.full_name}' active={self.active}>"

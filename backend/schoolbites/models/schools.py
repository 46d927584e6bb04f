from __future__ import annotations

from ..extensions import db
from ..time_utils import to_iso_date, to_utc_z, utcnow


BREAD_TYPES = ("white", "brown", "none")


class School(db.Model):
    __tablename__ = "schools"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False, unique=True)

    def __repr__(self) -> str:
        return f"<School id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name}


class Child(db.Model):
    """
    A child a parent orders for. The child's school decides which off-days
    apply to an order.

    Default sandwich preferences are copied onto each order at creation.
    """
    __tablename__ = "children"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    parent_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    school_id = db.Column(db.Integer, db.ForeignKey("schools.id"), nullable=False, index=True)

    first_name = db.Column(db.String(64), nullable=False)
    last_name = db.Column(db.String(64), nullable=False)

    allergies = db.Column(db.String(500), nullable=False, default="")
    bread_type = db.Column(db.String(16), nullable=False, default="none")
    crust = db.Column(db.Boolean, nullable=False, default=False)
    butter = db.Column(db.Boolean, nullable=False, default=False)

    parent = db.relationship("User", backref=db.backref("children", lazy=True))
    school = db.relationship("School", backref=db.backref("children", lazy=True))

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "parent_id": self.parent_id,
            "school_id": self.school_id,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "preferences": {
                "allergies": self.allergies,
                "bread_type": self.bread_type,
                "crust": self.crust,
                "butter": self.butter,
            },
        }


class OffDay(db.Model):
    """
    School-scoped calendar override: no deliveries (and no billing) that day.

    One row per (school, date). Created and deleted by admins, never edited.
    """
    __tablename__ = "off_days"
    __table_args__ = (
        db.UniqueConstraint("school_id", "date", name="uq_off_days_school_date"),
        db.Index("ix_off_days_school_date", "school_id", "date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    school_id = db.Column(db.Integer, db.ForeignKey("schools.id"), nullable=False)
    date = db.Column(db.Date, nullable=False)
    reason = db.Column(db.String(255), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    school = db.relationship("School", backref=db.backref("off_days", lazy=True))

    def __repr__(self) -> str:
        return f"<OffDay school_id={self.school_id} date={self.date}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "school_id": self.school_id,
            "date": to_iso_date(self.date),
            "reason": self.reason,
            "created_at": to_utc_z(self.created_at),
        }

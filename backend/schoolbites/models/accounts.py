from __future__ import annotations

from ..extensions import db
from ..time_utils import to_iso_date, to_utc_z, utcnow


class User(db.Model):
    """
    Parent account.

    Identity is owned by the upstream identity provider; `external_auth_id`
    holds its subject so requests can be mapped to a row.

    ACCESS WINDOW: `access_expires_at` is the last calendar day (inclusive)
    the parent may place orders. NULL or a past date means no access.
    It only changes as a side effect of access-fee payment reconciliation.
    """
    __tablename__ = "users"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    external_auth_id = db.Column(db.String(128), nullable=False, unique=True, index=True)

    email = db.Column(db.String(255), nullable=False)
    first_name = db.Column(db.String(64), nullable=False)
    last_name = db.Column(db.String(64), nullable=False)
    phone_number = db.Column(db.String(32), nullable=True)

    is_admin = db.Column(db.Boolean, nullable=False, default=False)

    stripe_customer_id = db.Column(db.String(128), nullable=True, unique=True)
    access_expires_at = db.Column(db.Date, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<User id={self.id} email={self.email!r}>"

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "email": self.email,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "phone_number": self.phone_number,
            "is_admin": self.is_admin,
            "access_expires_at": to_iso_date(self.access_expires_at),
            "created_at": to_utc_z(self.created_at),
        }

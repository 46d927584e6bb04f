from __future__ import annotations

from ..extensions import db
from ..time_utils import to_iso_date, to_utc_z, utcnow


class Order(db.Model):
    """
    Sandwich order for one child over a day, a week or a month.

    PRICING: `price` (cents) and `billable_days` are computed once at
    submission and frozen. Off-days added afterwards do not reprice it.

    STATUS:
    - payment_status: pending, paid, refunded, failed, cancelled
      (driven by payment reconciliation only)
    - delivery_status: ordered, in-progress, delivered, cancelled
      (driven by the daily delivery scan)
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.CheckConstraint("start_date <= end_date", name="ck_orders_date_range"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    parent_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    child_id = db.Column(db.Integer, db.ForeignKey("children.id"), nullable=False, index=True)

    order_type = db.Column(db.String(16), nullable=False)
    start_date = db.Column(db.Date, nullable=False, index=True)
    end_date = db.Column(db.Date, nullable=False, index=True)

    price = db.Column(db.Integer, nullable=False)  # cents
    billable_days = db.Column(db.Integer, nullable=False)

    # Preferences snapshot
    notes = db.Column(db.String(1000), nullable=False, default="")
    allergies = db.Column(db.String(500), nullable=False, default="")
    bread_type = db.Column(db.String(16), nullable=False, default="none")
    crust = db.Column(db.Boolean, nullable=False, default=False)
    butter = db.Column(db.Boolean, nullable=False, default=False)

    payment_status = db.Column(db.String(16), nullable=False, default="pending", index=True)
    delivery_status = db.Column(db.String(16), nullable=False, default="ordered", index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    parent = db.relationship("User", backref=db.backref("orders", lazy=True))
    child = db.relationship("Child", backref=db.backref("orders", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Order id={self.id} type={self.order_type} {self.start_date}..{self.end_date}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "parent_id": self.parent_id,
            "child_id": self.child_id,
            "order_type": self.order_type,
            "start_date": to_iso_date(self.start_date),
            "end_date": to_iso_date(self.end_date),
            "price": self.price,
            "billable_days": self.billable_days,
            "preferences": {
                "notes": self.notes,
                "allergies": self.allergies,
                "bread_type": self.bread_type,
                "crust": self.crust,
                "butter": self.butter,
            },
            "payment_status": self.payment_status,
            "delivery_status": self.delivery_status,
            "created_at": to_utc_z(self.created_at),
        }

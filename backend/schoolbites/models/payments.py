from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow


class Payment(db.Model):
    """
    One checkout attempt at the payment provider.

    TYPES:
    - access-fee: annual access fee, drives User.access_expires_at
    - order: pays one Order (order_id is required for this type)

    LIFECYCLE: created "pending" when the checkout session is created,
    then moved by reconciliation (redirect page or webhook). Never deleted.
    `checkout_session_id` is unique; lookups treat duplicates as corruption.
    """
    __tablename__ = "payments"
    __table_args__ = (
        db.Index("ix_payments_user_type_status", "user_id", "type", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=True, index=True)

    checkout_session_id = db.Column(db.String(255), nullable=False, unique=True, index=True)
    payment_intent_id = db.Column(db.String(255), nullable=True)

    amount = db.Column(db.Integer, nullable=False)  # cents
    currency = db.Column(db.String(8), nullable=False, default="eur")

    type = db.Column(db.String(16), nullable=False)
    status = db.Column(db.String(16), nullable=False, default="pending", index=True)
    webhook_processed = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    user = db.relationship("User", backref=db.backref("payments", lazy=True))
    order = db.relationship("Order", backref=db.backref("payments", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Payment id={self.id} type={self.type} status={self.status}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "order_id": self.order_id,
            "checkout_session_id": self.checkout_session_id,
            "payment_intent_id": self.payment_intent_id,
            "amount": self.amount,
            "currency": self.currency,
            "type": self.type,
            "status": self.status,
            "webhook_processed": self.webhook_processed,
            "created_at": to_utc_z(self.created_at),
        }

from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow


METHOD_CASH = "cash"
METHOD_BANK = "bank"
METHOD_MOMO = "momo"
PAYMENT_METHODS = {METHOD_CASH, METHOD_BANK, METHOD_MOMO}


class PaymentTransaction(db.Model):
    """
    Immutable record of money received from a customer.

    Every change to Customer.debt_cents caused by a payment has exactly one row
    here. order_id is set when the payment was applied against an order.
    """
    __tablename__ = "payment_transactions"
    __table_args__ = (
        db.UniqueConstraint("request_key", name="uq_payment_tx_request_key"),
        db.Index("ix_payment_tx_customer_occurred", "customer_id", "occurred_at"),
        db.CheckConstraint("amount_cents > 0", name="ck_payment_tx_amount_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=True, index=True)

    amount_cents = db.Column(db.Integer, nullable=False)
    method = db.Column(db.String(16), nullable=False)

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    created_by_user_id = db.Column(db.Integer, nullable=True)

    # Client-supplied idempotency key; a retried payment returns the first row
    request_key = db.Column(db.String(64), nullable=True)

    customer = db.relationship("Customer", backref=db.backref("payment_transactions", lazy=True))
    order = db.relationship("Order", backref=db.backref("payment_transactions", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "customer_id": self.customer_id,
            "order_id": self.order_id,
            "amount_cents": self.amount_cents,
            "method": self.method,
            "occurred_at": to_utc_z(self.occurred_at),
            "created_by_user_id": self.created_by_user_id,
            "request_key": self.request_key,
        }


class EmptyReturn(db.Model):
    """
    Returnable-container movement for a customer.

    delivered adds to Customer.empty_debt, returned subtracts. When order_id is
    set, returned was also counted into Order.returnable_in.
    """
    __tablename__ = "empty_returns"
    __table_args__ = (
        db.CheckConstraint("delivered >= 0", name="ck_empty_returns_delivered"),
        db.CheckConstraint("returned >= 0", name="ck_empty_returns_returned"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=True, index=True)

    delivered = db.Column(db.Integer, nullable=False, default=0)
    returned = db.Column(db.Integer, nullable=False, default=0)
    note = db.Column(db.String(255), nullable=True)

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    created_by_user_id = db.Column(db.Integer, nullable=True)

    customer = db.relationship("Customer", backref=db.backref("empty_returns", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "customer_id": self.customer_id,
            "order_id": self.order_id,
            "delivered": self.delivered,
            "returned": self.returned,
            "note": self.note,
            "occurred_at": to_utc_z(self.occurred_at),
            "created_by_user_id": self.created_by_user_id,
        }

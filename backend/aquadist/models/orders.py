from __future__ import annotations

from sqlalchemy.ext.hybrid import hybrid_property

from ..extensions import db
from ..time_utils import to_utc_z, utcnow


STATUS_PENDING = "pending"
STATUS_COMPLETED = "completed"
STATUS_CANCELED = "canceled"
DOCUMENT_STATUSES = {STATUS_PENDING, STATUS_COMPLETED, STATUS_CANCELED}

# completed and canceled are terminal
STATUS_TRANSITIONS = {
    STATUS_PENDING: {STATUS_COMPLETED, STATUS_CANCELED},
    STATUS_COMPLETED: set(),
    STATUS_CANCELED: set(),
}

PAYMENT_STATUS_UNPAID = "UNPAID"
PAYMENT_STATUS_PARTIAL = "PARTIAL"
PAYMENT_STATUS_PAID = "PAID"
PAYMENT_STATUS_OVERPAID = "OVERPAID"


def payment_status_for(total_cents: int, paid_cents: int) -> str:
    if paid_cents <= 0 and total_cents > 0:
        return PAYMENT_STATUS_UNPAID
    if paid_cents < total_cents:
        return PAYMENT_STATUS_PARTIAL
    if paid_cents == total_cents:
        return PAYMENT_STATUS_PAID
    return PAYMENT_STATUS_OVERPAID


class Order(db.Model):
    """
    Sales order placed by a customer.

    INVARIANTS:
    - debt_remaining_cents == total_amount_cents - paid_amount_cents. It is a
      hybrid property, never a stored column, so it cannot drift.
    - 0 <= returnable_in <= returnable_out.

    customer_name is a snapshot taken at creation time, not a live join.
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.UniqueConstraint("request_key", name="uq_orders_request_key"),
        db.Index("ix_orders_customer_status", "customer_id", "status"),
        db.CheckConstraint("returnable_in >= 0", name="ck_orders_returnable_in_non_negative"),
        db.CheckConstraint("returnable_in <= returnable_out", name="ck_orders_returnable_in_le_out"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)
    customer_name = db.Column(db.String(255), nullable=False)

    order_date = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    status = db.Column(db.String(16), nullable=False, default=STATUS_PENDING, index=True)

    # Amounts in minor units. total = subtotal - discount
    subtotal_cents = db.Column(db.Integer, nullable=False)
    discount_cents = db.Column(db.Integer, nullable=False, default=0)
    total_amount_cents = db.Column(db.Integer, nullable=False)
    paid_amount_cents = db.Column(db.Integer, nullable=False, default=0)

    # Returnable containers sent out on this order / brought back against it
    returnable_out = db.Column(db.Integer, nullable=False, default=0)
    returnable_in = db.Column(db.Integer, nullable=False, default=0)

    # Name of the pricing strategy that produced total_amount_cents
    pricing_policy = db.Column(db.String(64), nullable=False)

    created_by_user_id = db.Column(db.Integer, nullable=True)

    # Client-supplied idempotency key; a retried create returns the first order
    request_key = db.Column(db.String(64), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    customer = db.relationship("Customer", backref=db.backref("orders", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    @hybrid_property
    def debt_remaining_cents(self):
        return self.total_amount_cents - self.paid_amount_cents

    @property
    def returnable_outstanding(self) -> int:
        return self.returnable_out - self.returnable_in

    @property
    def payment_status(self) -> str:
        return payment_status_for(self.total_amount_cents, self.paid_amount_cents)

    def __repr__(self) -> str:
        return f"<Order id={self.id} customer_id={self.customer_id} status={self.status}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "customer_id": self.customer_id,
            "customer_name": self.customer_name,
            "order_date": to_utc_z(self.order_date),
            "status": self.status,
            "subtotal_cents": self.subtotal_cents,
            "discount_cents": self.discount_cents,
            "total_amount_cents": self.total_amount_cents,
            "paid_amount_cents": self.paid_amount_cents,
            "debt_remaining_cents": self.debt_remaining_cents,
            "payment_status": self.payment_status,
            "returnable_out": self.returnable_out,
            "returnable_in": self.returnable_in,
            "pricing_policy": self.pricing_policy,
            "created_by_user_id": self.created_by_user_id,
            "request_key": self.request_key,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class OrderItem(db.Model):
    """Order line. product_name and unit_price_cents are snapshots at time of sale."""
    __tablename__ = "order_items"
    __table_args__ = (
        db.CheckConstraint("quantity >= 1", name="ck_order_items_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    product_name = db.Column(db.String(255), nullable=False)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    line_total_cents = db.Column(db.Integer, nullable=False)

    # Export movement written when the order was placed
    inventory_log_id = db.Column(db.Integer, db.ForeignKey("inventory_logs.id"), nullable=True)

    order = db.relationship("Order", backref=db.backref("items", lazy=True, order_by="OrderItem.id"))
    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "line_total_cents": self.line_total_cents,
            "inventory_log_id": self.inventory_log_id,
        }

from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


CUSTOMER_TYPE_RETAIL = "retail"
CUSTOMER_TYPE_AGENCY = "agency"
CUSTOMER_TYPES = {CUSTOMER_TYPE_RETAIL, CUSTOMER_TYPE_AGENCY}


class Customer(db.Model):
    """
    Customer account. The ONLY owner of customer-side running balances.

    BALANCES:
    - debt_cents: money owed by the customer. Negative means the customer has
      prepaid/overpaid; that state is exposed as credit_balance_cents.
    - empty_debt: returnable containers the customer still has to bring back.
      Negative means more empties came back than were recorded as delivered;
      exposed as container_credit.

    Both are denormalized running totals maintained by the order, payment and
    return services in the same DB transaction as the event that moves them.
    """
    __tablename__ = "customers"
    __table_args__ = (
        db.Index("ix_customers_phone", "phone"),
        db.Index("ix_customers_debt", "debt_cents"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    name = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(32), nullable=False)
    address = db.Column(db.String(255), nullable=False)

    # Classification: retail | agency (agency_level required for agencies)
    customer_type = db.Column(db.String(16), nullable=False, default=CUSTOMER_TYPE_RETAIL)
    agency_level = db.Column(db.Integer, nullable=True)

    debt_cents = db.Column(db.Integer, nullable=False, default=0)
    empty_debt = db.Column(db.Integer, nullable=False, default=0)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    __mapper_args__ = {"version_id_col": version_id}

    @property
    def credit_balance_cents(self) -> int:
        return max(0, -(self.debt_cents or 0))

    @property
    def has_credit_balance(self) -> bool:
        return (self.debt_cents or 0) < 0

    @property
    def container_credit(self) -> int:
        return max(0, -(self.empty_debt or 0))

    def __repr__(self) -> str:
        return f"<Customer id={self.id} name={self.name!r} debt_cents={self.debt_cents}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "phone": self.phone,
            "address": self.address,
            "customer_type": self.customer_type,
            "agency_level": self.agency_level,
            "debt_cents": self.debt_cents,
            "credit_balance_cents": self.credit_balance_cents,
            "empty_debt": self.empty_debt,
            "container_credit": self.container_credit,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Supplier(db.Model):
    """
    Supplier master data.

    WHY no debt column: what we owe a supplier is derived from outstanding
    purchases (see purchase_service.get_supplier_debt). A stored counter would
    drift from the purchase documents it summarizes.
    """
    __tablename__ = "suppliers"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)

    contact_person = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(32), nullable=False)
    email = db.Column(db.String(255), nullable=True)
    address = db.Column(db.String(255), nullable=False)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Supplier id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "contact_person": self.contact_person,
            "phone": self.phone,
            "email": self.email,
            "address": self.address,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }

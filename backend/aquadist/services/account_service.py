# Overview: Service-layer operations for customers and suppliers (master data).

"""
Customer & Supplier Service

Master data only. Running balances (customer debt, empty debt) start at zero
and are moved exclusively by the order, payment and return services; updates
here never touch them.

Deletion is a hard delete, allowed only for accounts with no ledger history.
Anything an order, payment, return, purchase or import points at stays.
"""

from __future__ import annotations

from ..errors import AccountInUseError, NotFoundError, ValidationError
from ..extensions import db
from ..models import Customer, EmptyReturn, Import, Order, PaymentTransaction, Purchase, Supplier
from ..models.accounts import CUSTOMER_TYPE_AGENCY, CUSTOMER_TYPE_RETAIL, CUSTOMER_TYPES
from ..validation import optional_text, positive_int, require_choice, require_text
from .concurrency import get_for_update, run_with_retry


MAX_AGENCY_LEVEL = 10


def _agency_level_for(customer_type: str, agency_level) -> int | None:
    """Agencies need a level >= 1; retail customers never carry one."""
    if customer_type != CUSTOMER_TYPE_AGENCY:
        return None
    if agency_level is None:
        raise ValidationError("agency_level is required for agency customers")
    return positive_int(agency_level, "agency_level", maximum=MAX_AGENCY_LEVEL)


# =============================================================================
# CUSTOMERS
# =============================================================================

def create_customer(
    *,
    name,
    phone,
    address,
    customer_type: str = CUSTOMER_TYPE_RETAIL,
    agency_level=None,
) -> Customer:
    """
    Create a customer.

    Raises:
        ValidationError: missing name/phone/address, unknown customer_type,
            or an agency without agency_level >= 1
    """
    name = require_text(name, "name")
    phone = require_text(phone, "phone", max_length=32)
    address = require_text(address, "address")
    customer_type = require_choice(customer_type, "customer_type", CUSTOMER_TYPES)
    agency_level = _agency_level_for(customer_type, agency_level)

    customer = Customer(
        name=name,
        phone=phone,
        address=address,
        customer_type=customer_type,
        agency_level=agency_level,
        debt_cents=0,
        empty_debt=0,
    )
    db.session.add(customer)
    db.session.commit()
    return customer


def get_customer(customer_id: int) -> Customer:
    customer = db.session.get(Customer, customer_id)
    if customer is None:
        raise NotFoundError(f"Customer {customer_id} not found", details={"customer_id": customer_id})
    return customer


def list_customers(*, customer_type: str | None = None) -> list[Customer]:
    q = db.session.query(Customer)
    if customer_type is not None:
        q = q.filter(Customer.customer_type == require_choice(customer_type, "customer_type", CUSTOMER_TYPES))
    return q.order_by(Customer.name.asc(), Customer.id.asc()).all()


def update_customer(
    *,
    customer_id: int,
    name=None,
    phone=None,
    address=None,
    customer_type=None,
    agency_level=None,
) -> Customer:
    """
    Update customer master data. Fields left as None keep their value.

    Reclassifying to agency needs an agency_level, either sent now or already
    on the customer. Reclassifying to retail clears the level. Pricing of
    existing orders does not change.

    Raises:
        NotFoundError: customer does not exist
        ValidationError: empty text, unknown customer_type, bad agency_level
    """
    if name is not None:
        name = require_text(name, "name")
    if phone is not None:
        phone = require_text(phone, "phone", max_length=32)
    if address is not None:
        address = require_text(address, "address")
    if customer_type is not None:
        customer_type = require_choice(customer_type, "customer_type", CUSTOMER_TYPES)

    def _op():
        # Locked so the version check lines up with concurrent balance writers
        customer = get_for_update(Customer, customer_id)
        if customer is None:
            raise NotFoundError(f"Customer {customer_id} not found", details={"customer_id": customer_id})

        new_type = customer_type or customer.customer_type
        level = agency_level if agency_level is not None else customer.agency_level
        if new_type == CUSTOMER_TYPE_RETAIL and agency_level is not None:
            raise ValidationError("agency_level only applies to agency customers")
        customer.agency_level = _agency_level_for(new_type, level)
        customer.customer_type = new_type

        if name is not None:
            customer.name = name
        if phone is not None:
            customer.phone = phone
        if address is not None:
            customer.address = address

        db.session.commit()
        return customer

    return run_with_retry(_op)


def delete_customer(*, customer_id: int) -> None:
    """
    Delete a customer with no orders, payments or container movements.

    Raises:
        NotFoundError: customer does not exist
        AccountInUseError: customer has ledger history or a non-zero balance
    """
    def _op():
        customer = get_for_update(Customer, customer_id)
        if customer is None:
            raise NotFoundError(f"Customer {customer_id} not found", details={"customer_id": customer_id})

        usage = {
            "orders": db.session.query(Order).filter_by(customer_id=customer_id).count(),
            "payments": db.session.query(PaymentTransaction).filter_by(customer_id=customer_id).count(),
            "empty_returns": db.session.query(EmptyReturn).filter_by(customer_id=customer_id).count(),
        }
        if any(usage.values()) or customer.debt_cents or customer.empty_debt:
            raise AccountInUseError(
                f"Customer {customer_id} has ledger history and cannot be deleted",
                details={
                    "customer_id": customer_id,
                    "debt_cents": customer.debt_cents,
                    "empty_debt": customer.empty_debt,
                    **usage,
                },
            )

        db.session.delete(customer)
        db.session.commit()

    run_with_retry(_op)


# =============================================================================
# SUPPLIERS
# =============================================================================

def create_supplier(*, name, contact_person, phone, address, email=None) -> Supplier:
    supplier = Supplier(
        name=require_text(name, "name"),
        contact_person=require_text(contact_person, "contact_person"),
        phone=require_text(phone, "phone", max_length=32),
        address=require_text(address, "address"),
        email=optional_text(email, "email"),
    )
    db.session.add(supplier)
    db.session.commit()
    return supplier


def get_supplier(supplier_id: int) -> Supplier:
    supplier = db.session.get(Supplier, supplier_id)
    if supplier is None:
        raise NotFoundError(f"Supplier {supplier_id} not found", details={"supplier_id": supplier_id})
    return supplier


def list_suppliers() -> list[Supplier]:
    return db.session.query(Supplier).order_by(Supplier.name.asc(), Supplier.id.asc()).all()


def update_supplier(
    *,
    supplier_id: int,
    name=None,
    contact_person=None,
    phone=None,
    address=None,
    email=None,
) -> Supplier:
    """Update supplier master data. Fields left as None keep their value."""
    changes = {}
    if name is not None:
        changes["name"] = require_text(name, "name")
    if contact_person is not None:
        changes["contact_person"] = require_text(contact_person, "contact_person")
    if phone is not None:
        changes["phone"] = require_text(phone, "phone", max_length=32)
    if address is not None:
        changes["address"] = require_text(address, "address")
    if email is not None:
        changes["email"] = optional_text(email, "email")

    supplier = get_supplier(supplier_id)
    for field, value in changes.items():
        setattr(supplier, field, value)

    db.session.commit()
    return supplier


def delete_supplier(*, supplier_id: int) -> None:
    """
    Delete a supplier no purchase or import refers to.

    Raises:
        NotFoundError: supplier does not exist
        AccountInUseError: supplier has purchases or imports
    """
    supplier = get_supplier(supplier_id)

    usage = {
        "purchases": db.session.query(Purchase).filter_by(supplier_id=supplier_id).count(),
        "imports": db.session.query(Import).filter_by(supplier_id=supplier_id).count(),
    }
    if any(usage.values()):
        raise AccountInUseError(
            f"Supplier {supplier_id} has purchase history and cannot be deleted",
            details={"supplier_id": supplier_id, **usage},
        )

    db.session.delete(supplier)
    db.session.commit()

"""
Customer and supplier master data tests.

Updates never touch balances; deletes are refused once an account has
ledger history.
"""

import pytest

from aquadist.errors import AccountInUseError, NotFoundError, ValidationError
from aquadist.extensions import db
from aquadist.models import Customer, Supplier
from aquadist.services import (
    account_service,
    import_service,
    order_service,
    payment_service,
    purchase_service,
    return_service,
)

from conftest import make_product


def test_reclassify_retail_to_agency_changes_future_pricing(retail_customer):
    product = make_product(name="P", price_cents=1000, stock=10)

    customer = account_service.update_customer(
        customer_id=retail_customer.id, customer_type="agency", agency_level=2
    )
    assert customer.customer_type == "agency"
    assert customer.agency_level == 2

    order = order_service.create_order(
        customer_id=retail_customer.id,
        items=[{"product_id": product.id, "quantity": 3}],
    )
    assert order.pricing_policy == "discount_10pct"
    assert order.total_amount_cents == 2700


def test_agency_without_level_rejected(retail_customer):
    with pytest.raises(ValidationError):
        account_service.update_customer(customer_id=retail_customer.id, customer_type="agency")

    assert db.session.get(Customer, retail_customer.id).customer_type == "retail"


def test_agency_keeps_level_unless_changed(agency_customer):
    customer = account_service.update_customer(customer_id=agency_customer.id, phone="0999")
    assert customer.agency_level == 2

    customer = account_service.update_customer(customer_id=agency_customer.id, agency_level=3)
    assert customer.agency_level == 3


def test_reclassify_to_retail_clears_level(agency_customer):
    customer = account_service.update_customer(customer_id=agency_customer.id, customer_type="retail")

    assert customer.customer_type == "retail"
    assert customer.agency_level is None

    with pytest.raises(ValidationError):
        account_service.update_customer(customer_id=agency_customer.id, agency_level=2)


@pytest.mark.parametrize("changes", [
    {"name": "   "},
    {"customer_type": "wholesale"},
    {"customer_type": "agency", "agency_level": 0},
    {"customer_type": "agency", "agency_level": 1.5},
])
def test_invalid_customer_updates_rejected(retail_customer, changes):
    with pytest.raises(ValidationError):
        account_service.update_customer(customer_id=retail_customer.id, **changes)

    customer = db.session.get(Customer, retail_customer.id)
    assert customer.name == "Retail Customer"
    assert customer.customer_type == "retail"


def test_update_leaves_balances_alone(retail_customer, bottle):
    order_service.create_order(customer_id=retail_customer.id, items=[{"product_id": bottle.id, "quantity": 2}])

    customer = account_service.update_customer(customer_id=retail_customer.id, name="Renamed", address="9 New St")

    assert customer.name == "Renamed"
    assert customer.debt_cents == 40000
    assert customer.empty_debt == 2


def test_update_unknown_customer(db_session):
    with pytest.raises(NotFoundError):
        account_service.update_customer(customer_id=999999, name="x")


def test_delete_customer_without_history(retail_customer):
    account_service.delete_customer(customer_id=retail_customer.id)

    assert db.session.get(Customer, retail_customer.id) is None
    with pytest.raises(NotFoundError):
        account_service.delete_customer(customer_id=retail_customer.id)


def test_delete_customer_with_orders_refused(retail_customer, bottle):
    order = order_service.create_order(customer_id=retail_customer.id, items=[{"product_id": bottle.id, "quantity": 1}])
    payment_service.update_payment(order_id=order.id, amount_cents=20000)
    return_service.update_returnable(order_id=order.id, returned_quantity=1)

    # Balances are back to zero but the history remains
    with pytest.raises(AccountInUseError) as exc_info:
        account_service.delete_customer(customer_id=retail_customer.id)

    details = exc_info.value.details
    assert details["orders"] == 1
    assert details["payments"] == 1
    assert details["empty_returns"] == 1
    assert exc_info.value.status_code == 409
    assert db.session.get(Customer, retail_customer.id) is not None


def test_delete_customer_with_credit_refused(retail_customer):
    payment_service.record_payment(customer_id=retail_customer.id, amount_cents=500)

    with pytest.raises(AccountInUseError) as exc_info:
        account_service.delete_customer(customer_id=retail_customer.id)

    assert exc_info.value.details["debt_cents"] == -500


def test_update_supplier(supplier):
    updated = account_service.update_supplier(supplier_id=supplier.id, email="sales@spring.example", phone="0912")

    assert updated.email == "sales@spring.example"
    assert updated.phone == "0912"
    assert updated.contact_person == "Lan"


def test_invalid_supplier_update_changes_nothing(supplier):
    with pytest.raises(ValidationError):
        account_service.update_supplier(supplier_id=supplier.id, phone="0912", name="")

    assert db.session.get(Supplier, supplier.id).phone == "0900000003"


def test_delete_supplier_with_purchases_or_imports_refused(supplier):
    product = make_product(name="P", stock=0)
    line = [{"product_id": product.id, "quantity": 1, "unit_cost_cents": 100}]
    purchase_service.create_purchase(supplier_id=supplier.id, items=line)
    import_service.create_import(supplier_id=supplier.id, items=line)

    with pytest.raises(AccountInUseError) as exc_info:
        account_service.delete_supplier(supplier_id=supplier.id)

    assert exc_info.value.details == {"supplier_id": supplier.id, "purchases": 1, "imports": 1}


def test_delete_unused_supplier(supplier):
    account_service.delete_supplier(supplier_id=supplier.id)

    assert db.session.get(Supplier, supplier.id) is None

"""
Order lifecycle tests.

Placing an order moves stock, customer debt and empty-container debt in one
transaction. Any rejected order leaves every balance untouched.
"""

import pytest

from aquadist.errors import (
    InsufficientStockError,
    InvalidPriceError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from aquadist.extensions import db
from aquadist.models import Customer, InventoryLog, Order, Product
from aquadist.services import order_service
from aquadist.services.pricing import FullPrice, PercentDiscount, round_to_unit

from conftest import make_product


def test_order_exceeding_stock_fails_and_stock_unchanged(retail_customer):
    product = make_product(name="P", price_cents=1000, stock=10)

    with pytest.raises(InsufficientStockError) as exc_info:
        order_service.create_order(
            customer_id=retail_customer.id,
            items=[{"product_id": product.id, "quantity": 12}],
        )

    short = exc_info.value.details["items"][0]
    assert short["product_id"] == product.id
    assert short["requested_quantity"] == 12
    assert short["available_stock"] == 10
    assert db.session.get(Product, product.id).stock == 10
    assert db.session.get(Customer, retail_customer.id).debt_cents == 0
    assert Order.query.count() == 0


def test_order_success_moves_all_balances(retail_customer):
    product = make_product(name="P", price_cents=1000, returnable=True, stock=10)

    order = order_service.create_order(
        customer_id=retail_customer.id,
        items=[{"product_id": product.id, "quantity": 3}],
        user_id=7,
    )

    assert order.total_amount_cents == 3000
    assert order.paid_amount_cents == 0
    assert order.debt_remaining_cents == 3000
    assert order.returnable_out == 3
    assert order.returnable_in == 0
    assert order.status == "pending"
    assert order.payment_status == "UNPAID"
    assert order.customer_name == "Retail Customer"
    assert db.session.get(Product, product.id).stock == 7

    customer = db.session.get(Customer, retail_customer.id)
    assert customer.debt_cents == 3000
    assert customer.empty_debt == 3

    export = InventoryLog.query.filter_by(reference=f"order:{order.id}").one()
    assert export.movement_type == "export"
    assert export.quantity == 3
    assert export.created_by_user_id == 7

    items = order_service.get_order_items(order.id)
    assert len(items) == 1
    assert items[0].unit_price_cents == 1000
    assert items[0].line_total_cents == 3000
    assert items[0].inventory_log_id == export.id


def test_only_returnable_lines_count_toward_returnable_out(retail_customer, bottle, pack):
    order = order_service.create_order(
        customer_id=retail_customer.id,
        items=[
            {"product_id": bottle.id, "quantity": 2},
            {"product_id": pack.id, "quantity": 5},
        ],
    )

    assert order.returnable_out == 2
    assert order.total_amount_cents == 2 * 20000 + 5 * 8000


def test_stock_is_checked_against_aggregated_quantity(retail_customer):
    product = make_product(name="P", price_cents=1000, stock=5)

    with pytest.raises(InsufficientStockError) as exc_info:
        order_service.create_order(
            customer_id=retail_customer.id,
            items=[
                {"product_id": product.id, "quantity": 3},
                {"product_id": product.id, "quantity": 3},
            ],
        )

    assert exc_info.value.details["items"][0]["requested_quantity"] == 6
    assert db.session.get(Product, product.id).stock == 5
    assert InventoryLog.query.filter_by(movement_type="export").count() == 0


def test_later_line_failure_leaves_earlier_lines_untouched(retail_customer, bottle):
    short = make_product(name="Short", price_cents=1000, stock=1)

    with pytest.raises(InsufficientStockError):
        order_service.create_order(
            customer_id=retail_customer.id,
            items=[
                {"product_id": bottle.id, "quantity": 2},
                {"product_id": short.id, "quantity": 2},
            ],
        )

    assert db.session.get(Product, bottle.id).stock == 100
    assert db.session.get(Customer, retail_customer.id).empty_debt == 0


def test_line_checks_run_in_line_order(retail_customer):
    free = make_product(name="Free", price_cents=0, stock=5)
    scarce = make_product(name="Scarce", price_cents=1000, stock=1)

    with pytest.raises(InvalidPriceError) as exc_info:
        order_service.create_order(
            customer_id=retail_customer.id,
            items=[
                {"product_id": free.id, "quantity": 1},
                {"product_id": scarce.id, "quantity": 5},
            ],
        )
    assert exc_info.value.details["product_id"] == free.id

    with pytest.raises(InsufficientStockError) as exc_info:
        order_service.create_order(
            customer_id=retail_customer.id,
            items=[
                {"product_id": scarce.id, "quantity": 5},
                {"product_id": free.id, "quantity": 1},
            ],
        )
    assert [i["product_id"] for i in exc_info.value.details["items"]] == [scarce.id]

    with pytest.raises(NotFoundError):
        order_service.create_order(
            customer_id=retail_customer.id,
            items=[
                {"product_id": 999999, "quantity": 1},
                {"product_id": free.id, "quantity": 1},
            ],
        )

    assert db.session.get(Product, free.id).stock == 5
    assert db.session.get(Product, scarce.id).stock == 1
    assert Order.query.count() == 0


@pytest.mark.parametrize("price", [None, 0])
def test_unpriced_product_cannot_be_sold(retail_customer, price):
    product = make_product(name="Unpriced", price_cents=price, stock=5)

    with pytest.raises(InvalidPriceError):
        order_service.create_order(
            customer_id=retail_customer.id,
            items=[{"product_id": product.id, "quantity": 1}],
        )

    assert db.session.get(Product, product.id).stock == 5


def test_missing_customer_or_product(retail_customer, bottle):
    with pytest.raises(NotFoundError):
        order_service.create_order(customer_id=999999, items=[{"product_id": bottle.id, "quantity": 1}])
    with pytest.raises(NotFoundError):
        order_service.create_order(customer_id=retail_customer.id, items=[{"product_id": 999999, "quantity": 1}])


@pytest.mark.parametrize("items", [[], None, [{"product_id": 1}], [{"product_id": 1, "quantity": 0}], "nope"])
def test_malformed_items_rejected(retail_customer, items):
    with pytest.raises(ValidationError):
        order_service.create_order(customer_id=retail_customer.id, items=items)


def test_second_level_agency_gets_rounded_discount(agency_customer):
    product = make_product(name="P", price_cents=1500, stock=5)

    order = order_service.create_order(
        customer_id=agency_customer.id,
        items=[{"product_id": product.id, "quantity": 1}],
    )

    # 15.00 less 10% = 13.50, rounded half-up to 14.00
    assert order.subtotal_cents == 1500
    assert order.total_amount_cents == 1400
    assert order.discount_cents == 100
    assert order.pricing_policy == "discount_10pct"
    assert db.session.get(Customer, agency_customer.id).debt_cents == 1400


def test_explicit_pricing_strategy_overrides_customer_default(agency_customer, bottle):
    order = order_service.create_order(
        customer_id=agency_customer.id,
        items=[{"product_id": bottle.id, "quantity": 1}],
        pricing=FullPrice(),
    )

    assert order.total_amount_cents == 20000
    assert order.pricing_policy == "full_price"


def test_round_to_unit_half_up():
    assert round_to_unit(135000, 100) == 1400
    assert round_to_unit(134900, 100) == 1300
    assert PercentDiscount(10).quote(60000).total_cents == 54000


def test_request_key_makes_create_idempotent(retail_customer, bottle):
    first = order_service.create_order(
        customer_id=retail_customer.id,
        items=[{"product_id": bottle.id, "quantity": 2}],
        request_key="order-abc",
    )
    second = order_service.create_order(
        customer_id=retail_customer.id,
        items=[{"product_id": bottle.id, "quantity": 2}],
        request_key="order-abc",
    )

    assert first.id == second.id
    assert db.session.get(Product, bottle.id).stock == 98
    assert db.session.get(Customer, retail_customer.id).debt_cents == 40000


def test_request_key_reused_for_other_customer_rejected(retail_customer, agency_customer, bottle):
    order_service.create_order(
        customer_id=retail_customer.id,
        items=[{"product_id": bottle.id, "quantity": 1}],
        request_key="shared-key",
    )

    with pytest.raises(ValidationError):
        order_service.create_order(
            customer_id=agency_customer.id,
            items=[{"product_id": bottle.id, "quantity": 1}],
            request_key="shared-key",
        )


def _lookup_misses_once(monkeypatch):
    """The next order lookup by request_key finds nothing, as in a concurrent retry."""
    real_lookup = order_service._existing_order
    missed = []

    def lookup(request_key):
        if not missed:
            missed.append(request_key)
            return None
        return real_lookup(request_key)

    monkeypatch.setattr(order_service, "_existing_order", lookup)
    return missed


def test_duplicate_key_committed_concurrently_returns_first_order(monkeypatch, retail_customer, bottle):
    first_id = order_service.create_order(
        customer_id=retail_customer.id,
        items=[{"product_id": bottle.id, "quantity": 2}],
        request_key="order-race",
    ).id
    missed = _lookup_misses_once(monkeypatch)

    second = order_service.create_order(
        customer_id=retail_customer.id,
        items=[{"product_id": bottle.id, "quantity": 2}],
        request_key="order-race",
    )

    assert missed == ["order-race"]
    assert second.id == first_id
    assert Order.query.count() == 1
    assert db.session.get(Product, bottle.id).stock == 98
    assert InventoryLog.query.filter_by(movement_type="export").count() == 1
    assert db.session.get(Customer, retail_customer.id).debt_cents == 40000


def test_duplicate_key_committed_concurrently_for_other_customer_rejected(monkeypatch, retail_customer, agency_customer, bottle):
    order_service.create_order(
        customer_id=retail_customer.id,
        items=[{"product_id": bottle.id, "quantity": 1}],
        request_key="shared-race",
    )
    _lookup_misses_once(monkeypatch)

    with pytest.raises(ValidationError):
        order_service.create_order(
            customer_id=agency_customer.id,
            items=[{"product_id": bottle.id, "quantity": 1}],
            request_key="shared-race",
        )

    assert db.session.get(Customer, agency_customer.id).debt_cents == 0
    assert db.session.get(Product, bottle.id).stock == 99


def test_status_transitions(retail_customer, bottle):
    order = order_service.create_order(customer_id=retail_customer.id, items=[{"product_id": bottle.id, "quantity": 1}])

    with pytest.raises(InvalidTransitionError):
        order_service.update_order_status(order_id=order.id, status="pending")

    completed = order_service.update_order_status(order_id=order.id, status="completed")
    assert completed.status == "completed"

    with pytest.raises(InvalidTransitionError) as exc_info:
        order_service.update_order_status(order_id=order.id, status="canceled")
    assert exc_info.value.details == {"order_id": order.id, "from": "completed", "to": "canceled"}

    with pytest.raises(ValidationError):
        order_service.update_order_status(order_id=order.id, status="shipped")


def test_cancel_has_no_balance_side_effects(retail_customer, bottle):
    order = order_service.create_order(customer_id=retail_customer.id, items=[{"product_id": bottle.id, "quantity": 4}])

    order_service.update_order_status(order_id=order.id, status="canceled")

    assert db.session.get(Product, bottle.id).stock == 96
    assert db.session.get(Customer, retail_customer.id).debt_cents == 80000


def test_list_orders_filters(retail_customer, agency_customer, bottle):
    a = order_service.create_order(customer_id=retail_customer.id, items=[{"product_id": bottle.id, "quantity": 1}])
    order_service.create_order(customer_id=agency_customer.id, items=[{"product_id": bottle.id, "quantity": 1}])
    order_service.update_order_status(order_id=a.id, status="completed")

    assert [o.id for o in order_service.list_orders(customer_id=retail_customer.id)] == [a.id]
    assert [o.id for o in order_service.list_orders(status="completed")] == [a.id]
    assert len(order_service.list_orders()) == 2

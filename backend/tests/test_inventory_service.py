"""
Inventory movement engine tests.

Every stock change appends exactly one log row; decrements never drive stock
negative; reports are read-only and consistent with the log.
"""

from datetime import datetime, timedelta

import pytest

from aquadist.errors import InsufficientStockError, NotFoundError, ValidationError
from aquadist.extensions import db
from aquadist.models import InventoryLog, Product
from aquadist.services import inventory_service

from conftest import make_product


def test_import_increases_stock_and_logs(db_session):
    product = make_product(name="Jug 19L", stock=0)

    log = inventory_service.apply_movement(
        product_id=product.id, movement_type="import", quantity=20, note="delivery"
    )

    assert db.session.get(Product, product.id).stock == 20
    assert log.stock_after == 20
    assert log.movement_type == "import"
    assert InventoryLog.query.filter_by(product_id=product.id).count() == 1


def test_export_beyond_stock_is_rejected_without_changes(db_session):
    product = make_product(name="Jug 19L", stock=5)

    with pytest.raises(InsufficientStockError) as exc_info:
        inventory_service.apply_movement(product_id=product.id, movement_type="export", quantity=6)

    assert exc_info.value.details["available_stock"] == 5
    assert exc_info.value.details["requested_quantity"] == 6
    assert db.session.get(Product, product.id).stock == 5
    # Only the opening import exists
    assert InventoryLog.query.filter_by(product_id=product.id).count() == 1


def test_return_movement_decrements_stock(db_session):
    product = make_product(name="Jug 19L", stock=10)

    inventory_service.apply_movement(product_id=product.id, movement_type="return", quantity=4)

    assert db.session.get(Product, product.id).stock == 6


@pytest.mark.parametrize("quantity", [0, -3, 1.5, "2.0", True])
def test_invalid_quantity_rejected(db_session, quantity):
    product = make_product(name="Jug 19L", stock=10)

    with pytest.raises(ValidationError):
        inventory_service.apply_movement(product_id=product.id, movement_type="import", quantity=quantity)


def test_unknown_movement_type_and_product(db_session):
    product = make_product(name="Jug 19L", stock=10)

    with pytest.raises(ValidationError):
        inventory_service.apply_movement(product_id=product.id, movement_type="adjust", quantity=1)
    with pytest.raises(NotFoundError):
        inventory_service.apply_movement(product_id=999999, movement_type="import", quantity=1)


def test_movements_by_product_newest_first(db_session):
    product = make_product(name="Jug 19L", stock=10)
    inventory_service.apply_movement(product_id=product.id, movement_type="export", quantity=3)

    logs = inventory_service.get_movements_by_product(product.id)

    assert [log.movement_type for log in logs] == ["export", "import"]
    assert logs[0].stock_after == 7


def test_inventory_report_includes_products_without_movements(db_session):
    moved = make_product(name="A Bottle", stock=10)
    idle = make_product(name="B Idle", stock=0)
    inventory_service.apply_movement(product_id=moved.id, movement_type="export", quantity=4)
    inventory_service.apply_movement(product_id=moved.id, movement_type="return", quantity=1)

    report = inventory_service.get_inventory_report()

    rows = {row["product_id"]: row for row in report["products"]}
    assert report["total_products"] == 2
    assert rows[moved.id]["imported"] == 10
    assert rows[moved.id]["exported"] == 4
    assert rows[moved.id]["returned"] == 1
    assert rows[moved.id]["net_change"] == 5
    assert rows[moved.id]["current_stock"] == 5
    assert rows[idle.id]["imported"] == 0
    assert rows[idle.id]["net_change"] == 0


def test_inventory_report_is_idempotent(db_session):
    product = make_product(name="Jug 19L", stock=10)
    inventory_service.apply_movement(product_id=product.id, movement_type="export", quantity=2)

    assert inventory_service.get_inventory_report() == inventory_service.get_inventory_report()


def test_report_date_range_bare_end_date_covers_whole_day(db_session):
    product = make_product(name="Jug 19L", stock=0)
    day = datetime(2024, 5, 31)
    for hour, qty in ((0, 1), (12, 2), (23, 4)):
        db.session.add(InventoryLog(
            product_id=product.id,
            movement_type="import",
            quantity=qty,
            stock_after=0,
            occurred_at=day + timedelta(hours=hour, minutes=59),
        ))
    db.session.add(InventoryLog(
        product_id=product.id,
        movement_type="import",
        quantity=100,
        stock_after=0,
        occurred_at=day + timedelta(days=1, minutes=1),
    ))
    db.session.commit()

    report = inventory_service.get_product_movement_report(
        product_id=product.id, start="2024-05-31", end="2024-05-31"
    )

    assert report["imported"] == 7
    assert len(report["movements"]) == 3


def test_report_rejects_inverted_range(db_session):
    with pytest.raises(ValidationError):
        inventory_service.get_inventory_report(start="2024-06-01", end="2024-05-01")

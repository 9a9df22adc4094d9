"""
Concurrency tests.

The thread tests run against a file-backed SQLite database. Each worker runs
in its own thread and app context, so each has its own session and
connection, like concurrent requests do. The run_with_retry tests drive the
retry loop directly with functions that fail on purpose.
"""

import os
import tempfile
import threading

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from aquadist import create_app
from aquadist.errors import ConcurrencyConflictError, InsufficientStockError, ValidationError
from aquadist.extensions import db
from aquadist.models import Customer, InventoryLog, Order, Product
from aquadist.services import account_service, order_service, payment_service, products_service
from aquadist.services.concurrency import run_with_retry


@pytest.fixture
def file_app():
    tmpdir = tempfile.TemporaryDirectory()
    db_path = os.path.join(tmpdir.name, "concurrency.db")
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': f"sqlite:///{db_path}",
        'LEDGER_RETRY_ATTEMPTS': 10,
        'LEDGER_RETRY_BACKOFF': 0.01,
    })

    with app.app_context():
        db.drop_all()
        db.create_all()

    yield app

    with app.app_context():
        db.session.remove()
        db.drop_all()
        db.session.remove()
        db.engine.dispose()
    tmpdir.cleanup()


def _seed(app, stock):
    with app.app_context():
        customers = [
            account_service.create_customer(name=f"Customer {i}", phone=f"09{i}", address="x").id
            for i in range(2)
        ]
        product = products_service.create_product(name="Last Bottle", unit="bottle", price_cents=1000, is_returnable=True)
        if stock:
            db.session.get(Product, product.id).stock = stock
            db.session.commit()
        product_id = product.id
        db.session.remove()
    return customers, product_id


def _run_concurrently(app, jobs):
    results = []
    errors = []
    lock = threading.Lock()
    barrier = threading.Barrier(len(jobs))

    def worker(job):
        with app.app_context():
            try:
                barrier.wait()
                value = job()
                with lock:
                    results.append(value)
            except Exception as exc:
                with lock:
                    errors.append(exc)
            finally:
                db.session.remove()

    threads = [threading.Thread(target=worker, args=(job,)) for job in jobs]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    return results, errors


def test_concurrent_orders_for_last_unit(file_app):
    customers, product_id = _seed(file_app, stock=1)

    def order_for(customer_id):
        def job():
            return order_service.create_order(
                customer_id=customer_id,
                items=[{"product_id": product_id, "quantity": 1}],
            ).id
        return job

    results, errors = _run_concurrently(file_app, [order_for(cid) for cid in customers])

    assert len(results) == 1
    assert len(errors) == 1
    assert isinstance(errors[0], InsufficientStockError)

    with file_app.app_context():
        assert db.session.get(Product, product_id).stock == 0
        assert Order.query.count() == 1
        assert InventoryLog.query.filter_by(movement_type="export").count() == 1
        debts = sorted(db.session.get(Customer, cid).debt_cents for cid in customers)
        assert debts == [0, 1000]


def test_concurrent_payments_are_not_lost(file_app):
    customers, product_id = _seed(file_app, stock=10)
    customer_id = customers[0]
    with file_app.app_context():
        order_id = order_service.create_order(
            customer_id=customer_id,
            items=[{"product_id": product_id, "quantity": 5}],
        ).id
        db.session.remove()

    def pay():
        return payment_service.update_payment(order_id=order_id, amount_cents=500).id

    results, errors = _run_concurrently(file_app, [pay for _ in range(4)])

    assert not errors
    assert len(results) == 4
    with file_app.app_context():
        order = db.session.get(Order, order_id)
        assert order.paid_amount_cents == 2000
        assert order.debt_remaining_cents == 3000
        assert db.session.get(Customer, customer_id).debt_cents == 3000


def _counting(exc_factory, succeed_after=None):
    calls = []

    def func():
        calls.append(len(calls) + 1)
        if succeed_after is not None and len(calls) > succeed_after:
            return "done"
        raise exc_factory()

    return func, calls


def test_retry_gives_up_after_configured_attempts(app, db_session):
    func, calls = _counting(lambda: StaleDataError("version mismatch"))

    with pytest.raises(ConcurrencyConflictError) as exc_info:
        run_with_retry(func)

    attempts = app.config["LEDGER_RETRY_ATTEMPTS"]
    assert len(calls) == attempts
    assert exc_info.value.details["attempts"] == attempts
    assert "version mismatch" in exc_info.value.details["reason"]
    assert exc_info.value.status_code == 409


def test_explicit_attempts_override_config(app, db_session):
    func, calls = _counting(lambda: StaleDataError("version mismatch"))

    with pytest.raises(ConcurrencyConflictError):
        run_with_retry(func, attempts=5, backoff_base=0)

    assert len(calls) == 5


def test_lock_timeout_is_retried_until_success(app, db_session):
    func, calls = _counting(
        lambda: OperationalError("UPDATE customers", {}, Exception("database is locked")),
        succeed_after=2,
    )

    assert run_with_retry(func, attempts=3, backoff_base=0) == "done"
    assert len(calls) == 3


def test_other_operational_errors_are_not_retried(app, db_session):
    func, calls = _counting(lambda: OperationalError("SELECT 1", {}, Exception("no such table: ghosts")))

    with pytest.raises(OperationalError):
        run_with_retry(func, attempts=3, backoff_base=0)

    assert len(calls) == 1


def test_business_errors_are_not_retried(app, db_session):
    func, calls = _counting(lambda: ValidationError("amount_cents must be positive"))

    with pytest.raises(ValidationError):
        run_with_retry(func, attempts=3, backoff_base=0)

    assert len(calls) == 1

# Overview: Service-layer operations for customer payments; order payments and debt reconciliation.

"""
Payment Reconciliation Service

WHY: A customer payment moves money on up to three records at once: the
order's paid amount, the customer's running debt and the payment log. They
must move together.

DESIGN PRINCIPLES:
- Payments are separate from orders (many-to-one relationship)
- Partial payments are normal; overpayment is allowed and not capped
  (order shows OVERPAID, customer debt may go negative = credit balance)
- Immutable log: every payment appends one PaymentTransaction row
- Idempotency: a repeated request_key returns the first result unchanged
"""

from __future__ import annotations

from sqlalchemy.exc import IntegrityError

from ..errors import NotFoundError, ValidationError
from ..extensions import db
from ..models import Customer, Order, PaymentTransaction
from ..models.payments import METHOD_CASH, PAYMENT_METHODS
from ..time_utils import utcnow
from ..validation import optional_text, positive_int, require_choice
from .concurrency import get_for_update, run_with_retry


def _existing_transaction(request_key: str | None) -> PaymentTransaction | None:
    if not request_key:
        return None
    return db.session.query(PaymentTransaction).filter_by(request_key=request_key).first()


def _apply_payment_inner(
    *,
    customer: Customer,
    order: Order | None,
    amount_cents: int,
    method: str,
    user_id: int | None,
    request_key: str | None,
) -> PaymentTransaction:
    """Core payment logic without retry or commit. Caller holds both rows locked."""
    if order is not None:
        order.paid_amount_cents = order.paid_amount_cents + amount_cents
    customer.debt_cents = customer.debt_cents - amount_cents

    tx = PaymentTransaction(
        customer_id=customer.id,
        order_id=order.id if order is not None else None,
        amount_cents=amount_cents,
        method=method,
        occurred_at=utcnow(),
        created_by_user_id=user_id,
        request_key=request_key,
    )
    db.session.add(tx)
    db.session.flush()
    return tx


def update_payment(
    *,
    order_id: int,
    amount_cents,
    method: str = METHOD_CASH,
    user_id: int | None = None,
    request_key: str | None = None,
) -> Order:
    """
    Record a payment against an order.

    Raises:
        ValidationError: amount not a positive integer, unknown method, or
            request_key already used for another order
        NotFoundError: order does not exist
    """
    amount_cents = positive_int(amount_cents, "amount_cents")
    method = require_choice(method, "method", PAYMENT_METHODS)
    request_key = optional_text(request_key, "request_key", max_length=64)

    def _replay(existing: PaymentTransaction) -> Order:
        if existing.order_id != order_id:
            raise ValidationError(
                "request_key already used for a different payment",
                details={"request_key": request_key},
            )
        return db.session.get(Order, order_id)

    def _op():
        existing = _existing_transaction(request_key)
        if existing is not None:
            return _replay(existing)

        found = db.session.get(Order, order_id)
        if found is None:
            raise NotFoundError(f"Order {order_id} not found", details={"order_id": order_id})

        # Lock order: customer, then order (same as record_payment and returns)
        customer = get_for_update(Customer, found.customer_id)
        order = get_for_update(Order, order_id)

        try:
            _apply_payment_inner(
                customer=customer,
                order=order,
                amount_cents=amount_cents,
                method=method,
                user_id=user_id,
                request_key=request_key,
            )
            db.session.commit()
        except IntegrityError:
            # A concurrent request with the same key committed first.
            db.session.rollback()
            existing = _existing_transaction(request_key)
            if existing is None:
                raise
            return _replay(existing)
        return order

    return run_with_retry(_op)


def record_payment(
    *,
    customer_id: int,
    amount_cents,
    method: str = METHOD_CASH,
    order_id: int | None = None,
    user_id: int | None = None,
    request_key: str | None = None,
) -> PaymentTransaction:
    """
    Record a customer payment, optionally applied to one of their orders.

    Without an order only the customer's debt moves.
    """
    amount_cents = positive_int(amount_cents, "amount_cents")
    method = require_choice(method, "method", PAYMENT_METHODS)
    request_key = optional_text(request_key, "request_key", max_length=64)

    def _replay(existing: PaymentTransaction) -> PaymentTransaction:
        if existing.customer_id != customer_id or existing.order_id != order_id:
            raise ValidationError(
                "request_key already used for a different payment",
                details={"request_key": request_key},
            )
        return existing

    def _op():
        existing = _existing_transaction(request_key)
        if existing is not None:
            return _replay(existing)

        customer = get_for_update(Customer, customer_id)
        if customer is None:
            raise NotFoundError(f"Customer {customer_id} not found", details={"customer_id": customer_id})

        order = None
        if order_id is not None:
            order = get_for_update(Order, order_id)
            if order is None:
                raise NotFoundError(f"Order {order_id} not found", details={"order_id": order_id})
            if order.customer_id != customer.id:
                raise ValidationError(
                    f"Order {order_id} does not belong to customer {customer_id}",
                    details={"order_id": order_id, "customer_id": customer_id},
                )

        try:
            tx = _apply_payment_inner(
                customer=customer,
                order=order,
                amount_cents=amount_cents,
                method=method,
                user_id=user_id,
                request_key=request_key,
            )
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            existing = _existing_transaction(request_key)
            if existing is None:
                raise
            return _replay(existing)
        return tx

    return run_with_retry(_op)


def list_transactions(*, customer_id: int | None = None, order_id: int | None = None, limit: int = 200) -> list[PaymentTransaction]:
    q = db.session.query(PaymentTransaction)
    if customer_id is not None:
        q = q.filter(PaymentTransaction.customer_id == customer_id)
    if order_id is not None:
        q = q.filter(PaymentTransaction.order_id == order_id)
    return q.order_by(PaymentTransaction.occurred_at.desc(), PaymentTransaction.id.desc()).limit(limit).all()

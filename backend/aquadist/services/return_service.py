# Overview: Service-layer operations for returnable containers; empties brought back and delivered.

"""
Empty Container Reconciliation

Returnable products (bottles, jugs) create empty-container debt when sold.
Bringing empties back reduces it. Against an order, the cumulative number of
empties returned can never exceed what the order sent out.

Every container movement appends one EmptyReturn row in the same transaction
as the balance change.
"""

from __future__ import annotations

from ..errors import NotFoundError, ReturnExceedsOutstandingError, ValidationError
from ..extensions import db
from ..models import Customer, EmptyReturn, Order
from ..time_utils import utcnow
from ..validation import MAX_QUANTITY, non_negative_int, optional_text, positive_int
from .concurrency import get_for_update, run_with_retry


def _return_against_order_inner(order: Order, returned: int) -> None:
    new_in = order.returnable_in + returned
    if new_in > order.returnable_out:
        raise ReturnExceedsOutstandingError(
            f"Cannot return {returned} empties on order {order.id}; only {order.returnable_outstanding} outstanding",
            details={
                "order_id": order.id,
                "requested": returned,
                "outstanding": order.returnable_outstanding,
            },
        )
    order.returnable_in = new_in


def update_returnable(
    *,
    order_id: int,
    returned_quantity,
    note: str | None = None,
    user_id: int | None = None,
) -> Order:
    """
    Record empties brought back against an order.

    Raises:
        ValidationError: returned_quantity not a positive integer
        NotFoundError: order does not exist
        ReturnExceedsOutstandingError: more empties than the order has outstanding
    """
    returned = positive_int(returned_quantity, "returned_quantity", maximum=MAX_QUANTITY)
    note = optional_text(note, "note")

    def _op():
        found = db.session.get(Order, order_id)
        if found is None:
            raise NotFoundError(f"Order {order_id} not found", details={"order_id": order_id})

        # Lock order: customer, then order (same as record_empty_return and payments)
        customer = get_for_update(Customer, found.customer_id)
        order = get_for_update(Order, order_id)

        _return_against_order_inner(order, returned)

        customer.empty_debt = customer.empty_debt - returned

        db.session.add(EmptyReturn(
            customer_id=customer.id,
            order_id=order.id,
            delivered=0,
            returned=returned,
            note=note,
            occurred_at=utcnow(),
            created_by_user_id=user_id,
        ))
        db.session.commit()
        return order

    return run_with_retry(_op)


def record_empty_return(
    *,
    customer_id: int,
    delivered=0,
    returned=0,
    order_id: int | None = None,
    note: str | None = None,
    user_id: int | None = None,
) -> EmptyReturn:
    """
    Record a container movement for a customer.

    delivered adds to the customer's empty_debt and returned subtracts. A
    standalone return may push empty_debt below zero (container credit).
    """
    delivered = non_negative_int(delivered if delivered is not None else 0, "delivered", maximum=MAX_QUANTITY)
    returned = non_negative_int(returned if returned is not None else 0, "returned", maximum=MAX_QUANTITY)
    if delivered == 0 and returned == 0:
        raise ValidationError("delivered or returned must be positive")
    note = optional_text(note, "note")

    def _op():
        customer = get_for_update(Customer, customer_id)
        if customer is None:
            raise NotFoundError(f"Customer {customer_id} not found", details={"customer_id": customer_id})

        if order_id is not None:
            order = get_for_update(Order, order_id)
            if order is None:
                raise NotFoundError(f"Order {order_id} not found", details={"order_id": order_id})
            if order.customer_id != customer.id:
                raise ValidationError(
                    f"Order {order_id} does not belong to customer {customer_id}",
                    details={"order_id": order_id, "customer_id": customer_id},
                )
            if returned:
                _return_against_order_inner(order, returned)

        customer.empty_debt = customer.empty_debt + delivered - returned

        entry = EmptyReturn(
            customer_id=customer.id,
            order_id=order_id,
            delivered=delivered,
            returned=returned,
            note=note,
            occurred_at=utcnow(),
            created_by_user_id=user_id,
        )
        db.session.add(entry)
        db.session.commit()
        return entry

    return run_with_retry(_op)


def list_empty_returns(*, customer_id: int | None = None, limit: int = 200) -> list[EmptyReturn]:
    q = db.session.query(EmptyReturn)
    if customer_id is not None:
        q = q.filter(EmptyReturn.customer_id == customer_id)
    return q.order_by(EmptyReturn.occurred_at.desc(), EmptyReturn.id.desc()).limit(limit).all()

"""
Order Lifecycle Service

WHY: Placing an order moves four balances at once: product stock, customer
debt, customer empty-container debt, and the order's own totals. They must
all move in one DB transaction or not at all.

LIFECYCLE:
1. pending: created, stock already exported, debt already charged
2. completed: delivered (terminal)
3. canceled: terminal; status alone reverses nothing

DESIGN:
- All line checks run against locked product rows BEFORE any mutation, with
  quantities aggregated per product, so a later line can never fail after an
  earlier line already moved stock.
- Pricing comes from a PricingStrategy resolved by customer classification.
- Line names and prices are snapshots; later product edits do not touch orders.
"""

from __future__ import annotations

from sqlalchemy.exc import IntegrityError

from ..errors import (
    InsufficientStockError,
    InvalidPriceError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from ..extensions import db
from ..models import Customer, Order, OrderItem, Product
from ..models.inventory import MOVEMENT_EXPORT
from ..models.orders import DOCUMENT_STATUSES, STATUS_PENDING, STATUS_TRANSITIONS
from ..validation import optional_text, parse_line_items, require_choice
from .concurrency import get_for_update, lock_for_update, run_with_retry
from .inventory_service import _apply_movement_inner
from .pricing import PricingStrategy, strategy_for_customer


def get_order(order_id: int) -> Order:
    order = db.session.get(Order, order_id)
    if order is None:
        raise NotFoundError(f"Order {order_id} not found", details={"order_id": order_id})
    return order


def get_order_items(order_id: int) -> list[OrderItem]:
    get_order(order_id)
    return db.session.query(OrderItem).filter_by(order_id=order_id).order_by(OrderItem.id).all()


def list_orders(*, customer_id: int | None = None, status: str | None = None, limit: int = 200) -> list[Order]:
    q = db.session.query(Order)
    if customer_id is not None:
        q = q.filter(Order.customer_id == customer_id)
    if status is not None:
        q = q.filter(Order.status == require_choice(status, "status", DOCUMENT_STATUSES))
    return q.order_by(Order.order_date.desc(), Order.id.desc()).limit(limit).all()


def _lock_products(product_ids) -> dict[int, Product]:
    """Lock products in id order so concurrent orders acquire locks consistently."""
    ids = sorted(set(product_ids))
    rows = lock_for_update(
        db.session.query(Product).filter(Product.id.in_(ids)).order_by(Product.id)
    ).all()
    return {p.id: p for p in rows}


def _short_items(product_totals: dict[int, int], products: dict[int, Product]) -> list[dict]:
    short = []
    for product_id, qty in product_totals.items():
        product = products.get(product_id)
        if product is not None and product.stock < qty:
            short.append({
                "product_id": product_id,
                "product_name": product.name,
                "requested_quantity": qty,
                "available_stock": product.stock,
            })
    return short


def _validate_lines(lines: list[dict], products: dict[int, Product]) -> None:
    """
    Check lines in the order given. For each line the product must exist,
    then have stock for the order's whole quantity of it, then carry a price.
    The first failing check wins; a stock failure lists every short product.
    """
    product_totals: dict[int, int] = {}
    for line in lines:
        product_totals[line["product_id"]] = product_totals.get(line["product_id"], 0) + line["quantity"]

    for line in lines:
        product = products.get(line["product_id"])
        if product is None:
            raise NotFoundError(
                f"Product {line['product_id']} not found",
                details={"product_id": line["product_id"]},
            )

        if product.stock < product_totals[product.id]:
            raise InsufficientStockError(
                "Insufficient stock to place order",
                details={"items": _short_items(product_totals, products)},
            )

        if product.price_cents is None or product.price_cents <= 0:
            raise InvalidPriceError(
                f"Invalid price for product {product.name}",
                details={"product_id": product.id, "price_cents": product.price_cents},
            )


def _existing_order(request_key: str | None) -> Order | None:
    if not request_key:
        return None
    return db.session.query(Order).filter_by(request_key=request_key).first()


def _post_order_inner(
    *,
    customer: Customer,
    products: dict[int, Product],
    lines: list[dict],
    pricing: PricingStrategy | None,
    user_id: int | None,
    request_key: str | None,
) -> Order:
    """Write the order, its lines and stock exports, and charge the customer. No commit."""
    subtotal = 0
    returnable_out = 0
    for line in lines:
        product = products[line["product_id"]]
        subtotal += product.price_cents * line["quantity"]
        if product.is_returnable:
            returnable_out += line["quantity"]

    strategy = pricing or strategy_for_customer(customer)
    quote = strategy.quote(subtotal)

    order = Order(
        customer_id=customer.id,
        customer_name=customer.name,
        status=STATUS_PENDING,
        subtotal_cents=quote.subtotal_cents,
        discount_cents=quote.discount_cents,
        total_amount_cents=quote.total_cents,
        paid_amount_cents=0,
        returnable_out=returnable_out,
        returnable_in=0,
        pricing_policy=quote.policy,
        created_by_user_id=user_id,
        request_key=request_key,
    )
    db.session.add(order)
    db.session.flush()

    for line in lines:
        product = products[line["product_id"]]
        log = _apply_movement_inner(
            product=product,
            movement_type=MOVEMENT_EXPORT,
            quantity=line["quantity"],
            note=f"Order #{order.id} for {customer.name}",
            reference=f"order:{order.id}",
            user_id=user_id,
        )
        db.session.add(OrderItem(
            order_id=order.id,
            product_id=product.id,
            product_name=product.name,
            quantity=line["quantity"],
            unit_price_cents=product.price_cents,
            line_total_cents=product.price_cents * line["quantity"],
            inventory_log_id=log.id,
        ))

    customer.debt_cents += quote.total_cents
    customer.empty_debt += returnable_out
    return order


def create_order(
    *,
    customer_id: int,
    items,
    user_id: int | None = None,
    pricing: PricingStrategy | None = None,
    request_key: str | None = None,
) -> Order:
    """
    Create an order, export its stock and charge the customer.

    Args:
        customer_id: Customer placing the order
        items: [{"product_id": int, "quantity": int >= 1}, ...]
        user_id: Acting user (provenance only)
        pricing: Force a pricing strategy instead of the customer's default
        request_key: Idempotency key; a repeat returns the first order

    Raises:
        ValidationError, NotFoundError, InsufficientStockError, InvalidPriceError
    """
    lines = parse_line_items(items)
    request_key = optional_text(request_key, "request_key", max_length=64)

    def _replay(existing: Order) -> Order:
        if existing.customer_id != customer_id:
            raise ValidationError(
                "request_key already used for a different customer",
                details={"request_key": request_key},
            )
        return existing

    def _op():
        existing = _existing_order(request_key)
        if existing is not None:
            return _replay(existing)

        customer = get_for_update(Customer, customer_id)
        if customer is None:
            raise NotFoundError(f"Customer {customer_id} not found", details={"customer_id": customer_id})

        products = _lock_products(line["product_id"] for line in lines)
        _validate_lines(lines, products)

        try:
            order = _post_order_inner(
                customer=customer,
                products=products,
                lines=lines,
                pricing=pricing,
                user_id=user_id,
                request_key=request_key,
            )
            db.session.commit()
        except IntegrityError:
            # A concurrent request with the same key committed first.
            db.session.rollback()
            existing = _existing_order(request_key)
            if existing is None:
                raise
            return _replay(existing)
        return order

    return run_with_retry(_op)


def update_order_status(*, order_id: int, status) -> Order:
    """
    Move an order along pending -> completed | canceled.

    Status alone has no balance side effects: canceling does not restock or
    refund. Only explicit payment/return operations move balances.
    """
    status = require_choice(status, "status", DOCUMENT_STATUSES)

    def _op():
        order = get_for_update(Order, order_id)
        if order is None:
            raise NotFoundError(f"Order {order_id} not found", details={"order_id": order_id})

        if status not in STATUS_TRANSITIONS[order.status]:
            raise InvalidTransitionError(
                f"Cannot change order status from {order.status} to {status}",
                details={"order_id": order_id, "from": order.status, "to": status},
            )

        order.status = status
        db.session.commit()
        return order

    return run_with_retry(_op)

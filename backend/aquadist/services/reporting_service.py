# Overview: Service-layer operations for reporting; read-only debt, sales and revenue aggregates.

from __future__ import annotations

import calendar
from datetime import date, datetime, time

from sqlalchemy import case, func

from ..errors import ValidationError
from ..extensions import db
from ..models import Customer, Order, OrderItem, Product, Purchase, Supplier
from ..models.orders import STATUS_CANCELED, STATUS_COMPLETED
from ..time_utils import to_utc_z, utcnow
from ..validation import positive_int
from .inventory_service import _parse_range


MAX_REPORT_LIMIT = 100


def customer_debt_report() -> dict:
    """Customers owing money, customers owing empties, and customers in credit."""
    debtors = (
        db.session.query(Customer)
        .filter(Customer.debt_cents > 0)
        .order_by(Customer.debt_cents.desc(), Customer.id.asc())
        .all()
    )
    empties = (
        db.session.query(Customer)
        .filter(Customer.empty_debt > 0)
        .order_by(Customer.empty_debt.desc(), Customer.id.asc())
        .all()
    )
    in_credit = (
        db.session.query(Customer)
        .filter(Customer.debt_cents < 0)
        .order_by(Customer.debt_cents.asc(), Customer.id.asc())
        .all()
    )

    return {
        "debtors": [
            {"customer_id": c.id, "name": c.name, "phone": c.phone, "debt_cents": c.debt_cents}
            for c in debtors
        ],
        "total_debt_cents": sum(c.debt_cents for c in debtors),
        "empty_debtors": [
            {"customer_id": c.id, "name": c.name, "phone": c.phone, "empty_debt": c.empty_debt}
            for c in empties
        ],
        "total_empty_debt": sum(c.empty_debt for c in empties),
        "credit_balances": [
            {"customer_id": c.id, "name": c.name, "credit_balance_cents": c.credit_balance_cents}
            for c in in_credit
        ],
        "total_credit_cents": sum(c.credit_balance_cents for c in in_credit),
    }


def supplier_debt_report() -> dict:
    """Suppliers we still owe, derived from their non-canceled purchases."""
    debt_expr = Purchase.debt_remaining_cents
    rows = (
        db.session.query(
            Supplier.id,
            Supplier.name,
            func.coalesce(func.sum(debt_expr), 0).label("debt_cents"),
            func.sum(case((debt_expr > 0, 1), else_=0)).label("open_purchases"),
            func.max(Purchase.purchase_date).label("last_purchase_date"),
        )
        .join(Purchase, Purchase.supplier_id == Supplier.id)
        .filter(Purchase.status != STATUS_CANCELED)
        .group_by(Supplier.id, Supplier.name)
        .order_by(Supplier.name.asc(), Supplier.id.asc())
        .all()
    )

    suppliers = [
        {
            "supplier_id": row.id,
            "name": row.name,
            "debt_cents": int(row.debt_cents or 0),
            "open_purchases": int(row.open_purchases or 0),
            "last_purchase_date": to_utc_z(row.last_purchase_date),
        }
        for row in rows
        if int(row.debt_cents or 0) > 0
    ]
    suppliers.sort(key=lambda r: (-r["debt_cents"], r["supplier_id"]))

    return {
        "suppliers": suppliers,
        "total_debt_cents": sum(r["debt_cents"] for r in suppliers),
    }


def sales_summary(*, start=None, end=None) -> dict:
    """
    Order counts by status and money totals over non-canceled orders.

    start is inclusive; a bare end date covers the whole day.
    """
    start_dt, end_dt = _parse_range(start, end)

    def _in_range(q):
        if start_dt is not None:
            q = q.filter(Order.order_date >= start_dt)
        if end_dt is not None:
            q = q.filter(Order.order_date <= end_dt)
        return q

    counts = _in_range(
        db.session.query(Order.status, func.count(Order.id))
    ).group_by(Order.status).all()

    totals = _in_range(
        db.session.query(
            func.count(Order.id),
            func.coalesce(func.sum(Order.total_amount_cents), 0),
            func.coalesce(func.sum(Order.paid_amount_cents), 0),
            func.coalesce(func.sum(Order.discount_cents), 0),
        ).filter(Order.status != STATUS_CANCELED)
    ).one()

    order_count, total_sales, total_paid, total_discount = (int(v or 0) for v in totals)

    return {
        "start": to_utc_z(start_dt),
        "end": to_utc_z(end_dt),
        "orders_by_status": {status: int(n) for status, n in counts},
        "order_count": order_count,
        "total_sales_cents": total_sales,
        "total_paid_cents": total_paid,
        "total_discount_cents": total_discount,
        "total_debt_cents": total_sales - total_paid,
    }


# =============================================================================
# REVENUE (completed orders only)
# =============================================================================

def _parse_day(value) -> date:
    if value is None or value == "":
        return utcnow().date()
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value).strip())
    except ValueError:
        raise ValidationError(f"Invalid date: {value!r}", details={"field": "date"})


def _completed_orders(start_dt: datetime | None, end_dt: datetime | None) -> list[Order]:
    q = db.session.query(Order).filter(Order.status == STATUS_COMPLETED)
    if start_dt is not None:
        q = q.filter(Order.order_date >= start_dt)
    if end_dt is not None:
        q = q.filter(Order.order_date <= end_dt)
    return q.order_by(Order.order_date.asc(), Order.id.asc()).all()


def _money_totals(orders: list[Order]) -> dict:
    return {
        "order_count": len(orders),
        "total_revenue_cents": sum(o.total_amount_cents for o in orders),
        "total_paid_cents": sum(o.paid_amount_cents for o in orders),
        "total_debt_cents": sum(o.debt_remaining_cents for o in orders),
    }


def daily_revenue(*, day=None) -> dict:
    """
    Revenue of the completed orders placed on one UTC day (default today).
    """
    the_day = _parse_day(day)
    orders = _completed_orders(
        datetime.combine(the_day, time.min),
        datetime.combine(the_day, time.max),
    )

    return {
        "date": the_day.isoformat(),
        **_money_totals(orders),
        "orders": [
            {
                "order_id": o.id,
                "customer_name": o.customer_name,
                "total_amount_cents": o.total_amount_cents,
                "paid_amount_cents": o.paid_amount_cents,
                "debt_remaining_cents": o.debt_remaining_cents,
                "order_date": to_utc_z(o.order_date),
            }
            for o in orders
        ],
    }


def monthly_revenue(*, year=None, month=None) -> dict:
    """
    Revenue of the completed orders in one month, with a row for every day
    of the month (days without orders report zeros). Defaults to the
    current UTC month.
    """
    today = utcnow().date()
    year = positive_int(year, "year", maximum=9999) if year is not None else today.year
    month = positive_int(month, "month", maximum=12) if month is not None else today.month

    days_in_month = calendar.monthrange(year, month)[1]
    first = date(year, month, 1)
    last = date(year, month, days_in_month)
    orders = _completed_orders(
        datetime.combine(first, time.min),
        datetime.combine(last, time.max),
    )

    by_day: dict[date, list[Order]] = {}
    for order in orders:
        by_day.setdefault(order.order_date.date(), []).append(order)

    days = []
    for n in range(1, days_in_month + 1):
        d = date(year, month, n)
        days.append({"date": d.isoformat(), **_money_totals(by_day.get(d, []))})

    return {
        "year": year,
        "month": month,
        **_money_totals(orders),
        "days": days,
    }


def best_selling_products(*, limit=10, start=None, end=None) -> list[dict]:
    """
    Products ranked by quantity sold on completed orders.

    Ties break on product id. start is inclusive; a bare end date covers the
    whole day.
    """
    limit = positive_int(limit, "limit", maximum=MAX_REPORT_LIMIT)
    start_dt, end_dt = _parse_range(start, end)

    total_quantity = func.sum(OrderItem.quantity)
    q = (
        db.session.query(
            Product.id,
            Product.name,
            Product.unit,
            Product.price_cents,
            total_quantity.label("total_quantity"),
            func.sum(OrderItem.line_total_cents).label("total_revenue_cents"),
            func.count(func.distinct(OrderItem.order_id)).label("order_count"),
        )
        .join(OrderItem, OrderItem.product_id == Product.id)
        .join(Order, Order.id == OrderItem.order_id)
        .filter(Order.status == STATUS_COMPLETED)
    )
    if start_dt is not None:
        q = q.filter(Order.order_date >= start_dt)
    if end_dt is not None:
        q = q.filter(Order.order_date <= end_dt)

    rows = (
        q.group_by(Product.id, Product.name, Product.unit, Product.price_cents)
        .order_by(total_quantity.desc(), Product.id.asc())
        .limit(limit)
        .all()
    )

    return [
        {
            "product_id": row.id,
            "product_name": row.name,
            "unit": row.unit,
            "price_cents": row.price_cents,
            "total_quantity": int(row.total_quantity or 0),
            "total_revenue_cents": int(row.total_revenue_cents or 0),
            "order_count": int(row.order_count or 0),
        }
        for row in rows
    ]

from flask import Blueprint, jsonify, request

from ..errors import LedgerError
from ..services import reporting_service


reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


@reports_bp.get("/customer-debt")
def customer_debt_route():
    return jsonify(reporting_service.customer_debt_report()), 200


@reports_bp.get("/supplier-debt")
def supplier_debt_route():
    return jsonify(reporting_service.supplier_debt_report()), 200


@reports_bp.get("/sales-summary")
def sales_summary_route():
    try:
        summary = reporting_service.sales_summary(
            start=request.args.get("start"),
            end=request.args.get("end"),
        )
        return jsonify(summary), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code


@reports_bp.get("/revenue/daily")
def daily_revenue_route():
    """?date=YYYY-MM-DD (default today, UTC). Completed orders only."""
    try:
        return jsonify(reporting_service.daily_revenue(day=request.args.get("date"))), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code


@reports_bp.get("/revenue/monthly")
def monthly_revenue_route():
    """?year=2024&month=5 (default current month, UTC). Completed orders only."""
    try:
        report = reporting_service.monthly_revenue(
            year=request.args.get("year"),
            month=request.args.get("month"),
        )
        return jsonify(report), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code


@reports_bp.get("/products/best-selling")
def best_selling_products_route():
    try:
        products = reporting_service.best_selling_products(
            limit=request.args.get("limit", 10),
            start=request.args.get("start"),
            end=request.args.get("end"),
        )
        return jsonify({"items": products, "count": len(products)}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code

# Overview: Flask CLI command groups for database bootstrap and printing reports.

# backend/aquadist/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to "aquadist:create_app".
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create any missing tables (idempotent).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
# - python -m flask system wipe --yes
#   Delete all rows but keep the schema.
#
# Reports (read-only):
# - python -m flask reports inventory [--start 2024-05-01] [--end 2024-05-31]
# - python -m flask reports customer-debt
# - python -m flask reports supplier-debt
# - python -m flask reports sales-summary [--start ...] [--end ...]
# - python -m flask reports best-selling [--limit 10] [--start ...] [--end ...]

import click
from flask.cli import with_appcontext

from .errors import LedgerError
from .extensions import db
from .services import inventory_service, reporting_service


def _money(cents: int) -> str:
    return f"{cents / 100:,.2f}"


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Database tables ready.")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset complete.")


@system_group.command('wipe')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def wipe_data(yes):
    """Delete every row from every table, children first."""
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    for table in reversed(db.metadata.sorted_tables):
        result = db.session.execute(table.delete())
        click.echo(f"  {table.name}: {result.rowcount} rows deleted")
    db.session.commit()
    click.echo("PASS Wipe complete.")


@click.group('reports')
def reports_group():
    """Print read-only reports."""


@reports_group.command('inventory')
@click.option('--start', default=None, help='ISO date/datetime, inclusive')
@click.option('--end', default=None, help='ISO date/datetime; a bare date covers the whole day')
@with_appcontext
def inventory_report(start, end):
    """Per-product stock movement totals."""
    try:
        report = inventory_service.get_inventory_report(start=start, end=end)
    except LedgerError as e:
        raise click.ClickException(str(e))

    click.echo(f"{'Product':<30} {'Stock':>8} {'In':>8} {'Out':>8} {'Ret':>8} {'Net':>8}")
    for row in report["products"]:
        click.echo(
            f"{row['product_name']:<30} {row['current_stock']:>8} {row['imported']:>8} "
            f"{row['exported']:>8} {row['returned']:>8} {row['net_change']:>8}"
        )
    click.echo(f"Total products: {report['total_products']}")


@reports_group.command('customer-debt')
@with_appcontext
def customer_debt_report():
    report = reporting_service.customer_debt_report()

    click.echo("Customers owing money:")
    for row in report["debtors"]:
        click.echo(f"  [{row['customer_id']}] {row['name']:<30} {_money(row['debt_cents']):>14}")
    click.echo(f"Total debt: {_money(report['total_debt_cents'])}")

    click.echo("Customers owing empties:")
    for row in report["empty_debtors"]:
        click.echo(f"  [{row['customer_id']}] {row['name']:<30} {row['empty_debt']:>8}")
    click.echo(f"Total empties: {report['total_empty_debt']}")

    if report["credit_balances"]:
        click.echo("Customers in credit:")
        for row in report["credit_balances"]:
            click.echo(f"  [{row['customer_id']}] {row['name']:<30} {_money(row['credit_balance_cents']):>14}")


@reports_group.command('supplier-debt')
@with_appcontext
def supplier_debt_report():
    report = reporting_service.supplier_debt_report()
    for row in report["suppliers"]:
        click.echo(
            f"  [{row['supplier_id']}] {row['name']:<30} {_money(row['debt_cents']):>14} "
            f"open={row['open_purchases']} last={row['last_purchase_date']}"
        )
    click.echo(f"Total owed to suppliers: {_money(report['total_debt_cents'])}")


@reports_group.command('sales-summary')
@click.option('--start', default=None)
@click.option('--end', default=None)
@with_appcontext
def sales_summary(start, end):
    try:
        summary = reporting_service.sales_summary(start=start, end=end)
    except LedgerError as e:
        raise click.ClickException(str(e))

    for status, count in sorted(summary["orders_by_status"].items()):
        click.echo(f"  {status:<10} {count:>6}")
    click.echo(f"Orders (excluding canceled): {summary['order_count']}")
    click.echo(f"Total sales:       {_money(summary['total_sales_cents'])}")
    click.echo(f"Total paid:        {_money(summary['total_paid_cents'])}")
    click.echo(f"Outstanding debt:  {_money(summary['total_debt_cents'])}")


@reports_group.command('best-selling')
@click.option('--limit', default=10, type=int)
@click.option('--start', default=None)
@click.option('--end', default=None)
@with_appcontext
def best_selling(limit, start, end):
    """Products ranked by quantity sold on completed orders."""
    try:
        rows = reporting_service.best_selling_products(limit=limit, start=start, end=end)
    except LedgerError as e:
        raise click.ClickException(str(e))

    for rank, row in enumerate(rows, start=1):
        click.echo(
            f"{rank:>3}. {row['product_name']:<30} {row['total_quantity']:>8} "
            f"{_money(row['total_revenue_cents']):>14}"
        )


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(reports_group)

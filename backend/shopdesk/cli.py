# Overview: Flask CLI command groups for bootstrap and sales/credit inspection.

# backend/shopdesk/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to "shopdesk:create_app".
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create missing tables (idempotent).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Sales inspection:
# - python -m flask sales show <sale id or legacy id>
#   Print a sale with its lines, balance and payments.
# - python -m flask sales outstanding <customer id or legacy id>
#   Print a customer's open credit.
#
# Credit payments:
# - python -m flask payments record <sale id or legacy id> <amount> [--note "..."] [--legacy-id N]
#   Apply a payment to a credit sale.

import click
from flask.cli import with_appcontext

from .errors import EngineError
from .extensions import db
from .services import payment_service, sales_service
from .services.concurrency import run_with_configured_retry
from .time_utils import to_utc_z


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Database schema ready.")


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


@click.group('sales')
def sales_group():
    """Sales inspection commands."""


@sales_group.command('show')
@click.argument('ref')
@with_appcontext
def show_sale(ref):
    """Print a sale with its lines, balance and payments."""
    sale = sales_service.get_sale(ref)
    if sale is None:
        raise click.ClickException(f"Sale not found (id={ref})")

    data = sales_service.serialize_sale(sale)
    customer = data["customer"]["name"] if data["customer"] else "-"

    click.echo("\n" + "=" * 72)
    click.echo(f"Sale {sale.id}  legacy={sale.legacy_id or '-'}  customer={customer}")
    click.echo("=" * 72)
    click.echo(f"{'TYPE':<8} {'REF':<26} {'QTY':>10} {'PRICE':>12} {'TOTAL':>12}")
    for line in sale.lines:
        line_ref = line.product_ref or line.service_ref or line.legacy_product_id or line.legacy_service_id
        click.echo(f"{line.item_type:<8} {str(line_ref):<26} {line.qty:>10} {line.unit_price:>12} {line.line_total:>12}")
    click.echo("-" * 72)
    click.echo(f"Total: {sale.total}  Items: {sale.total_items}  On credit: {'Yes' if sale.on_credit else 'No'}")
    click.echo(f"Paid: {sale.paid_amount}  Outstanding: {sale.outstanding_amount}  Status: {sale.status}")

    payments = payment_service.get_sale_payments(sale)
    if payments:
        click.echo("-" * 72)
        click.echo(f"Payments ({len(payments)}):")
        for payment in payments:
            click.echo(f"  {to_utc_z(payment.created_at)}  {payment.amount:>12}  {payment.note or ''}")
    click.echo("=" * 72 + "\n")


@sales_group.command('outstanding')
@click.argument('customer_ref')
@with_appcontext
def customer_outstanding(customer_ref):
    """Print a customer's open credit."""
    summary = sales_service.get_customer_outstanding(customer_ref)
    click.echo(
        f"Customer {summary['customer_ref']}: "
        f"{summary['total_outstanding']} outstanding across {summary['pending_sales']} sale(s)"
    )


@click.group('payments')
def payments_group():
    """Credit payment commands."""


@payments_group.command('record')
@click.argument('sale_ref')
@click.argument('amount')
@click.option('--note', help='Free-text note stored with the payment')
@click.option('--legacy-id', type=int, help='Key of a payment migrated from the relational store')
@with_appcontext
def record_payment(sale_ref, amount, note, legacy_id):
    """Apply a payment to a credit sale."""
    try:
        payment, sale = run_with_configured_retry(
            lambda: payment_service.record_payment(sale_ref, amount, note, legacy_id=legacy_id)
        )
    except EngineError as exc:
        raise click.ClickException(str(exc))

    click.echo(f"PASS Payment {payment.id} recorded: {payment.amount}")
    click.echo(f"   Sale {sale.id}: paid {sale.paid_amount}, outstanding {sale.outstanding_amount}, status {sale.status}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(sales_group)
    app.cli.add_command(payments_group)

# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/ledgerpos/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create all tables that do not exist yet (idempotent).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Tenants and master data:
# - python -m flask companies create --name "Acme Corp" --code "ACME"
# - python -m flask companies list
# - python -m flask entities create --company-id 1 --name "Jane Doe" --type Customer
# - python -m flask products create --company-id 1 --sku SKU-1 --name "Widget" --purchase-price-cents 500 [--serialized]
# - python -m flask products list --company-id 1
#
# Inventory:
# - python -m flask inventory receive --company-id 1 --product-id 1 --vendor-id 2 --batch-code B1 --quantity 10 \
#       --purchase-price-cents 500 --selling-price-cents 800 [--serial SN1 --serial SN2] [--no-post-purchase]
# - python -m flask inventory show --company-id 1 [--batches]
#   Stock on hand per product, and whether each record's total matches its batches.
#
# Ledger:
# - python -m flask ledger verify [--company-id 1]
#   Fails (exit 1) if any entry group is unbalanced.
# - python -m flask ledger balance --account-id 3
#   Derived balance of one customer/vendor account.
# - python -m flask ledger summary --company-id 1

import click
from flask.cli import with_appcontext

from .errors import LedgerPosError
from .extensions import db
from .models import Company, InventoryRecord
from .services import (
    account_service,
    balance_service,
    catalog_service,
    inventory_service,
    ledger_service,
)
from .services.receipt_service import format_cents


def _fail(exc: LedgerPosError):
    click.echo(f"FAIL {exc.message}")
    if exc.details:
        click.echo(f"     {exc.details}")
    raise SystemExit(1)


# =============================================================================
# SYSTEM
# =============================================================================

@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create missing tables (does not touch existing data)."""
    db.create_all()
    click.echo("PASS Schema ready.")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA, including the ledger!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset complete.")


# =============================================================================
# COMPANIES / ENTITIES / PRODUCTS
# =============================================================================

@click.group('companies')
def companies_group():
    """Tenant management."""


@companies_group.command('create')
@click.option('--name', required=True, help='Company name')
@click.option('--code', default=None, help='Short code (unique)')
@with_appcontext
def create_company_cli(name, code):
    """Create a new company (tenant)."""
    try:
        company = catalog_service.create_company(name=name, code=code)
    except LedgerPosError as e:
        _fail(e)
    click.echo(f"PASS Created company: {company.name} (ID: {company.id}, Code: {company.code})")


@companies_group.command('list')
@with_appcontext
def list_companies_cli():
    """List all companies."""
    companies = db.session.query(Company).order_by(Company.id.asc()).all()
    if not companies:
        click.echo("No companies.")
        return
    for company in companies:
        status = "active" if company.is_active else "inactive"
        click.echo(f"{company.id:>4}  {company.code or '-':<10} {company.name} ({status})")


@click.group('entities')
def entities_group():
    """Customer / vendor master data."""


@entities_group.command('create')
@click.option('--company-id', type=int, required=True)
@click.option('--name', required=True)
@click.option('--type', 'entity_type', type=click.Choice(['Customer', 'Vendor', 'Both']), default='Customer')
@click.option('--email', default=None)
@click.option('--phone', default=None)
@with_appcontext
def create_entity_cli(company_id, name, entity_type, email, phone):
    """Create a customer or vendor."""
    try:
        entity = account_service.create_entity(
            company_id=company_id, name=name, entity_type=entity_type, email=email, phone=phone
        )
    except LedgerPosError as e:
        _fail(e)
    click.echo(f"PASS Created {entity.entity_type.lower()}: {entity.name} (ID: {entity.id})")


@click.group('products')
def products_group():
    """Product catalog."""


@products_group.command('create')
@click.option('--company-id', type=int, required=True)
@click.option('--sku', required=True)
@click.option('--name', required=True)
@click.option('--purchase-price-cents', type=int, default=0)
@click.option('--serialized', is_flag=True, help='Track individual units by serial number')
@click.option('--description', default=None)
@with_appcontext
def create_product_cli(company_id, sku, name, purchase_price_cents, serialized, description):
    """Create a product."""
    try:
        product = catalog_service.create_product(
            company_id=company_id,
            sku=sku,
            name=name,
            unit_purchase_price_cents=purchase_price_cents,
            is_serialized=serialized,
            description=description,
        )
    except LedgerPosError as e:
        _fail(e)
    click.echo(f"PASS Created product: {product.sku} {product.name} (ID: {product.id})")


@products_group.command('list')
@click.option('--company-id', type=int, required=True)
@click.option('--all', 'include_inactive', is_flag=True, help='Include inactive products')
@with_appcontext
def list_products_cli(company_id, include_inactive):
    """List products for a company."""
    for product in catalog_service.list_products(company_id, include_inactive=include_inactive):
        serial = " [serialized]" if product.is_serialized else ""
        click.echo(f"{product.id:>4}  {product.sku:<16} {product.name}{serial}")


# =============================================================================
# INVENTORY
# =============================================================================

@click.group('inventory')
def inventory_group():
    """Batch inventory commands."""


@inventory_group.command('receive')
@click.option('--company-id', type=int, required=True)
@click.option('--product-id', type=int, required=True)
@click.option('--vendor-id', type=int, default=None)
@click.option('--batch-code', required=True)
@click.option('--quantity', type=int, required=True)
@click.option('--purchase-price-cents', type=int, required=True)
@click.option('--selling-price-cents', type=int, required=True)
@click.option('--serial', 'serials', multiple=True, help='Serial number (repeat per unit)')
@click.option('--post-purchase/--no-post-purchase', default=True, help='Post the Purchase ledger fact')
@with_appcontext
def receive_cli(company_id, product_id, vendor_id, batch_code, quantity,
                purchase_price_cents, selling_price_cents, serials, post_purchase):
    """Receive a batch of stock."""
    try:
        batch = inventory_service.receive_batch(
            company_id,
            product_id,
            vendor_id,
            batch_code,
            quantity,
            purchase_price_cents,
            selling_price_cents,
            serial_numbers=list(serials) or None,
            post_purchase=post_purchase,
        )
    except LedgerPosError as e:
        _fail(e)
    click.echo(f"PASS Received batch {batch.batch_code} (ID: {batch.id}): {batch.quantity} units")


@inventory_group.command('show')
@click.option('--company-id', type=int, required=True)
@click.option('--batches', is_flag=True, help='List live batches oldest first')
@with_appcontext
def show_inventory_cli(company_id, batches):
    """Stock on hand, plus a total-vs-batches consistency check per record."""
    items = inventory_service.find_available(company_id, include_batches=batches)
    if not items:
        click.echo("No stock on hand.")
    for item in items:
        click.echo(f"{item['product_id']:>4}  {item['sku']:<16} {item['name']:<30} qty={item['total_quantity']}")
        for batch in item.get("batches", []):
            click.echo(
                f"        batch {batch['batch_code']:<12} qty={batch['quantity']:<6} "
                f"cost={format_cents(batch['purchase_price_cents'])} price={format_cents(batch['selling_price_cents'])}"
            )

    drifted = 0
    records = db.session.query(InventoryRecord.id).filter(InventoryRecord.company_id == company_id).all()
    for (record_id,) in records:
        check = inventory_service.verify_inventory_record(record_id)
        if not check["consistent"]:
            drifted += 1
            click.echo(
                f"WARN record {record_id}: total={check['total_quantity']} batch_sum={check['batch_sum']}"
            )
    click.echo(f"Stock value: {format_cents(inventory_service.inventory_value_cents(company_id))}")
    if drifted:
        raise SystemExit(1)


# =============================================================================
# LEDGER
# =============================================================================

@click.group('ledger')
def ledger_group():
    """Ledger inspection commands."""


@ledger_group.command('verify')
@click.option('--company-id', type=int, default=None, help='Limit to one company')
@with_appcontext
def verify_ledger_cli(company_id):
    """Check that every entry group has one debit and one equal credit."""
    bad = ledger_service.find_unbalanced_groups(company_id)
    if not bad:
        click.echo("PASS Ledger balanced.")
        return
    for group in bad:
        click.echo(
            f"FAIL group {group['entry_group_id']}: debit={group['debit']} credit={group['credit']} "
            f"rows={group['debit_rows']}/{group['credit_rows']}"
        )
    raise SystemExit(1)


@ledger_group.command('balance')
@click.option('--account-id', type=int, required=True)
@with_appcontext
def account_balance_cli(account_id):
    """Derived balance of a customer/vendor account."""
    try:
        data = balance_service.get_account_balance(account_id)
    except LedgerPosError as e:
        _fail(e)
    for key in ("amount_due", "amount_received", "discount_given", "tax_charged", "balance"):
        click.echo(f"{key:<16} {format_cents(data[key])}")


@ledger_group.command('summary')
@click.option('--company-id', type=int, required=True)
@with_appcontext
def summary_cli(company_id):
    """Company totals folded from the ledger."""
    summary = balance_service.get_company_summary(company_id)
    for key, value in summary.items():
        if key.endswith("_cents"):
            click.echo(f"{key[:-6]:<20} {format_cents(value)}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(companies_group)
    app.cli.add_command(entities_group)
    app.cli.add_command(products_group)
    app.cli.add_command(inventory_group)
    app.cli.add_command(ledger_group)

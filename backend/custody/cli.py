# Overview: Flask CLI command groups for bootstrap, consolidation, and audit.

# backend/custody/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create all tables that do not exist yet (use `flask db upgrade` for migrations).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
# - python -m flask system seed-demo
#   Idempotent demo data: one store, two tank types, one item, one worker pairing.
#
# Daily custody:
# - python -m flask inventory consolidate 42 --user-id 1 [--skip-weekends]
#   Close assignment 42 and open the next day's assignment with carried quantities.
# - python -m flask inventory audit-report --start 2024-01-01 --end 2024-01-31
#   Status transition report for a business-date window.
# - python -m flask inventory check-ledger 42
#   Compare cached quantities with ledger sums (exit code 1 on mismatch).

import json

import click
from flask.cli import with_appcontext

from .container import get_services
from .extensions import db
from .models import InventoryItem, Store, StoreAssignment, StoreCatalogItem, StoreCatalogTank, TankType
from .time_utils import parse_iso_date
from .validation import CustodyError


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create missing tables."""
    db.create_all()
    click.echo("PASS Tables created.")


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

    click.echo("PASS Database reset complete. Run 'python -m flask system seed-demo' for demo data.")


@system_group.command('seed-demo')
@click.option('--user-id', default=1, show_default=True, type=int, help='Worker user id for the pairing')
@with_appcontext
def seed_demo(user_id):
    """Create a demo store, catalog and worker pairing (idempotent)."""
    store = db.session.query(Store).filter_by(code="MAIN").first()
    if not store:
        store = Store(code="MAIN", name="Main Depot")
        db.session.add(store)
        db.session.flush()
        click.echo(f"PASS Created store: {store.name} (ID: {store.id})")

    for code, name, weight, purchase, sell in (
        ("GAS-20", "20kg cylinder", 20, 28000, 35000),
        ("GAS-45", "45kg cylinder", 45, 61000, 74000),
    ):
        tank = db.session.query(TankType).filter_by(code=code).first()
        if not tank:
            tank = TankType(code=code, name=name, weight_kg=weight)
            db.session.add(tank)
            db.session.flush()
        if not db.session.query(StoreCatalogTank).filter_by(store_id=store.id, tank_type_id=tank.id).first():
            db.session.add(StoreCatalogTank(
                store_id=store.id, tank_type_id=tank.id,
                purchase_price_cents=purchase, sell_price_cents=sell,
            ))

    item = db.session.query(InventoryItem).filter_by(code="REG-STD").first()
    if not item:
        item = InventoryItem(code="REG-STD", name="Standard regulator")
        db.session.add(item)
        db.session.flush()
    if not db.session.query(StoreCatalogItem).filter_by(store_id=store.id, inventory_item_id=item.id).first():
        db.session.add(StoreCatalogItem(
            store_id=store.id, inventory_item_id=item.id,
            purchase_price_cents=4500, sell_price_cents=6500,
        ))

    pairing = db.session.query(StoreAssignment).filter_by(store_id=store.id, user_id=user_id).first()
    if not pairing:
        pairing = StoreAssignment(
            store_id=store.id,
            user_id=user_id,
            start_date=get_services().date_service.get_current_date_in_timezone(),
        )
        db.session.add(pairing)
        db.session.flush()
        click.echo(f"PASS Created store assignment ID {pairing.id} for user {user_id}")

    db.session.commit()
    click.echo("PASS Demo data ready.")


@click.group('inventory')
def inventory_group():
    """Daily custody consolidation and audit commands."""


@inventory_group.command('consolidate')
@click.argument('inventory_id', type=int)
@click.option('--user-id', required=True, type=int, help='Acting user id recorded in history')
@click.option('--skip-weekends', is_flag=True, help='Roll past Saturday/Sunday')
@with_appcontext
def consolidate(inventory_id, user_id, skip_weekends):
    """Close an assignment and open the next working day's assignment."""
    try:
        result = get_services().consolidation.consolidate_and_create_next(
            inventory_id, user_id, skip_weekends
        )
    except CustodyError as e:
        raise click.ClickException(str(e))

    current = result["current_inventory"]
    nxt = result["next_day_inventory"]
    if result["already_consolidated"]:
        click.echo(f"SKIP Inventory {current['id']} already consolidated into {nxt['id']}")
        return
    click.echo(f"PASS Inventory {current['id']} consolidated")
    click.echo(f"PASS Next inventory {nxt['id']} for {nxt['assignment_date']}")
    if result["stale_recovery"]:
        click.echo("WARN Stale recovery: next inventory re-anchored to today")


@inventory_group.command('audit-report')
@click.option('--start', 'start', required=True, help='Start business date (YYYY-MM-DD)')
@click.option('--end', 'end', required=True, help='End business date (YYYY-MM-DD)')
@with_appcontext
def audit_report(start, end):
    """Print the status transition report as JSON."""
    try:
        report = get_services().history.get_audit_report(parse_iso_date(start), parse_iso_date(end))
    except ValueError as e:
        raise click.ClickException(str(e))
    click.echo(json.dumps(report, indent=2, sort_keys=True))


@inventory_group.command('check-ledger')
@click.argument('inventory_id', type=int)
@with_appcontext
def check_ledger(inventory_id):
    """Verify cached counts equal ledger sums for every line."""
    services = get_services()
    try:
        services.assignments.get(inventory_id)
    except CustodyError as e:
        raise click.ClickException(str(e))

    mismatches = services.ledger.find_ledger_mismatches(inventory_id)
    if not mismatches:
        click.echo(f"PASS Ledger consistent for inventory {inventory_id}")
        return
    for m in mismatches:
        click.echo(f"FAIL {json.dumps(m, sort_keys=True)}")
    raise SystemExit(1)


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(inventory_group)

# Overview: Flask CLI command groups for bootstrap and inspection.

# backend/depot/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init --email owner@depot.local --password "Password123!"
#   Idempotent bootstrap: creates tables, the default warehouse and the owner account.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Users:
# - python -m flask users list
# - python -m flask users create --email m@depot.local --password "Password123!" --full-name "Mia" --role MANAGER
#
# Warehouses:
# - python -m flask warehouses create --code WH2 --name "North Warehouse"
#
# Inventory:
# - python -m flask inventory low-stock --warehouse-id 1

import click
from flask.cli import with_appcontext

from .errors import ServiceError
from .extensions import db
from .models import Role, User, Warehouse
from .services import directory_service, inventory_service
from .services.auth_service import create_user


DEFAULT_WAREHOUSE_CODE = "MAIN"


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--email', default='owner@depot.local', help='Owner login email')
@click.option('--password', default='Password123!', help='Owner password')
@click.option('--full-name', default='Owner', help='Owner display name')
@click.option('--warehouse-name', default='Main Warehouse', help='Default warehouse name')
@with_appcontext
def init_system(email, password, full_name, warehouse_name):
    """
    Initialize the system: tables, default warehouse, owner account.

    Safe to run more than once; existing rows are left alone.
    SECURITY: Change the default password immediately in production!
    """
    click.echo("START Initializing depot...")
    db.create_all()

    warehouse = db.session.query(Warehouse).filter_by(code=DEFAULT_WAREHOUSE_CODE).first()
    if not warehouse:
        warehouse = directory_service.create_warehouse(code=DEFAULT_WAREHOUSE_CODE, name=warehouse_name)
        click.echo(f"PASS Created warehouse: {warehouse.name} (ID: {warehouse.id})")
    else:
        click.echo(f"PASS Using existing warehouse: {warehouse.name} (ID: {warehouse.id})")

    owner = db.session.query(User).filter_by(role=Role.OWNER).first()
    if owner:
        click.echo(f"PASS Owner already exists: {owner.email}")
    else:
        try:
            owner = create_user(email=email, password=password, full_name=full_name, role=Role.OWNER)
            db.session.commit()
        except ServiceError as e:
            db.session.rollback()
            raise click.ClickException(e.message)
        click.echo(f"PASS Created owner: {owner.email}")

    click.echo("DONE Initialization complete")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Confirm destructive reset')
@with_appcontext
def reset_db(yes):
    """DEV/TEST only: drop and recreate every table."""
    if not yes:
        raise click.ClickException("Refusing to reset without --yes")
    db.drop_all()
    db.create_all()
    click.echo("PASS Database reset")


@click.group('users')
def users_group():
    """User inspection and bootstrap."""


@users_group.command('list')
@with_appcontext
def list_users():
    users = db.session.query(User).order_by(User.id).all()
    if not users:
        click.echo("No users found")
        return
    for user in users:
        status = "active" if user.is_active else "inactive"
        click.echo(f"{user.id:>4}  {user.email:<32} {user.role.value:<12} {status}")


@users_group.command('create')
@click.option('--email', prompt=True)
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True)
@click.option('--full-name', prompt=True)
@click.option('--role', type=click.Choice([r.value for r in (Role.OWNER, Role.MANAGER)], case_sensitive=False),
              default=Role.MANAGER.value, show_default=True)
@with_appcontext
def create_user_cmd(email, password, full_name, role):
    """
    Create a warehouse staff account.

    Distributors and clients are created through the API so they get their
    business profile in the same transaction.
    """
    try:
        user = create_user(email=email, password=password, full_name=full_name, role=Role(role.upper()))
        db.session.commit()
    except ServiceError as e:
        db.session.rollback()
        raise click.ClickException(e.message)
    click.echo(f"PASS Created {user.role.value} {user.email} (ID: {user.id})")


@click.group('warehouses')
def warehouses_group():
    """Warehouse management."""


@warehouses_group.command('create')
@click.option('--code', required=True)
@click.option('--name', required=True)
@click.option('--location', default=None)
@with_appcontext
def create_warehouse_cmd(code, name, location):
    try:
        warehouse = directory_service.create_warehouse(code=code, name=name, location=location)
    except ServiceError as e:
        raise click.ClickException(e.message)
    click.echo(f"PASS Created warehouse {warehouse.code}: {warehouse.name} (ID: {warehouse.id})")


@click.group('inventory')
def inventory_group():
    """Inventory inspection."""


@inventory_group.command('low-stock')
@click.option('--warehouse-id', type=int, required=True)
@with_appcontext
def low_stock_cmd(warehouse_id):
    """List products below their reorder level."""
    try:
        result = inventory_service.list_warehouse_inventory(warehouse_id=warehouse_id, low_stock_only=True)
    except ServiceError as e:
        raise click.ClickException(e.message)

    if not result["items"]:
        click.echo("PASS No low stock items")
        return
    for item in result["items"]:
        product = item["product"]
        click.echo(
            f"WARN {product['sku']:<16} {product['name']:<32} "
            f"qty={item['quantity']} reorder_level={item['reorder_level']}"
        )
    click.echo(f"{result['low_stock_count']} item(s) below reorder level")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(warehouses_group)
    app.cli.add_command(inventory_group)

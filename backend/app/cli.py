# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/app/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create any missing tables (use `flask db upgrade` for migrated deployments).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
# - python -m flask system seed-demo
#   Idempotent demo data: owner, manager, cashier, one shop, sarees, one supplier.
#
# User inspection/bootstrap:
# - python -m flask users list
#   List all users with role and active status.
# - python -m flask users create --name "Asha" --email asha@shop.local --password "Password123" --role Owner
#   Create a user (prompts if options are omitted).

import click
from flask import current_app
from flask.cli import with_appcontext

from .errors import AppError
from .extensions import db
from .models import Saree, Shop, Supplier, User
from .models.auth import ROLE_CASHIER, ROLE_MANAGER, ROLE_OWNER, VALID_ROLES
from .services import inventory_service, shop_service, supplier_service
from .services.auth_service import create_user

DEMO_PASSWORD = "Password123"

DEMO_USERS = [
    ("Demo Owner", "owner@billing.local", ROLE_OWNER),
    ("Demo Manager", "manager@billing.local", ROLE_MANAGER),
    ("Demo Cashier", "cashier@billing.local", ROLE_CASHIER),
]

DEMO_SAREES = [
    {"item_code": "KAN-001", "name": "Kanjivaram Silk", "type": "Silk", "color": "Maroon", "price": "12500.00", "stock_quantity": 6},
    {"item_code": "BAN-002", "name": "Banarasi Brocade", "type": "Silk", "color": "Gold", "price": "9800.00", "stock_quantity": 4},
    {"item_code": "CHN-003", "name": "Chanderi Cotton", "type": "Cotton", "color": "Peach", "price": "2450.50", "stock_quantity": 15},
    {"item_code": "GEO-004", "name": "Printed Georgette", "type": "Georgette", "color": "Navy", "design": "Floral", "price": "1299.00", "stock_quantity": 25},
]


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create any missing tables from the model metadata."""
    db.create_all()
    click.echo("PASS Database tables created")


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

    click.echo("PASS Database reset complete")


def _ensure_user(name, email, role):
    user = db.session.query(User).filter_by(email=email).first()
    if user:
        click.echo(f"WARN  User '{email}' already exists, skipping...")
        return user
    user = create_user(
        name,
        email,
        DEMO_PASSWORD,
        role,
        bcrypt_rounds=current_app.config["BCRYPT_ROUNDS"],
    )
    click.echo(f"PASS Created user: {email} with role '{role}'")
    return user


@system_group.command('seed-demo')
@click.option('--shop-name', default='Demo Saree House', help='Name of the demo shop')
@with_appcontext
def seed_demo(shop_name):
    """
    Seed a demo shop for local development.

    Creates (skipping anything that already exists):
    - Users: owner, manager and cashier, all with password "Password123"
    - One shop owned by the owner, joined by manager and cashier
    - A few sarees with opening stock booked through the stock ledger
    - One supplier
    """
    click.echo("START Seeding demo data...")

    users = {role: _ensure_user(name, email, role) for name, email, role in DEMO_USERS}
    owner = users[ROLE_OWNER]

    shop = db.session.query(Shop).filter_by(owner_id=owner.id, name=shop_name).first()
    if shop:
        click.echo(f"WARN  Shop '{shop.name}' already exists, skipping...")
    else:
        shop = shop_service.create_shop(owner, {"name": shop_name, "tax_percentage": "5", "city": "Chennai"})
        click.echo(f"PASS Created shop: {shop.name} (ID: {shop.id}, Code: {shop.secret_code})")

    for role in (ROLE_MANAGER, ROLE_CASHIER):
        member = users[role]
        if shop_service.is_member(shop.id, member.id):
            continue
        shop_service.join_shop(member, shop.secret_code)
        click.echo(f"PASS {member.email} joined {shop.name}")

    for data in DEMO_SAREES:
        exists = db.session.query(Saree.id).filter_by(shop_id=shop.id, item_code=data["item_code"]).first()
        if exists:
            continue
        try:
            saree = inventory_service.create_saree(shop.id, owner, data)
        except AppError as e:
            click.echo(f"FAIL Saree {data['item_code']}: {e.message}")
            continue
        click.echo(f"PASS Saree {saree.item_code} with {saree.stock_quantity} in stock")

    if not db.session.query(Supplier.id).filter_by(shop_id=shop.id).first():
        supplier = supplier_service.create_supplier(
            shop.id,
            owner,
            {"name": "Kanchi Weavers Co-op", "email": "orders@kanchiweavers.local", "phone": "9000000001"},
        )
        click.echo(f"PASS Created supplier: {supplier.name}")

    click.echo("\n" + "="*60)
    click.echo("DONE Demo data ready")
    click.echo("="*60)
    click.echo(f"\nShop: {shop.name} (ID: {shop.id}) join code {shop.secret_code}")
    click.echo("\nDemo Credentials:")
    for _, email, role in DEMO_USERS:
        click.echo(f"   {role:<8} -> {email:<24} / {DEMO_PASSWORD}")
    click.echo("")


@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('create')
@click.option('--name', prompt=True, help='Display name')
@click.option('--email', prompt=True, help='Email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(list(VALID_ROLES)), prompt=True, help='Role')
@with_appcontext
def create_user_cli(name, email, password, role):
    """
    Create a new user interactively.

    Password must be at least 8 characters with a letter and a digit.
    """
    try:
        user = create_user(
            name,
            email,
            password,
            role,
            bcrypt_rounds=current_app.config["BCRYPT_ROUNDS"],
        )
    except AppError as e:
        click.echo(f"FAIL {e.message}")
        return
    click.echo(f"PASS Created user: {user.email} (ID: {user.id}) with role '{user.role}'")


@users_group.command('list')
@click.option('--role', type=click.Choice(list(VALID_ROLES)), help='Filter by role')
@with_appcontext
def list_users(role):
    """List all users with their role and shop count."""
    query = db.session.query(User)
    if role:
        query = query.filter_by(role=role)
    users = query.order_by(User.id).all()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*90)
    click.echo(f"{'ID':<5} {'Name':<20} {'Email':<30} {'Role':<9} {'Active':<8} {'Shops'}")
    click.echo("="*90)

    for user in users:
        active_str = "Yes" if user.is_active else "No"
        click.echo(
            f"{user.id:<5} {user.name[:20]:<20} {user.email[:30]:<30} {user.role:<9} {active_str:<8} {len(user.memberships)}"
        )

    click.echo("="*90 + "\n")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)

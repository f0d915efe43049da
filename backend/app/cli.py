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
#   Create all tables (use `flask db upgrade` for migration-managed databases).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Catalog:
# - python -m flask catalog seed [--with-users]
#   Insert demo products (and demo accounts). Idempotent.
# - python -m flask catalog list
#   Show products with stock and MOQ.
#
# Users:
# - python -m flask users list [--pending]
# - python -m flask users activate purchasing@medicorp.com
#   Activate a wholesale account after verification.
#
# Orders / audit inspection:
# - python -m flask orders list [--status "Payment Review"] [--limit 20]
# - python -m flask audit tail [--limit 20]

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import OrderStatus
from .services import audit_service, catalog_service, order_service, user_service
from .errors import OrderEngineError


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("Tables created.")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """DEV/TEST only: drop and recreate all tables."""
    if not yes:
        click.confirm("This deletes ALL data. Continue?", abort=True)
    db.drop_all()
    db.create_all()
    click.echo("Database reset.")


@click.group('catalog')
def catalog_group():
    """Catalog seeding and inspection."""


@catalog_group.command('seed')
@click.option('--with-users', is_flag=True, help='Also create demo accounts')
@with_appcontext
def seed_catalog(with_users):
    from .seed import seed_catalog as _seed_catalog, seed_users, DEMO_PASSWORD

    created = _seed_catalog()
    click.echo(f"Products created: {created}")
    if with_users:
        users_created = seed_users()
        click.echo(f"Users created: {users_created} (password: {DEMO_PASSWORD})")


@catalog_group.command('list')
@with_appcontext
def list_catalog():
    products = catalog_service.list_products()
    if not products:
        click.echo("No products.")
        return
    for p in products:
        rx = "Rx" if p.requires_prescription else "  "
        click.echo(
            f"{p.id:<8} {p.sku:<10} {rx} stock={p.stock:<6} moq={p.min_order_quantity:<4} "
            f"price={p.price} wholesale={p.wholesale_price}  {p.name}"
        )


@click.group('users')
def users_group():
    """User inspection and verification."""


@users_group.command('list')
@click.option('--pending', is_flag=True, help='Only accounts awaiting activation')
@with_appcontext
def list_users(pending):
    users = user_service.list_users(pending_only=pending)
    if not users:
        click.echo("No users.")
        return
    for u in users:
        status = "active" if u.is_active else "PENDING"
        click.echo(f"{u.id:<16} {u.role:<10} {status:<8} {u.email}")


@users_group.command('activate')
@click.argument('email')
@with_appcontext
def activate_user(email):
    user = user_service.get_user_by_email(email)
    if user is None:
        raise click.ClickException(f"No user with email {email}")
    user_service.activate_user(user.id)
    click.echo(f"Activated {user.email} ({user.role}).")


@click.group('orders')
def orders_group():
    """Order inspection."""


@orders_group.command('list')
@click.option('--status', type=click.Choice([s.value for s in OrderStatus]), help='Filter by status')
@click.option('--limit', default=20, show_default=True, type=int)
@with_appcontext
def list_orders(status, limit):
    try:
        orders = order_service.list_orders(status=status, limit=limit)
    except OrderEngineError as e:
        raise click.ClickException(str(e))
    if not orders:
        click.echo("No orders.")
        return
    for o in orders:
        click.echo(f"{o.id:<22} {o.status:<18} {o.payment_method:<18} {o.total_amount:>12}  {o.user_name}")


@click.group('audit')
def audit_group():
    """Audit log inspection."""


@audit_group.command('tail')
@click.option('--limit', default=20, show_default=True, type=int)
@with_appcontext
def audit_tail(limit):
    for e in audit_service.list_entries(limit=limit):
        click.echo(f"{e.occurred_at:%Y-%m-%d %H:%M:%S} {e.action:<18} {e.target_id:<22} {e.performed_by}  {e.details or ''}")


def register_commands(app):
    app.cli.add_command(system_group)
    app.cli.add_command(catalog_group)
    app.cli.add_command(users_group)
    app.cli.add_command(orders_group)
    app.cli.add_command(audit_group)

# Overview: Operator commands on the flask CLI (schema, accounts, catalog and ledger inspection).
#
# Run from backend/ with FLASK_APP=wsgi.py, e.g. `flask products list --include-sold`.
#
# Schema:
# - python -m flask system init-db
#   Create any missing tables (use `flask db upgrade` for migrated deployments).
# - python -m flask system reset-db --yes
#   Drop and recreate every table. Local databases only.
#
# Users:
# - python -m flask users create --first-name Ada --last-name Lovelace --email ada@example.com ...
# - python -m flask users list
#
# Catalog and ledger inspection:
# - python -m flask products list [--owner-id 1] [--include-sold]
# - python -m flask ledger history --user-id 1 --viewpoint BOUGHT
#
# Maintenance:
# - python -m flask maintenance cleanup-sessions --retention-days 30

import click
from flask.cli import with_appcontext

from .errors import MarketplaceError
from .extensions import db
from .models import HistoryViewpoint, Product, User
from .services import auth_service, session_service
from .services.ledger_service import TransactionLedger


def _money(cents: int | None) -> str:
    return "-" if cents is None else f"${cents / 100:,.2f}"


@click.group('system')
def system_group():
    """Schema bootstrap commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Database tables created")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """Drop every table and recreate the schema. All data is lost."""
    if not yes:
        click.confirm("All marketplace data will be deleted. Continue?", abort=True)

    db.drop_all()
    db.create_all()
    click.echo("PASS Database reset complete")


@click.group('users')
def users_group():
    """Account commands."""


@users_group.command('create')
@click.option('--first-name', prompt=True)
@click.option('--last-name', prompt=True)
@click.option('--email', prompt=True, help='Email address (login identifier)')
@click.option('--address', prompt=True)
@click.option('--phone-number', prompt=True)
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True)
@with_appcontext
def create_user_cli(first_name, last_name, email, address, phone_number, password):
    """Register an account (same rules as POST /api/auth/register)."""
    try:
        user = auth_service.register_user(
            db.session,
            first_name=first_name,
            last_name=last_name,
            email=email,
            address=address,
            phone_number=phone_number,
            password=password,
        )
    except MarketplaceError as e:
        raise click.ClickException(str(e))
    click.echo(f"PASS Created user: {user.email} (ID: {user.id})")


@users_group.command('list')
@with_appcontext
def list_users():
    """List all users."""
    users = db.session.query(User).order_by(User.id.asc()).all()
    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "=" * 80)
    click.echo(f"{'ID':<5} {'Name':<30} {'Email':<35} {'Products'}")
    click.echo("=" * 80)
    for user in users:
        name = user.full_name
        click.echo(f"{user.id:<5} {name:<30} {user.email:<35} {len(user.products)}")
    click.echo("=" * 80 + "\n")


@click.group('products')
def products_group():
    """Catalog inspection commands."""


@products_group.command('list')
@click.option('--owner-id', type=int, help='Filter by owner user ID')
@click.option('--include-sold', is_flag=True, help='Include sold products')
@with_appcontext
def list_products_cli(owner_id, include_sold):
    query = db.session.query(Product)
    if owner_id:
        query = query.filter(Product.owner_id == owner_id)
    if not include_sold:
        query = query.filter(Product.is_sold.is_(False))
    products = query.order_by(Product.created_at.desc(), Product.id.desc()).all()

    if not products:
        click.echo("No products found.")
        return

    click.echo("\n" + "=" * 100)
    click.echo(f"{'ID':<5} {'Owner':<6} {'Title':<35} {'Price':<14} {'Rent':<22} {'Views':<6} {'Sold'}")
    click.echo("=" * 100)
    for p in products:
        rent = f"{_money(p.rent_price_cents)} {p.rent_type or ''}".strip()
        sold = "Yes" if p.is_sold else "No"
        click.echo(f"{p.id:<5} {p.owner_id:<6} {p.title[:34]:<35} {_money(p.price_cents):<14} {rent:<22} {p.views:<6} {sold}")
    click.echo("=" * 100 + "\n")


@click.group('ledger')
def ledger_group():
    """Transaction ledger inspection commands."""


@ledger_group.command('history')
@click.option('--user-id', type=int, required=True)
@click.option('--viewpoint', type=click.Choice([v.value for v in HistoryViewpoint]), required=True)
@with_appcontext
def ledger_history_cli(user_id, viewpoint):
    """Show a user's transactions from one viewpoint, newest first."""
    items = TransactionLedger(db.session).history(user_id, viewpoint)
    if not items:
        click.echo("No transactions found.")
        return

    for t in items:
        if t.kind == "BUY":
            terms = _money(t.price_cents)
        else:
            terms = f"{_money(t.rent_price_cents)} {t.rent_type} [{t.start_at} -> {t.end_at}]"
        click.echo(f"#{t.id:<5} {t.kind:<5} product={t.product_id:<5} user={t.user_id:<5} {terms}  at {t.created_at}")


@click.group('maintenance')
def maintenance_group():
    """Housekeeping commands."""


@maintenance_group.command('cleanup-sessions')
@click.option('--retention-days', type=int, default=30, show_default=True)
@with_appcontext
def cleanup_sessions_cli(retention_days):
    """Delete expired or revoked session tokens older than the retention window."""
    deleted = session_service.cleanup_expired_sessions(db.session, retention_days=retention_days)
    click.echo(f"Deleted {deleted} session tokens older than {retention_days} days.")


def register_commands(app):
    """Attach every command group to app.cli."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(products_group)
    app.cli.add_command(ledger_group)
    app.cli.add_command(maintenance_group)

# Overview: Flask CLI command groups for bootstrap, master data and ledger maintenance.

# backend/mams/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init [--admin-email admin@mams.local --admin-password "Password123"]
#   Create all tables and, optionally, the first admin account. Idempotent.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Master data:
# - python -m flask bases create --name "Fort Alpha" --code ALPHA [--location "North"]
# - python -m flask bases list
# - python -m flask equipment create --name "Rifle" [--category WEAPON] [--unit unit] [--serialized]
# - python -m flask equipment list
#
# Users and base access:
# - python -m flask users create --email cmd@mams.local --role BASE_COMMANDER --base-id 1
# - python -m flask users list
# - python -m flask access grant --user-id 3 --base-id 2
# - python -m flask access revoke --user-id 3 --base-id 2
#
# Ledger:
# - python -m flask ledger verify
#   Compare stock position accumulators against ledger sums.

import click
from flask.cli import with_appcontext

from .errors import DomainError
from .extensions import db
from .models import User
from .permissions import ROLE_ADMIN, ROLES, Admin
from .services import access_service, auth_service, ledger_service, master_data_service

# Actor used for master-data changes made from the command line
SYSTEM_ACTOR = Admin(user_id=None)


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--admin-email', default=None, help='Create this admin account if it does not exist')
@click.option('--admin-password', default=None, help='Password for the admin account')
@with_appcontext
def init_system(admin_email, admin_password):
    """Create the schema and, optionally, the first admin user."""
    click.echo("START Initializing MAMS...")
    db.create_all()
    click.echo("PASS Schema ready")

    if not admin_email:
        return

    existing = db.session.query(User).filter_by(email=admin_email.strip().lower()).first()
    if existing:
        click.echo(f"PASS Using existing admin: {existing.email} (ID: {existing.id})")
        return

    if not admin_password:
        admin_password = click.prompt("Admin password", hide_input=True, confirmation_prompt=True)

    try:
        user = auth_service.create_user(admin_email, admin_password, ROLE_ADMIN)
    except DomainError as e:
        click.echo(f"FAIL Could not create admin: {e.message}")
        return
    click.echo(f"PASS Created admin: {user.email} (ID: {user.id})")


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


@click.group('bases')
def bases_group():
    """Base master data."""


@bases_group.command('create')
@click.option('--name', prompt=True, help='Base name')
@click.option('--code', prompt=True, help='Unique base code')
@click.option('--location', default=None, help='Location')
@with_appcontext
def create_base_cli(name, code, location):
    try:
        base = master_data_service.create_base(SYSTEM_ACTOR, name=name, code=code, location=location)
    except DomainError as e:
        click.echo(f"FAIL {e.message}")
        return
    click.echo(f"PASS Created base {base.code} (ID: {base.id})")


@bases_group.command('list')
@with_appcontext
def list_bases_cli():
    bases = master_data_service.list_bases(SYSTEM_ACTOR)
    if not bases:
        click.echo("No bases found.")
        return

    click.echo(f"{'ID':<5} {'Code':<12} {'Name':<30} {'Location'}")
    for base in bases:
        click.echo(f"{base.id:<5} {base.code:<12} {base.name:<30} {base.location or ''}")


@click.group('equipment')
def equipment_group():
    """Equipment catalog."""


@equipment_group.command('create')
@click.option('--name', prompt=True, help='Equipment type name')
@click.option('--category', default=None, help='Category')
@click.option('--unit', default='unit', help='Counting unit')
@click.option('--serialized', is_flag=True, help='Items carry serial numbers')
@with_appcontext
def create_equipment_cli(name, category, unit, serialized):
    try:
        equipment_type = master_data_service.create_equipment_type(
            SYSTEM_ACTOR,
            name=name,
            category=category,
            unit=unit,
            is_serialized=serialized,
        )
    except DomainError as e:
        click.echo(f"FAIL {e.message}")
        return
    click.echo(f"PASS Created equipment type {equipment_type.name} (ID: {equipment_type.id})")


@equipment_group.command('list')
@click.option('--category', default=None, help='Filter by category')
@with_appcontext
def list_equipment_cli(category):
    equipment_types = master_data_service.list_equipment_types(category=category)
    if not equipment_types:
        click.echo("No equipment types found.")
        return

    click.echo(f"{'ID':<5} {'Name':<30} {'Category':<15} {'Unit':<8} {'Serialized'}")
    for et in equipment_types:
        serialized = "Yes" if et.is_serialized else "No"
        click.echo(f"{et.id:<5} {et.name:<30} {et.category or '':<15} {et.unit:<8} {serialized}")


@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('create')
@click.option('--email', prompt=True, help='Email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(list(ROLES)), prompt=True, help='Role')
@click.option('--base-id', type=int, default=None, help='Home base (required for commanders)')
@with_appcontext
def create_user_cli(email, password, role, base_id):
    """
    Create a new user.

    Password must be 8+ characters with an uppercase letter, a lowercase
    letter and a digit.
    """
    try:
        user = auth_service.create_user(email, password, role, base_id=base_id)
    except DomainError as e:
        click.echo(f"FAIL Failed to create user: {e.message}")
        return
    click.echo(f"PASS Created user: {user.email} with role '{user.role}'")
    click.echo("SECURITY Password securely hashed with bcrypt")


@users_group.command('list')
@with_appcontext
def list_users():
    """List all users with role, home base and granted bases."""
    users = db.session.query(User).order_by(User.id.asc()).all()
    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "=" * 100)
    click.echo(f"{'ID':<5} {'Email':<30} {'Role':<20} {'Base':<6} {'Active':<8} {'Granted'}")
    click.echo("=" * 100)
    for user in users:
        granted = sorted(access_service.get_granted_base_ids(user.id))
        granted_str = ", ".join(str(b) for b in granted) if granted else "-"
        active_str = "Yes" if user.is_active else "No"
        base_str = str(user.base_id) if user.base_id is not None else "-"
        click.echo(f"{user.id:<5} {user.email:<30} {user.role:<20} {base_str:<6} {active_str:<8} {granted_str}")
    click.echo("=" * 100 + "\n")


@click.group('access')
def access_group():
    """Base access grants for non-commander users."""


@access_group.command('grant')
@click.option('--user-id', type=int, required=True)
@click.option('--base-id', type=int, required=True)
@with_appcontext
def grant_access_cli(user_id, base_id):
    try:
        access_service.grant_base_access(user_id=user_id, base_id=base_id)
    except DomainError as e:
        click.echo(f"FAIL {e.message}")
        return
    click.echo(f"PASS User {user_id} can now access base {base_id}")


@access_group.command('revoke')
@click.option('--user-id', type=int, required=True)
@click.option('--base-id', type=int, required=True)
@with_appcontext
def revoke_access_cli(user_id, base_id):
    if access_service.revoke_base_access(user_id=user_id, base_id=base_id):
        click.echo(f"PASS Revoked base {base_id} from user {user_id}")
    else:
        click.echo(f"WARN User {user_id} had no grant for base {base_id}")


@click.group('ledger')
def ledger_group():
    """Ledger maintenance."""


@ledger_group.command('verify')
@with_appcontext
def verify_ledger_cli():
    """Exit non-zero when any stock position disagrees with its ledger sum."""
    mismatches = ledger_service.verify_positions()
    if not mismatches:
        click.echo("PASS All stock positions match the ledger")
        return

    for row in mismatches:
        click.echo(
            f"FAIL base={row['base_id']} type={row['equipment_type_id']} "
            f"ledger={row['ledger_balance']} position={row['position_on_hand']}"
        )
    raise SystemExit(1)


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(bases_group)
    app.cli.add_command(equipment_group)
    app.cli.add_command(users_group)
    app.cli.add_command(access_group)
    app.cli.add_command(ledger_group)

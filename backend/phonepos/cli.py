# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/phonepos/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to phonepos (PowerShell: $env:FLASK_APP="phonepos").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init
#   Idempotent bootstrap: creates tables, roles, permissions, and the default admin.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# User inspection/bootstrap:
# - python -m flask users list
#   List all users with role and active status.
# - python -m flask users create --username admin --email admin@phonepos.local --password "Password123!" --role admin
#   Create a user (prompts if options are omitted).
#
# Backups:
# - python -m flask backup export backup.json
# - python -m flask backup restore backup.json
#
# Ledger:
# - python -m flask ledger verify [--product-id 1]
#   Replay stock movements and report products whose stock has drifted.

import json

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import User
from .permissions import DEFAULT_ROLE_PERMISSIONS
from .services import backup_service, permission_service, stock_service
from .services.auth_service import create_user, create_default_roles
from .services.backup_service import BackupError
from .services.user_service import serialize_user
from .validation import ValidationError, ConflictError, NotFoundError


DEFAULT_ADMIN = ("admin", "admin@phonepos.local", "Password123!")


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@with_appcontext
def init_system():
    """
    Initialize PhonePOS: schema, roles, permissions and a default admin.

    SECURITY: Change the default admin password immediately in production!
    """
    click.echo("START Initializing PhonePOS...")

    db.create_all()
    click.echo("PASS Tables ready")

    created_roles = create_default_roles()
    click.echo(f"PASS Roles created: {created_roles} (of {len(DEFAULT_ROLE_PERMISSIONS)})")

    perm_count = permission_service.initialize_permissions()
    assignment_count = permission_service.assign_default_role_permissions()
    click.echo(f"PASS Created {perm_count} permissions, {assignment_count} role assignments")

    username, email, password = DEFAULT_ADMIN
    if db.session.query(User).filter_by(username=username).first():
        click.echo(f"WARN  User '{username}' already exists, skipping...")
    else:
        create_user(username=username, email=email, password=password, role_name="admin", name="Administrator")
        click.echo(f"PASS Created user: {username} ({email}) with role 'admin'")
        click.echo("\nDefault Credentials (CHANGE IN PRODUCTION!):")
        click.echo(f"   {username} -> {email} / {password}")

    click.echo("DONE PhonePOS initialized")


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

    click.echo("PASS Database reset complete. Run 'python -m flask system init' to initialize.")


# =============================================================================
# USER MANAGEMENT COMMANDS
# =============================================================================

@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('create')
@click.option('--username', prompt=True, help='Username')
@click.option('--email', prompt=True, help='Email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(sorted(DEFAULT_ROLE_PERMISSIONS)), prompt=True, help='Role')
@click.option('--name', default=None, help='Display name')
@with_appcontext
def create_user_cli(username, email, password, role, name):
    """
    Create a new user.

    Password must meet strength requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    - At least one special character
    """
    try:
        create_user(username=username, email=email, password=password, role_name=role, name=name)
    except (ValidationError, ConflictError, NotFoundError) as e:
        raise click.ClickException(f"FAIL Failed to create user: {e}")

    click.echo(f"PASS Created user: {username} ({email}) with role '{role}'")


@users_group.command('list')
@with_appcontext
def list_users():
    """List all users with their roles."""
    users = db.session.query(User).order_by(User.id.asc()).all()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*90)
    click.echo(f"{'ID':<5} {'Username':<20} {'Email':<32} {'Active':<8} {'Role'}")
    click.echo("="*90)

    for user in users:
        data = serialize_user(user)
        active_str = "Yes" if user.is_active else "No"
        click.echo(f"{user.id:<5} {user.username:<20} {user.email:<32} {active_str:<8} {data['role']}")

    click.echo("="*90 + "\n")


# =============================================================================
# BACKUP COMMANDS
# =============================================================================

@click.group('backup')
def backup_group():
    """JSON backup export and restore."""


@backup_group.command('export')
@click.argument('path', type=click.Path(dir_okay=False, writable=True))
@with_appcontext
def export_backup_cli(path):
    backup = backup_service.export_backup()
    with open(path, "w", encoding="utf-8") as fh:
        json.dump(backup, fh, indent=2)

    click.echo(f"PASS Exported {backup['metadata']['total_records']} records to {path}")


@backup_group.command('restore')
@click.argument('path', type=click.Path(exists=True, dir_okay=False))
@with_appcontext
def restore_backup_cli(path):
    """Append the records of a backup file into the current database."""
    with open(path, "r", encoding="utf-8") as fh:
        raw = fh.read()

    try:
        result = backup_service.restore_backup(raw)
    except BackupError as e:
        raise click.ClickException(f"FAIL {e}")

    for row in result["results"]:
        if "error" in row:
            click.echo(f"FAIL {row['table']}: {row['error']}")
        else:
            click.echo(f"PASS {row['table']}: {row['restored']}/{row['total']}")
    click.echo(result["message"])


# =============================================================================
# LEDGER COMMANDS
# =============================================================================

@click.group('ledger')
def ledger_group():
    """Stock ledger inspection."""


@ledger_group.command('verify')
@click.option('--product-id', type=int, default=None, help='Check a single product')
@with_appcontext
def verify_ledger_cli(product_id):
    """Replay stock movements and compare with current stock."""
    mismatches = stock_service.verify_ledger(product_id=product_id)

    if not mismatches:
        click.echo("PASS Ledger consistent with current stock")
        return

    for row in mismatches:
        click.echo(
            f"FAIL product {row['product_id']} ({row['sku']}): "
            f"current_stock={row['current_stock']} ledger={row['ledger_stock']}"
        )
    raise click.ClickException(f"{len(mismatches)} product(s) out of sync with the ledger")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(backup_group)
    app.cli.add_command(ledger_group)

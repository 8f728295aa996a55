# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/storefront/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init [--admin-password "..."] [--with-samples]
#   Idempotent bootstrap: creates tables and the admin user (plus sample
#   manager/cashier users with --with-samples).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# User inspection/bootstrap:
# - python -m flask users list
#   List all users with role and active status.
# - python -m flask users create --username jdoe --email jdoe@store.local --password "Password123!" --role cashier
#   Create a user (prompts if options are omitted).
#
# Permission inspection:
# - python -m flask perms list [--role MANAGER]
#   List capabilities (optionally the defaults of one role).
# - python -m flask perms check admin canViewReports
#   Check whether a user has a capability.
#
# Maintenance:
# - python -m flask maintenance cleanup-sessions
#   Delete expired/revoked session tokens older than 30 days.
#
# Schema migrations (Flask-Migrate):
# - python -m flask db upgrade
#   Apply backend/migrations/versions to the configured database.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import User
from .permissions import (
    Capability,
    PERMISSION_DEFINITIONS,
    DEFAULT_ROLE_PERMISSIONS,
    Role,
)
from .services import permission_service, session_service
from .services.auth_service import PasswordValidationError
from .services.users_service import bootstrap_user
from .validation import ConflictError


DEFAULT_PASSWORD = "Password123!"


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--admin-password', default=DEFAULT_PASSWORD, help='Password for the admin user')
@click.option('--with-samples', is_flag=True, help='Also create sample manager and cashier users')
@with_appcontext
def init_system(admin_password, with_samples):
    """
    Initialize the Storefront database and default users.

    Creates:
    - All tables (no-op for existing ones)
    - admin/admin@storefront.local (ADMIN)
    - With --with-samples: manager/manager@storefront.local (MANAGER),
      cashier/cashier@storefront.local (CASHIER), password "Password123!"

    SECURITY: Change passwords immediately in production!
    """
    click.echo("START Initializing Storefront...")

    db.create_all()
    click.echo("PASS Tables created")

    default_users = [("admin", "admin@storefront.local", Role.ADMIN.value, admin_password)]
    if with_samples:
        default_users += [
            ("manager", "manager@storefront.local", Role.MANAGER.value, DEFAULT_PASSWORD),
            ("cashier", "cashier@storefront.local", Role.CASHIER.value, DEFAULT_PASSWORD),
        ]

    for username, email, role, password in default_users:
        existing = db.session.query(User).filter_by(username=username).first()
        if existing:
            click.echo(f"WARN  User '{username}' already exists, skipping...")
            continue

        try:
            bootstrap_user(username=username, email=email, password=password, role=role)
            click.echo(f"PASS Created user: {username} ({email}) with role '{role}'")
        except (PasswordValidationError, ConflictError) as e:
            click.echo(f"FAIL Failed to create user '{username}': {str(e)}")

    click.echo("\n" + "="*60)
    click.echo("DONE Storefront Initialized Successfully!")
    click.echo("="*60)
    click.echo("\nSECURITY WARNING:")
    click.echo("   - Change all default passwords immediately in production!")
    click.echo("   - Password requirements: 8+ chars, uppercase, lowercase, digit, special char")
    click.echo("")


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


@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('create')
@click.option('--username', prompt=True, help='Username')
@click.option('--email', prompt=True, help='Email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(['admin', 'manager', 'cashier'], case_sensitive=False), prompt=True, help='Role')
@with_appcontext
def create_user_cli(username, email, password, role):
    """
    Create a new user with the role's default capabilities.

    Password must meet strength requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    - At least one special character
    """
    try:
        user = bootstrap_user(username=username, email=email, password=password, role=role)
        click.echo(f"PASS Created user: {user.username} ({user.email}) with role '{user.role}'")
    except PasswordValidationError as e:
        click.echo(f"FAIL Password validation failed: {str(e)}")
        click.echo("Requirements: 8+ chars, uppercase, lowercase, digit, special char")
    except ConflictError as e:
        click.echo(f"FAIL Failed to create user: {str(e)}")


@users_group.command('list')
@click.option('--include-deleted', is_flag=True, help='Include soft-deleted users')
@with_appcontext
def list_users(include_deleted):
    """List all users with their roles."""
    query = db.session.query(User) if include_deleted else User.live()
    users = query.order_by(User.id.asc()).all()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*90)
    click.echo(f"{'ID':<5} {'Username':<20} {'Email':<32} {'Role':<9} {'Active':<8} {'Deleted'}")
    click.echo("="*90)

    for user in users:
        active_str = "Yes" if user.is_active else "No"
        deleted_str = "Yes" if user.is_deleted else "No"
        click.echo(f"{user.id:<5} {user.username:<20} {user.email:<32} {user.role:<9} {active_str:<8} {deleted_str}")

    click.echo("="*90 + "\n")


@click.group('perms')
def perms_group():
    """Capability inspection commands."""


@perms_group.command('list')
@click.option('--role', type=click.Choice([r.value for r in Role], case_sensitive=False), help='Show the defaults of one role')
def list_permissions_cli(role):
    """List all capabilities, or the default set of one role."""
    granted = DEFAULT_ROLE_PERMISSIONS[Role(role.upper())] if role else None

    click.echo(f"\n{'='*80}")
    click.echo(f"Default capabilities for role: {role.upper()}" if role else "All Capabilities")
    click.echo(f"{'='*80}\n")

    click.echo(f"{'Code':<24} {'Name':<22} {'Category':<10} {'Granted' if role else ''}")
    click.echo("-"*80)

    for cap, name, _description, category in PERMISSION_DEFINITIONS:
        mark = ("yes" if cap in granted else "no") if role else ""
        click.echo(f"{cap.value:<24} {name:<22} {category:<10} {mark}")

    total = len(granted) if role else len(PERMISSION_DEFINITIONS)
    click.echo(f"\n Total: {total} capabilities\n")


@perms_group.command('check')
@click.argument('username')
@click.argument('capability')
@with_appcontext
def check_permission_cli(username, capability):
    """Check if a user has a specific capability."""
    try:
        cap = Capability.from_code(capability)
    except ValueError as e:
        click.echo(f"FAIL {str(e)}")
        return

    user = User.live().filter_by(username=username).first()
    if not user:
        click.echo(f"FAIL User '{username}' not found")
        return

    if permission_service.user_has_capability(user, cap):
        click.echo(f"PASS User '{username}' HAS capability '{cap.value}'")
    else:
        click.echo(f"FAIL User '{username}' DOES NOT HAVE capability '{cap.value}'")

    enabled = [c.value for c, value in user.permission_flags.items() if value]
    click.echo(f"\nUser role: {user.role}")
    click.echo(f"Enabled flags: {', '.join(enabled) if enabled else 'none'}")


@click.group('maintenance')
def maintenance_group():
    """Maintenance commands."""


@maintenance_group.command('cleanup-sessions')
@with_appcontext
def cleanup_sessions_cli():
    """Delete expired or revoked session tokens older than 30 days."""
    deleted = session_service.cleanup_expired_sessions()
    click.echo(f"Deleted {deleted} stale session tokens.")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(perms_group)
    app.cli.add_command(maintenance_group)

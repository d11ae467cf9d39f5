# Overview: Flask CLI command groups for bootstrap, inspection, and channel sync.

# backend/channelhub/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to "channelhub:create_app" (PowerShell: $env:FLASK_APP="channelhub:create_app").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init-db
#   Create all tables (use `flask db upgrade` for migration-managed databases).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Accounts (tenants):
# - python -m flask accounts list
# - python -m flask accounts create --name "Acme Store" [--slug acme]
# - python -m flask accounts add-member --account-id 1 --email owner@acme.test --role owner
#
# Users:
# - python -m flask users create --email owner@acme.test --password "Password123" [--account-id 1 --role owner]
# - python -m flask users list
#
# Channel sync:
# - python -m flask sync run --account-id 1 --resource products [--direction from_channel] [--channel-id 3]
# - python -m flask sync status --account-id 1
#
# Maintenance:
# - python -m flask maintenance cleanup-sessions --retention-days 30

import click
from flask import current_app
from flask.cli import with_appcontext

from .extensions import db, CHANNEL_REGISTRY_KEY
from .models import Account, AccountMembership, User, MEMBERSHIP_ROLES
from .services.auth_service import create_account, create_user, add_membership, PasswordValidationError
from .services import session_service
from .services import sync_service
from .validation import ValidationError, ConflictError


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Database tables created.")


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


# =============================================================================
# ACCOUNT MANAGEMENT COMMANDS
# =============================================================================

@click.group('accounts')
def accounts_group():
    """Account (tenant) management commands."""


@accounts_group.command('list')
@with_appcontext
def list_accounts():
    """List all accounts."""
    accounts = db.session.query(Account).order_by(Account.id.asc()).all()

    if not accounts:
        click.echo("No accounts found.")
        return

    click.echo("\n" + "="*70)
    click.echo(f"{'ID':<5} {'Name':<30} {'Slug':<25} {'Members'}")
    click.echo("="*70)

    for account in accounts:
        members = db.session.query(AccountMembership).filter_by(account_id=account.id).count()
        click.echo(f"{account.id:<5} {account.name:<30} {account.slug:<25} {members}")

    click.echo("="*70 + "\n")


@accounts_group.command('create')
@click.option('--name', required=True, help='Account name')
@click.option('--slug', help='URL-safe identifier (derived from name if omitted)')
@with_appcontext
def create_account_cli(name, slug):
    """Create a new account (tenant)."""
    try:
        account = create_account(name, slug)
    except (ValidationError, ConflictError) as e:
        click.echo(f"FAIL {e}")
        return

    click.echo(f"PASS Created account: {account.name} (ID: {account.id}, Slug: {account.slug})")


@accounts_group.command('add-member')
@click.option('--account-id', type=int, required=True, help='Account ID')
@click.option('--email', required=True, help='User email')
@click.option('--role', type=click.Choice(MEMBERSHIP_ROLES), default='member', show_default=True)
@with_appcontext
def add_member_cli(account_id, email, role):
    """Grant an existing user access to an account."""
    account = db.session.get(Account, account_id)
    if not account:
        click.echo(f"FAIL Account ID {account_id} not found")
        return

    user = db.session.query(User).filter_by(email=email.strip().lower()).first()
    if not user:
        click.echo(f"FAIL User {email} not found")
        return

    add_membership(account.id, user.id, role)
    click.echo(f"PASS {user.email} is now '{role}' on account '{account.name}'")


# =============================================================================
# USER MANAGEMENT COMMANDS
# =============================================================================

@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('create')
@click.option('--email', prompt=True, help='Email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--full-name', default=None, help='Display name')
@click.option('--account-id', type=int, default=None, help='Add the user to this account')
@click.option('--role', type=click.Choice(MEMBERSHIP_ROLES), default='member', show_default=True)
@with_appcontext
def create_user_cli(email, password, full_name, account_id, role):
    """
    Create a new user, optionally as a member of an account.

    Password must be at least 8 characters with a letter and a digit.
    """
    if account_id is not None and not db.session.get(Account, account_id):
        click.echo(f"FAIL Account ID {account_id} not found")
        return

    try:
        user = create_user(email, password, full_name)
    except PasswordValidationError as e:
        click.echo(f"FAIL Password validation failed: {str(e)}")
        return
    except (ValidationError, ConflictError) as e:
        click.echo(f"FAIL {e}")
        return

    click.echo(f"PASS Created user: {user.email} (ID: {user.id})")
    if account_id is not None:
        add_membership(account_id, user.id, role)
        click.echo(f"     Member of account {account_id} as '{role}'")
    click.echo("SECURITY Password securely hashed with bcrypt")


@users_group.command('list')
@with_appcontext
def list_users():
    """List all users with their account memberships."""
    users = db.session.query(User).order_by(User.id.asc()).all()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*90)
    click.echo(f"{'ID':<5} {'Email':<35} {'Active':<8} {'Memberships'}")
    click.echo("="*90)

    for user in users:
        memberships = db.session.query(AccountMembership).filter_by(user_id=user.id).all()
        membership_str = ", ".join(f"{m.account_id}:{m.role}" for m in memberships) or "none"
        active_str = "Yes" if user.is_active else "No"
        click.echo(f"{user.id:<5} {user.email:<35} {active_str:<8} {membership_str}")

    click.echo("="*90 + "\n")


# =============================================================================
# CHANNEL SYNC COMMANDS
# =============================================================================

@click.group('sync')
def sync_group():
    """Run channel syncs from the command line (cron, operators)."""


@sync_group.command('run')
@click.option('--account-id', type=int, required=True, help='Account ID')
@click.option('--resource', type=click.Choice(['products', 'inventory', 'orders']), required=True)
@click.option('--direction', type=click.Choice(['from_channel', 'to_channel']), default='from_channel', show_default=True)
@click.option('--channel-id', type=int, default=None, help='Only this channel')
@with_appcontext
def sync_run(account_id, resource, direction, channel_id):
    """Sync one resource for an account's connected channels."""
    if not db.session.get(Account, account_id):
        click.echo(f"FAIL Account ID {account_id} not found")
        return

    try:
        batch = sync_service.sync(
            account_id=account_id,
            resource=resource,
            direction=direction,
            channel_id=channel_id,
            registry=current_app.extensions[CHANNEL_REGISTRY_KEY],
        )
    except sync_service.SyncError as e:
        click.echo(f"FAIL {e.message}")
        return

    for result in batch.results:
        mark = "PASS" if result.success else "FAIL"
        click.echo(f"{mark} channel {result.channel_id} ({result.channel_type}): {result.message}")
    click.echo(batch.message)


@sync_group.command('status')
@click.option('--account-id', type=int, required=True, help='Account ID')
@click.option('--limit', type=int, default=10, show_default=True)
@with_appcontext
def sync_status(account_id, limit):
    """Show channel states and the most recent sync log entries."""
    status = sync_service.get_sync_status(account_id, limit=limit)

    click.echo("\nChannels:")
    for channel in status["channels"]:
        error = f"  last_error={channel['last_error']}" if channel["last_error"] else ""
        click.echo(f"  {channel['id']:<5} {channel['type']:<12} {channel['status']:<13}{error}")

    click.echo("\nRecent syncs:")
    for log in status["recent_syncs"]:
        click.echo(f"  {log['created_at']}  {log['event_type']:<40} {log['status']}")
    click.echo("")


# =============================================================================
# MAINTENANCE COMMANDS
# =============================================================================

@click.group('maintenance')
def maintenance_group():
    """Maintenance commands."""


@maintenance_group.command('cleanup-sessions')
@click.option('--retention-days', type=int, default=30, show_default=True)
@with_appcontext
def cleanup_sessions(retention_days):
    """Delete expired or revoked sessions older than the retention window."""
    deleted = session_service.cleanup_expired_sessions(retention_days=retention_days)
    click.echo(f"PASS Deleted {deleted} session(s).")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(accounts_group)
    app.cli.add_command(users_group)
    app.cli.add_command(sync_group)
    app.cli.add_command(maintenance_group)

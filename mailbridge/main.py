"""
Gmail to LINE Notification Bridge - CLI Entry Point

Command-line interface for running and administering the bridge.
"""

import sys
from datetime import datetime, timedelta

import click

from .core.config import get_config
from .core.database import DatabaseManager, get_db_manager
from .core.logging_config import setup_logging


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
@click.option("--log-file", type=str, help="Log file path")
@click.pass_context
def cli(ctx, verbose, log_file):
    """Gmail to LINE Notification Bridge CLI.

    Relays new Gmail messages to LINE and answers mail commands sent in LINE.
    """
    ctx.ensure_object(dict)

    log_level = "DEBUG" if verbose else "INFO"
    setup_logging(log_level=log_level, log_file=log_file)

    ctx.obj["verbose"] = verbose
    ctx.obj["log_file"] = log_file


def _get_db() -> DatabaseManager:
    return get_db_manager()


def _get_service():
    from .web.dependencies import build_notification_service

    config = get_config()
    return build_notification_service(config, _get_db())


# ============================================================================
# MAIN OPERATIONS
# ============================================================================


@cli.command()
@click.option("--host", default=None, help="Host to bind to (default: config.yaml or 0.0.0.0)")
@click.option("--port", default=None, type=int, help="Port to run on (default: PORT env or 8080)")
def serve(host, port):
    """Start the webhook server.

    Example:
        python -m mailbridge.main serve
        python -m mailbridge.main serve --port 9000
    """
    from .web.app import run_server

    config = get_config()
    click.echo(f"🌐 Starting webhook server on http://{host or config.app.host}:{port or config.app.port}")
    click.echo("   Press Ctrl+C to stop")
    click.echo("")

    run_server(host=host, port=port)


@cli.command()
def notify():
    """Run one push-notification pass over all active users.

    Same work as a Pub/Sub delivery; useful from cron or for testing.

    Example:
        python -m mailbridge.main notify
    """
    try:
        service = _get_service()
        click.echo("📬 Checking mailboxes for new messages...")
        service.process_push_notification()
        click.echo("✅ Notification pass complete")
    except Exception as e:
        click.echo(f"❌ Notification pass failed: {e}", err=True)
        sys.exit(1)


# ============================================================================
# GMAIL WATCH
# ============================================================================


@cli.group()
def watch():
    """Gmail mailbox watch management."""
    pass


@watch.command("renew")
def watch_renew():
    """Re-register the Gmail watch for every linked user.

    Gmail watches expire after 7 days; run this at least weekly.

    Example:
        python -m mailbridge.main watch renew
    """
    try:
        service = _get_service()
        renewed = service.renew_watches()
        click.echo(f"✅ Renewed {renewed} Gmail watches")
    except Exception as e:
        click.echo(f"❌ Failed to renew watches: {e}", err=True)
        sys.exit(1)


# ============================================================================
# USER MANAGEMENT
# ============================================================================


@cli.group()
def users():
    """LINE user management."""
    pass


@users.command("list")
@click.option("--all", "show_all", is_flag=True, help="Show inactive users too")
def users_list(show_all):
    """List users.

    Example:
        python -m mailbridge.main users list
        python -m mailbridge.main users list --all
    """
    from .storage.users import UserRepository

    try:
        repo = UserRepository(_get_db())
        user_rows = repo.get_all_users() if show_all else repo.get_all_active_users()

        if not user_rows:
            click.echo("No users found")
            return

        click.echo(f"\n📋 Users ({len(user_rows)}):")
        click.echo("-" * 80)

        for user in user_rows:
            status = "✅ Active" if user.is_active else "❌ Inactive"
            gmail = "Linked" if user.is_authenticated else "Not linked"
            click.echo(f"\n{status}")
            click.echo(f"  LINE user: {user.line_user_id}")
            click.echo(f"  Gmail:     {gmail}")
            if user.gmail_token_expires_at:
                click.echo(f"  Token exp: {user.gmail_token_expires_at.strftime('%Y-%m-%d %H:%M')}")
            if user.created_at:
                click.echo(f"  Created:   {user.created_at.strftime('%Y-%m-%d %H:%M')}")

        click.echo("")

    except Exception as e:
        click.echo(f"❌ Failed to list users: {e}", err=True)
        sys.exit(1)


@users.command("deactivate")
@click.argument("line_user_id")
def users_deactivate(line_user_id):
    """Stop push notifications for a user (mark inactive).

    Example:
        python -m mailbridge.main users deactivate U1234567890abcdef
    """
    from .storage.users import UserRepository

    try:
        repo = UserRepository(_get_db())
        if repo.deactivate_user(line_user_id):
            click.echo(f"✅ Deactivated {line_user_id}")
        else:
            click.echo(f"⚠️  User {line_user_id} not found or already inactive")
    except Exception as e:
        click.echo(f"❌ Failed to deactivate user: {e}", err=True)
        sys.exit(1)


# ============================================================================
# TRACKED EMAILS
# ============================================================================


@cli.group()
def emails():
    """Tracked email inspection."""
    pass


@emails.command("list")
@click.argument("line_user_id")
@click.option("--days", type=int, help="Only emails received in the last N days")
def emails_list(line_user_id, days):
    """List tracked emails of a user.

    Example:
        python -m mailbridge.main emails list U1234567890abcdef
        python -m mailbridge.main emails list U1234567890abcdef --days 7
    """
    from .storage.emails import EmailRepository
    from .storage.users import UserRepository

    try:
        db = _get_db()
        user = UserRepository(db).get_user_by_line_user_id(line_user_id)
        if user is None:
            click.echo(f"❌ User {line_user_id} not found", err=True)
            sys.exit(1)

        repo = EmailRepository(db)
        if days:
            rows = repo.get_recent_emails(user.id, datetime.utcnow() - timedelta(days=days))
        else:
            rows = repo.get_emails_by_user_id(user.id)

        if not rows:
            click.echo("No tracked emails")
            return

        click.echo(f"\n📧 Tracked Emails ({len(rows)}):")
        click.echo("-" * 80)
        for email in rows:
            status = "✅" if email.is_notified else "⏳"
            received = email.received_at.strftime("%Y-%m-%d %H:%M") if email.received_at else "-"
            click.echo(f"{status} {received}  {email.sender_email}  {email.subject or ''}")
        click.echo("")

    except Exception as e:
        click.echo(f"❌ Failed to list emails: {e}", err=True)
        sys.exit(1)


@emails.command("reset")
@click.argument("line_user_id")
@click.option("--yes", is_flag=True, help="Skip confirmation")
def emails_reset(line_user_id, yes):
    """Forget tracked emails of a user.

    Unread messages still in Gmail are notified again on the next pass.

    Example:
        python -m mailbridge.main emails reset U1234567890abcdef
    """
    from .storage.emails import EmailRepository
    from .storage.users import UserRepository

    try:
        db = _get_db()
        user = UserRepository(db).get_user_by_line_user_id(line_user_id)
        if user is None:
            click.echo(f"❌ User {line_user_id} not found", err=True)
            sys.exit(1)

        if not yes and not click.confirm(f"⚠️  Delete all tracked emails of {line_user_id}?"):
            click.echo("Aborted.")
            return

        deleted = EmailRepository(db).delete_emails_by_user_id(user.id)
        click.echo(f"✅ Deleted {deleted} tracked emails")

    except Exception as e:
        click.echo(f"❌ Failed to reset emails: {e}", err=True)
        sys.exit(1)


# ============================================================================
# DATABASE MANAGEMENT
# ============================================================================


@cli.group()
def db():
    """Database management commands."""
    pass


@db.command("init")
@click.option("--drop", is_flag=True, help="Drop existing tables first (DESTRUCTIVE!)")
def db_init(drop):
    """Initialize database schema.

    Example:
        python -m mailbridge.main db init
        python -m mailbridge.main db init --drop  # Recreate all tables
    """
    try:
        database = _get_db()

        if drop:
            if not click.confirm("⚠️  This will drop all existing tables. Are you sure?"):
                click.echo("Aborted.")
                return
            click.echo("🗑️  Dropping existing tables...")
            database.drop_tables()

        click.echo("📦 Creating database tables...")
        database.create_tables()

        click.echo("✅ Database initialized successfully")

    except Exception as e:
        click.echo(f"❌ Failed to initialize database: {e}", err=True)
        sys.exit(1)


@db.command("status")
def db_status():
    """Show database statistics.

    Example:
        python -m mailbridge.main db status
    """
    try:
        stats = _get_db().get_stats()

        click.echo("\n📊 Database Status")
        click.echo("=" * 80)
        click.echo(f"\nUsers: {stats['total_users']} ({stats['active_users']} active)")
        click.echo(f"Tracked Emails: {stats['tracked_emails']}")
        click.echo(f"Pending Notifications: {stats['pending_notifications']}")
        click.echo("\n" + "=" * 80 + "\n")

    except Exception as e:
        click.echo(f"❌ Failed to get database status: {e}", err=True)
        sys.exit(1)


# ============================================================================
# HEALTH CHECKS
# ============================================================================


@cli.command()
def health():
    """Test system connections (Database, Gmail, LINE).

    Example:
        python -m mailbridge.main health
    """
    click.echo("\n🏥 Testing System Health")
    click.echo("=" * 80)

    config = get_config()
    all_healthy = True

    # Test Database
    click.echo("\n📦 Database Connection...")
    try:
        _get_db().ping()
        click.echo("   ✅ Database: Connected")
    except Exception as e:
        click.echo(f"   ❌ Database: Failed ({e})")
        all_healthy = False

    # Test Gmail credentials
    click.echo("\n📧 Gmail API...")
    try:
        if not config.gmail.is_configured():
            click.echo("   ⚠️  Gmail: Credentials not configured")
            all_healthy = False
        else:
            from .gmail.client import GmailClient
            GmailClient(config.gmail).test_connection()
            click.echo("   ✅ Gmail: Credentials loaded")
            click.echo(f"      Topic: {config.gmail.pubsub_topic}")
    except Exception as e:
        click.echo(f"   ❌ Gmail: Failed ({e})")
        all_healthy = False

    # Test LINE API
    click.echo("\n💬 LINE Messaging API...")
    try:
        if not config.line.is_configured():
            click.echo("   ⚠️  LINE: Channel token/secret not configured")
            all_healthy = False
        else:
            from .line.client import LineMessagingClient
            LineMessagingClient(config.line).test_connection()
            click.echo("   ✅ LINE: Connected")
    except Exception as e:
        click.echo(f"   ❌ LINE: Failed ({e})")
        all_healthy = False

    # Overall status
    click.echo("\n" + "=" * 80)
    if all_healthy:
        click.echo("✅ All systems operational")
        click.echo("")
        sys.exit(0)
    else:
        click.echo("⚠️  Some systems have issues")
        click.echo("")
        sys.exit(1)


# ============================================================================
# CONFIGURATION MANAGEMENT
# ============================================================================


@cli.group()
def config():
    """Configuration management."""
    pass


@config.command("show")
def config_show():
    """Show current configuration (non-sensitive).

    Example:
        python -m mailbridge.main config show
    """
    cfg = get_config()

    click.echo("\n⚙️  Current Configuration")
    click.echo("=" * 80)

    click.echo("\n📊 Runtime Settings (config.yaml):")
    click.echo(f"  Server: {cfg.app.host}:{cfg.app.port}")
    click.echo(f"  Unread List Limit: {cfg.app.unread_limit}")
    click.echo(f"  Recent List Limit: {cfg.app.recent_list_limit}")
    click.echo(f"  Push Scan Limit: {cfg.app.push_limit}")
    click.echo(f"  Snippet Length: {cfg.app.snippet_length}")
    ttl = cfg.app.pending_auth_ttl_minutes
    click.echo(f"  Pending Auth TTL: {f'{ttl} minutes' if ttl else 'Never expires'}")
    click.echo(f"  Log Level: {cfg.app.log_level}")

    click.echo("\n🔐 Credentials Status (.env):")
    click.echo(f"  LINE Channel: {'Configured' if cfg.line.is_configured() else 'Not set'}")
    click.echo(f"  Gmail Credentials: {cfg.gmail.credentials_path or 'Not set'}")
    click.echo(f"  Pub/Sub Topic: {cfg.gmail.pubsub_topic}")
    click.echo(f"  Database: {'DATABASE_URL' if cfg.database.url else cfg.database.host}")

    click.echo("\n" + "=" * 80 + "\n")


@config.command("validate")
def config_validate():
    """Validate configuration.

    Example:
        python -m mailbridge.main config validate
    """
    cfg = get_config()
    errors = cfg.validate()

    click.echo("\n🔍 Validating Configuration")
    click.echo("=" * 80)

    if not errors:
        click.echo("\n✅ Configuration is valid")
        click.echo("")
        sys.exit(0)
    else:
        click.echo("\n❌ Configuration has errors:")
        for error in errors:
            click.echo(f"   • {error}")
        click.echo("")
        sys.exit(1)


# ============================================================================
# ENTRY POINT
# ============================================================================


if __name__ == "__main__":
    cli(obj={})

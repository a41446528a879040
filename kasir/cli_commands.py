"""
Flask CLI commands.

Commands:
- flask init-db: Create the ledger tables
- flask create-tenant: Create a tenant profile
"""

import click
from kasir.database import create_all, get_session
from kasir.exceptions import LedgerError
from kasir.services.tenant_service import ensure_tenant


def init_cli_commands(app):
    """Register CLI commands with Flask app."""

    @app.cli.command('init-db')
    def init_db_command():
        """Create all tables that do not exist yet."""
        create_all()
        click.echo(click.style('✅ Database tables created', fg='green'))

    @app.cli.command('create-tenant')
    @click.option('--id', 'tenant_id', prompt=True, help='Tenant id issued by the auth layer')
    @click.option('--full-name', default=None, help='Owner full name')
    @click.option('--business-name', default=None, help='Business name')
    def create_tenant(tenant_id, full_name, business_name):
        """Create a tenant profile (no-op if it already exists)."""
        db_session = get_session()
        try:
            tenant = ensure_tenant(db_session, tenant_id, full_name=full_name, business_name=business_name)
        except LedgerError as e:
            click.echo(click.style(f'❌ {e.message}', fg='red'))
            raise SystemExit(1)

        click.echo(click.style('\n✅ Tenant ready', fg='green', bold=True))
        click.echo(f'   ID: {tenant.id}')
        click.echo(f'   Business: {tenant.business_name or "-"}')

"""CLI tools for CRM administration."""

from uuid import UUID

import click

from crm.core.security import create_access_token
from crm.db.enums import WebhookType
from crm.db.models import User
from crm.db.session import SessionLocal
from crm.services import webhook_endpoint_service, workspace_service
from crm.services.workspace_service import DuplicateWorkspaceError


@click.group()
def cli():
    """CRM CLI tools."""
    pass


@cli.command()
@click.option("--name", required=True, help="Workspace name")
@click.option("--slug", default=None, help="URL-friendly slug (defaults to a slug of the name)")
@click.option("--owner-email", required=True, help="Owner email address")
@click.option("--owner-name", default=None, help="Owner display name")
def create_workspace(name: str, slug: str | None, owner_email: str, owner_name: str | None):
    """
    Create a workspace, its system roles and an active owner.

    This is the bootstrap command for setting up a new tenant. Prints a
    bearer token for the owner.

    Example:
        python -m crm.cli create-workspace --name "Acme Corp" --owner-email "admin@acme.com"
    """
    db = SessionLocal()
    try:
        if slug is not None:
            slug = slug.lower().strip()
            if not slug.replace("-", "").isalnum():
                click.echo("❌ Slug must be alphanumeric (with optional hyphens)")
                raise SystemExit(1)

        owner = workspace_service.get_or_create_user(db, owner_email, owner_name)
        workspace = workspace_service.create_workspace(db, name=name, owner=owner, slug=slug)
        db.commit()

        click.echo(f"✓ Created workspace: {workspace.name}")
        click.echo(f"  ID: {workspace.id}")
        click.echo(f"  Slug: {workspace.slug}")
        click.echo(f"✓ Owner: {owner.email} ({owner.id})")
        click.echo(f"  Token: {create_access_token(owner.id, owner.token_version)}")
    except DuplicateWorkspaceError as e:
        db.rollback()
        click.echo(f"❌ {e}")
        raise SystemExit(1)
    finally:
        db.close()


@cli.command()
@click.option("--email", required=True, help="User email address")
def issue_token(email: str):
    """Print a bearer token for an existing, active user."""
    db = SessionLocal()
    try:
        user = db.query(User).filter(User.email == email.strip().lower()).first()
        if not user or not user.is_active:
            click.echo(f"❌ No active user with email {email}")
            raise SystemExit(1)
        click.echo(create_access_token(user.id, user.token_version))
    finally:
        db.close()


@cli.command()
@click.option("--email", required=True, help="User email address")
def revoke_tokens(email: str):
    """Invalidate every outstanding token for a user."""
    db = SessionLocal()
    try:
        user = db.query(User).filter(User.email == email.strip().lower()).first()
        if not user:
            click.echo(f"❌ No user with email {email}")
            raise SystemExit(1)
        user.token_version += 1
        db.commit()
        click.echo(f"✓ Revoked tokens for {user.email}")
    finally:
        db.close()


@cli.command()
@click.option("--workspace-id", required=True, type=click.UUID, help="Workspace ID")
@click.option("--name", required=True, help="Endpoint name")
@click.option(
    "--type",
    "webhook_type",
    type=click.Choice([t.value for t in WebhookType]),
    default=WebhookType.CUSTOM.value,
    show_default=True,
    help="Payload format",
)
def create_webhook(workspace_id: UUID, name: str, webhook_type: str):
    """Create an inbound webhook endpoint and print its URL and secret."""
    db = SessionLocal()
    try:
        workspace = workspace_service.get_workspace(db, workspace_id)
        endpoint = webhook_endpoint_service.create_endpoint(
            db,
            workspace_id=workspace.id,
            name=name,
            created_by=workspace.owner_user_id,
            webhook_type=webhook_type,
        )
        db.commit()

        click.echo(f"✓ Created webhook: {endpoint.name}")
        click.echo(f"  URL: {endpoint.url}")
        click.echo(f"  Secret: {endpoint.secret}")
        click.echo("→ Sign payloads with X-Webhook-Signature: sha256=<HMAC-SHA256 hex>")
    except workspace_service.WorkspaceNotFoundError:
        click.echo(f"❌ Workspace {workspace_id} not found")
        raise SystemExit(1)
    finally:
        db.close()


if __name__ == "__main__":
    cli()

"""Typer CLI for ThinkVoice Console."""

import asyncio
from typing import Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

app = typer.Typer(name="thinkvoice", help="ThinkVoice Console: multi-tenant voice-agent admin")
console = Console()


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, help="Bind host (default: HOST)"),
    port: Optional[int] = typer.Option(None, help="Bind port (default: PORT)"),
):
    """Start the ThinkVoice Console API server."""
    import uvicorn
    from thinkvoice_console.app import create_app
    from thinkvoice_console.common.config import get_settings

    settings = get_settings()
    host = host or settings.host
    port = port or settings.port
    console.print(f"[bold green]Starting ThinkVoice Console on {host}:{port}[/bold green]")
    uvicorn.run(create_app(), host=host, port=port)


async def _migrate(resume: bool):
    from thinkvoice_console.common.config import get_settings
    from thinkvoice_console.common.database import DatabaseManager
    from thinkvoice_console.migration.multitenant import multitenant_runner

    db = DatabaseManager(get_settings())
    await db.init()
    try:
        return await multitenant_runner(db.engine).run(resume=resume)
    finally:
        await db.close()


@app.command()
def migrate(
    resume: bool = typer.Option(True, "--resume/--no-resume", help="Skip checkpointed steps"),
):
    """Migrate a single-tenant database to the multi-tenant schema."""
    from thinkvoice_console.common.exceptions import MigrationStepFailed
    from thinkvoice_console.common.logging import setup_logging

    setup_logging("INFO")
    try:
        report = asyncio.run(_migrate(resume))
    except MigrationStepFailed as e:
        console.print(f"[bold red]FAILED[/bold red] {escape(e.message)}")
        if e.statement:
            console.print(f"  Statement: {escape(e.statement)}")
        raise typer.Exit(1)

    table = Table(title=f"Migration {report.migration}")
    table.add_column("Step")
    table.add_column("Outcome")
    for outcome in report.outcomes:
        table.add_row(outcome.step, outcome.status)
    console.print(table)
    console.print("[bold green]Migration completed[/bold green]")


async def _create_super_admin(email: str, password: str, name: str):
    from thinkvoice_console.deps import get_credential_service, get_db

    db = get_db()
    await db.init()
    await db.create_all()
    try:
        async with db.get_session() as session:
            admin, created = await get_credential_service().ensure_super_admin(
                session, email, password, name
            )
            return admin.id, created
    finally:
        await db.close()


@app.command("create-super-admin")
def create_super_admin(
    email: str = typer.Argument(..., help="Super-admin email"),
    password: str = typer.Option(..., prompt=True, hide_input=True, help="Password"),
    name: str = typer.Option("Super Admin", help="Display name"),
):
    """Create the super-admin, or reset its password."""
    admin_id, created = asyncio.run(_create_super_admin(email, password, name))
    verb = "Created" if created else "Updated"
    console.print(f"[bold green]{verb}[/bold green] super-admin #{admin_id} ({email})")


@app.command("issue-token")
def issue_token_cmd(
    subject_id: int = typer.Argument(..., help="User or super-admin id"),
    kind: str = typer.Option("user", help="user or super_admin"),
    tenant_id: Optional[int] = typer.Option(None, help="Tenant id (user tokens)"),
    role: Optional[str] = typer.Option(None, help="Role claim (user tokens)"),
    ttl: Optional[int] = typer.Option(None, help="Lifetime in seconds"),
):
    """Sign a bearer token offline with JWT_SECRET (no DB required)."""
    from thinkvoice_console.auth.tokens import KINDS, Identity, issue_token

    if kind not in KINDS:
        console.print(f"[bold red]Unknown kind:[/bold red] {kind}")
        raise typer.Exit(1)
    if kind == "user" and tenant_id is None:
        console.print("[bold red]User tokens need --tenant-id[/bold red]")
        raise typer.Exit(1)
    identity = Identity(kind=kind, subject_id=subject_id, tenant_id=tenant_id, role=role)
    # Plain echo so the token is never wrapped.
    typer.echo(issue_token(identity, ttl=ttl))


@app.command()
def health(
    url: str = typer.Option("http://localhost:5000", help="Server URL"),
):
    """Check ThinkVoice Console server health."""
    import httpx

    try:
        resp = httpx.get(f"{url}/health", timeout=5)
        data = resp.json()
        console.print(f"[bold green]{data['status']}[/bold green] v{data['version']}")
    except Exception as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


if __name__ == "__main__":
    app()

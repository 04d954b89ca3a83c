"""
Tableside CLI.

Operator commands for the database, sessions, waiter assignments and
service health.

Usage:
    python backend/cli.py db-init
    python backend/cli.py create-user waiter3 secret123 --role waiter
"""

import sys
import time
from pathlib import Path

# Add backend to path for imports
sys.path.insert(0, str(Path(__file__).parent))

import typer
from rich.console import Console
from rich.table import Table

from shared.config.constants import Roles

app = typer.Typer(
    name="tableside",
    help="Tableside restaurant ordering CLI",
    add_completion=False,
)
console = Console()


# =============================================================================
# Database Commands
# =============================================================================

@app.command()
def db_init():
    """Create all database tables."""
    from rest_api.models import Base
    from shared.infrastructure.db import engine

    console.print("[blue]Creating database tables[/blue]")
    try:
        Base.metadata.create_all(bind=engine)
        console.print("[green]✓ Tables created/verified[/green]")
    except Exception as e:
        console.print(f"[red]✗ Table creation failed: {e}[/red]")
        raise typer.Exit(1)


@app.command()
def db_seed(
    force: bool = typer.Option(False, "--force", "-f", help="Seed even in production"),
):
    """Seed menu, tables and default staff (only into empty tables)."""
    from rest_api.seed import seed
    from shared.config.settings import settings
    from shared.infrastructure.db import get_db_context

    if settings.is_production and not force:
        console.print("[red]Cannot seed production without --force[/red]")
        raise typer.Exit(1)

    console.print(f"[blue]Seeding database for: {settings.environment}[/blue]")
    try:
        with get_db_context() as db:
            seed(db)
        console.print("[green]✓ Seed complete[/green]")
    except Exception as e:
        console.print(f"[red]✗ Seeding failed: {e}[/red]")
        raise typer.Exit(1)


# =============================================================================
# Session Commands
# =============================================================================

@app.command()
def sweep_sessions():
    """Deactivate idle and settled sessions now."""
    from rest_api.core.scheduler import sweep_sessions_once

    try:
        count = sweep_sessions_once()
    except Exception as e:
        console.print(f"[red]✗ Sweep failed: {e}[/red]")
        raise typer.Exit(1)
    console.print(f"[green]✓ Deactivated {count} session(s)[/green]")


# =============================================================================
# Staff Commands
# =============================================================================

@app.command()
def assignments():
    """Show which waiter serves each table."""
    from rest_api.services.domain import AssignmentService
    from shared.infrastructure.db import get_db_context

    with get_db_context() as db:
        tables = AssignmentService(db).list_assignments()

    table = Table(title="Table Assignments")
    table.add_column("Table", style="cyan", justify="right")
    table.add_column("Capacity", justify="right")
    table.add_column("Status", style="green")
    table.add_column("Waiter", style="yellow")

    for t in tables:
        table.add_row(
            str(t.table_number),
            str(t.capacity),
            t.status,
            t.waiter_username or "-",
        )

    console.print(table)


@app.command()
def create_user(
    username: str = typer.Argument(..., help="Login name"),
    password: str = typer.Argument(..., help="Initial password"),
    role: str = typer.Option(Roles.WAITER, "--role", "-r", help="kitchen, waiter or admin"),
    full_name: str = typer.Option(None, "--name", help="Display name"),
):
    """Create a staff account."""
    from rest_api.services.domain import AuthService
    from shared.infrastructure.db import get_db_context

    if role not in Roles.STAFF:
        console.print(f"[red]Role must be one of: {', '.join(Roles.STAFF)}[/red]")
        raise typer.Exit(1)

    try:
        with get_db_context() as db:
            user = AuthService(db).register_staff(
                username=username,
                password=password,
                role=role,
                full_name=full_name,
            )
    except Exception as e:
        console.print(f"[red]✗ Could not create user: {getattr(e, 'detail', e)}[/red]")
        raise typer.Exit(1)

    console.print(f"[green]✓ Created {user.role} '{user.username}' (id {user.id})[/green]")


# =============================================================================
# Health Commands
# =============================================================================

@app.command()
def health(
    url: str = typer.Option("http://localhost:8000/api/health", help="REST API health URL"),
):
    """Check system health."""
    import asyncio
    import httpx

    from shared.config.settings import settings

    async def _health():
        table = Table(title="Service Health")
        table.add_column("Service", style="cyan")
        table.add_column("Status", style="green")
        table.add_column("Response Time", style="yellow")

        async with httpx.AsyncClient(timeout=5.0) as client:
            try:
                start = time.time()
                response = await client.get(url)
                elapsed = (time.time() - start) * 1000
                if response.status_code == 200:
                    table.add_row("REST API", "✓ Healthy", f"{elapsed:.0f}ms")
                else:
                    table.add_row("REST API", f"✗ Status {response.status_code}", f"{elapsed:.0f}ms")
            except Exception as e:
                table.add_row("REST API", f"✗ {type(e).__name__}", "-")

        if settings.realtime_redis_enabled:
            import redis.asyncio as redis

            client = redis.from_url(settings.redis_url, socket_connect_timeout=5)
            try:
                start = time.time()
                await client.ping()
                elapsed = (time.time() - start) * 1000
                table.add_row("Redis relay", "✓ Healthy", f"{elapsed:.0f}ms")
            except Exception as e:
                table.add_row("Redis relay", f"✗ {type(e).__name__}", "-")
            finally:
                await client.aclose()

        console.print(table)

    asyncio.run(_health())


if __name__ == "__main__":
    app()

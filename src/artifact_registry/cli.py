"""
Artifact Registry CLI - Command-line interface.

Run the API server, manage API keys and inspect the catalog from the terminal.
Configuration is read from AR_* environment variables.
"""

from typing import Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from artifact_registry.catalog import Catalog
from artifact_registry.config import RegistryConfig, format_size
from artifact_registry.core.exceptions import (
    ArtifactRegistryError,
    ConfigurationError,
    CredentialExistsError,
    format_exception,
)
from artifact_registry.core.models import PrimaryLocation
from artifact_registry.credentials import CredentialStore
from artifact_registry.db import Database
from artifact_registry.listing import build_listing
from artifact_registry.storage import create_storage_router

app = typer.Typer(
    name="artifact-registry",
    help="Artifact Registry - versioned build artifact storage for CI/CD pipelines",
    no_args_is_help=True,
)
keys_app = typer.Typer(help="Manage upload API keys", no_args_is_help=True)
app.add_typer(keys_app, name="keys")
console = Console()


def _load_config() -> RegistryConfig:
    try:
        return RegistryConfig.from_env()
    except ConfigurationError as e:
        console.print(f"[red]Configuration error: {format_exception(e)}[/red]")
        raise typer.Exit(1)


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", "--host", help="Bind address"),
    port: int = typer.Option(8000, "--port", "-p", help="Bind port"),
):
    """Run the HTTP API server."""
    import uvicorn

    from artifact_registry.api import create_app

    config = _load_config()
    console.print(
        Panel.fit(
            f"[bold blue]Artifact Registry[/bold blue]\n"
            f"Listening: http://{host}:{port}\n"
            f"Database: {config.database_path}\n"
            f"Primary backend: {config.primary_backend.value}\n"
            f"Overflow backend: {config.overflow_url or 'not configured'}",
        )
    )
    uvicorn.run(create_app(config), host=host, port=port, log_level=config.log_level.lower())


@app.command("init-db")
def init_db():
    """Create the catalog database and its schema."""
    config = _load_config()
    db = Database(config.database_path)
    db.close()
    console.print(f"[green]Catalog database ready:[/green] {config.database_path}")


@keys_app.command("add")
def keys_add(
    name: str = typer.Argument(..., help="Key name (e.g. the pipeline using it)"),
    secret: Optional[str] = typer.Option(
        None, "--secret", help="Use this secret instead of generating one"
    ),
):
    """Create an API key and print its secret once."""
    config = _load_config()
    db = Database(config.database_path)
    try:
        credential = CredentialStore(db).create(name, secret)
    except CredentialExistsError as e:
        console.print(f"[red]{format_exception(e)}[/red]")
        raise typer.Exit(1)
    finally:
        db.close()

    console.print(
        Panel.fit(
            f"[bold]Name:[/bold] {credential.name}\n"
            f"[bold]Secret:[/bold] {credential.secret}\n\n"
            "[yellow]Store the secret now; it is not shown again.[/yellow]",
            title="API key created",
        )
    )


@keys_app.command("revoke")
def keys_revoke(
    name: str = typer.Argument(..., help="Key name"),
):
    """Deactivate an API key."""
    config = _load_config()
    db = Database(config.database_path)
    try:
        revoked = CredentialStore(db).deactivate(name)
    finally:
        db.close()

    if not revoked:
        console.print(f"[yellow]No active key named {name}[/yellow]")
        raise typer.Exit(1)
    console.print(f"[green]Revoked key:[/green] {name}")


@keys_app.command("list")
def keys_list():
    """List API keys (secrets are not shown)."""
    config = _load_config()
    db = Database(config.database_path)
    try:
        credentials = CredentialStore(db).list()
    finally:
        db.close()

    if not credentials:
        console.print("[yellow]No API keys found[/yellow]")
        return

    table = Table(title=f"API Keys ({len(credentials)})")
    table.add_column("Name", style="cyan")
    table.add_column("Status")
    table.add_column("Created", style="dim")
    table.add_column("Last used", style="dim")

    for credential in credentials:
        status = "[green]active[/green]" if credential.active else "[red]revoked[/red]"
        table.add_row(
            credential.name,
            status,
            credential.created_at[:19],
            credential.last_used_at[:19] if credential.last_used_at else "-",
        )

    console.print(table)


@app.command()
def artifacts(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show every version"),
):
    """List artifacts and their versions."""
    config = _load_config()
    db = Database(config.database_path)
    router = create_storage_router(config)
    try:
        entries = build_listing(Catalog(db), router)
    except ArtifactRegistryError as e:
        console.print(f"[red]{format_exception(e)}[/red]")
        raise typer.Exit(1)
    finally:
        router.close()
        db.close()

    if not entries:
        console.print("[yellow]No artifacts found[/yellow]")
        return

    table = Table(title=f"Artifacts ({len(entries)})")
    table.add_column("Name", style="cyan")
    table.add_column("Latest", style="green")
    table.add_column("Versions", justify="right")
    table.add_column("Updated", style="dim")
    if verbose:
        table.add_column("Downloads")

    for entry in entries:
        row = [
            entry.name,
            entry.latest_version or "-",
            str(len(entry.versions)),
            entry.updated_at[:19],
        ]
        if verbose:
            row.append(
                "\n".join(
                    f"{v.version} ({format_size(v.file_size)}, {v.storage_backend.value}): "
                    f"{v.download_url}"
                    for v in entry.versions
                )
            )
        table.add_row(*row)

    console.print(table)


@app.command("prune-object")
def prune_object(
    key: str = typer.Argument(..., help="Primary object key ({name}/{version}/{file})"),
):
    """Remove a primary object that no committed version references."""
    config = _load_config()
    db = Database(config.database_path)
    router = create_storage_router(config)
    location = PrimaryLocation(object_key=key)
    try:
        if Catalog(db).is_referenced(location):
            console.print(f"[red]Object {key} belongs to a committed version; not removed[/red]")
            raise typer.Exit(1)
        removed = router.rollback(location)
    except ArtifactRegistryError as e:
        console.print(f"[red]{format_exception(e)}[/red]")
        raise typer.Exit(1)
    finally:
        router.close()
        db.close()

    if not removed:
        console.print(f"[red]Failed to remove object {key}[/red]")
        raise typer.Exit(1)
    console.print(f"[green]Removed object:[/green] {key}")


@app.command()
def version():
    """Show Artifact Registry version."""
    from artifact_registry import __version__

    console.print(f"Artifact Registry v{__version__}")


def main():
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()

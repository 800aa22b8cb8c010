"""CLI for hawser."""

import logging
import os
import shutil
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.progress import BarColumn, DownloadColumn, Progress, TextColumn, TransferSpeedColumn

from .client import TransferClient
from .config import EndpointConfig, load_endpoint_config
from .constants import TRACE_ENV
from .credentials import get_credential_provider
from .errors import ConfigError, HawserError, TransferError
from .models import TransferDescriptor
from .objects import LocalObjectStore, oid_from_path
from .progress import CallbackReader

app = typer.Typer(help="""\
Transfer large binary objects between a local object store and a
media endpoint. Objects are addressed by the SHA-256 of their content.""")

console = Console()


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log protocol traffic"),
):
    """Configure logging for every command."""
    trace = os.environ.get(TRACE_ENV, "").lower() in ("1", "true", "yes")
    logging.basicConfig(
        level=logging.DEBUG if (verbose or trace) else logging.WARNING,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )


def require_config() -> EndpointConfig:
    """Load endpoint configuration or exit with a hint."""
    try:
        return load_endpoint_config()
    except ConfigError as e:
        console.print(f"[red]✗[/red] {e}")
        raise typer.Exit(1)


def require_store(config: EndpointConfig) -> LocalObjectStore:
    if config.objects_dir is None:
        console.print("[red]✗[/red] No object store found (no .hawser directory)")
        raise typer.Exit(1)
    return LocalObjectStore(config.objects_dir)


def make_client(config: EndpointConfig) -> TransferClient:
    return TransferClient(config, get_credential_provider())


def make_progress() -> Progress:
    return Progress(
        TextColumn("[bold blue]{task.description}"),
        BarColumn(),
        DownloadColumn(),
        TransferSpeedColumn(),
        console=console,
        transient=True,
    )


def print_transfer_error(action: str, e: TransferError) -> None:
    console.print(f"[red]✗[/red] {action} failed: {escape(e.details())}")


@app.command()
def download(
    oid: str = typer.Argument(..., help="Object id (SHA-256), or a local object path"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write to this path instead of the object store"),
):
    """Download an object.

    Examples:
        hawser download 4d7a2146...            # Into .hawser/objects
        hawser download 4d7a2146... -o out.bin # To a file
    """
    config = require_config()
    client = make_client(config)
    store = None if output else require_store(config)

    try:
        with client.download(oid) as dl, make_progress() as progress:
            task = progress.add_task(dl.oid[:12], total=dl.size)

            def on_progress(total: int, transferred: int) -> None:
                progress.update(task, completed=transferred)

            reader = CallbackReader(dl.stream, dl.size or 0, on_progress)
            if output:
                output.parent.mkdir(parents=True, exist_ok=True)
                with output.open("wb") as f:
                    shutil.copyfileobj(reader, f)
                dest = output
            else:
                dest = store.write(dl.oid, reader)
    except TransferError as e:
        print_transfer_error("Download", e)
        raise typer.Exit(1)
    except (HawserError, ValueError) as e:
        console.print(f"[red]✗[/red] {e}")
        raise typer.Exit(1)

    console.print(f"[green]✓[/green] Downloaded {oid_from_path(oid)} to {dest}")


@app.command()
def upload(
    target: str = typer.Argument(..., help="Path to a local object, or an object id in the store"),
    name: Optional[str] = typer.Option(None, "--name", "-n", help="Display name for the object"),
):
    """Upload an object.

    Examples:
        hawser upload .hawser/objects/4d/7a/4d7a2146...
        hawser upload 4d7a2146... --name data/big.csv
    """
    config = require_config()
    path = Path(target)
    if not path.exists():
        try:
            path = require_store(config).path(target)
        except ValueError as e:
            console.print(f"[red]✗[/red] {e}")
            raise typer.Exit(1)

    client = make_client(config)
    display_name = name or path.name
    console.print(f"Sending {display_name}")

    try:
        with make_progress() as progress:
            task = progress.add_task(display_name, total=None)

            def on_progress(total: int, transferred: int) -> None:
                progress.update(task, total=total, completed=transferred)

            client.upload(TransferDescriptor(path, display_name, on_progress))
    except TransferError as e:
        print_transfer_error("Upload", e)
        raise typer.Exit(1)

    console.print(f"[green]✓[/green] Uploaded {display_name}")


@app.command()
def endpoint():
    """Show the resolved endpoint."""
    config = require_config()
    console.print(config.endpoint)
    if config.objects_dir is not None:
        console.print(f"[dim]Objects: {config.objects_dir}[/dim]")

import json
import sys
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.table import Table

from netdra.config.environment import Environment
from netdra.config.logging_config import configure_logging, get_logger
from netdra.system.iproute import IPRoute2, LinkOps

console = Console()
log = get_logger(__name__)


def _get_version() -> str:
    try:
        return version("netdra")
    except PackageNotFoundError:
        return "unknown"


def get_link_ops() -> LinkOps:
    return IPRoute2()


@click.group()
@click.version_option(version=_get_version(), prog_name="netdra")
@click.option("--verbose", "-v", is_flag=True, help="Enable DEBUG logging.")
def cli(verbose: bool):
    """netdra - node-local network and RDMA resource claim driver."""
    if verbose:
        configure_logging(level="DEBUG")


@cli.command("handlers")
def list_handlers():
    """Show the registered device handlers."""
    from netdra.driver.bootstrap import build_handler_registry
    from netdra.nri import RelocationTracker

    registry = build_handler_registry(get_link_ops(), RelocationTracker())

    table = Table(title="Device Handlers")
    table.add_column("Type", style="cyan")
    table.add_column("Kinds", style="green")
    for device_type, kinds in registry.list_registered().items():
        table.add_row(device_type, ", ".join(kinds))
    console.print(table)


@cli.command("allocations")
@click.option(
    "--cdi-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="CDI directory (defaults to the CDI_DIR setting).",
)
@click.option("--json", "as_json", is_flag=True, help="Print the allocations as JSON.")
def list_allocations(cdi_dir: Optional[Path], as_json: bool):
    """Show the allocations persisted in the CDI directory."""
    from netdra.driver.cdi import CDIStore

    store = CDIStore(cdi_dir or Environment.get_cdi_dir(), Environment.get_driver_name())
    allocations = store.load_allocations()

    if as_json:
        data = [a.model_dump(mode="json", by_alias=True) for a in allocations.values()]
        click.echo(json.dumps(data, indent=2))
        return

    if not allocations:
        console.print(f"[bold yellow]No allocations in {store.cdi_dir}.[/]")
        return

    table = Table(title=f"Allocations in {store.cdi_dir}")
    table.add_column("Claim UID", style="cyan")
    table.add_column("Type", style="green")
    table.add_column("Kind", style="green")
    table.add_column("Device", style="yellow")
    for allocation in allocations.values():
        table.add_row(
            allocation.claim_uid,
            allocation.type.value,
            allocation.kind,
            allocation.device_name,
        )
    console.print(table)


@cli.command("netns-mode")
def netns_mode():
    """Detect the RDMA network namespace mode of this host."""
    from netdra.handler.rdma.mode import detect_netns_mode

    mode = detect_netns_mode(get_link_ops())
    console.print(f"RDMA netns mode: [bold cyan]{mode.value}[/]")


@cli.command("release")
@click.argument("claim_uids", nargs=-1, required=True)
@click.option(
    "--cdi-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="CDI directory (defaults to the CDI_DIR setting).",
)
def release(claim_uids: tuple[str, ...], cdi_dir: Optional[Path]):
    """Release persisted allocations by claim UID (manual recovery)."""
    from netdra.driver.bootstrap import create_driver
    from netdra.driver.claims import NamespacedObject

    driver = create_driver(ops=get_link_ops(), cdi_dir=cdi_dir)
    results = driver.unprepare_resource_claims(NamespacedObject(uid=uid) for uid in claim_uids)

    failed = 0
    for uid, error in results.items():
        if error is None:
            console.print(f"[green]✅ Released {uid}[/]")
        else:
            failed += 1
            console.print(f"[red]❌ {uid}: {error}[/]")
    if failed:
        sys.exit(1)


@click.group()
def settings():
    """Commands for inspecting netdra settings."""
    pass


@settings.command("show")
def show_settings():
    """Show every registered setting and its effective value."""
    from netdra.config.configuration import get_settings_registry

    table = Table(title="Settings")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")
    table.add_column("Description", style="yellow")

    for setting in get_settings_registry():
        value = Environment.get(setting.env_var, None)
        table.add_row(setting.env_var, "" if value is None else str(value), setting.description)
    console.print(table)


cli.add_command(settings)


if __name__ == "__main__":
    cli()

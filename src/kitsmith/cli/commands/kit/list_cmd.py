"""Kit list command - show kits with their lineage and usage."""

import click
from rich.console import Console
from rich.table import Table

from kitsmith.core.context import KitsmithContext
from kitsmith.core.kit import Artifact

PHASE_STYLES = {
    "Ready": "[green]Ready[/green]",
    "Building": "[yellow]Building[/yellow]",
    "Error": "[red]Error[/red]",
}


def _short_image(artifact: Artifact) -> str:
    digest = artifact.digest
    if not digest:
        return "[dim]-[/dim]"
    return digest.removeprefix("sha256:")[:12]


@click.command("list")
@click.option("-n", "--namespace", default=None, help="Only list kits in this namespace.")
@click.pass_obj
def list_cmd(ctx: KitsmithContext, namespace: str | None) -> None:
    """List kits.

    A kit is marked used when at least one integration runs on it.
    """
    graph = ctx.load_graph()
    graph.refresh_usage(ctx.integrations.list_integrations(namespace=None))
    snapshot = graph.snapshot(namespace)

    table = Table(show_header=True, header_style="bold", box=None)
    table.add_column("Namespace", no_wrap=True)
    table.add_column("Kit", style="cyan", no_wrap=True)
    table.add_column("Phase", no_wrap=True)
    table.add_column("Type", no_wrap=True)
    table.add_column("Base", style="yellow", no_wrap=True)
    table.add_column("Runtime", no_wrap=True)
    table.add_column("Deps", justify="right")
    table.add_column("Image", no_wrap=True)
    table.add_column("Used", no_wrap=True)

    used_count = 0
    for artifact in snapshot.artifacts():
        if artifact.used:
            used_count += 1
        table.add_row(
            artifact.namespace,
            artifact.name,
            PHASE_STYLES.get(artifact.phase, artifact.phase),
            artifact.kit_type,
            artifact.base_name if artifact.base_name is not None else "[dim]-[/dim]",
            artifact.runtime_version,
            str(len(artifact.dependencies)),
            _short_image(artifact),
            "[green]yes[/green]" if artifact.used else "[dim]no[/dim]",
        )

    console = Console(stderr=True, force_terminal=True)
    console.print(table)
    console.print(f"\nKits: {len(snapshot.artifacts())} total | {used_count} used")

"""Build run command - submit build requests and drive them to completion."""

from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from kitsmith.cli.ensure import Ensure
from kitsmith.cli.commands.build.requests_file import load_request_file
from kitsmith.core.compatibility import CompatibilityGate
from kitsmith.core.context import KitsmithContext
from kitsmith.core.scheduler.scheduler import BuildScheduler
from kitsmith.core.scheduler.types import Build, BuildQueued, BuildRejected, KitReused
from kitsmith_shared.output.output import user_output

PHASE_STYLES = {
    "Pending": "[dim]Pending[/dim]",
    "Running": "[yellow]Running[/yellow]",
    "Succeeded": "[green]Succeeded[/green]",
    "Error": "[red]Error[/red]",
}


def _render_builds(builds: list[Build]) -> None:
    table = Table(show_header=True, header_style="bold", box=None)
    table.add_column("Build", style="cyan", no_wrap=True)
    table.add_column("Phase", no_wrap=True)
    table.add_column("Retries", justify="right")
    table.add_column("Base", style="yellow", no_wrap=True)
    table.add_column("Result")
    for build in builds:
        if build.reused_kit is not None:
            result = f"reused {build.reused_kit}"
        elif build.failure_reason is not None:
            result = f"[red]{build.failure_reason}[/red]"
        else:
            result = build.image if build.image is not None else "-"
        table.add_row(
            build.key,
            PHASE_STYLES.get(build.phase, build.phase),
            str(build.retries_used),
            build.base_kit if build.base_kit is not None else "[dim]-[/dim]",
            result,
        )
    console = Console(stderr=True, force_terminal=True)
    console.print(table)


@click.command("run")
@click.argument("requests_path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--dry-run",
    is_flag=True,
    help="Only report which requests would be built, reused or rejected.",
)
@click.option(
    "--max-ticks",
    type=int,
    default=None,
    help="Stop after this many scheduler passes even if builds are still running.",
)
@click.pass_obj
def run_cmd(
    ctx: KitsmithContext,
    requests_path: Path,
    dry_run: bool,
    max_ticks: int | None,
) -> None:
    """Build the kits listed in REQUESTS_PATH.

    Kits that already exist are reused; the rest are built in the platform's
    order, layered on the best existing kit when possible.
    """
    loaded = load_request_file(requests_path)
    if loaded.errors:
        user_output(click.style("Error: ", fg="red") + f"Invalid request file {requests_path}:")
        for error in loaded.errors:
            user_output(f"  - {error}")
        raise SystemExit(1)

    graph = ctx.load_graph()
    scheduler = BuildScheduler(
        graph=graph,
        executor=ctx.executor,
        gate=CompatibilityGate(ctx.catalog),
        time=ctx.time,
        config=ctx.platform_config,
    )

    for request in loaded.requests:
        result = scheduler.submit(request)
        if isinstance(result, KitReused):
            user_output(f"{request.key}: reusing kit {result.kit_key}")
        elif isinstance(result, BuildRejected):
            user_output(f"{request.key}: " + click.style(f"rejected ({result.reason})", fg="red"))
        elif isinstance(result, BuildQueued):
            user_output(f"{request.key}: queued")

    if dry_run:
        return

    scheduler.run_until_idle(max_ticks=max_ticks)
    # Unfinished builds do not outlive this process.
    for build in scheduler.running():
        scheduler.cancel(build.namespace, build.name)
    for entry in scheduler.pending():
        scheduler.cancel(entry.request.namespace, entry.request.name)
    ctx.save_graph(graph)

    builds = scheduler.builds()
    user_output()
    _render_builds(builds)

    failed = [build for build in builds if build.phase == "Error"]
    Ensure.invariant(not failed, f"{len(failed)} build(s) failed")

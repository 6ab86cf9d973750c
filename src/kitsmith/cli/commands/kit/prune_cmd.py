"""Kit prune command - delete kits no integration depends on."""

import click

from kitsmith.cli.commands.kit.report import failure_lines, prune_report_lines
from kitsmith.cli.ensure import Ensure
from kitsmith.core.context import KitsmithContext
from kitsmith.core.errors import GarbageCollectionBlocked
from kitsmith.core.gc.collector import GarbageCollector
from kitsmith_shared.output.output import user_confirm, user_output


@click.command("prune")
@click.option(
    "--dry-run",
    is_flag=True,
    help="Print what would be deleted without deleting anything.",
)
@click.option(
    "--keep-bases/--no-keep-bases",
    default=True,
    show_default=True,
    help="Keep every base of a used kit, or only the used kits themselves.",
)
@click.option("-f", "--force", is_flag=True, help="Do not prompt for confirmation.")
@click.option("-n", "--namespace", default=None, help="Only prune kits in this namespace.")
@click.pass_obj
def prune_cmd(
    ctx: KitsmithContext,
    dry_run: bool,
    keep_bases: bool,
    force: bool,
    namespace: str | None,
) -> None:
    """Delete kits (and their images) that no integration uses.

    With --keep-bases (the default) kits underneath a used kit survive so
    they can still be squashed; --no-keep-bases deletes every kit that is
    not used directly.
    """
    graph = ctx.load_graph()
    collector = GarbageCollector(
        graph=graph,
        registry=ctx.registry,
        integrations=ctx.integrations,
        namespace=namespace,
    )

    try:
        plan = collector.prune(dry_run=True, keep_bases=keep_bases)
    except GarbageCollectionBlocked as e:
        Ensure.fail(str(e))

    for line in prune_report_lines(plan):
        user_output(line)

    if dry_run or plan.nothing_to_do:
        return

    if not force:
        user_output()
        if not user_confirm("Proceed with deletion?", default=False):
            user_output(click.style("Aborted.", fg="red", bold=True))
            return

    try:
        result = collector.prune(dry_run=False, keep_bases=keep_bases)
    except GarbageCollectionBlocked as e:
        Ensure.fail(str(e))
    ctx.save_graph(graph)

    if result.failures:
        user_output()
        user_output(click.style("Error: ", fg="red") + "Some deletions failed:")
        for line in failure_lines(result.failures):
            user_output(line)
        raise SystemExit(1)

    deleted = len(result.artifacts_to_delete)
    user_output(click.style(f"✅ Deleted {deleted} kit(s)", fg="green"))

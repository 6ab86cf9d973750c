"""Kit squash command - flatten kit lineages and redeploy their integrations."""

import click

from kitsmith.cli.commands.kit.report import failure_lines, squash_report_lines
from kitsmith.cli.ensure import Ensure
from kitsmith.core.context import KitsmithContext
from kitsmith.core.errors import GarbageCollectionBlocked
from kitsmith.core.gc.collector import GarbageCollector
from kitsmith_shared.output.output import user_confirm, user_output


@click.command("squash")
@click.option(
    "--dry-run",
    is_flag=True,
    help="Print the chains and integrations affected without changing anything.",
)
@click.option("-f", "--force", is_flag=True, help="Do not prompt for confirmation.")
@click.option("-n", "--namespace", default=None, help="Only squash kits in this namespace.")
@click.pass_obj
def squash_cmd(ctx: KitsmithContext, dry_run: bool, force: bool, namespace: str | None) -> None:
    """Flatten chains of kits below a used kit into a single image.

    Integrations running on a squashed chain are switched to the new image
    and redeployed. Kits left unused afterwards are removed by `kit prune`.
    """
    graph = ctx.load_graph()
    collector = GarbageCollector(
        graph=graph,
        registry=ctx.registry,
        integrations=ctx.integrations,
        namespace=namespace,
    )

    try:
        plan = collector.squash(dry_run=True)
    except GarbageCollectionBlocked as e:
        Ensure.fail(str(e))

    for line in squash_report_lines(plan):
        user_output(line)

    if dry_run or plan.nothing_to_do:
        return

    if not force:
        user_output()
        if not user_confirm("Squash these kits and redeploy integrations?", default=False):
            user_output(click.style("Aborted.", fg="red", bold=True))
            return

    try:
        result = collector.squash(dry_run=False)
    except GarbageCollectionBlocked as e:
        Ensure.fail(str(e))
    ctx.save_graph(graph)

    for chain in result.chains:
        if chain.new_image is not None:
            user_output(f"Squashed {chain.leaf} into {click.style(chain.new_image, fg='cyan')}")

    if result.failures:
        user_output()
        user_output(click.style("Error: ", fg="red") + "Some squash operations failed:")
        for line in failure_lines(result.failures):
            user_output(line)
        raise SystemExit(1)

    user_output(
        click.style(
            f"✅ Squashed {len(result.chains)} chain(s), "
            f"redeployed {len(result.redeployed)} integration(s)",
            fg="green",
        )
    )

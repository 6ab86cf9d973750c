import logging
from pathlib import Path

import click

from kitsmith.cli.commands.build.group import build_group
from kitsmith.cli.commands.kit.group import kit_group
from kitsmith.cli.ensure import Ensure
from kitsmith.core.context import create_context
from kitsmith.core.errors import PlatformConfigError

CONTEXT_SETTINGS = dict(help_option_names=["-h", "--help"])  # terse help flags


@click.group(context_settings=CONTEXT_SETTINGS)
@click.version_option(package_name="kitsmith")
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.option(
    "--root",
    type=click.Path(file_okay=False, path_type=Path),
    default=Path("."),
    show_default=True,
    help="Platform directory holding the .kitsmith state.",
)
@click.pass_context
def cli(ctx: click.Context, debug: bool, root: Path) -> None:
    """Schedule kit builds and garbage collect kit images."""
    if debug:
        logging.basicConfig(level=logging.DEBUG, format="%(name)s - %(levelname)s - %(message)s")

    # Only create context if not already provided (e.g., by tests)
    if ctx.obj is None:
        try:
            ctx.obj = create_context(root=root.resolve(), verbose=debug)
        except PlatformConfigError as e:
            Ensure.fail(str(e))


cli.add_command(build_group)
cli.add_command(kit_group)


def main() -> None:
    """CLI entry point used by the `kitsmith` console script."""
    cli()

"""Build commands group."""

import click

from kitsmith.cli.commands.build.run_cmd import run_cmd


@click.group("build")
def build_group() -> None:
    """Schedule kit builds."""


build_group.add_command(run_cmd)

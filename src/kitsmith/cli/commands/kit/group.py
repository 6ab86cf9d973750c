"""Kit commands group."""

import click

from kitsmith.cli.commands.kit.create_cmd import create_cmd
from kitsmith.cli.commands.kit.list_cmd import list_cmd
from kitsmith.cli.commands.kit.prune_cmd import prune_cmd
from kitsmith.cli.commands.kit.squash_cmd import squash_cmd


@click.group("kit")
def kit_group() -> None:
    """Manage kits - create, list and garbage collect.

    Common commands:
      prune      Delete kits no integration depends on
      squash     Flatten kit lineages into single images
    """


kit_group.add_command(create_cmd)
kit_group.add_command(list_cmd)
kit_group.add_command(prune_cmd)
kit_group.add_command(squash_cmd)

"""Output routing for CLI commands.

Human-readable messages and prompts go to stderr so that stdout stays free
for anything a script may want to capture.
"""

import sys

import click


def user_output(message: str = "", *, nl: bool = True) -> None:
    """Print a human-readable message to stderr."""
    click.echo(message, err=True, nl=nl)


def user_confirm(prompt: str, *, default: bool) -> bool:
    """Ask the user a yes/no question on stderr.

    Pending stderr output is flushed first so it appears above the prompt.
    """
    sys.stderr.flush()
    return click.confirm(prompt, default=default, err=True)

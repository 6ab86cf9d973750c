"""Shared base for printing gateway wrappers."""

import click

from kitsmith_shared.output.output import user_output


class PrintingBase:
    """Base class for wrappers that announce mutations before delegating.

    Subclasses also inherit from the gateway ABC they wrap and implement its
    methods by calling ``self._emit`` and then ``self._wrapped``.
    """

    def __init__(self, wrapped: object) -> None:
        self._wrapped = wrapped

    def _emit(self, message: str) -> None:
        user_output(message)

    def _format_command(self, description: str) -> str:
        return click.style("  $ ", dim=True) + description

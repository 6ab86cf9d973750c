"""Helpers for failing CLI commands with a user-facing error."""

from typing import NoReturn, TypeVar

import click

from kitsmith_shared.output.output import user_output

T = TypeVar("T")


class Ensure:
    """Narrowing helpers that print a red "Error:" line and exit 1."""

    @staticmethod
    def fail(message: str) -> NoReturn:
        user_output(click.style("Error: ", fg="red") + message)
        raise SystemExit(1)

    @staticmethod
    def invariant(condition: bool, message: str) -> None:
        if not condition:
            Ensure.fail(message)

    @staticmethod
    def not_none(value: T | None, message: str) -> T:
        """Return ``value`` unchanged, exiting with ``message`` if it is None."""
        if value is None:
            Ensure.fail(message)
        return value

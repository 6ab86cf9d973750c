"""User-facing output helpers."""

from kitsmith_shared.output.output import user_confirm, user_output

__all__ = [
    "user_confirm",
    "user_output",
]

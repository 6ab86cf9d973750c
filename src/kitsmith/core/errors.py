"""Exception types raised by the kitsmith core.

Expected outcomes (a rejected build, a reused kit) are modelled as frozen
dataclasses, not exceptions. Exceptions are reserved for violated
invariants and for failures the caller must stop on.
"""


class KitsmithError(Exception):
    """Base class for kitsmith errors."""


class GraphConsistencyError(KitsmithError):
    """A graph mutation would break a lineage invariant.

    Correct reachability and chain computation never trigger this; seeing it
    means a bug in the caller.
    """


class SquashIntegrityError(KitsmithError):
    """A kit image is not layered on top of the image it claims as base."""


class GarbageCollectionBlocked(KitsmithError):
    """Garbage collection cannot run while kits are still building."""


class PlatformConfigError(KitsmithError):
    """The platform configuration file is invalid."""

    def __init__(self, path: str, errors: list[str]) -> None:
        self.path = path
        self.errors = errors
        details = "\n".join(f"  - {error}" for error in errors)
        super().__init__(f"Invalid platform configuration in {path}:\n{details}")

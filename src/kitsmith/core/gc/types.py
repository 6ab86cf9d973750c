from dataclasses import dataclass


@dataclass(frozen=True)
class GcFailure:
    """A single garbage collection step that could not be applied.

    Attributes:
        target: Kit key or image reference the step was about
        reason: What went wrong
    """

    target: str
    reason: str


@dataclass(frozen=True)
class PruneResult:
    artifacts_to_delete: tuple[str, ...]
    images_to_delete: tuple[str, ...]
    failures: tuple[GcFailure, ...]

    @property
    def nothing_to_do(self) -> bool:
        return not self.artifacts_to_delete and not self.images_to_delete


@dataclass(frozen=True)
class SquashChain:
    """Kits flattened into one image.

    Attributes:
        members: Kit keys, leaf first
        new_image: Flattened image reference, None in dry-run or on failure
    """

    members: tuple[str, ...]
    new_image: str | None

    @property
    def leaf(self) -> str:
        return self.members[0]


@dataclass(frozen=True)
class SquashResult:
    chains: tuple[SquashChain, ...]
    redeployed: tuple[str, ...]
    failures: tuple[GcFailure, ...]

    @property
    def nothing_to_do(self) -> bool:
        return not self.chains

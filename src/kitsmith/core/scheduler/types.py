"""Build requests, build status records and submit outcomes."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Literal

from kitsmith.core.fingerprint import RequestFingerprint, compute_fingerprint

OrderStrategy = Literal["fifo", "dependencies", "sequential"]

BuildPhase = Literal["Pending", "Running", "Succeeded", "Error"]

TERMINAL_PHASES: frozenset[str] = frozenset({"Succeeded", "Error"})


@dataclass(frozen=True)
class BuildStrategy:
    """Per-request overrides.

    Attributes:
        order_strategy: Overrides the platform ordering for this build
        base_image: Pins the base image; disables incremental kit reuse
    """

    order_strategy: OrderStrategy | None = None
    base_image: str | None = None


@dataclass(frozen=True)
class BuildRequest:
    namespace: str
    name: str
    dependencies: frozenset[str]
    build_properties: tuple[tuple[str, str], ...]
    runtime_version: str
    version: str
    priority: int = 0
    strategy: BuildStrategy = field(default_factory=BuildStrategy)

    @property
    def key(self) -> str:
        return f"{self.namespace}/{self.name}"

    @property
    def fingerprint(self) -> str:
        return compute_fingerprint(
            self.dependencies, self.build_properties, self.runtime_version
        )

    def to_request_fingerprint(self) -> RequestFingerprint:
        return RequestFingerprint(
            namespace=self.namespace,
            dependencies=self.dependencies,
            build_properties=self.build_properties,
            runtime_version=self.runtime_version,
            version=self.version,
        )


@dataclass(frozen=True)
class Build:
    """Status of one build request.

    Attributes:
        namespace: Namespace of the build
        name: Build name
        phase: Pending, Running, Succeeded or Error
        retries_used: Transient failures consumed so far
        image: Resulting image once Succeeded
        started_at: Start of the current attempt, None until Running
        failure_reason: Why the build ended in Error
        base_kit: Key of the kit used as incremental base, if any
        reused_kit: Key of the kit reused instead of building, if any
        kit: Key of the kit this build produces, set on dispatch. Equal to
            the build key unless another kit already holds that name
    """

    namespace: str
    name: str
    phase: BuildPhase
    retries_used: int
    image: str | None
    started_at: datetime | None
    failure_reason: str | None
    base_kit: str | None
    reused_kit: str | None
    kit: str | None

    @property
    def key(self) -> str:
        return f"{self.namespace}/{self.name}"

    @property
    def is_terminal(self) -> bool:
        return self.phase in TERMINAL_PHASES


@dataclass(frozen=True)
class KitReused:
    """An existing kit already satisfies the request; no build runs."""

    build: Build
    kit_key: str


@dataclass(frozen=True)
class BuildRejected:
    """The request cannot be built (for example an incompatible catalog)."""

    build: Build
    reason: str


@dataclass(frozen=True)
class BuildQueued:
    build: Build
    sequence: int


SubmitResult = KitReused | BuildRejected | BuildQueued


@dataclass(frozen=True)
class QueueEntry:
    """A pending request waiting for admission.

    Attributes:
        request: The build request
        sequence: Arrival order, unique and increasing
        dependency_rank: Number of other active requests this one would
            layer on top of (computed when the queue is ordered)
    """

    request: BuildRequest
    sequence: int
    dependency_rank: int = 0

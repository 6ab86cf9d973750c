"""Data types exchanged with the build executor."""

from dataclasses import dataclass


@dataclass(frozen=True)
class BuildJob:
    """One attempt at building a kit.

    Attributes:
        namespace: Namespace of the build
        build_name: Build (and resulting kit) name
        dependencies: Full sorted dependency list of the requested kit
        delta_dependencies: Dependencies not provided by the base image
        build_properties: Sorted (key, value) build-time properties
        runtime_version: Catalog runtime version to build against
        base_image: Image to layer on top of, None for a root build
        attempt: 1-based attempt counter
    """

    namespace: str
    build_name: str
    dependencies: tuple[str, ...]
    delta_dependencies: tuple[str, ...]
    build_properties: tuple[tuple[str, str], ...]
    runtime_version: str
    base_image: str | None
    attempt: int

    @property
    def key(self) -> str:
        return f"{self.namespace}/{self.build_name}"


@dataclass(frozen=True)
class JobStarted:
    """The executor accepted the job."""


@dataclass(frozen=True)
class JobStartFailed:
    """The executor could not start the job (always transient)."""

    reason: str


@dataclass(frozen=True)
class JobRunning:
    """The job has not finished yet."""


@dataclass(frozen=True)
class JobSucceeded:
    image: str


@dataclass(frozen=True)
class JobFailed:
    """The job finished unsuccessfully.

    Transient failures (scheduling pressure, infrastructure hiccups) may be
    retried; anything else is a real build error reported verbatim.
    """

    reason: str
    transient: bool


JobStartResult = JobStarted | JobStartFailed
JobStatus = JobRunning | JobSucceeded | JobFailed

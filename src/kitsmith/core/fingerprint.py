"""Kit fingerprinting and reusable-kit matching."""

import hashlib
import json
from collections.abc import Iterable, Mapping
from dataclasses import dataclass

from kitsmith.core.kit import Artifact


def normalize_properties(
    properties: Mapping[str, str] | Iterable[tuple[str, str]],
) -> tuple[tuple[str, str], ...]:
    items = properties.items() if isinstance(properties, Mapping) else properties
    return tuple(sorted((str(key), str(value)) for key, value in items))


def compute_fingerprint(
    dependencies: Iterable[str],
    build_properties: Iterable[tuple[str, str]],
    runtime_version: str,
) -> str:
    """Digest identifying the content of a kit.

    Independent of the order dependencies and properties are given in.
    """
    payload = json.dumps(
        {
            "dependencies": sorted(set(dependencies)),
            "properties": [list(entry) for entry in normalize_properties(build_properties)],
            "runtime": runtime_version,
        },
        separators=(",", ":"),
        sort_keys=True,
    )
    return "sha256:" + hashlib.sha256(payload.encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class RequestFingerprint:
    """What a build request needs from a kit."""

    namespace: str
    dependencies: frozenset[str]
    build_properties: tuple[tuple[str, str], ...]
    runtime_version: str
    version: str

    @property
    def fingerprint(self) -> str:
        return compute_fingerprint(
            self.dependencies, self.build_properties, self.runtime_version
        )


@dataclass(frozen=True)
class KitMatch:
    """A kit that can serve a request.

    Attributes:
        kit: The matching kit
        exact: True if the kit already provides everything requested
        delta_dependencies: Dependencies still to be built on top of the kit
    """

    kit: Artifact
    exact: bool
    delta_dependencies: frozenset[str]


def _is_candidate(kit: Artifact, request: RequestFingerprint) -> bool:
    return (
        kit.phase == "Ready"
        and kit.namespace == request.namespace
        and kit.runtime_version == request.runtime_version
        and kit.version == request.version
    )


def _preference(kit: Artifact) -> tuple:
    # Sorted ascending: largest dependency set, then priority, then newest.
    return (-len(kit.dependencies), -kit.priority, -kit.created_at.timestamp(), kit.name)


def find_reusable(
    request: RequestFingerprint,
    candidates: Iterable[Artifact],
    *,
    allow_incremental: bool = True,
) -> KitMatch | None:
    """Pick the best kit to serve ``request``.

    An exact fingerprint match is always preferred. Otherwise the kit whose
    dependencies are the largest strict subset of the request's (and whose
    build properties are a subset of the request's) becomes the incremental
    base. Returns None when nothing can be reused.
    """
    eligible = sorted(
        (kit for kit in candidates if _is_candidate(kit, request)),
        key=_preference,
    )
    fingerprint = request.fingerprint
    for kit in eligible:
        if kit.fingerprint == fingerprint:
            return KitMatch(kit=kit, exact=True, delta_dependencies=frozenset())

    if not allow_incremental:
        return None

    requested_properties = set(request.build_properties)
    for kit in eligible:
        if not kit.dependencies < request.dependencies:
            continue
        if not set(kit.build_properties) <= requested_properties:
            continue
        return KitMatch(
            kit=kit,
            exact=False,
            delta_dependencies=request.dependencies - kit.dependencies,
        )
    return None

"""Kit lineage graph.

Kits are stored in an arena keyed by "namespace/name". The base edge of a
kit is its ``base_name``; children are derived by scanning the arena, so
there are no back-pointers to keep in sync.

Writers serialize through ``mutation()``. When the outermost mutation ends
the graph publishes a new immutable ``GraphSnapshot``; readers on other
threads only see published snapshots and never wait for a writer. The
writing thread reads its in-progress state.
"""

import logging
import threading
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, replace

from kitsmith.core.errors import GraphConsistencyError
from kitsmith.core.kit import Artifact
from kitsmith_shared.gateway.integrations.types import Integration

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GraphSnapshot:
    """Immutable point-in-time view of the graph."""

    artifacts_by_key: dict[str, Artifact]

    def get(self, key: str) -> Artifact | None:
        return self.artifacts_by_key.get(key)

    def artifacts(self) -> list[Artifact]:
        return [self.artifacts_by_key[key] for key in sorted(self.artifacts_by_key)]

    def children(self, key: str) -> list[Artifact]:
        return [artifact for artifact in self.artifacts() if artifact.base_key == key]

    def roots(self) -> list[Artifact]:
        return [
            artifact
            for artifact in self.artifacts()
            if artifact.base_key is None or artifact.base_key not in self.artifacts_by_key
        ]

    def parent(self, key: str) -> Artifact | None:
        artifact = self.artifacts_by_key.get(key)
        if artifact is None or artifact.base_key is None:
            return None
        return self.artifacts_by_key.get(artifact.base_key)

    def chain_to_root(self, key: str) -> list[Artifact]:
        """Return the lineage of ``key``, leaf first, root last."""
        chain: list[Artifact] = []
        seen: set[str] = set()
        current = self.artifacts_by_key.get(key)
        while current is not None:
            if current.key in seen:
                raise GraphConsistencyError(f"Base cycle detected at {current.key}")
            seen.add(current.key)
            chain.append(current)
            current = self.parent(current.key)
        return chain

    def reachable_from_used(self, *, include_bases: bool) -> set[str]:
        """Keys of every used kit and, with ``include_bases``, all their ancestors."""
        reachable: set[str] = set()
        for artifact in self.artifacts():
            if not artifact.used:
                continue
            if not include_bases:
                reachable.add(artifact.key)
                continue
            for ancestor in self.chain_to_root(artifact.key):
                if ancestor.key in reachable:
                    break
                reachable.add(ancestor.key)
        return reachable

    def in_namespace(self, namespace: str) -> "GraphSnapshot":
        return GraphSnapshot(
            artifacts_by_key={
                key: artifact
                for key, artifact in self.artifacts_by_key.items()
                if artifact.namespace == namespace
            }
        )


class ArtifactGraph:
    """Mutable, lock-protected kit lineage graph."""

    def __init__(self, artifacts: Iterable[Artifact] = ()) -> None:
        self._lock = threading.RLock()
        self._writer: int | None = None
        self._depth = 0
        self._artifacts: dict[str, Artifact] = {}
        for artifact in artifacts:
            self._artifacts[artifact.key] = artifact
        self._check_acyclic()
        self._published = GraphSnapshot(artifacts_by_key=dict(self._artifacts))

    @contextmanager
    def mutation(self) -> Iterator["ArtifactGraph"]:
        """Hold the writer lock for a multi-step change.

        Other threads keep reading the last published snapshot until the
        outermost mutation exits.
        """
        with self._lock:
            self._depth += 1
            self._writer = threading.get_ident()
            try:
                yield self
            finally:
                self._depth -= 1
                if self._depth == 0:
                    self._published = GraphSnapshot(artifacts_by_key=dict(self._artifacts))
                    self._writer = None

    def snapshot(self, namespace: str | None = None) -> GraphSnapshot:
        if self._writer == threading.get_ident():
            snapshot = GraphSnapshot(artifacts_by_key=dict(self._artifacts))
        else:
            snapshot = self._published
        if namespace is None:
            return snapshot
        return snapshot.in_namespace(namespace)

    def get(self, key: str) -> Artifact | None:
        return self.snapshot().get(key)

    def artifacts(self) -> list[Artifact]:
        return self.snapshot().artifacts()

    def children(self, key: str) -> list[Artifact]:
        return self.snapshot().children(key)

    def roots(self) -> list[Artifact]:
        return self.snapshot().roots()

    def chain_to_root(self, key: str) -> list[Artifact]:
        return self.snapshot().chain_to_root(key)

    def reachable_from_used(self, *, include_bases: bool) -> set[str]:
        return self.snapshot().reachable_from_used(include_bases=include_bases)

    def add_artifact(self, artifact: Artifact) -> None:
        """Insert a new kit.

        Raises:
            GraphConsistencyError: If the key is taken or the base is unknown
        """
        with self.mutation():
            if artifact.key in self._artifacts:
                raise GraphConsistencyError(f"Kit {artifact.key} already exists")
            if artifact.base_key is not None and artifact.base_key not in self._artifacts:
                raise GraphConsistencyError(
                    f"Base kit {artifact.base_key} of {artifact.key} does not exist"
                )
            self._artifacts[artifact.key] = artifact
            logger.debug("Added kit %s (base=%s)", artifact.key, artifact.base_key)

    def replace_artifact(self, artifact: Artifact) -> Artifact:
        """Swap an existing kit for a new version of it, returning the old one.

        Raises:
            GraphConsistencyError: If the kit is unknown or the new base
                would create a cycle
        """
        with self.mutation():
            previous = self._artifacts.get(artifact.key)
            if previous is None:
                raise GraphConsistencyError(f"Kit {artifact.key} does not exist")
            if artifact.base_key is not None and artifact.base_key not in self._artifacts:
                raise GraphConsistencyError(
                    f"Base kit {artifact.base_key} of {artifact.key} does not exist"
                )
            self._artifacts[artifact.key] = artifact
            try:
                self._check_acyclic()
            except GraphConsistencyError:
                self._artifacts[artifact.key] = previous
                raise
            logger.debug("Replaced kit %s", artifact.key)
            return previous

    def remove_artifact(self, key: str) -> Artifact:
        """Remove a kit. Children become roots but keep their base image.

        Raises:
            GraphConsistencyError: If the kit is unknown
        """
        with self.mutation():
            removed = self._artifacts.pop(key, None)
            if removed is None:
                raise GraphConsistencyError(f"Kit {key} does not exist")
            for child_key, child in list(self._artifacts.items()):
                if child.base_key == key:
                    self._artifacts[child_key] = replace(child, base_name=None)
                    logger.debug("Re-rooted kit %s after removing %s", child_key, key)
            logger.debug("Removed kit %s", key)
            return removed

    def refresh_usage(self, integrations: Iterable[Integration]) -> None:
        """Recompute every kit's ``used`` flag from live integrations."""
        used_keys = {integration.kit_key for integration in integrations}
        with self.mutation():
            for key, artifact in list(self._artifacts.items()):
                used = key in used_keys
                if artifact.used != used:
                    self._artifacts[key] = replace(artifact, used=used)

    def _check_acyclic(self) -> None:
        snapshot = GraphSnapshot(artifacts_by_key=self._artifacts)
        for key in self._artifacts:
            snapshot.chain_to_root(key)

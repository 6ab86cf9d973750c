"""Garbage collector entry points.

Both operations refresh kit usage from the live integrations, refuse to run
while a kit is still building, and hold the graph's mutation lock for their
whole duration so they never interleave with each other or with a build
recording its result. Readers on other threads see the graph as it was
before the operation until it finishes.
"""

import logging

from kitsmith.core.artifact_graph import ArtifactGraph, GraphSnapshot
from kitsmith.core.errors import GarbageCollectionBlocked, SquashIntegrityError
from kitsmith.core.gc.lineage import squash_chains
from kitsmith.core.gc.prune import apply_prune, plan_prune
from kitsmith.core.gc.squash import chain_consumers, flatten_chain, redeploy_consumers, swap_leaf
from kitsmith.core.gc.types import GcFailure, PruneResult, SquashChain, SquashResult
from kitsmith_shared.gateway.integrations.abc import IntegrationStore
from kitsmith_shared.gateway.registry.abc import ImageRegistry
from kitsmith_shared.gateway.registry.types import RegistryError

logger = logging.getLogger(__name__)


class GarbageCollector:
    def __init__(
        self,
        *,
        graph: ArtifactGraph,
        registry: ImageRegistry,
        integrations: IntegrationStore,
        namespace: str | None,
    ) -> None:
        self._graph = graph
        self._registry = registry
        self._integrations = integrations
        self._namespace = namespace

    def _prepare(self) -> GraphSnapshot:
        self._graph.refresh_usage(self._integrations.list_integrations(namespace=None))
        snapshot = self._graph.snapshot(self._namespace)
        building = [artifact.key for artifact in snapshot.artifacts() if artifact.phase == "Building"]
        if building:
            raise GarbageCollectionBlocked(
                "Cannot collect garbage while kits are building: " + ", ".join(building)
            )
        return snapshot

    def prune(self, *, dry_run: bool, keep_bases: bool) -> PruneResult:
        """Delete kits no integration depends on.

        Raises:
            GarbageCollectionBlocked: If any kit is still building
        """
        with self._graph.mutation():
            snapshot = self._prepare()
            plan = plan_prune(snapshot, keep_bases=keep_bases)
            logger.debug(
                "Prune plan: %d kits, %d images",
                len(plan.artifacts_to_delete),
                len(plan.images_to_delete),
            )
            if dry_run or plan.nothing_to_do:
                return plan
            return apply_prune(self._graph, self._registry, plan)

    def squash(self, *, dry_run: bool) -> SquashResult:
        """Flatten every squashable chain and redeploy its integrations.

        A chain that fails to flatten is reported and left untouched; its
        integrations keep running on the old image.

        Raises:
            GarbageCollectionBlocked: If any kit is still building
        """
        with self._graph.mutation():
            snapshot = self._prepare()
            integrations = self._integrations.list_integrations(namespace=self._namespace)
            chains = squash_chains(snapshot)
            logger.debug("Squash plan: %d chains", len(chains))

            if dry_run:
                return SquashResult(
                    chains=tuple(
                        SquashChain(members=tuple(member.key for member in chain), new_image=None)
                        for chain in chains
                    ),
                    redeployed=tuple(
                        consumer.key
                        for chain in chains
                        for consumer in chain_consumers(chain, integrations)
                    ),
                    failures=(),
                )

            results: list[SquashChain] = []
            redeployed: list[str] = []
            failures: list[GcFailure] = []
            for chain in chains:
                members = tuple(member.key for member in chain)
                try:
                    flattened = flatten_chain(self._registry, chain)
                except (RegistryError, SquashIntegrityError) as e:
                    logger.warning("Could not squash %s: %s", " -> ".join(members), e)
                    failures.append(GcFailure(target=members[0], reason=str(e)))
                    results.append(SquashChain(members=members, new_image=None))
                    continue

                squashed = swap_leaf(self._graph, chain, flattened.manifest.reference)
                redeployed.extend(
                    redeploy_consumers(
                        self._integrations, chain_consumers(chain, integrations), squashed
                    )
                )
                results.append(SquashChain(members=members, new_image=squashed.image))

                try:
                    self._registry.delete_image(image=flattened.replaced_image)
                except RegistryError as e:
                    logger.warning(
                        "Could not delete replaced image %s: %s", flattened.replaced_image, e
                    )
                    failures.append(GcFailure(target=flattened.replaced_image, reason=str(e)))

            return SquashResult(
                chains=tuple(results),
                redeployed=tuple(redeployed),
                failures=tuple(failures),
            )

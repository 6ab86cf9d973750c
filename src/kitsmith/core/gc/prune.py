"""Prune: delete kits (and their images) that nothing depends on."""

import logging

from kitsmith.core.artifact_graph import ArtifactGraph, GraphSnapshot
from kitsmith.core.errors import GraphConsistencyError
from kitsmith.core.gc.types import GcFailure, PruneResult
from kitsmith_shared.gateway.registry.abc import ImageRegistry
from kitsmith_shared.gateway.registry.types import RegistryError

logger = logging.getLogger(__name__)


def plan_prune(snapshot: GraphSnapshot, *, keep_bases: bool) -> PruneResult:
    """Kits and images that would be deleted, without touching anything.

    With ``keep_bases`` every ancestor of a used kit survives; without it
    only the used kits themselves do.
    """
    reachable = snapshot.reachable_from_used(include_bases=keep_bases)
    to_delete = tuple(
        artifact.key for artifact in snapshot.artifacts() if artifact.key not in reachable
    )
    retained_images = {
        artifact.image for artifact in snapshot.artifacts() if artifact.key in reachable
    }
    images: list[str] = []
    for key in to_delete:
        artifact = snapshot.artifacts_by_key[key]
        if not artifact.image or artifact.image in retained_images or artifact.image in images:
            continue
        images.append(artifact.image)
    return PruneResult(artifacts_to_delete=to_delete, images_to_delete=tuple(images), failures=())


def apply_prune(
    graph: ArtifactGraph,
    registry: ImageRegistry,
    plan: PruneResult,
) -> PruneResult:
    """Delete what ``plan`` lists, one kit at a time.

    The image goes first so a failed registry delete leaves the kit in the
    graph and the next prune retries it. An image already gone from the
    registry counts as deleted.
    """
    failures: list[GcFailure] = []
    deleted_images: set[str] = set()
    scheduled_images = set(plan.images_to_delete)
    for key in plan.artifacts_to_delete:
        artifact = graph.get(key)
        if artifact is None:
            continue
        image = artifact.image
        if image in scheduled_images and image not in deleted_images:
            try:
                if registry.image_exists(image=image):
                    registry.delete_image(image=image)
                deleted_images.add(image)
                logger.info("Deleted image %s", image)
            except RegistryError as e:
                logger.warning("Could not delete image %s of kit %s: %s", image, key, e)
                failures.append(GcFailure(target=key, reason=str(e)))
                continue
        try:
            graph.remove_artifact(key)
        except GraphConsistencyError as e:
            failures.append(GcFailure(target=key, reason=str(e)))
            continue
        logger.info("Deleted kit %s", key)
    return PruneResult(
        artifacts_to_delete=plan.artifacts_to_delete,
        images_to_delete=plan.images_to_delete,
        failures=tuple(failures),
    )

"""Squash: flatten straight lineages of kits into a single image.

For each chain (leaf first) the leaf kit keeps its name and fingerprint but
gets a new image in which every layer the chain contributed is merged into
one. The flattened image is written and read back before any integration is
pointed at it; the old leaf image is deleted last.
"""

import logging
from dataclasses import dataclass, replace

from kitsmith.core.artifact_graph import ArtifactGraph
from kitsmith.core.errors import SquashIntegrityError
from kitsmith.core.kit import Artifact
from kitsmith_shared.gateway.integrations.abc import IntegrationStore
from kitsmith_shared.gateway.integrations.types import Integration
from kitsmith_shared.gateway.registry.abc import ImageRegistry
from kitsmith_shared.gateway.registry.types import (
    HistoryEntry,
    ImageManifest,
    RegistryError,
    flatten_layers,
    parse_image_reference,
)

logger = logging.getLogger(__name__)

SQUASH_CREATED_BY = "kitsmith squash"


@dataclass(frozen=True)
class FlattenedImage:
    manifest: ImageManifest
    replaced_image: str


def chain_consumers(
    chain: tuple[Artifact, ...],
    integrations: list[Integration],
) -> list[Integration]:
    """Integrations running on any member of ``chain``."""
    keys = {member.key for member in chain}
    images = {member.image for member in chain if member.image}
    return [
        integration
        for integration in integrations
        if integration.kit_key in keys or integration.image in images
    ]


def check_base_integrity(base: ImageManifest, leaf: ImageManifest) -> None:
    """Verify ``leaf`` is layered on top of ``base``.

    Raises:
        SquashIntegrityError: If the base layers are not a prefix of the leaf's
    """
    if len(base.layers) > len(leaf.layers):
        raise SquashIntegrityError(
            f"image {leaf.reference} is not based on {base.reference} (too few layers)"
        )
    for index, (base_digest, leaf_digest) in enumerate(
        zip(base.layer_digests, leaf.layer_digests, strict=False)
    ):
        if base_digest != leaf_digest:
            raise SquashIntegrityError(
                f"image {leaf.reference} is not based on {base.reference} (layer {index} mismatch)"
            )


def flatten_chain(registry: ImageRegistry, chain: tuple[Artifact, ...]) -> FlattenedImage:
    """Write a flattened image for ``chain`` and verify it.

    Layers below the chain (the image the top member was built on, when the
    registry holds it) are kept as-is; everything above is merged.

    Raises:
        RegistryError: If a read, write or verification fails
        SquashIntegrityError: If the leaf image is not built on the chain's base
    """
    leaf = chain[0]
    top = chain[-1]
    leaf_manifest = registry.read_manifest(image=leaf.image)

    prefix_layers: tuple = ()
    prefix_history: tuple[HistoryEntry, ...] = ()
    if top.base_image and registry.image_exists(image=top.base_image):
        base_manifest = registry.read_manifest(image=top.base_image)
        check_base_integrity(base_manifest, leaf_manifest)
        prefix_layers = base_manifest.layers
        prefix_history = base_manifest.history[: len(base_manifest.layers)]

    squashed = flatten_layers(leaf_manifest.layers[len(prefix_layers) :])
    repository, _ = parse_image_reference(leaf.image)
    history = (
        *prefix_history,
        HistoryEntry(
            created_by=SQUASH_CREATED_BY,
            comment=f"Flattened image layers {top.digest} through {leaf.digest} into a single layer",
        ),
    )
    layers = (*prefix_layers, squashed)

    registry.write_layer(repository=repository, layer=squashed)
    written = registry.write_image(repository=repository, layers=layers, history=history)

    stored = registry.read_manifest(image=written.reference)
    if stored.digest != written.digest or stored.layer_digests != written.layer_digests:
        raise RegistryError(f"Flattened image {written.reference} failed verification")

    chain_images = {member.image for member in chain}
    if written.reference in chain_images:
        raise SquashIntegrityError(
            f"Flattened image {written.reference} reuses the reference of a chain member"
        )
    return FlattenedImage(manifest=written, replaced_image=leaf.image)


def swap_leaf(
    graph: ArtifactGraph,
    chain: tuple[Artifact, ...],
    new_image: str,
) -> Artifact:
    """Point the leaf kit at the flattened image and detach it from the chain.

    Children of the leaf are updated to record the new base image.
    """
    leaf = chain[0]
    top = chain[-1]
    with graph.mutation():
        current = graph.get(leaf.key)
        if current is None:
            raise SquashIntegrityError(f"Kit {leaf.key} disappeared during squash")
        squashed = replace(
            current,
            image=new_image,
            base_name=top.base_name,
            base_image=top.base_image,
        )
        graph.replace_artifact(squashed)
        for child in graph.children(leaf.key):
            graph.replace_artifact(replace(child, base_image=new_image))
    logger.info("Kit %s now uses flattened image %s", leaf.key, new_image)
    return squashed


def redeploy_consumers(
    integrations: IntegrationStore,
    consumers: list[Integration],
    squashed: Artifact,
) -> list[str]:
    redeployed: list[str] = []
    for integration in consumers:
        integrations.switch_kit(
            namespace=integration.namespace,
            name=integration.name,
            kit_name=squashed.name,
            image=squashed.image,
        )
        integrations.redeploy(namespace=integration.namespace, name=integration.name)
        logger.info("Redeployed integration %s on %s", integration.key, squashed.image)
        redeployed.append(integration.key)
    return redeployed

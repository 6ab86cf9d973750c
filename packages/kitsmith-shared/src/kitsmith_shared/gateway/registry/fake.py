"""In-memory fake image registry for testing."""

from collections.abc import Mapping, Sequence

from kitsmith_shared.gateway.registry.abc import ImageRegistry
from kitsmith_shared.gateway.registry.types import (
    HistoryEntry,
    ImageManifest,
    Layer,
    RegistryError,
    compute_manifest_digest,
    parse_image_reference,
)


class FakeImageRegistry(ImageRegistry):
    """In-memory registry.

    All state is provided via constructor using keyword arguments.
    Mutations are tracked so tests can assert on them.
    """

    def __init__(
        self,
        *,
        images: Sequence[ImageManifest] | None,
        failing_deletes: set[str] | None,
        fail_writes: bool,
    ) -> None:
        self._images: dict[str, ImageManifest] = {}
        for manifest in images if images is not None else []:
            self._images[manifest.reference] = manifest
        self._layers: dict[str, set[str]] = {}
        self._failing_deletes = failing_deletes if failing_deletes is not None else set()
        self._fail_writes = fail_writes
        self._deleted_images: list[str] = []
        self._written_images: list[str] = []
        self._written_layers: list[tuple[str, str]] = []

    @classmethod
    def empty(cls) -> "FakeImageRegistry":
        return cls(images=None, failing_deletes=None, fail_writes=False)

    def push_image(
        self,
        *,
        repository: str,
        layers: Sequence[Mapping[str, str]],
        created_by: str,
    ) -> ImageManifest:
        """Test helper that stores an image built from raw layer file maps."""
        built = tuple(Layer.from_files(files) for files in layers)
        history = tuple(HistoryEntry(created_by=created_by, comment="") for _ in built)
        manifest = ImageManifest(
            repository=repository,
            digest=compute_manifest_digest(built, history),
            layers=built,
            history=history,
        )
        self._images[manifest.reference] = manifest
        return manifest

    def image_exists(self, *, image: str) -> bool:
        return image in self._images

    def read_manifest(self, *, image: str) -> ImageManifest:
        parse_image_reference(image)
        manifest = self._images.get(image)
        if manifest is None:
            raise RegistryError(f"Image not found: {image}")
        return manifest

    def write_layer(self, *, repository: str, layer: Layer) -> None:
        if self._fail_writes:
            raise RegistryError(f"Cannot write layer {layer.digest} to {repository}")
        self._layers.setdefault(repository, set()).add(layer.digest)
        self._written_layers.append((repository, layer.digest))

    def write_image(
        self,
        *,
        repository: str,
        layers: tuple[Layer, ...],
        history: tuple[HistoryEntry, ...],
    ) -> ImageManifest:
        if self._fail_writes:
            raise RegistryError(f"Cannot write image to {repository}")
        manifest = ImageManifest(
            repository=repository,
            digest=compute_manifest_digest(layers, history),
            layers=layers,
            history=history,
        )
        self._images[manifest.reference] = manifest
        self._written_images.append(manifest.reference)
        return manifest

    def delete_image(self, *, image: str) -> None:
        if image in self._failing_deletes:
            raise RegistryError(f"Cannot delete image {image}")
        if image not in self._images:
            raise RegistryError(f"Image not found: {image}")
        del self._images[image]
        self._deleted_images.append(image)

    @property
    def images(self) -> dict[str, ImageManifest]:
        return dict(self._images)

    @property
    def deleted_images(self) -> list[str]:
        return list(self._deleted_images)

    @property
    def written_images(self) -> list[str]:
        return list(self._written_images)

    @property
    def written_layers(self) -> list[tuple[str, str]]:
        return list(self._written_layers)

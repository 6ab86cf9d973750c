from abc import ABC, abstractmethod

from kitsmith_shared.gateway.registry.types import HistoryEntry, ImageManifest, Layer


class ImageRegistry(ABC):
    """Abstract container image registry.

    Only the operations garbage collection needs are exposed: reading a
    manifest, writing layers and images, and deleting images. Every failure
    surfaces as RegistryError.
    """

    @abstractmethod
    def image_exists(self, *, image: str) -> bool: ...

    @abstractmethod
    def read_manifest(self, *, image: str) -> ImageManifest:
        """Read an image manifest by digest-pinned reference.

        Raises:
            RegistryError: If the image cannot be read or does not exist
        """
        ...

    @abstractmethod
    def write_layer(self, *, repository: str, layer: Layer) -> None: ...

    @abstractmethod
    def write_image(
        self,
        *,
        repository: str,
        layers: tuple[Layer, ...],
        history: tuple[HistoryEntry, ...],
    ) -> ImageManifest:
        """Write a manifest referencing already-written layers.

        Returns:
            The stored manifest, whose digest is computed from its content
        """
        ...

    @abstractmethod
    def delete_image(self, *, image: str) -> None: ...

"""Printing image registry wrapper for verbose output."""

from kitsmith_shared.gateway.registry.abc import ImageRegistry
from kitsmith_shared.gateway.registry.types import HistoryEntry, ImageManifest, Layer
from kitsmith_shared.printing.base import PrintingBase


class PrintingImageRegistry(PrintingBase, ImageRegistry):
    """Prints registry mutations, then delegates to the wrapped registry."""

    _wrapped: ImageRegistry

    def image_exists(self, *, image: str) -> bool:
        return self._wrapped.image_exists(image=image)

    def read_manifest(self, *, image: str) -> ImageManifest:
        return self._wrapped.read_manifest(image=image)

    def write_layer(self, *, repository: str, layer: Layer) -> None:
        self._emit(self._format_command(f"write layer {layer.digest[:19]} -> {repository}"))
        self._wrapped.write_layer(repository=repository, layer=layer)

    def write_image(
        self,
        *,
        repository: str,
        layers: tuple[Layer, ...],
        history: tuple[HistoryEntry, ...],
    ) -> ImageManifest:
        manifest = self._wrapped.write_image(repository=repository, layers=layers, history=history)
        self._emit(self._format_command(f"write image {manifest.reference}"))
        return manifest

    def delete_image(self, *, image: str) -> None:
        self._emit(self._format_command(f"delete image {image}"))
        self._wrapped.delete_image(image=image)

"""Filesystem-backed image registry.

Stores one JSON document per layer blob and per manifest:

    <root>/<repository>/blobs/<hex>.json
    <root>/<repository>/manifests/<hex>.json

Manifests reference layers by digest; layer content is loaded from the
repository's blobs when a manifest is read.
"""

import json
from pathlib import Path

from kitsmith_shared.gateway.registry.abc import ImageRegistry
from kitsmith_shared.gateway.registry.types import (
    HistoryEntry,
    ImageManifest,
    Layer,
    RegistryError,
    compute_layer_digest,
    compute_manifest_digest,
    parse_image_reference,
)


def _hex(digest: str) -> str:
    return digest.removeprefix("sha256:")


class FilesystemImageRegistry(ImageRegistry):
    def __init__(self, root: Path) -> None:
        self._root = root

    def _repository_dir(self, repository: str) -> Path:
        parts = [part.replace(":", "_") for part in repository.split("/") if part]
        if not parts or any(part in (".", "..") for part in parts):
            raise RegistryError(f"Invalid repository name: {repository}")
        return self._root.joinpath(*parts)

    def _manifest_path(self, image: str) -> Path:
        repository, digest = parse_image_reference(image)
        return self._repository_dir(repository) / "manifests" / f"{_hex(digest)}.json"

    def image_exists(self, *, image: str) -> bool:
        return self._manifest_path(image).exists()

    def read_manifest(self, *, image: str) -> ImageManifest:
        manifest_path = self._manifest_path(image)
        if not manifest_path.exists():
            raise RegistryError(f"Image not found: {image}")
        repository, digest = parse_image_reference(image)
        try:
            data = json.loads(manifest_path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise RegistryError(f"Cannot read manifest for {image}: {e}") from e

        blobs_dir = self._repository_dir(repository) / "blobs"
        layers: list[Layer] = []
        for layer_digest in data["layers"]:
            blob_path = blobs_dir / f"{_hex(layer_digest)}.json"
            if not blob_path.exists():
                raise RegistryError(f"Layer {layer_digest} of {image} is missing")
            files = tuple((str(p), str(c)) for p, c in json.loads(blob_path.read_text("utf-8")))
            layers.append(Layer(digest=layer_digest, files=files))

        history = tuple(
            HistoryEntry(created_by=entry["created_by"], comment=entry["comment"])
            for entry in data.get("history", [])
        )
        return ImageManifest(
            repository=repository,
            digest=digest,
            layers=tuple(layers),
            history=history,
        )

    def write_layer(self, *, repository: str, layer: Layer) -> None:
        if compute_layer_digest(layer.files) != layer.digest:
            raise RegistryError(f"Layer content does not match digest {layer.digest}")
        blobs_dir = self._repository_dir(repository) / "blobs"
        try:
            blobs_dir.mkdir(parents=True, exist_ok=True)
            blob_path = blobs_dir / f"{_hex(layer.digest)}.json"
            blob_path.write_text(json.dumps([list(f) for f in layer.files]), encoding="utf-8")
        except OSError as e:
            raise RegistryError(f"Cannot write layer {layer.digest}: {e}") from e

    def write_image(
        self,
        *,
        repository: str,
        layers: tuple[Layer, ...],
        history: tuple[HistoryEntry, ...],
    ) -> ImageManifest:
        blobs_dir = self._repository_dir(repository) / "blobs"
        for layer in layers:
            if not (blobs_dir / f"{_hex(layer.digest)}.json").exists():
                self.write_layer(repository=repository, layer=layer)

        manifest = ImageManifest(
            repository=repository,
            digest=compute_manifest_digest(layers, history),
            layers=layers,
            history=history,
        )
        data = {
            "layers": list(manifest.layer_digests),
            "history": [{"created_by": h.created_by, "comment": h.comment} for h in history],
        }
        manifests_dir = self._repository_dir(repository) / "manifests"
        try:
            manifests_dir.mkdir(parents=True, exist_ok=True)
            path = manifests_dir / f"{_hex(manifest.digest)}.json"
            path.write_text(json.dumps(data, indent=2), encoding="utf-8")
        except OSError as e:
            raise RegistryError(f"Cannot write image {manifest.reference}: {e}") from e
        return manifest

    def delete_image(self, *, image: str) -> None:
        manifest_path = self._manifest_path(image)
        if not manifest_path.exists():
            raise RegistryError(f"Image not found: {image}")
        try:
            manifest_path.unlink()
        except OSError as e:
            raise RegistryError(f"Cannot delete image {image}: {e}") from e

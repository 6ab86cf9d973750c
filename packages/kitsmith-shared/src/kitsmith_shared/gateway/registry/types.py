"""Data types for image registry operations.

Images are modelled as an ordered tuple of layers. Each layer maps file
paths to contents; applying layers in order (base first) yields the image
filesystem, so later layers override files from earlier ones.
"""

import hashlib
import json
from collections.abc import Iterable, Mapping
from dataclasses import dataclass


class RegistryError(Exception):
    """Raised when a registry read, write or delete fails."""


@dataclass(frozen=True)
class Layer:
    """A single image layer.

    Attributes:
        digest: Content digest in "sha256:<hex>" form
        files: Sorted (path, content) pairs carried by this layer
    """

    digest: str
    files: tuple[tuple[str, str], ...]

    @staticmethod
    def from_files(files: Mapping[str, str]) -> "Layer":
        entries = tuple(sorted(files.items()))
        return Layer(digest=compute_layer_digest(entries), files=entries)


@dataclass(frozen=True)
class HistoryEntry:
    created_by: str
    comment: str


@dataclass(frozen=True)
class ImageManifest:
    """An image stored in a registry repository."""

    repository: str
    digest: str
    layers: tuple[Layer, ...]
    history: tuple[HistoryEntry, ...]

    @property
    def reference(self) -> str:
        return f"{self.repository}@{self.digest}"

    @property
    def layer_digests(self) -> tuple[str, ...]:
        return tuple(layer.digest for layer in self.layers)


def compute_layer_digest(files: Iterable[tuple[str, str]]) -> str:
    payload = json.dumps([list(entry) for entry in files], separators=(",", ":"))
    return "sha256:" + hashlib.sha256(payload.encode("utf-8")).hexdigest()


def compute_manifest_digest(
    layers: Iterable[Layer],
    history: Iterable[HistoryEntry],
) -> str:
    payload = json.dumps(
        {
            "layers": [layer.digest for layer in layers],
            "history": [[entry.created_by, entry.comment] for entry in history],
        },
        separators=(",", ":"),
        sort_keys=True,
    )
    return "sha256:" + hashlib.sha256(payload.encode("utf-8")).hexdigest()


def parse_image_reference(image: str) -> tuple[str, str]:
    """Split "repository@sha256:..." into (repository, digest).

    Raises:
        RegistryError: If the reference is not digest-pinned
    """
    repository, sep, digest = image.rpartition("@")
    if not sep or not repository or not digest.startswith("sha256:"):
        raise RegistryError(f"Image reference is not pinned by digest: {image}")
    return repository, digest


def flatten_layers(layers: Iterable[Layer]) -> Layer:
    """Merge layers into one, applying them in order.

    A path present in several layers takes the content of the last one.
    """
    merged: dict[str, str] = {}
    for layer in layers:
        for path, content in layer.files:
            merged[path] = content
    return Layer.from_files(merged)

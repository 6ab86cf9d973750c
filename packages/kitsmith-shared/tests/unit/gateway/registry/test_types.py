"""Tests for registry data types."""

import pytest

from kitsmith_shared.gateway.registry.types import (
    HistoryEntry,
    Layer,
    RegistryError,
    compute_manifest_digest,
    flatten_layers,
    parse_image_reference,
)


def test_layer_digest_ignores_file_order() -> None:
    """The layer digest does not depend on file order."""
    first = Layer.from_files({"/a": "1", "/b": "2"})
    second = Layer.from_files({"/b": "2", "/a": "1"})

    assert first == second
    assert first.digest.startswith("sha256:")


def test_layer_digest_depends_on_content() -> None:
    """Different file content gives a different layer digest."""
    assert Layer.from_files({"/a": "1"}).digest != Layer.from_files({"/a": "2"}).digest


def test_manifest_digest_depends_on_history() -> None:
    """The manifest digest covers the history entries."""
    layers = (Layer.from_files({"/a": "1"}),)

    plain = compute_manifest_digest(layers, (HistoryEntry(created_by="x", comment=""),))
    commented = compute_manifest_digest(layers, (HistoryEntry(created_by="x", comment="c"),))

    assert plain != commented


def test_flatten_applies_layers_in_order() -> None:
    """Later layers override files from earlier ones."""
    merged = flatten_layers(
        [
            Layer.from_files({"/etc/conf": "base", "/lib/a.jar": "a"}),
            Layer.from_files({"/etc/conf": "override", "/lib/b.jar": "b"}),
        ]
    )

    assert dict(merged.files) == {"/etc/conf": "override", "/lib/a.jar": "a", "/lib/b.jar": "b"}


def test_parse_image_reference() -> None:
    """A pinned reference splits into repository and digest."""
    assert parse_image_reference("registry.test/ns/kit@sha256:abc") == (
        "registry.test/ns/kit",
        "sha256:abc",
    )


@pytest.mark.parametrize(
    "image",
    ["registry.test/ns/kit:latest", "@sha256:abc", "registry.test/kit@md5:abc"],
)
def test_parse_rejects_unpinned_references(image: str) -> None:
    """References without a digest are rejected."""
    with pytest.raises(RegistryError, match="not pinned by digest"):
        parse_image_reference(image)

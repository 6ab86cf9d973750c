"""Catalog inspector reading catalogs.toml.

    [catalogs."3.2.0"]
    builder_image = "registry.local/builders/runtime-3.2.0:latest"

    [catalogs."1.15.0"]
    builder_image = ""
"""

import tomllib
from pathlib import Path

from kitsmith_shared.gateway.catalog.abc import BuilderImageStatus, CatalogInspector


class TomlCatalogInspector(CatalogInspector):
    def __init__(self, path: Path) -> None:
        self._path = path

    def builder_image_status(self, *, runtime_version: str) -> BuilderImageStatus:
        if not self._path.exists():
            return BuilderImageStatus(
                available=False,
                message=f"no catalogs defined ({self._path} does not exist)",
            )
        with self._path.open("rb") as f:
            data = tomllib.load(f)

        catalog = data.get("catalogs", {}).get(runtime_version)
        if catalog is None:
            return BuilderImageStatus(
                available=False,
                message=f"catalog {runtime_version} not found",
            )
        builder_image = str(catalog.get("builder_image", ""))
        if not builder_image:
            return BuilderImageStatus(
                available=False,
                message="missing base image, likely catalog is not compatible with this version",
            )
        return BuilderImageStatus(available=True, message=builder_image)

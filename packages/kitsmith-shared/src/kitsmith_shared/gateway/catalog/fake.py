from kitsmith_shared.gateway.catalog.abc import BuilderImageStatus, CatalogInspector


class FakeCatalogInspector(CatalogInspector):
    """Catalog inspector backed by a version -> status mapping.

    Versions missing from the mapping are reported as unavailable.
    """

    def __init__(self, *, statuses: dict[str, BuilderImageStatus] | None) -> None:
        self._statuses = dict(statuses) if statuses is not None else {}
        self._inspected: list[str] = []

    @classmethod
    def compatible(cls, *versions: str) -> "FakeCatalogInspector":
        return cls(
            statuses={
                version: BuilderImageStatus(available=True, message=f"builder:{version}")
                for version in versions
            }
        )

    def builder_image_status(self, *, runtime_version: str) -> BuilderImageStatus:
        self._inspected.append(runtime_version)
        status = self._statuses.get(runtime_version)
        if status is None:
            return BuilderImageStatus(
                available=False,
                message=f"catalog {runtime_version} not found",
            )
        return status

    def set_status(self, runtime_version: str, status: BuilderImageStatus) -> None:
        self._statuses[runtime_version] = status

    @property
    def inspected(self) -> list[str]:
        return list(self._inspected)

"""Kit (artifact) data model."""

from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Literal

KitPhase = Literal["Building", "Ready", "Error"]

# "platform" kits are produced by the scheduler, "external" kits are
# registered by hand with `kit create`.
KitType = Literal["platform", "external"]


def kit_key(namespace: str, name: str) -> str:
    return f"{namespace}/{name}"


@dataclass(frozen=True)
class Artifact:
    """A built, reusable kit image plus its provenance.

    Attributes:
        namespace: Namespace the kit lives in
        name: Kit name, unique within the namespace
        dependencies: Resolved dependency identifiers baked into the image
        build_properties: Sorted (key, value) build-time properties
        runtime_version: Runtime catalog version the kit was built against
        version: Version of kitsmith that produced the kit
        fingerprint: Deterministic digest of dependencies, properties and runtime
        base_name: Name of the kit this one was layered on, None for roots
        base_image: Image this one was layered on (may be a non-kit image)
        image: Digest-pinned image reference
        used: True iff a live integration runs on this kit (derived)
        phase: Building, Ready or Error
        priority: Higher wins when several kits are equally good bases
        kit_type: platform or external
        created_at: When the kit was recorded
    """

    namespace: str
    name: str
    dependencies: frozenset[str]
    build_properties: tuple[tuple[str, str], ...]
    runtime_version: str
    version: str
    fingerprint: str
    base_name: str | None
    base_image: str | None
    image: str
    used: bool
    phase: KitPhase
    priority: int
    kit_type: KitType
    created_at: datetime

    @property
    def key(self) -> str:
        return kit_key(self.namespace, self.name)

    @property
    def base_key(self) -> str | None:
        if self.base_name is None:
            return None
        return kit_key(self.namespace, self.base_name)

    @property
    def digest(self) -> str:
        """Digest part of the image reference, empty if the image is not pinned."""
        _, sep, digest = self.image.rpartition("@")
        return digest if sep else ""

    @staticmethod
    def test(
        name: str,
        *,
        namespace: str = "default",
        base_name: str | None = None,
        base_image: str | None = None,
        image: str | None = None,
        used: bool = False,
        dependencies: frozenset[str] = frozenset(),
        build_properties: tuple[tuple[str, str], ...] = (),
        runtime_version: str = "3.2.0",
        version: str = "0.1.0",
        fingerprint: str | None = None,
        phase: KitPhase = "Ready",
        priority: int = 0,
        kit_type: KitType = "platform",
        created_at: datetime | None = None,
    ) -> "Artifact":
        """Create an Artifact with sensible test defaults."""
        return Artifact(
            namespace=namespace,
            name=name,
            dependencies=dependencies,
            build_properties=build_properties,
            runtime_version=runtime_version,
            version=version,
            fingerprint=fingerprint if fingerprint is not None else f"fp-{name}",
            base_name=base_name,
            base_image=base_image,
            image=image if image is not None else f"registry.test/{namespace}/{name}@sha256:{name}",
            used=used,
            phase=phase,
            priority=priority,
            kit_type=kit_type,
            created_at=(
                created_at if created_at is not None else datetime(2024, 1, 1, tzinfo=UTC)
            ),
        )

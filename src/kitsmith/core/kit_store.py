"""Persistence of kits.

Kits are stored in .kitsmith/kits.toml:

    [[kits]]
    namespace = "default"
    name = "kit-abc"
    dependencies = ["camel:http", "mvn:org.acme:lib:1.0"]
    build_properties = { "quarkus.native" = "false" }
    runtime_version = "3.2.0"
    version = "0.1.0"
    fingerprint = "sha256:..."
    base_name = "kit-root"
    base_image = "registry.local/default/kit-root@sha256:..."
    image = "registry.local/default/kit-abc@sha256:..."
    phase = "Ready"
    priority = 0
    kit_type = "platform"
    created_at = 2024-01-15T14:30:00Z

The ``used`` flag is never persisted; it is derived from integrations.
"""

import tomllib
from abc import ABC, abstractmethod
from collections.abc import Sequence
from pathlib import Path

import tomli_w

from kitsmith.core.kit import Artifact

KITS_FILE_NAME = "kits.toml"


class KitStore(ABC):
    @abstractmethod
    def load_kits(self) -> list[Artifact]: ...

    @abstractmethod
    def save_kits(self, kits: Sequence[Artifact]) -> None: ...


def _kit_to_dict(kit: Artifact) -> dict[str, object]:
    data: dict[str, object] = {
        "namespace": kit.namespace,
        "name": kit.name,
        "dependencies": sorted(kit.dependencies),
        "build_properties": dict(kit.build_properties),
        "runtime_version": kit.runtime_version,
        "version": kit.version,
        "fingerprint": kit.fingerprint,
        "image": kit.image,
        "phase": kit.phase,
        "priority": kit.priority,
        "kit_type": kit.kit_type,
        "created_at": kit.created_at,
    }
    # TOML has no null; absent keys mean None.
    if kit.base_name is not None:
        data["base_name"] = kit.base_name
    if kit.base_image is not None:
        data["base_image"] = kit.base_image
    return data


def _kit_from_dict(data: dict) -> Artifact:
    return Artifact(
        namespace=str(data["namespace"]),
        name=str(data["name"]),
        dependencies=frozenset(str(dep) for dep in data.get("dependencies", [])),
        build_properties=tuple(
            sorted((str(k), str(v)) for k, v in data.get("build_properties", {}).items())
        ),
        runtime_version=str(data["runtime_version"]),
        version=str(data["version"]),
        fingerprint=str(data["fingerprint"]),
        base_name=data.get("base_name"),
        base_image=data.get("base_image"),
        image=str(data.get("image", "")),
        used=False,
        phase=data.get("phase", "Ready"),
        priority=int(data.get("priority", 0)),
        kit_type=data.get("kit_type", "platform"),
        created_at=data["created_at"],
    )


class TomlKitStore(KitStore):
    def __init__(self, path: Path) -> None:
        self._path = path

    def load_kits(self) -> list[Artifact]:
        if not self._path.exists():
            return []
        with self._path.open("rb") as f:
            data = tomllib.load(f)
        return [_kit_from_dict(entry) for entry in data.get("kits", [])]

    def save_kits(self, kits: Sequence[Artifact]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        ordered = sorted(kits, key=lambda kit: kit.key)
        with self._path.open("wb") as f:
            tomli_w.dump({"kits": [_kit_to_dict(kit) for kit in ordered]}, f)


class FakeKitStore(KitStore):
    """In-memory kit store that records every save."""

    def __init__(self, kits: Sequence[Artifact] | None = None) -> None:
        self._kits = list(kits) if kits is not None else []
        self._save_count = 0

    def load_kits(self) -> list[Artifact]:
        return list(self._kits)

    def save_kits(self, kits: Sequence[Artifact]) -> None:
        self._kits = list(kits)
        self._save_count += 1

    @property
    def kits(self) -> list[Artifact]:
        return list(self._kits)

    @property
    def save_count(self) -> int:
        return self._save_count

"""TOML-file backed integration store.

File layout (integrations.toml):

    [[integrations]]
    namespace = "default"
    name = "my-route"
    kit_name = "kit-abc"
    image = "registry.local/default/kit-abc@sha256:..."
    deploy_generation = 3
"""

import tomllib
from dataclasses import replace
from pathlib import Path

import tomli_w

from kitsmith_shared.gateway.integrations.abc import IntegrationStore
from kitsmith_shared.gateway.integrations.types import Integration


class TomlIntegrationStore(IntegrationStore):
    def __init__(self, path: Path) -> None:
        self._path = path

    def _load(self) -> list[Integration]:
        if not self._path.exists():
            return []
        with self._path.open("rb") as f:
            data = tomllib.load(f)
        return [
            Integration(
                namespace=str(entry["namespace"]),
                name=str(entry["name"]),
                kit_name=str(entry["kit_name"]),
                image=str(entry.get("image", "")),
                deploy_generation=int(entry.get("deploy_generation", 0)),
            )
            for entry in data.get("integrations", [])
        ]

    def _save(self, integrations: list[Integration]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        data = {
            "integrations": [
                {
                    "namespace": i.namespace,
                    "name": i.name,
                    "kit_name": i.kit_name,
                    "image": i.image,
                    "deploy_generation": i.deploy_generation,
                }
                for i in integrations
            ]
        }
        with self._path.open("wb") as f:
            tomli_w.dump(data, f)

    def _update(self, namespace: str, name: str, **changes: object) -> None:
        integrations = self._load()
        updated: list[Integration] = []
        found = False
        for integration in integrations:
            if integration.namespace == namespace and integration.name == name:
                integration = replace(integration, **changes)
                found = True
            updated.append(integration)
        if not found:
            raise KeyError(f"Integration not found: {namespace}/{name}")
        self._save(updated)

    def list_integrations(self, *, namespace: str | None) -> list[Integration]:
        return [i for i in self._load() if namespace is None or i.namespace == namespace]

    def switch_kit(self, *, namespace: str, name: str, kit_name: str, image: str) -> None:
        self._update(namespace, name, kit_name=kit_name, image=image)

    def redeploy(self, *, namespace: str, name: str) -> None:
        current = next(
            (i for i in self._load() if i.namespace == namespace and i.name == name),
            None,
        )
        if current is None:
            raise KeyError(f"Integration not found: {namespace}/{name}")
        self._update(namespace, name, deploy_generation=current.deploy_generation + 1)

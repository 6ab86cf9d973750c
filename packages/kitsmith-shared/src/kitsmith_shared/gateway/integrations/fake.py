"""In-memory fake integration store for testing."""

from collections.abc import Sequence
from dataclasses import dataclass, replace

from kitsmith_shared.gateway.integrations.abc import IntegrationStore
from kitsmith_shared.gateway.integrations.types import Integration


@dataclass(frozen=True)
class SwitchCall:
    namespace: str
    name: str
    kit_name: str
    image: str


class FakeIntegrationStore(IntegrationStore):
    def __init__(self, *, integrations: Sequence[Integration] | None) -> None:
        self._integrations: dict[str, Integration] = {}
        for integration in integrations if integrations is not None else []:
            self._integrations[integration.key] = integration
        self._switch_calls: list[SwitchCall] = []
        self._redeployed: list[str] = []

    def list_integrations(self, *, namespace: str | None) -> list[Integration]:
        return [
            integration
            for integration in self._integrations.values()
            if namespace is None or integration.namespace == namespace
        ]

    def switch_kit(self, *, namespace: str, name: str, kit_name: str, image: str) -> None:
        key = f"{namespace}/{name}"
        current = self._integrations[key]
        self._integrations[key] = replace(current, kit_name=kit_name, image=image)
        self._switch_calls.append(
            SwitchCall(namespace=namespace, name=name, kit_name=kit_name, image=image)
        )

    def redeploy(self, *, namespace: str, name: str) -> None:
        key = f"{namespace}/{name}"
        current = self._integrations[key]
        self._integrations[key] = replace(
            current, deploy_generation=current.deploy_generation + 1
        )
        self._redeployed.append(key)

    def get(self, key: str) -> Integration:
        return self._integrations[key]

    @property
    def switch_calls(self) -> list[SwitchCall]:
        return list(self._switch_calls)

    @property
    def redeployed(self) -> list[str]:
        return list(self._redeployed)

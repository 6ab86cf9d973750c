from abc import ABC, abstractmethod

from kitsmith_shared.gateway.integrations.types import Integration


class IntegrationStore(ABC):
    @abstractmethod
    def list_integrations(self, *, namespace: str | None) -> list[Integration]:
        """List integrations, optionally restricted to one namespace."""
        ...

    @abstractmethod
    def switch_kit(self, *, namespace: str, name: str, kit_name: str, image: str) -> None:
        """Point an integration at a kit and image without restarting it."""
        ...

    @abstractmethod
    def redeploy(self, *, namespace: str, name: str) -> None:
        """Trigger a controlled restart so the integration picks up its image."""
        ...

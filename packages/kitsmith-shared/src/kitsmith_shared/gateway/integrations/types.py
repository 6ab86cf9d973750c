from dataclasses import dataclass


@dataclass(frozen=True)
class Integration:
    """A live consumer of a kit.

    Attributes:
        namespace: Namespace of the integration
        name: Integration name
        kit_name: Name of the kit (same namespace) the integration runs on
        image: Image the integration is currently deployed with
        deploy_generation: Incremented on every redeploy
    """

    namespace: str
    name: str
    kit_name: str
    image: str
    deploy_generation: int

    @property
    def key(self) -> str:
        return f"{self.namespace}/{self.name}"

    @property
    def kit_key(self) -> str:
        return f"{self.namespace}/{self.kit_name}"

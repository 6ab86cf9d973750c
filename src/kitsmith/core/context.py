"""Application context with dependency injection."""

from dataclasses import dataclass
from pathlib import Path

from kitsmith.core.artifact_graph import ArtifactGraph
from kitsmith.core.kit_store import KITS_FILE_NAME, KitStore, TomlKitStore
from kitsmith.core.platform_config import CONFIG_DIR_NAME, PlatformConfig, load_platform_config
from kitsmith_shared.gateway.build_executor.abc import BuildExecutor
from kitsmith_shared.gateway.build_executor.real import SubprocessBuildExecutor
from kitsmith_shared.gateway.catalog.abc import CatalogInspector
from kitsmith_shared.gateway.catalog.real import TomlCatalogInspector
from kitsmith_shared.gateway.integrations.abc import IntegrationStore
from kitsmith_shared.gateway.integrations.real import TomlIntegrationStore
from kitsmith_shared.gateway.registry.abc import ImageRegistry
from kitsmith_shared.gateway.registry.printing import PrintingImageRegistry
from kitsmith_shared.gateway.registry.real import FilesystemImageRegistry
from kitsmith_shared.gateway.time.abc import Time
from kitsmith_shared.gateway.time.real import RealTime


@dataclass(frozen=True)
class KitsmithContext:
    """Immutable context holding all dependencies for kitsmith operations.

    Created at the CLI entry point and threaded through every command.
    """

    kit_store: KitStore
    integrations: IntegrationStore
    registry: ImageRegistry
    catalog: CatalogInspector
    executor: BuildExecutor
    time: Time
    platform_config: PlatformConfig
    root: Path

    def load_graph(self) -> ArtifactGraph:
        return ArtifactGraph(self.kit_store.load_kits())

    def save_graph(self, graph: ArtifactGraph) -> None:
        self.kit_store.save_kits(graph.artifacts())

    @staticmethod
    def for_test(
        kit_store: KitStore | None = None,
        integrations: IntegrationStore | None = None,
        registry: ImageRegistry | None = None,
        catalog: CatalogInspector | None = None,
        executor: BuildExecutor | None = None,
        time: Time | None = None,
        platform_config: PlatformConfig | None = None,
        root: Path | None = None,
    ) -> "KitsmithContext":
        """Create a context with fakes for every dependency not given."""
        from kitsmith.core.kit_store import FakeKitStore
        from kitsmith_shared.gateway.build_executor.fake import FakeBuildExecutor
        from kitsmith_shared.gateway.catalog.fake import FakeCatalogInspector
        from kitsmith_shared.gateway.integrations.fake import FakeIntegrationStore
        from kitsmith_shared.gateway.registry.fake import FakeImageRegistry
        from kitsmith_shared.gateway.time.fake import FakeTime

        return KitsmithContext(
            kit_store=kit_store if kit_store is not None else FakeKitStore(),
            integrations=(
                integrations
                if integrations is not None
                else FakeIntegrationStore(integrations=None)
            ),
            registry=registry if registry is not None else FakeImageRegistry.empty(),
            catalog=catalog if catalog is not None else FakeCatalogInspector(statuses=None),
            executor=executor if executor is not None else FakeBuildExecutor.succeeding(),
            time=time if time is not None else FakeTime(),
            platform_config=platform_config if platform_config is not None else PlatformConfig(),
            root=root if root is not None else Path("/test/platform"),
        )


def create_context(*, root: Path, verbose: bool = False) -> KitsmithContext:
    """Create the production context rooted at ``root``.

    State lives under ``root/.kitsmith``. With ``verbose`` every registry
    mutation is announced before it runs.

    Raises:
        PlatformConfigError: If .kitsmith/platform.toml is invalid
    """
    state_dir = root / CONFIG_DIR_NAME
    platform_config = load_platform_config(root)

    kit_store: KitStore = TomlKitStore(state_dir / KITS_FILE_NAME)
    integrations: IntegrationStore = TomlIntegrationStore(state_dir / "integrations.toml")
    registry: ImageRegistry = FilesystemImageRegistry(state_dir / "registry")
    if verbose:
        registry = PrintingImageRegistry(registry)

    return KitsmithContext(
        kit_store=kit_store,
        integrations=integrations,
        registry=registry,
        catalog=TomlCatalogInspector(state_dir / "catalogs.toml"),
        executor=SubprocessBuildExecutor(
            command=list(platform_config.builder_command),
            work_dir=state_dir / "builds",
        ),
        time=RealTime(),
        platform_config=platform_config,
        root=root,
    )

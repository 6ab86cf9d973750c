"""Tests for the garbage collector entry points."""

from dataclasses import replace

import pytest

from kitsmith.core.artifact_graph import ArtifactGraph
from kitsmith.core.errors import GarbageCollectionBlocked
from kitsmith.core.gc.collector import GarbageCollector
from kitsmith.core.kit import Artifact
from kitsmith_shared.gateway.integrations.fake import FakeIntegrationStore
from kitsmith_shared.gateway.registry.fake import FakeImageRegistry
from tests.test_utils.kit_trees import KitTree, build_kit_tree

FULL_TREE = "a(f)b(f)e(f)|f(f)k(t)|||c(t)|d(f)g(t)|h(f)|i(f)|j(t)|||"


def _collector(
    tree: KitTree,
    graph: ArtifactGraph,
    integrations: FakeIntegrationStore,
    *,
    registry: FakeImageRegistry | None = None,
    namespace: str | None = None,
) -> GarbageCollector:
    return GarbageCollector(
        graph=graph,
        registry=registry if registry is not None else tree.registry,
        integrations=integrations,
        namespace=namespace,
    )


def test_prune_refuses_to_run_while_a_kit_is_building() -> None:
    """Prune is blocked while a kit is building."""
    tree = build_kit_tree("a(f)b(t)")
    graph = tree.graph()
    graph.add_artifact(Artifact.test("pending", image="", phase="Building"))

    with pytest.raises(GarbageCollectionBlocked, match="default/pending"):
        _collector(tree, graph, tree.integration_store()).prune(dry_run=False, keep_bases=True)
    assert len(graph.artifacts()) == 3


def test_squash_refuses_to_run_while_a_kit_is_building() -> None:
    """Squash is blocked while a kit is building."""
    tree = build_kit_tree("a(f)b(t)")
    graph = tree.graph()
    graph.add_artifact(Artifact.test("pending", image="", phase="Building"))

    with pytest.raises(GarbageCollectionBlocked):
        _collector(tree, graph, tree.integration_store()).squash(dry_run=False)


def test_usage_is_refreshed_from_integrations() -> None:
    """Usage is recomputed from integrations before planning."""
    tree = build_kit_tree("a(f)b(t)c(f)")
    graph = tree.graph()
    moved = replace(tree.integrations[0], kit_name="c", image=tree.artifact("c").image)
    integrations = FakeIntegrationStore(integrations=[moved])

    result = _collector(tree, graph, integrations).prune(dry_run=True, keep_bases=False)

    assert set(result.artifacts_to_delete) == {"default/a", "default/b"}
    leaf = graph.get("default/c")
    assert leaf is not None
    assert leaf.used


def test_prune_dry_run_changes_nothing() -> None:
    """A dry-run prune reports the plan without deleting anything."""
    tree = build_kit_tree(FULL_TREE)
    graph = tree.graph()

    result = _collector(tree, graph, tree.integration_store()).prune(
        dry_run=True, keep_bases=False
    )

    assert len(result.artifacts_to_delete) == 7
    assert len(graph.artifacts()) == len(tree.artifacts)
    assert tree.registry.deleted_images == []


def test_prune_applies_plan() -> None:
    """A real prune leaves only used kits when bases are not kept."""
    tree = build_kit_tree(FULL_TREE)
    graph = tree.graph()

    result = _collector(tree, graph, tree.integration_store()).prune(
        dry_run=False, keep_bases=False
    )

    assert result.failures == ()
    assert {kit.name for kit in graph.artifacts()} == set("kcgj")
    assert len(tree.registry.deleted_images) == 7


def test_prune_is_scoped_to_namespace() -> None:
    """Prune only considers kits of the requested namespace."""
    tree = build_kit_tree("a(f)b(t)")
    graph = tree.graph()

    result = _collector(tree, graph, tree.integration_store(), namespace="other").prune(
        dry_run=False, keep_bases=False
    )

    assert result.nothing_to_do
    assert len(graph.artifacts()) == 2


def test_squash_dry_run_lists_chains_and_consumers() -> None:
    """A dry-run squash reports chains and integrations without writing."""
    tree = build_kit_tree("a(f)b(f)c(t)")
    graph = tree.graph()
    integrations = tree.integration_store()

    result = _collector(tree, graph, integrations).squash(dry_run=True)

    assert [chain.members for chain in result.chains] == [("default/c", "default/b", "default/a")]
    assert result.chains[0].new_image is None
    assert result.redeployed == ("default/it-c",)
    assert graph.get("default/c") == tree.artifact("c")
    assert integrations.redeployed == []
    assert tree.registry.written_images == []


def test_squash_replaces_leaf_image_and_redeploys_consumer() -> None:
    """Squash swaps the leaf image, redeploys its integration and drops the old image."""
    tree = build_kit_tree("a(f)b(f)c(t)")
    graph = tree.graph()
    integrations = tree.integration_store()
    old_image = tree.artifact("c").image

    result = _collector(tree, graph, integrations).squash(dry_run=False)

    assert result.failures == ()
    new_image = result.chains[0].new_image
    assert new_image is not None
    assert new_image not in {tree.artifact(name).image for name in "abc"}
    leaf = graph.get("default/c")
    assert leaf is not None
    assert leaf.image == new_image
    assert leaf.base_name is None
    integration = integrations.get("default/it-c")
    assert integration.image == new_image
    assert integration.deploy_generation == 2
    assert result.redeployed == ("default/it-c",)
    assert tree.registry.deleted_images == [old_image]


def test_squashed_ancestors_become_prunable() -> None:
    """After a squash the old chain is no longer reachable from used kits."""
    tree = build_kit_tree("a(f)b(f)c(t)")
    graph = tree.graph()
    collector = _collector(tree, graph, tree.integration_store())
    collector.squash(dry_run=False)

    result = collector.prune(dry_run=True, keep_bases=True)

    assert set(result.artifacts_to_delete) == {"default/a", "default/b"}


def test_squash_never_crosses_a_branch() -> None:
    """Chains ending at a branch point are left alone."""
    tree = build_kit_tree("a(f)b(t)|c(t)|")
    graph = tree.graph()

    result = _collector(tree, graph, tree.integration_store()).squash(dry_run=False)

    assert result.nothing_to_do
    assert graph.artifacts() == sorted(tree.artifacts, key=lambda kit: kit.key)


def test_failed_squash_leaves_consumers_on_old_image() -> None:
    """A chain that fails to flatten keeps its integrations on the old image."""
    tree = build_kit_tree("a(f)b(t)")
    registry = FakeImageRegistry(
        images=list(tree.registry.images.values()),
        failing_deletes=None,
        fail_writes=True,
    )
    graph = tree.graph()
    integrations = tree.integration_store()

    result = _collector(tree, graph, integrations, registry=registry).squash(dry_run=False)

    assert [failure.target for failure in result.failures] == ["default/b"]
    assert result.chains[0].new_image is None
    assert graph.get("default/b") == tree.artifact("b")
    assert integrations.get("default/it-b").image == tree.artifact("b").image
    assert integrations.redeployed == []


def test_failed_delete_of_replaced_image_is_not_fatal() -> None:
    """Failing to delete the replaced image is reported but the squash stands."""
    tree = build_kit_tree("a(f)b(t)")
    old_image = tree.artifact("b").image
    registry = FakeImageRegistry(
        images=list(tree.registry.images.values()),
        failing_deletes={old_image},
        fail_writes=False,
    )
    graph = tree.graph()

    result = _collector(tree, graph, tree.integration_store(), registry=registry).squash(
        dry_run=False
    )

    assert [failure.target for failure in result.failures] == [old_image]
    leaf = graph.get("default/b")
    assert leaf is not None
    assert leaf.image == result.chains[0].new_image

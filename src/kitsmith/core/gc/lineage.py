"""Retention and squash-chain analysis over a graph snapshot.

A kit is *retained* when it is used, or when at least two of its child
subtrees contain used kits (it is a branch point other lineages share).
Squash chains start at a used kit and walk up through ancestors that are not
retained, so they never cross a branch point.
"""

from kitsmith.core.artifact_graph import GraphSnapshot
from kitsmith.core.kit import Artifact


def _subtree_has_used(snapshot: GraphSnapshot) -> dict[str, bool]:
    result: dict[str, bool] = {}

    def visit(artifact: Artifact) -> bool:
        cached = result.get(artifact.key)
        if cached is not None:
            return cached
        has_used = artifact.used
        for child in snapshot.children(artifact.key):
            if visit(child):
                has_used = True
        result[artifact.key] = has_used
        return has_used

    for root in snapshot.roots():
        visit(root)
    return result


def used_child_subtrees(snapshot: GraphSnapshot) -> dict[str, int]:
    """Number of child subtrees containing a used kit, per kit key."""
    has_used = _subtree_has_used(snapshot)
    return {
        artifact.key: sum(
            1 for child in snapshot.children(artifact.key) if has_used.get(child.key, False)
        )
        for artifact in snapshot.artifacts()
    }


def retained_keys(snapshot: GraphSnapshot) -> set[str]:
    counts = used_child_subtrees(snapshot)
    return {
        artifact.key
        for artifact in snapshot.artifacts()
        if artifact.used or counts.get(artifact.key, 0) > 1
    }


def squash_chains(snapshot: GraphSnapshot) -> list[tuple[Artifact, ...]]:
    """Chains of kits to flatten, each leaf first.

    Only chains with at least two members are returned; a used kit whose
    base is retained (or that has no base kit) has nothing to merge.
    """
    retained = retained_keys(snapshot)
    chains: list[tuple[Artifact, ...]] = []
    for artifact in snapshot.artifacts():
        if not artifact.used:
            continue
        chain = [artifact]
        parent = snapshot.parent(artifact.key)
        while parent is not None and parent.key not in retained:
            chain.append(parent)
            parent = snapshot.parent(parent.key)
        if len(chain) > 1:
            chains.append(tuple(chain))
    return chains

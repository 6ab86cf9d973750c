"""Admission order of queued builds.

Three policies are supported:

- ``fifo``: entries are admitted strictly in arrival order.
- ``dependencies``: an entry waits while another active build could become
  its base (same namespace, runtime and version, with a strictly smaller
  dependency set, or the same set and an earlier arrival). Once that build
  finishes the waiting entry can layer on top of it or reuse it outright.
- ``sequential``: at most one build runs per namespace.
"""

from collections.abc import Sequence
from dataclasses import replace

from kitsmith.core.scheduler.types import OrderStrategy, QueueEntry


def effective_strategy(entry: QueueEntry, platform_strategy: OrderStrategy) -> OrderStrategy:
    override = entry.request.strategy.order_strategy
    return override if override is not None else platform_strategy


def _same_lineage_scope(a: QueueEntry, b: QueueEntry) -> bool:
    return (
        a.request.namespace == b.request.namespace
        and a.request.runtime_version == b.request.runtime_version
        and a.request.version == b.request.version
    )


def would_be_base_of(candidate: QueueEntry, entry: QueueEntry) -> bool:
    """True if ``candidate``'s result could serve as base for ``entry``."""
    if candidate.sequence == entry.sequence or not _same_lineage_scope(candidate, entry):
        return False
    candidate_deps = candidate.request.dependencies
    entry_deps = entry.request.dependencies
    if candidate_deps < entry_deps:
        return True
    return candidate_deps == entry_deps and candidate.sequence < entry.sequence


def with_dependency_ranks(
    pending: Sequence[QueueEntry],
    running: Sequence[QueueEntry],
) -> list[QueueEntry]:
    """Return ``pending`` with ``dependency_rank`` recomputed.

    The rank is the number of other active entries that would be a base of
    the entry, so foundational builds rank lowest.
    """
    active = [*pending, *running]
    return [
        replace(
            entry,
            dependency_rank=sum(1 for other in active if would_be_base_of(other, entry)),
        )
        for entry in pending
    ]


def is_withheld(
    entry: QueueEntry,
    *,
    pending: Sequence[QueueEntry],
    running: Sequence[QueueEntry],
    platform_strategy: OrderStrategy,
) -> bool:
    """Whether ``entry`` must stay queued even if capacity is available."""
    strategy = effective_strategy(entry, platform_strategy)
    if strategy == "fifo":
        return False
    if strategy == "sequential":
        return any(other.request.namespace == entry.request.namespace for other in running)
    return any(would_be_base_of(other, entry) for other in [*pending, *running])


def admission_order(
    pending: Sequence[QueueEntry],
    running: Sequence[QueueEntry],
    platform_strategy: OrderStrategy,
) -> list[QueueEntry]:
    """Pending entries in the order they should be considered for admission."""
    ranked = with_dependency_ranks(pending, running)
    if platform_strategy == "dependencies":
        return sorted(ranked, key=lambda entry: (entry.dependency_rank, entry.sequence))
    return sorted(ranked, key=lambda entry: entry.sequence)

"""Build scheduler.

The scheduler owns the queue of build requests and drives them through
Pending -> Running -> Succeeded | Error. It never blocks: ``submit`` only
records work and ``tick`` performs one pass of the control loop (poll running
builds, apply timeouts and retries, admit queued builds up to capacity).
A retry after a transient failure is started on the next pass, never in
the pass that saw the failure.

Every build produces its own kit. A kit that already holds an image is
never overwritten by a new build, so the kit and its image stay in the graph
until garbage collection decides they are unused.
"""

import itertools
import logging
import threading
from dataclasses import dataclass, replace

from kitsmith.core.artifact_graph import ArtifactGraph, GraphSnapshot
from kitsmith.core.compatibility import CompatibilityGate
from kitsmith.core.fingerprint import KitMatch, find_reusable
from kitsmith.core.kit import Artifact, kit_key
from kitsmith.core.platform_config import PlatformConfig
from kitsmith.core.scheduler.ordering import admission_order, is_withheld
from kitsmith.core.scheduler.types import (
    Build,
    BuildQueued,
    BuildRejected,
    BuildRequest,
    KitReused,
    QueueEntry,
    SubmitResult,
)
from kitsmith_shared.gateway.build_executor.abc import BuildExecutor
from kitsmith_shared.gateway.build_executor.types import (
    BuildJob,
    JobFailed,
    JobRunning,
    JobStarted,
    JobSucceeded,
)
from kitsmith_shared.gateway.time.abc import Time

logger = logging.getLogger(__name__)

CANCELLED_REASON = "build cancelled"


@dataclass(frozen=True)
class _RunningBuild:
    entry: QueueEntry
    job: BuildJob
    base_name: str | None
    kit_name: str
    awaiting_start: bool = False


class BuildScheduler:
    def __init__(
        self,
        *,
        graph: ArtifactGraph,
        executor: BuildExecutor,
        gate: CompatibilityGate,
        time: Time,
        config: PlatformConfig,
    ) -> None:
        self._graph = graph
        self._executor = executor
        self._gate = gate
        self._time = time
        self._config = config
        self._lock = threading.Lock()
        self._builds: dict[str, Build] = {}
        self._pending: list[QueueEntry] = []
        self._running: dict[str, _RunningBuild] = {}
        self._next_sequence = 0

    # Status

    def builds(self) -> list[Build]:
        with self._lock:
            return [self._builds[key] for key in sorted(self._builds)]

    def get_build(self, namespace: str, name: str) -> Build | None:
        with self._lock:
            return self._builds.get(kit_key(namespace, name))

    def pending(self) -> list[QueueEntry]:
        with self._lock:
            return list(self._pending)

    def running(self) -> list[Build]:
        with self._lock:
            return [self._builds[key] for key in sorted(self._running)]

    def is_idle(self) -> bool:
        with self._lock:
            return not self._pending and not self._running

    # Control

    def submit(self, request: BuildRequest) -> SubmitResult:
        """Record a build request.

        Incompatible catalogs reject immediately and exact kit matches finish
        immediately as reuse; everything else is queued for ``tick``.
        """
        with self._lock:
            for entry in self._active_entries():
                if entry.request.key == request.key:
                    logger.debug("Build %s is already active", request.key)
                    return BuildQueued(build=self._builds[request.key], sequence=entry.sequence)

            record = self._gate.check_compatible(request.runtime_version)
            if not record.ok:
                reason = self._gate.rejection_reason(record)
                build = self._set_build(_new_build(request, phase="Error", failure_reason=reason))
                logger.warning("Rejected build %s: %s", request.key, reason)
                return BuildRejected(build=build, reason=reason)

            exact = find_reusable(
                request.to_request_fingerprint(),
                self._graph.snapshot(request.namespace).artifacts(),
                allow_incremental=False,
            )
            if exact is not None:
                build = self._set_build(
                    replace(
                        _new_build(request, phase="Succeeded", failure_reason=None),
                        image=exact.kit.image,
                        reused_kit=exact.kit.key,
                    )
                )
                logger.info("Build %s reuses kit %s", request.key, exact.kit.key)
                return KitReused(build=build, kit_key=exact.kit.key)

            self._next_sequence += 1
            entry = QueueEntry(request=request, sequence=self._next_sequence)
            self._pending.append(entry)
            build = self._set_build(_new_build(request, phase="Pending", failure_reason=None))
            logger.info("Queued build %s (sequence %d)", request.key, entry.sequence)
            return BuildQueued(build=build, sequence=entry.sequence)

    def tick(self) -> None:
        """Run one pass of the control loop."""
        with self._lock:
            self._poll_running()
            self._admit_pending()

    def cancel(self, namespace: str, name: str) -> Build | None:
        """Stop a pending or running build. Returns None if it is not active."""
        key = kit_key(namespace, name)
        with self._lock:
            for entry in self._pending:
                if entry.request.key == key:
                    self._pending.remove(entry)
                    return self._fail(key, CANCELLED_REASON)
            running = self._running.pop(key, None)
            if running is None:
                return None
            if not running.awaiting_start:
                self._executor.cancel(namespace=namespace, build_name=name)
            self._mark_kit(running, phase="Error", image="")
            return self._fail(key, CANCELLED_REASON)

    def run_until_idle(self, *, max_ticks: int | None = None) -> list[Build]:
        """Tick until nothing is pending or running, sleeping between passes."""
        ticks = 0
        while True:
            self.tick()
            ticks += 1
            if self.is_idle():
                break
            if max_ticks is not None and ticks >= max_ticks:
                logger.warning("Scheduler still busy after %d passes", ticks)
                break
            self._time.sleep(self._config.poll_interval_seconds)
        return self.builds()

    # Internals (lock held)

    def _active_entries(self) -> list[QueueEntry]:
        return [*self._pending, *(run.entry for run in self._running.values())]

    def _set_build(self, build: Build) -> Build:
        self._builds[build.key] = build
        return build

    def _fail(self, key: str, reason: str) -> Build:
        logger.warning("Build %s failed: %s", key, reason)
        return self._set_build(
            replace(self._builds[key], phase="Error", failure_reason=reason, started_at=None)
        )

    def _poll_running(self) -> None:
        for key, run in sorted(self._running.items()):
            if run.awaiting_start:
                self._launch(run)
                continue
            status = self._executor.poll(
                namespace=run.job.namespace, build_name=run.job.build_name
            )
            if isinstance(status, JobSucceeded):
                del self._running[key]
                self._record_success(run, status.image)
            elif isinstance(status, JobFailed):
                if status.transient:
                    self._handle_transient(run, status.reason)
                else:
                    del self._running[key]
                    self._mark_kit(run, phase="Error", image="")
                    self._fail(key, status.reason)
            elif isinstance(status, JobRunning):
                started_at = self._builds[key].started_at
                if started_at is None:
                    continue
                elapsed = (self._time.now() - started_at).total_seconds()
                if elapsed >= self._config.build_timeout_seconds:
                    self._executor.cancel(
                        namespace=run.job.namespace, build_name=run.job.build_name
                    )
                    self._handle_transient(
                        run,
                        f"build timed out after {self._config.build_timeout_seconds:g}s",
                    )

    def _handle_transient(self, run: _RunningBuild, reason: str) -> None:
        key = run.entry.request.key
        self._running.pop(key, None)
        build = self._builds[key]
        retries_used = build.retries_used + 1
        self._set_build(replace(build, retries_used=retries_used, started_at=None))
        if retries_used >= self._config.build_retry_budget:
            self._mark_kit(run, phase="Error", image="")
            self._fail(key, f"build retries exhausted: {reason}")
            return
        logger.info(
            "Retrying build %s (%d/%d): %s",
            key,
            retries_used,
            self._config.build_retry_budget,
            reason,
        )
        self._running[key] = replace(
            run, job=replace(run.job, attempt=run.job.attempt + 1), awaiting_start=True
        )

    def _launch(self, run: _RunningBuild) -> None:
        key = run.entry.request.key
        result = self._executor.start(job=run.job)
        if isinstance(result, JobStarted):
            self._running[key] = replace(run, awaiting_start=False)
            self._set_build(
                replace(self._builds[key], phase="Running", started_at=self._time.now())
            )
            logger.info("Started build %s (attempt %d)", key, run.job.attempt)
            return
        # Start failures count against the retry budget like any transient failure.
        self._handle_transient(run, result.reason)

    def _admit_pending(self) -> None:
        strategy = self._config.order_strategy
        for entry in admission_order(self._pending, self._running_entries(), strategy):
            capacity = self._config.max_running_builds
            if capacity is not None and len(self._running) >= capacity:
                break
            if is_withheld(
                entry,
                pending=self._pending,
                running=self._running_entries(),
                platform_strategy=strategy,
            ):
                continue
            self._pending = [
                queued for queued in self._pending if queued.sequence != entry.sequence
            ]
            self._dispatch(entry)

    def _running_entries(self) -> list[QueueEntry]:
        return [run.entry for run in self._running.values()]

    def _dispatch(self, entry: QueueEntry) -> None:
        request = entry.request
        with self._graph.mutation() as graph:
            snapshot = graph.snapshot(request.namespace)
            kit_name = _claim_kit_name(snapshot, request)
            match = _match_at_dispatch(snapshot, request, kit_key(request.namespace, kit_name))
            if match is not None and match.exact:
                self._reuse_at_dispatch(request, match)
                return
            run = self._prepare_run(entry, match, kit_name)
            self._mark_kit(run, phase="Building", image="")
        self._set_build(
            replace(self._builds[request.key], kit=kit_key(request.namespace, kit_name))
        )
        self._launch(run)

    def _reuse_at_dispatch(self, request: BuildRequest, match: KitMatch) -> None:
        self._set_build(
            replace(
                self._builds[request.key],
                phase="Succeeded",
                image=match.kit.image,
                reused_kit=match.kit.key,
            )
        )
        logger.info("Build %s reuses kit %s", request.key, match.kit.key)

    def _prepare_run(
        self, entry: QueueEntry, match: KitMatch | None, kit_name: str
    ) -> _RunningBuild:
        request = entry.request
        if match is not None:
            base_name: str | None = match.kit.name
            base_image = match.kit.image
            delta = match.delta_dependencies
            self._set_build(replace(self._builds[request.key], base_kit=match.kit.key))
            logger.info(
                "Build %s layers %d dependencies on kit %s",
                request.key,
                len(delta),
                match.kit.key,
            )
        else:
            base_name = None
            base_image = request.strategy.base_image
            delta = request.dependencies

        job = BuildJob(
            namespace=request.namespace,
            build_name=request.name,
            dependencies=tuple(sorted(request.dependencies)),
            delta_dependencies=tuple(sorted(delta)),
            build_properties=request.build_properties,
            runtime_version=request.runtime_version,
            base_image=base_image,
            attempt=1,
        )
        return _RunningBuild(entry=entry, job=job, base_name=base_name, kit_name=kit_name)

    def _record_success(self, run: _RunningBuild, image: str) -> None:
        key = run.entry.request.key
        self._mark_kit(run, phase="Ready", image=image)
        self._set_build(
            replace(self._builds[key], phase="Succeeded", image=image, failure_reason=None)
        )
        logger.info("Build %s succeeded: %s", key, image)

    def _mark_kit(self, run: _RunningBuild, *, phase: str, image: str) -> None:
        """Record the kit produced by ``run`` in the graph with ``phase``."""
        request = run.entry.request
        with self._graph.mutation() as graph:
            base_name = run.base_name
            if base_name is not None and graph.get(kit_key(request.namespace, base_name)) is None:
                base_name = None
            artifact = Artifact(
                namespace=request.namespace,
                name=run.kit_name,
                dependencies=request.dependencies,
                build_properties=request.build_properties,
                runtime_version=request.runtime_version,
                version=request.version,
                fingerprint=request.fingerprint,
                base_name=base_name,
                base_image=run.job.base_image,
                image=image,
                used=False,
                phase=phase,  # type: ignore[arg-type]
                priority=request.priority,
                kit_type="platform",
                created_at=self._time.now(),
            )
            existing = graph.get(artifact.key)
            if existing is None:
                graph.add_artifact(artifact)
            else:
                graph.replace_artifact(replace(artifact, used=existing.used))


def _can_claim(snapshot: GraphSnapshot, namespace: str, name: str) -> bool:
    existing = snapshot.get(kit_key(namespace, name))
    return existing is None or existing.phase == "Error"


def _claim_kit_name(snapshot: GraphSnapshot, request: BuildRequest) -> str:
    """Name of the kit a dispatched build produces.

    The request name is used while it is free or only holds a failed kit.
    Otherwise the name gets a fingerprint suffix, plus a counter if needed.
    """
    suffix = request.fingerprint.removeprefix("sha256:")[:10]
    candidates = itertools.chain(
        (request.name, f"{request.name}-{suffix}"),
        (f"{request.name}-{suffix}-{n}" for n in itertools.count(2)),
    )
    return next(
        name for name in candidates if _can_claim(snapshot, request.namespace, name)
    )


def _match_at_dispatch(
    snapshot: GraphSnapshot, request: BuildRequest, target_key: str
) -> KitMatch | None:
    fingerprint = request.to_request_fingerprint()
    exact = find_reusable(fingerprint, snapshot.artifacts(), allow_incremental=False)
    if exact is not None or request.strategy.base_image is not None:
        return exact
    # A kit cannot be layered on itself or on one of its own descendants.
    candidates = [
        kit
        for kit in snapshot.artifacts()
        if target_key not in {member.key for member in snapshot.chain_to_root(kit.key)}
    ]
    return find_reusable(fingerprint, candidates)


def _new_build(request: BuildRequest, *, phase: str, failure_reason: str | None) -> Build:
    return Build(
        namespace=request.namespace,
        name=request.name,
        phase=phase,  # type: ignore[arg-type]
        retries_used=0,
        image=None,
        started_at=None,
        failure_reason=failure_reason,
        base_kit=None,
        reused_kit=None,
        kit=None,
    )

"""Scriptable fake build executor for testing."""

import hashlib

from kitsmith_shared.gateway.build_executor.abc import BuildExecutor
from kitsmith_shared.gateway.build_executor.types import (
    BuildJob,
    JobRunning,
    JobStarted,
    JobStartFailed,
    JobStartResult,
    JobStatus,
    JobSucceeded,
)


def fake_image_for(job: BuildJob) -> str:
    """Deterministic image reference for a job that succeeds by default."""
    seed = f"{job.key}:{job.attempt}:{job.base_image}"
    digest = hashlib.sha256(seed.encode("utf-8")).hexdigest()
    return f"registry.test/{job.namespace}/{job.build_name}@sha256:{digest}"


class FakeBuildExecutor(BuildExecutor):
    """In-memory executor whose outcomes are scripted per attempt.

    ``attempt_outcomes`` maps "namespace/name" to the outcome of each
    attempt in order. A ``JobRunning`` outcome makes that attempt hang until
    the scheduler times it out. Attempts beyond the script keep running until
    ``finish`` is called, unless ``succeed_by_default`` is set.
    """

    def __init__(
        self,
        *,
        attempt_outcomes: dict[str, list[JobStatus]] | None,
        start_failures: dict[str, int] | None,
        succeed_by_default: bool,
    ) -> None:
        self._attempt_outcomes = attempt_outcomes if attempt_outcomes is not None else {}
        self._start_failures = dict(start_failures) if start_failures is not None else {}
        self._succeed_by_default = succeed_by_default
        self._attempts: dict[str, int] = {}
        self._current: dict[str, JobStatus] = {}
        self._started_jobs: list[BuildJob] = []
        self._cancelled: list[str] = []

    @classmethod
    def succeeding(cls) -> "FakeBuildExecutor":
        return cls(attempt_outcomes=None, start_failures=None, succeed_by_default=True)

    @classmethod
    def manual(cls) -> "FakeBuildExecutor":
        """Executor whose jobs run until the test calls ``finish``."""
        return cls(attempt_outcomes=None, start_failures=None, succeed_by_default=False)

    def start(self, *, job: BuildJob) -> JobStartResult:
        remaining_failures = self._start_failures.get(job.key, 0)
        if remaining_failures > 0:
            self._start_failures[job.key] = remaining_failures - 1
            return JobStartFailed(reason="builder pod could not be scheduled")

        attempt_index = self._attempts.get(job.key, 0)
        self._attempts[job.key] = attempt_index + 1
        self._started_jobs.append(job)

        script = self._attempt_outcomes.get(job.key, [])
        if attempt_index < len(script):
            self._current[job.key] = script[attempt_index]
        elif self._succeed_by_default:
            self._current[job.key] = JobSucceeded(image=fake_image_for(job))
        else:
            self._current[job.key] = JobRunning()
        return JobStarted()

    def poll(self, *, namespace: str, build_name: str) -> JobStatus:
        return self._current.get(f"{namespace}/{build_name}", JobRunning())

    def cancel(self, *, namespace: str, build_name: str) -> None:
        key = f"{namespace}/{build_name}"
        self._cancelled.append(key)
        self._current.pop(key, None)

    def finish(self, *, namespace: str, build_name: str, status: JobStatus) -> None:
        """Complete the current attempt of a running job."""
        self._current[f"{namespace}/{build_name}"] = status

    @property
    def started_jobs(self) -> list[BuildJob]:
        return list(self._started_jobs)

    @property
    def start_order(self) -> list[str]:
        return [job.key for job in self._started_jobs]

    @property
    def cancelled(self) -> list[str]:
        return list(self._cancelled)

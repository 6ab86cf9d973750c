"""Subprocess-backed build executor.

Each job runs the configured builder command as a child process. The job
description is passed through environment variables and output is captured
to files under the work directory so polling never blocks on pipes.

Builder command contract:
- exit 0: the last non-empty stdout line is the digest-pinned image
- exit 75 (EX_TEMPFAIL): transient failure, the job may be retried
- any other exit: fatal build error, the stderr tail is the reason

Cancelling never waits for the builder to exit. The process is sent SIGTERM
and reaped by later calls, which escalate to SIGKILL once the grace period
has passed.
"""

import logging
import os
import shutil
import subprocess
import time
from dataclasses import dataclass
from pathlib import Path

from kitsmith_shared.gateway.build_executor.abc import BuildExecutor
from kitsmith_shared.gateway.build_executor.types import (
    BuildJob,
    JobFailed,
    JobRunning,
    JobStarted,
    JobStartFailed,
    JobStartResult,
    JobStatus,
    JobSucceeded,
)

logger = logging.getLogger(__name__)

EXIT_TEMPFAIL = 75
STDERR_TAIL_LINES = 5
DEFAULT_TERMINATE_GRACE_SECONDS = 10.0


@dataclass
class _RunningProcess:
    process: subprocess.Popen[bytes]
    stdout_path: Path
    stderr_path: Path


@dataclass
class _TerminatingProcess:
    process: subprocess.Popen[bytes]
    kill_after: float


def _job_env(job: BuildJob) -> dict[str, str]:
    env = dict(os.environ)
    env.update(
        {
            "KITSMITH_NAMESPACE": job.namespace,
            "KITSMITH_BUILD_NAME": job.build_name,
            "KITSMITH_DEPENDENCIES": "\n".join(job.dependencies),
            "KITSMITH_DELTA_DEPENDENCIES": "\n".join(job.delta_dependencies),
            "KITSMITH_BUILD_PROPERTIES": "\n".join(f"{k}={v}" for k, v in job.build_properties),
            "KITSMITH_RUNTIME_VERSION": job.runtime_version,
            "KITSMITH_BASE_IMAGE": job.base_image if job.base_image is not None else "",
            "KITSMITH_ATTEMPT": str(job.attempt),
        }
    )
    return env


class SubprocessBuildExecutor(BuildExecutor):
    def __init__(
        self,
        *,
        command: list[str],
        work_dir: Path,
        terminate_grace_seconds: float = DEFAULT_TERMINATE_GRACE_SECONDS,
    ) -> None:
        self._command = command
        self._work_dir = work_dir
        self._terminate_grace_seconds = terminate_grace_seconds
        self._processes: dict[str, _RunningProcess] = {}
        self._terminating: list[_TerminatingProcess] = []

    def start(self, *, job: BuildJob) -> JobStartResult:
        self._reap_terminating()
        if not self._command or shutil.which(self._command[0]) is None:
            return JobStartFailed(reason=f"builder command not found: {' '.join(self._command)}")

        job_dir = self._work_dir / job.namespace / job.build_name / f"attempt-{job.attempt}"
        job_dir.mkdir(parents=True, exist_ok=True)
        stdout_path = job_dir / "stdout.log"
        stderr_path = job_dir / "stderr.log"

        with stdout_path.open("wb") as stdout, stderr_path.open("wb") as stderr:
            try:
                process = subprocess.Popen(
                    self._command,
                    cwd=job_dir,
                    env=_job_env(job),
                    stdout=stdout,
                    stderr=stderr,
                )
            except OSError as e:
                return JobStartFailed(reason=f"cannot start builder: {e}")

        logger.debug("Started builder pid=%d for %s (attempt %d)", process.pid, job.key, job.attempt)
        self._processes[job.key] = _RunningProcess(
            process=process,
            stdout_path=stdout_path,
            stderr_path=stderr_path,
        )
        return JobStarted()

    def poll(self, *, namespace: str, build_name: str) -> JobStatus:
        self._reap_terminating()
        running = self._processes.get(f"{namespace}/{build_name}")
        if running is None:
            return JobFailed(reason="builder process is not tracked", transient=True)

        returncode = running.process.poll()
        if returncode is None:
            return JobRunning()

        del self._processes[f"{namespace}/{build_name}"]
        if returncode == 0:
            lines = running.stdout_path.read_text(encoding="utf-8").splitlines()
            image_lines = [line.strip() for line in lines if line.strip()]
            if not image_lines:
                return JobFailed(reason="builder did not report an image", transient=False)
            return JobSucceeded(image=image_lines[-1])

        stderr_lines = running.stderr_path.read_text(encoding="utf-8").splitlines()
        tail = "\n".join(stderr_lines[-STDERR_TAIL_LINES:])
        reason = tail if tail else f"builder exited with code {returncode}"
        return JobFailed(reason=reason, transient=returncode == EXIT_TEMPFAIL)

    def cancel(self, *, namespace: str, build_name: str) -> None:
        running = self._processes.pop(f"{namespace}/{build_name}", None)
        if running is None:
            return
        running.process.terminate()
        logger.debug("Sent SIGTERM to builder pid=%d", running.process.pid)
        self._terminating.append(
            _TerminatingProcess(
                process=running.process,
                kill_after=time.monotonic() + self._terminate_grace_seconds,
            )
        )

    @property
    def terminating_pids(self) -> list[int]:
        return [entry.process.pid for entry in self._terminating]

    def _reap_terminating(self) -> None:
        still_running: list[_TerminatingProcess] = []
        for entry in self._terminating:
            if entry.process.poll() is not None:
                continue
            if time.monotonic() >= entry.kill_after:
                logger.debug("Killing builder pid=%d after grace period", entry.process.pid)
                entry.process.kill()
            still_running.append(entry)
        self._terminating = still_running

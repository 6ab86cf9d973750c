"""Tests for SubprocessBuildExecutor using small shell builders."""

import time
from pathlib import Path

from kitsmith_shared.gateway.build_executor.real import SubprocessBuildExecutor
from kitsmith_shared.gateway.build_executor.types import (
    BuildJob,
    JobFailed,
    JobRunning,
    JobStarted,
    JobStartFailed,
    JobStatus,
    JobSucceeded,
)

JOB = BuildJob(
    namespace="default",
    build_name="kit-a",
    dependencies=("camel:http", "camel:kafka"),
    delta_dependencies=("camel:kafka",),
    build_properties=(("quarkus.native", "false"),),
    runtime_version="3.2.0",
    base_image="registry.local/default/kits@sha256:base",
    attempt=1,
)


def _wait(executor: SubprocessBuildExecutor) -> JobStatus:
    deadline = time.monotonic() + 10
    while time.monotonic() < deadline:
        status = executor.poll(namespace="default", build_name="kit-a")
        if not isinstance(status, JobRunning):
            return status
        time.sleep(0.05)
    raise AssertionError("builder did not finish")


def test_last_stdout_line_is_the_image(tmp_path: Path) -> None:
    """The last stdout line of a successful builder is the image."""
    executor = SubprocessBuildExecutor(
        command=["sh", "-c", 'echo building; echo "registry.local/$KITSMITH_BUILD_NAME@sha256:1"'],
        work_dir=tmp_path,
    )

    assert executor.start(job=JOB) == JobStarted()

    assert _wait(executor) == JobSucceeded(image="registry.local/kit-a@sha256:1")


def test_job_description_is_passed_in_environment(tmp_path: Path) -> None:
    """The job description reaches the builder as environment variables."""
    executor = SubprocessBuildExecutor(
        command=["sh", "-c", 'echo "$KITSMITH_DELTA_DEPENDENCIES@$KITSMITH_BASE_IMAGE"'],
        work_dir=tmp_path,
    )
    executor.start(job=JOB)

    status = _wait(executor)

    assert status == JobSucceeded(image="camel:kafka@registry.local/default/kits@sha256:base")


def test_tempfail_exit_is_transient(tmp_path: Path) -> None:
    """Exit code 75 is a transient failure."""
    executor = SubprocessBuildExecutor(
        command=["sh", "-c", "echo 'registry unavailable' >&2; exit 75"],
        work_dir=tmp_path,
    )
    executor.start(job=JOB)

    assert _wait(executor) == JobFailed(reason="registry unavailable", transient=True)


def test_other_exit_is_fatal(tmp_path: Path) -> None:
    """Any other non-zero exit is fatal."""
    executor = SubprocessBuildExecutor(command=["sh", "-c", "exit 3"], work_dir=tmp_path)
    executor.start(job=JOB)

    assert _wait(executor) == JobFailed(reason="builder exited with code 3", transient=False)


def test_success_without_image_is_fatal(tmp_path: Path) -> None:
    """A successful exit without an image is fatal."""
    executor = SubprocessBuildExecutor(command=["sh", "-c", "true"], work_dir=tmp_path)
    executor.start(job=JOB)

    assert _wait(executor) == JobFailed(reason="builder did not report an image", transient=False)


def test_missing_command_fails_to_start(tmp_path: Path) -> None:
    """A builder command that does not exist fails to start."""
    executor = SubprocessBuildExecutor(command=["kitsmith-no-such-builder"], work_dir=tmp_path)

    result = executor.start(job=JOB)

    assert isinstance(result, JobStartFailed)
    assert "builder command not found" in result.reason


def test_untracked_job_is_transient_failure(tmp_path: Path) -> None:
    """Polling a job the executor does not know is a transient failure."""
    executor = SubprocessBuildExecutor(command=["sh"], work_dir=tmp_path)

    status = executor.poll(namespace="default", build_name="kit-a")

    assert status == JobFailed(reason="builder process is not tracked", transient=True)


def test_cancel_terminates_builder(tmp_path: Path) -> None:
    """A cancelled builder is no longer tracked."""
    executor = SubprocessBuildExecutor(command=["sh", "-c", "sleep 30"], work_dir=tmp_path)
    executor.start(job=JOB)

    executor.cancel(namespace="default", build_name="kit-a")

    assert isinstance(executor.poll(namespace="default", build_name="kit-a"), JobFailed)


def test_cancel_returns_without_waiting_and_kills_the_builder_later(tmp_path: Path) -> None:
    """A builder that ignores SIGTERM does not hold up cancel; it is killed later."""
    executor = SubprocessBuildExecutor(
        command=["sh", "-c", "trap '' TERM; sleep 30"],
        work_dir=tmp_path,
        terminate_grace_seconds=0,
    )
    executor.start(job=JOB)

    started = time.monotonic()
    executor.cancel(namespace="default", build_name="kit-a")
    assert time.monotonic() - started < 1

    deadline = time.monotonic() + 10
    while executor.terminating_pids and time.monotonic() < deadline:
        executor.poll(namespace="default", build_name="kit-a")
        time.sleep(0.05)
    assert executor.terminating_pids == []

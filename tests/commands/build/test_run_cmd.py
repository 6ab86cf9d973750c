"""Tests for the build run command."""

from pathlib import Path

from click.testing import CliRunner

from kitsmith.cli.cli import cli
from kitsmith.core.context import KitsmithContext
from kitsmith.core.fingerprint import compute_fingerprint
from kitsmith.core.kit import Artifact
from kitsmith.core.kit_store import FakeKitStore
from kitsmith_shared.gateway.build_executor.fake import FakeBuildExecutor
from kitsmith_shared.gateway.build_executor.types import JobFailed
from kitsmith_shared.gateway.catalog.fake import FakeCatalogInspector

TWO_REQUESTS = """
[[requests]]
name = "child"
dependencies = ["camel:http", "camel:kafka"]
runtime_version = "3.2.0"

[[requests]]
name = "base"
dependencies = ["camel:http"]
runtime_version = "3.2.0"
"""


def _write(tmp_path: Path, content: str) -> Path:
    path = tmp_path / "requests.toml"
    path.write_text(content, encoding="utf-8")
    return path


def _context(
    store: FakeKitStore,
    *,
    executor: FakeBuildExecutor | None = None,
    catalog: FakeCatalogInspector | None = None,
) -> KitsmithContext:
    return KitsmithContext.for_test(
        kit_store=store,
        executor=executor if executor is not None else FakeBuildExecutor.succeeding(),
        catalog=catalog if catalog is not None else FakeCatalogInspector.compatible("3.2.0"),
    )


def test_builds_base_first_and_layers_child_on_it(tmp_path: Path) -> None:
    """With the dependencies strategy the smaller kit is built and reused as base."""
    store = FakeKitStore()
    executor = FakeBuildExecutor.succeeding()
    runner = CliRunner()

    result = runner.invoke(
        cli,
        ["build", "run", str(_write(tmp_path, TWO_REQUESTS))],
        obj=_context(store, executor=executor),
    )

    assert result.exit_code == 0, result.output
    assert "default/child: queued" in result.output
    assert "default/base: queued" in result.output
    assert executor.start_order == ["default/base", "default/child"]
    child_job = executor.started_jobs[1]
    assert child_job.delta_dependencies == ("camel:kafka",)

    kits = {kit.name: kit for kit in store.kits}
    assert kits["base"].phase == "Ready"
    assert kits["child"].phase == "Ready"
    assert kits["child"].base_name == "base"
    assert kits["child"].base_image == kits["base"].image


def test_existing_kit_is_reused(tmp_path: Path) -> None:
    """A request matching an existing kit is reused without building."""
    existing = Artifact.test(
        "http-kit",
        dependencies=frozenset({"camel:http"}),
        fingerprint=compute_fingerprint({"camel:http"}, [], "3.2.0"),
    )
    store = FakeKitStore([existing])
    executor = FakeBuildExecutor.succeeding()
    runner = CliRunner()
    content = """
[[requests]]
name = "base"
dependencies = ["camel:http"]
runtime_version = "3.2.0"
"""

    result = runner.invoke(
        cli,
        ["build", "run", str(_write(tmp_path, content))],
        obj=_context(store, executor=executor),
    )

    assert result.exit_code == 0, result.output
    assert "default/base: reusing kit default/http-kit" in result.output
    assert executor.started_jobs == []


def test_incompatible_runtime_is_rejected(tmp_path: Path) -> None:
    """An incompatible runtime is reported and the command fails."""
    store = FakeKitStore()
    runner = CliRunner()
    content = """
[[requests]]
name = "base"
runtime_version = "9.9.9"
"""

    result = runner.invoke(
        cli,
        ["build", "run", str(_write(tmp_path, content))],
        obj=_context(store),
    )

    assert result.exit_code == 1
    assert "default/base: rejected (builder image missing for catalog version 9.9.9" in (
        result.output
    )
    assert "1 build(s) failed" in result.output


def test_build_error_is_reported_and_fails(tmp_path: Path) -> None:
    """A fatal build error is shown and saved as an Error kit."""
    store = FakeKitStore()
    executor = FakeBuildExecutor(
        attempt_outcomes={"default/base": [JobFailed(reason="compilation failed", transient=False)]},
        start_failures=None,
        succeed_by_default=True,
    )
    runner = CliRunner()

    result = runner.invoke(
        cli,
        ["build", "run", str(_write(tmp_path, TWO_REQUESTS))],
        obj=_context(store, executor=executor),
    )

    assert result.exit_code == 1
    assert "compilation failed" in result.output
    kits = {kit.name: kit for kit in store.kits}
    assert kits["base"].phase == "Error"


def test_dry_run_only_reports_submission(tmp_path: Path) -> None:
    """--dry-run reports submissions without building or saving."""
    store = FakeKitStore()
    executor = FakeBuildExecutor.succeeding()
    runner = CliRunner()

    result = runner.invoke(
        cli,
        ["build", "run", "--dry-run", str(_write(tmp_path, TWO_REQUESTS))],
        obj=_context(store, executor=executor),
    )

    assert result.exit_code == 0
    assert "default/base: queued" in result.output
    assert executor.started_jobs == []
    assert store.save_count == 0


def test_unfinished_builds_are_cancelled_after_max_ticks(tmp_path: Path) -> None:
    """Builds still active after --max-ticks are cancelled."""
    store = FakeKitStore()
    executor = FakeBuildExecutor.manual()
    runner = CliRunner()

    result = runner.invoke(
        cli,
        ["build", "run", "--max-ticks", "1", str(_write(tmp_path, TWO_REQUESTS))],
        obj=_context(store, executor=executor),
    )

    assert result.exit_code == 1
    assert executor.cancelled == ["default/base"]
    assert "2 build(s) failed" in result.output


def test_invalid_request_file_is_reported(tmp_path: Path) -> None:
    """Validation errors of the request file are listed."""
    runner = CliRunner()

    result = runner.invoke(
        cli,
        ["build", "run", str(_write(tmp_path, "[[requests]]\nname = 'x'\n"))],
        obj=_context(FakeKitStore()),
    )

    assert result.exit_code == 1
    assert "Invalid request file" in result.output
    assert "runtime_version" in result.output

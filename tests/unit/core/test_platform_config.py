"""Tests for platform configuration loading."""

from pathlib import Path

import pytest

from kitsmith.core.errors import PlatformConfigError
from kitsmith.core.platform_config import PlatformConfig, load_platform_config


def _write_config(root: Path, content: str) -> None:
    config_dir = root / ".kitsmith"
    config_dir.mkdir(parents=True, exist_ok=True)
    (config_dir / "platform.toml").write_text(content, encoding="utf-8")


def test_missing_file_gives_defaults(tmp_path: Path) -> None:
    """Without platform.toml every setting has its default."""
    config = load_platform_config(tmp_path)

    assert config == PlatformConfig()
    assert config.order_strategy == "dependencies"
    assert config.max_running_builds is None
    assert config.build_timeout_seconds == 300
    assert config.build_retry_budget == 5


def test_build_section_is_loaded(tmp_path: Path) -> None:
    """Values from the build table are loaded."""
    _write_config(
        tmp_path,
        """
[build]
order_strategy = "fifo"
max_running_builds = 2
build_timeout_seconds = 60
build_retry_budget = 3
builder_command = ["./bin/build-kit", "--quiet"]
""",
    )

    config = load_platform_config(tmp_path)

    assert config.order_strategy == "fifo"
    assert config.max_running_builds == 2
    assert config.build_timeout_seconds == 60
    assert config.build_retry_budget == 3
    assert config.builder_command == ("./bin/build-kit", "--quiet")


def test_invalid_values_are_reported(tmp_path: Path) -> None:
    """Invalid values are reported with their field names."""
    _write_config(
        tmp_path,
        """
[build]
order_strategy = "random"
max_running_builds = 0
""",
    )

    with pytest.raises(PlatformConfigError) as exc_info:
        load_platform_config(tmp_path)

    errors = exc_info.value.errors
    assert any("order_strategy" in error for error in errors)
    assert any("max_running_builds" in error and "at least 1" in error for error in errors)


def test_unknown_keys_are_rejected(tmp_path: Path) -> None:
    """Keys the build table does not define are rejected."""
    _write_config(tmp_path, "[build]\nmax_pipelines = 3\n")

    with pytest.raises(PlatformConfigError, match="max_pipelines"):
        load_platform_config(tmp_path)


def test_malformed_toml_is_reported(tmp_path: Path) -> None:
    """Unparseable TOML is reported as a config error."""
    _write_config(tmp_path, "[build\n")

    with pytest.raises(PlatformConfigError, match="Invalid platform configuration"):
        load_platform_config(tmp_path)

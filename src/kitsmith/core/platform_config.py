"""Platform configuration loaded from .kitsmith/platform.toml.

Example:

    [build]
    order_strategy = "dependencies"
    max_running_builds = 3
    build_timeout_seconds = 300
    build_retry_budget = 5
    poll_interval_seconds = 1.0
    builder_command = ["./bin/build-kit"]
"""

import logging
import tomllib
from pathlib import Path

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from kitsmith.core.errors import PlatformConfigError
from kitsmith.core.scheduler.types import OrderStrategy

logger = logging.getLogger(__name__)

CONFIG_DIR_NAME = ".kitsmith"
PLATFORM_CONFIG_FILE_NAME = "platform.toml"

DEFAULT_BUILD_TIMEOUT_SECONDS = 300.0
DEFAULT_BUILD_RETRY_BUDGET = 5


class PlatformConfig(BaseModel):
    """Build-related settings of a platform.

    Fields:
        order_strategy: Default ordering of queued builds
        max_running_builds: Concurrent build cap, None for unbounded
        build_timeout_seconds: Wall-clock limit of a single build attempt
        build_retry_budget: Transient failures tolerated before a build errors
        poll_interval_seconds: Delay between scheduler passes in `build run`
        builder_command: Command the subprocess executor runs per build
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    order_strategy: OrderStrategy = "dependencies"
    max_running_builds: int | None = None
    build_timeout_seconds: float = DEFAULT_BUILD_TIMEOUT_SECONDS
    build_retry_budget: int = DEFAULT_BUILD_RETRY_BUDGET
    poll_interval_seconds: float = 1.0
    builder_command: tuple[str, ...] = ()

    @field_validator("max_running_builds")
    @classmethod
    def validate_max_running_builds(cls, v: int | None) -> int | None:
        if v is not None and v < 1:
            raise ValueError("must be at least 1")
        return v

    @field_validator("build_timeout_seconds", "poll_interval_seconds")
    @classmethod
    def validate_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("must be greater than 0")
        return v

    @field_validator("build_retry_budget")
    @classmethod
    def validate_retry_budget(cls, v: int) -> int:
        if v < 1:
            raise ValueError("must be at least 1")
        return v


def extract_validation_errors(exc: ValidationError) -> list[str]:
    """Human-readable messages from a pydantic validation error."""
    errors: list[str] = []
    for error in exc.errors():
        loc = error.get("loc", ())
        msg = error.get("msg", "validation error")
        field_path = ".".join(str(part) for part in loc)
        if not field_path:
            errors.append(msg)
        elif error.get("type") == "missing":
            errors.append(f"Missing required field: {field_path}")
        else:
            errors.append(f"Field '{field_path}' {msg}")
    return errors


def platform_config_path(root: Path) -> Path:
    return root / CONFIG_DIR_NAME / PLATFORM_CONFIG_FILE_NAME


def load_platform_config(root: Path) -> PlatformConfig:
    """Load the platform config under ``root``, falling back to defaults.

    Raises:
        PlatformConfigError: If the file is not valid TOML or fails validation
    """
    path = platform_config_path(root)
    if not path.exists():
        logger.debug("No platform config at %s, using defaults", path)
        return PlatformConfig()

    try:
        data = tomllib.loads(path.read_text(encoding="utf-8"))
    except tomllib.TOMLDecodeError as e:
        raise PlatformConfigError(str(path), [str(e)]) from e

    build_section = data.get("build", {})
    if not isinstance(build_section, dict):
        raise PlatformConfigError(str(path), ["[build] must be a table"])

    try:
        return PlatformConfig.model_validate(build_section)
    except ValidationError as e:
        raise PlatformConfigError(str(path), extract_validation_errors(e)) from e

"""Parsing and validation of build request files.

A request file lists the kits to build:

    [[requests]]
    name = "kit-orders"
    namespace = "default"
    dependencies = ["camel:http", "mvn:org.acme:orders:1.0"]
    runtime_version = "3.2.0"
    priority = 1
    order_strategy = "fifo"        # optional, overrides the platform
    base_image = "registry..."     # optional, disables incremental reuse

    [requests.build_properties]
    "quarkus.native" = "false"
"""

import tomllib
from dataclasses import dataclass
from pathlib import Path

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from kitsmith import KITSMITH_VERSION
from kitsmith.core.fingerprint import normalize_properties
from kitsmith.core.platform_config import extract_validation_errors
from kitsmith.core.scheduler.types import BuildRequest, BuildStrategy, OrderStrategy


class BuildRequestEntry(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str
    namespace: str = "default"
    dependencies: tuple[str, ...] = ()
    build_properties: dict[str, str] = {}
    runtime_version: str
    version: str = KITSMITH_VERSION
    priority: int = 0
    order_strategy: OrderStrategy | None = None
    base_image: str | None = None

    @field_validator("name", "namespace", "runtime_version")
    @classmethod
    def validate_not_empty(cls, v: str) -> str:
        if not v:
            raise ValueError("must not be empty")
        return v

    def to_request(self) -> BuildRequest:
        return BuildRequest(
            namespace=self.namespace,
            name=self.name,
            dependencies=frozenset(self.dependencies),
            build_properties=normalize_properties(self.build_properties),
            runtime_version=self.runtime_version,
            version=self.version,
            priority=self.priority,
            strategy=BuildStrategy(
                order_strategy=self.order_strategy,
                base_image=self.base_image,
            ),
        )


class BuildRequestFile(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    requests: tuple[BuildRequestEntry, ...]


@dataclass(frozen=True)
class RequestFileResult:
    """Outcome of loading a request file.

    Exactly one of ``requests`` (on success) or ``errors`` is non-empty.
    """

    requests: tuple[BuildRequest, ...]
    errors: tuple[str, ...]


def load_request_file(path: Path) -> RequestFileResult:
    try:
        data = tomllib.loads(path.read_text(encoding="utf-8"))
    except tomllib.TOMLDecodeError as e:
        return RequestFileResult(requests=(), errors=(f"Invalid TOML: {e}",))

    try:
        parsed = BuildRequestFile.model_validate(data)
    except ValidationError as e:
        return RequestFileResult(requests=(), errors=tuple(extract_validation_errors(e)))

    if not parsed.requests:
        return RequestFileResult(requests=(), errors=("No [[requests]] entries found",))

    keys = [f"{entry.namespace}/{entry.name}" for entry in parsed.requests]
    duplicates = sorted({key for key in keys if keys.count(key) > 1})
    if duplicates:
        return RequestFileResult(
            requests=(),
            errors=tuple(f"Duplicate request: {key}" for key in duplicates),
        )

    return RequestFileResult(
        requests=tuple(entry.to_request() for entry in parsed.requests),
        errors=(),
    )

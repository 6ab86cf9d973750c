"""Tests for build request file loading."""

from pathlib import Path

from kitsmith.cli.commands.build.requests_file import load_request_file
from kitsmith.core.scheduler.types import BuildStrategy


def _load(tmp_path: Path, content: str):
    path = tmp_path / "requests.toml"
    path.write_text(content, encoding="utf-8")
    return load_request_file(path)


def test_loads_requests_with_defaults(tmp_path: Path) -> None:
    """Omitted request fields take their defaults."""
    result = _load(
        tmp_path,
        """
[[requests]]
name = "orders"
dependencies = ["mvn:org.acme:orders:1.0", "camel:http"]
runtime_version = "3.2.0"

[requests.build_properties]
"quarkus.native" = "false"
"a.first" = "1"
""",
    )

    assert result.errors == ()
    [request] = result.requests
    assert request.key == "default/orders"
    assert request.dependencies == frozenset({"camel:http", "mvn:org.acme:orders:1.0"})
    assert request.build_properties == (("a.first", "1"), ("quarkus.native", "false"))
    assert request.version == "0.1.0"
    assert request.priority == 0
    assert request.strategy == BuildStrategy()


def test_strategy_overrides(tmp_path: Path) -> None:
    """Per-request strategy fields are loaded into BuildStrategy."""
    result = _load(
        tmp_path,
        """
[[requests]]
name = "pinned"
namespace = "team-a"
runtime_version = "3.2.0"
priority = 4
order_strategy = "sequential"
base_image = "registry.test/builder@sha256:abc"
""",
    )

    [request] = result.requests
    assert request.namespace == "team-a"
    assert request.priority == 4
    assert request.strategy == BuildStrategy(
        order_strategy="sequential",
        base_image="registry.test/builder@sha256:abc",
    )


def test_invalid_toml(tmp_path: Path) -> None:
    """Unparseable TOML is reported."""
    result = _load(tmp_path, "[[requests]\n")

    assert result.requests == ()
    assert result.errors[0].startswith("Invalid TOML:")


def test_unknown_strategy_is_rejected(tmp_path: Path) -> None:
    """Only known order strategies are accepted."""
    result = _load(
        tmp_path,
        """
[[requests]]
name = "x"
runtime_version = "3.2.0"
order_strategy = "random"
""",
    )

    assert result.requests == ()
    assert any("order_strategy" in error for error in result.errors)


def test_unknown_field_is_rejected(tmp_path: Path) -> None:
    """Unknown request fields are rejected."""
    result = _load(
        tmp_path,
        """
[[requests]]
name = "x"
runtime_version = "3.2.0"
colour = "blue"
""",
    )

    assert result.requests == ()
    assert any("colour" in error for error in result.errors)


def test_empty_name_is_rejected(tmp_path: Path) -> None:
    """A request name must not be empty."""
    result = _load(tmp_path, '[[requests]]\nname = ""\nruntime_version = "3.2.0"\n')

    assert any("must not be empty" in error for error in result.errors)


def test_missing_requests(tmp_path: Path) -> None:
    """A file without requests is an error."""
    result = _load(tmp_path, "requests = []\n")

    assert result.errors == ("No [[requests]] entries found",)


def test_duplicate_requests(tmp_path: Path) -> None:
    """The same request key may appear only once."""
    result = _load(
        tmp_path,
        """
[[requests]]
name = "x"
runtime_version = "3.2.0"

[[requests]]
name = "x"
runtime_version = "3.3.0"
""",
    )

    assert result.errors == ("Duplicate request: default/x",)

"""Kit create command - register an externally built kit image."""

import re
from dataclasses import replace

import click

from kitsmith import KITSMITH_VERSION
from kitsmith.cli.ensure import Ensure
from kitsmith.core.context import KitsmithContext
from kitsmith.core.errors import GraphConsistencyError
from kitsmith.core.fingerprint import compute_fingerprint, normalize_properties
from kitsmith.core.kit import Artifact, kit_key
from kitsmith_shared.output.output import user_output

DEPENDENCY_PREFIXES = ("mvn:", "file:", "camel:")


def sanitize_name(name: str) -> str:
    """Lowercase ``name`` and replace anything but [a-z0-9.-] with dashes."""
    sanitized = re.sub(r"[^a-z0-9.-]+", "-", name.strip().lower())
    return sanitized.strip("-.")


def normalize_dependency(dependency: str) -> str | None:
    """Canonical form of a dependency, None if the scheme is unsupported.

    The "camel-foo" shorthand is rewritten to "camel:foo".
    """
    if dependency.startswith("camel-"):
        return "camel:" + dependency.removeprefix("camel-")
    if dependency.startswith(DEPENDENCY_PREFIXES):
        return dependency
    return None


def parse_property(item: str) -> tuple[str, str] | None:
    key, sep, value = item.partition("=")
    if not sep or not key:
        return None
    return key, value


@click.command("create")
@click.argument("name")
@click.option("--image", required=True, help="Digest-pinned image of the kit.")
@click.option("-d", "--dependency", "dependencies", multiple=True, help="Add a dependency.")
@click.option("-p", "--property", "properties", multiple=True, help="Add a KEY=VALUE property.")
@click.option("--runtime-version", required=True, help="Runtime catalog version of the kit.")
@click.option("--base", default=None, help="Name of the kit this image is layered on.")
@click.option("--priority", type=int, default=0, show_default=True, help="Reuse priority.")
@click.option("-n", "--namespace", default="default", show_default=True)
@click.pass_obj
def create_cmd(
    ctx: KitsmithContext,
    name: str,
    image: str,
    dependencies: tuple[str, ...],
    properties: tuple[str, ...],
    runtime_version: str,
    base: str | None,
    priority: int,
    namespace: str,
) -> None:
    """Register (or update) an external kit NAME backed by IMAGE."""
    kit_name = sanitize_name(name)
    Ensure.invariant(bool(kit_name), f"Invalid kit name: {name!r}")
    Ensure.invariant("@sha256:" in image, f"Image must be pinned by digest: {image}")

    resolved: set[str] = set()
    for dependency in dependencies:
        normalized = normalize_dependency(dependency)
        if normalized is None:
            Ensure.fail(
                f"Unsupported dependency {dependency!r} (expected mvn:, file:, camel: or camel-)"
            )
        resolved.add(normalized)

    parsed: list[tuple[str, str]] = []
    for item in properties:
        entry = parse_property(item)
        if entry is None:
            Ensure.fail(f"Property must be KEY=VALUE: {item!r}")
        parsed.append(entry)
    build_properties = normalize_properties(parsed)

    graph = ctx.load_graph()
    existing = graph.get(kit_key(namespace, kit_name))
    if existing is not None and existing.kit_type == "platform":
        Ensure.fail(f'kit "{kit_name}" is not editable')

    base_image: str | None = None
    if base is not None:
        Ensure.invariant(base != kit_name, "A kit cannot be its own base")
        base_kit = Ensure.not_none(
            graph.get(kit_key(namespace, base)), f"Base kit not found: {namespace}/{base}"
        )
        base_image = base_kit.image

    artifact = Artifact(
        namespace=namespace,
        name=kit_name,
        dependencies=frozenset(resolved),
        build_properties=build_properties,
        runtime_version=runtime_version,
        version=KITSMITH_VERSION,
        fingerprint=compute_fingerprint(resolved, build_properties, runtime_version),
        base_name=base,
        base_image=base_image,
        image=image,
        used=False,
        phase="Ready",
        priority=priority,
        kit_type="external",
        created_at=ctx.time.now(),
    )

    try:
        with graph.mutation():
            if existing is None:
                graph.add_artifact(artifact)
            else:
                graph.replace_artifact(replace(artifact, created_at=existing.created_at))
    except GraphConsistencyError as e:
        Ensure.fail(str(e))
    ctx.save_graph(graph)

    verb = "created" if existing is None else "updated"
    user_output(f'kit "{kit_name}" {verb}')

"""Text rendering of garbage collection plans and results."""

from kitsmith.core.gc.types import GcFailure, PruneResult, SquashResult

NOTHING_TO_DO = "Nothing to do"
ARTIFACTS_DELETED_HEADER = "The following Artifacts will be deleted"
IMAGES_DELETED_HEADER = "The following Images will no longer be used and can be deleted"
ARTIFACTS_SQUASHED_HEADER = "The following Artifacts will be squashed"
INTEGRATIONS_REDEPLOYED_HEADER = "The following Integrations will be redeployed"


def _describe_kit(key: str) -> str:
    namespace, _, name = key.partition("/")
    return f"{name} in namespace: {namespace}"


def prune_report_lines(result: PruneResult) -> list[str]:
    if result.nothing_to_do:
        return [NOTHING_TO_DO]
    lines: list[str] = []
    if result.artifacts_to_delete:
        lines.append(f"{ARTIFACTS_DELETED_HEADER}:")
        lines.extend(f"  {_describe_kit(key)}" for key in result.artifacts_to_delete)
    if result.images_to_delete:
        if lines:
            lines.append("")
        lines.append(f"{IMAGES_DELETED_HEADER}:")
        lines.extend(f"  {image}" for image in result.images_to_delete)
    return lines


def squash_report_lines(result: SquashResult) -> list[str]:
    if result.nothing_to_do:
        return [NOTHING_TO_DO]
    lines = [f"{ARTIFACTS_SQUASHED_HEADER}:"]
    for chain in result.chains:
        members = ", ".join(_describe_kit(key) for key in chain.members)
        lines.append(f"  {members} into {_describe_kit(chain.leaf)}")
    if result.redeployed:
        lines.append("")
        lines.append(f"{INTEGRATIONS_REDEPLOYED_HEADER}:")
        lines.extend(f"  {_describe_kit(key)}" for key in result.redeployed)
    return lines


def failure_lines(failures: tuple[GcFailure, ...]) -> list[str]:
    return [f"  {failure.target}: {failure.reason}" for failure in failures]

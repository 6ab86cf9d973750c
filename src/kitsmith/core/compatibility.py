"""Catalog compatibility checks, cached per runtime version."""

import logging
import threading
from dataclasses import dataclass

from kitsmith_shared.gateway.catalog.abc import CatalogInspector

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CompatibilityRecord:
    runtime_version: str
    ok: bool
    message: str


class CompatibilityGate:
    """Decides whether builds for a runtime version can run at all.

    The first check for a version asks the catalog; the answer is reused
    until ``invalidate`` is called for that version.
    """

    def __init__(self, catalog: CatalogInspector) -> None:
        self._catalog = catalog
        self._lock = threading.Lock()
        self._records: dict[str, CompatibilityRecord] = {}

    def check_compatible(self, runtime_version: str) -> CompatibilityRecord:
        with self._lock:
            cached = self._records.get(runtime_version)
            if cached is not None:
                return cached
            status = self._catalog.builder_image_status(runtime_version=runtime_version)
            record = CompatibilityRecord(
                runtime_version=runtime_version,
                ok=status.available,
                message=status.message,
            )
            self._records[runtime_version] = record
            if not record.ok:
                logger.warning(
                    "Catalog %s is not compatible: %s", runtime_version, record.message
                )
            return record

    def invalidate(self, runtime_version: str) -> None:
        with self._lock:
            self._records.pop(runtime_version, None)

    def invalidate_all(self) -> None:
        with self._lock:
            self._records.clear()

    def rejection_reason(self, record: CompatibilityRecord) -> str:
        return (
            f"builder image missing for catalog version {record.runtime_version}: "
            f"{record.message}"
        )

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class BuilderImageStatus:
    """Whether a runtime catalog can produce a working builder image.

    Attributes:
        available: True if a builder image exists for the catalog
        message: Diagnostic text (image name when available, cause otherwise)
    """

    available: bool
    message: str


class CatalogInspector(ABC):
    @abstractmethod
    def builder_image_status(self, *, runtime_version: str) -> BuilderImageStatus: ...

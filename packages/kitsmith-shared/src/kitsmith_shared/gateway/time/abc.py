from abc import ABC, abstractmethod
from datetime import datetime


class Time(ABC):
    """Abstract clock used for build timeouts and artifact timestamps."""

    @abstractmethod
    def now(self) -> datetime:
        """Return the current timezone-aware time."""
        ...

    @abstractmethod
    def sleep(self, seconds: float) -> None:
        """Block for the given number of seconds."""
        ...

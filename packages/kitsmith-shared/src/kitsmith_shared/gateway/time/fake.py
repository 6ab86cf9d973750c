from datetime import UTC, datetime, timedelta

from kitsmith_shared.gateway.time.abc import Time

DEFAULT_FAKE_TIME = datetime(2024, 1, 15, 14, 30, 0, tzinfo=UTC)


class FakeTime(Time):
    """Deterministic clock that only moves when told to.

    ``sleep`` advances the clock instead of blocking and records the
    requested duration so tests can assert on polling behavior.
    """

    def __init__(self, current_time: datetime | None = None) -> None:
        self._current_time = current_time if current_time is not None else DEFAULT_FAKE_TIME
        self._sleep_calls: list[float] = []

    def now(self) -> datetime:
        return self._current_time

    def sleep(self, seconds: float) -> None:
        self._sleep_calls.append(seconds)
        self._current_time = self._current_time + timedelta(seconds=seconds)

    def advance(self, seconds: float) -> None:
        """Move the clock forward without recording a sleep."""
        self._current_time = self._current_time + timedelta(seconds=seconds)

    @property
    def sleep_calls(self) -> list[float]:
        return list(self._sleep_calls)

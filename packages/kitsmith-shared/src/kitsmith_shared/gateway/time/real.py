import time
from datetime import UTC, datetime

from kitsmith_shared.gateway.time.abc import Time


class RealTime(Time):
    def now(self) -> datetime:
        return datetime.now(UTC)

    def sleep(self, seconds: float) -> None:
        time.sleep(seconds)

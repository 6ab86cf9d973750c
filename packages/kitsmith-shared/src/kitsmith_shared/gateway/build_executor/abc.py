from abc import ABC, abstractmethod

from kitsmith_shared.gateway.build_executor.types import BuildJob, JobStartResult, JobStatus


class BuildExecutor(ABC):
    """Abstract out-of-process build executor.

    None of these methods may block while a build runs.
    """

    @abstractmethod
    def start(self, *, job: BuildJob) -> JobStartResult: ...

    @abstractmethod
    def poll(self, *, namespace: str, build_name: str) -> JobStatus: ...

    @abstractmethod
    def cancel(self, *, namespace: str, build_name: str) -> None: ...

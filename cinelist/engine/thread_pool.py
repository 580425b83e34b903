"""Per-stage thread pools so each stage's parallelism is tuned on its own."""

from __future__ import annotations

from concurrent.futures import Future, ThreadPoolExecutor
from threading import Lock
from typing import Any, Callable, Dict


class WorkerPools:
    """Manage one executor per pipeline stage."""

    def __init__(self, prefix: str = "cinelist") -> None:
        self.prefix = prefix
        self._executors: Dict[str, ThreadPoolExecutor] = {}
        self._lock = Lock()

    def get(self, stage: str, max_workers: int) -> ThreadPoolExecutor:
        with self._lock:
            if stage not in self._executors:
                self._executors[stage] = ThreadPoolExecutor(
                    max_workers=max(max_workers, 1), thread_name_prefix=f"{self.prefix}-{stage}"
                )
            return self._executors[stage]

    def spawn(
        self, stage: str, workers: int, target: Callable[..., Any], *args: Any
    ) -> list[Future[Any]]:
        """Start ``workers`` copies of ``target`` on the stage's executor."""

        workers = max(workers, 1)
        executor = self.get(stage, workers)
        return [executor.submit(target, *args) for _ in range(workers)]

    def shutdown(self, wait: bool = True) -> None:
        with self._lock:
            for executor in self._executors.values():
                executor.shutdown(wait=wait)
            self._executors.clear()


__all__ = ["WorkerPools"]

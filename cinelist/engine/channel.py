"""Bounded hand-off queues between pipeline stages."""

from __future__ import annotations

import queue
from typing import Generic, Iterator, TypeVar

T = TypeVar("T")

_END_OF_STREAM = object()


class Channel(Generic[T]):
    """FIFO with a fixed capacity; ``put`` blocks when full, iteration blocks when empty.

    Writers never close a channel themselves. Once every writer has returned,
    the owner calls :meth:`close` with the number of readers so that each
    reader receives its own end-of-stream marker.
    """

    def __init__(self, name: str, capacity: int = 0) -> None:
        self.name = name
        self.capacity = max(capacity, 0)
        self._queue: queue.Queue[object] = queue.Queue(maxsize=self.capacity)
        self._closed = False

    def put(self, item: T) -> None:
        if self._closed:
            raise RuntimeError(f"Channel {self.name} is closed")
        self._queue.put(item)

    def close(self, readers: int = 1) -> None:
        self._closed = True
        for _ in range(max(readers, 1)):
            self._queue.put(_END_OF_STREAM)

    @property
    def closed(self) -> bool:
        return self._closed

    def qsize(self) -> int:
        return self._queue.qsize()

    def __iter__(self) -> Iterator[T]:
        while True:
            item = self._queue.get()
            if item is _END_OF_STREAM:
                return
            yield item  # type: ignore[misc]


__all__ = ["Channel"]

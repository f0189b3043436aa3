"""Bounded many-producer / one-consumer channel with a completion signal."""

from __future__ import annotations

import logging
import queue
import threading
from typing import Generic, Iterator, Optional, TypeVar

from scripts.inventory.errors import ChannelClosedError

logger = logging.getLogger("inventory.channel")

T = TypeVar("T")

_CLOSED = object()


class RecordChannel(Generic[T]):
    """A bounded queue that knows when its last producer has finished.

    Producers call :meth:`register` before they start and :meth:`done` when
    they will send nothing more. When the count of registered producers drops
    to zero, receivers see the end of the stream once the buffer is drained.
    A full channel blocks :meth:`send` until the consumer catches up.
    """

    def __init__(self, capacity: int = 100, poll_interval: float = 0.1) -> None:
        if capacity < 1:
            raise ValueError("channel capacity must be at least 1")
        self.capacity = capacity
        self._queue: queue.Queue = queue.Queue(maxsize=capacity)
        self._poll_interval = poll_interval
        self._lock = threading.Lock()
        self._producers = 0
        self._drained = False
        self._aborted = threading.Event()

    @property
    def producers(self) -> int:
        with self._lock:
            return self._producers

    @property
    def closed(self) -> bool:
        return self._aborted.is_set() or self._drained

    def register(self) -> None:
        with self._lock:
            if self._aborted.is_set():
                raise ChannelClosedError("channel was closed")
            self._producers += 1

    def done(self) -> None:
        """Mark one producer finished. The last one closes the stream."""
        with self._lock:
            if self._producers <= 0:
                raise RuntimeError("done() called more times than register()")
            self._producers -= 1
            last = self._producers == 0
        if last:
            try:
                self._put(_CLOSED)
            except ChannelClosedError:
                logger.debug("Channel aborted before the last producer finished")

    def send(self, item: T) -> None:
        """Block until there is room for ``item``.

        Raises ChannelClosedError if the consumer closed the channel.
        """
        if item is _CLOSED:
            raise ValueError("cannot send the close marker")
        self._put(item)

    def receive(self, timeout: Optional[float] = None) -> T:
        """Next item; ChannelClosedError once every producer is done.

        Raises queue.Empty if ``timeout`` expires first.
        """
        if self._drained or self._aborted.is_set():
            raise ChannelClosedError("channel is closed")
        item = self._queue.get(timeout=timeout)
        if item is _CLOSED:
            self._drained = True
            raise ChannelClosedError("all producers finished")
        return item

    def __iter__(self) -> Iterator[T]:
        while True:
            try:
                yield self.receive()
            except ChannelClosedError:
                return

    def close(self) -> None:
        """Abort the channel and release producers blocked on a full buffer."""
        self._aborted.set()
        while True:
            try:
                self._queue.get_nowait()
            except queue.Empty:
                break

    def _put(self, item: object) -> None:
        while True:
            if self._aborted.is_set():
                raise ChannelClosedError("channel was closed by the consumer")
            try:
                self._queue.put(item, timeout=self._poll_interval)
                return
            except queue.Full:
                continue

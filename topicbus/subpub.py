"""An in-process publish/subscribe bus with one delivery thread per subscriber."""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Dict, Optional

from topicbus.queue import QueueClosedError, QueueIterator, SelfCleaningQueue

MessageHandler = Callable[[Any], None]

logger = logging.getLogger(__name__)


class SubPubClosedError(Exception):
    """Raised by publish and subscribe once the bus has been closed."""


class Subscription:
    """Handle for an active subscription."""

    def __init__(self, stop: threading.Event) -> None:
        self._stop = stop

    @property
    def active(self) -> bool:
        return not self._stop.is_set()

    def unsubscribe(self) -> None:
        """Stop delivering messages to this subscriber. Idempotent."""
        self._stop.set()


class SubPub:
    """Topic-based message bus.

    Each subscriber receives, in order, every message published to its
    subject after it subscribed. A slow subscriber never blocks publishers
    or other subscribers.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._topics: Dict[str, SelfCleaningQueue[Any]] = {}
        self._closed = False
        self._active = 0
        self._idle = threading.Condition()

    def __enter__(self) -> SubPub:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _queue_for(self, subject: str) -> SelfCleaningQueue[Any]:
        # Caller must hold self._lock.
        if self._closed:
            raise SubPubClosedError("SubPub already closed")
        queue = self._topics.get(subject)
        if queue is None:
            queue = SelfCleaningQueue()
            self._topics[subject] = queue
        return queue

    def publish(self, subject: str, msg: Any) -> None:
        """Publish a message to a subject; never waits for subscribers."""
        with self._lock:
            queue = self._queue_for(subject)
        try:
            queue.push(msg)
        except QueueClosedError as exc:
            raise SubPubClosedError("SubPub already closed") from exc

    def subscribe(self, subject: str, callback: MessageHandler) -> Subscription:
        """Start delivering messages published to the subject to the callback."""
        stop = threading.Event()
        with self._lock:
            queue = self._queue_for(subject)
            try:
                iterator = queue.end()
            except QueueClosedError as exc:
                raise SubPubClosedError("SubPub already closed") from exc
            with self._idle:
                self._active += 1
        thread = threading.Thread(
            target=self._deliver,
            args=(iterator, stop, callback),
            name=f"subscriber:{subject}",
            daemon=True,
        )
        thread.start()
        return Subscription(stop)

    def close(self, timeout: Optional[float] = None) -> None:
        """Close the bus and wait for subscribers to drain pending messages.

        Raises TimeoutError if delivery has not finished within the timeout;
        delivery then carries on in the background.
        """
        with self._lock:
            if not self._closed:
                self._closed = True
                for queue in self._topics.values():
                    queue.close()
        with self._idle:
            if not self._idle.wait_for(lambda: self._active == 0, timeout):
                raise TimeoutError("timed out waiting for subscribers to finish")

    def _deliver(
        self,
        iterator: QueueIterator[Any],
        stop: threading.Event,
        callback: MessageHandler,
    ) -> None:
        try:
            while not stop.is_set():
                try:
                    msg = next(iterator)
                except StopIteration:
                    return
                if stop.is_set():
                    return
                try:
                    callback(msg)
                except Exception:
                    logger.exception("subscriber callback failed")
        finally:
            with self._idle:
                self._active -= 1
                if self._active == 0:
                    self._idle.notify_all()
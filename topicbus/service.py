"""Transport-independent PubSub service handlers and logger setup."""

from __future__ import annotations

import enum
import logging
import queue
import sys
import threading
from typing import Any, Callable

from topicbus.subpub import SubPub

EVENT_BUFFER_SIZE = 128
_POLL_INTERVAL = 0.05

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
}


class StatusCode(enum.IntEnum):
    OK = 0
    CANCELLED = 1
    UNKNOWN = 2
    INVALID_ARGUMENT = 3
    DEADLINE_EXCEEDED = 4
    NOT_FOUND = 5
    ALREADY_EXISTS = 6
    PERMISSION_DENIED = 7
    RESOURCE_EXHAUSTED = 8
    FAILED_PRECONDITION = 9
    ABORTED = 10
    OUT_OF_RANGE = 11
    UNIMPLEMENTED = 12
    INTERNAL = 13
    UNAVAILABLE = 14
    DATA_LOSS = 15
    UNAUTHENTICATED = 16


class StatusError(Exception):
    """An error carrying an RPC status code."""

    def __init__(self, code: StatusCode, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message

    def __str__(self) -> str:
        return f"{self.code.name}: {self.message}"


def setup_logger(level: str) -> logging.Logger:
    """Return the server logger writing to stdout at the named level.

    Known levels are debug, info, warn and error; anything else means info.
    """
    log = logging.getLogger("topicbus.server")
    log.setLevel(_LEVELS.get(level, logging.INFO))
    for handler in list(log.handlers):
        log.removeHandler(handler)
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        logging.Formatter("time=%(asctime)s level=%(levelname)s msg=%(message)s")
    )
    log.addHandler(handler)
    log.propagate = False
    return log


class PubSubService:
    """Handlers for the Publish and Subscribe calls on top of a SubPub bus."""

    def __init__(self, log: logging.Logger, subpub: SubPub) -> None:
        self._log = log
        self._subpub = subpub

    def publish(self, key: str, data: str) -> None:
        """Publish data under key."""
        if not key:
            raise StatusError(StatusCode.INVALID_ARGUMENT, "key cannot be empty")
        self._log.debug("Publishing message key=%s data_len=%d", key, len(data))
        try:
            self._subpub.publish(key, data)
        except Exception as exc:
            self._log.error("Publish failed key=%s error=%s", key, exc)
            raise StatusError(
                StatusCode.INTERNAL, f"failed to publish message: {exc}"
            ) from exc

    def subscribe(
        self,
        key: str,
        send: Callable[[str], Any],
        cancelled: threading.Event,
    ) -> None:
        """Stream events for key through send until cancelled is set.

        Returns normally when the client goes away: cancellation, or send
        raising EOFError, ConnectionError or an UNAVAILABLE status.
        """
        if not key:
            raise StatusError(StatusCode.INVALID_ARGUMENT, "key cannot be empty")

        self._log.info("New subscription request key=%s", key)
        events: queue.Queue[str] = queue.Queue(maxsize=EVENT_BUFFER_SIZE)

        def handler(msg: Any) -> None:
            if not isinstance(msg, str):
                self._log.error(
                    "Handler received unexpected type key=%s type=%s",
                    key,
                    type(msg).__name__,
                )
                return
            if cancelled.is_set():
                return
            try:
                events.put_nowait(msg)
            except queue.Full:
                self._log.warning(
                    "Event channel buffer full, dropping message key=%s", key
                )

        try:
            subscription = self._subpub.subscribe(key, handler)
        except Exception as exc:
            self._log.error("SubPub subscribe failed key=%s error=%s", key, exc)
            raise StatusError(StatusCode.INTERNAL, f"failed to subscribe: {exc}") from exc

        try:
            self._log.info("Subscription established key=%s", key)
            while True:
                if cancelled.is_set():
                    self._log.info("Client context done key=%s", key)
                    return
                try:
                    data = events.get(timeout=_POLL_INTERVAL)
                except queue.Empty:
                    continue
                try:
                    send(data)
                except (EOFError, ConnectionError) as exc:
                    self._log.error("Failed to send event key=%s error=%s", key, exc)
                    return
                except StatusError as exc:
                    self._log.error("Failed to send event key=%s error=%s", key, exc)
                    if exc.code == StatusCode.UNAVAILABLE:
                        return
                    raise StatusError(
                        StatusCode.INTERNAL, f"failed to send event: {exc}"
                    ) from exc
                except Exception as exc:
                    self._log.error("Failed to send event key=%s error=%s", key, exc)
                    raise StatusError(
                        StatusCode.INTERNAL, f"failed to send event: {exc}"
                    ) from exc
                self._log.debug("Event sent key=%s data_len=%d", key, len(data))
        finally:
            self._log.info("Unsubscribing client key=%s", key)
            subscription.unsubscribe()
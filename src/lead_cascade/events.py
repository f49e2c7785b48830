"""Progress events, the bounded channel that carries them, and SSE framing."""

from __future__ import annotations

import json
import logging
import queue
import threading
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from typing import Any, Union

from .models import Contact


@dataclass(frozen=True)
class ProgressUpdate:
    tier: str
    status: str
    found: int
    target: int
    current_source: str
    logs: list[str] = field(default_factory=list)

    terminal = False

    def to_payload(self) -> dict[str, Any]:
        return {
            "type": "progress",
            "tier": self.tier,
            "status": self.status,
            "found": self.found,
            "target": self.target,
            "currentSource": self.current_source,
            "logs": list(self.logs),
        }


@dataclass(frozen=True)
class CompleteEvent:
    contacts: list[Contact]
    total: int
    logs: list[str] = field(default_factory=list)

    terminal = True

    def to_payload(self) -> dict[str, Any]:
        return {
            "type": "complete",
            "contacts": [contact.to_dict() for contact in self.contacts],
            "total": self.total,
            "logs": list(self.logs),
        }


@dataclass(frozen=True)
class ErrorEvent:
    message: str
    logs: list[str] = field(default_factory=list)

    terminal = True

    def to_payload(self) -> dict[str, Any]:
        return {"type": "error", "message": self.message, "logs": list(self.logs)}


ProgressEvent = Union[ProgressUpdate, CompleteEvent, ErrorEvent]
EmitFn = Callable[[ProgressEvent], None]


def format_sse(event: ProgressEvent) -> str:
    """Frame one event as a server-sent ``data:`` message."""
    return f"data: {json.dumps(event.to_payload(), ensure_ascii=False)}\n\n"


class ProgressChannel:
    """Single-producer, single-consumer event queue with a bounded buffer.

    ``publish`` never waits for the consumer. When the buffer is full the
    oldest queued progress update is dropped; terminal events are always
    kept. Anything published after the terminal event is ignored.
    """

    def __init__(self, maxsize: int, logger: logging.Logger | None = None) -> None:
        self._queue: queue.Queue[ProgressEvent] = queue.Queue(maxsize=maxsize)
        self._lock = threading.Lock()
        self._terminated = False
        self._dropped = 0
        self._logger = logger

    @property
    def terminated(self) -> bool:
        return self._terminated

    @property
    def dropped(self) -> int:
        return self._dropped

    def publish(self, event: ProgressEvent) -> None:
        with self._lock:
            if self._terminated:
                return
            while True:
                try:
                    self._queue.put_nowait(event)
                    break
                except queue.Full:
                    if not event.terminal and self._queue.maxsize <= 1:
                        self._dropped += 1
                        return
                    self._discard_oldest()
            if event.terminal:
                self._terminated = True

    def _discard_oldest(self) -> None:
        try:
            self._queue.get_nowait()
        except queue.Empty:
            return
        self._dropped += 1
        if self._logger is not None:
            self._logger.debug("Progress buffer full; dropped oldest update")

    def get(self, timeout: float | None = None) -> ProgressEvent | None:
        try:
            return self._queue.get(timeout=timeout)
        except queue.Empty:
            return None


class RunHandle:
    """A run executing on its own thread, observed through its channel."""

    def __init__(
        self,
        target: Callable[[EmitFn, threading.Event], object],
        *,
        buffer_size: int,
        logger: logging.Logger,
    ) -> None:
        self.channel = ProgressChannel(buffer_size, logger=logger)
        self.cancel_event = threading.Event()
        self._target = target
        self._logger = logger
        self._thread = threading.Thread(target=self._run, name="lead-cascade-run", daemon=True)

    def start(self) -> "RunHandle":
        self._thread.start()
        return self

    def _run(self) -> None:
        try:
            self._target(self.channel.publish, self.cancel_event)
        except Exception as exc:
            self._logger.debug("Run ended with %s: %s", type(exc).__name__, exc)
            if not self.channel.terminated and not self.cancel_event.is_set():
                self.channel.publish(ErrorEvent(message=str(exc) or type(exc).__name__))
        finally:
            if not self.channel.terminated and not self.cancel_event.is_set():
                self.channel.publish(ErrorEvent(message="Run ended without a result"))

    def cancel(self) -> None:
        self.cancel_event.set()

    def join(self, timeout: float | None = None) -> None:
        self._thread.join(timeout)

    def events(self, poll_interval: float = 0.25) -> Iterator[ProgressEvent]:
        """Yield events in order until the terminal one. Closing early cancels the run."""
        finished = False
        try:
            while True:
                event = self.channel.get(timeout=poll_interval)
                if event is None:
                    if not self._thread.is_alive() and not self.channel.terminated:
                        return
                    continue
                yield event
                if event.terminal:
                    finished = True
                    return
        finally:
            if not finished:
                self.cancel()

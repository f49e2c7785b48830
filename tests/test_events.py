import json
import logging
import threading

from lead_cascade.events import (
    CompleteEvent,
    ErrorEvent,
    ProgressChannel,
    ProgressUpdate,
    RunHandle,
    format_sse,
)
from lead_cascade.models import Contact

LOGGER = logging.getLogger("test")


def _progress(found: int) -> ProgressUpdate:
    return ProgressUpdate(tier="Directory", status="searching", found=found, target=10, current_source="Dir")


def test_format_sse_frames_json_payload() -> None:
    frame = format_sse(_progress(3))
    assert frame.startswith("data: ")
    assert frame.endswith("\n\n")
    payload = json.loads(frame[len("data: ") :])
    assert payload == {
        "type": "progress",
        "tier": "Directory",
        "status": "searching",
        "found": 3,
        "target": 10,
        "currentSource": "Dir",
        "logs": [],
    }


def test_complete_payload_serializes_contacts() -> None:
    contact = Contact(identity_key="email:a@example.com", name="A", email="a@example.com", match_score=0.123456)
    payload = CompleteEvent(contacts=[contact], total=1, logs=["done"]).to_payload()
    assert payload["type"] == "complete"
    assert payload["total"] == 1
    assert payload["contacts"][0]["identityKey"] == "email:a@example.com"
    assert payload["contacts"][0]["matchScore"] == 0.1235
    assert ErrorEvent(message="bad").to_payload() == {"type": "error", "message": "bad", "logs": []}


def test_channel_drops_oldest_progress_when_full() -> None:
    channel = ProgressChannel(2, logger=LOGGER)
    for found in range(4):
        channel.publish(_progress(found))

    assert channel.dropped == 2
    first = channel.get(timeout=0)
    second = channel.get(timeout=0)
    assert isinstance(first, ProgressUpdate) and first.found == 2
    assert isinstance(second, ProgressUpdate) and second.found == 3
    assert channel.get(timeout=0) is None


def test_channel_always_keeps_terminal_event_and_ignores_later_ones() -> None:
    channel = ProgressChannel(2, logger=LOGGER)
    channel.publish(_progress(1))
    channel.publish(_progress(2))
    channel.publish(CompleteEvent(contacts=[], total=0))
    channel.publish(_progress(3))
    channel.publish(ErrorEvent(message="late"))

    events = [channel.get(timeout=0), channel.get(timeout=0), channel.get(timeout=0)]
    assert channel.terminated is True
    assert isinstance(events[0], ProgressUpdate)
    assert isinstance(events[1], CompleteEvent)
    assert events[2] is None


def test_run_handle_streams_events_in_order() -> None:
    def target(emit, cancel_event: threading.Event) -> None:
        _ = cancel_event
        emit(_progress(1))
        emit(_progress(2))
        emit(CompleteEvent(contacts=[], total=0))

    handle = RunHandle(target, buffer_size=8, logger=LOGGER).start()
    events = list(handle.events(poll_interval=0.05))
    handle.join(1)

    assert [type(event).__name__ for event in events] == ["ProgressUpdate", "ProgressUpdate", "CompleteEvent"]


def test_run_handle_reports_crash_as_error_event() -> None:
    def target(emit, cancel_event: threading.Event) -> None:
        _ = (emit, cancel_event)
        raise RuntimeError("adapter wiring broken")

    handle = RunHandle(target, buffer_size=8, logger=LOGGER).start()
    events = list(handle.events(poll_interval=0.05))

    assert len(events) == 1
    assert isinstance(events[0], ErrorEvent)
    assert events[0].message == "adapter wiring broken"


def test_closing_event_iterator_early_cancels_run() -> None:
    started = threading.Event()

    def target(emit, cancel_event: threading.Event) -> None:
        emit(_progress(1))
        started.set()
        cancel_event.wait(5)

    handle = RunHandle(target, buffer_size=8, logger=LOGGER).start()
    stream = handle.events(poll_interval=0.05)
    assert isinstance(next(stream), ProgressUpdate)
    stream.close()
    handle.join(2)

    assert handle.cancel_event.is_set()
    assert handle.channel.terminated is False

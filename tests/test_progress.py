from __future__ import annotations

from portfolio_generator.services.progress import ProgressEmitter, ProgressEvent


def _event(stage: str = "initializing", progress: int = 10) -> ProgressEvent:
    return ProgressEvent(stage=stage, progress=progress, request_id="req-1")


def test_subscribers_receive_events_after_subscribing() -> None:
    emitter = ProgressEmitter()
    received: list[str] = []
    emitter.emit(_event("initializing"))

    emitter.subscribe(lambda e: received.append(e.stage))
    emitter.emit(_event("templates_loaded", 20))

    assert received == ["templates_loaded"]


def test_unsubscribe_stops_delivery() -> None:
    emitter = ProgressEmitter()
    received: list[ProgressEvent] = []
    unsubscribe = emitter.subscribe(received.append)

    unsubscribe()
    emitter.emit(_event())

    assert received == []


def test_failing_observer_does_not_block_others() -> None:
    emitter = ProgressEmitter()
    received: list[ProgressEvent] = []

    def broken(event: ProgressEvent) -> None:
        raise RuntimeError("observer bug")

    emitter.subscribe(broken)
    emitter.emit(_event(), extra=received.append)

    assert len(received) == 1


def test_event_dict_omits_empty_detail() -> None:
    assert _event().to_dict() == {"stage": "initializing", "progress": 10, "request_id": "req-1"}

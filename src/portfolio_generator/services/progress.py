"""Fire-and-forget broadcast of generation progress.

Observers only see events emitted after they subscribe; nothing is queued or
replayed.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)

__all__ = ["ProgressEmitter", "ProgressEvent", "ProgressCallback", "STAGES"]

STAGES: dict[str, int] = {
    "initializing": 10,
    "templates_loaded": 20,
    "ai_content_generated": 70,
    "templates_compiled": 85,
    "complete": 100,
}


@dataclass(frozen=True)
class ProgressEvent:
    stage: str
    progress: int
    request_id: str
    detail: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "stage": self.stage,
            "progress": self.progress,
            "request_id": self.request_id,
            **({"detail": self.detail} if self.detail else {}),
        }


ProgressCallback = Callable[[ProgressEvent], None]


class ProgressEmitter:
    def __init__(self) -> None:
        self._observers: list[ProgressCallback] = []

    def subscribe(self, observer: ProgressCallback) -> Callable[[], None]:
        """Register *observer*; returns a function that unsubscribes it."""
        self._observers.append(observer)
        return lambda: self.unsubscribe(observer)

    def unsubscribe(self, observer: ProgressCallback) -> None:
        if observer in self._observers:
            self._observers.remove(observer)

    def emit(self, event: ProgressEvent, extra: ProgressCallback | None = None) -> None:
        """Deliver *event* to every observer, plus an optional per-request callback.

        A failing observer is logged and skipped so it cannot break generation.
        """
        targets = list(self._observers)
        if extra is not None:
            targets.append(extra)
        for observer in targets:
            try:
                observer(event)
            except Exception:
                logger.exception("Progress observer failed on %s", event.stage)

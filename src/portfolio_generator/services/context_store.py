"""Conversation contexts retained between generation calls.

Contexts expire ``ttl`` seconds after their last update and the least
recently used context is evicted once ``max_entries`` is exceeded.
"""

from __future__ import annotations

import logging
import threading
import time
import uuid
from collections import OrderedDict
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from portfolio_generator.models.generation import ChatMessage

logger = logging.getLogger(__name__)

__all__ = ["ContextStore", "ConversationContext"]


@dataclass
class ConversationContext:
    id: str
    messages: list[ChatMessage] = field(default_factory=list)
    total_tokens: int = 0
    created_at: str = field(default_factory=lambda: datetime.now(UTC).isoformat())
    updated_at: str = field(default_factory=lambda: datetime.now(UTC).isoformat())
    # Monotonic time of the last touch; drives expiry.
    last_touched: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "messages": [m.as_dict() for m in self.messages],
            "total_tokens": self.total_tokens,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


class ContextStore:
    def __init__(
        self,
        ttl: float = 3600.0,
        max_entries: int = 1000,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl = ttl
        self.max_entries = max_entries
        self._clock = clock
        self._contexts: OrderedDict[str, ConversationContext] = OrderedDict()
        self._lock = threading.Lock()

    def _expire(self, now: float) -> None:
        expired = [cid for cid, ctx in self._contexts.items() if now - ctx.last_touched > self.ttl]
        for cid in expired:
            del self._contexts[cid]
        if expired:
            logger.debug("Expired %d conversation contexts", len(expired))

    def create(self) -> ConversationContext:
        with self._lock:
            now = self._clock()
            self._expire(now)
            context = ConversationContext(id=uuid.uuid4().hex, last_touched=now)
            self._contexts[context.id] = context
            while len(self._contexts) > self.max_entries:
                self._contexts.popitem(last=False)
            return context

    def get(self, context_id: str) -> ConversationContext | None:
        with self._lock:
            now = self._clock()
            self._expire(now)
            context = self._contexts.get(context_id)
            if context is not None:
                context.last_touched = now
                self._contexts.move_to_end(context_id)
            return context

    def append(
        self,
        context_id: str,
        messages: Iterable[ChatMessage],
        tokens: int = 0,
    ) -> ConversationContext:
        """Append turns to a context and add to its token usage.

        Raises:
            KeyError: If the context does not exist or has expired.
        """
        with self._lock:
            now = self._clock()
            self._expire(now)
            context = self._contexts.get(context_id)
            if context is None:
                raise KeyError(context_id)
            context.messages.extend(messages)
            context.total_tokens += tokens
            context.updated_at = datetime.now(UTC).isoformat()
            context.last_touched = now
            self._contexts.move_to_end(context_id)
            return context

    def purge_expired(self) -> int:
        """Drop expired contexts now rather than on the next access."""
        with self._lock:
            before = len(self._contexts)
            self._expire(self._clock())
            return before - len(self._contexts)

    def __len__(self) -> int:
        return len(self._contexts)

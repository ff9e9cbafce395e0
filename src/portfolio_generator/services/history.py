"""In-memory record of completed generations."""

from __future__ import annotations

import logging
import threading
import uuid
from collections import deque
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from portfolio_generator.models.generation import GeneratedPortfolio, GenerationOptions
from portfolio_generator.models.portfolio import PortfolioData

logger = logging.getLogger(__name__)

__all__ = ["GenerationHistory", "GenerationRecord"]


@dataclass
class GenerationRecord:
    portfolio_data: PortfolioData
    options: GenerationOptions
    result: GeneratedPortfolio
    cost: dict[str, Any]
    metrics: dict[str, Any]
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    timestamp: str = field(default_factory=lambda: datetime.now(UTC).isoformat())

    def summary(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": self.timestamp,
            "name": self.portfolio_data.personal_info.name,
            "provider": self.result.metadata.provider,
            "style": self.options.style,
            "model": self.result.metadata.model,
            "cost": self.cost,
            "metrics": self.metrics,
        }


class GenerationHistory:
    """Capped history; the oldest inserted record is evicted first."""

    def __init__(self, max_entries: int = 100) -> None:
        self.max_entries = max_entries
        self._records: dict[str, GenerationRecord] = {}
        self._order: deque[str] = deque()
        self._lock = threading.Lock()

    def record(self, record: GenerationRecord) -> GenerationRecord:
        with self._lock:
            self._records[record.id] = record
            self._order.append(record.id)
            while len(self._order) > self.max_entries:
                oldest = self._order.popleft()
                self._records.pop(oldest, None)
                logger.debug("Evicted history record %s", oldest)
        return record

    def get(self, record_id: str) -> GenerationRecord | None:
        return self._records.get(record_id)

    def list(self) -> list[GenerationRecord]:
        """Records newest first."""
        with self._lock:
            return [self._records[rid] for rid in reversed(self._order)]

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, record_id: object) -> bool:
        return record_id in self._records

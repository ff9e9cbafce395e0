"""Bounded LRU cache of generated artifacts.

The key deliberately covers only the owner's name, the about text, the number
of projects and the provider/style/model triple. Two portfolios that differ
elsewhere (education, achievements, project text) share a cache entry.
"""

from __future__ import annotations

import hashlib
import json
import logging
import threading
from collections import OrderedDict
from dataclasses import dataclass

from portfolio_generator.models.generation import GeneratedPortfolio, GenerationOptions
from portfolio_generator.models.portfolio import PortfolioData

logger = logging.getLogger(__name__)

__all__ = ["CachedGeneration", "GenerationCache", "cache_key"]


@dataclass(frozen=True)
class CachedGeneration:
    portfolio: GeneratedPortfolio
    archive_filename: str | None = None


def cache_key(data: PortfolioData, options: GenerationOptions, provider: str | None = None) -> str:
    """Deterministic hash of the fields that identify a generation."""
    payload = {
        "name": data.personal_info.name,
        "about": data.about_me,
        "projectCount": len(data.projects),
        "provider": provider if provider is not None else options.provider,
        "style": options.style,
        "model": options.model,
    }
    encoded = json.dumps(payload, sort_keys=True, ensure_ascii=False)
    return hashlib.sha256(encoded.encode("utf-8")).hexdigest()


class GenerationCache:
    def __init__(self, max_size: int = 256) -> None:
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        self.max_size = max_size
        self._entries: OrderedDict[str, CachedGeneration] = OrderedDict()
        self._hits = 0
        self._misses = 0
        self._lock = threading.Lock()

    def get(self, key: str) -> CachedGeneration | None:
        with self._lock:
            value = self._entries.get(key)
            if value is None:
                self._misses += 1
                return None
            self._entries.move_to_end(key)
            self._hits += 1
            return value

    def put(self, key: str, value: CachedGeneration) -> None:
        with self._lock:
            self._entries[key] = value
            self._entries.move_to_end(key)
            while len(self._entries) > self.max_size:
                evicted, _ = self._entries.popitem(last=False)
                logger.debug("Evicted cache entry %s", evicted[:12])

    def clear(self) -> int:
        """Drop every entry and reset counters; return how many entries were removed."""
        with self._lock:
            removed = len(self._entries)
            self._entries.clear()
            self._hits = 0
            self._misses = 0
        logger.info("Cleared %d cached generations", removed)
        return removed

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def stats(self) -> dict[str, int | float]:
        with self._lock:
            lookups = self._hits + self._misses
            return {
                "size": len(self._entries),
                "max_size": self.max_size,
                "hits": self._hits,
                "misses": self._misses,
                "hit_rate": round(self._hits / lookups, 3) if lookups else 0.0,
            }

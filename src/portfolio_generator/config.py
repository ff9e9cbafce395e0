"""Runtime settings for the portfolio generator.

Values come from the process environment, optionally seeded from a ``.env``
file. Provider credentials are not part of these settings; the provider
registry reads them directly so that credential presence alone decides which
providers are available.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

_PROJECT_ROOT = Path(__file__).resolve().parents[2]


def _int(environ: Mapping[str, str], name: str, default: int) -> int:
    raw = environ.get(name)
    if raw is None or not raw.strip():
        return default
    return int(raw)


def _float(environ: Mapping[str, str], name: str, default: float) -> float:
    raw = environ.get(name)
    if raw is None or not raw.strip():
        return default
    return float(raw)


def _path(environ: Mapping[str, str], name: str, default: Path) -> Path:
    raw = environ.get(name)
    if raw:
        return Path(raw).expanduser().resolve()
    return default


@dataclass(frozen=True)
class GeneratorSettings:
    """Resource bounds and locations used by the generation service."""

    data_dir: Path
    output_dir: Path
    cache_size: int = 256
    history_size: int = 100
    context_ttl_seconds: float = 3600.0
    context_max_entries: int = 1000
    request_timeout: float = 120.0
    retry_attempts: int = 3
    retry_base_delay: float = 1.0
    retry_jitter: float = 1.0
    rate_limit_sweep_interval: float = 60.0
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> GeneratorSettings:
        """Build settings from ``environ`` (defaults to ``os.environ``)."""
        env = os.environ if environ is None else environ
        return cls(
            data_dir=_path(env, "PORTFOLIO_DATA_DIR", _PROJECT_ROOT / ".portfolio_data"),
            output_dir=_path(env, "PORTFOLIO_OUTPUT_DIR", _PROJECT_ROOT / ".portfolio_output"),
            cache_size=_int(env, "GENERATION_CACHE_SIZE", 256),
            history_size=_int(env, "GENERATION_HISTORY_SIZE", 100),
            context_ttl_seconds=_float(env, "CONTEXT_TTL_SECONDS", 3600.0),
            context_max_entries=_int(env, "CONTEXT_MAX_ENTRIES", 1000),
            request_timeout=_float(env, "LLM_REQUEST_TIMEOUT", 120.0),
            retry_attempts=_int(env, "LLM_RETRY_ATTEMPTS", 3),
            retry_base_delay=_float(env, "LLM_RETRY_BASE_DELAY", 1.0),
            retry_jitter=_float(env, "LLM_RETRY_JITTER", 1.0),
            rate_limit_sweep_interval=_float(env, "RATE_LIMIT_SWEEP_INTERVAL", 60.0),
            log_level=env.get("LOG_LEVEL", "INFO").upper(),
        )

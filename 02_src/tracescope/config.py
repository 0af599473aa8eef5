"""Project-level configuration and path helpers."""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Union

PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
DATA_DIR = PROJECT_ROOT / "03_data"
LOGS_DIR = PROJECT_ROOT / "04_logs"
DEFAULT_DB_PATH = DATA_DIR / "traces.db"
DEFAULT_LOG_PATH = LOGS_DIR / "tracescope.log"

DEFAULT_MAX_EVENTS_PER_PROCESS = 10_000
DEFAULT_QUEUE_SIZE = 10_000
DEFAULT_MAX_SNAPSHOT_BYTES = 1024 * 1024


PathLike = Union[str, Path]


def resolve_db_path(env_value: PathLike | None = None) -> PathLike:
    """Resolve TRACE_DB_PATH to an absolute path."""
    if not env_value:
        return DEFAULT_DB_PATH

    if str(env_value) == ":memory:":
        return ":memory:"

    candidate = Path(env_value)
    return candidate if candidate.is_absolute() else PROJECT_ROOT / candidate


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


@dataclass
class EngineConfig:
    """Runtime settings for a TraceEngine."""

    db_path: PathLike | None = None  # None keeps the store in memory only
    max_events_per_process: int = DEFAULT_MAX_EVENTS_PER_PROCESS  # 0 = unbounded
    queue_size: int = DEFAULT_QUEUE_SIZE
    max_snapshot_bytes: int = DEFAULT_MAX_SNAPSHOT_BYTES  # 0 = unbounded
    log_level: str = "INFO"
    log_file: PathLike = DEFAULT_LOG_PATH
    api_host: str = "localhost"
    api_port: int = 8000

    @classmethod
    def from_env(cls) -> "EngineConfig":
        """Build config from TRACE_*, LOG_LEVEL and API_* environment variables."""
        raw_db_path = os.getenv("TRACE_DB_PATH")
        return cls(
            db_path=resolve_db_path(raw_db_path) if raw_db_path else None,
            max_events_per_process=_int_env(
                "TRACE_MAX_EVENTS_PER_PROCESS", DEFAULT_MAX_EVENTS_PER_PROCESS
            ),
            queue_size=_int_env("TRACE_QUEUE_SIZE", DEFAULT_QUEUE_SIZE),
            max_snapshot_bytes=_int_env(
                "TRACE_MAX_SNAPSHOT_BYTES", DEFAULT_MAX_SNAPSHOT_BYTES
            ),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_file=os.getenv("TRACE_LOG_FILE") or DEFAULT_LOG_PATH,
            api_host=os.getenv("API_HOST", "localhost"),
            api_port=_int_env("API_PORT", 8000),
        )

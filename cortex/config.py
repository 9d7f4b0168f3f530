"""Configuration for cortex services.

Defaults live on the dataclasses; load_config() overlays CORTEX_* environment
variables on top of them.
"""

import logging
import os
from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path
from typing import Optional

from cortex.types import FailureSeverity

logger = logging.getLogger(__name__)

DEFAULT_DB_FILENAME = "cortex.db"


@dataclass
class DecayConfig:
    """How distilled memories go stale and when they are removed."""

    decay_rate: float = 0.05  # subtracted from decay_factor per elapsed interval
    decay_interval: timedelta = timedelta(hours=24)
    deletion_threshold: float = 0.2  # confidence / effective strength floor
    decay_factor_threshold: float = 0.1


@dataclass
class MemoryConfig:
    duplicate_threshold: float = 0.8
    reinforcement_boost: float = 0.1
    max_confidence: float = 1.0
    default_confidence: float = 0.5
    default_similarity_threshold: float = 0.5
    decay: DecayConfig = field(default_factory=DecayConfig)


@dataclass
class FailureConfig:
    duplicate_threshold: float = 0.8
    blocking_threshold: float = 0.7
    default_severity: FailureSeverity = FailureSeverity.SOFT


@dataclass
class EngineConfig:
    default_memory_limit: int = 10
    default_min_confidence: float = 0.3
    default_similarity_threshold: float = 0.5


@dataclass
class CortexConfig:
    memory: MemoryConfig = field(default_factory=MemoryConfig)
    failure: FailureConfig = field(default_factory=FailureConfig)
    engine: EngineConfig = field(default_factory=EngineConfig)
    db_path: Optional[Path] = None
    log_level: str = "WARNING"


def get_cortex_home() -> Path:
    """Data directory: $CORTEX_HOME, else ~/.cortex."""
    env_home = os.environ.get("CORTEX_HOME")
    if env_home:
        return Path(env_home).expanduser()
    return Path.home() / ".cortex"


def _env_float(name: str, default: float, unit_interval: bool = False) -> float:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}")
    if unit_interval and not 0.0 <= value <= 1.0:
        raise ValueError(f"{name} must be between 0 and 1, got {value}")
    return value


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")
    if value < 1:
        raise ValueError(f"{name} must be >= 1, got {value}")
    return value


def load_config() -> CortexConfig:
    """Build a CortexConfig from defaults and CORTEX_* environment variables.

    Priority: environment variables > defaults.

    Raises:
        ValueError: If a variable holds a malformed or out-of-range value.
    """
    defaults = CortexConfig()

    decay = DecayConfig(
        decay_rate=_env_float("CORTEX_DECAY_RATE", defaults.memory.decay.decay_rate, True),
        decay_interval=timedelta(
            hours=_env_float(
                "CORTEX_DECAY_INTERVAL_HOURS",
                defaults.memory.decay.decay_interval.total_seconds() / 3600,
            )
        ),
        deletion_threshold=_env_float(
            "CORTEX_DELETION_THRESHOLD", defaults.memory.decay.deletion_threshold, True
        ),
    )
    if decay.decay_interval <= timedelta(0):
        raise ValueError("CORTEX_DECAY_INTERVAL_HOURS must be positive")

    memory = MemoryConfig(
        duplicate_threshold=_env_float(
            "CORTEX_DUPLICATE_THRESHOLD", defaults.memory.duplicate_threshold, True
        ),
        reinforcement_boost=_env_float(
            "CORTEX_REINFORCEMENT_BOOST", defaults.memory.reinforcement_boost, True
        ),
        decay=decay,
    )

    failure = FailureConfig(
        duplicate_threshold=_env_float(
            "CORTEX_FAILURE_DUPLICATE_THRESHOLD", defaults.failure.duplicate_threshold, True
        ),
        blocking_threshold=_env_float(
            "CORTEX_BLOCKING_THRESHOLD", defaults.failure.blocking_threshold, True
        ),
    )

    engine = EngineConfig(
        default_memory_limit=_env_int("CORTEX_MEMORY_LIMIT", defaults.engine.default_memory_limit),
        default_min_confidence=_env_float(
            "CORTEX_MIN_CONFIDENCE", defaults.engine.default_min_confidence, True
        ),
        default_similarity_threshold=_env_float(
            "CORTEX_SIMILARITY_THRESHOLD", defaults.engine.default_similarity_threshold, True
        ),
    )

    db_env = os.environ.get("CORTEX_DB_PATH")
    db_path = Path(db_env).expanduser() if db_env else get_cortex_home() / DEFAULT_DB_FILENAME

    return CortexConfig(
        memory=memory,
        failure=failure,
        engine=engine,
        db_path=db_path,
        log_level=os.environ.get("CORTEX_LOG_LEVEL", defaults.log_level).upper(),
    )

"""
Cortex - Identity, memory and failure policy for agents.

A stateful engine that turns a versioned identity, decaying distilled
memories and recorded failure patterns into one allow/block decision plus a
filtered context bundle.
"""

from .core import Cortex
from .engine import (
    FailureOptions,
    MemoryOptions,
    PrepareBlocked,
    PrepareContextInput,
    PrepareError,
    PrepareSuccess,
)
from .protocols import BlockedError, CortexError, NotFoundError, ValidationError

try:
    from importlib.metadata import version

    __version__ = version("cortex-memory")
except Exception:
    __version__ = "0.0.0"

__all__ = [
    "Cortex",
    "PrepareContextInput",
    "MemoryOptions",
    "FailureOptions",
    "PrepareSuccess",
    "PrepareBlocked",
    "PrepareError",
    "CortexError",
    "ValidationError",
    "NotFoundError",
    "BlockedError",
]

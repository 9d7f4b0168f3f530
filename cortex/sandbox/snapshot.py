"""Read-only capture of Cortex state for inspection and replay."""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from cortex.core.cortex_class import Cortex
from cortex.core.serializers import to_jsonable
from cortex.types import utc_now

logger = logging.getLogger(__name__)


@dataclass
class StateSnapshot:
    """Full record data, enough to restore the state exactly."""

    identity: Optional[Dict[str, Any]]
    memories: List[Dict[str, Any]] = field(default_factory=list)
    failures: List[Dict[str, Any]] = field(default_factory=list)
    timestamp: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "identity": self.identity,
            "memories": self.memories,
            "failures": self.failures,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StateSnapshot":
        return cls(
            identity=data.get("identity"),
            memories=list(data.get("memories") or []),
            failures=list(data.get("failures") or []),
            timestamp=data.get("timestamp", ""),
        )


def capture_identity_snapshot(cortex: Cortex, identity_id: str) -> Optional[Dict[str, Any]]:
    identity = cortex.identity.load(identity_id)
    return to_jsonable(identity) if identity is not None else None


def capture_state_snapshot(cortex: Cortex, identity_id: str) -> StateSnapshot:
    return StateSnapshot(
        identity=capture_identity_snapshot(cortex, identity_id),
        memories=[to_jsonable(m) for m in cortex.memory.list_all()],
        failures=[to_jsonable(p) for p in cortex.failure.list_all()],
        timestamp=utc_now().isoformat(),
    )

"""In-memory storage adapters.

Dict-backed stores, one per entity kind. Records are deep-copied on the way
in and out so a caller mutating a returned object never changes the stored
one. Dicts keep insertion order, which is the listing order.
"""

import copy
import logging
import threading
from collections import OrderedDict
from typing import Dict, List, Optional, Tuple

from cortex.protocols import StorageError
from cortex.types import (
    DistilledMemory,
    FailurePattern,
    FailureSeverity,
    Identity,
    IdentityVersion,
    MemoryType,
)

logger = logging.getLogger(__name__)


class InMemoryIdentityStorage:
    def __init__(self):
        self._lock = threading.RLock()
        self._identities: Dict[str, Identity] = {}
        self._versions: Dict[Tuple[str, int], IdentityVersion] = OrderedDict()

    def save(self, identity: Identity) -> None:
        with self._lock:
            self._identities[identity.id] = copy.deepcopy(identity)

    def load(self, identity_id: str) -> Optional[Identity]:
        with self._lock:
            identity = self._identities.get(identity_id)
            return copy.deepcopy(identity) if identity is not None else None

    def save_version(self, version: IdentityVersion) -> None:
        key = (version.identity_id, version.version)
        with self._lock:
            if key in self._versions:
                raise StorageError(
                    f"Identity {version.identity_id} already has version {version.version}"
                )
            self._versions[key] = copy.deepcopy(version)

    def get_versions(self, identity_id: str) -> List[IdentityVersion]:
        with self._lock:
            versions = [
                copy.deepcopy(v) for (iid, _), v in self._versions.items() if iid == identity_id
            ]
        return sorted(versions, key=lambda v: v.version)

    def get_version(self, identity_id: str, version: int) -> Optional[IdentityVersion]:
        with self._lock:
            found = self._versions.get((identity_id, version))
            return copy.deepcopy(found) if found is not None else None

    def list_ids(self) -> List[str]:
        with self._lock:
            return list(self._identities)

    def delete(self, identity_id: str) -> None:
        with self._lock:
            self._identities.pop(identity_id, None)
            for key in [k for k in self._versions if k[0] == identity_id]:
                del self._versions[key]


class _RecordStore:
    """Shared dict-plus-lock plumbing for memory and failure records."""

    def __init__(self):
        self._lock = threading.RLock()
        self._records: Dict[str, object] = {}

    def save(self, record) -> None:
        with self._lock:
            self._records[record.id] = copy.deepcopy(record)

    def load(self, record_id: str):
        with self._lock:
            record = self._records.get(record_id)
            return copy.deepcopy(record) if record is not None else None

    def list_all(self) -> list:
        with self._lock:
            return [copy.deepcopy(r) for r in self._records.values()]

    def delete(self, record_id: str) -> None:
        with self._lock:
            self._records.pop(record_id, None)

    def find_by_tags(self, tags: List[str]) -> list:
        """Records carrying every one of ``tags``."""
        wanted = set(tags)
        with self._lock:
            return [copy.deepcopy(r) for r in self._records.values() if wanted.issubset(r.tags)]


class InMemoryMemoryStorage(_RecordStore):
    def find_by_type(self, memory_type: MemoryType) -> List[DistilledMemory]:
        with self._lock:
            return [
                copy.deepcopy(m) for m in self._records.values() if m.memory_type == memory_type
            ]


class InMemoryFailureStorage(_RecordStore):
    def find_by_severity(self, severity: FailureSeverity) -> List[FailurePattern]:
        with self._lock:
            return [copy.deepcopy(p) for p in self._records.values() if p.severity == severity]

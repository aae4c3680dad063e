"""
Fingerprint Store — the operator's record of what it already applied.

The store is the only state carried between ticks. The in-memory
implementation forgets everything on restart; releases are then seen again
as untracked and converge through install → UNKNOWN → upgrade.
"""

from abc import ABC, abstractmethod
from typing import Dict, List, Optional

from release_operator.models import Fingerprint


class FingerprintStore(ABC):
    """Mapping of release name → Fingerprint. Single writer, no locking."""

    @abstractmethod
    def get(self, release: str) -> Optional[Fingerprint]:
        """Return the fingerprint, or None when the release is untracked."""

    @abstractmethod
    def set(self, release: str, fingerprint: Fingerprint) -> None:
        ...

    @abstractmethod
    def delete(self, release: str) -> None:
        ...

    @abstractmethod
    def releases(self) -> List[str]:
        """Snapshot of all tracked release names."""

    def __contains__(self, release: str) -> bool:
        return self.get(release) is not None

    def __len__(self) -> int:
        return len(self.releases())


class InMemoryFingerprintStore(FingerprintStore):

    def __init__(self):
        self._entries: Dict[str, Fingerprint] = {}

    def get(self, release: str) -> Optional[Fingerprint]:
        return self._entries.get(release)

    def set(self, release: str, fingerprint: Fingerprint) -> None:
        self._entries[release] = fingerprint

    def delete(self, release: str) -> None:
        self._entries.pop(release, None)

    def releases(self) -> List[str]:
        return list(self._entries)

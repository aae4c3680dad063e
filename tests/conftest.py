"""Shared fakes for reconciler tests: no cluster, no helm binary."""

from typing import Any, Dict, List, Set, Tuple

import pytest

from release_operator.fingerprints import InMemoryFingerprintStore
from release_operator.models import DesiredRelease
from release_operator.reconciler import Reconciler
from release_operator.services.helm_service import HelmError, ReleaseBackend
from release_operator.services.kubernetes_service import DesiredStateReader


class FakeReader(DesiredStateReader):
    """Returns whatever desired state the test sets, one snapshot per read."""

    def __init__(self, desired: Dict[str, str] = None):
        self.desired = dict(desired or {})
        self.reads = 0

    def read(self) -> List[DesiredRelease]:
        self.reads += 1
        return [DesiredRelease(name=n, values=v) for n, v in self.desired.items()]


class FakeBackend(ReleaseBackend):
    """Records every call; fails the operations listed in ``fail``."""

    def __init__(self):
        self.calls: List[Tuple[str, str, Any]] = []
        self.fail: Set[Tuple[str, str]] = set()

    def _call(self, action: str, release: str, values=None):
        self.calls.append((action, release, values))
        if (action, release) in self.fail:
            raise HelmError(f"{action} {release} failed", returncode=1)

    def install(self, release, values):
        self._call("install", release, values)

    def upgrade(self, release, values):
        self._call("upgrade", release, values)

    def uninstall(self, release):
        self._call("uninstall", release)

    def calls_for(self, release: str) -> List[str]:
        return [action for action, name, _ in self.calls if name == release]


@pytest.fixture
def reader():
    return FakeReader()


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def store():
    return InMemoryFingerprintStore()


@pytest.fixture
def reconciler(reader, backend, store):
    return Reconciler(reader, backend, store=store, interval=0)

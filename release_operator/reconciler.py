"""
Reconciler — the level-triggered control loop.

Each tick:
  1. Read the Desired Set (every triggered ConfigMap, full relist)
  2. For each desired release:
       untracked          → install   (ok: APPLIED, fail: UNKNOWN)
       fingerprint differs → upgrade  (ok: APPLIED, fail: unchanged)
       fingerprint matches → nothing
  3. For each tracked release no longer desired:
       uninstall (ok: forget it, fail: keep it)
  4. Sleep, repeat

No retries happen inside a tick. A failed release is left in a fingerprint
state that makes the next tick try again. Read failures are not caught here:
without desired state there is nothing safe to do.
"""

import logging
import threading
import time
from typing import Dict, List, Optional

from release_operator import metrics
from release_operator.fingerprints import FingerprintStore, InMemoryFingerprintStore
from release_operator.models import (
    DesiredRelease,
    Fingerprint,
    TickReport,
    ValuesParseError,
    parse_values,
)
from release_operator.services.events import EventPublisher
from release_operator.services.helm_service import ReleaseBackend, ReleaseError
from release_operator.services.kubernetes_service import DesiredStateReader

logger = logging.getLogger("reconciler")

DEFAULT_INTERVAL = 10.0


class Reconciler:

    def __init__(
        self,
        reader: DesiredStateReader,
        backend: ReleaseBackend,
        store: Optional[FingerprintStore] = None,
        interval: float = DEFAULT_INTERVAL,
        publisher: Optional[EventPublisher] = None,
    ):
        self.reader = reader
        self.backend = backend
        self.store = store if store is not None else InMemoryFingerprintStore()
        self.interval = interval
        self.publisher = publisher or EventPublisher(redis_url="")

    def _desired_set(self) -> Dict[str, str]:
        desired: Dict[str, str] = {}
        releases: List[DesiredRelease] = self.reader.read()
        for release in releases:
            desired[release.name] = release.values
        return desired

    def reconcile_once(self) -> TickReport:
        """Run a single reconciliation tick against one Desired Set snapshot."""
        started = time.monotonic()
        report = TickReport()

        desired = self._desired_set()

        for name, payload in desired.items():
            self._reconcile_release(name, payload, report)

        for name in self.store.releases():
            if name not in desired:
                self._remove_release(name, report)

        report.duration_seconds = time.monotonic() - started
        metrics.TICK_DURATION.observe(report.duration_seconds)
        metrics.TRACKED_RELEASES.set(len(self.store))
        if report.actions or report.failed or report.skipped:
            logger.info(f"Tick complete: {report.summary()}")
        return report

    def _reconcile_release(self, name: str, payload: str, report: TickReport):
        try:
            values = parse_values(payload)
        except ValuesParseError as e:
            logger.error(
                f"Values parse failed for {name}: {e} (values: {payload[:200]!r})"
            )
            metrics.PARSE_FAILURES.inc()
            self.publisher.publish(name, "VALUES_INVALID", str(e)[:150])
            report.skipped.append(name)
            return

        fingerprint = self.store.get(name)

        if fingerprint is None:
            logger.info(f"Untracked release {name}: installing")
            try:
                self.backend.install(name, values)
            except ReleaseError as e:
                # Most likely the release already exists from a previous run.
                logger.warning(
                    f"Install of {name} failed ({e}); "
                    f"assuming it is already installed, will upgrade next tick"
                )
                self.store.set(name, Fingerprint.unknown())
                metrics.record_action("install", ok=False)
                self.publisher.publish(name, "INSTALL_FAILED", str(e)[:150])
                report.failed.append(name)
                return
            self.store.set(name, Fingerprint.applied(payload))
            metrics.record_action("install", ok=True)
            self.publisher.publish(name, "INSTALLED", f"Release {name} installed")
            report.installed.append(name)
            return

        if fingerprint.matches(payload):
            logger.debug(f"Release {name} is up to date")
            report.unchanged.append(name)
            return

        logger.info(f"Values of {name} changed: upgrading")
        try:
            self.backend.upgrade(name, values)
        except ReleaseError as e:
            logger.error(f"Upgrade of {name} failed: {e} (values: {payload[:200]!r})")
            metrics.record_action("upgrade", ok=False)
            self.publisher.publish(name, "UPGRADE_FAILED", str(e)[:150])
            report.failed.append(name)
            return
        self.store.set(name, Fingerprint.applied(payload))
        metrics.record_action("upgrade", ok=True)
        self.publisher.publish(name, "UPGRADED", f"Release {name} upgraded")
        report.upgraded.append(name)

    def _remove_release(self, name: str, report: TickReport):
        logger.info(f"ConfigMap {name} no longer triggers a release: uninstalling")
        try:
            self.backend.uninstall(name)
        except ReleaseError as e:
            logger.error(f"Couldn't uninstall {name}: {e}")
            metrics.record_action("uninstall", ok=False)
            self.publisher.publish(name, "UNINSTALL_FAILED", str(e)[:150])
            report.failed.append(name)
            return
        self.store.delete(name)
        metrics.record_action("uninstall", ok=True)
        self.publisher.publish(name, "UNINSTALLED", f"Release {name} uninstalled")
        report.uninstalled.append(name)

    def run(self, stop_event: Optional[threading.Event] = None) -> None:
        """Reconcile every ``interval`` seconds until stop_event is set."""
        if stop_event is None:
            stop_event = threading.Event()
        logger.info(f"Reconcile loop started (interval={self.interval}s)")
        while not stop_event.is_set():
            self.reconcile_once()
            stop_event.wait(self.interval)
        logger.info("Reconcile loop stopped")

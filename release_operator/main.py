"""
Release Operator — entrypoint.

Wires the loop together:
  - Logging (line-oriented, one line per transition)
  - Kubernetes client (in-cluster or kubeconfig)
  - Helm backend + chart preflight
  - Prometheus metrics (/metrics, when METRICS_PORT is set)
  - Redis Stream events (when REDIS_URL is set)
  - Reconcile loop, stopped by SIGTERM / SIGINT
"""

import argparse
import logging
import signal
import sys
import threading
from typing import List, Optional

from kubernetes import config

from release_operator import metrics
from release_operator.config import settings
from release_operator.reconciler import Reconciler
from release_operator.services.events import EventPublisher
from release_operator.services.helm_service import HelmBackend, ReleaseError
from release_operator.services.kubernetes_service import (
    ConfigMapReader,
    DesiredStateError,
    core_api,
)

logger = logging.getLogger("release-operator")


def _parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="release-operator",
        description="Reconcile annotated ConfigMaps into Helm releases",
    )
    parser.add_argument(
        "--kubeconfig",
        default=None,
        help="(optional) absolute path to the kubeconfig file",
    )
    parser.add_argument(
        "--namespace",
        default=settings.NAMESPACE,
        help="namespace to watch and install releases into",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="run a single reconciliation tick and exit",
    )
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = _parse_args(argv)

    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    backend = HelmBackend(
        chart_path=settings.HELM_CHART_PATH,
        namespace=args.namespace,
        driver=settings.HELM_DRIVER,
        timeout=settings.HELM_TIMEOUT,
    )
    try:
        backend.verify_chart()
    except ReleaseError as e:
        logger.critical(f"Chart {settings.HELM_CHART_PATH} could not be loaded: {e}")
        return 1

    try:
        api = core_api(args.kubeconfig)
    except config.ConfigException as e:
        logger.critical(f"Kubernetes configuration could not be loaded: {e}")
        return 1

    reader = ConfigMapReader(
        namespace=args.namespace,
        trigger_annotation=settings.TRIGGER_ANNOTATION,
        values_key=settings.VALUES_KEY,
        api=api,
    )
    reconciler = Reconciler(
        reader,
        backend,
        interval=settings.RECONCILE_INTERVAL,
        publisher=EventPublisher(settings.REDIS_URL),
    )

    metrics.serve(settings.METRICS_PORT)
    logger.info(
        f"Release Operator started (namespace={args.namespace}, "
        f"chart={settings.HELM_CHART_PATH}, driver={settings.HELM_DRIVER or 'secret'}, "
        f"annotation={settings.TRIGGER_ANNOTATION})"
    )

    try:
        if args.once:
            report = reconciler.reconcile_once()
            logger.info(f"Single tick finished: {report.summary()}")
            return 0

        stop_event = threading.Event()

        def _stop(signum, frame):
            logger.info(f"Received signal {signum}, stopping after this tick")
            stop_event.set()

        signal.signal(signal.SIGTERM, _stop)
        signal.signal(signal.SIGINT, _stop)
        reconciler.run(stop_event)
    except DesiredStateError as e:
        logger.critical(f"Desired state unavailable, halting: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())

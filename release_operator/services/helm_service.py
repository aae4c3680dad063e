"""
Helm service layer — the Release Backend.

The operator only talks to ReleaseBackend; HelmBackend implements it on top
of the Helm CLI for one fixed chart. Every call is bounded by a deadline so a
hung helm process cannot stall the loop; expiry is an ordinary, retryable
ReleaseError.
"""

import logging
import os
import subprocess
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

import yaml

from release_operator.config import settings

logger = logging.getLogger("helm_service")

# Extra seconds the subprocess deadline allows beyond helm's own --timeout
DEADLINE_GRACE = 30


class ReleaseError(RuntimeError):
    """A release operation failed. Always retryable on the next tick."""


class HelmError(ReleaseError):
    def __init__(self, message: str, returncode: Optional[int] = None, stderr: str = ""):
        super().__init__(message)
        self.returncode = returncode
        self.stderr = stderr


class ReleaseTimeout(ReleaseError):
    """A release operation exceeded its deadline."""


class ReleaseBackend(ABC):
    """Install, upgrade and uninstall releases of one fixed package."""

    @abstractmethod
    def install(self, release: str, values: Dict[str, Any]) -> None:
        ...

    @abstractmethod
    def upgrade(self, release: str, values: Dict[str, Any]) -> None:
        ...

    @abstractmethod
    def uninstall(self, release: str) -> None:
        ...


def helm_run(
    args: List[str],
    input: Optional[str] = None,
    timeout: float = settings.HELM_TIMEOUT + DEADLINE_GRACE,
    driver: str = settings.HELM_DRIVER,
) -> subprocess.CompletedProcess:
    """Execute a Helm CLI command. Raises HelmError on a non-zero exit code."""
    cmd = ["helm"] + args
    env = dict(os.environ)
    if driver:
        env["HELM_DRIVER"] = driver
    logger.info(f"helm> {' '.join(cmd)}")
    try:
        result = subprocess.run(
            cmd, capture_output=True, text=True, input=input, timeout=timeout, env=env
        )
    except subprocess.TimeoutExpired as e:
        raise ReleaseTimeout(f"Helm command timed out after {timeout}s: {' '.join(cmd)}") from e
    except OSError as e:
        raise HelmError(f"Helm could not be executed: {e}") from e
    if result.stdout:
        logger.debug(f"helm stdout: {result.stdout[:800]}")
    if result.stderr:
        logger.warning(f"helm stderr: {result.stderr[:800]}")
    if result.returncode != 0:
        raise HelmError(
            f"Helm command failed (rc={result.returncode}): {result.stderr[:500]}",
            returncode=result.returncode,
            stderr=result.stderr,
        )
    return result


class HelmBackend(ReleaseBackend):
    """
    Drives the Helm CLI for a single chart in a single namespace.

    Values are handed to helm as a YAML document on stdin (``-f -``) so that
    nested structures survive unchanged.
    """

    def __init__(
        self,
        chart_path: str = settings.HELM_CHART_PATH,
        namespace: str = settings.NAMESPACE,
        driver: str = settings.HELM_DRIVER,
        timeout: int = settings.HELM_TIMEOUT,
    ):
        self.chart_path = chart_path
        self.namespace = namespace
        self.driver = driver
        self.timeout = timeout

    def _run(self, args: List[str], values: Optional[Dict[str, Any]] = None):
        stdin = None
        if values is not None:
            args = args + ["-f", "-"]
            stdin = yaml.safe_dump(values, default_flow_style=False)
        return helm_run(
            args + ["-n", self.namespace, "--timeout", f"{self.timeout}s"],
            input=stdin,
            timeout=self.timeout + DEADLINE_GRACE,
            driver=self.driver,
        )

    def verify_chart(self) -> str:
        """Load the chart once; raises a ReleaseError if it cannot be read."""
        result = helm_run(["show", "chart", self.chart_path], timeout=60, driver=self.driver)
        try:
            meta = yaml.safe_load(result.stdout) or {}
        except yaml.YAMLError as e:
            raise HelmError(f"Chart metadata is not valid YAML: {e}") from e
        if not isinstance(meta, dict):
            raise HelmError(
                f"Chart metadata is not a mapping (got {type(meta).__name__})"
            )
        name = meta.get("name", "?")
        version = meta.get("version", "?")
        logger.info(f"Chart {self.chart_path} loaded ({name} {version})")
        return f"{name}-{version}"

    def install(self, release: str, values: Dict[str, Any]) -> None:
        self._run(["install", release, self.chart_path], values)
        logger.info(f"Helm release {release} installed")

    def upgrade(self, release: str, values: Dict[str, Any]) -> None:
        self._run(["upgrade", release, self.chart_path], values)
        logger.info(f"Helm release {release} upgraded")

    def uninstall(self, release: str) -> None:
        self._run(["uninstall", release])
        logger.info(f"Helm release {release} uninstalled")

"""
Kubernetes service layer — reads desired state from namespaced ConfigMaps.

Design principles:
  - Full relist on every call: no cache, no watch, missed updates heal on
    the next tick
  - Only ConfigMaps whose trigger annotation is "true" (any case) count
  - Read failures are fatal: there is no safe partial reconcile without
    desired state
"""

import logging
from abc import ABC, abstractmethod
from typing import List, Optional

from kubernetes import client, config
from kubernetes.client import ApiException
from urllib3.exceptions import HTTPError

from release_operator.config import settings
from release_operator.models import DesiredRelease

logger = logging.getLogger("kubernetes_service")

_k8s_loaded = False


class DesiredStateError(RuntimeError):
    """The namespace's ConfigMaps could not be listed."""


def _ensure_k8s(kubeconfig: Optional[str] = None):
    """Load Kubernetes config exactly once."""
    global _k8s_loaded
    if _k8s_loaded:
        return
    if settings.IN_CLUSTER:
        config.load_incluster_config()
    else:
        config.load_kube_config(config_file=kubeconfig or settings.KUBECONFIG or None)
    _k8s_loaded = True


def core_api(kubeconfig: Optional[str] = None) -> client.CoreV1Api:
    _ensure_k8s(kubeconfig)
    return client.CoreV1Api()


def is_triggered(annotations: Optional[dict], trigger_annotation: str) -> bool:
    value = (annotations or {}).get(trigger_annotation, "")
    return str(value).lower() == "true"


def desired_release_from_configmap(
    cm: client.V1ConfigMap,
    trigger_annotation: str = settings.TRIGGER_ANNOTATION,
    values_key: str = settings.VALUES_KEY,
) -> Optional[DesiredRelease]:
    """Convert a ConfigMap into a DesiredRelease, or None if not triggered."""
    if not is_triggered(cm.metadata.annotations, trigger_annotation):
        return None
    data = cm.data or {}
    return DesiredRelease(name=cm.metadata.name, values=data.get(values_key, ""))


class DesiredStateReader(ABC):
    """Source of the Desired Set. Every call returns a fresh, complete snapshot."""

    @abstractmethod
    def read(self) -> List[DesiredRelease]:
        """Raises DesiredStateError when desired state cannot be obtained."""


class ConfigMapReader(DesiredStateReader):
    """Lists a namespace's ConfigMaps every tick."""

    def __init__(
        self,
        namespace: str = settings.NAMESPACE,
        trigger_annotation: str = settings.TRIGGER_ANNOTATION,
        values_key: str = settings.VALUES_KEY,
        api: Optional[client.CoreV1Api] = None,
    ):
        self.namespace = namespace
        self.trigger_annotation = trigger_annotation
        self.values_key = values_key
        self._api = api

    @property
    def api(self) -> client.CoreV1Api:
        if self._api is None:
            self._api = core_api()
        return self._api

    def read(self) -> List[DesiredRelease]:
        """
        List all ConfigMaps in the namespace and return the triggered ones.
        Raises DesiredStateError if the API cannot be reached.
        """
        try:
            result = self.api.list_namespaced_config_map(namespace=self.namespace)
        except (ApiException, HTTPError) as e:
            raise DesiredStateError(
                f"Failed to list ConfigMaps in namespace {self.namespace}: {e}"
            ) from e

        desired = []
        for cm in result.items:
            release = desired_release_from_configmap(
                cm, self.trigger_annotation, self.values_key
            )
            if release is None:
                continue
            logger.debug(f"ConfigMap {release.name} is triggered")
            desired.append(release)
        return desired

"""
Configuration module — all settings from env vars with sensible defaults.
Follows 12-factor app methodology.
"""
import os
from dataclasses import dataclass


@dataclass(frozen=True)
class Settings:
    # Kubernetes
    KUBECONFIG: str = os.environ.get("KUBECONFIG", "")
    IN_CLUSTER: bool = os.environ.get("IN_CLUSTER", "false").lower() == "true"
    NAMESPACE: str = os.environ.get("NAMESPACE", "") or "default"

    # Desired state
    TRIGGER_ANNOTATION: str = os.environ.get("TRIGGER_ANNOTATION", "trigger-install")
    VALUES_KEY: str = os.environ.get("VALUES_KEY", "values.yaml")

    # Helm
    HELM_CHART_PATH: str = os.environ.get("HELM_CHART_PATH", "/charts/release")
    HELM_DRIVER: str = os.environ.get("HELM_DRIVER", "")
    HELM_TIMEOUT: int = int(os.environ.get("HELM_TIMEOUT", "300"))

    # Loop
    RECONCILE_INTERVAL: float = float(os.environ.get("RECONCILE_INTERVAL", "10"))

    # Observability
    REDIS_URL: str = os.environ.get("REDIS_URL", "")
    METRICS_PORT: int = int(os.environ.get("METRICS_PORT", "0"))
    LOG_LEVEL: str = os.environ.get("LOG_LEVEL", "INFO")


settings = Settings()

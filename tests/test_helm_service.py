"""Tests for the Helm release backend (helm CLI is faked)."""

import subprocess

import pytest
import yaml

from release_operator.services import helm_service
from release_operator.services.helm_service import (
    DEADLINE_GRACE,
    HelmBackend,
    HelmError,
    ReleaseError,
    ReleaseTimeout,
    helm_run,
)


class FakeHelm:
    """Stands in for subprocess.run and remembers each invocation."""

    def __init__(self, returncode=0, stdout="", stderr="", raises=None):
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr
        self.raises = raises
        self.invocations = []

    def __call__(self, cmd, **kwargs):
        self.invocations.append((cmd, kwargs))
        if self.raises:
            raise self.raises
        return subprocess.CompletedProcess(cmd, self.returncode, self.stdout, self.stderr)


@pytest.fixture
def fake_helm(monkeypatch):
    fake = FakeHelm()
    monkeypatch.setattr(helm_service.subprocess, "run", fake)
    return fake


def _backend(**kwargs) -> HelmBackend:
    defaults = dict(chart_path="/charts/app", namespace="apps", driver="", timeout=120)
    defaults.update(kwargs)
    return HelmBackend(**defaults)


class TestHelmBackend:
    def test_install_command(self, fake_helm):
        _backend().install("shop", {"replicas": 2, "image": {"tag": "1.0"}})

        cmd, kwargs = fake_helm.invocations[0]
        assert cmd == [
            "helm", "install", "shop", "/charts/app", "-f", "-",
            "-n", "apps", "--timeout", "120s",
        ]
        assert yaml.safe_load(kwargs["input"]) == {"replicas": 2, "image": {"tag": "1.0"}}
        assert kwargs["timeout"] == 120 + DEADLINE_GRACE

    def test_upgrade_command(self, fake_helm):
        _backend().upgrade("shop", {"replicas": 3})

        cmd, kwargs = fake_helm.invocations[0]
        assert cmd[:4] == ["helm", "upgrade", "shop", "/charts/app"]
        assert "-f" in cmd and "apps" in cmd
        assert yaml.safe_load(kwargs["input"]) == {"replicas": 3}

    def test_uninstall_command(self, fake_helm):
        _backend().uninstall("shop")

        cmd, kwargs = fake_helm.invocations[0]
        assert cmd == ["helm", "uninstall", "shop", "-n", "apps", "--timeout", "120s"]
        assert kwargs["input"] is None

    def test_driver_is_exported(self, fake_helm):
        _backend(driver="configmap").uninstall("shop")
        _, kwargs = fake_helm.invocations[0]
        assert kwargs["env"]["HELM_DRIVER"] == "configmap"

    def test_failed_command_raises(self, fake_helm):
        fake_helm.returncode = 1
        fake_helm.stderr = "Error: INSTALLATION FAILED: cannot re-use a name that is still in use"

        with pytest.raises(HelmError) as exc_info:
            _backend().install("shop", {})
        assert exc_info.value.returncode == 1
        assert "re-use" in exc_info.value.stderr
        assert isinstance(exc_info.value, ReleaseError)

    def test_uninstall_missing_release_is_release_error(self, fake_helm):
        fake_helm.returncode = 1
        fake_helm.stderr = "Error: uninstall: Release not loaded: shop: release: not found"
        with pytest.raises(ReleaseError):
            _backend().uninstall("shop")

    def test_timeout_is_retryable_error(self, fake_helm):
        fake_helm.raises = subprocess.TimeoutExpired(cmd="helm", timeout=150)
        with pytest.raises(ReleaseTimeout):
            _backend().upgrade("shop", {})

    def test_missing_binary(self, fake_helm):
        fake_helm.raises = FileNotFoundError("helm")
        with pytest.raises(HelmError):
            _backend().install("shop", {})

    @pytest.mark.parametrize("stdout", ["- a\n- b\n", "just text", "name: [app"])
    def test_verify_chart_rejects_bad_metadata(self, fake_helm, stdout):
        fake_helm.stdout = stdout
        with pytest.raises(HelmError, match="Chart metadata"):
            _backend().verify_chart()

    def test_verify_chart(self, fake_helm):
        fake_helm.stdout = "apiVersion: v2\nname: app\nversion: 0.3.1\n"
        assert _backend().verify_chart() == "app-0.3.1"
        cmd, _ = fake_helm.invocations[0]
        assert cmd == ["helm", "show", "chart", "/charts/app"]


class TestHelmRun:
    def test_success_returns_result(self, fake_helm):
        fake_helm.stdout = "NAME\tNAMESPACE\n"
        result = helm_run(["list"])
        assert result.returncode == 0
        assert result.stdout.startswith("NAME")

    def test_non_zero_exit_raises(self, fake_helm):
        fake_helm.returncode = 2
        with pytest.raises(HelmError, match="rc=2"):
            helm_run(["status", "shop"])

    def test_no_driver_keeps_environment(self, fake_helm, monkeypatch):
        monkeypatch.delenv("HELM_DRIVER", raising=False)
        helm_run(["list"], driver="")
        _, kwargs = fake_helm.invocations[0]
        assert "HELM_DRIVER" not in kwargs["env"]

"""
Pydantic models for desired state, fingerprints and tick outcomes.
"""
from enum import Enum
from typing import Any, Dict, List, Optional

import yaml
from pydantic import BaseModel, Field


class ValuesParseError(ValueError):
    """Raised when a ConfigMap payload is not a YAML mapping."""


class DesiredRelease(BaseModel):
    """A release requested by a triggered ConfigMap."""
    name: str
    values: str = Field(
        default="",
        description="Raw values document; the unit of change detection",
    )

    def parsed_values(self) -> Dict[str, Any]:
        return parse_values(self.values)


class FingerprintState(str, Enum):
    UNKNOWN = "unknown"
    APPLIED = "applied"


class Fingerprint(BaseModel):
    """
    What the operator last did for a release.

    UNKNOWN: an install was attempted and failed, the cluster may or may not
    hold the release. APPLIED: ``payload`` was applied successfully.
    A release with no fingerprint at all is untracked.
    """
    state: FingerprintState
    payload: Optional[str] = None

    model_config = {"frozen": True}

    @classmethod
    def applied(cls, payload: str) -> "Fingerprint":
        return cls(state=FingerprintState.APPLIED, payload=payload)

    @classmethod
    def unknown(cls) -> "Fingerprint":
        return cls(state=FingerprintState.UNKNOWN)

    def matches(self, payload: str) -> bool:
        """
        Byte-for-byte comparison against the last applied payload.

        An UNKNOWN fingerprint compares as the empty payload: it matches an
        empty values document and nothing else.
        """
        if self.state == FingerprintState.UNKNOWN:
            return payload == ""
        return self.payload == payload


class TickReport(BaseModel):
    """Outcome of one reconciliation tick."""
    installed: List[str] = []
    upgraded: List[str] = []
    uninstalled: List[str] = []
    unchanged: List[str] = []
    skipped: List[str] = []
    failed: List[str] = []
    duration_seconds: float = 0.0

    @property
    def actions(self) -> int:
        return len(self.installed) + len(self.upgraded) + len(self.uninstalled)

    def summary(self) -> str:
        return (
            f"installed={len(self.installed)} upgraded={len(self.upgraded)} "
            f"uninstalled={len(self.uninstalled)} unchanged={len(self.unchanged)} "
            f"skipped={len(self.skipped)} failed={len(self.failed)}"
        )


def parse_values(raw: str) -> Dict[str, Any]:
    """
    Parse a values document into a mapping.

    Empty and null documents yield an empty mapping. Anything that is not
    valid YAML or whose top level is not a mapping raises ValuesParseError.
    """
    try:
        values = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ValuesParseError(f"invalid YAML: {e}") from e
    if values is None:
        return {}
    if not isinstance(values, dict):
        raise ValuesParseError(
            f"expected a mapping at the top level, got {type(values).__name__}"
        )
    return values

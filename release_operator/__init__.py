"""Release Operator — reconciles annotated ConfigMaps into Helm releases."""

__version__ = "1.0.0"

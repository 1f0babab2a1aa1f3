"""Exception hierarchy shared by every flowcode module."""

from __future__ import annotations


class FlowcodeError(Exception):
    """Base class for all flowcode errors."""


class DocumentError(FlowcodeError, ValueError):
    """Raised when a flow document cannot be loaded or has the wrong shape."""


class RegistryError(FlowcodeError, ValueError):
    """Raised when a converter registry is misconfigured at build time."""


class ConfigurationError(FlowcodeError, ValueError):
    """Raised when a FLOWCODE_* setting has a value outside its choices."""


class ConversionError(FlowcodeError):
    """
    Raised by a converter that cannot lower one node.

    The lowering engine catches it and records a per-node failure.
    """

    def __init__(self, message: str, node_id: str | None = None):
        super().__init__(message)
        self.node_id = node_id


class UnsupportedTargetError(ConversionError):
    """Raised when a converter has no rendering for the requested target."""


__all__ = [
    "ConfigurationError",
    "ConversionError",
    "DocumentError",
    "FlowcodeError",
    "RegistryError",
    "UnsupportedTargetError",
]

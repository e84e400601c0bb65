"""
Watch-specific error types.

All errors inherit from WatchError for easy catching.

Hook and observer faults are never raised from here: they are contained
and logged by the pipeline. These types cover caller misuse that must fail
loudly and lifecycle violations.
"""

from typing import Optional


class WatchError(Exception):
    """Base exception for all objwatch failures."""
    pass


class InvalidTargetError(WatchError, TypeError):
    """Raised when a target cannot be watched (scalars, None)."""

    def __init__(self, target: object, reason: str = "Target must be a composite object or callable"):
        self.target_type = type(target).__name__
        self.reason = reason
        super().__init__(f"{reason}, got {self.target_type}")


class FacadeRevokedError(WatchError, RuntimeError):
    """Raised when any operation is attempted on a revoked facade."""

    def __init__(self, kind: str, name: Optional[str] = None):
        self.kind = kind
        self.name = name
        label = f"'{name}'" if name else "facade"
        super().__init__(f"Cannot perform '{kind}' on revoked {label}")


class InvalidStateTransitionError(WatchError):
    """Raised when a watch session is moved to a state it cannot reach."""

    def __init__(self, current_state: str, target_state: str, label: Optional[str] = None):
        self.current_state = current_state
        self.target_state = target_state
        self.label = label
        subject = f"watch session '{label}'" if label else "watch session"
        super().__init__(f"Cannot move {subject} from {current_state} to {target_state}")


class ConfigurationError(WatchError, ValueError):
    """Raised when watch options cannot be normalized into a WatchConfig."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Invalid watch configuration: {reason}")

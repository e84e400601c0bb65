"""
objwatch: transparent interposition on Python objects.

watch() returns a facade that behaves like the target while routing every
fundamental operation (attribute and item access, assignment, deletion,
membership, calls, construction, type queries) through configurable hooks,
result modifiers, overrides and global observers.
"""

from .errors import (
    WatchError,
    InvalidTargetError,
    FacadeRevokedError,
    InvalidStateTransitionError,
    ConfigurationError,
)
from .models import (
    OperationKind,
    Namespace,
    ObserverPhase,
    SessionState,
    PropertyDescriptor,
    OperationContext,
)
from .config import KindProfile, LogLevel, WatchConfig, normalize_config
from .observers import GlobalObserverChain
from .registry import Session, SessionRegistry
from .facade import Facade, is_facade
from .manager import WatchManager, get_default_manager
from .wrappers import (
    OperationStats,
    PerformanceTracker,
    PerformanceWatch,
    watch_function,
    watch_performance,
    watch_properties,
)
from .api import (
    add_global_observer,
    get_config,
    is_watched,
    remove_global_observer,
    unwatch,
    unwatch_obj,
    watch,
    watch_obj,
)
from . import ops

__all__ = [
    # Errors
    "WatchError",
    "InvalidTargetError",
    "FacadeRevokedError",
    "InvalidStateTransitionError",
    "ConfigurationError",
    # Models
    "OperationKind",
    "Namespace",
    "ObserverPhase",
    "SessionState",
    "PropertyDescriptor",
    "OperationContext",
    # Configuration
    "KindProfile",
    "LogLevel",
    "WatchConfig",
    "normalize_config",
    # Engine
    "GlobalObserverChain",
    "Session",
    "SessionRegistry",
    "Facade",
    "is_facade",
    "WatchManager",
    "get_default_manager",
    # Module-level API
    "watch",
    "unwatch",
    "add_global_observer",
    "remove_global_observer",
    "get_config",
    "is_watched",
    "watch_obj",
    "unwatch_obj",
    # Wrappers
    "watch_function",
    "watch_properties",
    "watch_performance",
    "OperationStats",
    "PerformanceTracker",
    "PerformanceWatch",
    # Explicit operations
    "ops",
]

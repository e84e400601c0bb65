"""
Module-level functions bound to the default WatchManager.

For isolated engines (tests, libraries that must not share observers),
create a WatchManager and call its methods instead.
"""

import warnings
from typing import Any, Optional

from .facade import Facade
from .manager import Handle, get_default_manager
from .observers import Observer


def watch(target: Any, options: Any = None, name: Optional[str] = None) -> Facade:
    """Start watching target with the default manager. See WatchManager.install()."""
    return get_default_manager().install(target, options, name)


def unwatch(handle: Handle) -> Optional[Any]:
    """Stop watching; returns the original target, or None for unknown handles."""
    return get_default_manager().revoke(handle)


def add_global_observer(observer: Observer) -> None:
    get_default_manager().add_global_observer(observer)


def remove_global_observer(observer: Observer) -> None:
    get_default_manager().remove_global_observer(observer)


def get_config(handle: Handle, kind: Any = None):
    return get_default_manager().get_config(handle, kind)


def is_watched(target: Any) -> bool:
    return get_default_manager().is_watched(target)


# =============================================================================
# Deprecated aliases
# =============================================================================

def watch_obj(target: Any, name: Optional[str] = None, options: Any = None) -> Facade:
    """Deprecated: use watch(target, options, name)."""
    warnings.warn(
        "watch_obj() is deprecated, use watch() instead",
        DeprecationWarning,
        stacklevel=2,
    )
    return watch(target, options, name)


def unwatch_obj(handle: Handle) -> Optional[Any]:
    """Deprecated: use unwatch(handle)."""
    warnings.warn(
        "unwatch_obj() is deprecated, use unwatch() instead",
        DeprecationWarning,
        stacklevel=2,
    )
    return unwatch(handle)

"""
Convenience wrappers over WatchManager.install().

- watch_function: watch a callable with timing on by default
- watch_properties: only intercept operations on the named keys
- watch_performance: aggregate per-operation timing statistics
"""

import logging
from typing import Any, Callable, Dict, Iterable, NamedTuple, Optional, Union

from pydantic import BaseModel

from .config import WatchConfig, normalize_config
from .errors import InvalidTargetError
from .facade import Facade
from .manager import WatchManager, get_default_manager
from .models import OperationContext

logger = logging.getLogger(__name__)

PropertyNames = Union[str, int, Iterable[Any]]


def _manager(manager: Optional[WatchManager]) -> WatchManager:
    return manager if manager is not None else get_default_manager()


def _derive(config: WatchConfig, **changes: Any) -> WatchConfig:
    """Copy config with changes and its own kinds table, leaving the caller's config untouched."""
    changes["kinds"] = {
        kind: profile.model_copy() if profile is not None else None
        for kind, profile in config.kinds.items()
    }
    return config.model_copy(update=changes)


def watch_function(
    fn: Callable,
    options: Any = None,
    name: Optional[str] = None,
    manager: Optional[WatchManager] = None,
) -> Facade:
    """
    Watch a callable. Timing is enabled unless options set it explicitly.

    Raises:
        InvalidTargetError: If fn is not callable
    """
    if not callable(fn):
        raise InvalidTargetError(fn, "watch_function() requires a callable")
    config = normalize_config(options)
    if "enable_timing" not in config.model_fields_set:
        config = _derive(config, enable_timing=True)
    return _manager(manager).install(fn, config, name or getattr(fn, "__name__", None))


def watch_properties(
    obj: Any,
    properties: PropertyNames,
    options: Any = None,
    name: Optional[str] = None,
    manager: Optional[WatchManager] = None,
) -> Facade:
    """
    Watch only the listed property keys; everything else passes through.

    A should_intercept predicate in options still applies on top of the
    key filter.
    """
    if isinstance(properties, (str, int)):
        watched = [properties]
    else:
        watched = list(properties)

    config = normalize_config(options)
    user_gate = config.should_intercept

    def gate(context: OperationContext) -> bool:
        if context.property not in watched:
            return False
        return user_gate is None or bool(user_gate(context))

    config = _derive(config, should_intercept=gate)
    return _manager(manager).install(obj, config, name)


# =============================================================================
# Performance aggregation
# =============================================================================

class OperationStats(BaseModel):
    """Running timing totals for one "<kind>:<property>" key."""

    count: int = 0
    total_time: float = 0.0  # ms
    avg_time: float = 0.0  # ms


PerformanceCallback = Callable[[str, OperationStats, OperationContext], Any]


class PerformanceTracker:
    """Accumulates OperationStats from timed operation contexts."""

    def __init__(self, on_update: Optional[PerformanceCallback] = None):
        self._stats: Dict[str, OperationStats] = {}
        self._on_update = on_update

    @staticmethod
    def key_for(context: OperationContext) -> str:
        label = context.property if context.property is not None else "anonymous"
        return f"{context.kind.value}:{label}"

    def record(self, context: OperationContext) -> None:
        """Fold one context into its key's stats. Untimed contexts are ignored."""
        if context.duration is None:
            return
        key = self.key_for(context)
        stats = self._stats.get(key)
        if stats is None:
            stats = self._stats[key] = OperationStats()
        stats.count += 1
        stats.total_time += context.duration
        stats.avg_time = stats.total_time / stats.count
        if self._on_update is not None:
            self._on_update(key, stats.model_copy(), context)

    def get(self, key: str) -> Optional[OperationStats]:
        stats = self._stats.get(key)
        return stats.model_copy() if stats is not None else None

    def snapshot(self) -> Dict[str, OperationStats]:
        return {key: stats.model_copy() for key, stats in self._stats.items()}

    def reset(self) -> None:
        self._stats.clear()

    def __len__(self) -> int:
        return len(self._stats)


class PerformanceWatch(NamedTuple):
    facade: Facade
    tracker: PerformanceTracker


def watch_performance(
    target: Any,
    options: Any = None,
    name: Optional[str] = None,
    on_performance_update: Optional[PerformanceCallback] = None,
    manager: Optional[WatchManager] = None,
) -> PerformanceWatch:
    """
    Watch a target with timing on and aggregate stats per operation key.

    Only operations that reach delegation are timed; overridden and vetoed
    operations are not counted. Any on_after hook in options still runs.
    """
    config = normalize_config(options)
    tracker = PerformanceTracker(on_performance_update)
    user_after = config.on_after

    def on_after(context: OperationContext) -> None:
        tracker.record(context)
        if user_after is not None:
            user_after(context)

    config = _derive(config, enable_timing=True, on_after=on_after)
    facade = _manager(manager).install(target, config, name)
    return PerformanceWatch(facade, tracker)

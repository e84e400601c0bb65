"""
Watch manager: install and revoke facades.

Central entry point for watching objects.

Design rules:
- One active session per target; installing twice returns the same facade
- Misuse (double install, revoking an unknown handle) is reported with a
  warning, never an exception
- Registry and observer chain are injectable; nothing is global except the
  lazily created default manager
- The manager never keeps a facade alive. A session lives until revoke or
  until its target is collected; installing again after every facade was
  dropped hands out a fresh facade for the same session
"""

import logging
import threading
from typing import Any, List, Optional, Union

from . import reflect
from .config import KindProfile, LogLevel, WatchConfig, normalize_config, parse_kind
from .errors import ConfigurationError, InvalidTargetError
from .facade import Facade, create_facade, is_facade, poison_facade
from .observers import GlobalObserverChain, Observer
from .pipeline import build_pipelines
from .registry import Session, SessionRegistry

logger = logging.getLogger(__name__)

Handle = Union[Facade, str]


class WatchManager:
    """
    Installs watch sessions and owns the shared observer chain.

    Provides:
    - install / revoke of facades
    - Session and live config lookup by facade or name
    - Global observer registration
    """

    def __init__(
        self,
        registry: Optional[SessionRegistry] = None,
        observers: Optional[GlobalObserverChain] = None,
        uniform_containment: bool = True,
    ):
        """
        Args:
            registry: Session registry (a fresh one if omitted)
            observers: Global observer chain (a fresh one if omitted)
            uniform_containment: Give every operation kind the error boundary
                and observer broadcast. False limits both to get, set, apply
                and construct.
        """
        self._registry = registry if registry is not None else SessionRegistry()
        self._observers = observers if observers is not None else GlobalObserverChain()
        self._uniform_containment = uniform_containment
        self._lock = threading.RLock()

    @property
    def registry(self) -> SessionRegistry:
        return self._registry

    @property
    def observers(self) -> GlobalObserverChain:
        return self._observers

    @property
    def uniform_containment(self) -> bool:
        return self._uniform_containment

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def install(self, target: Any, options: Any = None, name: Optional[str] = None) -> Facade:
        """
        Start watching a target.

        Args:
            target: Any composite object or callable
            options: Configuration in any shape normalize_config() accepts
            name: Optional label for logs and name-based lookup

        Returns:
            The facade to use in place of target

        Raises:
            InvalidTargetError: If target is a scalar or None
            ConfigurationError: If options cannot be validated
        """
        if not reflect.is_watchable(target):
            raise InvalidTargetError(target)

        with self._lock:
            existing = self._registry.lookup_target(target)
            if existing is not None:
                facade = existing.facade
                if facade is None:
                    facade = create_facade(
                        existing,
                        build_pipelines(existing, self._observers, self._uniform_containment),
                    )
                    self._registry.attach_facade(existing, facade)
                logger.warning(
                    f"[LIFECYCLE] {existing.label} is already being watched, "
                    f"returning the existing session's facade"
                )
                return facade

            config = normalize_config(options)
            session = Session(target, config, name)
            facade = create_facade(
                session,
                build_pipelines(session, self._observers, self._uniform_containment),
            )
            self._registry.register(session)

        self._log_lifecycle(session, f"Started watching {session.label}")
        return facade

    def revoke(self, handle: Handle) -> Optional[Any]:
        """
        Stop watching and poison the facade.

        Args:
            handle: The facade, or the name it was installed under

        Returns:
            The original target, or None if handle is not an active session
        """
        with self._lock:
            session = self._resolve(handle)
            if session is None:
                logger.warning(f"[LIFECYCLE] No watched object found for {_describe_handle(handle)}")
                return None

            target = session.target
            facade = session.facade
            session.revoke()
            if facade is not None:
                poison_facade(facade)
            self._registry.unregister(session)

        self._log_lifecycle(session, f"Stopped watching {session.label}")
        return target

    # =========================================================================
    # Lookup
    # =========================================================================

    def get_session(self, handle: Handle) -> Optional[Session]:
        return self._resolve(handle)

    def get_config(self, handle: Handle, kind: Any = None) -> Union[WatchConfig, KindProfile, None]:
        """
        Live configuration of a session; edits apply to the next operation.

        Args:
            handle: The facade or its name
            kind: Optional operation kind (OperationKind, "get_prototype_of"
                or "getPrototypeOf") to get just that kind's profile

        Returns:
            The WatchConfig, the kind's KindProfile (None if that kind is
            disabled), or None if handle is not an active session

        Raises:
            ConfigurationError: If kind is not an operation kind
        """
        session = self._resolve(handle)
        if session is None:
            logger.warning(f"[LIFECYCLE] get_config: no watched object found for {_describe_handle(handle)}")
            return None
        if kind is None:
            return session.config
        parsed = parse_kind(kind)
        if parsed is None:
            raise ConfigurationError(f"Unknown operation kind: {kind!r}")
        return session.config.profile(parsed)

    def is_watched(self, target: Any) -> bool:
        return self._registry.lookup_target(target) is not None

    def sessions(self) -> List[Session]:
        return self._registry.sessions()

    def _resolve(self, handle: Any) -> Optional[Session]:
        # A facade first: isinstance() on a facade reads __class__ through its pipeline
        if is_facade(handle):
            return self._registry.lookup_facade(handle)
        if isinstance(handle, str):
            return self._registry.lookup_name(handle)
        return None

    # =========================================================================
    # Global observers
    # =========================================================================

    def add_global_observer(self, observer: Observer) -> None:
        """
        Register an observer notified before and after every intercepted
        operation of every session of this manager.

        Raises:
            TypeError: If observer is not callable
        """
        with self._lock:
            self._observers.add(observer)

    def remove_global_observer(self, observer: Observer) -> None:
        with self._lock:
            self._observers.remove(observer)

    # =========================================================================
    # Logging
    # =========================================================================

    def _log_lifecycle(self, session: Session, message: str) -> None:
        config = session.config
        if config.log is False:
            return
        if LogLevel.INFO.as_logging() < config.log_level.as_logging():
            return
        logger.info(f"[LIFECYCLE] {message}")


def _describe_handle(handle: Any) -> str:
    if is_facade(handle):
        return "revoked or unknown facade"
    if isinstance(handle, str):
        return f"name {handle!r}"
    return f"non-facade {type(handle).__name__}"


# Global manager instance
_default_manager: Optional[WatchManager] = None


def get_default_manager() -> WatchManager:
    """
    Get the default watch manager instance.

    Creates the manager on first access (lazy initialization).
    """
    global _default_manager
    if _default_manager is None:
        _default_manager = WatchManager()
    return _default_manager


def reset_default_manager() -> None:
    """Drop the default manager. Sessions it installed keep working."""
    global _default_manager
    _default_manager = None

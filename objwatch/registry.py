"""
Watch sessions and the session registry.

The registry provides:
- Session lookup by target identity, by facade identity and by name
- At most one active session per target
- Session lifetime tied to the target, not to any facade

Ownership:
- The registry owns active sessions until revoke.
- A session holds its target weakly when the target allows it, so the
  registry never keeps such a target alive. When the target is collected
  its session ends and every entry pointing at it is reaped.
- Targets that cannot be weakly referenced (dict, list, tuple) are held
  strongly by their session until revoke. Unwatch them before disposal.
- A facade holds its target strongly while it is live; the session holds
  the facade weakly. Dropping a facade does not end the session.

Lookups compare identities after resolving, so a recycled id() never
aliases a dead target or facade.
"""

import logging
import weakref
from datetime import datetime
from typing import Any, Dict, List, Optional

from .config import WatchConfig
from .models import SessionState, validate_session_transition

logger = logging.getLogger(__name__)


class Session:
    """
    Live binding of one target, its facade and its configuration.

    Holds the target weakly where possible and the facade weakly always.
    """

    def __init__(self, target: Any, config: WatchConfig, name: Optional[str] = None):
        try:
            self._target_ref = weakref.ref(target)
            self._target_weak = True
        except TypeError:
            self._target_ref = target
            self._target_weak = False
        self._target_type = type(target).__name__
        self.config = config
        self.name = name
        self.state = SessionState.ACTIVE
        self.created_at = datetime.now()
        self.revoked_at: Optional[datetime] = None
        self._facade_ref: Optional[weakref.ref] = None

    @property
    def target(self) -> Optional[Any]:
        """The watched object; None once a weakly held target is collected."""
        return self._target_ref() if self._target_weak else self._target_ref

    @property
    def holds_target_weakly(self) -> bool:
        return self._target_weak

    @property
    def facade(self) -> Optional[Any]:
        return self._facade_ref() if self._facade_ref is not None else None

    @property
    def active(self) -> bool:
        return self.state == SessionState.ACTIVE

    @property
    def label(self) -> str:
        """Name if given, else the target's type name. Never touches a facade."""
        return self.name or self._target_type

    def attach(self, facade: Any) -> None:
        self._facade_ref = weakref.ref(facade)

    def revoke(self) -> None:
        """
        Mark the session revoked.

        Raises:
            InvalidStateTransitionError: If already revoked
        """
        validate_session_transition(self.state, SessionState.REVOKED, self.label)
        self.state = SessionState.REVOKED
        self.revoked_at = datetime.now()
        if not self._target_weak:
            self._target_ref = None


class SessionRegistry:
    """
    Identity-keyed index of active sessions.

    Not thread-safe on its own; WatchManager serializes mutation.
    """

    def __init__(self):
        # id(session) -> session; the only strong owner of a session
        self._sessions: Dict[int, Session] = {}
        # id(target) -> session
        self._by_target: Dict[int, Session] = {}
        # id(facade) -> session
        self._by_facade: Dict[int, Session] = {}
        # name -> session
        self._by_name: Dict[str, Session] = {}
        # id(session) -> finalizers to detach on unregister
        self._finalizers: Dict[int, List[weakref.finalize]] = {}

    def register(self, session: Session) -> None:
        """
        Index an active session under its target, facade and name.

        Raises:
            ValueError: If the session has no live facade
        """
        facade = session.facade
        if facade is None:
            raise ValueError("Cannot register a session without a live facade")

        target = session.target
        self._sessions[id(session)] = session
        self._by_target[id(target)] = session
        if session.holds_target_weakly:
            self._track(session, weakref.finalize(target, self._on_target_collected, session))
        self.attach_facade(session, facade)

        if session.name is not None:
            previous = self.lookup_name(session.name)
            if previous is not None and previous is not session:
                logger.warning(
                    f"[LIFECYCLE] Name '{session.name}' rebound from a {previous.label} "
                    f"session to a {session.label} session"
                )
            self._by_name[session.name] = session

    def attach_facade(self, session: Session, facade: Any) -> None:
        """Index a (new) facade of a registered session."""
        key = id(facade)
        self._by_facade[key] = session
        self._track(session, weakref.finalize(facade, self._forget_facade, key, session))

    def unregister(self, session: Session) -> None:
        """Remove every entry pointing at the session."""
        for index in (self._by_target, self._by_facade, self._by_name):
            stale = [key for key, value in index.items() if value is session]
            for key in stale:
                del index[key]
        self._sessions.pop(id(session), None)
        for finalizer in self._finalizers.pop(id(session), []):
            finalizer.detach()

    def _track(self, session: Session, finalizer: weakref.finalize) -> None:
        finalizer.atexit = False
        self._finalizers.setdefault(id(session), []).append(finalizer)

    def _forget_facade(self, key: int, session: Session) -> None:
        if self._by_facade.get(key) is session:
            del self._by_facade[key]

    def _on_target_collected(self, session: Session) -> None:
        if session.active:
            session.revoke()
        self.unregister(session)
        logger.debug(f"[LIFECYCLE] Target of {session.label} collected, session ended")

    def lookup_target(self, target: Any) -> Optional[Session]:
        session = self._by_target.get(id(target))
        if session is None or session.target is not target or not session.active:
            return None
        return session

    def lookup_facade(self, facade: Any) -> Optional[Session]:
        session = self._by_facade.get(id(facade))
        if session is None or session.facade is not facade or not session.active:
            return None
        return session

    def lookup_name(self, name: str) -> Optional[Session]:
        session = self._by_name.get(name)
        if session is None or not session.active:
            return None
        return session

    def sessions(self) -> List[Session]:
        """List active sessions, oldest first."""
        live = [session for session in self._sessions.values() if session.active]
        live.sort(key=lambda s: s.created_at)
        return live

    def clear(self) -> None:
        for session in list(self._sessions.values()):
            self.unregister(session)

    def __len__(self) -> int:
        return len(self.sessions())

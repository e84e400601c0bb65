"""
Operation context and lifecycle models.

Represents one invocation flowing through an interceptor pipeline and the
state a watch session moves through.

Rules:
------
- An OperationContext is created once per invocation and only ever enriched.
  Later stages add fields (result, duration); they never clear fields that
  earlier stages set (property, arguments).
- Contexts are not retained by the engine after the invocation returns.
  Hooks that want them (aggregation) keep their own reference.
- Session lifecycle: ACTIVE -> REVOKED. No reactivation.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, FrozenSet, List, Optional, Set, Tuple

from pydantic import BaseModel, ConfigDict, Field

from .errors import InvalidStateTransitionError


class OperationKind(str, Enum):
    """
    The 13 fundamental operations a facade intercepts.
    """

    GET = "get"
    SET = "set"
    HAS = "has"
    DELETE_PROPERTY = "delete_property"
    DEFINE_PROPERTY = "define_property"
    GET_OWN_PROPERTY_DESCRIPTOR = "get_own_property_descriptor"
    OWN_KEYS = "own_keys"
    GET_PROTOTYPE_OF = "get_prototype_of"
    SET_PROTOTYPE_OF = "set_prototype_of"
    IS_EXTENSIBLE = "is_extensible"
    PREVENT_EXTENSIONS = "prevent_extensions"
    APPLY = "apply"
    CONSTRUCT = "construct"


# Kinds that get the error boundary and observer broadcast when a manager
# runs with uniform_containment=False.
RICH_KINDS: FrozenSet[OperationKind] = frozenset({
    OperationKind.GET,
    OperationKind.SET,
    OperationKind.APPLY,
    OperationKind.CONSTRUCT,
})


class Namespace(str, Enum):
    """Where a property key lives on the target."""

    ATTR = "attr"  # getattr / setattr / delattr
    ITEM = "item"  # target[key]
    SPECIAL = "special"  # implicit dunder lookup on type(target)


class ObserverPhase(str, Enum):
    """Pipeline phase a global observer is notified for."""

    BEFORE = "before"
    AFTER = "after"


class SessionState(str, Enum):
    """
    Watch session status.

    A session is created ACTIVE by install and becomes REVOKED exactly once.
    """

    ACTIVE = "active"
    REVOKED = "revoked"


_SESSION_TRANSITIONS: Set[Tuple[SessionState, SessionState]] = {
    (SessionState.ACTIVE, SessionState.REVOKED),
}


def can_transition_session(from_state: SessionState, to_state: SessionState) -> bool:
    """
    Check if a session state transition is legal.

    There is no self-transition: revoking twice is a misuse.
    """
    return (from_state, to_state) in _SESSION_TRANSITIONS


def validate_session_transition(
    from_state: SessionState, to_state: SessionState, label: Optional[str] = None
) -> None:
    """
    Validate a session state transition, raising an exception if illegal.

    Raises:
        InvalidStateTransitionError: If the transition is not allowed
    """
    if not can_transition_session(from_state, to_state):
        raise InvalidStateTransitionError(from_state.value, to_state.value, label)


class PropertyDescriptor(BaseModel):
    """
    Description of a single own property.

    A data descriptor carries a value. An accessor descriptor carries a
    getter and/or setter and is installed as a ``property`` on class targets.
    """

    model_config = ConfigDict(extra="forbid", arbitrary_types_allowed=True)

    value: Any = None
    getter: Optional[Callable[..., Any]] = None
    setter: Optional[Callable[..., Any]] = None

    @property
    def is_accessor(self) -> bool:
        return self.getter is not None or self.setter is not None


class OperationContext(BaseModel):
    """
    Everything known about one intercepted operation.

    Populated progressively:
    1. Minimal context (kind, target, payload) for the conditional gate
    2. Prior values and stack capture before hooks run
    3. Result fields, final arguments and duration after delegation
    4. The fault, if the operation raised
    """

    model_config = ConfigDict(extra="forbid", arbitrary_types_allowed=True)

    # ==================== IDENTITY ====================
    kind: OperationKind
    timestamp: datetime = Field(default_factory=datetime.now)
    target: Any = None
    session_name: Optional[str] = None

    # ==================== PAYLOAD ====================
    namespace: Optional[Namespace] = None
    property: Any = None
    receiver: Any = None
    arguments: Optional[List[Any]] = None
    kwargs: Optional[Dict[str, Any]] = None
    new_target: Any = None
    old_value: Any = None
    new_value: Any = None
    deleted_value: Any = None
    descriptor: Optional[PropertyDescriptor] = None
    prototype: Any = None

    # ==================== OUTCOME ====================
    value: Any = None
    success: Optional[bool] = None
    exists: Optional[bool] = None
    keys: Optional[List[Any]] = None
    extensible: Optional[bool] = None
    instance: Any = None
    result: Any = None
    replaced: bool = False

    # ==================== DIAGNOSTICS ====================
    duration: Optional[float] = None  # Milliseconds, only with enable_timing
    stack: Optional[str] = None  # Only with enable_stack_trace
    error: Optional[BaseException] = None

    def enriched(self, **updates: Any) -> "OperationContext":
        """
        Return a copy with the given fields added or updated.

        A None update never clears a field that already holds a value.
        """
        effective = {
            name: value
            for name, value in updates.items()
            if value is not None or getattr(self, name) is None
        }
        return self.model_copy(update=effective)

"""
Facade: the surrogate handle that stands in for a watched target.

Python has no generic interception primitive, so a Facade is an explicit
wrapper type. Its special methods route native syntax into the pipeline:

    f.x / f.x = v / del f.x          get / set / delete_property (attr)
    f[k] / f[k] = v / del f[k]       get / set / delete_property (item)
    k in f                           has (item)
    f.__class__ / f.__class__ = C    get_prototype_of / set_prototype_of
    f(...)                           construct for classes, apply otherwise
    len(f), repr(f), f == g, f + g   get (special) of the dunder, then call

Kinds with no native syntax (descriptors, own keys, extensibility) go
through objwatch.ops. Statement forms discard a False outcome; ops returns
it.

Special methods:
- Container, conversion, comparison, context manager, async and numeric
  dunders (binary, reflected, in-place and unary) are forwarded. A binary
  dunder the target's type lacks returns NotImplemented so Python tries the
  other operand; the rest raise the TypeError Python would raise.
- In-place operators that return the target keep the facade bound.
- iter() and reversed() fall back to the legacy __getitem__ protocol.
- Only the facade is unwrapped. A facade passed as the other operand
  reaches the target as is.
- Every dunder exists on the Facade type, so isinstance checks against
  one-method ABCs (Iterable, Sized, Hashable) pass for any facade. Use
  is_facade() and target_of() to inspect the target's real capabilities.

Lifecycle: created bound 1:1 to a session by create_facade(), poisoned by
poison_facade(). A live facade keeps its target alive. A poisoned facade
releases it and raises FacadeRevokedError for every operation, including
repr().
"""

import logging
from typing import Any, Dict, Iterator, Optional

from . import reflect
from .errors import FacadeRevokedError
from .models import Namespace, OperationKind

logger = logging.getLogger(__name__)


class _FacadeHandler:
    """Per-facade state: ACTIVE while pipelines is set, poisoned after."""

    __slots__ = ("session", "pipelines", "target")

    def __init__(self, session: Any, pipelines: Dict[OperationKind, Any], target: Any):
        self.session = session
        self.pipelines = pipelines
        self.target = target

    def dispatch(self, kind: OperationKind, **payload: Any) -> Any:
        pipelines = self.pipelines
        if pipelines is None:
            raise FacadeRevokedError(kind.value, self.session.name)
        return pipelines[kind](**payload)


def _handler(facade: "Facade") -> _FacadeHandler:
    return object.__getattribute__(facade, "_objwatch_handler")


def _dispatch(facade: "Facade", kind: OperationKind, **payload: Any) -> Any:
    return _handler(facade).dispatch(kind, **payload)


def _special(facade: "Facade", name: str) -> Any:
    return _dispatch(facade, OperationKind.GET, property=name, namespace=Namespace.SPECIAL)


def _live_type(facade: "Facade", operation: str) -> type:
    """Type of the target, or FacadeRevokedError if the facade is poisoned."""
    handler = _handler(facade)
    if handler.pipelines is None:
        raise FacadeRevokedError(operation, handler.session.name)
    return type(handler.target)


def _iterate_by_index(getitem: Any) -> Iterator[Any]:
    index = 0
    while True:
        try:
            value = getitem(index)
        except (IndexError, StopIteration):
            return
        yield value
        index += 1


class Facade:
    """Identity-distinct stand-in forwarding every operation through a pipeline."""

    __slots__ = ("_objwatch_handler", "__weakref__")

    def __new__(cls, *args, **kwargs):
        raise TypeError("Facades are created by WatchManager.install()")

    def __getattribute__(self, name: str) -> Any:
        if name == "__class__":
            return _dispatch(self, OperationKind.GET_PROTOTYPE_OF)
        return _dispatch(self, OperationKind.GET, property=name, namespace=Namespace.ATTR)

    def __setattr__(self, name: str, value: Any) -> None:
        if name == "__class__":
            _dispatch(self, OperationKind.SET_PROTOTYPE_OF, prototype=value)
            return
        _dispatch(self, OperationKind.SET, property=name, new_value=value, namespace=Namespace.ATTR)

    def __delattr__(self, name: str) -> None:
        _dispatch(self, OperationKind.DELETE_PROPERTY, property=name, namespace=Namespace.ATTR)

    def __getitem__(self, key: Any) -> Any:
        return _dispatch(self, OperationKind.GET, property=key, namespace=Namespace.ITEM)

    def __setitem__(self, key: Any, value: Any) -> None:
        _dispatch(self, OperationKind.SET, property=key, new_value=value, namespace=Namespace.ITEM)

    def __delitem__(self, key: Any) -> None:
        _dispatch(self, OperationKind.DELETE_PROPERTY, property=key, namespace=Namespace.ITEM)

    def __contains__(self, key: Any) -> bool:
        return bool(_dispatch(self, OperationKind.HAS, property=key, namespace=Namespace.ITEM))

    def __call__(self, *args: Any, **kwargs: Any) -> Any:
        cls = _live_type(self, "__call__")
        kind = OperationKind.CONSTRUCT if issubclass(cls, type) else OperationKind.APPLY
        return _dispatch(self, kind, arguments=list(args), kwargs=kwargs)

    def __bool__(self) -> bool:
        cls = _live_type(self, "__bool__")
        if reflect.supports(cls, "__bool__"):
            return bool(_special(self, "__bool__")())
        if reflect.supports(cls, "__len__"):
            return _special(self, "__len__")() != 0
        return True

    def __iter__(self) -> Iterator[Any]:
        cls = _live_type(self, "__iter__")
        if reflect.supports(cls, "__iter__"):
            return _special(self, "__iter__")()
        if reflect.supports(cls, "__getitem__"):
            return _iterate_by_index(_special(self, "__getitem__"))
        raise TypeError(f"'{cls.__name__}' object is not iterable")

    def __reversed__(self) -> Iterator[Any]:
        cls = _live_type(self, "__reversed__")
        if reflect.supports(cls, "__reversed__"):
            return _special(self, "__reversed__")()
        if reflect.supports(cls, "__len__") and reflect.supports(cls, "__getitem__"):
            size = _special(self, "__len__")()
            getitem = _special(self, "__getitem__")
            return (getitem(index) for index in range(size - 1, -1, -1))
        raise TypeError(f"'{cls.__name__}' object is not reversible")


def _forwarder(name: str):
    def method(self, *args):
        cls = _live_type(self, name)
        if not reflect.supports(cls, name):
            raise reflect.unsupported(cls, name)
        return _special(self, name)(*args)
    method.__name__ = name
    method.__qualname__ = f"Facade.{name}"
    return method


def _binary_forwarder(name: str):
    def method(self, other):
        cls = _live_type(self, name)
        if not reflect.supports(cls, name):
            return NotImplemented
        return _special(self, name)(other)
    method.__name__ = name
    method.__qualname__ = f"Facade.{name}"
    return method


def _inplace_forwarder(name: str):
    def method(self, other):
        cls = _live_type(self, name)
        if not reflect.supports(cls, name):
            return NotImplemented
        result = _special(self, name)(other)
        if result is _handler(self).target:
            return self
        return result
    method.__name__ = name
    method.__qualname__ = f"Facade.{name}"
    return method


_FORWARDED_SPECIAL_METHODS = (
    "__len__",
    "__repr__", "__str__", "__bytes__", "__format__", "__dir__",
    "__hash__", "__eq__", "__ne__", "__lt__", "__le__", "__gt__", "__ge__",
    "__enter__", "__exit__",
    "__aenter__", "__aexit__", "__await__", "__aiter__", "__anext__",
    "__index__", "__int__", "__float__", "__complex__",
    "__neg__", "__pos__", "__abs__", "__invert__",
    "__round__", "__trunc__", "__floor__", "__ceil__",
)

_BINARY_OPERATORS = (
    "add", "sub", "mul", "matmul", "truediv", "floordiv", "mod", "divmod",
    "pow", "lshift", "rshift", "and", "xor", "or",
)

for _name in _FORWARDED_SPECIAL_METHODS:
    setattr(Facade, _name, _forwarder(_name))

for _op in _BINARY_OPERATORS:
    setattr(Facade, f"__{_op}__", _binary_forwarder(f"__{_op}__"))
    setattr(Facade, f"__r{_op}__", _binary_forwarder(f"__r{_op}__"))
    if _op != "divmod":
        setattr(Facade, f"__i{_op}__", _inplace_forwarder(f"__i{_op}__"))


# =============================================================================
# Lifecycle
# =============================================================================

def create_facade(session: Any, pipelines: Dict[OperationKind, Any]) -> Facade:
    """Create a facade for a session and attach it (weakly) to the session."""
    facade = object.__new__(Facade)
    object.__setattr__(facade, "_objwatch_handler", _FacadeHandler(session, pipelines, session.target))
    session.attach(facade)
    return facade


def poison_facade(facade: Facade) -> None:
    """Make a facade permanently inert and release its pipelines and target."""
    handler = _handler(facade)
    handler.pipelines = None
    handler.target = None
    logger.debug(f"[LIFECYCLE] Facade for {handler.session.label} poisoned")


def is_facade(obj: Any) -> bool:
    """Identify a facade without running any operation on it."""
    return type(obj) is Facade


def target_of(facade: Facade) -> Any:
    """The raw target behind a facade (None once revoked). Not an intercepted operation."""
    return _handler(facade).target


def is_revoked(facade: Facade) -> bool:
    return _handler(facade).pipelines is None


def session_of(facade: Facade) -> Optional[Any]:
    return _handler(facade).session

"""
Direct fundamental operations on raw targets.

This is the only module that touches a target for real. Facade pipelines
call it for delegation, the conditional gate calls it for pass-through,
and objwatch.ops calls it when handed an object that is not a facade.

Python has no native "non-extensible" object. The seal table below is an
identity-keyed record of targets passed to prevent_extensions(); set and
define_property refuse new keys on sealed targets. Natively fixed-shape
objects (tuples, slotted instances, builtin types) report non-extensible
but are left to raise their own errors.

Sealing a target that cannot be weakly referenced (dict, list) keeps it
alive for the life of the process.
"""

import builtins
import logging
import weakref
from collections.abc import Mapping, MutableMapping, MutableSequence, MutableSet, Sequence
from collections.abc import Set as AbstractSet
from typing import Any, Dict, List, Optional, Tuple

from .models import Namespace, PropertyDescriptor

logger = logging.getLogger(__name__)

_SCALAR_TYPES = (type(None), bool, int, float, complex, str, bytes)
_TEXT_TYPES = (str, bytes, bytearray)


class _IdentitySet:
    """Membership by object identity, weak where the object allows it."""

    def __init__(self):
        # id(obj) -> (weakref or obj, is_weak)
        self._entries: Dict[int, Tuple[Any, bool]] = {}

    def add(self, obj: Any) -> None:
        key = id(obj)
        if obj in self:
            return
        try:
            ref = weakref.ref(obj, lambda r, key=key: self._reap(key, r))
            self._entries[key] = (ref, True)
        except TypeError:
            self._entries[key] = (obj, False)

    def _reap(self, key: int, ref: weakref.ref) -> None:
        entry = self._entries.get(key)
        if entry is not None and entry[0] is ref:
            del self._entries[key]

    def __contains__(self, obj: Any) -> bool:
        entry = self._entries.get(id(obj))
        if entry is None:
            return False
        held, is_weak = entry
        return (held() if is_weak else held) is obj


_SEALED = _IdentitySet()


def is_watchable(target: Any) -> bool:
    """Composite objects and callables can be watched; scalars cannot."""
    return callable(target) or not isinstance(target, _SCALAR_TYPES)


def default_namespace(target: Any) -> Namespace:
    """Containers default to item keys, everything else to attributes."""
    if isinstance(target, _TEXT_TYPES):
        return Namespace.ATTR
    if isinstance(target, (Mapping, Sequence, AbstractSet)):
        return Namespace.ITEM
    return Namespace.ATTR


def _slot_names(cls: type) -> List[str]:
    names = []
    for klass in cls.__mro__:
        slots = klass.__dict__.get("__slots__", ())
        if isinstance(slots, str):
            slots = (slots,)
        for slot in slots:
            if slot not in ("__dict__", "__weakref__") and slot not in names:
                names.append(slot)
    return names


def _own_attributes(target: Any) -> List[Any]:
    try:
        names = list(vars(target))
    except TypeError:
        names = []
    for slot in _slot_names(type(target)):
        if slot not in names and hasattr(target, slot):
            names.append(slot)
    return names


def has_own(target: Any, key: Any, namespace: Namespace = Namespace.ATTR) -> bool:
    """Whether the key is stored on the target itself (not inherited)."""
    if namespace == Namespace.ITEM:
        if isinstance(target, Mapping):
            return key in target
        if isinstance(target, Sequence):
            return isinstance(key, int) and -len(target) <= key < len(target)
        return key in target
    return key in _own_attributes(target)


def supports(cls: type, name: str) -> bool:
    """Whether instances of cls implement the special method name."""
    return getattr(cls, name, None) is not None


def unsupported(cls: type, name: str) -> TypeError:
    """The TypeError Python raises when cls lacks the special method name."""
    if name == "__hash__":
        return TypeError(f"unhashable type: '{cls.__name__}'")
    if name == "__len__":
        return TypeError(f"object of type '{cls.__name__}' has no len()")
    return TypeError(f"'{cls.__name__}' object does not support {name}")


def _special(target: Any, name: str) -> Any:
    cls = type(target)
    if not supports(cls, name):
        raise unsupported(cls, name)
    method = getattr(cls, name)
    if hasattr(method, "__get__"):
        return method.__get__(target, cls)
    return method


def peek(target: Any, key: Any, namespace: Namespace = Namespace.ATTR) -> Optional[Any]:
    """Read a value for context reporting; missing keys read as None."""
    try:
        return get(target, key, namespace)
    except (AttributeError, KeyError, IndexError, TypeError):
        return None


# =============================================================================
# The 13 fundamental operations
# =============================================================================

def get(target: Any, key: Any, namespace: Namespace = Namespace.ATTR) -> Any:
    if namespace == Namespace.ITEM:
        return target[key]
    if namespace == Namespace.SPECIAL:
        return _special(target, key)
    return getattr(target, key)


def set(target: Any, key: Any, value: Any, namespace: Namespace = Namespace.ATTR) -> bool:
    if target in _SEALED and not has_own(target, key, namespace):
        return False
    if namespace == Namespace.ITEM:
        target[key] = value
    else:
        setattr(target, key, value)
    return True


def has(target: Any, key: Any, namespace: Namespace = Namespace.ATTR) -> bool:
    if namespace == Namespace.ITEM:
        return key in target
    if namespace == Namespace.SPECIAL:
        return getattr(type(target), key, None) is not None
    return hasattr(target, key)


def delete_property(target: Any, key: Any, namespace: Namespace = Namespace.ATTR) -> bool:
    if namespace == Namespace.ITEM:
        del target[key]
    else:
        delattr(target, key)
    return True


def define_property(
    target: Any,
    key: Any,
    descriptor: PropertyDescriptor,
    namespace: Namespace = Namespace.ATTR,
) -> bool:
    """
    Define or redefine an own property.

    Accessor descriptors can only be installed on classes; instances and
    container items report False.
    """
    if target in _SEALED and not has_own(target, key, namespace):
        return False
    if descriptor.is_accessor:
        if namespace == Namespace.ITEM or not isinstance(target, type):
            return False
        setattr(target, key, builtins.property(descriptor.getter, descriptor.setter))
        return True
    if namespace == Namespace.ITEM:
        target[key] = descriptor.value
    else:
        setattr(target, key, descriptor.value)
    return True


def get_own_property_descriptor(
    target: Any,
    key: Any,
    namespace: Namespace = Namespace.ATTR,
) -> Optional[PropertyDescriptor]:
    if namespace == Namespace.ITEM:
        if not has_own(target, key, namespace):
            return None
        return PropertyDescriptor(value=target[key])

    try:
        storage = vars(target)
    except TypeError:
        storage = None
    if storage is not None and key in storage:
        raw = storage[key]
        if isinstance(raw, builtins.property):
            return PropertyDescriptor(getter=raw.fget, setter=raw.fset)
        return PropertyDescriptor(value=raw)
    if key in _slot_names(type(target)) and hasattr(target, key):
        return PropertyDescriptor(value=getattr(target, key))
    return None


def own_keys(target: Any, namespace: Namespace = Namespace.ATTR) -> List[Any]:
    if namespace == Namespace.ITEM:
        if isinstance(target, Mapping):
            return list(target.keys())
        if isinstance(target, Sequence):
            return list(range(len(target)))
        return list(target)
    return _own_attributes(target)


def get_prototype_of(target: Any) -> type:
    return type(target)


def set_prototype_of(target: Any, prototype: type) -> bool:
    if type(target) is prototype:
        return True
    if target in _SEALED:
        return False
    try:
        target.__class__ = prototype
    except TypeError as e:
        logger.debug(f"[REFLECT] __class__ assignment refused for {type(target).__name__}: {e}")
        return False
    return True


def is_extensible(target: Any) -> bool:
    if target in _SEALED:
        return False
    if isinstance(target, (MutableMapping, MutableSequence, MutableSet)):
        return True
    if isinstance(target, type):
        return target.__module__ != "builtins"
    try:
        vars(target)
    except TypeError:
        return False
    return True


def prevent_extensions(target: Any) -> bool:
    _SEALED.add(target)
    return True


def apply(
    target: Any,
    receiver: Any = None,
    arguments: Optional[List[Any]] = None,
    kwargs: Optional[Dict[str, Any]] = None,
) -> Any:
    """Call target; an explicit receiver is passed as the first argument."""
    args = list(arguments or ())
    if receiver is not None:
        args.insert(0, receiver)
    return target(*args, **(kwargs or {}))


def construct(
    target: Any,
    arguments: Optional[List[Any]] = None,
    kwargs: Optional[Dict[str, Any]] = None,
    new_target: Any = None,
) -> Any:
    """Instantiate new_target (default: target), which must subclass target."""
    cls = target if new_target is None else new_target
    if cls is not target:
        if not (isinstance(cls, type) and isinstance(target, type) and issubclass(cls, target)):
            raise TypeError(
                f"new_target {cls!r} is not a subclass of {target!r}"
            )
    return cls(*(arguments or ()), **(kwargs or {}))

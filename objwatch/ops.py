"""
Explicit accessors for the fundamental operations.

Every function works on a facade (the operation runs through its pipeline)
or on a raw object (the operation runs directly). Unlike the statement
forms on Facade, these return the operation's boolean outcome, so a vetoed
or refused set/delete/define is observable as False.

When namespace is omitted, containers (mappings, sequences, sets) use item
keys and everything else uses attributes.

Example:
    watched = watch({"a": 1})
    ops.set(watched, "b", 2)        # True, or False if vetoed
    ops.own_keys(watched)           # ["a", "b"]
    ops.prevent_extensions(watched)
    ops.set(watched, "c", 3)        # False
"""

from collections.abc import Mapping
from typing import Any, Dict, List, Optional, Sequence, Union

from . import reflect
from .facade import _dispatch, is_facade, target_of
from .models import Namespace, OperationKind, PropertyDescriptor

NamespaceLike = Union[Namespace, str, None]


def _raw(obj: Any) -> Any:
    return target_of(obj) if is_facade(obj) else obj


def _namespace(obj: Any, namespace: NamespaceLike) -> Namespace:
    if namespace is not None:
        return Namespace(namespace)
    return reflect.default_namespace(_raw(obj))


def _descriptor(descriptor: Any) -> PropertyDescriptor:
    if isinstance(descriptor, PropertyDescriptor):
        return descriptor
    if isinstance(descriptor, Mapping):
        return PropertyDescriptor.model_validate(dict(descriptor))
    return PropertyDescriptor(value=descriptor)


def get(obj: Any, key: Any, namespace: NamespaceLike = None) -> Any:
    ns = _namespace(obj, namespace)
    if is_facade(obj):
        return _dispatch(obj, OperationKind.GET, property=key, namespace=ns)
    return reflect.get(obj, key, ns)


def set(obj: Any, key: Any, value: Any, namespace: NamespaceLike = None) -> bool:
    ns = _namespace(obj, namespace)
    if is_facade(obj):
        return _dispatch(obj, OperationKind.SET, property=key, new_value=value, namespace=ns)
    return reflect.set(obj, key, value, ns)


def has(obj: Any, key: Any, namespace: NamespaceLike = None) -> bool:
    ns = _namespace(obj, namespace)
    if is_facade(obj):
        return _dispatch(obj, OperationKind.HAS, property=key, namespace=ns)
    return reflect.has(obj, key, ns)


def delete_property(obj: Any, key: Any, namespace: NamespaceLike = None) -> bool:
    ns = _namespace(obj, namespace)
    if is_facade(obj):
        return _dispatch(obj, OperationKind.DELETE_PROPERTY, property=key, namespace=ns)
    return reflect.delete_property(obj, key, ns)


def define_property(obj: Any, key: Any, descriptor: Any, namespace: NamespaceLike = None) -> bool:
    """
    Define an own property.

    descriptor may be a PropertyDescriptor, a mapping with value/getter/setter
    keys, or a bare value (data descriptor).
    """
    ns = _namespace(obj, namespace)
    desc = _descriptor(descriptor)
    if is_facade(obj):
        return _dispatch(obj, OperationKind.DEFINE_PROPERTY, property=key, descriptor=desc, namespace=ns)
    return reflect.define_property(obj, key, desc, ns)


def get_own_property_descriptor(
    obj: Any,
    key: Any,
    namespace: NamespaceLike = None,
) -> Optional[PropertyDescriptor]:
    ns = _namespace(obj, namespace)
    if is_facade(obj):
        return _dispatch(obj, OperationKind.GET_OWN_PROPERTY_DESCRIPTOR, property=key, namespace=ns)
    return reflect.get_own_property_descriptor(obj, key, ns)


def own_keys(obj: Any, namespace: NamespaceLike = None) -> List[Any]:
    ns = _namespace(obj, namespace)
    if is_facade(obj):
        return _dispatch(obj, OperationKind.OWN_KEYS, namespace=ns)
    return reflect.own_keys(obj, ns)


def get_prototype_of(obj: Any) -> Any:
    if is_facade(obj):
        return _dispatch(obj, OperationKind.GET_PROTOTYPE_OF)
    return reflect.get_prototype_of(obj)


def set_prototype_of(obj: Any, prototype: type) -> bool:
    if is_facade(obj):
        return _dispatch(obj, OperationKind.SET_PROTOTYPE_OF, prototype=prototype)
    return reflect.set_prototype_of(obj, prototype)


def is_extensible(obj: Any) -> bool:
    if is_facade(obj):
        return _dispatch(obj, OperationKind.IS_EXTENSIBLE)
    return reflect.is_extensible(obj)


def prevent_extensions(obj: Any) -> bool:
    if is_facade(obj):
        return _dispatch(obj, OperationKind.PREVENT_EXTENSIONS)
    return reflect.prevent_extensions(obj)


def apply(
    obj: Any,
    arguments: Sequence[Any] = (),
    kwargs: Optional[Dict[str, Any]] = None,
    receiver: Any = None,
) -> Any:
    """Call obj with an explicit receiver (passed as the first argument)."""
    if is_facade(obj):
        return _dispatch(
            obj, OperationKind.APPLY,
            receiver=receiver, arguments=list(arguments), kwargs=dict(kwargs or {}),
        )
    return reflect.apply(obj, receiver, list(arguments), kwargs)


def construct(
    obj: Any,
    arguments: Sequence[Any] = (),
    kwargs: Optional[Dict[str, Any]] = None,
    new_target: Optional[type] = None,
) -> Any:
    """Instantiate obj, or the subclass new_target of it."""
    if is_facade(obj):
        return _dispatch(
            obj, OperationKind.CONSTRUCT,
            arguments=list(arguments), kwargs=dict(kwargs or {}), new_target=new_target,
        )
    return reflect.construct(obj, list(arguments), kwargs, new_target)

"""
Direct operation tests for objwatch.reflect.

These run against raw objects only; no facade, no pipeline.
"""

import pytest

from objwatch import reflect
from objwatch.models import Namespace, PropertyDescriptor


# =============================================================================
# Test Helpers
# =============================================================================

class Plain:
    def __init__(self):
        self.x = 1
        self.y = 2

    def method(self):
        return "method"


class Slotted:
    __slots__ = ("a", "b")

    def __init__(self):
        self.a = 10


class Other:
    pass


# =============================================================================
# Watchability and namespaces
# =============================================================================

@pytest.mark.parametrize("value", [None, 0, 1.5, True, "text", b"bytes", 3j])
def test_scalars_are_not_watchable(value):
    assert reflect.is_watchable(value) is False


@pytest.mark.parametrize("value", [{}, [], set(), Plain(), len, Plain, lambda: None])
def test_composites_and_callables_are_watchable(value):
    assert reflect.is_watchable(value) is True


def test_default_namespace():
    assert reflect.default_namespace({"a": 1}) == Namespace.ITEM
    assert reflect.default_namespace([1]) == Namespace.ITEM
    assert reflect.default_namespace(frozenset()) == Namespace.ITEM
    assert reflect.default_namespace(bytearray(b"x")) == Namespace.ATTR
    assert reflect.default_namespace(Plain()) == Namespace.ATTR


# =============================================================================
# get / set / has / delete
# =============================================================================

class TestAccess:
    def test_get_attr_and_item(self):
        assert reflect.get(Plain(), "x") == 1
        assert reflect.get({"k": "v"}, "k", Namespace.ITEM) == "v"
        assert reflect.get([5, 6], 1, Namespace.ITEM) == 6

    def test_get_missing_raises_like_python(self):
        with pytest.raises(AttributeError):
            reflect.get(Plain(), "missing")
        with pytest.raises(KeyError):
            reflect.get({}, "missing", Namespace.ITEM)
        with pytest.raises(IndexError):
            reflect.get([], 3, Namespace.ITEM)

    def test_get_special_binds_to_target(self):
        length = reflect.get([1, 2, 3], "__len__", Namespace.SPECIAL)
        assert length() == 3

    def test_get_special_missing_raises_type_error(self):
        with pytest.raises(TypeError):
            reflect.get(Plain(), "__len__", Namespace.SPECIAL)
        with pytest.raises(TypeError, match="unhashable"):
            reflect.get({}, "__hash__", Namespace.SPECIAL)

    def test_peek_swallows_lookup_errors(self):
        assert reflect.peek({}, "missing", Namespace.ITEM) is None
        assert reflect.peek(Plain(), "missing") is None
        assert reflect.peek(Plain(), "x") == 1

    def test_set_and_has(self):
        obj = Plain()
        assert reflect.set(obj, "z", 3) is True
        assert obj.z == 3
        assert reflect.has(obj, "z") is True

        data = {}
        assert reflect.set(data, "k", 1, Namespace.ITEM) is True
        assert data == {"k": 1}
        assert reflect.has(data, "k", Namespace.ITEM) is True
        assert reflect.has(data, "nope", Namespace.ITEM) is False

    def test_has_special_looks_at_type(self):
        assert reflect.has([], "__len__", Namespace.SPECIAL) is True
        assert reflect.has(Plain(), "__len__", Namespace.SPECIAL) is False

    def test_delete(self):
        obj = Plain()
        assert reflect.delete_property(obj, "x") is True
        assert not hasattr(obj, "x")

        data = {"a": 1, "b": 2}
        assert reflect.delete_property(data, "a", Namespace.ITEM) is True
        assert data == {"b": 2}

    def test_delete_missing_raises(self):
        with pytest.raises(KeyError):
            reflect.delete_property({}, "a", Namespace.ITEM)


# =============================================================================
# Descriptors and keys
# =============================================================================

class TestDescriptors:
    def test_define_data_property(self):
        obj = Plain()
        assert reflect.define_property(obj, "x", PropertyDescriptor(value=9)) is True
        assert obj.x == 9

    def test_define_accessor_on_class(self):
        class Target:
            pass

        desc = PropertyDescriptor(getter=lambda self: "computed")
        assert reflect.define_property(Target, "value", desc) is True
        assert Target().value == "computed"

    def test_define_accessor_on_instance_is_refused(self):
        desc = PropertyDescriptor(getter=lambda self: "computed")
        assert reflect.define_property(Plain(), "value", desc) is False
        assert reflect.define_property({}, "value", desc, Namespace.ITEM) is False

    def test_own_descriptor_ignores_inherited(self):
        obj = Plain()
        assert reflect.get_own_property_descriptor(obj, "x") == PropertyDescriptor(value=1)
        assert reflect.get_own_property_descriptor(obj, "method") is None

    def test_own_descriptor_reports_class_property(self):
        class Target:
            @property
            def size(self):
                return 4

        desc = reflect.get_own_property_descriptor(Target, "size")
        assert desc.is_accessor
        assert desc.getter(Target()) == 4

    def test_own_descriptor_items_and_slots(self):
        assert reflect.get_own_property_descriptor({"a": 1}, "a", Namespace.ITEM).value == 1
        assert reflect.get_own_property_descriptor({"a": 1}, "b", Namespace.ITEM) is None
        assert reflect.get_own_property_descriptor(Slotted(), "a").value == 10
        assert reflect.get_own_property_descriptor(Slotted(), "b") is None

    def test_own_keys(self):
        assert reflect.own_keys({"b": 1, "a": 2}, Namespace.ITEM) == ["b", "a"]
        assert reflect.own_keys(["x", "y"], Namespace.ITEM) == [0, 1]
        assert reflect.own_keys(Plain()) == ["x", "y"]
        assert reflect.own_keys(Slotted()) == ["a"]


# =============================================================================
# Prototype and extensibility
# =============================================================================

class TestPrototype:
    def test_get_prototype_is_type(self):
        assert reflect.get_prototype_of({}) is dict
        assert reflect.get_prototype_of(Plain()) is Plain

    def test_set_prototype_compatible_layout(self):
        obj = Plain()
        assert reflect.set_prototype_of(obj, Other) is True
        assert type(obj) is Other

    def test_set_prototype_same_type_is_noop(self):
        data = {}
        assert reflect.set_prototype_of(data, dict) is True

    def test_set_prototype_refused_returns_false(self):
        assert reflect.set_prototype_of([], tuple) is False


class TestExtensibility:
    def test_native_extensibility(self):
        assert reflect.is_extensible({}) is True
        assert reflect.is_extensible([]) is True
        assert reflect.is_extensible(Plain()) is True
        assert reflect.is_extensible(Plain) is True
        assert reflect.is_extensible((1, 2)) is False
        assert reflect.is_extensible(object()) is False
        assert reflect.is_extensible(int) is False

    def test_prevent_extensions_seals_new_keys(self):
        data = {"a": 1}
        assert reflect.prevent_extensions(data) is True
        assert reflect.is_extensible(data) is False
        assert reflect.set(data, "b", 2, Namespace.ITEM) is False
        assert reflect.set(data, "a", 5, Namespace.ITEM) is True
        assert data == {"a": 5}

    def test_sealed_object_refuses_define_and_set_prototype(self):
        obj = Plain()
        reflect.prevent_extensions(obj)
        assert reflect.define_property(obj, "new", PropertyDescriptor(value=1)) is False
        assert reflect.define_property(obj, "x", PropertyDescriptor(value=7)) is True
        assert reflect.set_prototype_of(obj, Other) is False
        assert obj.x == 7


# =============================================================================
# apply / construct
# =============================================================================

class TestInvocation:
    def test_apply_with_receiver(self):
        obj = Plain()
        assert reflect.apply(Plain.method, obj, []) == "method"
        assert reflect.apply(lambda a, b=0: a + b, None, [1], {"b": 2}) == 3

    def test_construct(self):
        assert isinstance(reflect.construct(Plain, []), Plain)

    def test_construct_with_subclass_new_target(self):
        class Child(Plain):
            pass

        assert type(reflect.construct(Plain, [], None, Child)) is Child

    def test_construct_with_unrelated_new_target_raises(self):
        with pytest.raises(TypeError):
            reflect.construct(Plain, [], None, Other)

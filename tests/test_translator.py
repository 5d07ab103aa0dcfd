"""Tests for the single-type translator."""

from __future__ import annotations

from ts_interface_generator import EnumRenderMode, get_ts_type
from type_metadata import TypeDescriptor, TypeKind

from tests._fixtures.type_graph import (
    BOOLEAN,
    DATE_TIME,
    DECIMAL,
    INT,
    STRING,
    array_of,
    enum,
    list_of,
    nullable,
    record,
)


def test_primitives_map_to_builtin_typescript_types() -> None:
    assert get_ts_type(STRING).type_name == "string"
    assert get_ts_type(BOOLEAN).type_name == "boolean"
    assert get_ts_type(DATE_TIME).type_name == "Date"
    assert get_ts_type(INT).type_name == "number"
    assert get_ts_type(DECIMAL).type_name == "number"


def test_primitives_discover_nothing() -> None:
    for descriptor in (STRING, BOOLEAN, DATE_TIME, INT):
        ts_type = get_ts_type(descriptor)
        assert ts_type.discovered is None
        assert ts_type.is_nullable is False


def test_array_of_primitive_appends_brackets() -> None:
    ts_type = get_ts_type(array_of(STRING))
    assert ts_type.type_name == "string[]"
    assert ts_type.discovered is None


def test_nested_arrays_stack_brackets() -> None:
    assert get_ts_type(array_of(array_of(INT))).type_name == "number[][]"


def test_array_of_class_propagates_discovery() -> None:
    child = record("Child")
    ts_type = get_ts_type(array_of(child))
    assert ts_type.type_name == "Child[]"
    assert ts_type.discovered is child


def test_collection_translates_generic_argument() -> None:
    child = record("Child")
    ts_type = get_ts_type(list_of(child))
    assert ts_type.type_name == "Child[]"
    assert ts_type.discovered is child


def test_collection_without_argument_degrades_to_name() -> None:
    bare = TypeDescriptor("System.Collections.ArrayList", "ArrayList", TypeKind.COLLECTION)
    ts_type = get_ts_type(bare)
    assert ts_type.type_name == "ArrayList"
    assert ts_type.discovered is None


def test_nullable_in_plain_position_is_optional() -> None:
    ts_type = get_ts_type(nullable(INT))
    assert ts_type.type_name == "number"
    assert ts_type.is_nullable is True


def test_nullable_inside_array_is_not_optional() -> None:
    ts_type = get_ts_type(array_of(nullable(INT)))
    assert ts_type.type_name == "number[]"
    assert ts_type.is_nullable is False


def test_nullable_inside_collection_is_not_optional() -> None:
    ts_type = get_ts_type(list_of(nullable(BOOLEAN)))
    assert ts_type.type_name == "boolean[]"
    assert ts_type.is_nullable is False


def test_nullable_collection_is_optional() -> None:
    ts_type = get_ts_type(nullable(list_of(STRING)))
    assert ts_type.type_name == "string[]"
    assert ts_type.is_nullable is True


def test_class_is_discovered_by_name() -> None:
    child = record("Child")
    ts_type = get_ts_type(child)
    assert ts_type.type_name == "Child"
    assert ts_type.discovered is child


def test_enum_in_reference_mode_is_discovered() -> None:
    color = enum("Color", "Red", "Green")
    ts_type = get_ts_type(color)
    assert ts_type.type_name == "Color"
    assert ts_type.discovered is color


def test_enum_in_inline_mode_is_a_union_without_discovery() -> None:
    color = enum("Color", "Red", "Green", "Blue")
    ts_type = get_ts_type(color, enum_mode=EnumRenderMode.INLINE_UNION)
    assert ts_type.type_name == '"Red" | "Green" | "Blue"'
    assert ts_type.discovered is None


def test_inline_enum_inside_array_is_parenthesised() -> None:
    color = enum("Color", "Red", "Green")
    ts_type = get_ts_type(array_of(color), enum_mode=EnumRenderMode.INLINE_UNION)
    assert ts_type.type_name == '("Red" | "Green")[]'


def test_unknown_kind_falls_back_to_bare_name() -> None:
    odd = TypeDescriptor("System.IntPtr", "IntPtr", TypeKind.UNKNOWN)
    ts_type = get_ts_type(odd)
    assert ts_type.type_name == "IntPtr"
    assert ts_type.discovered is None
    assert ts_type.is_nullable is False


def test_array_rule_wins_over_element_kind() -> None:
    # an array whose element is a string is still an array
    ts_type = get_ts_type(array_of(STRING))
    assert ts_type.type_name.endswith("[]")


def test_inline_nullable_enum_inside_array_is_parenthesised() -> None:
    color = enum("Color", "Red", "Green")
    ts_type = get_ts_type(array_of(nullable(color)), enum_mode=EnumRenderMode.INLINE_UNION)
    assert ts_type.type_name == '("Red" | "Green")[]'
    assert ts_type.is_nullable is False


def test_inline_nullable_enum_inside_collection_is_parenthesised() -> None:
    color = enum("Color", "Red", "Green")
    ts_type = get_ts_type(list_of(nullable(color)), enum_mode=EnumRenderMode.INLINE_UNION)
    assert ts_type.type_name == '("Red" | "Green")[]'
    assert ts_type.is_nullable is False


def test_inline_nullable_enum_in_plain_position_stays_bare() -> None:
    color = enum("Color", "Red", "Green")
    ts_type = get_ts_type(nullable(color), enum_mode=EnumRenderMode.INLINE_UNION)
    assert ts_type.type_name == '"Red" | "Green"'
    assert ts_type.is_nullable is True

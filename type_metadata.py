"""
Type metadata consumed by the TypeScript interface generator.

The generator never looks at Python classes directly. It walks TypeDescriptor
graphs handed out by a provider, so any host type system can be plugged in.
Two providers live here: a plain-data one and one that introspects Python
modules.
"""

from __future__ import annotations

import datetime
import decimal
import enum
import inspect
import logging
import sys
import types
import typing
from collections.abc import Iterable
from dataclasses import dataclass, field, fields, is_dataclass
from typing import Optional, Protocol

logger = logging.getLogger('ts_interface_generator.metadata')


# region ====== Descriptors ======
class TypeKind(enum.Enum):
    STRING = 'string'
    BOOLEAN = 'boolean'
    DATE_TIME = 'date_time'
    NUMBER = 'number'
    ARRAY = 'array'
    COLLECTION = 'collection'
    NULLABLE = 'nullable'
    ENUM = 'enum'
    CLASS = 'class'
    UNKNOWN = 'unknown'


@dataclass(eq=False)
class MemberDescriptor:
    """A declared property of a class or record."""

    name: str
    type: TypeDescriptor
    override_name: Optional[str] = None


@dataclass(eq=False)
class TypeDescriptor:
    """Handle describing one host type.

    ``arguments`` holds the element type of an array, the generic arguments of
    a collection or the wrapped type of a nullable. Descriptors are compared by
    ``identity`` only; they may reference each other in cycles.
    """

    identity: str
    name: str
    kind: TypeKind
    arguments: list[TypeDescriptor] = field(default_factory=list)
    base: Optional[TypeDescriptor] = None
    enum_members: list[str] = field(default_factory=list)
    members: list[MemberDescriptor] = field(default_factory=list)

    def __repr__(self):
        return f'TypeDescriptor({self.identity!r}, kind={self.kind.name})'

# endregion


# region ====== Export markers ======
EXPORT_MARKER_ATTRIBUTE = '__ts_export__'
OVERRIDE_NAME_KEY = 'json_name'


@dataclass(frozen=True)
class ExportMarker:
    module_name: str
    nullable_properties: bool = False


def to_typescript(module_name, nullable_properties=False):
    """Mark a class for export into the ambient module ``module_name``.

    The marker is stored in the class's own namespace, so subclasses are not
    exported unless they are decorated themselves.
    """
    def decorate(cls):
        setattr(cls, EXPORT_MARKER_ATTRIBUTE, ExportMarker(module_name, nullable_properties))
        return cls
    return decorate

# endregion


# region ====== Providers ======
class TypeMetadataProvider(Protocol):
    def iter_types(self) -> Iterable[TypeDescriptor]:
        ...

    def export_marker(self, descriptor: TypeDescriptor) -> Optional[ExportMarker]:
        ...


# Plain-data registry: descriptors plus the markers attached to some of them
class StaticTypeProvider:
    def __init__(self, types_: Iterable[TypeDescriptor] = (), markers: Optional[dict[str, ExportMarker]] = None):
        self.types:list[TypeDescriptor] = list(types_)
        self.markers:dict[str, ExportMarker] = dict(markers or {})

    def add(self, descriptor, marker=None):
        self.types.append(descriptor)
        if marker is not None:
            self.markers[descriptor.identity] = marker
        return descriptor

    def iter_types(self):
        return iter(self.types)

    def export_marker(self, descriptor):
        return self.markers.get(descriptor.identity)


_STRING_TYPES = (str,)
_DATE_TIME_TYPES = (datetime.datetime, datetime.date)
_NUMBER_TYPES = (int, float, decimal.Decimal)
_IGNORED_BASES = (object, typing.Generic, typing.Protocol, enum.Enum)
# classes from these modules are never expanded into interfaces
_OPAQUE_MODULES = ('builtins', 'typing', 'collections.abc')
_CLASS_VAR_PREFIXES = ('ClassVar[', 'typing.ClassVar[')


def _type_name(annotation):
    if isinstance(annotation, str):
        return annotation
    if isinstance(annotation, typing.ForwardRef):
        return annotation.__forward_arg__
    name = getattr(annotation, '__name__', None) or getattr(annotation, '_name', None)
    return name or repr(annotation)


def _type_identity(annotation):
    if inspect.isclass(annotation) and not typing.get_args(annotation):
        return f'{annotation.__module__}.{annotation.__qualname__}'
    return repr(annotation)


# Introspects classes defined in Python modules
class PythonTypeProvider:
    def __init__(self, modules: Iterable[types.ModuleType]):
        self.modules = list(modules)
        self.classes:dict[str, type] = {}
        self.descriptors:dict[str, TypeDescriptor] = {}

    def iter_types(self):
        for module in self.modules:
            for obj in list(vars(module).values()):
                if inspect.isclass(obj) and obj.__module__ == module.__name__:
                    yield self.describe(obj)

    def export_marker(self, descriptor):
        cls = self.classes.get(descriptor.identity)
        if cls is None:
            return None
        return cls.__dict__.get(EXPORT_MARKER_ATTRIBUTE)

    def describe(self, annotation) -> TypeDescriptor:
        identity = _type_identity(annotation)
        cached = self.descriptors.get(identity)
        if cached is not None:
            return cached

        descriptor = TypeDescriptor(identity, _type_name(annotation), TypeKind.UNKNOWN)
        # registered before the members are filled in, so self references hit the cache
        self.descriptors[identity] = descriptor
        self.classify(annotation, descriptor)
        return descriptor

    def classify(self, annotation, descriptor):
        origin = typing.get_origin(annotation)
        args = typing.get_args(annotation)

        if origin is tuple and len(args) == 2 and args[1] is Ellipsis:
            descriptor.kind = TypeKind.ARRAY
            descriptor.arguments = [self.describe(args[0])]
        elif annotation in _STRING_TYPES:
            descriptor.kind = TypeKind.STRING
        elif annotation is bool:
            descriptor.kind = TypeKind.BOOLEAN
        elif annotation in _DATE_TIME_TYPES:
            descriptor.kind = TypeKind.DATE_TIME
        elif annotation in _NUMBER_TYPES:
            descriptor.kind = TypeKind.NUMBER
        elif origin is None and inspect.isclass(annotation) and issubclass(annotation, enum.Enum):
            descriptor.kind = TypeKind.ENUM
            descriptor.enum_members = [member.name for member in annotation]
            self.classes[descriptor.identity] = annotation
        elif origin in (typing.Union, types.UnionType):
            wrapped = [arg for arg in args if arg is not type(None)]
            if len(wrapped) == 1 and len(args) == 2:
                descriptor.kind = TypeKind.NULLABLE
                descriptor.arguments = [self.describe(wrapped[0])]
        elif inspect.isclass(origin) and issubclass(origin, Iterable) and args:
            descriptor.kind = TypeKind.COLLECTION
            descriptor.arguments = [self.describe(arg) for arg in args if arg is not Ellipsis]
        elif origin is None and inspect.isclass(annotation) and annotation.__module__ not in _OPAQUE_MODULES:
            descriptor.kind = TypeKind.CLASS
            self.classes[descriptor.identity] = annotation
            descriptor.base = self.describe_base(annotation)
            descriptor.members = self.describe_members(annotation)
        else:
            logger.debug('Unsupported annotation %r, kept as %s', annotation, descriptor.name)

    def describe_base(self, cls):
        for base in cls.__bases__:
            if base in _IGNORED_BASES or base.__module__ in _OPAQUE_MODULES:
                continue
            return self.describe(base)
        return None

    def resolve_annotations(self, cls, own):
        try:
            return typing.get_type_hints(cls)
        except (NameError, TypeError) as e:
            logger.warning('Could not resolve all annotations of %s: %s', cls.__qualname__, e)

        # resolve one by one so a single bad name only degrades its own member
        module = sys.modules.get(cls.__module__)
        globalns = vars(module) if module is not None else {}
        localns = dict(vars(cls))
        hints = {}
        for name, raw in own.items():
            if not isinstance(raw, str):
                hints[name] = raw
                continue
            try:
                hints[name] = eval(raw, globalns, localns)
            except (NameError, AttributeError, SyntaxError, TypeError) as e:
                logger.warning('Annotation %s.%s kept unresolved: %s', cls.__qualname__, name, e)
        return hints

    def describe_members(self, cls):
        # own annotations only, inherited ones are emitted through `extends`
        own = inspect.get_annotations(cls)
        hints = self.resolve_annotations(cls, own)

        overrides = {}
        if is_dataclass(cls):
            for f in fields(cls):
                if OVERRIDE_NAME_KEY in f.metadata:
                    overrides[f.name] = f.metadata[OVERRIDE_NAME_KEY]

        members = []
        for name, raw in own.items():
            annotation = hints.get(name, raw)
            if typing.get_origin(annotation) is typing.ClassVar:
                continue
            if isinstance(annotation, str) and annotation.startswith(_CLASS_VAR_PREFIXES):
                continue
            members.append(MemberDescriptor(name, self.describe(annotation), overrides.get(name)))
        return members

# endregion

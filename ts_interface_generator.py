import argparse
import importlib
import logging
import os
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

import yaml
from mako.template import Template
from mako.exceptions import text_error_template

from style_sheets import d_ts_helpers
from type_metadata import PythonTypeProvider, TypeDescriptor, TypeKind

_LOGGER_NAME = 'ts_interface_generator'
logger = logging.getLogger(_LOGGER_NAME)


# region ====== Errors ======
class ExportMarkerError(ValueError):
    """Raised when a type carries an export marker that cannot be used."""

    def __init__(self, type_identity, message):
        self.type_identity = type_identity
        super().__init__(f'{type_identity}: {message}')


class StyleSheetError(RuntimeError):
    """Raised when a style sheet cannot be read or holds invalid settings."""

# endregion


# region ====== Configuration ======
class EnumRenderMode(Enum):
    # enums are emitted once as `export type Name = (...)` and referenced by name
    NAMED_REFERENCE = 'reference'
    # enum-typed properties carry the union literal directly
    INLINE_UNION = 'inline'


DEFAULT_STYLE_SHEET = os.path.join(os.path.dirname(os.path.abspath(__file__)), 'style_sheets', 'd_ts.yaml')


def load_style_sheet(path=None):
    path = path or DEFAULT_STYLE_SHEET
    try:
        with open(path, 'r', encoding='utf-8') as file:
            style = yaml.safe_load(file)
    except OSError as e:
        raise StyleSheetError(f'Failed to read style sheet {path}: {e}') from e
    except yaml.YAMLError as e:
        raise StyleSheetError(f'Failed to parse style sheet {path}: {e}') from e

    if style is None:
        return {}
    if not isinstance(style, dict):
        raise StyleSheetError(f'Style sheet {path} must contain a mapping at the root')
    return style


######## Project default configurations ################
class ProjectConfig:
    def __init__(self, enum_mode=EnumRenderMode.NAMED_REFERENCE, tool_name='ts-interface-generator', style=None):
        self.enum_mode = enum_mode
        self.tool_name = tool_name
        self.style:dict = style if style is not None else {}

    @classmethod
    def from_style_sheet(cls, path=None, **overrides):
        style = load_style_sheet(path)
        settings = style.get('ProjectConfig') or {}
        if not isinstance(settings, dict):
            raise StyleSheetError('ProjectConfig section of the style sheet must be a mapping')

        enum_mode = overrides.get('enum_mode') or settings.get('enum_mode') or EnumRenderMode.NAMED_REFERENCE
        if not isinstance(enum_mode, EnumRenderMode):
            try:
                enum_mode = EnumRenderMode(str(enum_mode))
            except ValueError as e:
                raise StyleSheetError(f'Unknown enum_mode {enum_mode!r}') from e

        tool_name = overrides.get('tool_name') or settings.get('tool_name') or 'ts-interface-generator'
        return cls(enum_mode=enum_mode, tool_name=str(tool_name), style=style)

# endregion


# region ====== Logging ======
LOG_FORMATS = {
    'console': '[ts-interface-generator] %(levelname)s %(message)s',
    'file': '%(asctime)s %(levelname)s %(name)s: %(message)s',
}


def configure_logging(*, verbose=False, log_file=None):
    """Route generator logs to stderr, and to ``log_file`` when one is given.

    Calling it again replaces the handlers installed by the previous call.
    """
    level = logging.DEBUG if verbose else logging.INFO
    generator_logger = logging.getLogger(_LOGGER_NAME)
    generator_logger.setLevel(level)
    generator_logger.propagate = False

    for handler in list(generator_logger.handlers):
        generator_logger.removeHandler(handler)
        handler.close()

    handlers = [(logging.StreamHandler(), LOG_FORMATS['console'])]
    if log_file is not None:
        handlers.append((logging.FileHandler(log_file, encoding='utf-8'), LOG_FORMATS['file']))

    for handler, log_format in handlers:
        handler.setLevel(level)
        handler.setFormatter(logging.Formatter(log_format))
        generator_logger.addHandler(handler)

    return generator_logger

# endregion


# region ====== Types ======
@dataclass
class TSType:
    type_name: str
    discovered: Optional[TypeDescriptor] = None
    is_nullable: bool = False


def get_ts_type(descriptor: TypeDescriptor, is_inside_enumerable=False, enum_mode=EnumRenderMode.NAMED_REFERENCE) -> TSType:
    """Translate a type into a TypeScript type expression.

    Complex types the expression refers to (classes, and enums in
    NAMED_REFERENCE mode) are returned as ``discovered`` so the caller can
    queue them for generation.
    """
    kind = descriptor.kind

    if kind is TypeKind.ARRAY and descriptor.arguments:
        element = get_ts_type(descriptor.arguments[0], True, enum_mode)
        element.type_name += '[]'
        return element

    if kind is TypeKind.STRING:
        return TSType('string')

    if kind is TypeKind.BOOLEAN:
        return TSType('boolean')

    if kind is TypeKind.DATE_TIME:
        return TSType('Date')

    if kind is TypeKind.NUMBER:
        return TSType('number')

    if kind is TypeKind.ENUM:
        if enum_mode is EnumRenderMode.INLINE_UNION:
            union = ' | '.join(f'"{name}"' for name in descriptor.enum_members)
            # `"A" | "B"[]` would only make the last literal an array
            if is_inside_enumerable:
                union = f'({union})'
            return TSType(union)
        return TSType(descriptor.name, descriptor)

    if kind is TypeKind.COLLECTION and descriptor.arguments:
        element = get_ts_type(descriptor.arguments[0], True, enum_mode)
        element.type_name += '[]'
        return element

    if kind is TypeKind.NULLABLE and descriptor.arguments:
        wrapped = get_ts_type(descriptor.arguments[0], is_inside_enumerable, enum_mode)
        wrapped.is_nullable = not is_inside_enumerable
        return wrapped

    if kind is TypeKind.CLASS:
        return TSType(descriptor.name, descriptor)

    # Unknown type. The definition may not compile, but the name is the best we have.
    logger.debug('Unsupported type shape %s (%s), emitted by name', descriptor.identity, kind.name)
    return TSType(descriptor.name)

# endregion


# region ====== Meta process ======
# Base Meta class
class MetaInfo:
    def __init__(self, descriptor, config: ProjectConfig):
        self.descriptor = descriptor
        self.config = config

        self.ast_name = descriptor.name if descriptor is not None else ''
        self.discovered:list[TypeDescriptor] = []

        self.process()

    def process(self):
        pass

    # region ====== Style ======
    def get_style(self, style_name, recursive=True):
        # uses self's class name to find the style
        style = self.config.style.get(self.__class__.__name__)
        if style is not None and style_name in style:
            return style.get(style_name)

        if recursive:
            # not found, try parent's style
            for base_class in self.__class__.__bases__:
                if base_class is object:
                    continue

                parent_style = self.config.style.get(base_class.__name__)
                if parent_style is not None and style_name in parent_style:
                    return parent_style.get(style_name)

        return None

    # endregion

    def get_indent(self):
        return self.get_style('indent') or '\t'

    def get_newline(self):
        return self.get_style('newline') or '\n'

    def get_tagging_template(self):
        return self.get_style('tagging_template') or '%(indent)s%(name)s'

    def gather_tagging_info(self, indent=0):
        return {
            'indent': self.get_indent() * indent,
            'name': self.ast_name,
        }

    def tagging(self, indent=0):
        return self.get_tagging_template() % self.gather_tagging_info(indent)


# A declared member rendered as one property line
class PropertyMeta(MetaInfo):
    def __init__(self, member, nullable_properties, config):
        self.member = member
        self.nullable_properties = nullable_properties
        self.ts_type:Optional[TSType] = None
        super().__init__(member.type, config)

    def process(self):
        self.ts_type = get_ts_type(self.member.type, enum_mode=self.config.enum_mode)
        if self.ts_type.discovered is not None:
            self.discovered.append(self.ts_type.discovered)

    def get_tagging_name(self):
        return self.member.override_name or self.member.name

    def is_optional(self):
        return self.nullable_properties or self.ts_type.is_nullable

    def get_tagging_template(self):
        return self.get_style('tagging_template') or\
            '%(indent)s%(name)s%(optional)s: %(type_name)s;'

    def gather_tagging_info(self, indent=0):
        return super().gather_tagging_info(indent) | {
            'name': self.get_tagging_name(),
            'optional': (self.get_style('optional_marker') or '?') if self.is_optional() else '',
            'type_name': self.ts_type.type_name,
        }


# Class or record rendered as `export interface`
class InterfaceMeta(MetaInfo):
    def __init__(self, descriptor, nullable_properties, config):
        self.nullable_properties = nullable_properties
        self.properties:list[PropertyMeta] = []
        super().__init__(descriptor, config)

    def process(self):
        base = self.descriptor.base
        if base is not None:
            # This type extends another class or interface
            self.discovered.append(base)

        for member in self.descriptor.members:
            prop = PropertyMeta(member, self.nullable_properties, self.config)
            self.properties.append(prop)
            self.discovered.extend(prop.discovered)

    def get_tagging_template(self):
        return self.get_style('tagging_template') or\
            '%(indent)sexport interface %(name)s %(extends)s{'

    def get_extends_template(self):
        return self.get_style('extends_template') or 'extends %(base_name)s '

    def get_closing_template(self):
        return self.get_style('closing_template') or '%(indent)s}'

    def gather_tagging_info(self, indent=0):
        base = self.descriptor.base
        extends = self.get_extends_template() % {'base_name': base.name} if base is not None else ''
        return super().gather_tagging_info(indent) | {
            'extends': extends,
        }

    def tagging(self, indent=1):
        newline = self.get_newline()
        lines = [super().tagging(indent)]
        for prop in self.properties:
            lines.append(prop.tagging(indent + 1))
        lines.append(self.get_closing_template() % {'indent': self.get_indent() * indent})
        return ''.join(line + newline for line in lines)


# Enumeration rendered as a union of its member names
class EnumMeta(MetaInfo):
    def get_tagging_template(self):
        return self.get_style('tagging_template') or\
            '%(indent)sexport type %(name)s = (%(members)s);'

    def gather_tagging_info(self, indent=0):
        value_template = self.get_style('value_template') or '"%(name)s"'
        separator = self.get_style('value_separator') or ' | '
        members = separator.join(value_template % {'name': name} for name in self.descriptor.enum_members)
        return super().gather_tagging_info(indent) | {
            'members': members,
        }

    def tagging(self, indent=1):
        return super().tagging(indent) + self.get_newline()


def create_meta(descriptor, nullable_properties, config) -> MetaInfo:
    if descriptor.kind is TypeKind.ENUM:
        return EnumMeta(descriptor, config)
    return InterfaceMeta(descriptor, nullable_properties, config)

# endregion


# region ====== Discovery ======
@dataclass(frozen=True)
class DiscoveryEntry:
    descriptor: TypeDescriptor
    module_name: str
    nullable_properties: bool = False


@dataclass(frozen=True)
class GeneratedInterface:
    module_name: str
    code: str
    from_type: TypeDescriptor

    @property
    def identity(self):
        return self.from_type.identity


@dataclass(frozen=True)
class GeneratedModule:
    module_name: str
    code: str


def discover(provider) -> list[DiscoveryEntry]:
    """Collect every type carrying an export marker, in provider order."""
    entries = []
    for descriptor in provider.iter_types():
        marker = provider.export_marker(descriptor)
        if marker is None:
            continue

        if not isinstance(marker.module_name, str) or not marker.module_name.strip():
            raise ExportMarkerError(descriptor.identity, 'export marker has an empty module name')

        entries.append(DiscoveryEntry(descriptor, marker.module_name, bool(marker.nullable_properties)))
    return entries


class TypeGraphResolver:
    """Translates marked types and everything reachable from them, once each.

    A type discovered from several roots is generated under the module and
    nullable policy of whichever discovery came first.
    """

    def __init__(self, provider, config: Optional[ProjectConfig] = None):
        self.provider = provider
        self.config = config or ProjectConfig()

        self.generated:set[str] = set()
        self.interfaces:list[GeneratedInterface] = []
        self.rounds = 0

    def select_unique(self, pending):
        unique:dict[str, DiscoveryEntry] = {}
        for entry in pending:
            identity = entry.descriptor.identity
            if identity in self.generated or identity in unique:
                continue
            unique[identity] = entry
        return list(unique.values())

    def resolve(self) -> list[GeneratedInterface]:
        self.generated = set()
        self.interfaces = []
        self.rounds = 0

        pending = discover(self.provider)
        logger.debug('Discovered %d marked types', len(pending))

        while True:
            unique = self.select_unique(pending)
            if not unique:
                break

            self.rounds += 1
            logger.debug('Round %d: generating %d types', self.rounds, len(unique))

            next_pending:list[DiscoveryEntry] = []
            for entry in unique:
                meta = create_meta(entry.descriptor, entry.nullable_properties, self.config)

                self.generated.add(entry.descriptor.identity)
                self.interfaces.append(GeneratedInterface(entry.module_name, meta.tagging(1), entry.descriptor))

                next_pending.extend(
                    DiscoveryEntry(found, entry.module_name, entry.nullable_properties) for found in meta.discovered
                )
            pending = next_pending

        logger.info('Generated %d types in %d rounds', len(self.interfaces), self.rounds)
        return self.interfaces

# endregion


# region ====== Assembly ======
class ModuleMeta(MetaInfo):
    def __init__(self, module_name, interfaces, config, generated_at=None):
        self.module_name = module_name
        self.interfaces:list[GeneratedInterface] = list(interfaces)
        self.generated_at = generated_at
        super().__init__(None, config)

    def get_tagging_template(self):
        return self.get_style('tagging_template') or\
            '/// <auto-generated>\n'\
            '/// This code was auto-generated by ${tool_name} on ${helpers.format_utc_timestamp(generated_at)}.'\
            ' Do not manually edit this file.\n'\
            '/// </auto-generated>\n'\
            'declare module "${module_name}" {\n'\
            '${helpers.join_interfaces(interfaces)}}'

    def tagging(self, indent=0):
        template = Template(self.get_tagging_template())
        context = {
            'helpers': d_ts_helpers,
            'tool_name': self.config.tool_name,
            'generated_at': self.generated_at,
            'module_name': self.module_name,
            'interfaces': self.interfaces,
        }
        try:
            content = template.render(**context)
        except Exception:
            logger.error(text_error_template().render())
            raise
        return content


def assemble_modules(interfaces, config: Optional[ProjectConfig] = None, generated_at=None) -> list[GeneratedModule]:
    """Group generated interfaces by module name, in first-seen order."""
    config = config or ProjectConfig()
    if generated_at is None:
        generated_at = datetime.now(timezone.utc)

    grouped:dict[str, list[GeneratedInterface]] = {}
    for interface in interfaces:
        grouped.setdefault(interface.module_name, []).append(interface)

    modules = []
    for module_name, members in grouped.items():
        code = ModuleMeta(module_name, members, config, generated_at).tagging()
        modules.append(GeneratedModule(module_name, code))
    return modules


def generate_modules(provider, config: Optional[ProjectConfig] = None, generated_at=None) -> list[GeneratedModule]:
    """Discover marked types in ``provider`` and build one declaration module per module name."""
    config = config or ProjectConfig()
    interfaces = TypeGraphResolver(provider, config).resolve()
    return assemble_modules(interfaces, config, generated_at)

# endregion


def write_modules(modules, dest_dir):
    os.makedirs(dest_dir, exist_ok=True)
    paths = []
    for module in modules:
        path = os.path.join(dest_dir, d_ts_helpers.module_file_name(module.module_name))
        with open(path, 'w', encoding='utf-8') as f:
            f.write(module.code)
        logger.info('Wrote %s', path)
        paths.append(path)
    return paths


def main(argv=None):
    parser = argparse.ArgumentParser(description='TypeScript ambient module declaration generator')
    parser.add_argument('modules', nargs='+', help='Dotted names of the Python modules to scan')
    parser.add_argument('-o', '--output-dir', default='.', help='Destination directory')
    parser.add_argument('--enum-mode', choices=[mode.value for mode in EnumRenderMode], help='How enums are emitted')
    parser.add_argument('--style-sheet', help='Path to a style sheet (defaults to style_sheets/d_ts.yaml)')
    parser.add_argument('--tool-name', help='Tool name shown in the auto-generated banner')
    parser.add_argument('-v', '--verbose', action='store_true', help='Enable debug logging')
    args = parser.parse_args(argv)

    configure_logging(verbose=args.verbose)

    try:
        config = ProjectConfig.from_style_sheet(args.style_sheet, enum_mode=args.enum_mode, tool_name=args.tool_name)
    except StyleSheetError as e:
        parser.error(str(e))

    provider = PythonTypeProvider(importlib.import_module(name) for name in args.modules)

    try:
        modules = generate_modules(provider, config)
    except ExportMarkerError as e:
        parser.error(str(e))

    write_modules(modules, os.path.abspath(args.output_dir))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

"""
Item structure adapters to provide consistent item shapes for rows and parameters.

An item is one of three shapes, chosen when the reader or writer is configured:

- ``SEQUENCE``: a list of column values, read and written by position
- ``MAPPING``: a mapping of field name to value (``attrdict`` on the read path)
- ``OBJECT``: an instance of a user type, populated through its accessors

These adapters handle the structure of items. Value conversion is delegated
to the :class:`~cqlbatch.adapters.type_conversion.CodecRegistry`.
"""
import collections.abc
import dataclasses
import enum
import logging
import operator
import types
import typing
from collections.abc import Callable, Mapping, Sequence
from typing import Any

import pydantic
from cqlbatch.adapters.column_info import Column
from cqlbatch.adapters.type_conversion import CodecRegistry
from cqlbatch.cache import cached_by_type
from cqlbatch.exceptions import CoercionError, ConfigurationError
from cqlbatch.exceptions import ItemValidationError

from libb import attrdict

logger = logging.getLogger(__name__)


class ItemShape(enum.Enum):
    """Structural convention of one item.
    """

    SEQUENCE = 'sequence'
    MAPPING = 'mapping'
    OBJECT = 'object'

    @classmethod
    def parse(cls, value: Any, item_type: type | None = None) -> 'ItemShape':
        """Resolve a configured shape, inferring it from ``item_type`` when unset.

        >>> ItemShape.parse('list')
        <ItemShape.SEQUENCE: 'sequence'>
        >>> ItemShape.parse(None, dict)
        <ItemShape.MAPPING: 'mapping'>
        >>> ItemShape.parse(None)
        <ItemShape.MAPPING: 'mapping'>
        """
        if isinstance(value, ItemShape):
            return value
        if isinstance(value, str):
            try:
                return _SHAPE_NAMES[value.strip().lower()]
            except KeyError:
                raise ConfigurationError(f'Unknown item shape: {value}', 'item_shape', value) from None
        if value is not None:
            raise ConfigurationError(f'Unknown item shape: {value!r}', 'item_shape', value)
        if item_type is None:
            return cls.MAPPING
        if issubclass(item_type, list | tuple):
            return cls.SEQUENCE
        if issubclass(item_type, Mapping):
            return cls.MAPPING
        return cls.OBJECT


_SHAPE_NAMES = {
    'sequence': ItemShape.SEQUENCE,
    'list': ItemShape.SEQUENCE,
    'tuple': ItemShape.SEQUENCE,
    'mapping': ItemShape.MAPPING,
    'map': ItemShape.MAPPING,
    'dict': ItemShape.MAPPING,
    'object': ItemShape.OBJECT,
    'bean': ItemShape.OBJECT,
    }


# Accessor tables

@dataclasses.dataclass(frozen=True)
class Accessor:
    """Read and write access to one field of an item type.
    """

    name: str
    python_type: type | None
    nullable: bool
    getter: Callable[[Any], Any]
    setter: Callable[[Any, Any], None] | None


def _plain_type(hint: Any) -> tuple[type | None, bool]:
    """Reduce a type hint to a plain class and whether it admits None.

    >>> _plain_type(int)
    (<class 'int'>, False)
    >>> _plain_type(int | None)
    (<class 'int'>, True)
    >>> _plain_type(list[str])
    (<class 'list'>, False)
    >>> _plain_type(typing.Any)
    (None, True)
    """
    if hint is None or hint is Any:
        return None, True
    origin = typing.get_origin(hint)
    if origin is typing.Union or origin is types.UnionType:
        args = typing.get_args(hint)
        non_null = [a for a in args if a is not type(None)]
        nullable = len(non_null) < len(args)
        if len(non_null) == 1:
            return _plain_type(non_null[0])[0], nullable
        return None, nullable
    if origin is not None:
        return (origin if isinstance(origin, type) else None), False
    if isinstance(hint, type):
        return hint, False
    return None, True


def _type_hints(obj: Any) -> dict[str, Any]:
    """Resolved type hints, falling back to raw annotations.
    """
    try:
        return typing.get_type_hints(obj)
    except (NameError, TypeError, AttributeError) as e:
        logger.debug(f'Could not resolve type hints of {obj!r}: {e}')
        return {k: v for k, v in getattr(obj, '__annotations__', {}).items()
                if not isinstance(v, str)}


def _attribute_accessor(name: str, hint: Any) -> Accessor:
    python_type, nullable = _plain_type(hint)

    def setter(obj: Any, value: Any) -> None:
        setattr(obj, name, value)

    return Accessor(name, python_type, nullable, operator.attrgetter(name), setter)


def _is_pydantic_model(cls: type) -> bool:
    return isinstance(cls, type) and issubclass(cls, pydantic.BaseModel)


def _new_instance(cls: type) -> Any:
    """Create an empty item; pydantic models are constructed without validation."""
    if _is_pydantic_model(cls):
        return cls.model_construct()
    return cls()


@cached_by_type('accessor_tables')
def accessor_table(cls: type) -> Mapping[str, Accessor]:
    """Build the field name → accessor table of an item type.

    Fields come from dataclass fields, pydantic model fields or public class
    annotations, followed by public properties. Names starting with an
    underscore are not accessible. The table is built once per type.

    Args:
        cls: Item type

    Returns
        Read-only mapping of field name to Accessor
    """
    table: dict[str, Accessor] = {}
    hints = _type_hints(cls)

    if dataclasses.is_dataclass(cls):
        for field in dataclasses.fields(cls):
            table[field.name] = _attribute_accessor(field.name, hints.get(field.name, field.type))
    elif _is_pydantic_model(cls):
        for name, info in cls.model_fields.items():
            table[name] = _attribute_accessor(name, info.annotation)
    else:
        for name, hint in hints.items():
            if typing.get_origin(hint) is typing.ClassVar:
                continue
            table[name] = _attribute_accessor(name, hint)

    for klass in reversed(cls.__mro__):
        if klass is object or klass is pydantic.BaseModel:
            continue
        for name, member in vars(klass).items():
            if not isinstance(member, property) or member.fget is None:
                continue
            hint = _type_hints(member.fget).get('return')
            python_type, nullable = _plain_type(hint)
            table[name] = Accessor(name, python_type, nullable, member.fget, member.fset)

    table = {name: acc for name, acc in table.items() if not name.startswith('_')}
    logger.debug(f'Accessor table for {cls.__qualname__}: {sorted(table)}')
    return types.MappingProxyType(table)


def resolve_parameter(mapping: Mapping[str, Any], name: str,
                      parameter_names: Sequence[str] | None = None) -> Any:
    """Look up the value bound to a statement parameter.

    The exact parameter name is tried first. When that yields nothing, the
    alias list is scanned for an alias equal to the parameter name ignoring
    case, and the value stored under the alias spelling is returned.

    >>> resolve_parameter({'userId': 7}, 'UserId', ['userId'])
    7
    >>> resolve_parameter({'userId': 7}, 'UserId') is None
    True
    """
    value = mapping.get(name)
    if value is None and parameter_names:
        folded = name.casefold()
        for alias in parameter_names:
            if alias.casefold() == folded:
                value = mapping.get(alias)
                break
    return value


def row_values(row: Any) -> Sequence[Any]:
    """Column values of a driver row in column order.

    Rows produced by ``dict_factory`` and ``ordered_dict_factory`` are
    mappings; ``tuple_factory`` and ``named_tuple_factory`` rows are sequences.
    """
    if isinstance(row, Mapping):
        return list(row.values())
    return row


# Shape adapters

class ShapeAdapter:
    """Base adapter converting between rows, items and statement parameters.
    """

    shape: ItemShape

    @staticmethod
    def create(shape: ItemShape, columns: list[Column], registry: CodecRegistry,
               column_mapping: Sequence[str] | None = None,
               item_type: type | None = None,
               validator: Callable[[Any], None] | None = None) -> 'ShapeAdapter':
        """Factory method to create the adapter for an item shape."""
        if shape is ItemShape.SEQUENCE:
            return SequenceAdapter(columns, registry, column_mapping)
        if shape is ItemShape.MAPPING:
            return MappingAdapter(columns, registry, column_mapping)
        return ObjectAdapter(columns, registry, column_mapping, item_type, validator)

    def __init__(self, columns: list[Column], registry: CodecRegistry,
                 column_mapping: Sequence[str] | None = None) -> None:
        self.columns = list(columns)
        self.registry = registry
        if column_mapping is None:
            self.column_mapping = Column.get_names(self.columns)
        else:
            self.column_mapping = list(column_mapping)

    def check_mapping(self) -> None:
        """Validate the column mapping against the result columns.

        Raises
            ConfigurationError: if the mapping length differs from the column count
        """
        if len(self.column_mapping) != len(self.columns):
            raise ConfigurationError(
                f'column_mapping has {len(self.column_mapping)} names for '
                f'{len(self.columns)} columns: {self.column_mapping}',
                'column_mapping', self.column_mapping)

    def coerce_column(self, values: Sequence[Any], index: int, desired_type: Any = None) -> Any:
        """Convert the value of one column of a row."""
        return self.registry.coerce(values[index], self.columns[index].cql_type, desired_type)

    def to_item(self, row: Any) -> Any:
        """Convert a driver row to an item"""
        raise NotImplementedError('Subclasses must implement to_item method')

    def to_mapping(self, item: Any) -> Mapping[str, Any]:
        """Field name → value mapping used to resolve statement parameters"""
        raise NotImplementedError('Subclasses must implement to_mapping method')


class SequenceAdapter(ShapeAdapter):
    """Items are lists of column values; no name lookups are performed.
    """

    shape = ItemShape.SEQUENCE

    def check_mapping(self) -> None:
        """Positional items ignore the column mapping unless one was configured."""
        if self.column_mapping != Column.get_names(self.columns):
            super().check_mapping()

    def to_item(self, row: Any) -> list[Any]:
        values = row_values(row)
        return [self.coerce_column(values, i) for i in range(len(self.columns))]

    def to_sequence(self, item: Any) -> list[Any]:
        """Item values in parameter order."""
        if isinstance(item, str | bytes) or not isinstance(item, collections.abc.Sequence):
            raise CoercionError(f'Expected a sequence item, got {type(item).__name__}')
        return list(item)


class MappingAdapter(ShapeAdapter):
    """Items are mappings keyed by the column mapping.
    """

    shape = ItemShape.MAPPING

    def to_item(self, row: Any) -> attrdict:
        values = row_values(row)
        return attrdict((field, self.coerce_column(values, i))
                        for i, field in enumerate(self.column_mapping))

    def to_mapping(self, item: Any) -> Mapping[str, Any]:
        if not isinstance(item, Mapping):
            raise CoercionError(f'Expected a mapping item, got {type(item).__name__}')
        return item


class ObjectAdapter(ShapeAdapter):
    """Items are instances of a user type, accessed through an accessor table.

    On the read path an instance is created with no arguments and every
    non-null column value is set through the accessor of its mapped field,
    converted towards the declared field type. The optional validator runs
    on the populated instance.
    """

    shape = ItemShape.OBJECT

    def __init__(self, columns: list[Column], registry: CodecRegistry,
                 column_mapping: Sequence[str] | None = None,
                 item_type: type | None = None,
                 validator: Callable[[Any], None] | None = None) -> None:
        super().__init__(columns, registry, column_mapping)
        self.item_type = item_type
        self.validator = validator
        self.accessors = accessor_table(item_type) if item_type is not None else None

    def check_mapping(self) -> None:
        super().check_mapping()
        if self.item_type is None:
            raise ConfigurationError('item_type is required for object items', 'item_type')
        missing = [name for name in self.column_mapping
                   if name not in self.accessors or self.accessors[name].setter is None]
        if missing:
            raise ConfigurationError(
                f'{self.item_type.__qualname__} has no writable fields {missing}',
                'column_mapping', self.column_mapping)

    def to_item(self, row: Any) -> Any:
        values = row_values(row)
        item = _new_instance(self.item_type)
        for i, field in enumerate(self.column_mapping):
            accessor = self.accessors[field]
            value = self.coerce_column(values, i, accessor.python_type)
            if value is None:
                continue
            try:
                accessor.setter(item, value)
            except (TypeError, ValueError) as e:
                raise ItemValidationError(field, value, f'Cannot set field: {e}') from e
        if self.validator is not None:
            self.validator(item)
        return item

    def to_mapping(self, item: Any) -> Mapping[str, Any]:
        if self.accessors is not None and isinstance(item, self.item_type):
            accessors = self.accessors
        else:
            accessors = accessor_table(type(item))
        return {name: accessor.getter(item) for name, accessor in accessors.items()}


__all__ = [
    'ItemShape',
    'Accessor',
    'accessor_table',
    'resolve_parameter',
    'row_values',
    'ShapeAdapter',
    'SequenceAdapter',
    'MappingAdapter',
    'ObjectAdapter',
]


if __name__ == '__main__':
    __import__('doctest').testmod(optionflags=4 | 8 | 32)

"""
Reader, writer and session options.

Options are dataclasses validated at construction. Job definitions usually
supply properties as strings; ``from_properties`` parses them into options:

    options = ReaderOptions.from_properties({
        'contactPoints': 'node1:9042, node2:9042',
        'keyspace': 'shop',
        'cql': 'SELECT id, name FROM customers',
        'start': '3',
        'end': '5',
        'itemShape': 'mapping',
        })
"""
import dataclasses
import importlib
import logging
import re
import sys
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

from cassandra import ConsistencyLevel
from cqlbatch.adapters.structure import ItemShape
from cqlbatch.adapters.type_conversion import FALSE_STRINGS, TRUE_STRINGS
from cqlbatch.exceptions import ConfigurationError
from cqlbatch.validation import default_validator

from libb import ConfigOptions

logger = logging.getLogger(__name__)

__all__ = [
    'CqlOptions',
    'ReaderOptions',
    'WriterOptions',
    'BATCH_TYPES',
    'parse_list',
    'parse_properties',
]

BATCH_TYPES = ('logged', 'unlogged', 'counter')

_CAMEL_BOUNDARY = re.compile(r'(?<=[a-z0-9])(?=[A-Z])')


def parse_list(value: Any) -> list | None:
    """Parse a comma separated property into a list of stripped entries.

    >>> parse_list('a, b,,c ')
    ['a', 'b', 'c']
    >>> parse_list(('x',))
    ['x']
    >>> parse_list(None)
    """
    if value is None:
        return None
    if isinstance(value, str):
        return [entry.strip() for entry in value.split(',') if entry.strip()]
    return list(value)


def parse_properties(value: Any) -> dict[str, str]:
    """Parse ``key=value`` pairs separated by commas.

    >>> parse_properties('port=9142, compression = lz4')
    {'port': '9142', 'compression': 'lz4'}
    """
    if value is None:
        return {}
    if isinstance(value, Mapping):
        return dict(value)
    properties = {}
    for entry in parse_list(value):
        key, sep, val = entry.partition('=')
        if not sep or not key.strip():
            raise ConfigurationError(f'Invalid cluster property: {entry!r}',
                                     'cluster_properties', value)
        properties[key.strip()] = val.strip()
    return properties


def parse_bool(name: str, value: Any) -> bool:
    """Parse a boolean property value.
    """
    if isinstance(value, bool):
        return value
    lowered = str(value).strip().lower()
    if lowered in TRUE_STRINGS:
        return True
    if lowered in FALSE_STRINGS:
        return False
    raise ConfigurationError(f'{name} must be a boolean, got {value!r}', name, value)


def parse_int(name: str, value: Any) -> int:
    """Parse an integer property value.
    """
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    try:
        return int(str(value).strip())
    except ValueError:
        raise ConfigurationError(f'{name} must be an integer, got {value!r}', name, value) from None


def import_type(path: str) -> type:
    """Import a class from ``package.module:Class`` or ``package.module.Class``.
    """
    module_name, sep, attr = path.strip().partition(':')
    if not sep:
        module_name, _, attr = path.strip().rpartition('.')
    try:
        obj = getattr(importlib.import_module(module_name), attr)
    except (ImportError, AttributeError, ValueError) as e:
        raise ConfigurationError(f'Cannot import item type {path!r}: {e}', 'item_type', path) from e
    if not isinstance(obj, type):
        raise ConfigurationError(f'Item type {path!r} is not a class', 'item_type', path)
    return obj


def _field_name(key: str) -> str:
    """Property key in camelCase or snake_case to a field name.

    >>> _field_name('contactPoints')
    'contact_points'
    >>> _field_name('fetch_size')
    'fetch_size'
    """
    return _CAMEL_BOUNDARY.sub('_', key.strip()).lower()


@dataclass
class CqlOptions(ConfigOptions):
    """Session and statement options shared by readers, writers and batchlets.

    - contact_points: ``host``, ``host:port`` or ``[ipv6]:port`` entries,
      as a list or a comma separated string
    - port: native protocol port used when contact points carry none (0 for
      the driver default)
    - cluster_properties: named cluster settings, see ``cqlbatch.session``
    - custom_codecs: codec names or ``Codec`` instances consulted before the
      built-in conversions
    - item_shape: ``sequence``, ``mapping`` or ``object``; inferred from
      ``item_type`` when not given
    - fetch_size: rows per page (0 for the driver default)
    - consistency_level: consistency level name such as ``LOCAL_QUORUM``
    """
    contact_points: list[str] | str | None = None
    port: int = 0
    keyspace: str = None
    username: str = None
    password: str = None
    cluster_properties: dict[str, Any] | str | None = None
    custom_codecs: list[Any] | str | None = None
    cql: str = None
    item_shape: ItemShape | str | None = None
    item_type: type | str | None = None
    fetch_size: int = 0
    consistency_level: int | str | None = None

    _int_fields = ('port', 'fetch_size')
    _bool_fields = ()

    def __post_init__(self):
        self.contact_points = parse_list(self.contact_points) or []
        self.cluster_properties = parse_properties(self.cluster_properties)
        self.custom_codecs = parse_list(self.custom_codecs) or []
        for name in self._int_fields:
            setattr(self, name, parse_int(name, getattr(self, name)))
        for name in self._bool_fields:
            setattr(self, name, parse_bool(name, getattr(self, name)))
        if self.port < 0:
            raise ConfigurationError(f'port must not be negative, got {self.port}', 'port', self.port)
        if self.fetch_size < 0:
            raise ConfigurationError(f'fetch_size must not be negative, got {self.fetch_size}',
                                     'fetch_size', self.fetch_size)
        if isinstance(self.item_type, str):
            self.item_type = import_type(self.item_type)
        self.item_shape = ItemShape.parse(self.item_shape, self.item_type)
        self.consistency_level = self._parse_consistency_level(self.consistency_level)

    @staticmethod
    def _parse_consistency_level(value: Any) -> int | None:
        if value is None or value == '':
            return None
        if isinstance(value, int) and not isinstance(value, bool):
            if value not in ConsistencyLevel.value_to_name:
                raise ConfigurationError(f'Unknown consistency level: {value}',
                                         'consistency_level', value)
            return value
        try:
            return ConsistencyLevel.name_to_value[str(value).strip().upper()]
        except KeyError:
            available = sorted(ConsistencyLevel.name_to_value)
            raise ConfigurationError(f'Unknown consistency level: {value}. Available: {available}',
                                     'consistency_level', value) from None

    def require_cql(self) -> None:
        """Ensure a statement is configured."""
        if not self.cql or not str(self.cql).strip():
            raise ConfigurationError('cql is required', 'cql', self.cql)

    @classmethod
    def from_properties(cls, properties: Mapping[str, Any]) -> 'CqlOptions':
        """Create options from job properties.

        Keys may be camelCase or snake_case. String values are parsed into
        integers, booleans, lists and property tables as the fields require.

        Args:
            properties: Property name to value mapping

        Returns
            Options instance

        Raises
            ConfigurationError: for unknown property names or unparsable values
        """
        known = {f.name for f in dataclasses.fields(cls)}
        kwargs = {}
        for key, value in properties.items():
            name = _field_name(key)
            if name not in known:
                raise ConfigurationError(f'Unknown property: {key}. Available: {sorted(known)}',
                                         key, value)
            kwargs[name] = value
        return cls(**kwargs)


@dataclass
class ReaderOptions(CqlOptions):
    """Options of a CqlItemReader.

    - start: 1-based position of the first row to read (values below 1 mean 1)
    - end: 1-based position of the last row to read, inclusive (0 means no limit)
    - column_mapping: item field names in result column order
    - validate_items: run the validator on items built in object mode
    - validator: callable checking one item (``default_validator`` when unset)
    """
    start: int = 0
    end: int = 0
    column_mapping: list[str] | str | None = None
    validate_items: bool = True
    validator: Callable[[Any], None] | None = None

    _int_fields = (*CqlOptions._int_fields, 'start', 'end')
    _bool_fields = (*CqlOptions._bool_fields, 'validate_items')

    def __post_init__(self):
        super().__post_init__()
        self.column_mapping = parse_list(self.column_mapping)
        if self.start <= 0:
            self.start = 1
        if self.end == 0:
            self.end = sys.maxsize
        if self.end < self.start:
            raise ConfigurationError(f'end ({self.end}) must not be less than start ({self.start})',
                                     'end', self.end)
        if self.item_shape is ItemShape.OBJECT and self.item_type is None:
            raise ConfigurationError('item_type is required for object items', 'item_type')
        if self.validate_items and self.validator is None:
            self.validator = default_validator


@dataclass
class WriterOptions(CqlOptions):
    """Options of a CqlItemWriter.

    - parameter_names: alias spellings of statement parameters, matched
      against parameter names ignoring case
    - batch_type: ``logged``, ``unlogged`` or ``counter``
    """
    parameter_names: list[str] | str | None = None
    batch_type: str = 'logged'

    def __post_init__(self):
        super().__post_init__()
        self.parameter_names = parse_list(self.parameter_names)
        self.batch_type = str(self.batch_type or 'logged').strip().lower()
        if self.batch_type not in BATCH_TYPES:
            raise ConfigurationError(f'batch_type must be one of: {BATCH_TYPES}',
                                     'batch_type', self.batch_type)


if __name__ == '__main__':
    __import__('doctest').testmod(optionflags=4 | 8 | 32)

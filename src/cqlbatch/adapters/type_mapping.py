"""
Wire type resolution for CQL columns and statement parameters.

This module maps the column types reported by the driver (``cassandra.cqltypes``
classes in result set and prepared statement metadata) or written as CQL type
strings onto the closed :class:`WireType` enumeration, and records the host
types that each wire type binds without conversion.

The module focuses solely on type identification, not conversion; see
``cqlbatch.adapters.type_conversion`` for the codecs.
"""
import collections.abc
import datetime
import decimal
import enum
import logging
import uuid
from typing import Any

from cassandra import cqltypes
from cassandra.util import Date, Duration, SortedSet, Time

logger = logging.getLogger(__name__)


class WireType(enum.Enum):
    """Closed set of CQL column types.
    """

    ASCII = 'ascii'
    TEXT = 'text'
    VARCHAR = 'varchar'
    INT = 'int'
    BIGINT = 'bigint'
    COUNTER = 'counter'
    TIME = 'time'
    BOOLEAN = 'boolean'
    DOUBLE = 'double'
    FLOAT = 'float'
    VARINT = 'varint'
    DECIMAL = 'decimal'
    TINYINT = 'tinyint'
    SMALLINT = 'smallint'
    DATE = 'date'
    TIMESTAMP = 'timestamp'
    UUID = 'uuid'
    TIMEUUID = 'timeuuid'
    BLOB = 'blob'
    INET = 'inet'
    DURATION = 'duration'
    TUPLE = 'tuple'
    UDT = 'udt'
    LIST = 'list'
    MAP = 'map'
    SET = 'set'

    def __str__(self) -> str:
        return self.value


TEXT_TYPES = frozenset({WireType.ASCII, WireType.TEXT, WireType.VARCHAR})
INTEGER_TYPES = frozenset({WireType.INT, WireType.TINYINT, WireType.SMALLINT,
                           WireType.VARINT, WireType.BIGINT, WireType.COUNTER})

_WIRE_TYPES_BY_NAME: dict[str, WireType] = {t.value: t for t in WireType}
_WIRE_TYPES_BY_NAME.update({
    'usertype': WireType.UDT,
    'org.apache.cassandra.db.marshal.usertype': WireType.UDT,
    })

# wrapper types whose first subtype carries the actual column type
_WRAPPER_NAMES = frozenset({'frozen', 'reversed', 'org.apache.cassandra.db.marshal.reversedtype',
                            'org.apache.cassandra.db.marshal.frozentype'})

_CANONICAL_TYPES: dict[WireType, tuple[type, ...]] = {
    WireType.ASCII: (str,),
    WireType.TEXT: (str,),
    WireType.VARCHAR: (str,),
    WireType.INT: (int,),
    WireType.BIGINT: (int,),
    WireType.COUNTER: (int,),
    WireType.TINYINT: (int,),
    WireType.SMALLINT: (int,),
    WireType.VARINT: (int,),
    WireType.TIME: (int, Time, datetime.time),
    WireType.BOOLEAN: (bool,),
    WireType.DOUBLE: (float,),
    WireType.FLOAT: (float,),
    WireType.DECIMAL: (decimal.Decimal,),
    WireType.DATE: (datetime.date, Date),
    WireType.TIMESTAMP: (datetime.datetime,),
    WireType.UUID: (uuid.UUID,),
    WireType.TIMEUUID: (uuid.UUID,),
    WireType.BLOB: (bytes, bytearray, memoryview),
    WireType.INET: (str,),
    WireType.DURATION: (Duration,),
    WireType.TUPLE: (tuple,),
    WireType.UDT: (object,),
    WireType.LIST: (list,),
    WireType.MAP: (collections.abc.Mapping,),
    WireType.SET: (collections.abc.Set, SortedSet),
    }


def _base_type_name(type_string: str) -> str:
    """Reduce a CQL type string to the name of its outermost type.

    >>> _base_type_name('list<int>')
    'list'
    >>> _base_type_name('frozen<map<text, int>>')
    'map'
    >>> _base_type_name(' TimeUUID ')
    'timeuuid'
    """
    name = type_string.strip().lower()
    while True:
        head, sep, rest = name.partition('<')
        head = head.strip()
        if sep and head in _WRAPPER_NAMES:
            name = rest.rsplit('>', 1)[0]
            continue
        return head


def _cqltype_name(cql_type: type) -> str | None:
    """Get the outermost type name of a driver cql type class.
    """
    if issubclass(cql_type, cqltypes.UserType):
        return 'udt'
    name = getattr(cql_type, 'typename', None)
    if name is None:
        return None
    name = str(name).lower()
    if name in _WRAPPER_NAMES or issubclass(cql_type, (cqltypes.FrozenType, cqltypes.ReversedType)):
        subtypes = getattr(cql_type, 'subtypes', ())
        if subtypes:
            return _cqltype_name(subtypes[0])
    return name


def resolve_wire_type(cql_type: Any) -> WireType | None:
    """Resolve the wire type of a column.

    Args:
        cql_type: A driver cql type class, a CQL type string such as
            ``'list<int>'``, or a :class:`WireType`

    Returns
        WireType, or None when the type is outside the closed set
    """
    if cql_type is None:
        return None
    if isinstance(cql_type, WireType):
        return cql_type
    if isinstance(cql_type, str):
        name = _base_type_name(cql_type)
    elif isinstance(cql_type, type):
        name = _cqltype_name(cql_type)
    else:
        name = getattr(cql_type, 'typename', None)
        name = name.lower() if isinstance(name, str) else None
    if not name:
        return None
    return _WIRE_TYPES_BY_NAME.get(name)


def type_name(cql_type: Any) -> str:
    """Human readable name of a column type for log messages.
    """
    if isinstance(cql_type, type) and hasattr(cql_type, 'cql_parameterized_type'):
        try:
            return cql_type.cql_parameterized_type()
        except Exception:
            return getattr(cql_type, 'typename', cql_type.__name__)
    return str(cql_type)


def canonical_types(wire_type: WireType) -> tuple[type, ...]:
    """Host types that bind to a wire type without conversion.
    """
    return _CANONICAL_TYPES[wire_type]


def is_canonical(value: Any, wire_type: WireType) -> bool:
    """Check whether a value already has the canonical host type of a wire type.

    ``bool`` is not accepted for integer columns and ``datetime.datetime`` is not
    accepted for ``date`` columns even though they subclass ``int`` and
    ``datetime.date``.

    >>> is_canonical(5, WireType.INT)
    True
    >>> is_canonical(True, WireType.INT)
    False
    >>> is_canonical(datetime.datetime(2020, 1, 1), WireType.DATE)
    False
    >>> is_canonical(datetime.date(2020, 1, 1), WireType.DATE)
    True
    """
    if wire_type in INTEGER_TYPES and isinstance(value, bool):
        return False
    if wire_type is WireType.DATE and isinstance(value, datetime.datetime):
        return False
    if wire_type is WireType.TIME and isinstance(value, bool):
        return False
    return isinstance(value, _CANONICAL_TYPES[wire_type])


__all__ = [
    'WireType',
    'TEXT_TYPES',
    'INTEGER_TYPES',
    'resolve_wire_type',
    'type_name',
    'canonical_types',
    'is_canonical',
]


if __name__ == '__main__':
    __import__('doctest').testmod(optionflags=4 | 8 | 32)

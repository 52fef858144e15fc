"""
Type conversion between CQL wire values and Python values.

This module provides:
1. A TypeConverter class normalizing NumPy and pandas values before binding
2. The Codec base class and a name registry of codec plugins
3. The CodecRegistry, which converts column values on the read path and
   statement parameters on the write path

Conversion principles:
1. Database → Python: the driver decodes the wire bytes; ``CodecRegistry.coerce``
   reshapes the driver value into the host representation (e.g. ``Date`` into
   ``datetime.date`` or epoch millis)
2. Python → Database: ``CodecRegistry.encode`` binds values of the canonical
   host type directly and converts anything else through the custom codecs and
   then the built-in lenient conversions

Usage:
    registry = CodecRegistry.from_names(['epoch_millis'])

    # read path
    value = registry.coerce(row[0], cqltypes.DateType, desired_type=int)

    # write path
    params = {}
    registry.bind(params, cqltypes.DateType, 'created', 1589500800000)
    bound = prepared.bind(params)
"""
import collections.abc
import datetime
import decimal
import ipaddress
import logging
import math
import numbers
import uuid
from collections.abc import Callable
from typing import Any

import dateutil.parser
import numpy as np
import pandas as pd
from cassandra.util import Date, Duration, OrderedMap, SortedSet, Time
from cqlbatch.adapters.type_mapping import INTEGER_TYPES, TEXT_TYPES, WireType
from cqlbatch.adapters.type_mapping import is_canonical, resolve_wire_type
from cqlbatch.adapters.type_mapping import type_name
from cqlbatch.exceptions import CoercionError, ConfigurationError

logger = logging.getLogger(__name__)

EPOCH = datetime.datetime(1970, 1, 1)
EPOCH_DATE = EPOCH.date()
MILLIS_PER_DAY = 86_400_000
NANOS_PER_MICRO = 1_000

NUMPY_FLOAT_TYPES = (np.floating,)
NUMPY_INT_TYPES = (np.integer, np.unsignedinteger)
TRUE_STRINGS = frozenset({'true', 't', 'yes', 'y', '1'})
FALSE_STRINGS = frozenset({'false', 'f', 'no', 'n', '0'})


# Epoch helpers

def datetime_to_millis(value: datetime.datetime) -> int:
    """Milliseconds since the epoch for a naive-UTC or aware datetime.

    >>> datetime_to_millis(datetime.datetime(2020, 5, 15, 0, 0, 0, 1000))
    1589500800001
    """
    if value.tzinfo is not None:
        value = value.astimezone(datetime.timezone.utc).replace(tzinfo=None)
    return (value - EPOCH) // datetime.timedelta(milliseconds=1)


def millis_to_datetime(millis: int) -> datetime.datetime:
    """Naive UTC datetime for milliseconds since the epoch.

    >>> millis_to_datetime(1589500800001)
    datetime.datetime(2020, 5, 15, 0, 0, 0, 1000)
    """
    return EPOCH + datetime.timedelta(milliseconds=millis)


def date_to_days(value: Any) -> int:
    """Days since the epoch for a driver ``Date`` or a ``datetime.date``.
    """
    if isinstance(value, Date):
        return value.days_from_epoch
    if isinstance(value, datetime.datetime):
        value = value.date()
    return (value - EPOCH_DATE).days


# Value normalization (NumPy / pandas)

def _convert_numpy_value(val: Any) -> float | int | datetime.datetime | None:
    """Convert NumPy value to Python type."""
    if isinstance(val, np.floating) and np.isnan(val):
        return None

    if isinstance(val, np.datetime64) and np.isnat(val):
        return None

    if isinstance(val, (np.floating, np.integer | np.unsignedinteger, np.bool_)):
        return val.item()

    if isinstance(val, np.datetime64):
        micros = val.astype('datetime64[us]').astype(np.int64)
        return EPOCH + datetime.timedelta(microseconds=int(micros))

    return val


class TypeConverter:
    """Normalizes NumPy and pandas values to plain Python values.

    Items built from DataFrames carry NumPy scalars, ``pd.NA``/``pd.NaT`` and
    NaN for missing values; the driver serializers only understand plain
    Python values.
    """

    @staticmethod
    def convert_value(value: Any) -> Any:
        """Convert a single value to a driver-compatible format."""
        if value is None:
            return None

        if isinstance(value, float) and math.isnan(value):
            return None

        if value is pd.NaT or value is pd.NA:
            return None

        if isinstance(value, (*NUMPY_FLOAT_TYPES, *NUMPY_INT_TYPES, np.bool_, np.datetime64)):
            return _convert_numpy_value(value)

        if isinstance(value, pd.Timestamp):
            return value.to_pydatetime()

        if isinstance(value, np.ndarray):
            return value.tolist()

        return value


# Codec plugins

_CODEC_REGISTRY: dict[str, type['Codec']] = {}


def register_codec(name: str):
    """Decorator to register a codec class under a configuration name.

    Usage:
        @register_codec('money')
        class MoneyCodec(Codec):
            ...
    """
    def decorator(cls: type['Codec']) -> type['Codec']:
        _CODEC_REGISTRY[name.lower()] = cls
        return cls
    return decorator


def get_codec_class(name: str) -> type['Codec']:
    """Look up a registered codec class by name.
    """
    try:
        return _CODEC_REGISTRY[name.strip().lower()]
    except KeyError:
        raise ConfigurationError(f'Unknown codec: {name}. Available: {get_available_codecs()}',
                                 'custom_codecs', name) from None


def get_available_codecs() -> list[str]:
    """Return list of registered codec names."""
    return sorted(_CODEC_REGISTRY)


class Codec:
    """Custom conversion between a set of wire types and one host type.

    Subclasses declare ``wire_types`` and ``host_type`` and implement
    ``decode`` (read path) and ``encode`` (write path).
    """

    wire_types: frozenset[WireType] = frozenset()
    host_type: type | None = None

    def accepts(self, wire_type: WireType | None, host_type: Any) -> bool:
        """Check if this codec converts between the wire type and host type.
        """
        if wire_type not in self.wire_types:
            return False
        if not isinstance(host_type, type) or self.host_type is None:
            return False
        return issubclass(host_type, self.host_type)

    def decode(self, value: Any, wire_type: WireType) -> Any:
        """Convert a driver value into the host type."""
        raise NotImplementedError

    def encode(self, value: Any, wire_type: WireType) -> Any:
        """Convert a host value into a value the driver serializes."""
        raise NotImplementedError

    def __repr__(self) -> str:
        return f'{type(self).__name__}()'


@register_codec('epoch_millis')
class EpochMillisCodec(Codec):
    """``timestamp`` and ``date`` columns as ``int`` milliseconds since the epoch.
    """

    wire_types = frozenset({WireType.TIMESTAMP, WireType.DATE})
    host_type = int

    def decode(self, value: Any, wire_type: WireType) -> int:
        if wire_type is WireType.DATE:
            return date_to_days(value) * MILLIS_PER_DAY
        return datetime_to_millis(value)

    def encode(self, value: int, wire_type: WireType) -> Any:
        if wire_type is WireType.DATE:
            return Date(value // MILLIS_PER_DAY)
        return millis_to_datetime(value)


@register_codec('iso_string')
class IsoStringCodec(Codec):
    """``date``, ``timestamp`` and ``time`` columns as ISO-8601 strings.
    """

    wire_types = frozenset({WireType.DATE, WireType.TIMESTAMP, WireType.TIME})
    host_type = str

    def decode(self, value: Any, wire_type: WireType) -> str:
        if wire_type is WireType.DATE and isinstance(value, Date):
            return str(value)
        if wire_type is WireType.TIME and not isinstance(value, Time):
            value = Time(value)
        if isinstance(value, Time):
            return str(value)
        return value.isoformat()

    def encode(self, value: str, wire_type: WireType) -> Any:
        if wire_type is WireType.TIME:
            return Time(value)
        parsed = dateutil.parser.isoparse(value)
        if wire_type is WireType.DATE:
            return parsed.date()
        return parsed


# Read path conversions

def _read_time(value: Any, desired_type: Any) -> int:
    if isinstance(value, Time):
        return value.nanosecond_time
    if isinstance(value, datetime.time):
        return Time(value).nanosecond_time
    return int(value)


def _read_date(value: Any, desired_type: Any) -> Any:
    days = date_to_days(value)
    if desired_type is int:
        return days * MILLIS_PER_DAY
    if desired_type is datetime.datetime:
        return EPOCH + datetime.timedelta(days=days)
    if isinstance(value, Date):
        try:
            return value.date()
        except ValueError:
            logger.debug(f'Date {value.days_from_epoch} days from epoch is outside datetime.date range')
            return value
    return value


def _read_timestamp(value: Any, desired_type: Any) -> Any:
    if isinstance(value, int | float) and not isinstance(value, bool):
        value = millis_to_datetime(int(value))
    if desired_type is int:
        return datetime_to_millis(value)
    return value


def _read_uuid(value: Any, desired_type: Any) -> uuid.UUID:
    return value if isinstance(value, uuid.UUID) else uuid.UUID(str(value))


def _read_decimal(value: Any, desired_type: Any) -> decimal.Decimal:
    return value if isinstance(value, decimal.Decimal) else decimal.Decimal(str(value))


def _read_set(value: Any, desired_type: Any) -> Any:
    if isinstance(value, collections.abc.Set):
        return value
    try:
        return set(value)
    except TypeError:
        # frozen collections as elements are unhashable
        return value if isinstance(value, SortedSet) else SortedSet(value)


def _read_map(value: Any, desired_type: Any) -> Any:
    try:
        return dict(value)
    except TypeError:
        # frozen collections as keys are unhashable
        return value if isinstance(value, OrderedMap) else OrderedMap(value)


def _read_passthrough(value: Any, desired_type: Any) -> Any:
    return value


_READERS: dict[WireType, Callable[[Any, Any], Any]] = {
    WireType.TIME: _read_time,
    WireType.BOOLEAN: lambda v, _: bool(v),
    WireType.DOUBLE: lambda v, _: float(v),
    WireType.FLOAT: lambda v, _: float(v),
    WireType.DECIMAL: _read_decimal,
    WireType.DATE: _read_date,
    WireType.TIMESTAMP: _read_timestamp,
    WireType.UUID: _read_uuid,
    WireType.TIMEUUID: _read_uuid,
    WireType.BLOB: lambda v, _: bytes(v),
    WireType.INET: lambda v, _: ipaddress.ip_address(v),
    WireType.DURATION: _read_passthrough,
    WireType.TUPLE: _read_passthrough,
    WireType.UDT: _read_passthrough,
    WireType.LIST: lambda v, _: list(v),
    WireType.MAP: _read_map,
    WireType.SET: _read_set,
    }
for _t in TEXT_TYPES:
    _READERS[_t] = lambda v, _: str(v)
for _t in INTEGER_TYPES:
    _READERS[_t] = lambda v, _: int(v)
del _t


# Write path conversions

def _write_integer(value: Any) -> int:
    if isinstance(value, numbers.Integral):
        return int(value)
    if isinstance(value, float | decimal.Decimal) and value == int(value):
        return int(value)
    if isinstance(value, str):
        return int(value.strip())
    raise TypeError(f'{type(value).__name__} is not an integer')


def _write_boolean(value: Any) -> bool:
    if isinstance(value, numbers.Integral) and value in {0, 1}:
        return bool(value)
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in TRUE_STRINGS:
            return True
        if lowered in FALSE_STRINGS:
            return False
    raise TypeError(f'{value!r} is not a boolean')


def _write_float(value: Any) -> float:
    if isinstance(value, numbers.Real | decimal.Decimal | str):
        return float(value)
    raise TypeError(f'{type(value).__name__} is not a number')


def _write_decimal(value: Any) -> decimal.Decimal:
    if isinstance(value, numbers.Number | str):
        return decimal.Decimal(str(value))
    raise TypeError(f'{type(value).__name__} is not a number')


def _write_time(value: Any) -> Any:
    if isinstance(value, datetime.timedelta):
        return (value // datetime.timedelta(microseconds=1)) * NANOS_PER_MICRO
    if isinstance(value, str):
        return Time(value)
    raise TypeError(f'{type(value).__name__} is not a time of day')


def _write_date(value: Any) -> Any:
    if isinstance(value, datetime.datetime):
        return value.date()
    if isinstance(value, numbers.Integral):
        return Date(int(value) // MILLIS_PER_DAY)
    if isinstance(value, str):
        return dateutil.parser.isoparse(value).date()
    raise TypeError(f'{type(value).__name__} is not a date')


def _write_timestamp(value: Any) -> datetime.datetime:
    if isinstance(value, Date):
        return EPOCH + datetime.timedelta(days=value.days_from_epoch)
    if isinstance(value, datetime.date):
        return datetime.datetime.combine(value, datetime.time())
    if isinstance(value, numbers.Real):
        return millis_to_datetime(int(value))
    if isinstance(value, str):
        return dateutil.parser.isoparse(value)
    raise TypeError(f'{type(value).__name__} is not a timestamp')


def _write_uuid(value: Any) -> uuid.UUID:
    if isinstance(value, bytes) and len(value) == 16:
        return uuid.UUID(bytes=value)
    if isinstance(value, str):
        return uuid.UUID(value)
    raise TypeError(f'{type(value).__name__} is not a UUID')


def _write_blob(value: Any) -> bytes:
    if isinstance(value, str):
        return value.encode('utf-8')
    return bytes(value)


def _write_inet(value: Any) -> str:
    if isinstance(value, ipaddress.IPv4Address | ipaddress.IPv6Address):
        return str(value)
    if isinstance(value, bytes):
        return str(ipaddress.ip_address(value))
    raise TypeError(f'{type(value).__name__} is not a network address')


def _write_duration(value: Any) -> Duration:
    if isinstance(value, datetime.timedelta):
        nanos = (value.seconds * 1_000_000 + value.microseconds) * NANOS_PER_MICRO
        return Duration(0, value.days, nanos)
    raise TypeError(f'{type(value).__name__} is not a duration')


def _write_iterable(factory: Callable[[Any], Any]) -> Callable[[Any], Any]:
    def convert(value: Any) -> Any:
        if isinstance(value, str | bytes) or not isinstance(value, collections.abc.Iterable):
            raise TypeError(f'{type(value).__name__} is not a collection')
        return factory(value)
    return convert


def _write_set(value: Any) -> Any:
    try:
        return set(value)
    except TypeError:
        return SortedSet(value)


def _write_map(value: Any) -> Any:
    if not hasattr(value, 'items'):
        raise TypeError(f'{type(value).__name__} is not a mapping')
    try:
        return dict(value.items())
    except TypeError:
        return OrderedMap(value.items())


_WRITERS: dict[WireType, Callable[[Any], Any]] = {
    WireType.TIME: _write_time,
    WireType.BOOLEAN: _write_boolean,
    WireType.DOUBLE: _write_float,
    WireType.FLOAT: _write_float,
    WireType.DECIMAL: _write_decimal,
    WireType.DATE: _write_date,
    WireType.TIMESTAMP: _write_timestamp,
    WireType.UUID: _write_uuid,
    WireType.TIMEUUID: _write_uuid,
    WireType.BLOB: _write_blob,
    WireType.INET: _write_inet,
    WireType.DURATION: _write_duration,
    WireType.TUPLE: _write_iterable(tuple),
    WireType.LIST: _write_iterable(list),
    WireType.SET: _write_iterable(_write_set),
    WireType.MAP: _write_map,
    }
for _t in TEXT_TYPES:
    _WRITERS[_t] = str
for _t in INTEGER_TYPES:
    _WRITERS[_t] = _write_integer
del _t


class CodecRegistry:
    """Registry of custom codecs consulted before the built-in conversions.

    The registry is populated when a reader or writer opens and is treated as
    read-only afterwards.
    """

    def __init__(self, codecs: list[Codec] | None = None) -> None:
        self._codecs: list[Codec] = []
        for codec in codecs or ():
            self.register(codec)

    @classmethod
    def from_names(cls, names: list[str | Codec] | None) -> 'CodecRegistry':
        """Build a registry from codec names and/or codec instances.

        Args:
            names: Registered codec names (see ``register_codec``), Codec
                instances or Codec classes, in lookup order

        Returns
            CodecRegistry instance
        """
        codecs = []
        for entry in names or ():
            if isinstance(entry, Codec):
                codecs.append(entry)
            elif isinstance(entry, type) and issubclass(entry, Codec):
                codecs.append(entry())
            elif isinstance(entry, str):
                codecs.append(get_codec_class(entry)())
            else:
                raise ConfigurationError(f'Invalid codec: {entry!r}', 'custom_codecs', entry)
        return cls(codecs)

    @property
    def codecs(self) -> tuple[Codec, ...]:
        """Custom codecs in lookup order."""
        return tuple(self._codecs)

    def register(self, codec: Codec) -> None:
        """Append a custom codec to the lookup order.
        """
        if not isinstance(codec, Codec):
            raise ConfigurationError(f'Not a Codec: {codec!r}', 'custom_codecs', codec)
        self._codecs.append(codec)
        logger.debug(f'Registered codec {codec!r}')

    def find_codec(self, wire_type: WireType | None, host_type: Any) -> Codec | None:
        """First custom codec accepting the (wire type, host type) pair.
        """
        for codec in self._codecs:
            if codec.accepts(wire_type, host_type):
                return codec
        return None

    def coerce(self, value: Any, cql_type: Any, desired_type: Any = None) -> Any:
        """Convert a driver column value into its host representation.

        Args:
            value: Column value as decoded by the driver
            cql_type: Column type (driver cql type class, CQL string or WireType)
            desired_type: Optional Python type the value is destined for, e.g.
                the declared type of an item attribute

        Returns
            Host value; unsupported wire types return the driver value unchanged
        """
        if value is None:
            return None

        wire_type = resolve_wire_type(cql_type)

        if desired_type is not None and self._codecs:
            codec = self.find_codec(wire_type, desired_type)
            if codec is not None:
                return codec.decode(value, wire_type)

        if wire_type is None:
            logger.warning(f'Unsupported data type: {type_name(cql_type)}, '
                           f'returning {type(value).__name__} value unconverted')
            return value

        try:
            return _READERS[wire_type](value, desired_type)
        except (TypeError, ValueError, OverflowError) as e:
            raise CoercionError(f'Cannot read {type(value).__name__} value {value!r} '
                                f'as {wire_type}: {e}') from e

    def encode(self, value: Any, cql_type: Any) -> Any:
        """Convert a host value into a value bindable to a column.

        Args:
            value: Host value from an item
            cql_type: Parameter type (driver cql type class, CQL string or WireType)

        Returns
            Value the driver serializes for the column type
        """
        value = TypeConverter.convert_value(value)
        if value is None:
            return None

        wire_type = resolve_wire_type(cql_type)
        if wire_type is None:
            logger.warning(f'Unsupported data type: {type_name(cql_type)}, '
                           f'binding {type(value).__name__} value as is')
            return value

        if is_canonical(value, wire_type):
            return value

        codec = self.find_codec(wire_type, type(value))
        if codec is not None:
            return codec.encode(value, wire_type)

        try:
            return _WRITERS[wire_type](value)
        except (TypeError, ValueError, OverflowError) as e:
            raise CoercionError(f'Cannot bind {type(value).__name__} value {value!r} '
                                f'to {wire_type} parameter: {e}') from e

    def bind(self, values: dict[str, Any], cql_type: Any, name: str, value: Any) -> None:
        """Set a named statement parameter to the encoded value.
        """
        try:
            values[name] = self.encode(value, cql_type)
        except CoercionError as e:
            raise CoercionError(f'Parameter {name!r}: {e}') from e


__all__ = [
    'TypeConverter',
    'Codec',
    'EpochMillisCodec',
    'IsoStringCodec',
    'CodecRegistry',
    'register_codec',
    'get_codec_class',
    'get_available_codecs',
    'datetime_to_millis',
    'millis_to_datetime',
    'date_to_days',
]


if __name__ == '__main__':
    __import__('doctest').testmod(optionflags=4 | 8 | 32)

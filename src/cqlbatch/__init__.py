"""
Chunked item readers and writers for Apache Cassandra.

- CqlItemReader: delivers the rows of a query as items, resumable from a checkpoint
- CqlItemWriter: executes the items of a chunk as one batch statement
- CqlBatchlet: executes one statement and returns its first row

Items are sequences, mappings or instances of a user type; column values are
converted by a CodecRegistry that accepts custom codecs.
"""
__version__ = '0.1.0'

from cqlbatch.adapters import Codec, CodecRegistry, Column, ItemShape, WireType
from cqlbatch.adapters import register_codec
from cqlbatch.batchlet import CqlBatchlet
from cqlbatch.cache import Cache
from cqlbatch.exceptions import CoercionError, ConfigurationError, CqlBatchError
from cqlbatch.exceptions import ItemValidationError, ReaderStateError
from cqlbatch.exceptions import SessionError
from cqlbatch.options import CqlOptions, ReaderOptions, WriterOptions
from cqlbatch.reader import CqlItemReader, ReaderState
from cqlbatch.session import SessionManager, connect, register_policy
from cqlbatch.validation import default_validator
from cqlbatch.writer import BatchAccumulator, CqlItemWriter

__all__ = [
    'CqlItemReader',
    'CqlItemWriter',
    'CqlBatchlet',
    'BatchAccumulator',
    'ReaderState',
    'SessionManager',
    'connect',
    'register_policy',
    'CqlOptions',
    'ReaderOptions',
    'WriterOptions',
    'Codec',
    'CodecRegistry',
    'register_codec',
    'Column',
    'ItemShape',
    'WireType',
    'Cache',
    'default_validator',
    'CqlBatchError',
    'ConfigurationError',
    'CoercionError',
    'ItemValidationError',
    'SessionError',
    'ReaderStateError',
]

"""
Item writer executing each chunk of items as one CQL batch.

Every item is bound to the prepared statement of the configured ``cql``:

- sequence items bind by position; extra values are dropped and missing
  values are bound as null
- mapping and object items bind by parameter name; a parameter with no value
  is left unset and a warning is logged

Usage:
    writer = CqlItemWriter(WriterOptions(
        contact_points=['localhost'], keyspace='shop',
        cql='INSERT INTO customers (id, name) VALUES (:id, :name)'))
    writer.open(None)
    writer.write_items([{'id': 1, 'name': 'Ada'}, {'id': 2, 'name': 'Grace'}])
    writer.close()
"""
import logging
from collections.abc import Callable, Iterable
from typing import Any

from cassandra.query import BatchStatement, BatchType
from cqlbatch.adapters.column_info import columns_from_prepared
from cqlbatch.adapters.structure import ItemShape, ShapeAdapter, resolve_parameter
from cqlbatch.base import CqlReaderWriterBase
from cqlbatch.exceptions import CoercionError
from cqlbatch.options import WriterOptions

logger = logging.getLogger(__name__)

_BATCH_TYPES = {
    'logged': BatchType.LOGGED,
    'unlogged': BatchType.UNLOGGED,
    'counter': BatchType.COUNTER,
    }


class BatchAccumulator:
    """Collects the bound statements of one chunk into a batch statement.

    The batch is cleared after every flush, including a failed one, so a
    retried chunk never carries statements of an earlier attempt.
    """

    def __init__(self, session: Any, batch_type: str = 'logged',
                 consistency_level: int | None = None,
                 batch_factory: Callable[..., Any] | None = None) -> None:
        self.session = session
        kwargs: dict[str, Any] = {'batch_type': _BATCH_TYPES[batch_type]}
        if consistency_level is not None:
            kwargs['consistency_level'] = consistency_level
        self.batch = (batch_factory or BatchStatement)(**kwargs)
        self._pending = 0

    @property
    def pending(self) -> int:
        """Number of statements added since the last flush."""
        return self._pending

    def add(self, statement: Any) -> None:
        self.batch.add(statement)
        self._pending += 1

    def clear(self) -> None:
        self.batch.clear()
        self._pending = 0

    def flush(self) -> Any:
        """Execute the batch once.

        Returns
            Result of the execution, None when nothing was added
        """
        if not self._pending:
            logger.debug('Nothing to flush')
            return None
        logger.debug(f'Executing batch of {self._pending} statements')
        try:
            return self.session.execute(self.batch)
        finally:
            self.clear()


class CqlItemWriter(CqlReaderWriterBase):
    """Writes items with a prepared statement, one batch per chunk.
    """

    options_class = WriterOptions

    def __init__(self, options: Any, session: Any = None, cluster: Any = None,
                 cluster_factory: Callable[..., Any] | None = None,
                 batch_factory: Callable[..., Any] | None = None) -> None:
        super().__init__(options, session, cluster, cluster_factory)
        self.batch_factory = batch_factory
        self.prepared = None
        self.accumulator: BatchAccumulator | None = None

    def open(self, checkpoint: Any = None) -> None:
        """Prepare the statement. The checkpoint is ignored."""
        session = self.init_session()
        if self.prepared is None:
            self.prepared = session.prepare(self.options.cql)
            if self.options.consistency_level is not None:
                self.prepared.consistency_level = self.options.consistency_level
        self.columns = columns_from_prepared(self.prepared)
        self.adapter = ShapeAdapter.create(self.options.item_shape, self.columns,
                                           self.codec_registry,
                                           item_type=self.options.item_type)
        self.accumulator = BatchAccumulator(session, self.options.batch_type,
                                            self.options.consistency_level,
                                            self.batch_factory)
        logger.debug(f'Prepared statement with parameters {[c.name for c in self.columns]}')

    def _positional_values(self, item: Any) -> list[Any]:
        values = self.adapter.to_sequence(item)[:len(self.columns)]
        values += [None] * (len(self.columns) - len(values))
        encoded = []
        for position, (column, value) in enumerate(zip(self.columns, values), 1):
            try:
                encoded.append(self.codec_registry.encode(value, column.cql_type))
            except CoercionError as e:
                raise CoercionError(f'Parameter {position}: {e}') from e
        return encoded

    def _named_values(self, item: Any) -> dict[str, Any]:
        mapping = self.adapter.to_mapping(item)
        values: dict[str, Any] = {}
        for column in self.columns:
            value = resolve_parameter(mapping, column.name, self.options.parameter_names)
            if value is None:
                logger.warning(f'Parameter {column.name} not bound in: {self.options.cql}')
                continue
            self.codec_registry.bind(values, column.cql_type, column.name, value)
        return values

    def map_parameters(self, item: Any) -> Any:
        """Bind one item to the prepared statement.

        Returns
            Bound statement
        """
        self.check_open()
        if self.adapter.shape is ItemShape.SEQUENCE:
            return self.prepared.bind(self._positional_values(item))
        return self.prepared.bind(self._named_values(item))

    def write_items(self, items: Iterable[Any]) -> None:
        """Execute all items of a chunk as one batch.
        """
        self.check_open()
        try:
            for item in items:
                self.accumulator.add(self.map_parameters(item))
            self.accumulator.flush()
        finally:
            self.accumulator.clear()

    def checkpoint_info(self) -> None:
        """Write progress is tracked by chunk boundaries."""
        return None

    def close(self) -> None:
        self.accumulator = None
        self.prepared = None
        super().close()


__all__ = ['CqlItemWriter', 'BatchAccumulator']

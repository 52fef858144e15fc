"""
Item reader delivering the rows of a CQL query one item at a time.

The reader keeps a 1-based row counter over the result of its query. Rows
before ``start`` and rows already delivered before the checkpoint it was
opened with are fetched and discarded; rows after ``end`` are never read.

    reader = CqlItemReader(ReaderOptions(
        contact_points=['localhost'], keyspace='shop',
        cql='SELECT id, name FROM customers', start=3, end=5))
    reader.open(checkpoint=None)
    while (item := reader.read_item()) is not None:
        process(item)
        checkpoint = reader.checkpoint_info()
    reader.close()
"""
import enum
import logging
from collections.abc import Iterator
from typing import Any

from cassandra.query import SimpleStatement
from cqlbatch.adapters.column_info import columns_from_result_set
from cqlbatch.adapters.structure import ShapeAdapter
from cqlbatch.base import CqlReaderWriterBase
from cqlbatch.exceptions import ConfigurationError, ReaderStateError
from cqlbatch.options import ReaderOptions
from more_itertools import peekable

logger = logging.getLogger(__name__)


class ReaderState(enum.Enum):
    UNOPENED = 'unopened'
    READY = 'ready'
    EXHAUSTED = 'exhausted'


def parse_checkpoint(checkpoint: Any) -> int | None:
    """Parse a checkpoint produced by ``checkpoint_info``.

    >>> parse_checkpoint(' 6 ')
    6
    >>> parse_checkpoint(None)
    """
    if checkpoint is None:
        return None
    if isinstance(checkpoint, int) and not isinstance(checkpoint, bool):
        return checkpoint
    if isinstance(checkpoint, str) and checkpoint.strip().isdigit():
        return int(checkpoint.strip())
    raise ConfigurationError(f'Invalid checkpoint: {checkpoint!r}', 'checkpoint', checkpoint)


class CqlItemReader(CqlReaderWriterBase):
    """Reads the rows of a CQL query as items.

    ``checkpoint_info`` returns the 1-based position of the next row to
    deliver. Opening a new reader with that checkpoint resumes at that row, so
    no delivered row is delivered again.
    """

    options_class = ReaderOptions

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.state = ReaderState.UNOPENED
        self.counter = 0
        self.result_set = None
        self._rows: peekable | None = None

    def build_statement(self) -> SimpleStatement:
        """Statement executed by ``open``."""
        kwargs = {}
        if self.options.fetch_size:
            kwargs['fetch_size'] = self.options.fetch_size
        if self.options.consistency_level is not None:
            kwargs['consistency_level'] = self.options.consistency_level
        return SimpleStatement(self.options.cql, **kwargs)

    def open(self, checkpoint: Any = None) -> None:
        """Execute the query and position the reader.

        Args:
            checkpoint: Value previously returned by ``checkpoint_info``, or
                None to start at ``start``

        Raises
            ConfigurationError: for an invalid checkpoint or a column mapping
                that does not match the result columns
        """
        ready_position = self.options.start - 1
        checkpoint = parse_checkpoint(checkpoint)
        if checkpoint is not None and checkpoint - 1 > ready_position:
            ready_position = checkpoint - 1

        session = self.init_session()
        self.result_set = session.execute(self.build_statement())
        self.columns = columns_from_result_set(self.result_set)
        self.adapter = ShapeAdapter.create(
            self.options.item_shape, self.columns, self.codec_registry,
            column_mapping=self.options.column_mapping,
            item_type=self.options.item_type,
            validator=self.options.validator if self.options.validate_items else None)
        self.adapter.check_mapping()

        self.counter = 0
        self._rows = peekable(self.result_set)
        while self.counter < ready_position and self._rows:
            next(self._rows)
            self.counter += 1
        logger.debug(f'Skipped {self.counter} rows, reading from row {self.counter + 1}')
        self.state = ReaderState.READY

    def read_item(self) -> Any:
        """Read the next item.

        Returns
            Item in the configured shape, or None at the end of the window or
            of the result
        """
        if self.state is ReaderState.UNOPENED:
            raise ReaderStateError('read_item called before open')
        if self.state is ReaderState.EXHAUSTED:
            return None
        if self.counter >= self.options.end or not self._rows:
            self.state = ReaderState.EXHAUSTED
            logger.debug(f'Reader exhausted after row {self.counter}')
            return None
        item = self.adapter.to_item(next(self._rows))
        self.counter += 1
        return item

    def checkpoint_info(self) -> int:
        """Position of the next row to deliver, the resume position for ``open``."""
        return self.counter + 1

    def close(self) -> None:
        self._rows = None
        self.result_set = None
        self.state = ReaderState.UNOPENED
        super().close()

    def __iter__(self) -> Iterator[Any]:
        while (item := self.read_item()) is not None:
            yield item


__all__ = ['CqlItemReader', 'ReaderState', 'parse_checkpoint']


if __name__ == '__main__':
    __import__('doctest').testmod(optionflags=4 | 8 | 32)

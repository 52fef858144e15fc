"""
Batchlet executing a single CQL statement.

The statement may be a ``BEGIN BATCH ... APPLY BATCH`` group. The first
result row, if any, is returned as the exit status.
"""
import logging
from typing import Any

from cassandra.query import SimpleStatement
from cqlbatch.base import CqlReaderWriterBase
from cqlbatch.options import CqlOptions

logger = logging.getLogger(__name__)


class CqlBatchlet(CqlReaderWriterBase):
    """Executes ``options.cql`` once per ``process`` call.
    """

    options_class = CqlOptions

    def open(self, checkpoint: Any = None) -> None:
        self.init_session()

    def process(self) -> str | None:
        """Execute the statement and release the session.

        Returns
            String form of the first result row, None when there is none
        """
        try:
            session = self.init_session()
            kwargs = {}
            if self.options.consistency_level is not None:
                kwargs['consistency_level'] = self.options.consistency_level
            row = session.execute(SimpleStatement(self.options.cql, **kwargs)).one()
            result = None if row is None else str(row)
            logger.debug(f'Statement returned {result!r}')
            return result
        finally:
            self.close()

    def stop(self) -> None:
        """Nothing to stop, ``process`` runs a single statement."""


__all__ = ['CqlBatchlet']

"""
Common base of CQL item readers, item writers and batchlets.
"""
import logging
from collections.abc import Callable, Mapping
from typing import Any, Self

from cqlbatch.adapters.column_info import Column
from cqlbatch.adapters.structure import ShapeAdapter
from cqlbatch.adapters.type_conversion import CodecRegistry
from cqlbatch.exceptions import ConfigurationError, ReaderStateError
from cqlbatch.options import CqlOptions
from cqlbatch.session import SessionManager

logger = logging.getLogger(__name__)


class CqlReaderWriterBase:
    """Session, codec registry and item shape shared by readers and writers.

    Args:
        options: Options instance, or a mapping of job properties parsed with
            ``from_properties``
        session: Session to use instead of creating one; never closed here
        cluster: Cluster to connect instead of building one; never shut down here
        cluster_factory: Factory used to build a cluster from the options
    """

    options_class: type[CqlOptions] = CqlOptions

    def __init__(self, options: CqlOptions | Mapping[str, Any], session: Any = None,
                 cluster: Any = None, cluster_factory: Callable[..., Any] | None = None) -> None:
        if isinstance(options, Mapping):
            options = self.options_class.from_properties(options)
        if not isinstance(options, self.options_class):
            raise ConfigurationError(f'Expected {self.options_class.__name__}, '
                                     f'got {type(options).__name__}')
        options.require_cql()
        self.options = options
        self.session_manager = SessionManager(options, session, cluster, cluster_factory)
        self.session = None
        self.codec_registry: CodecRegistry | None = None
        self.columns: list[Column] = []
        self.adapter: ShapeAdapter | None = None

    @property
    def is_open(self) -> bool:
        return self.session is not None

    def init_session(self) -> Any:
        """Acquire the session and build the codec registry.
        """
        if self.session is None:
            self.session = self.session_manager.acquire()
        if self.codec_registry is None:
            self.codec_registry = CodecRegistry.from_names(self.options.custom_codecs)
        return self.session

    def check_open(self) -> None:
        if not self.is_open:
            raise ReaderStateError(f'{type(self).__name__} is not open')

    def open(self, checkpoint: Any = None) -> None:
        raise NotImplementedError('Subclasses must implement open method')

    def close(self) -> None:
        """Release the session. Never raises.
        """
        self.session_manager.release()
        self.session = None

    def __enter__(self) -> Self:
        if not self.is_open:
            self.open()
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.close()


__all__ = ['CqlReaderWriterBase']

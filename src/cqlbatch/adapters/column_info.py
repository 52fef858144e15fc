"""
Column information for query results and statement parameters.
"""
import logging
from typing import Any, Self

from cqlbatch.adapters.type_mapping import WireType, resolve_wire_type, type_name

logger = logging.getLogger(__name__)


class Column:
    """A result column or statement parameter with its wire type.

    - ``cql_type`` is the type reported by the driver (a ``cassandra.cqltypes``
      class) or a CQL type string
    - ``wire_type`` is the resolved :class:`WireType`, None for types outside
      the supported set
    """

    def __init__(self, name: str, cql_type: Any, wire_type: WireType | None = None):
        self.name = name
        self.cql_type = cql_type
        self.wire_type = wire_type if wire_type is not None else resolve_wire_type(cql_type)

    def __repr__(self) -> str:
        return f'Column(name={self.name!r}, type={type_name(self.cql_type)})'

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Column):
            return NotImplemented
        return (self.name, self.wire_type) == (other.name, other.wire_type)

    def __hash__(self) -> int:
        return hash((self.name, self.wire_type))

    @staticmethod
    def get_names(columns: list[Self]) -> list[str]:
        """Get column names from a list of Column objects.
        """
        return [col.name for col in columns]


def columns_from_result_set(result_set: Any) -> list[Column]:
    """Create Column objects from the metadata of an executed query.

    Args:
        result_set: ``cassandra.cluster.ResultSet`` or compatible object with
            ``column_names`` and ``column_types``

    Returns
        List of Column objects, empty for statements without result columns
    """
    names = getattr(result_set, 'column_names', None) or []
    types = getattr(result_set, 'column_types', None) or [None] * len(names)
    return [Column(name, cql_type) for name, cql_type in zip(names, types)]


def columns_from_prepared(prepared: Any) -> list[Column]:
    """Create Column objects for the bind variables of a prepared statement.

    Args:
        prepared: ``cassandra.query.PreparedStatement`` or compatible object
            with ``column_metadata``

    Returns
        List of Column objects in bind marker order
    """
    return [Column(meta.name, meta.type) for meta in (prepared.column_metadata or [])]


__all__ = ['Column', 'columns_from_result_set', 'columns_from_prepared']

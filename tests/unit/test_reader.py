"""
Tests for the positional resume reader.
"""
import datetime
from dataclasses import dataclass

import pytest
from cassandra import ConsistencyLevel
from cqlbatch.exceptions import ConfigurationError, ItemValidationError
from cqlbatch.exceptions import ReaderStateError
from cqlbatch.options import ReaderOptions
from cqlbatch.reader import CqlItemReader, ReaderState

from tests.fixtures.fakes import FakeCluster, FakeSession

CQL = 'SELECT id, name FROM customers'


@dataclass
class Trade:
    id: int = None
    traded_at: int = None
    note: str | None = None


def make_reader(session, **kw):
    return CqlItemReader(ReaderOptions(cql=CQL, **kw), session=session)


def test_window_delivers_inclusive_range(make_session, numbered_rows):
    """start=3, end=5 over ten rows delivers rows 3 to 5"""
    reader = make_reader(make_session(numbered_rows), start=3, end=5)
    reader.open(None)

    items = list(reader)

    assert [item.id for item in items] == [3, 4, 5]
    assert items[0] == {'id': 3, 'name': 'name3'}
    assert reader.checkpoint_info() == 6
    assert reader.state is ReaderState.EXHAUSTED
    assert reader.read_item() is None
    assert numbered_rows.fetched == 5


def test_unbounded_window_reads_all_rows(make_session, numbered_rows):
    reader = make_reader(make_session(numbered_rows))
    reader.open(None)
    assert [item.id for item in reader] == list(range(1, 11))
    assert reader.checkpoint_info() == 11


def test_resume_delivers_exact_suffix(make_session, make_result_set, numbered_rows):
    """Resuming from a checkpoint neither repeats nor skips rows"""
    first = make_reader(make_session(numbered_rows))
    first.open(None)
    delivered = [first.read_item().id for _ in range(4)]
    checkpoint = first.checkpoint_info()
    first.close()
    assert checkpoint == 5

    rerun = make_result_set(numbered_rows.column_names, numbered_rows.column_types,
                            numbered_rows.rows)
    second = make_reader(make_session(rerun))
    second.open(checkpoint)
    delivered += [item.id for item in second]

    assert delivered == list(range(1, 11))


def test_resume_accepts_text_checkpoint(make_session, numbered_rows):
    reader = make_reader(make_session(numbered_rows))
    reader.open('8')
    assert [item.id for item in reader] == [8, 9, 10]


def test_checkpoint_before_start_is_ignored(make_session, numbered_rows):
    reader = make_reader(make_session(numbered_rows), start=4)
    reader.open(2)
    assert reader.read_item().id == 4


def test_invalid_checkpoint(make_session, numbered_rows):
    reader = make_reader(make_session(numbered_rows))
    with pytest.raises(ConfigurationError):
        reader.open('next')


def test_start_beyond_source(make_session, numbered_rows):
    """A window starting after the last row delivers nothing"""
    reader = make_reader(make_session(numbered_rows), start=15)
    reader.open(None)
    assert reader.read_item() is None
    assert reader.checkpoint_info() == 11


def test_read_before_open(make_session, numbered_rows):
    reader = make_reader(make_session(numbered_rows))
    with pytest.raises(ReaderStateError):
        reader.read_item()


def test_column_mapping_renames_fields(make_session, numbered_rows):
    reader = make_reader(make_session(numbered_rows), column_mapping='customer_id, customer_name', end=1)
    reader.open(None)
    assert reader.read_item() == {'customer_id': 1, 'customer_name': 'name1'}


def test_column_mapping_length_mismatch(make_session, numbered_rows):
    reader = make_reader(make_session(numbered_rows), column_mapping=['only_one'])
    with pytest.raises(ConfigurationError):
        reader.open(None)


def test_sequence_items(make_session, numbered_rows):
    reader = make_reader(make_session(numbered_rows), item_shape='list', end=2)
    reader.open(None)
    assert list(reader) == [[1, 'name1'], [2, 'name2']]


def test_mapping_rows(make_session, make_result_set):
    """Rows from dict_factory are read positionally"""
    rs = make_result_set(['id', 'name'], ['int', 'text'], [{'id': 1, 'name': 'a'}])
    reader = make_reader(make_session(rs), item_shape='sequence')
    reader.open(None)
    assert reader.read_item() == [1, 'a']


def test_object_items_use_declared_types(make_session, make_result_set):
    """Timestamp columns become epoch millis for int fields"""
    traded_at = datetime.datetime(2020, 5, 15, 0, 0, 0, 1000)
    rs = make_result_set(['id', 'traded_at', 'note'], ['int', 'timestamp', 'text'],
                         [(1, traded_at, None)])
    reader = make_reader(make_session(rs), item_type=Trade)
    reader.open(None)

    item = reader.read_item()

    assert isinstance(item, Trade)
    assert item == Trade(id=1, traded_at=1589500800001, note=None)


def test_object_item_validation(make_session, make_result_set):
    rs = make_result_set(['id', 'traded_at', 'note'], ['int', 'timestamp', 'text'],
                         [(None, None, 'x')])
    reader = make_reader(make_session(rs), item_type=Trade)
    reader.open(None)
    with pytest.raises(ItemValidationError) as exc_info:
        reader.read_item()
    assert exc_info.value.field == 'id'


def test_object_item_validation_disabled(make_session, make_result_set):
    rs = make_result_set(['id', 'traded_at', 'note'], ['int', 'timestamp', 'text'],
                         [(None, None, 'x')])
    reader = make_reader(make_session(rs), item_type=Trade, validate_items=False)
    reader.open(None)
    assert reader.read_item() == Trade(note='x')


def test_object_mapping_to_unknown_field(make_session, numbered_rows):
    reader = make_reader(make_session(numbered_rows), item_type=Trade,
                         column_mapping=['id', 'missing'])
    with pytest.raises(ConfigurationError):
        reader.open(None)


def test_statement_options(make_session, numbered_rows):
    session = make_session(numbered_rows)
    reader = make_reader(session, fetch_size=100, consistency_level='quorum')
    reader.open(None)
    statement = session.executed[0]
    assert statement.query_string == CQL
    assert statement.fetch_size == 100
    assert statement.consistency_level == ConsistencyLevel.QUORUM


def test_context_manager_keeps_injected_session(make_session, numbered_rows):
    session = make_session(numbered_rows)
    with make_reader(session, end=2) as reader:
        assert len(list(reader)) == 2
    assert session.shutdown_count == 0
    assert reader.state is ReaderState.UNOPENED


def test_close_releases_owned_session(numbered_rows):
    built = []

    def factory(**kwargs):
        cluster = FakeCluster(session=FakeSession(numbered_rows), **kwargs)
        built.append(cluster)
        return cluster

    options = ReaderOptions(cql=CQL, contact_points='node1', keyspace='shop')
    reader = CqlItemReader(options, cluster_factory=factory)
    reader.open(None)
    reader.close()
    reader.close()

    cluster, = built
    assert cluster.kwargs['contact_points'] == ['node1']
    assert cluster.keyspaces == ['shop']
    assert cluster.session.shutdown_count == 1
    assert cluster.shutdown_count == 1


def test_reader_from_properties(make_session, numbered_rows):
    reader = CqlItemReader({'cql': CQL, 'start': '2', 'end': '3', 'itemShape': 'list'},
                           session=make_session(numbered_rows))
    reader.open(None)
    assert list(reader) == [[2, 'name2'], [3, 'name3']]


if __name__ == '__main__':
    __import__('pytest').main([__file__])

"""
Tests for the batch write accumulator and item writer.
"""
import datetime
import logging
from dataclasses import dataclass

import numpy as np
import pytest
from cassandra.query import BatchType
from cqlbatch.exceptions import CoercionError, ReaderStateError
from cqlbatch.options import WriterOptions
from cqlbatch.writer import BatchAccumulator, CqlItemWriter

from tests.fixtures.fakes import FakeBatch

CQL = 'INSERT INTO customers (id, name) VALUES (:id, :name)'
PARAMETERS = [('id', 'int'), ('name', 'text')]


@dataclass
class Customer:
    id: int = None
    name: str = None


def open_writer(session, **kw):
    writer = CqlItemWriter(WriterOptions(cql=CQL, **kw), session=session, batch_factory=FakeBatch)
    writer.open(None)
    return writer


def test_named_parameters_are_encoded(make_session):
    session = make_session(parameters=PARAMETERS)
    writer = open_writer(session)
    bound = writer.map_parameters({'id': '7', 'name': 'Ada', 'ignored': 1})
    assert bound.values == {'id': 7, 'name': 'Ada'}


def test_alias_resolves_case_insensitive_parameter(make_session):
    """Parameter ``UserId`` takes the value of item key ``userId``"""
    session = make_session(parameters=[('UserId', 'text')])
    writer = open_writer(session, parameter_names=['userId'])
    assert writer.map_parameters({'userId': 'u1'}).values == {'UserId': 'u1'}


def test_unresolved_parameter_is_left_unset(make_session, caplog):
    session = make_session(parameters=[('userid', 'text'), ('name', 'text')])
    writer = open_writer(session)
    with caplog.at_level(logging.WARNING, logger='cqlbatch.writer'):
        bound = writer.map_parameters({'userId': 'u1', 'name': None})
    assert bound.values == {}
    assert 'Parameter userid not bound' in caplog.text
    assert 'Parameter name not bound' in caplog.text


def test_nan_binds_null(make_session):
    session = make_session(parameters=[('id', 'int'), ('score', 'double')])
    writer = open_writer(session)
    bound = writer.map_parameters({'id': np.int64(3), 'score': float('nan')})
    assert bound.values == {'id': 3, 'score': None}
    assert type(bound.values['id']) is int


def test_positional_items_are_truncated_and_padded(make_session):
    session = make_session(parameters=PARAMETERS)
    writer = open_writer(session, item_shape='sequence')
    assert writer.map_parameters([1, 'Ada', 'extra']).values == [1, 'Ada']
    assert writer.map_parameters(['2']).values == [2, None]


def test_object_items_bind_by_field_name(make_session):
    session = make_session(parameters=PARAMETERS)
    writer = open_writer(session, item_type=Customer)
    assert writer.map_parameters(Customer(1, 'Ada')).values == {'id': 1, 'name': 'Ada'}


def test_temporal_parameters(make_session):
    session = make_session(parameters=[('day', 'date'), ('at', 'timestamp')])
    writer = open_writer(session)
    bound = writer.map_parameters({'day': '2020-05-15', 'at': 1589500800001})
    assert bound.values == {'day': datetime.date(2020, 5, 15),
                            'at': datetime.datetime(2020, 5, 15, 0, 0, 0, 1000)}


def test_coercion_error_names_parameter(make_session):
    session = make_session(parameters=PARAMETERS)
    writer = open_writer(session)
    with pytest.raises(CoercionError, match="Parameter 'id'"):
        writer.map_parameters({'id': 'seven', 'name': 'Ada'})


def test_write_items_executes_one_batch(make_session):
    session = make_session(parameters=PARAMETERS)
    writer = open_writer(session, batch_type='unlogged')

    writer.write_items([{'id': 1, 'name': 'a'}, {'id': 2, 'name': 'b'}, {'id': 3, 'name': 'c'}])

    assert len(session.batches) == 1
    assert [s.values['id'] for s in session.batches[0]] == [1, 2, 3]
    assert writer.accumulator.batch.batch_type == BatchType.UNLOGGED
    assert writer.accumulator.pending == 0


def test_failed_batch_is_cleared(make_session):
    """Statements of a failed chunk never reach the next chunk"""
    session = make_session(parameters=PARAMETERS, fail_execute=RuntimeError('timeout'))
    writer = open_writer(session)

    with pytest.raises(RuntimeError):
        writer.write_items([{'id': 1, 'name': 'a'}, {'id': 2, 'name': 'b'}])
    assert writer.accumulator.pending == 0
    assert writer.accumulator.batch.statements == []

    session.fail_execute = None
    writer.write_items([{'id': 3, 'name': 'c'}])
    assert [s.values['id'] for s in session.batches[-1]] == [3]


def test_failed_item_clears_batch(make_session):
    session = make_session(parameters=PARAMETERS)
    writer = open_writer(session)

    with pytest.raises(CoercionError):
        writer.write_items([{'id': 1, 'name': 'a'}, {'id': 'x', 'name': 'b'}])

    assert session.batches == []
    assert writer.accumulator.pending == 0


def test_write_before_open(make_session):
    writer = CqlItemWriter(WriterOptions(cql=CQL), session=make_session(parameters=PARAMETERS))
    with pytest.raises(ReaderStateError):
        writer.write_items([{'id': 1}])


def test_checkpoint_info_is_none(make_session):
    writer = open_writer(make_session(parameters=PARAMETERS))
    assert writer.checkpoint_info() is None


def test_statement_prepared_once(make_session):
    session = make_session(parameters=PARAMETERS)
    writer = open_writer(session, consistency_level='LOCAL_QUORUM')
    writer.open(None)
    assert len(session.prepared) == 1
    assert session.prepared[0].query_string == CQL
    assert session.prepared[0].consistency_level is not None


def test_accumulator_flush_without_statements(make_session):
    session = make_session()
    accumulator = BatchAccumulator(session, 'logged', batch_factory=FakeBatch)
    assert accumulator.flush() is None
    assert session.batches == []


def test_accumulator_counter_batch(make_session):
    accumulator = BatchAccumulator(make_session(), 'counter', batch_factory=FakeBatch)
    accumulator.add('statement')
    assert accumulator.pending == 1
    assert accumulator.batch.batch_type == BatchType.COUNTER


if __name__ == '__main__':
    __import__('pytest').main([__file__])

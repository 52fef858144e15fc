"""
Fake driver objects for reader, writer and session tests.

Provides stand-ins for the cassandra-driver session, result set, prepared
statement, batch statement and cluster so no cluster is needed.

Usage:
    def test_read(make_session, make_result_set):
        rs = make_result_set(['id', 'name'], ['int', 'text'], [(1, 'a'), (2, 'b')])
        session = make_session(result_set=rs)
"""
from collections import namedtuple
from types import SimpleNamespace

import pytest


class FakeResultSet:
    """Iterable result with column metadata, counting fetched rows."""

    def __init__(self, column_names, column_types, rows):
        self.column_names = list(column_names)
        self.column_types = list(column_types)
        self.rows = list(rows)
        self.fetched = 0

    def __iter__(self):
        for row in self.rows:
            self.fetched += 1
            yield row

    def one(self):
        return self.rows[0] if self.rows else None


class FakePrepared:
    """Prepared statement recording bound values."""

    def __init__(self, cql, parameters):
        self.query_string = cql
        self.column_metadata = [SimpleNamespace(name=name, type=cql_type)
                                for name, cql_type in parameters]
        self.consistency_level = None

    def bind(self, values):
        return SimpleNamespace(prepared=self, values=values)


class FakeBatch:
    """Batch statement accepting any statement."""

    def __init__(self, batch_type=None, consistency_level=None):
        self.batch_type = batch_type
        self.consistency_level = consistency_level
        self.statements = []
        self.clear_count = 0

    def add(self, statement):
        self.statements.append(statement)

    def clear(self):
        self.statements = []
        self.clear_count += 1


class FakeSession:
    """Session executing statements against canned results."""

    def __init__(self, result_set=None, parameters=(), fail_execute=None, fail_shutdown=None):
        self.result_set = result_set
        self.parameters = list(parameters)
        self.fail_execute = fail_execute
        self.fail_shutdown = fail_shutdown
        self.executed = []
        self.batches = []
        self.prepared = []
        self.is_shutdown = False
        self.shutdown_count = 0

    def execute(self, statement):
        if isinstance(statement, FakeBatch):
            self.batches.append(list(statement.statements))
        else:
            self.executed.append(statement)
        if self.fail_execute is not None:
            raise self.fail_execute
        return self.result_set

    def prepare(self, cql):
        prepared = FakePrepared(cql, self.parameters)
        self.prepared.append(prepared)
        return prepared

    def shutdown(self):
        self.shutdown_count += 1
        if self.fail_shutdown is not None:
            raise self.fail_shutdown
        self.is_shutdown = True


class FakeCluster:
    """Cluster handing out one session and recording its construction."""

    def __init__(self, session=None, **kwargs):
        self.kwargs = kwargs
        self.session = session or FakeSession()
        self.keyspaces = []
        self.shutdown_count = 0

    def connect(self, keyspace=None):
        self.keyspaces.append(keyspace)
        return self.session

    def shutdown(self):
        self.shutdown_count += 1


Customer = namedtuple('Customer', ['id', 'name'])


@pytest.fixture
def make_result_set():
    """Factory for FakeResultSet objects."""
    return FakeResultSet


@pytest.fixture
def make_session():
    """Factory for FakeSession objects."""
    return FakeSession


@pytest.fixture
def numbered_rows():
    """Result set of ten (id, name) rows numbered 1..10."""
    rows = [Customer(i, f'name{i}') for i in range(1, 11)]
    return FakeResultSet(['id', 'name'], ['int', 'text'], rows)


@pytest.fixture
def cluster_factory():
    """Cluster factory recording every cluster it builds."""
    built = []

    def factory(**kwargs):
        cluster = FakeCluster(**kwargs)
        built.append(cluster)
        return cluster

    factory.built = built
    return factory

"""
Tests for the statement batchlet.
"""
from collections import namedtuple

import pytest
from cqlbatch.batchlet import CqlBatchlet
from cqlbatch.exceptions import ConfigurationError
from cqlbatch.options import CqlOptions

from tests.fixtures.fakes import FakeCluster, FakeResultSet, FakeSession

Version = namedtuple('Version', ['release_version'])
CQL = 'SELECT release_version FROM system.local'


def test_process_returns_first_row():
    rs = FakeResultSet(['release_version'], ['text'], [Version('4.1.3'), Version('4.1.4')])
    session = FakeSession(rs)
    batchlet = CqlBatchlet(CqlOptions(cql=CQL), session=session)
    assert batchlet.process() == "Version(release_version='4.1.3')"
    assert session.executed[0].query_string == CQL
    assert session.shutdown_count == 0


def test_process_without_rows():
    session = FakeSession(FakeResultSet([], [], []))
    assert CqlBatchlet(CqlOptions(cql='TRUNCATE t'), session=session).process() is None


def test_owned_session_released_on_failure():
    cluster = FakeCluster(session=FakeSession(fail_execute=RuntimeError('unavailable')))
    batchlet = CqlBatchlet(CqlOptions(cql=CQL), cluster_factory=lambda **kw: cluster)
    with pytest.raises(RuntimeError):
        batchlet.process()
    assert cluster.session.shutdown_count == 1
    assert cluster.shutdown_count == 1
    batchlet.stop()


def test_cql_is_required():
    with pytest.raises(ConfigurationError):
        CqlBatchlet(CqlOptions())


if __name__ == '__main__':
    __import__('pytest').main([__file__])

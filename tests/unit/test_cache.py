"""
Tests for the package cache.
"""
from cqlbatch.cache import Cache, cached_by_type


def test_cached_by_type_calls_once_per_type(mocker):
    build = mocker.Mock(side_effect=lambda cls: cls.__name__)
    build.__name__ = 'build'
    cached = cached_by_type('test_types')(build)

    assert cached(int) == 'int'
    assert cached(int) == 'int'
    assert cached(str) == 'str'
    assert build.call_count == 2


def test_clear_all_rebuilds_entries(mocker):
    build = mocker.Mock(side_effect=lambda cls: cls.__name__)
    build.__name__ = 'build'
    cached = cached_by_type('test_clear')(build)

    cached(int)
    Cache.get_instance().clear_all()
    cached(int)
    assert build.call_count == 2


def test_named_caches_are_shared():
    cache = Cache.get_instance().get_cache('test_shared', maxsize=4)
    assert Cache.get_instance().get_cache('test_shared') is cache
    assert cache.maxsize == 4


if __name__ == '__main__':
    __import__('pytest').main([__file__])

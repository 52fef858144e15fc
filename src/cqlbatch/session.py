"""
Session lifecycle management for CQL readers, writers and batchlets.

A ``SessionManager`` resolves the session used by one reader or writer:

1. an injected session is used as-is and never closed
2. an injected cluster is connected to the configured keyspace; the session
   is closed on release, the cluster is left running
3. otherwise a cluster is built from the options; both the session and the
   cluster are closed on release

Cluster properties are a case-insensitive table of named settings, e.g.
``protocolVersion=4, compression=lz4, loadBalancingPolicy=TokenAwarePolicy``.
Unknown names are logged and ignored.
"""
import logging
import re
import ssl
import threading
from collections.abc import Callable
from dataclasses import fields
from typing import Any

from cassandra import policies
from cassandra.auth import PlainTextAuthProvider
from cqlbatch.exceptions import ConfigurationError, SessionError
from cqlbatch.options import CqlOptions, parse_bool, parse_int

from libb import load_options

logger = logging.getLogger(__name__)

__all__ = [
    'SessionManager',
    'build_cluster',
    'parse_contact_points',
    'register_policy',
    'get_available_policies',
    'connect',
]

LOAD_BALANCING_POLICY = 'load_balancing_policy'
RETRY_POLICY = 'retry_policy'
RECONNECTION_POLICY = 'reconnection_policy'

_POLICY_REGISTRY: dict[str, tuple[str, Callable[[], Any]]] = {}


def _property_key(name: str) -> str:
    """Normalize a property name for case-insensitive lookup.

    >>> _property_key('Load_Balancing-Policy')
    'loadbalancingpolicy'
    """
    return re.sub(r'[\s_-]', '', name).lower()


def register_policy(name: str, kind: str):
    """Decorator to register a driver policy factory under a property value.

    Usage:
        @register_policy('MyRetryPolicy', RETRY_POLICY)
        class MyRetryPolicy(RetryPolicy):
            ...
    """
    def decorator(factory: Callable[[], Any]) -> Callable[[], Any]:
        _POLICY_REGISTRY[_property_key(name)] = (kind, factory)
        return factory
    return decorator


def get_available_policies(kind: str | None = None) -> list[str]:
    """Return the registered policy names, optionally of one kind."""
    return sorted(key for key, (k, _) in _POLICY_REGISTRY.items() if kind is None or k == kind)


for _cls in (policies.RoundRobinPolicy, policies.DCAwareRoundRobinPolicy):
    register_policy(_cls.__name__, LOAD_BALANCING_POLICY)(_cls)
for _cls in (policies.RetryPolicy, policies.FallthroughRetryPolicy):
    register_policy(_cls.__name__, RETRY_POLICY)(_cls)
del _cls


@register_policy('TokenAwarePolicy', LOAD_BALANCING_POLICY)
def _token_aware_policy():
    return policies.TokenAwarePolicy(policies.DCAwareRoundRobinPolicy())


@register_policy('ConstantReconnectionPolicy', RECONNECTION_POLICY)
def _constant_reconnection_policy():
    return policies.ConstantReconnectionPolicy(delay=1.0)


@register_policy('ExponentialReconnectionPolicy', RECONNECTION_POLICY)
def _exponential_reconnection_policy():
    return policies.ExponentialReconnectionPolicy(base_delay=1.0, max_delay=600.0)


# Cluster property parsers

def _policy_parser(kind: str) -> Callable[[str, Any], Any]:
    def parse(name: str, value: Any) -> Any:
        if not isinstance(value, str):
            return value
        entry = _POLICY_REGISTRY.get(_property_key(value))
        if entry is None or entry[0] != kind:
            raise ConfigurationError(f'Unknown {kind}: {value}. '
                                     f'Available: {get_available_policies(kind)}', name, value)
        return entry[1]()
    return parse


def _parse_float(name: str, value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f'{name} must be a number, got {value!r}', name, value) from None


def _parse_compression(name: str, value: Any) -> bool | str:
    lowered = str(value).strip().lower()
    if lowered in {'lz4', 'snappy'}:
        return lowered
    return parse_bool(name, value)


def _parse_ssl(name: str, value: Any) -> ssl.SSLContext | None:
    if isinstance(value, ssl.SSLContext):
        return value
    return ssl.create_default_context() if parse_bool(name, value) else None


def _parse_str(name: str, value: Any) -> str:
    return str(value).strip()


# normalized property name -> (Cluster keyword, parser)
_CLUSTER_PROPERTIES: dict[str, tuple[str, Callable[[str, Any], Any]]] = {
    'port': ('port', parse_int),
    'protocolversion': ('protocol_version', parse_int),
    'compression': ('compression', _parse_compression),
    'cqlversion': ('cql_version', _parse_str),
    'connecttimeout': ('connect_timeout', _parse_float),
    'controlconnectiontimeout': ('control_connection_timeout', _parse_float),
    'idleheartbeatinterval': ('idle_heartbeat_interval', _parse_float),
    'maxschemaagreementwait': ('max_schema_agreement_wait', _parse_float),
    'maxschemaagreementwaitseconds': ('max_schema_agreement_wait', _parse_float),
    'executorthreads': ('executor_threads', parse_int),
    'metrics': ('metrics_enabled', parse_bool),
    'metricsenabled': ('metrics_enabled', parse_bool),
    'schemametadataenabled': ('schema_metadata_enabled', parse_bool),
    'tokenmetadataenabled': ('token_metadata_enabled', parse_bool),
    'ssl': ('ssl_context', _parse_ssl),
    'loadbalancingpolicy': ('load_balancing_policy', _policy_parser(LOAD_BALANCING_POLICY)),
    'retrypolicy': ('default_retry_policy', _policy_parser(RETRY_POLICY)),
    'reconnectionpolicy': ('reconnection_policy', _policy_parser(RECONNECTION_POLICY)),
    }


def _parse_port(point: str, port: str) -> int:
    try:
        value = int(port)
    except ValueError:
        raise ConfigurationError(f'Invalid port in contact point {point!r}', 'contact_points', point) from None
    if not 0 < value < 65536:
        raise ConfigurationError(f'Port out of range in contact point {point!r}', 'contact_points', point)
    return value


def _split_host_port(point: str) -> tuple[str, int | None]:
    """Split a contact point into host and optional port.

    >>> _split_host_port('node1:9142')
    ('node1', 9142)
    >>> _split_host_port('[::1]:9042')
    ('::1', 9042)
    >>> _split_host_port('fe80::1')
    ('fe80::1', None)
    >>> _split_host_port('10.0.0.1')
    ('10.0.0.1', None)
    """
    point = point.strip()
    if point.startswith('['):
        host, sep, rest = point[1:].partition(']')
        if not sep or (rest and not rest.startswith(':')):
            raise ConfigurationError(f'Invalid contact point {point!r}', 'contact_points', point)
        return host, (_parse_port(point, rest[1:]) if rest else None)
    if point.count(':') == 1:
        host, _, port = point.partition(':')
        return host, _parse_port(point, port)
    return point, None


def parse_contact_points(points: list[str], default_port: int = 0) -> tuple[list[str], int]:
    """Parse contact points into hosts and the shared native protocol port.

    Args:
        points: ``host``, ``host:port`` or ``[ipv6]:port`` entries
        default_port: Port used when no contact point carries one (0 for the
            driver default)

    Returns
        Tuple of host list and port

    Raises
        ConfigurationError: if contact points name different ports, or a port
            that conflicts with the configured port
    """
    hosts, ports = [], set()
    for point in points:
        host, port = _split_host_port(point)
        if not host:
            raise ConfigurationError(f'Invalid contact point {point!r}', 'contact_points', point)
        hosts.append(host)
        if port is not None:
            ports.add(port)
    if len(ports) > 1:
        raise ConfigurationError(f'Contact points must share one port, got {sorted(ports)}',
                                 'contact_points', points)
    if not ports:
        return hosts, default_port
    port = ports.pop()
    if default_port and port != default_port:
        raise ConfigurationError(f'Contact point port {port} conflicts with port {default_port}',
                                 'port', default_port)
    return hosts, port


def _default_cluster_factory() -> Callable[..., Any]:
    from cassandra.cluster import Cluster
    return Cluster


def build_cluster(options: CqlOptions, cluster_factory: Callable[..., Any] | None = None) -> Any:
    """Build a cluster object from session options.

    Args:
        options: Session options
        cluster_factory: Callable accepting ``cassandra.cluster.Cluster``
            keyword arguments; defaults to ``Cluster``

    Returns
        Cluster instance, not yet connected
    """
    kwargs: dict[str, Any] = {}
    username, password = options.username, options.password
    port = options.port

    for name, value in options.cluster_properties.items():
        key = _property_key(name)
        if key == 'user':
            username = username or value
            continue
        if key == 'password':
            password = password or value
            continue
        if key not in _CLUSTER_PROPERTIES:
            logger.warning(f'Ignoring unknown cluster property: {name}')
            continue
        kwarg, parser = _CLUSTER_PROPERTIES[key]
        parsed = parser(name, value)
        if kwarg == 'port':
            port = port or parsed
        elif parsed is not None:
            kwargs[kwarg] = parsed

    hosts, port = parse_contact_points(options.contact_points, port)
    if hosts:
        kwargs['contact_points'] = hosts
    if port:
        kwargs['port'] = port
    if username:
        kwargs['auth_provider'] = PlainTextAuthProvider(username=username, password=password)

    factory = cluster_factory or _default_cluster_factory()
    logger.debug(f'Building cluster for {hosts or "default contact points"} '
                 f'with {sorted(k for k in kwargs if k != "auth_provider")}')
    return factory(**kwargs)


def _shutdown_quietly(session: Any) -> None:
    try:
        session.shutdown()
    except Exception as e:
        logger.warning(f'Failed to close session: {e}')


class SessionManager:
    """Owns the session of one reader, writer or batchlet.

    Usage:
        with SessionManager(options) as session:
            session.execute('SELECT release_version FROM system.local')
    """

    def __init__(self, options: CqlOptions, session: Any = None, cluster: Any = None,
                 cluster_factory: Callable[..., Any] | None = None) -> None:
        self.options = options
        self._session = session
        self._cluster = cluster
        self._cluster_factory = cluster_factory
        self._owns_session = session is None
        self._owns_cluster = session is None and cluster is None
        self._lock = threading.Lock()
        self._releases = 0

    @property
    def session(self) -> Any:
        """Current session, None when not acquired."""
        return self._session

    @property
    def owns_session(self) -> bool:
        """Whether release closes the session."""
        return self._owns_session

    def acquire(self) -> Any:
        """Return the session, connecting on first use.

        The lock is not held while connecting. A session whose connect raced
        with a release is closed and SessionError raised.
        """
        with self._lock:
            if self._session is not None:
                return self._session
            if self._cluster is None:
                self._cluster = build_cluster(self.options, self._cluster_factory)
                if self._cluster is None:
                    raise SessionError('Cluster factory returned no cluster')
            cluster, releases = self._cluster, self._releases

        keyspace = self.options.keyspace
        session = cluster.connect(keyspace) if keyspace else cluster.connect()

        with self._lock:
            if self._releases == releases and self._session is None:
                self._session = session
                logger.debug(f'Opened session to keyspace {keyspace!r}')
                return session
            current, released = self._session, self._releases != releases
        _shutdown_quietly(session)
        if released:
            raise SessionError('Session released while connecting')
        return current

    def release(self) -> None:
        """Close the owned session and cluster.

        Never raises: failures are logged. Safe to call repeatedly and before
        acquire.
        """
        with self._lock:
            self._releases += 1
            if self._owns_session and self._session is not None:
                session, self._session = self._session, None
                try:
                    if not getattr(session, 'is_shutdown', False):
                        session.shutdown()
                        logger.debug('Closed session')
                except Exception as e:
                    logger.warning(f'Failed to close session: {e}')
            if self._owns_cluster and self._cluster is not None:
                cluster, self._cluster = self._cluster, None
                try:
                    cluster.shutdown()
                    logger.debug('Shut down cluster')
                except Exception as e:
                    logger.warning(f'Failed to shut down cluster: {e}')

    def __enter__(self) -> Any:
        return self.acquire()

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.release()


@load_options(cls=CqlOptions)
def connect(options: CqlOptions | dict[str, Any] | str,
            config: Any | None = None, **kw: Any) -> SessionManager:
    """Open a session and return its manager.

    Args:
        options: Can be:
                - CqlOptions object
                - String path to configuration
                - Dictionary of options
                - Options specified as keyword arguments
        config: Configuration object (for loading from config files)
        **kw: Additional keyword arguments to override options

    Returns
        SessionManager holding an acquired session
    """
    if isinstance(options, CqlOptions):
        for field in fields(options):
            kw.pop(field.name, None)
    else:
        options_func = load_options(cls=CqlOptions)(lambda o, c: o)
        options = options_func(options, config, **kw)

    manager = SessionManager(options)
    manager.acquire()
    return manager


if __name__ == '__main__':
    __import__('doctest').testmod(optionflags=4 | 8 | 32)

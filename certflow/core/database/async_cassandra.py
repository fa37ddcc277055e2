"""Async Cassandra database connection using cassandra-asyncio-driver.

Provides:
- Async connection management
- Session with aexecute() for non-blocking queries
- Keyspace and table initialization (async)
- Translation of driver failures into PersistenceError

The cassandra-asyncio-driver extends the standard cassandra-driver
with `session.aexecute()` method for async/await support.
"""

import functools
from collections.abc import Awaitable, Callable
from typing import Any, ParamSpec, TypeVar

import structlog
from cassandra import (
    DriverException,
    OperationTimedOut,
    RequestExecutionException,
)
from cassandra.auth import PlainTextAuthProvider
from cassandra.cluster import NoHostAvailable
from cassandra.policies import DCAwareRoundRobinPolicy, TokenAwarePolicy
from cassandra_asyncio.cluster import Cluster

from certflow.config.settings import get_settings
from certflow.core.errors import PersistenceError


logger = structlog.get_logger(__name__)

P = ParamSpec("P")
T = TypeVar("T")

# Timeouts, unavailable replicas, LWT contention and connection loss
TRANSIENT_DRIVER_ERRORS = (
    RequestExecutionException,
    OperationTimedOut,
    NoHostAvailable,
    DriverException,
)


def translate_driver_errors(
    func: Callable[P, Awaitable[T]],
) -> Callable[P, Awaitable[T]]:
    """Re-raise Cassandra driver failures as PersistenceError."""

    @functools.wraps(func)
    async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
        try:
            return await func(*args, **kwargs)
        except TRANSIENT_DRIVER_ERRORS as e:
            logger.warning(
                "cassandra_operation_failed",
                operation=func.__qualname__,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise PersistenceError from e

    return wrapper


def was_applied(result: Any) -> bool:
    """Read the ``[applied]`` flag of a lightweight transaction result."""
    applied = getattr(result, "was_applied", None)
    if isinstance(applied, bool):
        return applied
    row = result.one()
    if row is None:
        return False
    if isinstance(row, dict):
        return bool(row.get("[applied]"))
    return bool(row[0])


class AsyncCassandraConnection:
    """Async Cassandra connection manager.

    Manages cluster connection and session lifecycle with async support.
    """

    _cluster: Cluster | None = None
    _session = None  # Session type from cassandra_asyncio

    @classmethod
    def connect(cls):
        """Establish connection to Cassandra cluster.

        Connection is synchronous, execute calls are async.

        Raises:
            ConnectionError: If connection fails
        """
        if cls._session is not None:
            return cls._session

        settings = get_settings()

        auth_provider = None
        if settings.cassandra_username and settings.cassandra_password:
            auth_provider = PlainTextAuthProvider(
                username=settings.cassandra_username,
                password=settings.cassandra_password,
            )

        cls._cluster = Cluster(
            contact_points=settings.cassandra_hosts,
            port=settings.cassandra_port,
            auth_provider=auth_provider,
            protocol_version=settings.cassandra_protocol_version,
            load_balancing_policy=TokenAwarePolicy(DCAwareRoundRobinPolicy()),
            connect_timeout=settings.cassandra_connect_timeout,
        )

        try:
            cls._session = cls._cluster.connect()
        except Exception as e:
            logger.error("async_cassandra_connection_failed", error=str(e))
            raise ConnectionError(f"Failed to connect to Cassandra: {e}") from e

        # Caller-side timeout for every query
        cls._session.default_timeout = settings.cassandra_request_timeout
        logger.info(
            "async_cassandra_connected",
            hosts=settings.cassandra_hosts,
            port=settings.cassandra_port,
            protocol_version=settings.cassandra_protocol_version,
        )
        return cls._session

    @classmethod
    def get_session(cls):
        """Get active session, connecting if necessary."""
        if cls._session is None:
            return cls.connect()
        return cls._session

    @classmethod
    def disconnect(cls) -> None:
        """Close connection to Cassandra."""
        if cls._session is not None:
            cls._session.shutdown()
            cls._session = None
            logger.info("async_cassandra_session_closed")

        if cls._cluster is not None:
            cls._cluster.shutdown()
            cls._cluster = None
            logger.info("async_cassandra_cluster_closed")

    @classmethod
    def is_connected(cls) -> bool:
        """Check if connection is active."""
        return cls._session is not None and not cls._session.is_shutdown


def get_async_cassandra_session():
    """Get async-capable Cassandra session (dependency injection helper)."""
    return AsyncCassandraConnection.get_session()


async def init_async_keyspace(session, keyspace: str) -> None:
    """Create keyspace if not exists (async)."""
    settings = get_settings()

    if settings.is_production:
        replication = """
            'class': 'NetworkTopologyStrategy',
            'datacenter1': 3
        """
    else:
        replication = """
            'class': 'SimpleStrategy',
            'replication_factor': 1
        """

    cql = f"""
        CREATE KEYSPACE IF NOT EXISTS {keyspace}
        WITH replication = {{{replication}}}
        AND durable_writes = true
    """

    await session.aexecute(cql)
    logger.info("async_keyspace_created", keyspace=keyspace)


def _all_tables_cql() -> dict[str, list[str]]:
    # Imported lazily: feature models import from core
    from certflow.assessments.models import ASSESSMENT_TABLES_CQL
    from certflow.certificates.models import CERTIFICATE_TABLES_CQL
    from certflow.courses.models import CONTENT_TABLES_CQL
    from certflow.enrollments.models import ENROLLMENT_TABLES_CQL
    from certflow.progress.models import PROGRESS_TABLES_CQL

    return {
        "content": CONTENT_TABLES_CQL,
        "enrollments": ENROLLMENT_TABLES_CQL,
        "progress": PROGRESS_TABLES_CQL,
        "assessments": ASSESSMENT_TABLES_CQL,
        "certificates": CERTIFICATE_TABLES_CQL,
    }


async def init_async_tables(session, keyspace: str) -> None:
    """Create all feature tables (async)."""
    for feature, statements in _all_tables_cql().items():
        for cql_template in statements:
            await session.aexecute(cql_template.format(keyspace=keyspace))
        logger.info("async_tables_created", feature=feature, keyspace=keyspace)


async def init_async_cassandra():
    """Initialize async Cassandra connection and schema.

    Returns:
        Configured Cassandra session with aexecute() support
    """
    settings = get_settings()

    session = AsyncCassandraConnection.connect()
    await init_async_keyspace(session, settings.cassandra_keyspace)
    session.set_keyspace(settings.cassandra_keyspace)
    await init_async_tables(session, settings.cassandra_keyspace)

    logger.info("async_cassandra_initialized", keyspace=settings.cassandra_keyspace)
    return session


async def shutdown_async_cassandra() -> None:
    """Shutdown async Cassandra connection."""
    AsyncCassandraConnection.disconnect()

"""Cassandra connection and schema bootstrap."""

from certflow.core.database.async_cassandra import (
    AsyncCassandraConnection,
    get_async_cassandra_session,
    init_async_cassandra,
    shutdown_async_cassandra,
    translate_driver_errors,
    was_applied,
)


__all__ = [
    "AsyncCassandraConnection",
    "get_async_cassandra_session",
    "init_async_cassandra",
    "shutdown_async_cassandra",
    "translate_driver_errors",
    "was_applied",
]

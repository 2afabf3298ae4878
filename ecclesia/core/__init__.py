# Core infrastructure
from ecclesia.core.context import (
    clear_context,
    get_context,
    get_request_id,
    get_trace_id,
    get_user_id,
    set_request_id,
    set_trace_id,
    set_user_id,
)
from ecclesia.core.database import init_async_cassandra, shutdown_async_cassandra
from ecclesia.core.errors import DomainError, ErrorKind, handle_domain_error
from ecclesia.core.logging import configure_structlog, get_logger
from ecclesia.core.middleware import RequestContextMiddleware


__all__ = [
    "DomainError",
    "ErrorKind",
    "RequestContextMiddleware",
    "clear_context",
    "configure_structlog",
    "get_context",
    "get_logger",
    "get_request_id",
    "get_trace_id",
    "get_user_id",
    "handle_domain_error",
    "init_async_cassandra",
    "set_request_id",
    "set_trace_id",
    "set_user_id",
    "shutdown_async_cassandra",
]

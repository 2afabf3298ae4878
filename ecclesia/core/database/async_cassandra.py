"""Cassandra session bootstrap on top of cassandra-asyncio-driver.

The driver's ``Session`` gains ``aexecute()``; every service awaits it
with statements prepared once per process. This module owns the single
cluster/session pair and creates the keyspace plus each feature's tables.
"""

import structlog
from cassandra.auth import PlainTextAuthProvider
from cassandra.policies import DCAwareRoundRobinPolicy, TokenAwarePolicy
from cassandra_asyncio.cluster import Cluster

from ecclesia.assignments.models import ASSIGNMENTS_TABLES_CQL
from ecclesia.batches.models import BATCHES_TABLES_CQL
from ecclesia.config.settings import Settings, get_settings
from ecclesia.curriculum.models import CURRICULUM_TABLES_CQL
from ecclesia.enrollments.models import ENROLLMENTS_TABLES_CQL
from ecclesia.organizations.models import ORGANIZATIONS_TABLES_CQL


logger = structlog.get_logger(__name__)

# Created in order; later features reference earlier ones only by id
FEATURE_TABLES_CQL: dict[str, list[str]] = {
    "organizations": ORGANIZATIONS_TABLES_CQL,
    "curriculum": CURRICULUM_TABLES_CQL,
    "batches": BATCHES_TABLES_CQL,
    "enrollments": ENROLLMENTS_TABLES_CQL,
    "assignments": ASSIGNMENTS_TABLES_CQL,
}


class AsyncCassandraConnection:
    """Process-wide holder for the cluster and its session."""

    _cluster: Cluster | None = None
    _session = None

    @classmethod
    def connect(cls, settings: Settings):
        """Open the session once; later calls return the same one.

        Raises:
            ConnectionError: If no contact point accepts the connection
        """
        if cls._session is not None:
            return cls._session

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
            logger.error(
                "cassandra_connection_failed",
                hosts=settings.cassandra_hosts,
                error=str(e),
            )
            cls._cluster.shutdown()
            cls._cluster = None
            raise ConnectionError(f"Failed to connect to Cassandra: {e}") from e

        cls._session.default_timeout = settings.cassandra_request_timeout
        logger.info(
            "cassandra_connected",
            hosts=settings.cassandra_hosts,
            port=settings.cassandra_port,
        )
        return cls._session

    @classmethod
    def disconnect(cls) -> None:
        if cls._session is not None:
            cls._session.shutdown()
            cls._session = None
        if cls._cluster is not None:
            cls._cluster.shutdown()
            cls._cluster = None
            logger.info("cassandra_disconnected")


def replication_options(settings: Settings) -> str:
    """Replication map for CREATE KEYSPACE.

    Production spreads replicas over the configured datacenter; every
    other environment runs on a single node.
    """
    if settings.is_production:
        return (
            "{'class': 'NetworkTopologyStrategy', "
            f"'{settings.cassandra_datacenter}': {settings.cassandra_replication_factor}}}"
        )
    return "{'class': 'SimpleStrategy', 'replication_factor': 1}"


async def create_schema(session, settings: Settings) -> None:
    """Create the keyspace and every feature's tables if missing."""
    keyspace = settings.cassandra_keyspace
    await session.aexecute(
        f"CREATE KEYSPACE IF NOT EXISTS {keyspace} "
        f"WITH replication = {replication_options(settings)} "
        "AND durable_writes = true"
    )
    session.set_keyspace(keyspace)

    for feature, tables_cql in FEATURE_TABLES_CQL.items():
        for cql_template in tables_cql:
            await session.aexecute(cql_template.format(keyspace=keyspace))
        logger.debug("feature_tables_ready", feature=feature, tables=len(tables_cql))


async def init_async_cassandra():
    """Connect and make sure the schema exists.

    Returns:
        Session with ``aexecute()`` bound to the configured keyspace
    """
    settings = get_settings()
    session = AsyncCassandraConnection.connect(settings)
    await create_schema(session, settings)

    logger.info(
        "cassandra_schema_ready",
        keyspace=settings.cassandra_keyspace,
        features=list(FEATURE_TABLES_CQL),
    )
    return session


async def shutdown_async_cassandra() -> None:
    AsyncCassandraConnection.disconnect()

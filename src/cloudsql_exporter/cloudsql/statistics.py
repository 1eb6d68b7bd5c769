"""Table statistics used to check restored data.

At backup time the statistics of every table (sizes and row count) are
written next to the dump as a YAML artifact.  After a restore the same
statistics are collected on the restored database and the row counts are
compared.

Statistics are read from ``pg_catalog`` right after an ``ANALYZE``, so the
row count is the planner's estimate (``pg_class.reltuples``), rounded.

Connections go through the Cloud SQL connector with the ``asyncpg`` driver
unless a direct host is configured (e.g. a local cloud-sql-proxy or a plain
PostgreSQL for development).

Usage:
    collector = CloudSQLStatisticsCollector(project="my-project", region="europe-west3")
    stats = await collector.collect("payment-service", "payments", "exporter", "secret")

    text = dump_statistics(stats)
    assert load_statistics(text) == stats
"""

import logging
from typing import Any

import yaml
from sqlalchemy import text
from sqlalchemy.engine import URL
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.pool import NullPool

from cloudsql_exporter.adapters.base import StatisticsSource, StorageClient
from cloudsql_exporter.backup.location import BackupLocation
from cloudsql_exporter.backup.models import RowCountMismatch, TableStatistic
from cloudsql_exporter.errors import (
    IntegrityValidationError,
    MissingTableStatisticError,
)

logger = logging.getLogger(__name__)

ANALYZE_SQL = "ANALYZE"

STATISTICS_SQL = """
    SELECT
        t.schemaname || '.' || t.tablename AS full_table_name,
        pg_table_size(c.oid) AS table_size_bytes,
        pg_relation_size(c.oid) AS table_size_bytes_without_indexes,
        pg_total_relation_size(c.oid) AS total_size_bytes,
        c.reltuples AS row_count
    FROM pg_catalog.pg_tables t
    JOIN pg_catalog.pg_namespace n
        ON n.nspname = t.schemaname
    JOIN pg_catalog.pg_class c
        ON c.relname = t.tablename
        AND c.relnamespace = n.oid
    WHERE t.schemaname NOT IN ('pg_catalog', 'information_schema')
    ORDER BY t.schemaname, t.tablename
"""


class CloudSQLStatisticsCollector:
    """Collects table statistics over a direct database connection.

    Args:
        project: GCP project of the instances.
        region: Region of the instances (part of the connection name).
        ip_type: Cloud SQL connector IP type (``PUBLIC``, ``PRIVATE``, ``PSC``).
        host: Connect to this host instead of using the Cloud SQL connector.
        port: Port used together with ``host``.

    Example:
        collector = CloudSQLStatisticsCollector("my-project", "europe-west3")
        stats = await collector.collect("my-instance", "orders", "postgres", "pw")
    """

    def __init__(
        self,
        project: str,
        region: str,
        ip_type: str = "PUBLIC",
        host: str | None = None,
        port: int = 5432,
    ) -> None:
        self._project = project
        self._region = region
        self._ip_type = ip_type
        self._host = host
        self._port = port

    def connection_name(self, instance: str) -> str:
        """Cloud SQL connection name ``project:region:instance``."""
        return f"{self._project}:{self._region}:{instance}"

    async def _create_engine(
        self, instance: str, database: str, user: str, password: str
    ) -> tuple[AsyncEngine, Any]:
        """Create a single-use engine and the connector backing it (if any)."""
        if self._host:
            url = URL.create(
                "postgresql+asyncpg",
                username=user,
                password=password,
                host=self._host,
                port=self._port,
                database=database,
            )
            return create_async_engine(url, poolclass=NullPool), None

        from google.cloud.sql.connector import create_async_connector

        connector = await create_async_connector()
        connection_name = self.connection_name(instance)

        async def _getconn():
            return await connector.connect_async(
                connection_name,
                "asyncpg",
                user=user,
                password=password,
                db=database,
                ip_type=self._ip_type,
            )

        engine = create_async_engine(
            "postgresql+asyncpg://", async_creator=_getconn, poolclass=NullPool
        )
        return engine, connector

    async def collect(
        self, instance: str, database: str, user: str, password: str
    ) -> dict[str, TableStatistic]:
        """Run ANALYZE and read per-table statistics of ``database``."""
        engine, connector = await self._create_engine(instance, database, user, password)
        try:
            async with engine.begin() as conn:
                await conn.execute(text(ANALYZE_SQL))
                result = await conn.execute(text(STATISTICS_SQL))
                rows = result.mappings().all()
        except Exception as e:
            logger.error(f"Failed to read statistics of {instance}/{database}: {e}")
            raise
        finally:
            await engine.dispose()
            if connector is not None:
                await connector.close_async()

        return rows_to_statistics(rows)


def rows_to_statistics(rows: list[Any]) -> dict[str, TableStatistic]:
    """Convert catalog query rows to statistics keyed by full table name."""
    stats: dict[str, TableStatistic] = {}
    for row in rows:
        stat = TableStatistic(
            full_table_name=row["full_table_name"],
            table_size_bytes=int(row["table_size_bytes"] or 0),
            table_size_bytes_without_indexes=int(
                row["table_size_bytes_without_indexes"] or 0
            ),
            total_size_bytes=int(row["total_size_bytes"] or 0),
            # reltuples is -1 for tables that were never analyzed
            row_count=max(0, round(float(row["row_count"] or 0))),
        )
        stats[stat.full_table_name] = stat
    return stats


# ============================================================================
# YAML artifact
# ============================================================================


def dump_statistics(stats: dict[str, TableStatistic]) -> str:
    """Serialize statistics to YAML (table name -> statistic fields)."""
    data = {name: stat.model_dump() for name, stat in stats.items()}
    return yaml.safe_dump(data, sort_keys=False)


def load_statistics(data: str) -> dict[str, TableStatistic]:
    """Parse a statistics YAML artifact.

    Raises:
        ValueError: If the document is not a mapping of table statistics.
    """
    loaded = yaml.safe_load(data) or {}
    if not isinstance(loaded, dict):
        raise ValueError("Statistics artifact is not a mapping")

    stats: dict[str, TableStatistic] = {}
    for name, values in loaded.items():
        if not isinstance(values, dict):
            raise ValueError(f"Invalid statistics entry for table '{name}'")
        stats[name] = TableStatistic.model_validate({"full_table_name": name, **values})
    return stats


async def export_statistics(
    storage: StorageClient,
    source: StatisticsSource,
    location: BackupLocation,
    databases: list[str],
    user: str,
    password: str,
) -> dict[str, TableStatistic]:
    """Collect and upload statistics of every database of a backup run.

    Returns:
        Statistics of all databases merged into one dict.
    """
    merged: dict[str, TableStatistic] = {}
    for database in databases:
        stats = await source.collect(location.instance, database, user, password)

        object_name = location.stats_location(database)
        logger.info(f"Exporting statistics for {location.instance}/{database} to {object_name}")
        await storage.write_text(
            location.bucket,
            object_name,
            dump_statistics(stats),
            content_type="application/yaml",
        )
        merged.update(stats)
    return merged


# ============================================================================
# Comparison
# ============================================================================


def compare_statistics(
    backup: dict[str, TableStatistic],
    restored: dict[str, TableStatistic],
) -> list[RowCountMismatch]:
    """Compare row counts of every backed-up table with the restored ones.

    Returns:
        All mismatches, in backup order.  Empty when everything matches.

    Raises:
        MissingTableStatisticError: If a backed-up table is missing after
            restore.
    """
    mismatches: list[RowCountMismatch] = []
    for name, expected in backup.items():
        actual = restored.get(name)
        if actual is None:
            logger.error(f"Statistics not found for table {name}")
            raise MissingTableStatisticError(name)
        if actual.row_count != expected.row_count:
            logger.error(
                f"Row count mismatch for {name}: "
                f"backup {expected.row_count}, restored {actual.row_count}"
            )
            mismatches.append(
                RowCountMismatch(
                    table=name,
                    expected=expected.row_count,
                    actual=actual.row_count,
                )
            )
    return mismatches


def validate_statistics(
    backup: dict[str, TableStatistic],
    restored: dict[str, TableStatistic],
) -> None:
    """Raise ``IntegrityValidationError`` listing every row count mismatch."""
    mismatches = compare_statistics(backup, restored)
    if mismatches:
        raise IntegrityValidationError(mismatches)

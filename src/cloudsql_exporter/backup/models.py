"""Models for backup artifacts and restore results.

``TableStatistic`` is written to the statistics artifact at backup time
and read back at restore time to check the restored row counts.

Usage:
    from cloudsql_exporter.backup.models import TableStatistic, RestoreResult

    stat = TableStatistic(
        full_table_name="public.orders",
        table_size_bytes=8192,
        table_size_bytes_without_indexes=8192,
        total_size_bytes=16384,
        row_count=100,
    )
"""

from pydantic import BaseModel, SecretStr


class TableStatistic(BaseModel):
    """Size and row-count statistics of one table."""

    full_table_name: str                    # "schema.table"
    table_size_bytes: int = 0               # pg_table_size
    table_size_bytes_without_indexes: int = 0   # pg_relation_size
    total_size_bytes: int = 0               # pg_total_relation_size
    row_count: int = 0                      # planner estimate after ANALYZE


class RowCountMismatch(BaseModel):
    """A table whose restored row count differs from the backup."""

    table: str
    expected: int       # row count recorded at backup time
    actual: int         # row count measured after restore


class RestoreResult(BaseModel):
    """Outcome of a restore run.

    The root password is kept as ``SecretStr`` so it never shows up in
    reprs or logs by accident.
    """

    instance: str
    database: str
    root_password: SecretStr
    secret_id: str | None = None    # Secret Manager id holding the root password
    validated: bool = False         # statistics artifact found and compared
    tables_checked: int = 0
    cleaned_up: bool = False

"""Canonical object-storage locations for backup artifacts.

Every backup run of an instance writes three kinds of artifacts that share
one path prefix and one timestamp token::

    gs://{bucket}/{instance}/cloudsql/{database}-{timestamp}.sql[.gz]   # dump
    {instance}/cloudsql/users-{timestamp}.txt                           # user list
    {instance}/cloudsql/stats-{database}-{timestamp}.yaml               # statistics

The dump address is a full URI because the Cloud SQL export/import API
takes one.  The user list and statistics addresses are object names inside
the bucket, because they are read and written through the storage client.

Usage:
    from cloudsql_exporter.backup.location import BackupLocation

    loc = BackupLocation.create("my-bucket", "payment-service", compression=True)
    uri = loc.database_location("payment-events")

    parsed = BackupLocation.parse(uri)
    parsed.database           # "payment-events"
    parsed.stats_location()   # "payment-service/cloudsql/stats-payment-events-<ts>.yaml"
"""

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict

from cloudsql_exporter.errors import InvalidLocationError

TIMESTAMP_FORMAT = "%Y%m%dT%H%M%S"
ARTIFACT_DIR = "cloudsql"


def new_timestamp(now: datetime | None = None) -> str:
    """Return a timestamp token for a backup run (UTC)."""
    now = now or datetime.now(timezone.utc)
    return now.strftime(TIMESTAMP_FORMAT)


class BackupLocation(BaseModel):
    """Metadata that addresses all artifacts of one backup run.

    ``database`` is only set on locations obtained from :meth:`parse`;
    locations created for a backup run address every database of the
    instance.
    """

    model_config = ConfigDict(frozen=True)

    bucket: str
    instance: str
    path: str                       # object prefix, e.g. "payment-service/cloudsql/"
    timestamp: str
    compression: bool = False
    database: str | None = None

    @classmethod
    def create(
        cls,
        bucket: str,
        instance: str,
        timestamp: str | None = None,
        compression: bool = False,
    ) -> "BackupLocation":
        """Build the location of a new backup run of ``instance``."""
        return cls(
            bucket=bucket,
            instance=instance,
            path=f"{instance}/{ARTIFACT_DIR}/",
            timestamp=timestamp or new_timestamp(),
            compression=compression,
        )

    def database_location(self, database: str) -> str:
        """Full URI of the SQL dump of ``database``."""
        extension = "sql.gz" if self.compression else "sql"
        return (
            f"gs://{self.bucket}/{self.instance}/{ARTIFACT_DIR}/"
            f"{database}-{self.timestamp}.{extension}"
        )

    def user_location(self) -> str:
        """Object name of the user list."""
        return f"{self.path}users-{self.timestamp}.txt"

    def stats_location(self, database: str | None = None) -> str:
        """Object name of the table statistics of ``database``.

        Defaults to the database of a parsed location.
        """
        database = database or self.database
        if not database:
            raise ValueError("stats_location() needs a database name")
        return f"{self.path}stats-{database}-{self.timestamp}.yaml"

    @classmethod
    def parse(cls, location: str) -> "BackupLocation":
        """Parse a dump URI back into its location metadata.

        Accepts ``scheme://bucket/instance/.../database-timestamp.ext[.ext2]``.
        Hyphens inside the database name are preserved: only the last
        hyphen-delimited token of the file name is the timestamp.

        Raises:
            InvalidLocationError: If a required part is missing.
        """
        scheme, sep, remainder = location.partition("://")
        if not sep or not scheme:
            raise InvalidLocationError(location, "missing scheme")

        segments = [s for s in remainder.split("/") if s]
        if len(segments) < 3:
            raise InvalidLocationError(
                location, "expected bucket, instance and file name"
            )

        bucket = segments[0]
        instance = segments[1]
        file_name = segments[-1]
        path = "/".join(segments[1:-1]) + "/"

        tokens = file_name.split("-")
        if len(tokens) < 2:
            raise InvalidLocationError(
                location, "file name has no '<database>-<timestamp>' form"
            )
        database = "-".join(tokens[:-1])

        timestamp, dot, extension = tokens[-1].partition(".")
        if not dot or not extension:
            raise InvalidLocationError(location, "file name has no extension")
        if not database or not timestamp:
            raise InvalidLocationError(location, "empty database or timestamp")

        return cls(
            bucket=bucket,
            instance=instance,
            path=path,
            timestamp=timestamp,
            compression=file_name.endswith(".gz"),
            database=database,
        )

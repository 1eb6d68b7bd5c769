"""Tests for backup artifact locations."""

from datetime import datetime, timezone

import pytest

from cloudsql_exporter.backup.location import (
    TIMESTAMP_FORMAT,
    BackupLocation,
    new_timestamp,
)
from cloudsql_exporter.errors import ConfigurationError, InvalidLocationError


class TestCreate:
    """BackupLocation.create and derived addresses."""

    def test_path_is_instance_prefix(self):
        loc = BackupLocation.create("bkt", "payment-service", timestamp="20240601T101500")
        assert loc.path == "payment-service/cloudsql/"
        assert loc.database is None

    def test_database_location(self):
        loc = BackupLocation.create("bkt", "svc", timestamp="20240601T101500")
        assert loc.database_location("orders") == (
            "gs://bkt/svc/cloudsql/orders-20240601T101500.sql"
        )

    def test_database_location_compressed(self):
        loc = BackupLocation.create(
            "bkt", "svc", timestamp="20240601T101500", compression=True
        )
        assert loc.database_location("orders").endswith("orders-20240601T101500.sql.gz")

    def test_user_location(self):
        loc = BackupLocation.create("bkt", "svc", timestamp="20240601T101500")
        assert loc.user_location() == "svc/cloudsql/users-20240601T101500.txt"

    def test_stats_location(self):
        loc = BackupLocation.create("bkt", "svc", timestamp="20240601T101500")
        assert loc.stats_location("orders") == (
            "svc/cloudsql/stats-orders-20240601T101500.yaml"
        )

    def test_stats_location_needs_database(self):
        loc = BackupLocation.create("bkt", "svc", timestamp="20240601T101500")
        with pytest.raises(ValueError):
            loc.stats_location()

    def test_generated_timestamp_format(self):
        loc = BackupLocation.create("bkt", "svc")
        datetime.strptime(loc.timestamp, TIMESTAMP_FORMAT)

    def test_new_timestamp_is_utc(self):
        now = datetime(2024, 6, 1, 10, 15, 0, tzinfo=timezone.utc)
        assert new_timestamp(now) == "20240601T101500"

    def test_frozen(self):
        loc = BackupLocation.create("bkt", "svc")
        with pytest.raises(Exception):
            loc.bucket = "other"


class TestParse:
    """BackupLocation.parse."""

    def test_hyphenated_database(self):
        loc = BackupLocation.parse(
            "gs://b/payment-service/cloudsql/payment-events-20240601T101500.sql.gz"
        )
        assert loc.bucket == "b"
        assert loc.instance == "payment-service"
        assert loc.path == "payment-service/cloudsql/"
        assert loc.database == "payment-events"
        assert loc.timestamp == "20240601T101500"
        assert loc.compression is True

    def test_uncompressed(self):
        loc = BackupLocation.parse("gs://b/svc/cloudsql/orders-20240601T101500.sql")
        assert loc.compression is False
        assert loc.database == "orders"

    @pytest.mark.parametrize("database", ["orders", "payment-events", "a-b-c"])
    @pytest.mark.parametrize("compression", [False, True])
    def test_round_trip(self, database, compression):
        loc = BackupLocation.create(
            "bkt", "my-instance", timestamp="20240601T101500", compression=compression
        )
        parsed = BackupLocation.parse(loc.database_location(database))
        assert parsed == loc.model_copy(update={"database": database})

    def test_parsed_stats_location_defaults_to_database(self):
        loc = BackupLocation.parse("gs://b/svc/cloudsql/orders-20240601T101500.sql")
        assert loc.stats_location() == "svc/cloudsql/stats-orders-20240601T101500.yaml"
        assert loc.user_location() == "svc/cloudsql/users-20240601T101500.txt"

    @pytest.mark.parametrize(
        "location",
        [
            "b/svc/cloudsql/orders-20240601T101500.sql",     # no scheme
            "gs://b/orders-20240601T101500.sql",             # no instance
            "gs://b/svc/cloudsql/orders.sql",                # no hyphen
            "gs://b/svc/cloudsql/orders-20240601T101500",    # no extension
            "gs://b/svc/cloudsql/-20240601T101500.sql",      # empty database
            "gs://b/svc/cloudsql/orders-.sql",               # empty timestamp
        ],
    )
    def test_malformed(self, location):
        with pytest.raises(InvalidLocationError) as exc_info:
            BackupLocation.parse(location)
        assert exc_info.value.location == location

    def test_invalid_location_is_configuration_error(self):
        with pytest.raises(ConfigurationError):
            BackupLocation.parse("not a location")

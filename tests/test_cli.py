"""Tests for the cloudsql-exporter CLI."""

from unittest.mock import patch

import pytest

from cloudsql_exporter.cli import build_parser, main
from cloudsql_exporter.cli.commands import (
    backup_options_from_args,
    restore_options_from_args,
)
from cloudsql_exporter.errors import OperationFailedError

DUMP = "gs://bkt/svc/cloudsql/payment-events-20240601T101500.sql.gz"


class TestParser:
    """Argument parsing."""

    def test_backup_flags(self):
        args = build_parser().parse_args([
            "backup", "--bucket", "bkt", "--project", "p", "--instance", "svc",
            "--compression", "--ensure-iam-bindings-temp", "--validate",
        ])
        options = backup_options_from_args(args)

        assert options.instance == "svc"
        assert options.compression is True
        assert options.ensure_iam_bindings_temp is True
        assert options.ensure_iam_bindings is False
        assert options.validate_restore is True

    def test_backup_password_from_env(self, monkeypatch):
        monkeypatch.setenv("APP_CLOUDSQL_PASSWORD", "from-env")
        args = build_parser().parse_args([
            "--env-prefix", "APP_",
            "backup", "--bucket", "bkt", "--project", "p",
            "--stats", "--user", "exporter",
        ])
        options = backup_options_from_args(args)

        assert options.export_stats is True
        assert options.password.get_secret_value() == "from-env"

    def test_restore_flags(self):
        args = build_parser().parse_args([
            "restore", "--bucket", "bkt", "--project", "p", "--instance", "svc",
            "--file", DUMP, "--user", "app", "--store-secret", "--cleanup",
        ])
        options = restore_options_from_args(args)

        assert options.file == DUMP
        assert options.user == "app"
        assert options.store_secret is True
        assert options.cleanup is True

    def test_command_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])


class TestLocate:
    """locate command (local only)."""

    def test_prints_derived_locations(self, capsys):
        assert main(["locate", DUMP]) == 0
        out = capsys.readouterr().out
        assert "payment-events" in out
        assert "20240601T101500" in out

    def test_invalid_reference(self):
        assert main(["locate", "not-a-location"]) == 1


class TestRemoteCommands:
    """backup/restore with the service factory patched out."""

    def test_backup_success(self, services, sqladmin, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        sqladmin.add_instance("svc", databases=["orders"])

        with patch(
            "cloudsql_exporter.cli.commands.create_services", return_value=services
        ) as factory:
            code = main(["backup", "--bucket", "bkt", "--project", "test-project"])

        assert code == 0
        assert factory.call_args.args[0] == "test-project"
        assert len(sqladmin.exports) == 1

    def test_backup_failure_exit_code(self, services, sqladmin, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        sqladmin.add_instance("svc", databases=["orders"])
        sqladmin.failures["EXPORT"] = ["boom"]

        with patch("cloudsql_exporter.cli.commands.create_services", return_value=services):
            code = main(["backup", "--bucket", "bkt", "--project", "test-project"])

        assert code == 1

    def test_backup_stats_without_password_is_config_error(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        monkeypatch.delenv("CLOUDSQL_PASSWORD", raising=False)

        with patch("cloudsql_exporter.cli.commands.create_services") as factory:
            code = main([
                "backup", "--bucket", "bkt", "--project", "p", "--stats", "--user", "u",
            ])

        assert code == 1
        factory.assert_not_called()

    def test_restore_success(self, services, storage, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        storage.objects[("bkt", "svc/cloudsql/users-20240601T101500.txt")] = ""

        with patch("cloudsql_exporter.cli.commands.create_services", return_value=services):
            code = main([
                "restore", "--bucket", "bkt", "--project", "test-project",
                "--instance", "svc", "--file", DUMP, "--cleanup",
            ])

        assert code == 0

    def test_restore_remote_error(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)

        with patch(
            "cloudsql_exporter.cli.commands.restore_instance",
            side_effect=OperationFailedError("op-1", ["import failed"]),
        ), patch("cloudsql_exporter.cli.commands.create_services"):
            code = main([
                "restore", "--bucket", "bkt", "--project", "p",
                "--instance", "svc", "--file", DUMP,
            ])

        assert code == 1

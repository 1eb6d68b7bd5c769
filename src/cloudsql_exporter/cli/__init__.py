"""CLI for backing up and restoring Cloud SQL databases.

Usage:
    cloudsql-exporter backup --bucket my-bucket --project my-project --compression
    cloudsql-exporter backup --bucket my-bucket --project my-project \\
        --instance payment-service --stats --user exporter --ensure-iam-bindings-temp
    cloudsql-exporter restore --bucket my-bucket --project my-project \\
        --instance payment-service --store-secret --cleanup \\
        --file gs://my-bucket/payment-service/cloudsql/payments-20240601T101500.sql.gz
    cloudsql-exporter locate gs://my-bucket/payment-service/cloudsql/payments-20240601T101500.sql

Commands:
    backup   - Export databases to SQL dumps in a bucket
    restore  - Restore a dump into a restore instance and check row counts
    locate   - Show the artifact locations of a dump (no remote calls)
"""

import argparse
import logging
import sys

from rich.logging import RichHandler

from cloudsql_exporter.cli.commands import cmd_backup, cmd_locate, cmd_restore


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
        force=True,
    )
    # Discovery client and connector are chatty at DEBUG
    logging.getLogger("googleapiclient").setLevel(logging.WARNING)
    logging.getLogger("google").setLevel(logging.WARNING)


def build_parser() -> argparse.ArgumentParser:
    """Argument parser of the ``cloudsql-exporter`` program."""
    parser = argparse.ArgumentParser(
        prog="cloudsql-exporter",
        description="Back up and restore Google Cloud SQL databases",
    )

    # Global options
    parser.add_argument(
        "--config",
        default=None,
        help="Path to a TOML config file (default: ./cloudsql-exporter.toml)",
    )
    parser.add_argument(
        "--env-prefix",
        default="",
        help=(
            "Prefix for environment variable lookup "
            "(e.g., --env-prefix APP_ reads APP_CLOUDSQL_PASSWORD)"
        ),
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    # backup command
    p_backup = subparsers.add_parser(
        "backup",
        help="Export databases to SQL dumps in a bucket",
    )
    p_backup.add_argument("--bucket", required=True, help="Destination bucket name")
    p_backup.add_argument("--project", required=True, help="GCP project ID")
    p_backup.add_argument(
        "--instance",
        default=None,
        help="Only back up this instance (default: every instance of the project)",
    )
    p_backup.add_argument("--user", default=None, help="Database user for --stats")
    p_backup.add_argument(
        "--password",
        default=None,
        help="Password of --user (or set CLOUDSQL_PASSWORD)",
    )
    p_backup.add_argument(
        "--stats",
        action="store_true",
        help="Export table statistics next to each dump",
    )
    p_backup.add_argument(
        "--compression",
        action="store_true",
        help="Write gzip-compressed dumps (.sql.gz)",
    )
    p_backup.add_argument(
        "--ensure-iam-bindings",
        action="store_true",
        help="Grant the instance service account write access to the bucket",
    )
    p_backup.add_argument(
        "--ensure-iam-bindings-temp",
        action="store_true",
        help="Like --ensure-iam-bindings, but revoke the roles after the export",
    )
    p_backup.add_argument(
        "--validate",
        action="store_true",
        help="Restore every dump into a temporary instance after export",
    )
    p_backup.set_defaults(func=cmd_backup)

    # restore command
    p_restore = subparsers.add_parser(
        "restore",
        help="Restore a dump into a restore instance",
    )
    p_restore.add_argument("--bucket", required=True, help="Bucket holding the dump")
    p_restore.add_argument("--project", required=True, help="GCP project ID")
    p_restore.add_argument("--instance", required=True, help="Source instance name")
    p_restore.add_argument(
        "--file",
        required=True,
        help="Dump URI (gs://bucket/instance/cloudsql/database-timestamp.sql[.gz])",
    )
    p_restore.add_argument("--user", default=None, help="User that runs the import")
    p_restore.add_argument(
        "--store-secret",
        action="store_true",
        help="Store the generated root password in Secret Manager",
    )
    p_restore.add_argument(
        "--cleanup",
        action="store_true",
        help="Delete the restore instance when done",
    )
    p_restore.set_defaults(func=cmd_restore)

    # locate command
    p_locate = subparsers.add_parser(
        "locate",
        help="Show the artifact locations of a dump",
    )
    p_locate.add_argument("file", help="Dump URI")
    p_locate.set_defaults(func=cmd_locate)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point.

    Parses command line arguments and dispatches to appropriate handler.

    Returns:
        Exit code (0 for success, non-zero for errors).
    """
    args = build_parser().parse_args(argv)
    _configure_logging(args.verbose)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())

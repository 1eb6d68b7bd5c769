"""Pydantic models for exporter configuration and run options."""

from pydantic import BaseModel, Field, SecretStr, model_validator


# ============================================================================
# Configuration Models
# ============================================================================


class ExporterConfig(BaseModel):
    """Settings shared by backup and restore runs (``[exporter]`` in TOML)."""

    region: str = "europe-west3"
    tier: str = "db-f1-micro"                   # restore instance machine tier
    database_version: str = "POSTGRES_13"       # restore instance engine version
    restore_prefix: str = "restore-"            # restore instance = prefix + source
    password_length: int = Field(default=24, ge=4)
    # Root user of restore instances; it logs in with the generated root password
    stats_user: str = "postgres"

    export_poll_interval: float = Field(default=60.0, ge=0)     # export/import/instance
    provision_poll_interval: float = Field(default=10.0, ge=0)  # database/user create
    operation_timeout: float | None = Field(default=6 * 3600, gt=0)  # whole run, None = no deadline

    ip_type: str = "PUBLIC"                     # Cloud SQL connector IP type
    statistics_host: str | None = None          # bypass the connector (e.g. cloud-sql-proxy)
    statistics_port: int = 5432


# ============================================================================
# Run Options
# ============================================================================


class BackupOptions(BaseModel):
    """Options of one backup run."""

    bucket: str = Field(min_length=1)
    project: str = Field(min_length=1)
    instance: str | None = None         # None = every instance of the project
    user: str | None = None             # database user for statistics export
    password: SecretStr | None = None

    export_stats: bool = False
    compression: bool = False
    ensure_iam_bindings: bool = False
    ensure_iam_bindings_temp: bool = False
    validate_restore: bool = False      # restore every dump right after export

    @model_validator(mode="after")
    def _stats_need_credentials(self) -> "BackupOptions":
        if self.export_stats and (not self.user or self.password is None):
            raise ValueError("export_stats requires user and password")
        return self


class RestoreOptions(BaseModel):
    """Options of one restore run."""

    bucket: str = Field(min_length=1)
    project: str = Field(min_length=1)
    instance: str = Field(min_length=1)     # source instance name
    file: str = Field(min_length=1)         # gs:// URI of the SQL dump
    user: str | None = None                 # import user
    store_secret: bool = False              # persist generated root password
    cleanup: bool = False                   # delete the restore instance afterwards

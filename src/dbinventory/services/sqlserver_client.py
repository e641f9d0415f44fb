"""
SQL Server inventory source using sqlcmd.

Connects to an instance, reads database metadata from sys.databases and
backup history from msdb, and maps the results onto inventory models.
"""

import logging
import os
import subprocess
from datetime import datetime
from typing import Optional

from ..config import Settings, get_settings
from ..exceptions import DatabaseConnectionError, HistoryLookupError
from ..models import (
    BackupHistoryRecord,
    BackupSetInfo,
    BackupType,
    DatabaseRecord,
    DatabaseStatus,
    RecoveryModel,
    ServerHandle,
    SqlCredential,
)
from .inventory_source import InventorySource

logger = logging.getLogger(__name__)

# ASCII unit separator; cannot appear in object names or ISO dates
FIELD_SEPARATOR = "\x1f"
NULL = "NULL"
# sqlcmd wraps lines at 80 characters unless told otherwise
MAX_LINE_WIDTH = 65535

STATE_TO_STATUS = {
    "ONLINE": DatabaseStatus.NORMAL,
    "OFFLINE": DatabaseStatus.OFFLINE,
    "RECOVERING": DatabaseStatus.RECOVERING,
    "RECOVERY_PENDING": DatabaseStatus.RECOVERING,
    "RESTORING": DatabaseStatus.RESTORING,
    "SUSPECT": DatabaseStatus.SUSPECT,
    "EMERGENCY": DatabaseStatus.EMERGENCY_MODE,
}

RECOVERY_MODELS = {
    "FULL": RecoveryModel.FULL,
    "SIMPLE": RecoveryModel.SIMPLE,
    "BULK_LOGGED": RecoveryModel.BULK_LOGGED,
}

SERVER_IDENTITY_QUERY = """SET NOCOUNT ON;
SELECT CAST(@@SERVERNAME AS nvarchar(256)),
       CAST(SERVERPROPERTY('MachineName') AS nvarchar(256)),
       CAST(ISNULL(SERVERPROPERTY('InstanceName'), 'MSSQLSERVER') AS nvarchar(256)),
       CAST(SERVERPROPERTY('ProductVersion') AS nvarchar(128));"""

DATABASES_QUERY = """SET NOCOUNT ON;
SELECT d.name,
       CASE WHEN d.database_id <= 4 THEN 1 ELSE 0 END,
       d.state_desc,
       CAST(d.is_in_standby AS int),
       d.recovery_model_desc,
       CAST(d.is_read_only AS int),
       CAST(d.is_encrypted AS int),
       SUSER_SNAME(d.owner_sid),
       CASE WHEN d.state = 0 AND HAS_DBACCESS(d.name) = 1 THEN 1 ELSE 0 END,
       CAST(ISNULL((SELECT SUM(CAST(mf.size AS bigint)) FROM sys.master_files mf
                    WHERE mf.database_id = d.database_id), 0) * 8 / 1024.0 AS decimal(18, 2)),
       d.compatibility_level,
       d.collation_name,
       CONVERT(varchar(33), (SELECT MAX(b.backup_finish_date) FROM msdb.dbo.backupset b
                             WHERE b.database_name = d.name AND b.type = 'D'), 126),
       CONVERT(varchar(33), (SELECT MAX(b.backup_finish_date) FROM msdb.dbo.backupset b
                             WHERE b.database_name = d.name AND b.type = 'I'), 126),
       CONVERT(varchar(33), (SELECT MAX(b.backup_finish_date) FROM msdb.dbo.backupset b
                             WHERE b.database_name = d.name AND b.type = 'L'), 126)
FROM sys.databases d
ORDER BY d.name;"""

BACKUP_SETS_QUERY = """SET NOCOUNT ON;
SELECT b.database_name,
       b.type,
       CONVERT(varchar(33), b.backup_finish_date, 126),
       CAST(b.is_copy_only AS int)
FROM msdb.dbo.backupset b
WHERE b.database_name IN (SELECT name FROM sys.databases)
ORDER BY b.database_name, b.backup_finish_date;"""

LAST_USED_QUERY = """SET NOCOUNT ON;
SELECT DB_NAME(s.database_id),
       CONVERT(varchar(33), MAX(v.last_read), 126),
       CONVERT(varchar(33), MAX(s.last_user_update), 126)
FROM sys.dm_db_index_usage_stats s
CROSS APPLY (VALUES (s.last_user_seek), (s.last_user_scan), (s.last_user_lookup)) AS v(last_read)
WHERE DB_NAME(s.database_id) IS NOT NULL
GROUP BY s.database_id;"""


def _value(raw: str) -> Optional[str]:
    return None if raw == NULL else raw


def _parse_datetime(raw: str) -> Optional[datetime]:
    value = _value(raw)
    if not value:
        return None
    return datetime.fromisoformat(value)


def _parse_flag(raw: str) -> bool:
    return raw.strip() == "1"


def build_last_backups_query(
    backup_type: BackupType,
    ignore_copy_only: bool = True,
    since: Optional[datetime] = None,
) -> str:
    """Query returning each database's most recent backup of a type."""
    conditions = [f"b.type = '{backup_type.code}'"]
    if ignore_copy_only:
        conditions.append("b.is_copy_only = 0")
    if since is not None:
        since_text = since.replace(tzinfo=None).strftime("%Y-%m-%dT%H:%M:%S")
        conditions.append(f"b.backup_finish_date >= '{since_text}'")

    return (
        "SET NOCOUNT ON;\n"
        "SELECT b.database_name, "
        "CONVERT(varchar(33), MAX(b.backup_finish_date), 126), "
        "CAST(MIN(CAST(b.is_copy_only AS int)) AS int)\n"
        "FROM msdb.dbo.backupset b\n"
        f"WHERE {' AND '.join(conditions)}\n"
        "GROUP BY b.database_name;"
    )


def resolve_sqlcmd(settings: Settings) -> str:
    """
    Locate the sqlcmd binary.

    An explicit ``sqlcmd_path`` wins. Otherwise the copy bundled with the
    Function App under ``tools_bin_path`` is used when present and executable,
    falling back to ``sqlcmd`` on the system PATH.
    """
    if settings.sqlcmd_path:
        return settings.sqlcmd_path

    bundled = os.path.join(settings.tools_bin_path, "sqlcmd")
    if os.path.isfile(bundled) and os.access(bundled, os.X_OK):
        logger.debug(f"Using bundled sqlcmd: {bundled}")
        return bundled

    return "sqlcmd"


class SqlServerClient(InventorySource):
    """
    Inventory source for SQL Server instances.

    Runs queries with the sqlcmd client and parses its separator-delimited
    output. Each call starts a new sqlcmd process, so a ServerHandle is only
    a verified target, not a live session.
    """

    def __init__(self, settings: Optional[Settings] = None):
        self._settings = settings or get_settings()
        self._sqlcmd = resolve_sqlcmd(self._settings)

    def _build_command(
        self, address: str, credential: SqlCredential, query: str
    ) -> list[str]:
        cmd = [self._sqlcmd, "-S", address]
        if credential.integrated:
            cmd.append("-E")
        else:
            cmd += ["-U", credential.username, "-P", credential.password or ""]
        cmd += [
            "-d", "master",
            "-Q", query,
            "-b",  # Exit with error code on SQL errors
            "-h", "-1",  # No headers
            "-W",  # Trim spaces
            "-s", FIELD_SEPARATOR,
            "-w", str(MAX_LINE_WIDTH),
            "-l", str(self._settings.sqlcmd_login_timeout),
            "-t", str(self._settings.sqlcmd_query_timeout),
        ]
        if self._settings.trust_server_certificate:
            cmd.append("-C")
        return cmd

    def _run_query(
        self,
        address: str,
        credential: SqlCredential,
        query: str,
        columns: int,
    ) -> list[list[str]]:
        """
        Run a query and split its output into rows of ``columns`` fields.

        Raises:
            RuntimeError: If sqlcmd is missing, times out, reports an error
                or returns a row with the wrong number of fields
        """
        cmd = self._build_command(address, credential, query)
        timeout = self._settings.sqlcmd_login_timeout + self._settings.sqlcmd_query_timeout + 30

        try:
            result = subprocess.run(cmd, capture_output=True, timeout=timeout)
        except subprocess.TimeoutExpired:
            raise RuntimeError(f"sqlcmd timed out after {timeout} seconds")
        except FileNotFoundError:
            raise RuntimeError("sqlcmd not found. SQL Server client tools are not installed.")

        stdout = result.stdout.decode("utf-8", errors="replace")
        if result.returncode != 0:
            stderr = result.stderr.decode("utf-8", errors="replace")
            raise RuntimeError(self._clean_error(stderr or stdout))

        rows = []
        for line in stdout.splitlines():
            # str.strip() would also eat the separator, which counts as whitespace
            line = line.strip(" \t\r")
            if not line:
                continue
            fields = line.split(FIELD_SEPARATOR)
            if len(fields) != columns:
                raise RuntimeError(
                    f"Unexpected sqlcmd output: {len(fields)} fields, expected {columns}"
                )
            rows.append(fields)
        return rows

    def _clean_error(self, error: str) -> str:
        """Clean up SQL Server error message."""
        if "Login failed" in error:
            return "Login failed - check username and password"
        if "network-related" in error.lower() or "instance-specific" in error.lower():
            return "Network error - check host and port"
        return error.strip()[:200] or "sqlcmd failed"

    # ===========================================
    # Connection
    # ===========================================

    def connect(self, instance_address: str, credential: SqlCredential) -> ServerHandle:
        """
        Verify connectivity and read the instance identity.

        Raises:
            DatabaseConnectionError: If the instance cannot be reached
        """
        logger.info(f"Connecting to {instance_address}")
        try:
            rows = self._run_query(instance_address, credential, SERVER_IDENTITY_QUERY, 4)
        except RuntimeError as e:
            raise DatabaseConnectionError(instance_address, str(e)) from e

        if not rows:
            raise DatabaseConnectionError(instance_address, "Server identity query returned no rows")

        server_name, machine_name, instance_name, version = rows[0]
        return ServerHandle(
            address=instance_address,
            sql_instance=_value(server_name) or instance_address,
            computer_name=_value(machine_name) or instance_address.split("\\")[0],
            instance_name=_value(instance_name) or "MSSQLSERVER",
            version=_value(version),
            credential=credential,
        )

    # ===========================================
    # Database enumeration
    # ===========================================

    def list_databases(
        self, handle: ServerHandle, include_last_used: bool = False
    ) -> list[DatabaseRecord]:
        """
        Read every database on the instance.

        Raises:
            DatabaseConnectionError: If the metadata queries fail
        """
        try:
            rows = self._run_query(handle.address, handle.credential, DATABASES_QUERY, 15)
            backup_rows = self._run_query(handle.address, handle.credential, BACKUP_SETS_QUERY, 4)
            usage_rows = (
                self._run_query(handle.address, handle.credential, LAST_USED_QUERY, 3)
                if include_last_used else []
            )
        except RuntimeError as e:
            raise DatabaseConnectionError(handle.sql_instance, str(e)) from e

        backup_sets: dict[str, list[BackupSetInfo]] = {}
        for name, backup_type, finished_at, copy_only in backup_rows:
            backup_sets.setdefault(name, []).append(BackupSetInfo(
                backup_type=backup_type,
                finished_at=_parse_datetime(finished_at),
                is_copy_only=_parse_flag(copy_only),
            ))

        usage = {
            name: (_parse_datetime(last_read), _parse_datetime(last_write))
            for name, last_read, last_write in usage_rows
        }

        databases = []
        for row in rows:
            name = row[0]
            last_read, last_write = usage.get(name, (None, None))
            databases.append(self._to_record(row, backup_sets.get(name, []), last_read, last_write))

        logger.info(f"Found {len(databases)} databases on {handle.sql_instance}")
        return databases

    def _to_record(
        self,
        row: list[str],
        backup_sets: list[BackupSetInfo],
        last_read: Optional[datetime],
        last_write: Optional[datetime],
    ) -> DatabaseRecord:
        (
            name, is_system, state_desc, in_standby, recovery_model, read_only,
            encrypted, owner, accessible, size_mb, compatibility, collation,
            last_full, last_diff, last_log,
        ) = row

        if _parse_flag(in_standby):
            status = DatabaseStatus.STANDBY
        else:
            status = STATE_TO_STATUS.get(state_desc.upper(), DatabaseStatus.NORMAL)

        compat = _value(compatibility)
        size = _value(size_mb)

        return DatabaseRecord(
            name=name,
            status=status,
            recovery_model=RECOVERY_MODELS.get(recovery_model.upper(), RecoveryModel.FULL),
            read_only=_parse_flag(read_only),
            encrypted=_parse_flag(encrypted),
            owner=_value(owner),
            is_system_object=_parse_flag(is_system),
            is_accessible=_parse_flag(accessible),
            size_mb=float(size) if size else 0.0,
            compatibility=int(compat) if compat else None,
            collation=_value(collation),
            last_full_backup=_parse_datetime(last_full),
            last_diff_backup=_parse_datetime(last_diff),
            last_log_backup=_parse_datetime(last_log),
            backup_sets=tuple(backup_sets),
            last_read=last_read,
            last_write=last_write,
        )

    # ===========================================
    # Backup history
    # ===========================================

    def last_backups(
        self,
        handle: ServerHandle,
        backup_type: BackupType,
        ignore_copy_only: bool = True,
        since: Optional[datetime] = None,
    ) -> list[BackupHistoryRecord]:
        """
        Most recent backup of a type for each database in msdb.

        Raises:
            HistoryLookupError: If msdb cannot be queried
        """
        query = build_last_backups_query(backup_type, ignore_copy_only, since)
        try:
            rows = self._run_query(handle.address, handle.credential, query, 3)
        except RuntimeError as e:
            raise HistoryLookupError(handle.sql_instance, str(e)) from e

        return [
            BackupHistoryRecord(
                database_name=name,
                backup_type=backup_type,
                finished_at=_parse_datetime(finished_at),
                is_copy_only=_parse_flag(copy_only),
            )
            for name, finished_at, copy_only in rows
        ]

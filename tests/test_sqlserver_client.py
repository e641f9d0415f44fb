from __future__ import annotations

import os
import subprocess
from datetime import datetime
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import Mock

import pytest

from dbinventory.config import Settings
from dbinventory.exceptions import DatabaseConnectionError, HistoryLookupError
from dbinventory.models import (
    BackupType,
    DatabaseStatus,
    RecoveryModel,
    ServerHandle,
    SqlCredential,
)
from dbinventory.services import sqlserver_client
from dbinventory.services.sqlserver_client import (
    FIELD_SEPARATOR,
    SqlServerClient,
    build_last_backups_query,
    resolve_sqlcmd,
)


def _output(*rows: tuple[str, ...]) -> str:
    """Render rows the way sqlcmd prints them with the client's separator."""
    return "".join(FIELD_SEPARATOR.join(row) + "\n" for row in rows)


def _completed(stdout: str = "", stderr: str = "", returncode: int = 0) -> SimpleNamespace:
    return SimpleNamespace(
        stdout=stdout.encode("utf-8"),
        stderr=stderr.encode("utf-8"),
        returncode=returncode,
    )


def _handle() -> ServerHandle:
    return ServerHandle(
        address="sql01\\reporting",
        sql_instance="SQL01\\REPORTING",
        computer_name="SQL01",
        instance_name="REPORTING",
        credential=SqlCredential(username="inventory", password="secret"),
    )


def _client() -> SqlServerClient:
    return SqlServerClient(Settings(trust_server_certificate=True, sqlcmd_path="sqlcmd"))


def _database_row(name: str, **overrides: str) -> tuple[str, ...]:
    fields = {
        "name": name,
        "is_system": "0",
        "state": "ONLINE",
        "standby": "0",
        "recovery_model": "FULL",
        "read_only": "0",
        "encrypted": "0",
        "owner": "sa",
        "accessible": "1",
        "size_mb": "1.00",
        "compatibility": "150",
        "collation": "Latin1_General_CI_AS",
        "last_full": "NULL",
        "last_diff": "NULL",
        "last_log": "NULL",
    }
    fields.update(overrides)
    return tuple(fields.values())


def test_connect_reads_instance_identity(monkeypatch: pytest.MonkeyPatch) -> None:
    run = Mock(return_value=_completed(_output(("SQL01\\REPORTING", "SQL01", "REPORTING", "16.0.4105.2"))))
    monkeypatch.setattr(sqlserver_client.subprocess, "run", run)

    handle = _client().connect("sql01\\reporting", SqlCredential(username="inventory", password="secret"))

    assert handle.sql_instance == "SQL01\\REPORTING"
    assert handle.computer_name == "SQL01"
    assert handle.instance_name == "REPORTING"
    assert handle.version == "16.0.4105.2"

    cmd = run.call_args.args[0]
    assert cmd[0] == "sqlcmd"
    assert cmd[cmd.index("-S") + 1] == "sql01\\reporting"
    assert cmd[cmd.index("-U") + 1] == "inventory"
    assert cmd[cmd.index("-s") + 1] == "\x1f"
    assert cmd[cmd.index("-w") + 1] == "65535"
    assert "-C" in cmd
    assert "-E" not in cmd


def test_connect_without_username_uses_integrated_auth(monkeypatch: pytest.MonkeyPatch) -> None:
    run = Mock(return_value=_completed(_output(("SQL02", "SQL02", "MSSQLSERVER", "15.0.2000.5"))))
    monkeypatch.setattr(sqlserver_client.subprocess, "run", run)

    _client().connect("sql02", SqlCredential())

    cmd = run.call_args.args[0]
    assert "-E" in cmd
    assert "-U" not in cmd


def test_connect_failure_raises_connection_error(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(
        sqlserver_client.subprocess,
        "run",
        Mock(return_value=_completed(stderr="Sqlcmd: Error: Login failed for user 'inventory'.", returncode=1)),
    )

    with pytest.raises(DatabaseConnectionError) as exc_info:
        _client().connect("sql01", SqlCredential(username="inventory", password="wrong"))

    assert exc_info.value.instance == "sql01"
    assert exc_info.value.kind == "ConnectionFailed"
    assert "Login failed" in str(exc_info.value)


def test_connect_timeout_raises_connection_error(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(
        sqlserver_client.subprocess,
        "run",
        Mock(side_effect=subprocess.TimeoutExpired(cmd="sqlcmd", timeout=10)),
    )

    with pytest.raises(DatabaseConnectionError, match="timed out"):
        _client().connect("sql01", SqlCredential())


def test_connect_without_sqlcmd_raises_connection_error(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(sqlserver_client.subprocess, "run", Mock(side_effect=FileNotFoundError("sqlcmd")))

    with pytest.raises(DatabaseConnectionError, match="sqlcmd not found"):
        _client().connect("sql01", SqlCredential())


def test_list_databases_maps_rows_and_backup_sets(monkeypatch: pytest.MonkeyPatch) -> None:
    databases_output = _output(
        _database_row(
            "master", is_system="1", recovery_model="SIMPLE", size_mb="7.25",
            compatibility="160", collation="SQL_Latin1_General_CP1_CI_AS",
            last_full="2024-03-01T02:00:00",
        ),
        _database_row(
            "Sales", encrypted="1", owner="CONTOSO\\dba", size_mb="2048.00",
            last_full="2024-03-02T02:00:00.123", last_diff="2024-03-03T02:00:00",
            last_log="2024-03-03T02:15:00",
        ),
        _database_row(
            "Reports", standby="1", recovery_model="BULK_LOGGED", read_only="1",
            size_mb="10.50", compatibility="140",
        ),
        _database_row(
            "Staging", state="OFFLINE", recovery_model="SIMPLE", owner="NULL",
            accessible="0", size_mb="0.00", compatibility="NULL", collation="NULL",
        ),
        _database_row("Broken", state="RECOVERY_PENDING", accessible="0", collation="NULL"),
    )
    backup_sets_output = _output(
        ("Sales", "D", "2024-03-02T02:00:00.123", "0"),
        ("Sales", "L", "2024-03-03T02:15:00", "0"),
        ("Reports", "D", "2024-02-01T00:00:00", "1"),
    )
    run = Mock(side_effect=[_completed(databases_output), _completed(backup_sets_output)])
    monkeypatch.setattr(sqlserver_client.subprocess, "run", run)

    databases = {db.name: db for db in _client().list_databases(_handle())}

    assert run.call_count == 2
    assert list(databases) == ["master", "Sales", "Reports", "Staging", "Broken"]

    master = databases["master"]
    assert master.is_system_object
    assert master.recovery_model == RecoveryModel.SIMPLE
    assert master.size_mb == 7.25
    assert master.compatibility == 160
    assert master.backup_sets == ()

    sales = databases["Sales"]
    assert sales.encrypted
    assert sales.owner == "CONTOSO\\dba"
    assert sales.last_full_backup == datetime(2024, 3, 2, 2, 0, 0, 123000)
    assert sales.last_log_backup == datetime(2024, 3, 3, 2, 15)
    assert [b.backup_type for b in sales.backup_sets] == ["D", "L"]
    assert not sales.has_only_copy_only_backups

    reports = databases["Reports"]
    assert reports.status == DatabaseStatus.STANDBY
    assert reports.read_only
    assert reports.recovery_model == RecoveryModel.BULK_LOGGED
    assert reports.has_only_copy_only_backups

    staging = databases["Staging"]
    assert staging.status == DatabaseStatus.OFFLINE
    assert staging.owner is None
    assert staging.compatibility is None
    assert not staging.is_accessible

    assert databases["Broken"].status == DatabaseStatus.RECOVERING


def test_list_databases_keeps_names_containing_pipes(monkeypatch: pytest.MonkeyPatch) -> None:
    run = Mock(side_effect=[
        _completed(_output(_database_row("Sales|Archive", owner="CONTOSO\\a|b"))),
        _completed(_output(("Sales|Archive", "D", "2024-03-02T02:00:00", "0"))),
    ])
    monkeypatch.setattr(sqlserver_client.subprocess, "run", run)

    (db,) = _client().list_databases(_handle())

    assert db.name == "Sales|Archive"
    assert db.owner == "CONTOSO\\a|b"
    assert db.recovery_model == RecoveryModel.FULL
    assert len(db.backup_sets) == 1


def test_list_databases_with_last_used(monkeypatch: pytest.MonkeyPatch) -> None:
    run = Mock(side_effect=[
        _completed(_output(_database_row("Sales"))),
        _completed(""),
        _completed(_output(("Sales", "2024-03-05T10:00:00", "2024-03-04T09:00:00"))),
    ])
    monkeypatch.setattr(sqlserver_client.subprocess, "run", run)

    (sales,) = _client().list_databases(_handle(), include_last_used=True)

    assert run.call_count == 3
    assert sales.last_read == datetime(2024, 3, 5, 10)
    assert sales.last_write == datetime(2024, 3, 4, 9)


def test_list_databases_malformed_row_raises_connection_error(monkeypatch: pytest.MonkeyPatch) -> None:
    run = Mock(side_effect=[
        _completed(_output(_database_row("Sales")) + "Msg 208, Level 16, State 1\n"),
        _completed(""),
    ])
    monkeypatch.setattr(sqlserver_client.subprocess, "run", run)

    with pytest.raises(DatabaseConnectionError, match="1 fields, expected 15"):
        _client().list_databases(_handle())


def test_list_databases_failure_raises_connection_error(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(
        sqlserver_client.subprocess,
        "run",
        Mock(return_value=_completed(stderr="A network-related or instance-specific error", returncode=1)),
    )

    with pytest.raises(DatabaseConnectionError) as exc_info:
        _client().list_databases(_handle())

    assert exc_info.value.instance == "SQL01\\REPORTING"
    assert "Network error" in str(exc_info.value)


def test_last_backups_parses_history(monkeypatch: pytest.MonkeyPatch) -> None:
    run = Mock(return_value=_completed(_output(
        ("Sales", "2024-03-02T02:00:00", "0"),
        ("HR", "2024-03-01T02:00:00", "0"),
    )))
    monkeypatch.setattr(sqlserver_client.subprocess, "run", run)

    records = _client().last_backups(_handle(), BackupType.FULL, since=datetime(2024, 3, 1))

    assert [r.database_name for r in records] == ["Sales", "HR"]
    assert records[0].backup_type == BackupType.FULL
    assert records[0].finished_at == datetime(2024, 3, 2, 2)
    query = run.call_args.args[0][run.call_args.args[0].index("-Q") + 1]
    assert "b.type = 'D'" in query
    assert "b.is_copy_only = 0" in query
    assert "b.backup_finish_date >= '2024-03-01T00:00:00'" in query


def test_last_backups_malformed_row_raises_history_lookup_error(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(
        sqlserver_client.subprocess,
        "run",
        Mock(return_value=_completed(_output(("Sales", "2024-03-02T02:00:00")))),
    )

    with pytest.raises(HistoryLookupError, match="2 fields, expected 3"):
        _client().last_backups(_handle(), BackupType.FULL)


def test_last_backups_failure_raises_history_lookup_error(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(
        sqlserver_client.subprocess,
        "run",
        Mock(return_value=_completed(stderr="The SELECT permission was denied on the object 'backupset'", returncode=1)),
    )

    with pytest.raises(HistoryLookupError) as exc_info:
        _client().last_backups(_handle(), BackupType.LOG)

    assert exc_info.value.instance == "SQL01\\REPORTING"
    assert exc_info.value.kind == "HistoryLookupFailed"


def test_build_last_backups_query_for_log_including_copy_only() -> None:
    query = build_last_backups_query(BackupType.LOG, ignore_copy_only=False)

    assert "b.type = 'L'" in query
    assert "is_copy_only = 0" not in query
    assert "backup_finish_date >=" not in query


def test_resolve_sqlcmd_prefers_explicit_path(tmp_path: Path) -> None:
    settings = Settings(sqlcmd_path="/opt/mssql-tools18/bin/sqlcmd", tools_bin_path=str(tmp_path))

    assert resolve_sqlcmd(settings) == "/opt/mssql-tools18/bin/sqlcmd"


def test_resolve_sqlcmd_uses_bundled_binary(tmp_path: Path) -> None:
    bundled = tmp_path / "sqlcmd"
    bundled.write_text("#!/bin/sh\n")
    bundled.chmod(0o755)

    path = resolve_sqlcmd(Settings(sqlcmd_path=None, tools_bin_path=str(tmp_path)))

    assert path == os.path.join(str(tmp_path), "sqlcmd")


def test_resolve_sqlcmd_falls_back_to_path(tmp_path: Path) -> None:
    settings = Settings(sqlcmd_path=None, tools_bin_path=str(tmp_path / "missing"))

    assert resolve_sqlcmd(settings) == "sqlcmd"
    assert SqlServerClient(settings)._build_command("sql01", SqlCredential(), "SELECT 1")[0] == "sqlcmd"
